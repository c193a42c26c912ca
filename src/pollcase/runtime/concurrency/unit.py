"""Pollable unit contract.

Two capability interfaces erase the concrete type of every unit:

    Future[T].poll(waker)       -> PENDING | Ready(value)
    Stream[T].poll_next(waker)  -> PENDING | Ready(item) | DONE

Contract:
    - A unit that returns PENDING has handed ``waker`` (or a clone) to
      whatever will make it ready; firing it guarantees another poll.
    - Polling a unit again after it reported completion is a usage error.
      Library units raise PolledAfterCompletion; wrap a unit with ``fuse()``
      to make repeated polls safe.
    - ``close()`` is the cooperative cleanup hook run when the owner drops a
      unit before it completed. It must not block and must not raise.

Helpers:
    - poll_fn / stream_poll_fn: units from a plain poll callable
    - ready: an immediately ready future
    - iter_stream: lazily adapt a Python iterable to a stream
    - Stream.next(): future of the next item
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from pollcase.foundation.errors import PolledAfterCompletion

from .poll import DONE, PENDING, Done, Ready

if TYPE_CHECKING:
    from .adapters import CatchUnwind, CatchUnwindStream, Fuse, FuseStream
    from .buffered import Buffered, BufferUnordered
    from .poll import Poll, StreamPoll
    from .waker import Waker

T = TypeVar("T")
U = TypeVar("U")

__all__ = [
    "Future",
    "Stream",
    "StreamFuture",
    "PollFn",
    "StreamPollFn",
    "IterStream",
    "poll_fn",
    "stream_poll_fn",
    "ready",
    "iter_stream",
]


class Future(ABC, Generic[T]):
    """A unit producing a single eventual value."""

    __slots__ = ()

    @abstractmethod
    def poll(self, waker: Waker) -> Poll[T]:
        """Advance to the next suspension point or to completion."""

    def close(self) -> None:
        """Cooperative cleanup when dropped before completion."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def fuse(self) -> Fuse[T]:
        from .adapters import Fuse
        return Fuse(self)

    def catch_unwind(self) -> CatchUnwind[T]:
        from .adapters import CatchUnwind
        return CatchUnwind(self)


class Stream(ABC, Generic[T]):
    """A unit producing a sequence of values."""

    __slots__ = ()

    @abstractmethod
    def poll_next(self, waker: Waker) -> StreamPoll[T]:
        """Produce the next item, DONE at the end, or PENDING."""

    def close(self) -> None:
        """Cooperative cleanup when dropped before the end."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def next(self) -> StreamFuture[T]:
        """Future resolving to ``Ready(item)`` or ``DONE`` (as its value)."""
        return StreamFuture(self)

    def fuse(self) -> FuseStream[T]:
        from .adapters import FuseStream
        return FuseStream(self)

    def catch_unwind(self) -> CatchUnwindStream[T]:
        from .adapters import CatchUnwindStream
        return CatchUnwindStream(self)

    def buffered(self: Stream[Future[U]], limit: int | None = None) -> Buffered[U]:
        from .buffered import Buffered
        return Buffered(self, limit)

    def buffer_unordered(self: Stream[Future[U]], limit: int | None = None) -> BufferUnordered[U]:
        from .buffered import BufferUnordered
        return BufferUnordered(self, limit)


class StreamFuture(Future[Ready[T] | Done]):
    """Resolves to the stream's next outcome: ``Ready(item)`` or ``DONE``."""

    __slots__ = ("stream", "_done")

    def __init__(self, stream: Stream[T]) -> None:
        self.stream = stream
        self._done = False

    def poll(self, waker: Waker) -> Poll[Ready[T] | Done]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        outcome = self.stream.poll_next(waker)
        if outcome is PENDING:
            return PENDING
        self._done = True
        return Ready(outcome)

    def close(self) -> None:
        if not self._done:
            self.stream.close()


class PollFn(Future[T]):
    """Future backed by a poll callable."""

    __slots__ = ("_fn", "_done")

    def __init__(self, fn: Callable[[Waker], Poll[T]]) -> None:
        self._fn = fn
        self._done = False

    def poll(self, waker: Waker) -> Poll[T]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        outcome = self._fn(waker)
        if isinstance(outcome, Ready):
            self._done = True
        return outcome


class StreamPollFn(Stream[T]):
    """Stream backed by a poll_next callable."""

    __slots__ = ("_fn", "_done")

    def __init__(self, fn: Callable[[Waker], StreamPoll[T]]) -> None:
        self._fn = fn
        self._done = False

    def poll_next(self, waker: Waker) -> StreamPoll[T]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        outcome = self._fn(waker)
        if outcome is DONE:
            self._done = True
        return outcome


class _ReadyFuture(Future[T]):
    __slots__ = ("_value", "_done")

    def __init__(self, value: T) -> None:
        self._value = value
        self._done = False

    def poll(self, waker: Waker) -> Poll[T]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        self._done = True
        return Ready(self._value)


class IterStream(Stream[T]):
    """Stream over a Python iterable; pulls lazily, never PENDING."""

    __slots__ = ("_it", "_done")

    def __init__(self, iterable: Iterable[T]) -> None:
        self._it: Iterator[T] | None = iter(iterable)
        self._done = False

    def poll_next(self, waker: Waker) -> StreamPoll[T]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        assert self._it is not None
        try:
            return Ready(next(self._it))
        except StopIteration:
            self._done, self._it = True, None
            return DONE

    def close(self) -> None:
        if self._it is not None and hasattr(self._it, "close"):
            self._it.close()  # generators run their finally blocks
        self._it = None


def poll_fn(fn: Callable[[Waker], Poll[T]]) -> PollFn[T]:
    """Future from a poll callable.

    Example:
        >>> attempts = iter([PENDING, Ready(7)])
        >>> fut = poll_fn(lambda waker: (waker.wake(), next(attempts))[1])
    """
    return PollFn(fn)


def stream_poll_fn(fn: Callable[[Waker], StreamPoll[T]]) -> StreamPollFn[T]:
    """Stream from a poll_next callable."""
    return StreamPollFn(fn)


def ready(value: T) -> Future[T]:
    """Future that completes on its first poll."""
    return _ReadyFuture(value)


def iter_stream(iterable: Iterable[T] | Stream[T]) -> Stream[T]:
    """Adapt an iterable to a stream (streams pass through)."""
    return iterable if isinstance(iterable, Stream) else IterStream(iterable)

