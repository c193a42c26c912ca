"""Bounded concurrency pipelines.

Consume a stream (or any iterable) of not-yet-started futures, running at
most ``limit`` of them at once. The next future is pulled from the input only
when a slot frees up, so an unbounded input is never materialized.

Key Operations:
    - buffer_unordered: results in completion order
    - buffered: results in input order; early finishers wait for their
      predecessors
    - for_each_concurrent: run a future per item, resolve when all finished
    - try_buffer_unordered, try_buffered, try_for_each_concurrent: the same
      over Result-yielding futures, stopping at the first Err

Limits:
    ``limit`` is a positive int, or None for unbounded admission. When
    omitted it comes from ``settings.concurrency.default_limit``. Zero,
    negative and non-integer limits raise InvalidConcurrencyLimit.

Example:
    >>> fetches = (fetch(url) for url in urls)        # lazy, not started
    >>> for page in block_on_stream(buffered(fetches, limit=4)):
    ...     save(page)                                # same order as urls
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from pollcase.foundation.config import get_settings
from pollcase.foundation.errors import InvalidConcurrencyLimit, Ok, PolledAfterCompletion, Result

from .adapters import FuseStream
from .ordered import OrderedTaskSet
from .poll import DONE, PENDING, Ready
from .task_set import TaskSet
from .unit import Future, Stream, iter_stream

if TYPE_CHECKING:
    from .poll import Poll, StreamPoll
    from .waker import Waker

T = TypeVar("T")
E = TypeVar("E")

__all__ = [
    "BufferUnordered",
    "Buffered",
    "ForEachConcurrent",
    "TryBufferUnordered",
    "TryBuffered",
    "TryForEachConcurrent",
    "buffer_unordered",
    "buffered",
    "for_each_concurrent",
    "try_buffer_unordered",
    "try_buffered",
    "try_for_each_concurrent",
    "validate_limit",
]

logger = logging.getLogger("pollcase.buffered")

FutureSource = Stream[Future[T]] | Iterable[Future[T]]


def validate_limit(component: str, limit: int | None) -> int | None:
    """Resolve and check a concurrency limit (None = unbounded).

    Raises:
        InvalidConcurrencyLimit: If limit is not a positive int
    """
    if limit is None:
        limit = get_settings().concurrency.default_limit
        if limit is None:
            return None
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise InvalidConcurrencyLimit(component, limit)
    return limit


class _Pipeline(Stream[T]):
    """Admission loop shared by both result orders."""

    __slots__ = ("_input", "_in_progress", "_limit", "_admitted")

    def __init__(self, source: FutureSource[T], limit: int | None, members: TaskSet[T] | OrderedTaskSet[T]) -> None:
        self._limit = validate_limit(type(self).__name__, limit)
        self._input: FuseStream[Future[T]] = FuseStream(iter_stream(source))
        self._in_progress = members
        self._admitted = 0

    @property
    def limit(self) -> int | None:
        return self._limit

    @property
    def in_progress(self) -> int:
        """Admitted units not yet handed to the caller."""
        return len(self._in_progress)

    @property
    def admitted(self) -> int:
        """Units pulled from the input so far."""
        return self._admitted

    @property
    def is_terminated(self) -> bool:
        return self._input.is_terminated and len(self._in_progress) == 0

    def _has_capacity(self) -> bool:
        return self._limit is None or len(self._in_progress) < self._limit

    def poll_next(self, waker: Waker) -> StreamPoll[T]:
        while self._has_capacity():
            outcome = self._input.poll_next(waker)
            if not isinstance(outcome, Ready):
                break
            self._in_progress.push(outcome.value)
            self._admitted += 1
            logger.debug("admitted unit #%d (%d in flight)", self._admitted, len(self._in_progress))

        outcome = self._in_progress.poll_next(waker)
        if outcome is DONE:
            return DONE if self._input.is_terminated else PENDING
        return outcome

    def close(self) -> None:
        self._in_progress.close()
        self._input.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(limit={self._limit}, in_progress={len(self._in_progress)})"


class BufferUnordered(_Pipeline[T]):
    """Bounded pipeline yielding results in completion order."""

    __slots__ = ()

    def __init__(self, source: FutureSource[T], limit: int | None = None) -> None:
        super().__init__(source, limit, TaskSet())


class Buffered(_Pipeline[T]):
    """Bounded pipeline yielding results in input order.

    Completed results count against the limit until released, so at most
    ``limit`` units are between admission and release at any time.
    """

    __slots__ = ()

    def __init__(self, source: FutureSource[T], limit: int | None = None) -> None:
        super().__init__(source, limit, OrderedTaskSet())


class _TryPipeline(_Pipeline[Result[T, E]]):
    """Pipeline over Result-yielding futures that ends at the first Err.

    Ok items pass through in the pipeline's order. The first Err is yielded,
    in-flight members are closed and nothing more is pulled from the input;
    every later poll returns DONE.
    """

    __slots__ = ()

    def poll_next(self, waker: Waker) -> StreamPoll[Result[T, E]]:
        outcome = super().poll_next(waker)
        if isinstance(outcome, Ready) and outcome.value.is_err():
            logger.debug("%s stopped on Err (%d in flight closed)", type(self).__name__, len(self._in_progress))
            self.close()
        return outcome


class TryBufferUnordered(_TryPipeline[T, E]):
    """Completion-order pipeline that short-circuits on the first Err."""

    __slots__ = ()

    def __init__(self, source: FutureSource[Result[T, E]], limit: int | None = None) -> None:
        super().__init__(source, limit, TaskSet())


class TryBuffered(_TryPipeline[T, E]):
    """Input-order pipeline that short-circuits on the first Err.

    An Err is yielded only once every earlier item was released, so a
    later Err that finishes first waits its turn behind pending Ok values.
    """

    __slots__ = ()

    def __init__(self, source: FutureSource[Result[T, E]], limit: int | None = None) -> None:
        super().__init__(source, limit, OrderedTaskSet())


class ForEachConcurrent(Future[None], Generic[T]):
    """Runs ``fn(item)`` for every input item with bounded concurrency.

    Resolves to None once the input ended and every started future finished.
    A future that raises propagates out of ``poll``; wrap it with
    ``catch_unwind`` inside ``fn`` to keep going.
    """

    __slots__ = ("_input", "_fn", "_limit", "_in_progress", "_done")

    def __init__(self, stream: Stream[T] | Iterable[T], limit: int | None, fn: Callable[[T], Future[object]]) -> None:
        self._limit = validate_limit(type(self).__name__, limit)
        self._input: FuseStream[T] = FuseStream(iter_stream(stream))
        self._fn = fn
        self._in_progress: TaskSet[object] = TaskSet()
        self._done = False

    @property
    def in_progress(self) -> int:
        return len(self._in_progress)

    def poll(self, waker: Waker) -> Poll[None]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        while True:
            progressed = False
            while not self._input.is_terminated and (self._limit is None or len(self._in_progress) < self._limit):
                outcome = self._input.poll_next(waker)
                if not isinstance(outcome, Ready):
                    break
                self._in_progress.push(self._fn(outcome.value))
                progressed = True

            outcome = self._in_progress.poll_next(waker)
            if isinstance(outcome, Ready):
                stop = self._short_circuit(outcome.value)
                if stop is not None:
                    self._done = True
                    self.close()
                    return stop
                progressed = True
            elif outcome is DONE and self._input.is_terminated:
                self._done = True
                return Ready(self._complete())

            if not progressed:
                return PENDING

    def _short_circuit(self, value: object) -> Ready | None:
        return None

    def _complete(self) -> object:
        return None

    def close(self) -> None:
        self._in_progress.close()
        self._input.close()


class TryForEachConcurrent(ForEachConcurrent[T]):
    """ForEachConcurrent over Result-yielding futures.

    Resolves to ``Ok(None)`` once everything finished with Ok, or to the
    first Err as soon as it arrives; the remaining in-flight futures are
    closed and no further items are pulled.
    """

    __slots__ = ()

    def _short_circuit(self, value: object) -> Ready | None:
        if isinstance(value, Result) and value.is_err():
            logger.debug("try_for_each_concurrent stopped on Err (%d in flight)", len(self._in_progress))
            return Ready(value)
        return None

    def _complete(self) -> Result[None, object]:
        return Ok(None)


def buffer_unordered(source: FutureSource[T], limit: int | None = None) -> BufferUnordered[T]:
    """Run up to ``limit`` futures from ``source`` at once, yielding in completion order."""
    return BufferUnordered(source, limit)


def buffered(source: FutureSource[T], limit: int | None = None) -> Buffered[T]:
    """Run up to ``limit`` futures from ``source`` at once, yielding in input order."""
    return Buffered(source, limit)


def for_each_concurrent(
    stream: Stream[T] | Iterable[T],
    limit: int | None,
    fn: Callable[[T], Future[object]],
) -> ForEachConcurrent[T]:
    """Future running ``fn`` over every item with at most ``limit`` in flight."""
    return ForEachConcurrent(stream, limit, fn)


def try_buffer_unordered(source: FutureSource[Result[T, E]], limit: int | None = None) -> TryBufferUnordered[T, E]:
    """Like buffer_unordered, but yields the first Err and then ends."""
    return TryBufferUnordered(source, limit)


def try_buffered(source: FutureSource[Result[T, E]], limit: int | None = None) -> TryBuffered[T, E]:
    """Like buffered, but yields the first Err (in input order) and then ends."""
    return TryBuffered(source, limit)


def try_for_each_concurrent(
    stream: Stream[T] | Iterable[T],
    limit: int | None,
    fn: Callable[[T], Future[Result[object, E]]],
) -> TryForEachConcurrent[T]:
    """Future resolving to Ok(None), or to the first Err any ``fn(item)`` produced."""
    return TryForEachConcurrent(stream, limit, fn)
