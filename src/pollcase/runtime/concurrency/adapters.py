"""Safety adapters around single units.

- Fuse / FuseStream: make polling past completion safe. A fused stream
  returns DONE forever; a fused future returns PENDING forever (it never
  completes twice). Both expose ``is_terminated``.
- CatchUnwind / CatchUnwindStream: turn an exception raised by the wrapped
  unit's poll into an ``Err(exception)`` value, so an aggregate delivers it
  as a result instead of propagating it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

from pollcase.foundation.errors import Err, Ok, PolledAfterCompletion, Result

from .poll import DONE, PENDING, Ready
from .unit import Future, Stream

if TYPE_CHECKING:
    from .poll import Poll, StreamPoll
    from .waker import Waker

T = TypeVar("T")

__all__ = ["Fuse", "FuseStream", "CatchUnwind", "CatchUnwindStream", "fuse", "catch_unwind"]

logger = logging.getLogger("pollcase.adapters")


class Fuse(Future[T]):
    """Future that stays PENDING once its inner future completed."""

    __slots__ = ("_inner",)

    def __init__(self, inner: Future[T]) -> None:
        self._inner: Future[T] | None = inner

    @property
    def is_terminated(self) -> bool:
        return self._inner is None

    def poll(self, waker: Waker) -> Poll[T]:
        if self._inner is None:
            return PENDING
        outcome = self._inner.poll(waker)
        if isinstance(outcome, Ready):
            self._inner = None
        return outcome

    def close(self) -> None:
        if self._inner is not None:
            self._inner.close()
            self._inner = None


class FuseStream(Stream[T]):
    """Stream that returns DONE forever once its inner stream ended."""

    __slots__ = ("_inner",)

    def __init__(self, inner: Stream[T]) -> None:
        self._inner: Stream[T] | None = inner

    @property
    def is_terminated(self) -> bool:
        return self._inner is None

    def poll_next(self, waker: Waker) -> StreamPoll[T]:
        if self._inner is None:
            return DONE
        outcome = self._inner.poll_next(waker)
        if outcome is DONE:
            self._inner = None
        return outcome

    def close(self) -> None:
        if self._inner is not None:
            self._inner.close()
            self._inner = None

    @property
    def name(self) -> str:
        return f"Fuse({self._inner.name})" if self._inner is not None else "Fuse(<terminated>)"


class CatchUnwind(Future[Result[T, Exception]]):
    """Resolves to ``Ok(value)``, or ``Err(exc)`` if the inner poll raised.

    Only ``Exception`` is caught; KeyboardInterrupt and friends propagate.

    Example:
        >>> tasks = TaskSet([flaky().catch_unwind(), steady().catch_unwind()])
        >>> [r.is_ok() for r in block_on_stream(tasks)]
        [False, True]
    """

    __slots__ = ("_inner", "_done")

    def __init__(self, inner: Future[T]) -> None:
        self._inner = inner
        self._done = False

    def poll(self, waker: Waker) -> Poll[Result[T, Exception]]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        try:
            outcome = self._inner.poll(waker)
        except Exception as exc:
            self._done = True
            logger.debug("caught failure from %s: %r", self._inner.name, exc)
            return Ready(Err(exc))
        if outcome is PENDING:
            return PENDING
        self._done = True
        return Ready(Ok(outcome.value))

    def close(self) -> None:
        if not self._done:
            self._inner.close()


class CatchUnwindStream(Stream[Result[T, Exception]]):
    """Items become ``Ok(item)``; a raised exception becomes a final ``Err(exc)`` item."""

    __slots__ = ("_inner", "_failed", "_done")

    def __init__(self, inner: Stream[T]) -> None:
        self._inner = inner
        self._failed = False
        self._done = False

    def poll_next(self, waker: Waker) -> StreamPoll[Result[T, Exception]]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        if self._failed:
            self._done = True
            return DONE
        try:
            outcome = self._inner.poll_next(waker)
        except Exception as exc:
            self._failed = True
            logger.debug("caught failure from %s: %r", self._inner.name, exc)
            return Ready(Err(exc))
        if outcome is DONE:
            self._done = True
            return DONE
        if outcome is PENDING:
            return PENDING
        return Ready(Ok(outcome.value))

    def close(self) -> None:
        if not (self._done or self._failed):
            self._inner.close()


def fuse(unit: Future[T] | Stream[T]) -> Fuse[T] | FuseStream[T]:
    """Fuse a future or a stream."""
    return FuseStream(unit) if isinstance(unit, Stream) else Fuse(unit)


def catch_unwind(unit: Future[T] | Stream[T]) -> CatchUnwind[T] | CatchUnwindStream[T]:
    """Catch poll-time exceptions of a future or a stream as Err values."""
    return CatchUnwindStream(unit) if isinstance(unit, Stream) else CatchUnwind(unit)
