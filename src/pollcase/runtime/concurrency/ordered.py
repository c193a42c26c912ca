"""Ordered task set: concurrent futures released in push order.

Members run concurrently inside a TaskSet; each completion is tagged with the
sequence number it was pushed under and parked in a min-heap until every
earlier member has been released.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable
from typing import TYPE_CHECKING, TypeVar

from .poll import PENDING, Ready
from .task_set import TaskSet
from .unit import Future, Stream

if TYPE_CHECKING:
    from .poll import Poll, StreamPoll
    from .waker import Waker

T = TypeVar("T")

__all__ = ["OrderedTaskSet"]


class _Sequenced(Future[tuple[int, T]]):
    """Tags the wrapped future's value with its sequence number."""

    __slots__ = ("future", "seq", "_failed")

    def __init__(self, future: Future[T], seq: int, failed: set[int]) -> None:
        self.future = future
        self.seq = seq
        self._failed = failed

    def poll(self, waker: Waker) -> Poll[tuple[int, T]]:
        try:
            outcome = self.future.poll(waker)
        except BaseException:
            # The owner skips this sequence number instead of waiting on it
            self._failed.add(self.seq)
            raise
        if outcome is PENDING:
            return PENDING
        return Ready((self.seq, outcome.value))

    def close(self) -> None:
        self.future.close()

    @property
    def name(self) -> str:
        return self.future.name


class OrderedTaskSet(Stream[T]):
    """Like TaskSet, but yields results in the order futures were pushed.

    ``push_front`` puts a future ahead of every not-yet-released one, which
    lets a caller retry a unit without losing its place.

    A member whose poll raises is dropped (the exception propagates from
    ``poll_next``) and its position is skipped, so later results are still
    released.

    Example:
        >>> ordered = OrderedTaskSet([countdown(3, "a"), countdown(1, "b")])
        >>> list(block_on_stream(ordered))
        ['a', 'b']
    """

    __slots__ = ("_in_progress", "_completed", "_failed", "_next_incoming", "_next_outgoing")

    def __init__(self, futures: Iterable[Future[T]] = ()) -> None:
        self._in_progress: TaskSet[tuple[int, T]] = TaskSet()
        self._completed: list[tuple[int, T]] = []
        self._failed: set[int] = set()
        self._next_incoming = 0
        self._next_outgoing = 0
        for future in futures:
            self.push_back(future)

    def push_back(self, future: Future[T]) -> None:
        self._in_progress.push(_Sequenced(future, self._next_incoming, self._failed))
        self._next_incoming += 1

    push = push_back

    def push_front(self, future: Future[T]) -> None:
        if self._next_outgoing == self._next_incoming:
            self.push_back(future)
        else:
            self._next_outgoing -= 1
            self._in_progress.push(_Sequenced(future, self._next_outgoing, self._failed))

    def _skip_failed(self) -> None:
        while self._next_outgoing in self._failed:
            self._failed.discard(self._next_outgoing)
            self._next_outgoing += 1

    def poll_next(self, waker: Waker) -> StreamPoll[T]:
        self._skip_failed()
        if self._completed and self._completed[0][0] == self._next_outgoing:
            self._next_outgoing += 1
            return Ready(heapq.heappop(self._completed)[1])

        while True:
            outcome = self._in_progress.poll_next(waker)
            if not isinstance(outcome, Ready):
                return outcome
            seq, value = outcome.value
            if seq == self._next_outgoing:
                self._next_outgoing += 1
                return Ready(value)
            # Sequence numbers are unique, so values are never compared
            heapq.heappush(self._completed, (seq, value))

    def clear(self) -> None:
        self._in_progress.clear()
        self._completed.clear()
        self._failed.clear()
        self._next_outgoing = self._next_incoming

    def close(self) -> None:
        self.clear()

    @property
    def in_flight(self) -> int:
        """Members still running."""
        return len(self._in_progress)

    @property
    def is_terminated(self) -> bool:
        return self._in_progress.is_terminated and not self._completed

    def __len__(self) -> int:
        return len(self._in_progress) + len(self._completed)

    def __repr__(self) -> str:
        return f"OrderedTaskSet(running={len(self._in_progress)}, held={len(self._completed)})"
