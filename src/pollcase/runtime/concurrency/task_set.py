"""Unordered task set: a growable collection of independently wakeable futures.

Members live in an arena of slots addressed by stable integer indices. Each
slot owns a waker bound to ``(index, generation)``; firing it puts the index
on a shared ready queue and wakes whoever last polled the set. ``poll_next``
only re-polls members whose index came off that queue, so idle members cost
nothing. Results come out in completion order, not push order.

Key Features:
    - Stable identity: a member keeps its index until it completes or is
      cancelled, however the arena grows around it
    - Thread-safe wakes: slot wakers may fire from any thread, from inside a
      member's own poll, repeatedly, or after the member is gone
    - Tombstoning: wakes for vacated slots are ignored, never dereferenced
    - Failure isolation: a member whose poll raises is removed before the
      exception propagates, siblings are untouched

Ordering:
    Ready members are polled in FIFO order of wake arrival; freshly pushed
    members are queued in push order. Nothing beyond "some member completed"
    should be relied on when members are woken from several threads.

Example:
    >>> tasks = TaskSet()
    >>> handle = tasks.push(download("a"))
    >>> tasks.push(download("b"))
    >>> for result in block_on_stream(tasks):
    ...     print(result)          # whichever finishes first
"""

from __future__ import annotations

import logging
import threading
import weakref
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from pollcase.foundation.errors import PollError

from .poll import DONE, PENDING, Ready
from .unit import Future, Stream
from .waker import AtomicWaker, Waker

if TYPE_CHECKING:
    from .poll import StreamPoll

T = TypeVar("T")

__all__ = ["TaskSet", "TaskHandle"]

logger = logging.getLogger("pollcase.task_set")


@dataclass(slots=True, frozen=True)
class TaskHandle:
    """Identity of one member of a TaskSet.

    The generation distinguishes successive occupants of a reused index, so
    a handle to a member that already left the set stays inert.

    Attributes:
        index: Slot index in the arena
        generation: Occupancy counter at push time
    """

    index: int
    generation: int


class _ReadyQueue:
    """Ready indices shared between the set (poll side) and slot wakers (any thread).

    ``_live`` maps occupied indices to their current generation; ``_queued``
    holds indices that have a pending entry in ``_queue``. Retiring a slot
    drops it from both, which turns its queue entry into a tombstone that
    ``pop`` skips.
    """

    __slots__ = ("_lock", "_queue", "_queued", "_live", "parent", "__weakref__")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queue: deque[int] = deque()
        self._queued: set[int] = set()
        self._live: dict[int, int] = {}
        self.parent = AtomicWaker()

    def activate(self, index: int, generation: int) -> None:
        with self._lock:
            self._live[index] = generation
            self._queued.add(index)
            self._queue.append(index)

    def retire(self, index: int) -> None:
        with self._lock:
            self._live.pop(index, None)
            self._queued.discard(index)

    def enqueue(self, index: int, generation: int) -> None:
        with self._lock:
            if self._live.get(index) != generation:
                stale = True
            elif index in self._queued:
                return
            else:
                stale = False
                self._queued.add(index)
                self._queue.append(index)
        if stale:
            logger.debug("stale wake ignored", extra={"index": index, "generation": generation})
            return
        self.parent.wake()

    def pop(self) -> int | None:
        with self._lock:
            while self._queue:
                index = self._queue.popleft()
                if index in self._queued:
                    self._queued.discard(index)
                    return index
            return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._queued)


def _slot_waker(queue: _ReadyQueue, index: int, generation: int) -> Waker:
    """Waker that re-queues one slot; inert once the set is gone."""
    ref = weakref.ref(queue)

    def wake() -> None:
        if (q := ref()) is not None:
            q.enqueue(index, generation)

    return Waker(wake, key=(ref, index, generation))


class _Slot(Generic[T]):
    __slots__ = ("future", "generation", "waker")

    def __init__(self, future: Future[T], generation: int, waker: Waker) -> None:
        self.future = future
        self.generation = generation
        self.waker = waker


class TaskSet(Stream[T]):
    """Set of futures drained in completion order.

    Polling an empty set returns DONE (and keeps doing so until another
    future is pushed), so the set can be polled freely after it ran dry.

    Features:
        - push(): add a future, O(1) amortized, returns a TaskHandle
        - cancel(): drop one member, running its close() hook
        - clear(): drop every member
        - poll_next(): next completed value, PENDING, or DONE when empty

    Example:
        >>> tasks = TaskSet([countdown(3, "a"), countdown(1, "b")])
        >>> list(block_on_stream(tasks))
        ['b', 'a']
    """

    __slots__ = ("_slots", "_free", "_len", "_generation", "_ready", "_terminated")

    def __init__(self, futures: Iterable[Future[T]] = ()) -> None:
        self._slots: list[_Slot[T] | None] = []
        self._free: list[int] = []
        self._len = 0
        self._generation = 0
        self._ready = _ReadyQueue()
        self._terminated = False
        for future in futures:
            self.push(future)

    # ─────────────────────────────────────────────────────────────────
    # Membership
    # ─────────────────────────────────────────────────────────────────

    def push(self, future: Future[T]) -> TaskHandle:
        """Add a future; it is polled on the next poll_next."""
        self._generation += 1
        generation = self._generation
        if self._free:
            index = self._free.pop()
        else:
            index = len(self._slots)
            self._slots.append(None)
        self._slots[index] = _Slot(future, generation, _slot_waker(self._ready, index, generation))
        self._len += 1
        self._terminated = False
        self._ready.activate(index, generation)
        return TaskHandle(index, generation)

    insert = push

    def cancel(self, handle: TaskHandle) -> bool:
        """Remove the member behind ``handle`` and run its close() hook.

        Returns:
            True if the member was still in the set
        """
        if handle not in self:
            return False
        future = self._release(handle.index)
        future.close()
        logger.debug("member cancelled", extra={"index": handle.index})
        return True

    def clear(self) -> None:
        """Remove every member, running their close() hooks."""
        for index, slot in enumerate(self._slots):
            if slot is not None:
                self._release(index).close()

    def close(self) -> None:
        self.clear()

    def handles(self) -> list[TaskHandle]:
        return [TaskHandle(i, s.generation) for i, s in enumerate(self._slots) if s is not None]

    def futures(self) -> Iterator[Future[T]]:
        return (s.future for s in self._slots if s is not None)

    def __contains__(self, handle: object) -> bool:
        if not isinstance(handle, TaskHandle) or not 0 <= handle.index < len(self._slots):
            return False
        slot = self._slots[handle.index]
        return slot is not None and slot.generation == handle.generation

    def __len__(self) -> int:
        return self._len

    @property
    def is_empty(self) -> bool:
        return self._len == 0

    @property
    def is_terminated(self) -> bool:
        """Whether the set reported DONE and nothing was pushed since."""
        return self._terminated

    @property
    def ready_count(self) -> int:
        """Members currently queued for a poll."""
        return len(self._ready)

    def _release(self, index: int) -> Future[T]:
        slot = self._slots[index]
        assert slot is not None
        self._slots[index] = None
        self._free.append(index)
        self._len -= 1
        self._ready.retire(index)
        return slot.future

    # ─────────────────────────────────────────────────────────────────
    # Polling
    # ─────────────────────────────────────────────────────────────────

    def poll_next(self, waker: Waker) -> StreamPoll[T]:
        """Poll ready members until one completes.

        Registers ``waker`` before draining so a member woken mid-drain (or
        from another thread) always leads to another call. After polling as
        many members as the set held on entry, the call returns PENDING (waking
        ``waker`` if members are still queued), so members that wake
        themselves on every poll cannot starve the driver.
        """
        if self._len == 0:
            self._terminated = True
            return DONE

        self._ready.parent.register(waker)
        budget, polled = self._len, 0

        while (index := self._ready.pop()) is not None:
            slot = self._slots[index]
            if slot is None:
                continue
            try:
                outcome = slot.future.poll(slot.waker)
            except BaseException as exc:
                self._release(index).close()
                logger.warning("%s; removed from set", PollError.from_exception(slot.future.name, exc).render())
                raise

            if isinstance(outcome, Ready):
                self._release(index)
                return outcome

            polled += 1
            if polled >= budget:
                if len(self._ready):
                    waker.wake()
                return PENDING

        return PENDING

    def __repr__(self) -> str:
        return f"TaskSet(len={self._len}, ready={len(self._ready)})"
