"""Multiplexers: poll several units, return the first producible item.

Provides:
    - select(left, right): two streams, round-robin fairness, tagged items
    - select_with_strategy: two streams, caller-supplied poll order
    - select_all(streams): N streams raced through a TaskSet
    - select_any(*futures): first of N futures to complete

Every item is returned as ``Selected(arm, value)``: ``arm`` is a PollNext for
the two-arm variants and the arm's position for the N-arm ones. Streams that
end are dropped; stream multiplexers end when every arm ended, select_any
completes as soon as any arm does.

Strategies:
    A strategy is a zero-argument callable returning the arm to poll first.
    ``RoundRobin()`` alternates between arms (no starvation when both are
    always ready). ``prefer_left()``/``prefer_right()`` always poll one arm
    first: deterministic tie-breaks at the cost of fairness.

Example:
    >>> merged = select(ticks, messages)
    >>> for item in block_on_stream(merged):
    ...     if item.arm is PollNext.LEFT:
    ...         on_tick(item.value)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Callable, Generic, TypeAlias, TypeVar

from pollcase.foundation.config import get_settings
from pollcase.foundation.errors import PolledAfterCompletion

from .adapters import FuseStream
from .poll import DONE, PENDING, Done, Ready
from .task_set import TaskSet
from .unit import Future, Stream, iter_stream

if TYPE_CHECKING:
    from .poll import Poll, StreamPoll
    from .waker import Waker

T = TypeVar("T")
K = TypeVar("K")

__all__ = [
    "PollNext",
    "Selected",
    "Strategy",
    "RoundRobin",
    "prefer_left",
    "prefer_right",
    "default_strategy",
    "Select",
    "select",
    "select_with_strategy",
    "SelectAll",
    "select_all",
    "SelectAny",
    "select_any",
]

logger = logging.getLogger("pollcase.select")


class PollNext(StrEnum):
    """Which arm of a two-arm multiplexer to poll first."""
    LEFT = "left"
    RIGHT = "right"

    def toggle(self) -> PollNext:
        return PollNext.RIGHT if self is PollNext.LEFT else PollNext.LEFT


@dataclass(slots=True, frozen=True)
class Selected(Generic[K, T]):
    """An item tagged with the arm that produced it."""

    arm: K
    value: T


Strategy: TypeAlias = Callable[[], PollNext]


class RoundRobin:
    """Alternate the first-polled arm on every poll."""

    __slots__ = ("_next",)

    def __init__(self, start: PollNext = PollNext.LEFT) -> None:
        self._next = start

    def __call__(self) -> PollNext:
        current, self._next = self._next, self._next.toggle()
        return current


def prefer_left() -> Strategy:
    return lambda: PollNext.LEFT


def prefer_right() -> Strategy:
    return lambda: PollNext.RIGHT


def default_strategy() -> Strategy:
    """Strategy named by ``settings.select.strategy``."""
    match get_settings().select.strategy:
        case "left":
            return prefer_left()
        case "right":
            return prefer_right()
        case _:
            return RoundRobin()


# ─────────────────────────────────────────────────────────────────────────────
# Two arms
# ─────────────────────────────────────────────────────────────────────────────


class Select(Stream[Selected[PollNext, T]]):
    """Two streams merged; each poll tries both arms in strategy order."""

    __slots__ = ("_left", "_right", "_strategy")

    def __init__(
        self,
        left: Stream[T] | Iterable[T],
        right: Stream[T] | Iterable[T],
        strategy: Strategy | None = None,
    ) -> None:
        self._left = FuseStream(iter_stream(left))
        self._right = FuseStream(iter_stream(right))
        self._strategy = strategy if strategy is not None else default_strategy()

    @property
    def is_terminated(self) -> bool:
        return self._left.is_terminated and self._right.is_terminated

    def _arm(self, arm: PollNext) -> FuseStream[T]:
        return self._left if arm is PollNext.LEFT else self._right

    def poll_next(self, waker: Waker) -> StreamPoll[Selected[PollNext, T]]:
        first = self._strategy()
        for arm in (first, first.toggle()):
            stream = self._arm(arm)
            if stream.is_terminated:
                continue
            outcome = stream.poll_next(waker)
            if isinstance(outcome, Ready):
                return Ready(Selected(arm, outcome.value))
            if outcome is DONE:
                logger.debug("select arm %s ended", arm)
        return DONE if self.is_terminated else PENDING

    def close(self) -> None:
        self._left.close()
        self._right.close()


def select(left: Stream[T] | Iterable[T], right: Stream[T] | Iterable[T]) -> Select[T]:
    """Merge two streams with the configured default strategy (round-robin)."""
    return Select(left, right)


def select_with_strategy(
    left: Stream[T] | Iterable[T],
    right: Stream[T] | Iterable[T],
    strategy: Strategy,
) -> Select[T]:
    """Merge two streams, asking ``strategy`` which arm to poll first."""
    return Select(left, right, strategy)


# ─────────────────────────────────────────────────────────────────────────────
# N arms
# ─────────────────────────────────────────────────────────────────────────────


class _ArmNext(Future[tuple[int, Ready[T] | Done]]):
    """Next outcome of one arm, tagged with its index.

    An arm whose poll raises is removed from ``arms`` before the exception
    propagates; the TaskSet then closes this wrapper, which closes the stream.
    """

    __slots__ = ("index", "stream", "_arms")

    def __init__(self, index: int, stream: Stream[T], arms: dict[int, Stream[T]]) -> None:
        self.index = index
        self.stream = stream
        self._arms = arms

    def poll(self, waker: Waker) -> Poll[tuple[int, Ready[T] | Done]]:
        try:
            outcome = self.stream.poll_next(waker)
        except BaseException:
            self._arms.pop(self.index, None)
            raise
        if outcome is PENDING:
            return PENDING
        return Ready((self.index, outcome))

    def close(self) -> None:
        self.stream.close()

    @property
    def name(self) -> str:
        return f"arm[{self.index}]:{self.stream.name}"


class SelectAll(Stream[Selected[int, T]]):
    """Any number of streams merged.

    Each arm waits in an internal TaskSet for its next item; an arm that
    produced an item goes back to the end of the ready queue, so arms that
    are always ready take turns.
    """

    __slots__ = ("_arms", "_pending", "_next_index")

    def __init__(self, streams: Iterable[Stream[T] | Iterable[T]] = ()) -> None:
        self._arms: dict[int, Stream[T]] = {}
        self._pending: TaskSet[tuple[int, Ready[T] | Done]] = TaskSet()
        self._next_index = 0
        for stream in streams:
            self.push(stream)

    def push(self, stream: Stream[T] | Iterable[T]) -> int:
        """Add an arm; returns the index its items are tagged with."""
        index = self._next_index
        self._next_index += 1
        self._arms[index] = iter_stream(stream)
        self._pending.push(_ArmNext(index, self._arms[index], self._arms))
        return index

    @property
    def is_terminated(self) -> bool:
        return not self._arms and self._pending.is_terminated

    def __len__(self) -> int:
        return len(self._arms)

    def poll_next(self, waker: Waker) -> StreamPoll[Selected[int, T]]:
        while True:
            outcome = self._pending.poll_next(waker)
            if not isinstance(outcome, Ready):
                return outcome
            index, item = outcome.value
            if item is DONE:
                del self._arms[index]
                logger.debug("select_all arm %d ended (%d left)", index, len(self._arms))
                continue
            self._pending.push(_ArmNext(index, self._arms[index], self._arms))
            return Ready(Selected(index, item.value))

    def close(self) -> None:
        # Every live arm has exactly one _ArmNext pending; clearing closes them
        self._pending.clear()
        self._arms.clear()


def select_all(streams: Iterable[Stream[T] | Iterable[T]]) -> SelectAll[T]:
    """Merge any number of streams; items are tagged with the arm index."""
    return SelectAll(streams)


class SelectAny(Future[Selected[int, T]]):
    """Completes with the first arm to complete.

    Arms are polled starting from a rotating offset (or always from arm 0
    when ``biased``). The losing arms are left untouched in ``remaining``
    for the caller to keep polling or close.

    Raises:
        ValueError: If no futures are given
    """

    __slots__ = ("_arms", "_biased", "_start", "_winner")

    def __init__(self, futures: Iterable[Future[T]], *, biased: bool = False) -> None:
        self._arms = list(futures)
        if not self._arms:
            raise ValueError("select_any() requires at least one future")
        self._biased = biased
        self._start = 0
        self._winner: int | None = None

    @property
    def remaining(self) -> list[Future[T]]:
        """Arms that did not win (all arms while still pending)."""
        return [f for i, f in enumerate(self._arms) if i != self._winner]

    def poll(self, waker: Waker) -> Poll[Selected[int, T]]:
        if self._winner is not None:
            raise PolledAfterCompletion(self.name)
        count = len(self._arms)
        start = 0 if self._biased else self._start
        self._start = (self._start + 1) % count
        for offset in range(count):
            index = (start + offset) % count
            outcome = self._arms[index].poll(waker)
            if isinstance(outcome, Ready):
                self._winner = index
                return Ready(Selected(index, outcome.value))
        return PENDING

    def close(self) -> None:
        if self._winner is None:
            for future in self._arms:
                future.close()


def select_any(*futures: Future[T], biased: bool = False) -> SelectAny[T]:
    """Future of the first of ``futures`` to complete, tagged with its position."""
    return SelectAny(futures, biased=biased)
