"""Cooperative cancellation of a wrapped unit.

``abortable(unit)`` returns the wrapped unit and an AbortHandle. Calling
``handle.abort()`` only sets a shared flag and wakes the task that last
polled the wrapper; the unit is torn down the next time it is polled, at the
top of the poll, before any delegation. Nothing is interrupted mid-step.

Outcomes of a wrapped future:
    Ok(value)        the unit completed naturally
    Err(Aborted())   cancellation was observed (delivered exactly once)

A wrapped stream simply ends (DONE) once cancellation is observed.

Flag states (AbortState):
    ACTIVE -> CANCEL_REQUESTED   abort() called, not yet observed
    CANCEL_REQUESTED -> CANCELLED   wrapper observed it and closed the unit

Example:
    >>> fut, handle = abortable(long_job())
    >>> tasks = TaskSet([fut])
    >>> handle.abort()                     # from any thread
    >>> next(block_on_stream(tasks))
    Err(Aborted())
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, TypeVar, overload

from pollcase.foundation.errors import Err, Ok, PolledAfterCompletion, Result

from .poll import DONE, PENDING, Ready
from .unit import Future, Stream
from .waker import AtomicWaker

if TYPE_CHECKING:
    from .poll import Poll, StreamPoll
    from .waker import Waker

T = TypeVar("T")

__all__ = [
    "AbortState",
    "Aborted",
    "AbortHandle",
    "AbortRegistration",
    "Abortable",
    "AbortableStream",
    "abortable",
]

logger = logging.getLogger("pollcase.abortable")


class AbortState(StrEnum):
    """Tri-state cancellation flag."""
    ACTIVE = "active"
    CANCEL_REQUESTED = "cancel_requested"
    CANCELLED = "cancelled"


@dataclass(slots=True, frozen=True)
class Aborted:
    """Terminal outcome of a unit whose cancellation was observed."""

    def __str__(self) -> str:
        return "operation aborted"


class _AbortFlag:
    """State shared by one handle/registration pair."""

    __slots__ = ("_lock", "_state", "waker")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = AbortState.ACTIVE
        self.waker = AtomicWaker()

    @property
    def state(self) -> AbortState:
        with self._lock:
            return self._state

    @property
    def requested(self) -> bool:
        with self._lock:
            return self._state is not AbortState.ACTIVE

    def request(self) -> bool:
        """Move ACTIVE -> CANCEL_REQUESTED; False if already past ACTIVE."""
        with self._lock:
            if self._state is not AbortState.ACTIVE:
                return False
            self._state = AbortState.CANCEL_REQUESTED
        return True

    def mark_cancelled(self) -> None:
        with self._lock:
            self._state = AbortState.CANCELLED


class AbortHandle:
    """Requests cancellation of the paired Abortable.

    Safe to share across threads; ``abort()`` is idempotent.
    """

    __slots__ = ("_flag",)

    def __init__(self, flag: _AbortFlag) -> None:
        self._flag = flag

    @staticmethod
    def new_pair() -> tuple[AbortHandle, AbortRegistration]:
        """Create a handle and the registration to build an Abortable from."""
        flag = _AbortFlag()
        return AbortHandle(flag), AbortRegistration(flag)

    def abort(self) -> None:
        """Request cancellation and wake the task polling the wrapped unit."""
        if self._flag.request():
            logger.debug("abort requested")
        self._flag.waker.wake()

    def is_aborted(self) -> bool:
        """Whether abort() was called (observed or not)."""
        return self._flag.requested

    @property
    def state(self) -> AbortState:
        return self._flag.state

    def __repr__(self) -> str:
        return f"AbortHandle(state={self._flag.state})"


class AbortRegistration:
    """The wrapped side of a handle/registration pair."""

    __slots__ = ("_flag",)

    def __init__(self, flag: _AbortFlag) -> None:
        self._flag = flag

    def handle(self) -> AbortHandle:
        return AbortHandle(self._flag)


class Abortable(Future[Result[T, Aborted]]):
    """Future that resolves to ``Ok(value)`` or, once aborted, ``Err(Aborted())``."""

    __slots__ = ("_unit", "_flag", "_done")

    def __init__(self, unit: Future[T], registration: AbortRegistration) -> None:
        self._unit = unit
        self._flag = registration._flag
        self._done = False

    @property
    def is_aborted(self) -> bool:
        return self._flag.state is AbortState.CANCELLED

    def _abort(self) -> Ready[Result[T, Aborted]]:
        self._done = True
        self._flag.mark_cancelled()
        self._unit.close()
        logger.debug("%s aborted", self._unit.name)
        return Ready(Err(Aborted()))

    def poll(self, waker: Waker) -> Poll[Result[T, Aborted]]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        if self._flag.requested:
            return self._abort()

        outcome = self._unit.poll(waker)
        if isinstance(outcome, Ready):
            self._done = True
            return Ready(Ok(outcome.value))

        # Register before the second check so an abort racing the inner poll
        # either is seen here or wakes the new registration.
        self._flag.waker.register(waker)
        if self._flag.requested:
            return self._abort()
        return PENDING

    def close(self) -> None:
        if not self._done:
            self._unit.close()

    @property
    def name(self) -> str:
        return f"Abortable({self._unit.name})"


class AbortableStream(Stream[T]):
    """Stream that ends once aborted."""

    __slots__ = ("_unit", "_flag", "_done")

    def __init__(self, unit: Stream[T], registration: AbortRegistration) -> None:
        self._unit = unit
        self._flag = registration._flag
        self._done = False

    @property
    def is_aborted(self) -> bool:
        return self._flag.state is AbortState.CANCELLED

    def _abort(self) -> StreamPoll[T]:
        self._done = True
        self._flag.mark_cancelled()
        self._unit.close()
        logger.debug("%s aborted", self._unit.name)
        return DONE

    def poll_next(self, waker: Waker) -> StreamPoll[T]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        if self._flag.requested:
            return self._abort()

        outcome = self._unit.poll_next(waker)
        if outcome is DONE:
            self._done = True
            return DONE
        if isinstance(outcome, Ready):
            return outcome

        self._flag.waker.register(waker)
        if self._flag.requested:
            return self._abort()
        return PENDING

    def close(self) -> None:
        if not self._done:
            self._unit.close()

    @property
    def name(self) -> str:
        return f"Abortable({self._unit.name})"


@overload
def abortable(unit: Stream[T]) -> tuple[AbortableStream[T], AbortHandle]: ...
@overload
def abortable(unit: Future[T]) -> tuple[Abortable[T], AbortHandle]: ...


def abortable(unit: Future[T] | Stream[T]) -> tuple[Abortable[T] | AbortableStream[T], AbortHandle]:
    """Wrap ``unit`` and return it with the handle that aborts it."""
    handle, registration = AbortHandle.new_pair()
    if isinstance(unit, Stream):
        return AbortableStream(unit, registration), handle
    return Abortable(unit, registration), handle
