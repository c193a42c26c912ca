"""Wakers and the wake registry.

A Waker is the handle a unit receives with every poll. When the unit cannot
progress it stores (a clone of) the waker with whatever will eventually make
it ready (a timer, a worker thread, another unit) and returns PENDING. Firing
the waker guarantees the unit is polled again at least once.

Key Components:
    - Waker: clonable, thread-safe wake handle around a callback
    - AtomicWaker: single-slot registry; register() then wake() from anywhere
    - noop_waker: a waker that does nothing (manual polling, tests)

Guarantees:
    - wake() is safe from any thread, any number of times, and from inside
      the poll call that received the waker (self-wake)
    - AtomicWaker.wake() on an empty registry is a no-op; each registration
      is delivered at most once
    - no ordering between wakes beyond at-least-once delivery

Example:
    >>> class Flag(Future[None]):
    ...     def __init__(self):
    ...         self.set, self._waker = False, AtomicWaker()
    ...     def fire(self):              # any thread
    ...         self.set = True
    ...         self._waker.wake()
    ...     def poll(self, waker):
    ...         self._waker.register(waker)
    ...         return Ready(None) if self.set else PENDING
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

__all__ = ["Waker", "AtomicWaker", "noop_waker"]

logger = logging.getLogger("pollcase.waker")


class Waker:
    """Wake handle wrapping a thread-safe callback.

    Clones share the callback; ``will_wake`` tells whether two wakers would
    wake the same task, which lets registries skip redundant swaps.
    """

    __slots__ = ("_callback", "_key")

    def __init__(self, callback: Callable[[], None], *, key: object | None = None) -> None:
        self._callback = callback
        self._key = key if key is not None else callback

    def wake(self) -> None:
        """Schedule another poll of the owning task."""
        self._callback()

    def __call__(self) -> None:
        self._callback()

    def clone(self) -> Waker:
        return Waker(self._callback, key=self._key)

    def will_wake(self, other: Waker) -> bool:
        """Whether ``other`` wakes the same task as this waker."""
        return self._key is other._key or self._key == other._key

    def __repr__(self) -> str:
        return f"Waker({self._key!r})"


def _noop() -> None:
    pass


_NOOP = Waker(_noop)


def noop_waker() -> Waker:
    """A waker whose wake() does nothing."""
    return _NOOP


class AtomicWaker:
    """Single-slot registry for the waker of whichever task polled last.

    The poller calls ``register(waker)`` on every poll before checking its
    readiness condition; the notifier sets the condition and then calls
    ``wake()``. Because registration happens before the check, a wake that
    races with the poll is never lost.

    The lock only guards the slot swap; the waker callback always runs
    outside it, so a callback that re-enters ``register`` cannot deadlock.
    """

    __slots__ = ("_lock", "_waker")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._waker: Waker | None = None

    def register(self, waker: Waker) -> None:
        """Store ``waker`` (replacing any previous registration)."""
        with self._lock:
            if self._waker is not None and self._waker.will_wake(waker):
                return
            self._waker = waker.clone()

    def take(self) -> Waker | None:
        """Remove and return the registered waker, if any."""
        with self._lock:
            waker, self._waker = self._waker, None
        return waker

    def wake(self) -> None:
        """Fire and clear the registered waker; no-op when none is registered."""
        if (waker := self.take()) is not None:
            waker.wake()
        else:
            logger.debug("wake on empty registry ignored")

    @property
    def registered(self) -> bool:
        with self._lock:
            return self._waker is not None
