"""Shared fixtures and test units.

Countdown and Gate are the two shapes of unit the engine has to handle:
one that makes progress on every poll and wakes itself, and one that is
made ready from outside (possibly another thread).
"""

from __future__ import annotations

import threading
from typing import TypeVar

import pytest

from pollcase.foundation.config import clear_settings_cache
from pollcase.runtime.concurrency import PENDING, AtomicWaker, Future, Ready, Waker

T = TypeVar("T")


class Countdown(Future[T]):
    """Ready with ``value`` on its ``polls``-th poll; wakes itself until then."""

    def __init__(self, polls: int, value: T) -> None:
        self.remaining = polls
        self.value = value
        self.polls = 0
        self.closed = False

    def poll(self, waker: Waker):
        self.polls += 1
        self.remaining -= 1
        if self.remaining <= 0:
            return Ready(self.value)
        waker.wake()
        return PENDING

    def close(self) -> None:
        self.closed = True

    @property
    def name(self) -> str:
        return f"Countdown({self.value!r})"


class Gate(Future[T]):
    """Pending until ``open(value)`` is called, from any thread."""

    def __init__(self) -> None:
        self._waker = AtomicWaker()
        self._lock = threading.Lock()
        self._open = False
        self._value: T | None = None
        self.polls = 0
        self.closed = False

    def open(self, value: T | None = None) -> None:
        with self._lock:
            self._open, self._value = True, value
        self._waker.wake()

    def poll(self, waker: Waker):
        self.polls += 1
        self._waker.register(waker)
        with self._lock:
            if self._open:
                return Ready(self._value)
        return PENDING

    def close(self) -> None:
        self.closed = True


class Boom(Future[object]):
    """Raises on its first poll."""

    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or ValueError("boom")
        self.closed = False

    def poll(self, waker: Waker):
        raise self.exc

    def close(self) -> None:
        self.closed = True


class WakeCounter:
    """Waker callback that counts its calls."""

    def __init__(self) -> None:
        self.count = 0
        self._lock = threading.Lock()

    def __call__(self) -> None:
        with self._lock:
            self.count += 1


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Every test starts from default settings."""
    for var in (
        "POLLCASE_DEBUG",
        "POLLCASE_LOG_LEVEL",
        "POLLCASE_LOG_FORMAT",
        "POLLCASE_CONCURRENCY_DEFAULT_LIMIT",
        "POLLCASE_SELECT_STRATEGY",
        "POLLCASE_EXECUTOR_TIMEOUT",
    ):
        monkeypatch.delenv(var, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def counter() -> WakeCounter:
    return WakeCounter()


@pytest.fixture
def waker(counter: WakeCounter) -> Waker:
    return Waker(counter)
