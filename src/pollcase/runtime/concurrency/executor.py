"""Minimal blocking driver.

``block_on`` polls a future on the calling thread and parks on a
threading.Event between polls; the waker it hands out sets that event, so any
thread (a worker, a timer, the unit itself) can wake it. It is the reference
driver for the poll contract, not a scheduler: one root unit, one thread.

Example:
    >>> block_on(ready(42))
    42
    >>> for item in block_on_stream(buffer_unordered(jobs, limit=8)):
    ...     print(item)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from typing import TypeVar

from pollcase.foundation.config import get_settings

from .poll import DONE, Ready
from .unit import Future, Stream
from .waker import Waker

T = TypeVar("T")

__all__ = ["block_on", "block_on_stream"]

logger = logging.getLogger("pollcase.executor")


def block_on(future: Future[T], *, timeout: float | None = None) -> T:
    """Drive ``future`` to completion on this thread and return its value.

    Args:
        future: Root unit to drive
        timeout: Seconds before giving up (default: settings.executor.timeout,
            None waits forever)

    Raises:
        TimeoutError: If the deadline passes; the future's close() hook runs first
        Exception: Whatever the future's poll raises
    """
    if timeout is None:
        timeout = get_settings().executor.timeout
    deadline = time.monotonic() + timeout if timeout is not None else None

    woken = threading.Event()
    waker = Waker(woken.set)
    polls = 0

    while True:
        woken.clear()
        outcome = future.poll(waker)
        polls += 1
        if isinstance(outcome, Ready):
            logger.debug("%s completed after %d polls", future.name, polls)
            return outcome.value

        remaining = None if deadline is None else deadline - time.monotonic()
        if (remaining is not None and remaining <= 0) or not woken.wait(remaining):
            future.close()
            raise TimeoutError(f"{future.name} did not complete within {timeout}s")


def block_on_stream(stream: Stream[T], *, timeout: float | None = None) -> Iterator[T]:
    """Blocking iterator over a stream's items.

    ``timeout`` applies to each item. Closing the iterator early runs the
    stream's close() hook.
    """
    finished = False
    try:
        while True:
            outcome = block_on(stream.next(), timeout=timeout)
            if outcome is DONE:
                finished = True
                return
            yield outcome.value
    finally:
        if not finished:
            stream.close()
