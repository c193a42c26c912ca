"""Bridges between pollable units and Python's other async worlds.

Provides:
    - from_concurrent: unit over a concurrent.futures.Future (thread/process
      pools); the pool's worker thread fires the waker
    - from_asyncio: unit over an asyncio future or task
    - into_awaitable: await a unit from asyncio code
    - into_async_iterator: ``async for`` over a stream

Example:
    >>> with ThreadPoolExecutor(4) as pool:
    ...     jobs = (from_concurrent(pool.submit(work, n)) for n in range(100))
    ...     results = list(block_on_stream(buffer_unordered(jobs, limit=4)))

    >>> async def handler():
    ...     return await into_awaitable(select_any(fetch_a(), fetch_b()))
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from collections.abc import AsyncIterator, Awaitable
from typing import TYPE_CHECKING, TypeVar

from pollcase.foundation.errors import PolledAfterCompletion

from .poll import DONE, PENDING, Ready
from .unit import Future, Stream
from .waker import AtomicWaker, Waker

if TYPE_CHECKING:
    from .poll import Poll

T = TypeVar("T")

__all__ = [
    "ConcurrentFuture",
    "AsyncioFuture",
    "from_concurrent",
    "from_asyncio",
    "into_awaitable",
    "into_async_iterator",
]

logger = logging.getLogger("pollcase.interop")


# ─────────────────────────────────────────────────────────────────────────────
# Foreign futures → units
# ─────────────────────────────────────────────────────────────────────────────


class ConcurrentFuture(Future[T]):
    """Unit over a concurrent.futures.Future.

    Resolves to the future's result; an exception or cancellation of the
    underlying future is raised from ``poll``. ``close()`` cancels it if it
    has not started running.
    """

    __slots__ = ("_inner", "_waker", "_done")

    def __init__(self, inner: concurrent.futures.Future[T]) -> None:
        self._inner = inner
        self._waker = AtomicWaker()
        self._done = False
        inner.add_done_callback(self._on_done)

    def _on_done(self, _: concurrent.futures.Future[T]) -> None:
        self._waker.wake()

    def poll(self, waker: Waker) -> Poll[T]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        self._waker.register(waker)
        if not self._inner.done():
            return PENDING
        self._done = True
        return Ready(self._inner.result())

    def close(self) -> None:
        if not self._done and self._inner.cancel():
            logger.debug("cancelled pending pool job")


class AsyncioFuture(Future[T]):
    """Unit over an asyncio future or task.

    The done-callback is attached through ``call_soon_threadsafe`` so the
    unit may be created and polled off the loop's thread.
    """

    __slots__ = ("_inner", "_waker", "_done")

    def __init__(self, inner: asyncio.Future[T]) -> None:
        self._inner = inner
        self._waker = AtomicWaker()
        self._done = False
        inner.get_loop().call_soon_threadsafe(inner.add_done_callback, self._on_done)

    def _on_done(self, _: asyncio.Future[T]) -> None:
        self._waker.wake()

    def poll(self, waker: Waker) -> Poll[T]:
        if self._done:
            raise PolledAfterCompletion(self.name)
        self._waker.register(waker)
        if not self._inner.done():
            return PENDING
        self._done = True
        return Ready(self._inner.result())

    def close(self) -> None:
        if not self._done and not self._inner.done():
            self._inner.get_loop().call_soon_threadsafe(self._inner.cancel)


def from_concurrent(inner: concurrent.futures.Future[T]) -> ConcurrentFuture[T]:
    """Wrap a thread/process pool future as a unit."""
    return ConcurrentFuture(inner)


def from_asyncio(awaitable: Awaitable[T]) -> AsyncioFuture[T]:
    """Wrap an asyncio future, task or coroutine as a unit.

    Coroutines are scheduled as tasks, which needs a running loop in the
    calling thread.
    """
    return AsyncioFuture(asyncio.ensure_future(awaitable))


# ─────────────────────────────────────────────────────────────────────────────
# Units → asyncio
# ─────────────────────────────────────────────────────────────────────────────


async def into_awaitable(future: Future[T]) -> T:
    """Drive ``future`` on the running event loop.

    The waker hands control back to the loop with ``call_soon_threadsafe``,
    so units woken from worker threads resume on the loop thread. Cancelling
    the awaiting task runs the unit's close() hook.
    """
    loop = asyncio.get_running_loop()
    woken = asyncio.Event()

    def wake() -> None:
        if not loop.is_closed():
            loop.call_soon_threadsafe(woken.set)

    waker = Waker(wake)
    try:
        while True:
            woken.clear()
            outcome = future.poll(waker)
            if isinstance(outcome, Ready):
                return outcome.value
            await woken.wait()
    except asyncio.CancelledError:
        future.close()
        raise


async def into_async_iterator(stream: Stream[T]) -> AsyncIterator[T]:
    """``async for`` over a stream's items."""
    finished = False
    try:
        while True:
            outcome = await into_awaitable(stream.next())
            if outcome is DONE:
                finished = True
                return
            yield outcome.value
    finally:
        if not finished:
            stream.close()
