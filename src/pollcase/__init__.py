"""Pollcase - Poll-driven concurrency engine.

Combines many independently progressing units (futures and streams that are
driven by ``poll`` and signal readiness through wakers) into aggregates:
unordered task sets, bounded pipelines, multiplexers and abortable wrappers.
Nothing here spawns threads or owns an event loop; the caller drives the
root unit with ``block_on``, from asyncio with ``into_awaitable``, or with a
driver of their own.

Quick Start:
    >>> from pollcase import TaskSet, block_on_stream, poll_fn, Ready
    >>>
    >>> tasks = TaskSet([poll_fn(lambda waker: Ready(n)) for n in range(3)])
    >>> sorted(block_on_stream(tasks))
    [0, 1, 2]

Bounded Pipelines:
    >>> from pollcase import buffered, buffer_unordered
    >>>
    >>> # At most 8 jobs in flight, results in input order
    >>> for result in block_on_stream(buffered(jobs, limit=8)):
    ...     handle(result)

Cancellation:
    >>> from pollcase import abortable
    >>> fut, handle = abortable(long_job())
    >>> handle.abort()
    >>> block_on(fut)
    Err(Aborted())

Configuration:
    >>> from pollcase import get_settings
    >>> get_settings().concurrency.default_limit   # POLLCASE_CONCURRENCY_DEFAULT_LIMIT
"""

from __future__ import annotations

from .foundation import (
    Err,
    ErrorCode,
    InvalidConcurrencyLimit,
    Ok,
    PollcaseException,
    PollcaseSettings,
    PollError,
    PolledAfterCompletion,
    Result,
    clear_settings_cache,
    get_settings,
)
from .runtime import *  # noqa: F403
from .runtime import __all__ as _runtime_all

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Foundation
    "Err",
    "ErrorCode",
    "InvalidConcurrencyLimit",
    "Ok",
    "PollError",
    "PollcaseException",
    "PollcaseSettings",
    "PolledAfterCompletion",
    "Result",
    "clear_settings_cache",
    "get_settings",
    # Runtime
    *_runtime_all,
]
