"""Poll-driven concurrency primitives.

This module provides the data structures and protocols for combining many
independently progressing units into aggregates, without blocking the
threads that drive them.

Key Components:
    - Unit contract: Future.poll / Stream.poll_next returning PENDING,
      Ready(value) or DONE
    - Wakers: Waker, AtomicWaker (thread-safe wake registry)
    - TaskSet: unordered set drained in completion order
    - OrderedTaskSet: concurrent, released in push order
    - Pipelines: buffer_unordered, buffered, for_each_concurrent and their
      Err-short-circuiting try_ variants
    - Multiplexers: select, select_with_strategy, select_all, select_any
    - Cancellation: abortable, AbortHandle
    - Adapters: fuse, catch_unwind
    - Driving: block_on, block_on_stream, asyncio and thread-pool interop

Design Philosophy:
    - Cooperative: every poll runs to a suspension point, never preempted
    - Wake from anywhere: wakers are safe from any thread and from inside
      a poll; locks are never held across a member poll
    - Cancellation at checkpoints: abort sets a flag, teardown happens on
      the next poll
    - Fail fast on misuse: polling past completion and invalid limits raise

Example:
    >>> from pollcase.runtime.concurrency import TaskSet, block_on_stream, buffered
    >>>
    >>> # Completion order
    >>> tasks = TaskSet([job("a"), job("b")])
    >>> for result in block_on_stream(tasks):
    ...     print(result)
    >>>
    >>> # At most 4 at once, results in input order
    >>> results = list(block_on_stream(buffered(jobs, limit=4)))
"""

from __future__ import annotations

# Unit contract
from .poll import DONE, PENDING, Done, Pending, Ready, is_ready
from .unit import (
    Future,
    IterStream,
    PollFn,
    Stream,
    StreamFuture,
    StreamPollFn,
    iter_stream,
    poll_fn,
    ready,
    stream_poll_fn,
)

# Wake registry
from .waker import AtomicWaker, Waker, noop_waker

# Task sets
from .task_set import TaskHandle, TaskSet
from .ordered import OrderedTaskSet

# Adapters
from .adapters import CatchUnwind, CatchUnwindStream, Fuse, FuseStream, catch_unwind, fuse

# Bounded pipelines
from .buffered import (
    Buffered,
    BufferUnordered,
    ForEachConcurrent,
    TryBuffered,
    TryBufferUnordered,
    TryForEachConcurrent,
    buffer_unordered,
    buffered,
    for_each_concurrent,
    try_buffer_unordered,
    try_buffered,
    try_for_each_concurrent,
)

# Multiplexers
from .select import (
    PollNext,
    RoundRobin,
    Select,
    SelectAll,
    SelectAny,
    Selected,
    prefer_left,
    prefer_right,
    select,
    select_all,
    select_any,
    select_with_strategy,
)

# Cancellation
from .abortable import (
    AbortableStream,
    Abortable,
    Aborted,
    AbortHandle,
    AbortRegistration,
    AbortState,
    abortable,
)

# Driving
from .executor import block_on, block_on_stream
from .interop import (
    AsyncioFuture,
    ConcurrentFuture,
    from_asyncio,
    from_concurrent,
    into_async_iterator,
    into_awaitable,
)

__all__ = [
    # Unit contract
    "PENDING",
    "DONE",
    "Pending",
    "Done",
    "Ready",
    "is_ready",
    "Future",
    "Stream",
    "StreamFuture",
    "PollFn",
    "StreamPollFn",
    "IterStream",
    "poll_fn",
    "stream_poll_fn",
    "ready",
    "iter_stream",
    # Wakers
    "Waker",
    "AtomicWaker",
    "noop_waker",
    # Task sets
    "TaskSet",
    "TaskHandle",
    "OrderedTaskSet",
    # Adapters
    "Fuse",
    "FuseStream",
    "CatchUnwind",
    "CatchUnwindStream",
    "fuse",
    "catch_unwind",
    # Pipelines
    "BufferUnordered",
    "Buffered",
    "ForEachConcurrent",
    "buffer_unordered",
    "buffered",
    "for_each_concurrent",
    "TryBufferUnordered",
    "TryBuffered",
    "TryForEachConcurrent",
    "try_buffer_unordered",
    "try_buffered",
    "try_for_each_concurrent",
    # Multiplexers
    "PollNext",
    "Selected",
    "RoundRobin",
    "prefer_left",
    "prefer_right",
    "Select",
    "select",
    "select_with_strategy",
    "SelectAll",
    "select_all",
    "SelectAny",
    "select_any",
    # Cancellation
    "AbortState",
    "Aborted",
    "AbortHandle",
    "AbortRegistration",
    "Abortable",
    "AbortableStream",
    "abortable",
    # Driving
    "block_on",
    "block_on_stream",
    "ConcurrentFuture",
    "AsyncioFuture",
    "from_concurrent",
    "from_asyncio",
    "into_awaitable",
    "into_async_iterator",
]
