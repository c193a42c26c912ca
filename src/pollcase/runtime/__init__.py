"""Runtime - Poll-driven execution and its observability.

Contains: concurrency (units, task sets, pipelines, multiplexers,
cancellation, drivers), observability (logging).
"""

from __future__ import annotations

from .concurrency import *  # noqa: F403
from .concurrency import __all__ as _concurrency_all
from .observability import JsonFormatter, configure_logging, get_logger

__all__ = [*_concurrency_all, "JsonFormatter", "configure_logging", "get_logger"]
