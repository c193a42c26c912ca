"""Poll outcomes.

A poll step returns one of three values:

    PENDING        not ready; the unit arranged for its waker to fire later
    Ready(value)   a final value (futures) or the next item (streams)
    DONE           end of sequence (streams only)

``DONE`` stands in for "Ready(None)" so that ``None`` stays a legal item.

Example:
    >>> match stream.poll_next(waker):
    ...     case Ready(item): handle(item)
    ...     case Done(): finish()
    ...     case Pending(): return
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Final, Generic, TypeAlias, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class Pending:
    """Not ready yet. Use the PENDING singleton."""

    __slots__ = ()
    _instance: Pending | None = None

    def __new__(cls) -> Pending:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "PENDING"

    def __bool__(self) -> bool:
        return False


class Done:
    """End of sequence. Use the DONE singleton."""

    __slots__ = ()
    _instance: Done | None = None

    def __new__(cls) -> Done:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DONE"


@dataclass(slots=True, frozen=True)
class Ready(Generic[T]):
    """A produced value."""

    value: T

    def map(self, f: Callable[[T], U]) -> Ready[U]:
        return Ready(f(self.value))


PENDING: Final = Pending()
DONE: Final = Done()

Poll: TypeAlias = "Pending | Ready[T]"
StreamPoll: TypeAlias = "Pending | Ready[T] | Done"


def is_ready(outcome: object) -> bool:
    """True for anything but PENDING."""
    return outcome is not PENDING
