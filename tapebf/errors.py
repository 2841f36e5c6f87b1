from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .machine import Configuration


class TapeBFError(Exception):
    """Base class for every error raised by tapebf."""


class StepLimitExceeded(TapeBFError, RuntimeError):
    """Raised when execution exceeds the configured step budget."""

    def __init__(self, limit: int, configuration: Optional["Configuration"] = None) -> None:
        super().__init__(f"Program exceeded allowed step count ({limit})")
        self.limit = limit
        self.configuration = configuration


class UnbalancedLoop(TapeBFError):
    """A loop end scanned backwards past the start of the program."""

    def __init__(self, configuration: Optional["Configuration"] = None) -> None:
        super().__init__("Unbalanced loop: no matching loop start before loop end")
        self.configuration = configuration


class UnprintableOutput(TapeBFError, ValueError):
    """An output cell has no character to stand for it."""

    def __init__(self, value: int, index: int) -> None:
        super().__init__(f"Output cell {index} holds {value}, which is not a valid code point")
        self.value = value
        self.index = index


class UnbalancedBrackets(TapeBFError, ValueError):
    def __init__(self, bracket: str, position: int) -> None:
        super().__init__(f"Unmatched '{bracket}' at position {position}")
        self.bracket = bracket
        self.position = position


__all__ = [
    "TapeBFError",
    "StepLimitExceeded",
    "UnbalancedLoop",
    "UnbalancedBrackets",
    "UnprintableOutput",
]
