from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Counter:
    """Unbounded natural number with saturating decrement.

    Counters are immutable: ``increment`` and ``decrement`` return new
    values. Python integers have no upper bound, so the magnitude is kept
    as a plain ``int`` that is never allowed to go below zero.
    """

    value: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.value, int):
            raise TypeError(f"Counter value must be an int, not {type(self.value).__name__}")
        if self.value < 0:
            raise ValueError(f"Counter cannot be negative: {self.value}")

    @classmethod
    def of(cls, value: Union[int, "Counter"]) -> "Counter":
        if isinstance(value, Counter):
            return value
        value = operator.index(value)
        if value == 0:
            return ZERO
        return cls(value)

    def increment(self) -> "Counter":
        return Counter(self.value + 1)

    def decrement(self) -> "Counter":
        if self.value == 0:
            return self
        return Counter(self.value - 1)

    def is_zero(self) -> bool:
        return self.value == 0

    def __int__(self) -> int:
        return self.value

    def __index__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"Counter({self.value})"


ZERO = Counter()


__all__ = ["Counter", "ZERO"]
