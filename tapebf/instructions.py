from __future__ import annotations

from enum import Enum


class Instruction(str, Enum):
    """The closed instruction set. Values are the classic source characters."""

    MOVE_RIGHT = ">"
    MOVE_LEFT = "<"
    INCREMENT = "+"
    DECREMENT = "-"
    START_LOOP = "["
    END_LOOP = "]"
    GET_CHAR = ","
    PUT_CHAR = "."
    # Never written in source; fills the code tape past the program.
    HALT = ""

    @property
    def symbol(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.name


__all__ = ["Instruction"]
