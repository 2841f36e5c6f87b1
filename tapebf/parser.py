from __future__ import annotations

import sys
from typing import Dict, Iterable, List, Sequence

from .errors import UnbalancedBrackets, UnprintableOutput
from .instructions import Instruction

_SYMBOLS: Dict[str, Instruction] = {
    instruction.symbol: instruction for instruction in Instruction if instruction.symbol
}


def parse(source: str, *, strict: bool = False) -> List[Instruction]:
    """Translate source text into instructions, skipping unknown characters.

    With ``strict`` the brackets must balance; otherwise an unmatched
    bracket is left for the machine to deal with at run time.
    """
    program = [_SYMBOLS[char] for char in source if char in _SYMBOLS]
    if strict:
        check_balance(program)
    return program


def check_balance(program: Sequence[Instruction]) -> None:
    stack: List[int] = []
    for index, instruction in enumerate(program):
        if instruction is Instruction.START_LOOP:
            stack.append(index)
        elif instruction is Instruction.END_LOOP:
            if not stack:
                raise UnbalancedBrackets("]", index)
            stack.pop()
    if stack:
        raise UnbalancedBrackets("[", stack.pop())


def format_program(program: Iterable[Instruction]) -> str:
    return "".join(instruction.symbol for instruction in program)


def to_input_cells(data: str) -> List[int]:
    return [ord(ch) for ch in data]


def to_output_text(values: Iterable[int]) -> str:
    chars: List[str] = []
    for index, value in enumerate(values):
        if value > sys.maxunicode:
            raise UnprintableOutput(value, index)
        chars.append(chr(value))
    return "".join(chars)


__all__ = [
    "check_balance",
    "format_program",
    "parse",
    "to_input_cells",
    "to_output_text",
]
