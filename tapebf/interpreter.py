from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from .errors import StepLimitExceeded, UnbalancedLoop
from .instructions import Instruction
from .machine import Cell, Configuration, LoopMode, Machine
from .parser import parse, to_output_text

logger = logging.getLogger(__name__)

Program = Union[str, Sequence[Instruction]]


@dataclass
class ExecutionState:
    step: int
    pc: int
    command: Optional[str]
    state: str
    depth: Optional[int]
    pointer: int
    tape_start: int
    tape: List[int]
    output: List[int]
    code_length: int
    finished: bool = False
    faulted: bool = False

    @property
    def output_text(self) -> str:
        return to_output_text(self.output)


@dataclass
class TapeInterpreter:
    """Runs programs on the tape machine and reports what happens.

    Programs may be given as source text or as instruction sequences.
    ``max_steps`` counts machine transitions, not instructions: fetching,
    executing and every cell visited by a loop scan are all steps.
    """

    loop_mode: LoopMode = LoopMode.DO_WHILE
    strict: bool = False

    last_configuration: Optional[Configuration] = field(default=None, init=False, repr=False)

    def load(self, code: Program) -> List[Instruction]:
        if isinstance(code, str):
            return parse(code, strict=self.strict)
        return list(code)

    def run(
        self,
        code: Program,
        input_data: Optional[Iterable[Cell]] = None,
        max_steps: Optional[int] = None,
    ) -> List[int]:
        machine = Machine(loop_mode=self.loop_mode, max_steps=max_steps)
        config = machine.start(self.load(code), input_data or ())
        try:
            config = machine.finish(config)
        except StepLimitExceeded as exc:
            self.last_configuration = exc.configuration
            raise
        self.last_configuration = config
        if config.faulted:
            raise UnbalancedLoop(config)
        logger.debug("program finished after %d steps", config.steps)
        return config.output_values()

    def run_text(
        self,
        code: Program,
        input_data: Optional[Iterable[Cell]] = None,
        max_steps: Optional[int] = None,
    ) -> str:
        return to_output_text(self.run(code, input_data, max_steps))

    def step(
        self,
        code: Program,
        input_data: Optional[Iterable[Cell]] = None,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
    ) -> Iterator[ExecutionState]:
        program = self.load(code)
        machine = Machine(loop_mode=self.loop_mode, max_steps=max_steps)
        config = machine.start(program, input_data or ())
        self.last_configuration = config
        for config in machine.iterate(config):
            self.last_configuration = config
            yield snapshot(config, len(program), tape_window)


def snapshot(config: Configuration, code_length: int, tape_window: int = 10) -> ExecutionState:
    memory = config.memory
    instruction = config.code.read()
    return ExecutionState(
        step=config.steps,
        pc=config.code.position,
        command=instruction.symbol or None,
        state=config.state.name,
        depth=config.depth,
        pointer=memory.position,
        tape_start=memory.position - tape_window,
        tape=[int(cell) for cell in memory.window(tape_window)],
        output=config.output_values(),
        code_length=code_length,
        finished=config.halted,
        faulted=config.faulted,
    )


__all__ = [
    "ExecutionState",
    "Program",
    "TapeInterpreter",
    "snapshot",
]
