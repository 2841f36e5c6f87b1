from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Union

from .counter import ZERO, Counter
from .errors import StepLimitExceeded, UnbalancedLoop
from .instructions import Instruction
from .tape import InfiniteTape

logger = logging.getLogger(__name__)

Cell = Union[int, Counter]


class LoopMode(str, Enum):
    """How a loop start behaves when reached by forward execution.

    ``DO_WHILE`` treats a loop start as a no-op, so a loop body always
    runs once before its end tests the cell. ``CLASSIC`` tests the cell at
    the loop start too and scans forward past the loop when it is zero.
    """

    DO_WHILE = "do-while"
    CLASSIC = "classic"


# === Control states ===


class ControlState:
    terminal = False

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Fetch(ControlState):
    pass


@dataclass(frozen=True)
class Execute(ControlState):
    instruction: Instruction

    @property
    def terminal(self) -> bool:  # type: ignore[override]
        return self.instruction is Instruction.HALT


@dataclass(frozen=True)
class LoopCompare(ControlState):
    value: Counter


@dataclass(frozen=True)
class FetchGoingBack(ControlState):
    depth: int = 0


@dataclass(frozen=True)
class GoingBack(ControlState):
    seen: Instruction
    depth: int = 0

    @property
    def terminal(self) -> bool:  # type: ignore[override]
        # Scanned off the left end of the program.
        return self.seen is Instruction.HALT


@dataclass(frozen=True)
class EnterCompare(ControlState):
    value: Counter


@dataclass(frozen=True)
class FetchGoingForward(ControlState):
    depth: int = 0


@dataclass(frozen=True)
class GoingForward(ControlState):
    seen: Instruction
    depth: int = 0


# === Configuration ===


@dataclass(frozen=True)
class Configuration:
    """Everything the machine knows at one point of execution.

    The four tapes are plain data; ``state`` decides what happens next.
    ``steps`` counts the transitions taken to reach this configuration.
    """

    code: InfiniteTape[Instruction]
    memory: InfiniteTape[Counter]
    input: InfiniteTape[Counter]
    output: InfiniteTape[Counter]
    state: ControlState
    steps: int = 0

    @classmethod
    def initial(
        cls,
        program: Iterable[Instruction],
        input_data: Iterable[Cell] = (),
    ) -> "Configuration":
        return cls(
            code=InfiniteTape.from_iterable(program, Instruction.HALT),
            memory=InfiniteTape.blank(ZERO),
            input=InfiniteTape.from_iterable((Counter.of(v) for v in input_data), ZERO),
            output=InfiniteTape.blank(ZERO),
            state=Fetch(),
        )

    @property
    def terminal(self) -> bool:
        return self.state.terminal

    @property
    def halted(self) -> bool:
        return isinstance(self.state, Execute) and self.state.terminal

    @property
    def faulted(self) -> bool:
        return isinstance(self.state, GoingBack) and self.state.terminal

    @property
    def depth(self) -> Optional[int]:
        return getattr(self.state, "depth", None)

    def output_values(self) -> List[int]:
        return [int(cell) for cell in self.output.written_prefix()]


def step(config: Configuration, loop_mode: LoopMode = LoopMode.DO_WHILE) -> Configuration:
    """Apply one transition. Terminal configurations are returned unchanged."""
    if config.terminal:
        return config
    return replace(_transition(config, loop_mode), steps=config.steps + 1)


def _transition(config: Configuration, loop_mode: LoopMode) -> Configuration:
    state = config.state
    code = config.code

    if isinstance(state, Fetch):
        return replace(config, state=Execute(code.read()))

    if isinstance(state, Execute):
        return _execute(config, state.instruction, loop_mode)

    if isinstance(state, LoopCompare):
        if state.value.is_zero():
            return replace(config, code=code.move_right(), state=Fetch())
        logger.debug("loop repeats at code position %d, scanning back", code.position)
        return replace(config, code=code.move_left(), state=FetchGoingBack(0))

    if isinstance(state, FetchGoingBack):
        return replace(config, state=GoingBack(code.read(), state.depth))

    if isinstance(state, GoingBack):
        seen, depth = state.seen, state.depth
        if seen is Instruction.START_LOOP:
            if depth == 0:
                logger.debug("loop start found at code position %d", code.position)
                return replace(config, code=code.move_right(), state=Fetch())
            return replace(config, code=code.move_left(), state=FetchGoingBack(depth - 1))
        if seen is Instruction.END_LOOP:
            return replace(config, code=code.move_left(), state=FetchGoingBack(depth + 1))
        return replace(config, code=code.move_left(), state=FetchGoingBack(depth))

    if isinstance(state, EnterCompare):
        if state.value.is_zero():
            logger.debug("skipping loop at code position %d", code.position)
            return replace(config, code=code.move_right(), state=FetchGoingForward(0))
        return replace(config, code=code.move_right(), state=Fetch())

    if isinstance(state, FetchGoingForward):
        return replace(config, state=GoingForward(code.read(), state.depth))

    if isinstance(state, GoingForward):
        seen, depth = state.seen, state.depth
        if seen is Instruction.HALT:
            # Unmatched loop start: execution simply runs off the program.
            return replace(config, state=Execute(Instruction.HALT))
        if seen is Instruction.END_LOOP:
            if depth == 0:
                return replace(config, code=code.move_right(), state=Fetch())
            return replace(config, code=code.move_right(), state=FetchGoingForward(depth - 1))
        if seen is Instruction.START_LOOP:
            return replace(config, code=code.move_right(), state=FetchGoingForward(depth + 1))
        return replace(config, code=code.move_right(), state=FetchGoingForward(depth))

    raise TypeError(f"Unknown control state: {state!r}")


def _execute(config: Configuration, instruction: Instruction, loop_mode: LoopMode) -> Configuration:
    code = config.code
    memory = config.memory

    if instruction is Instruction.MOVE_RIGHT:
        return replace(config, code=code.move_right(), memory=memory.move_right(), state=Fetch())
    if instruction is Instruction.MOVE_LEFT:
        return replace(config, code=code.move_right(), memory=memory.move_left(), state=Fetch())
    if instruction is Instruction.INCREMENT:
        return replace(
            config,
            code=code.move_right(),
            memory=memory.write(memory.read().increment()),
            state=Fetch(),
        )
    if instruction is Instruction.DECREMENT:
        return replace(
            config,
            code=code.move_right(),
            memory=memory.write(memory.read().decrement()),
            state=Fetch(),
        )
    if instruction is Instruction.GET_CHAR:
        return replace(
            config,
            code=code.move_right(),
            memory=memory.write(config.input.read()),
            input=config.input.move_right(),
            state=Fetch(),
        )
    if instruction is Instruction.PUT_CHAR:
        return replace(
            config,
            code=code.move_right(),
            output=config.output.write(memory.read()).move_right(),
            state=Fetch(),
        )
    if instruction is Instruction.START_LOOP:
        if loop_mode is LoopMode.CLASSIC:
            return replace(config, state=EnterCompare(memory.read()))
        return replace(config, code=code.move_right(), state=Fetch())
    if instruction is Instruction.END_LOOP:
        return replace(config, state=LoopCompare(memory.read()))
    raise TypeError(f"Cannot execute {instruction!r}")


# === Outcomes ===


@dataclass(frozen=True)
class Finished:
    output: List[int]
    configuration: Configuration


@dataclass(frozen=True)
class Faulted:
    error: UnbalancedLoop
    configuration: Configuration

    @property
    def output(self) -> List[int]:
        """What was written before the fault. Not a result."""
        return self.configuration.output_values()


Outcome = Union[Finished, Faulted]


@dataclass
class Machine:
    loop_mode: LoopMode = LoopMode.DO_WHILE
    max_steps: Optional[int] = None

    def start(
        self,
        program: Iterable[Instruction],
        input_data: Iterable[Cell] = (),
    ) -> Configuration:
        return Configuration.initial(program, input_data)

    def step(self, config: Configuration) -> Configuration:
        if self.max_steps is not None and config.steps >= self.max_steps and not config.terminal:
            raise StepLimitExceeded(self.max_steps, config)
        return step(config, self.loop_mode)

    def iterate(self, config: Configuration) -> Iterator[Configuration]:
        """Yield every configuration after ``config`` up to a terminal one."""
        while not config.terminal:
            config = self.step(config)
            yield config

    def finish(self, config: Configuration) -> Configuration:
        for config in self.iterate(config):
            pass
        return config

    def execute(
        self,
        program: Iterable[Instruction],
        input_data: Iterable[Cell] = (),
    ) -> Outcome:
        final = self.finish(self.start(program, input_data))
        if final.faulted:
            logger.warning("unbalanced loop end after %d steps", final.steps)
            return Faulted(UnbalancedLoop(final), final)
        logger.debug("halted after %d steps", final.steps)
        return Finished(final.output_values(), final)

    def run(
        self,
        program: Iterable[Instruction],
        input_data: Iterable[Cell] = (),
    ) -> List[int]:
        outcome = self.execute(program, input_data)
        if isinstance(outcome, Faulted):
            raise outcome.error
        return outcome.output


def run(
    program: Iterable[Instruction],
    input_data: Iterable[Cell] = (),
    *,
    loop_mode: LoopMode = LoopMode.DO_WHILE,
    max_steps: Optional[int] = None,
) -> List[int]:
    """Run ``program`` on ``input_data`` and return the values it wrote."""
    return Machine(loop_mode=loop_mode, max_steps=max_steps).run(program, input_data)


def evaluate(
    program: Iterable[Instruction],
    *,
    loop_mode: LoopMode = LoopMode.DO_WHILE,
    max_steps: Optional[int] = None,
) -> Configuration:
    """Run ``program`` without input and return the final configuration.

    Unlike :func:`run` this does not raise on an unbalanced loop end; the
    returned configuration is left in its faulted state.
    """
    machine = Machine(loop_mode=loop_mode, max_steps=max_steps)
    return machine.finish(machine.start(program))


def _label(state: ControlState) -> str:
    if isinstance(state, Execute):
        return f"Execute({state.instruction.name})"
    if isinstance(state, (GoingBack, GoingForward)):
        return f"{state.name}({state.seen.name}, depth={state.depth})"
    if isinstance(state, (LoopCompare, EnterCompare)):
        return f"{state.name}({int(state.value)})"
    if isinstance(state, (FetchGoingBack, FetchGoingForward)):
        return f"{state.name}(depth={state.depth})"
    return state.name


def describe(config: Configuration, radius: int = 2) -> str:
    label = _label(config.state)
    cells = config.memory.window(radius)
    memory = " ".join(
        f"[{int(cell)}]" if index == radius else str(int(cell)) for index, cell in enumerate(cells)
    )
    return (
        f"step={config.steps} {label} "
        f"code@{config.code.position}={config.code.read().symbol or 'HALT'} "
        f"mem@{config.memory.position}: {memory} "
        f"out={config.output_values()}"
    )


__all__ = [
    "Configuration",
    "ControlState",
    "EnterCompare",
    "Execute",
    "Faulted",
    "Fetch",
    "FetchGoingBack",
    "FetchGoingForward",
    "Finished",
    "GoingBack",
    "GoingForward",
    "LoopCompare",
    "LoopMode",
    "Machine",
    "Outcome",
    "describe",
    "evaluate",
    "run",
    "step",
]
