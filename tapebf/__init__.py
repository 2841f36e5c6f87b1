import logging

from .counter import ZERO, Counter
from .errors import (
    StepLimitExceeded,
    TapeBFError,
    UnbalancedBrackets,
    UnbalancedLoop,
    UnprintableOutput,
)
from .instructions import Instruction
from .interpreter import ExecutionState, TapeInterpreter
from .machine import Configuration, LoopMode, Machine, describe, evaluate, run
from .parser import check_balance, format_program, parse
from .tape import InfiniteTape
from .visualizer import VisualizerSession

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Configuration",
    "Counter",
    "ExecutionState",
    "InfiniteTape",
    "Instruction",
    "LoopMode",
    "Machine",
    "StepLimitExceeded",
    "TapeBFError",
    "TapeInterpreter",
    "UnbalancedBrackets",
    "UnbalancedLoop",
    "UnprintableOutput",
    "VisualizerSession",
    "ZERO",
    "check_balance",
    "describe",
    "evaluate",
    "format_program",
    "parse",
    "run",
]
