"""regasm: interpreter for a small register-machine assembly dialect.

Programs use named integer registers, labels, jumps, CALL/RET and MSG to
build a text result that becomes final when END executes.

Pipeline:
    SOURCE -> parse_program -> PROGRAM -> ExecutionEngine -> output | None
              (comments,       (immutable,   (fresh RunState
               labels,          reusable)     per run)
               typed operands)

Modules:
    errors: Parse and execution error types
    decode: Preprocessor, tokenizer and instruction decoder
    state: RunState, Comparison and MessageBuffer
    registry: Per-opcode handlers
    engine: ExecutionEngine orchestrator and the interpret() entry point
"""

__version__ = "0.1.0"

from .errors import (
    InterpreterError,
    ParseError,
    DuplicateLabel,
    MalformedInstruction,
    ExecutionError,
    UndefinedRegister,
    UndefinedLabel,
    EmptyCallStack,
    DivisionByZero,
    UninitializedComparison,
    UnrecognizedOpcode,
    ExecutionBudgetExceeded,
)
from .decode import Opcode, Program, parse_program
from .state import RunState
from .registry import OpcodeRegistry
from .engine import ExecutionEngine, RunResult, execute, interpret

__all__ = [
    "InterpreterError",
    "ParseError",
    "DuplicateLabel",
    "MalformedInstruction",
    "ExecutionError",
    "UndefinedRegister",
    "UndefinedLabel",
    "EmptyCallStack",
    "DivisionByZero",
    "UninitializedComparison",
    "UnrecognizedOpcode",
    "ExecutionBudgetExceeded",
    "Opcode",
    "Program",
    "parse_program",
    "RunState",
    "OpcodeRegistry",
    "ExecutionEngine",
    "RunResult",
    "execute",
    "interpret",
]
