"""Exception hierarchy for regasm.

Parse errors are raised while building a Program from source text.
Execution errors are raised by a single instruction and abort the whole
run; the engine fills in the failing line and the partial output before
the error leaves ``ExecutionEngine.step``.
"""

from typing import Optional


class InterpreterError(Exception):
    """Base class for every error raised by regasm."""


# =============================================================================
# Parse-time errors
# =============================================================================

class ParseError(InterpreterError):
    """Source text could not be turned into a Program.

    Attributes:
        line: Zero-based index of the offending source line
    """

    def __init__(self, message: str, line: Optional[int] = None):
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class DuplicateLabel(ParseError):
    """The same label name is defined on two lines."""

    def __init__(self, label: str, first: int, second: int):
        super().__init__(
            f"Label {label!r} already defined on line {first}", line=second
        )
        self.label = label
        self.first = first


# =============================================================================
# Run-time errors
# =============================================================================

class ExecutionError(InterpreterError):
    """An instruction failed while executing.

    Attributes:
        line: Line index of the failing instruction (set by the engine)
        source: Source text of the failing line (set by the engine)
        output: Message text accumulated before the failure (set by the engine)
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.line: Optional[int] = None
        self.source: Optional[str] = None
        self.output: str = ""

    def __str__(self) -> str:
        message = super().__str__()
        if self.line is None:
            return message
        return f"line {self.line} ({self.source}): {message}"


class UndefinedRegister(ExecutionError):
    """A register was read before it was ever written."""

    def __init__(self, name: str):
        super().__init__(f"Register {name!r} was read but has never been written")
        self.name = name


class UndefinedLabel(ExecutionError):
    """A jump or call names a label that the program never defines."""

    def __init__(self, name: str):
        super().__init__(f"Label {name!r} is not defined")
        self.name = name


class EmptyCallStack(ExecutionError):
    """RET executed with no pending CALL."""

    def __init__(self):
        super().__init__("RET with an empty call stack")


class DivisionByZero(ExecutionError, ZeroDivisionError):
    """DIV by a literal or register holding zero."""

    def __init__(self, dividend: int):
        super().__init__(f"Division of {dividend} by zero")
        self.dividend = dividend


class UninitializedComparison(ExecutionError):
    """A conditional jump ran before any CMP."""

    def __init__(self, opcode: str):
        super().__init__(f"{opcode} executed before any CMP")
        self.opcode = opcode


class UnrecognizedOpcode(ExecutionError):
    """The line's first token is not a known opcode."""

    def __init__(self, token: str):
        super().__init__(f"Unrecognized opcode {token!r}")
        self.token = token


class MalformedInstruction(ExecutionError):
    """A known opcode was given operands of the wrong number or kind."""

    def __init__(self, reason: str):
        super().__init__(f"Malformed instruction: {reason}")
        self.reason = reason


class ExecutionBudgetExceeded(InterpreterError, RuntimeError):
    """The caller-imposed cycle limit ran out before the program finished."""

    def __init__(self, max_cycles: int):
        super().__init__(f"Max cycles ({max_cycles}) exceeded")
        self.max_cycles = max_cycles
