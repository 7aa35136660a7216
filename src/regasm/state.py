"""RunState: per-run mutable state for the regasm engine.

State Components:
    - Registers: named signed 32-bit integers, created on first write
    - PC: Line index of the next line to fetch
    - Call stack: Return line indices pushed by CALL, popped by RET
    - Comparison: Operands of the latest CMP, or None before any CMP
    - Output: Message buffer filled by MSG
    - Result: Output text frozen by END; None until then
    - Cycle count: Number of instructions executed

The parsed Program is shared read-only; everything else is created fresh
for each run and discarded with it.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from .errors import EmptyCallStack, UndefinedRegister, UninitializedComparison

if TYPE_CHECKING:
    from .decode import Program


# 32-bit signed integer bounds
INT32_MIN = -(2**31)
INT32_MAX = (2**31) - 1


def wrap_int32(value: int) -> int:
    """Wrap an integer into the signed 32-bit range (two's complement)."""
    return ((value - INT32_MIN) & 0xFFFFFFFF) + INT32_MIN


@dataclass(frozen=True)
class Comparison:
    """Operands of the most recent CMP."""
    lhs: int
    rhs: int


class MessageBuffer:
    """Append-only text buffer for one run.

    Fragments are joined in the order they were appended, with nothing
    inserted between them.
    """

    def __init__(self):
        self._parts: List[str] = []

    def append(self, text: str) -> None:
        self._parts.append(text)

    def getvalue(self) -> str:
        return "".join(self._parts)

    def __len__(self) -> int:
        return sum(len(part) for part in self._parts)

    def __str__(self) -> str:
        return self.getvalue()

    def __repr__(self) -> str:
        return f"MessageBuffer({self.getvalue()!r})"


@dataclass
class RunState:
    """Mutable state of a single program run.

    Attributes:
        program: Parsed program (shared, never mutated)
        registers: Register name to value
        pc: Program counter (line index)
        call_stack: Pending return line indices, innermost last
        comparison: Latest CMP operands, None before the first CMP
        output: Message buffer
        result: Final output, set only when END executes
        halted: Whether END has executed
        cycle_count: Number of executed instructions
    """
    program: "Program"
    registers: Dict[str, int] = field(default_factory=dict)
    pc: int = 0
    call_stack: List[int] = field(default_factory=list)
    comparison: Optional[Comparison] = None
    output: MessageBuffer = field(default_factory=MessageBuffer)
    result: Optional[str] = None
    halted: bool = False
    cycle_count: int = 0

    @property
    def finished(self) -> bool:
        """True once END ran or the PC moved past the last line."""
        return self.halted or self.pc >= len(self.program)

    def get_register(self, name: str) -> int:
        """Get value of a register.

        Raises:
            UndefinedRegister: If the register has never been written
        """
        try:
            return self.registers[name]
        except KeyError:
            raise UndefinedRegister(name) from None

    def set_register(self, name: str, value: int) -> None:
        """Write a register, wrapping the value to 32 bits."""
        self.registers[name] = wrap_int32(value)

    def compare(self, lhs: int, rhs: int) -> None:
        self.comparison = Comparison(lhs, rhs)

    def require_comparison(self, opcode: str) -> Comparison:
        """Return the stored comparison or fail if no CMP has run yet."""
        if self.comparison is None:
            raise UninitializedComparison(opcode)
        return self.comparison

    def push_return(self, index: int) -> None:
        self.call_stack.append(index)

    def pop_return(self) -> int:
        if not self.call_stack:
            raise EmptyCallStack()
        return self.call_stack.pop()

    def advance(self) -> None:
        self.pc += 1

    def jump(self, index: int) -> None:
        self.pc = index

    def finish(self) -> None:
        """Freeze the message buffer as the run's result and halt."""
        self.result = self.output.getvalue()
        self.halted = True

    def snapshot(self) -> dict:
        """Create a copy of the current state for tracing.

        Returns:
            Dictionary containing a deep copy of all mutable state
        """
        comparison = self.comparison
        return {
            "registers": deepcopy(self.registers),
            "pc": self.pc,
            "call_stack": list(self.call_stack),
            "comparison": (comparison.lhs, comparison.rhs) if comparison else None,
            "output": self.output.getvalue(),
            "halted": self.halted,
            "cycle_count": self.cycle_count,
            # Note: program excluded from snapshot (it doesn't change)
        }

    def dump_registers(self) -> Dict[str, int]:
        return dict(self.registers)

    def __str__(self) -> str:
        regs = " ".join(f"{k}={v}" for k, v in sorted(self.registers.items()))
        cmp_text = ""
        if self.comparison is not None:
            cmp_text = f" CMP=({self.comparison.lhs},{self.comparison.rhs})"
        return (
            f"[Cycle {self.cycle_count}] PC={self.pc} {regs}{cmp_text}"
            f" {'HALTED' if self.halted else ''}"
        ).rstrip()


def create_initial_state(program: "Program") -> RunState:
    """Create a fresh run state for a program.

    Args:
        program: Parsed program

    Returns:
        RunState with no registers, empty stack and empty output
    """
    return RunState(program=program)
