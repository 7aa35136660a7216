"""OpcodeRegistry: per-opcode semantics for the regasm engine.

Each Opcode maps to one handler that mutates a RunState in place.
Handlers own the program counter: straight-line instructions advance it,
control-flow instructions set it explicitly.

Opcodes:
    MOV dst, src     dst <- src
    INC/DEC dst      dst <- dst +/- 1
    ADD/SUB/MUL/DIV  dst <- dst op src (DIV truncates toward zero)
    CMP a, b         remember (a, b) for the next conditional jump
    JMP label        unconditional jump
    JNE/JE/JGE/JG/JLE/JL label
                     jump if the remembered comparison holds
    CALL label       push return address, jump
    RET              pop return address, resume after the CALL
    MSG args...      append literals / register values to the output
    END              freeze the output as the result and halt
    UNKNOWN          fail with UnrecognizedOpcode
    INVALID          fail with MalformedInstruction

All register arithmetic wraps to signed 32 bits.
"""

import operator
from typing import Callable, Dict, Optional

from .decode import (
    Instruction,
    IntegerLiteral,
    Opcode,
    Operand,
    StringLiteral,
)
from .errors import DivisionByZero, MalformedInstruction, UnrecognizedOpcode
from .state import RunState


Handler = Callable[[RunState, Instruction], None]

# Conditional jumps and the relation they test on (lhs, rhs)
CONDITIONS: Dict[Opcode, Callable[[int, int], bool]] = {
    Opcode.JNE: operator.ne,
    Opcode.JE: operator.eq,
    Opcode.JGE: operator.ge,
    Opcode.JG: operator.gt,
    Opcode.JLE: operator.le,
    Opcode.JL: operator.lt,
}


def truncating_div(dividend: int, divisor: int) -> int:
    """Integer division rounding toward zero (7/2 = 3, -7/2 = -3)."""
    if divisor == 0:
        raise DivisionByZero(dividend)
    quotient = abs(dividend) // abs(divisor)
    return quotient if (dividend < 0) == (divisor < 0) else -quotient


def value_of(state: RunState, operand: Operand) -> int:
    """Resolve an integer literal or a register to its value."""
    if isinstance(operand, IntegerLiteral):
        return operand.value
    return state.get_register(operand.name)


class OpcodeRegistry:
    """Registry of opcode handlers.

    The registry is frozen after initialization so that handlers cannot
    be swapped while programs are running.

    Attributes:
        _handlers: Opcode to handler function
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        self._handlers: Dict[Opcode, Handler] = {}
        self._frozen = False
        self._register_all_handlers()
        self.freeze()

    def _register_all_handlers(self) -> None:
        # Data movement
        self.register(Opcode.MOV, self._op_mov)

        # Arithmetic
        self.register(Opcode.INC, self._op_inc)
        self.register(Opcode.DEC, self._op_dec)
        self.register(Opcode.ADD, self._arithmetic(operator.add))
        self.register(Opcode.SUB, self._arithmetic(operator.sub))
        self.register(Opcode.MUL, self._arithmetic(operator.mul))
        self.register(Opcode.DIV, self._arithmetic(truncating_div))

        # Comparison and control flow
        self.register(Opcode.CMP, self._op_cmp)
        self.register(Opcode.JMP, self._op_jmp)
        for opcode in CONDITIONS:
            self.register(opcode, self._op_branch)
        self.register(Opcode.CALL, self._op_call)
        self.register(Opcode.RET, self._op_ret)

        # Output
        self.register(Opcode.MSG, self._op_msg)
        self.register(Opcode.END, self._op_end)

        self.register(Opcode.UNKNOWN, self._op_unknown)
        self.register(Opcode.INVALID, self._op_invalid)

    def register(self, opcode: Opcode, handler: Handler) -> None:
        """Register a handler for an opcode.

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If opcode already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register handlers: registry is frozen")
        if opcode in self._handlers:
            raise ValueError(f"Handler already registered: {opcode.value}")
        self._handlers[opcode] = handler

    def freeze(self) -> None:
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_opcodes(self) -> set:
        return set(self._handlers)

    def execute(self, state: RunState, instruction: Instruction) -> None:
        """Execute one instruction against a run state.

        Args:
            state: Run state, mutated in place
            instruction: Decoded instruction

        Raises:
            ExecutionError: Any failure of the instruction itself
        """
        handler = self._handlers[instruction.opcode]
        handler(state, instruction)
        state.cycle_count += 1

    # =========================================================================
    # Data movement and arithmetic
    # =========================================================================

    def _op_mov(self, state: RunState, instruction: Instruction) -> None:
        dst, src = instruction.operands
        state.set_register(dst.name, value_of(state, src))
        state.advance()

    def _op_inc(self, state: RunState, instruction: Instruction) -> None:
        (dst,) = instruction.operands
        state.set_register(dst.name, state.get_register(dst.name) + 1)
        state.advance()

    def _op_dec(self, state: RunState, instruction: Instruction) -> None:
        (dst,) = instruction.operands
        state.set_register(dst.name, state.get_register(dst.name) - 1)
        state.advance()

    @staticmethod
    def _arithmetic(op: Callable[[int, int], int]) -> Handler:
        """Build a handler for ``dst <- op(dst, src)``."""

        def handler(state: RunState, instruction: Instruction) -> None:
            dst, src = instruction.operands
            lhs = state.get_register(dst.name)
            rhs = value_of(state, src)
            state.set_register(dst.name, op(lhs, rhs))
            state.advance()

        return handler

    # =========================================================================
    # Comparison and control flow
    # =========================================================================

    def _op_cmp(self, state: RunState, instruction: Instruction) -> None:
        lhs, rhs = instruction.operands
        state.compare(value_of(state, lhs), value_of(state, rhs))
        state.advance()

    def _op_jmp(self, state: RunState, instruction: Instruction) -> None:
        (target,) = instruction.operands
        state.jump(state.program.resolve(target.name))

    def _op_branch(self, state: RunState, instruction: Instruction) -> None:
        """JNE/JE/JGE/JG/JLE/JL label - jump if the last CMP satisfies the relation.

        The label is resolved before the comparison is consulted, so an
        undefined target fails even when the branch would not be taken.
        """
        (target,) = instruction.operands
        address = state.program.resolve(target.name)
        comparison = state.require_comparison(instruction.opcode.value)

        if CONDITIONS[instruction.opcode](comparison.lhs, comparison.rhs):
            state.jump(address)
        else:
            state.advance()

    def _op_call(self, state: RunState, instruction: Instruction) -> None:
        (target,) = instruction.operands
        address = state.program.resolve(target.name)
        state.push_return(state.pc)
        state.jump(address)

    def _op_ret(self, state: RunState, instruction: Instruction) -> None:
        # Resume on the line after the CALL
        state.jump(state.pop_return() + 1)

    # =========================================================================
    # Output
    # =========================================================================

    def _op_msg(self, state: RunState, instruction: Instruction) -> None:
        for operand in instruction.operands:
            if isinstance(operand, StringLiteral):
                state.output.append(operand.text)
            else:
                state.output.append(str(value_of(state, operand)))
        state.advance()

    def _op_end(self, state: RunState, instruction: Instruction) -> None:
        state.finish()

    def _op_unknown(self, state: RunState, instruction: Instruction) -> None:
        raise UnrecognizedOpcode(instruction.token)

    def _op_invalid(self, state: RunState, instruction: Instruction) -> None:
        raise MalformedInstruction(instruction.error or "invalid operands")


# Singleton registry instance
_registry: Optional[OpcodeRegistry] = None


def get_registry() -> OpcodeRegistry:
    """Get the singleton opcode registry instance."""
    global _registry
    if _registry is None:
        _registry = OpcodeRegistry()
    return _registry
