"""Tests for OpcodeRegistry handlers."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from regasm.decode import Opcode, decode_instruction, parse_program
from regasm.engine import interpret
from regasm.errors import (
    DivisionByZero,
    EmptyCallStack,
    ExecutionError,
    MalformedInstruction,
    UndefinedLabel,
    UndefinedRegister,
    UninitializedComparison,
    UnrecognizedOpcode,
)
from regasm.registry import OpcodeRegistry, get_registry, truncating_div
from regasm.state import INT32_MAX, INT32_MIN, create_initial_state


def run_lines(*lines):
    """Run a program given as separate lines."""
    return interpret("\n".join(lines))


@pytest.fixture
def registry():
    return get_registry()


class TestRegistryLifecycle:
    """Test registry construction and freezing."""

    def test_every_opcode_has_a_handler(self, registry):
        assert registry.get_valid_opcodes() == set(Opcode)

    def test_registry_is_frozen(self, registry):
        assert registry.is_frozen() is True
        with pytest.raises(RuntimeError, match="frozen"):
            registry.register(Opcode.MOV, lambda state, instruction: None)

    def test_singleton(self):
        assert get_registry() is get_registry()
        assert isinstance(get_registry(), OpcodeRegistry)

    def test_execute_counts_cycles(self, registry):
        state = create_initial_state(parse_program("mov a, 1"))
        registry.execute(state, decode_instruction("mov a, 1"))
        assert state.cycle_count == 1
        assert state.pc == 1
        assert state.get_register("a") == 1


class TestArithmetic:
    """Test data movement and arithmetic."""

    def test_mov_literal_and_register(self):
        assert run_lines("mov a, 3", "mov b, a", "msg a, b", "end") == "33"

    def test_inc_dec(self):
        assert run_lines("mov a, 3", "inc a", "inc a", "dec a", "msg a", "end") == "4"

    def test_add_sub_mul(self):
        assert run_lines(
            "mov a, 10", "add a, 5", "mov b, 2", "sub a, b", "mul a, -3", "msg a", "end"
        ) == "-39"

    @pytest.mark.parametrize("a, b, expected", [
        (7, 2, 3),
        (-7, 2, -3),
        (7, -2, -3),
        (-7, -2, 3),
        (6, 3, 2),
        (0, 5, 0),
        (1, 2, 0),
    ])
    def test_div_truncates_toward_zero(self, a, b, expected):
        assert run_lines(f"mov a, {a}", f"div a, {b}", "msg a", "end") == str(expected)

    def test_div_by_zero_literal(self):
        with pytest.raises(DivisionByZero):
            run_lines("mov a, 1", "div a, 0", "end")

    def test_div_by_zero_register(self):
        with pytest.raises(ZeroDivisionError):
            run_lines("mov a, 1", "mov z, 0", "div a, z", "end")

    def test_truncating_div_min_by_minus_one(self):
        """INT32_MIN / -1 overflows and wraps back to INT32_MIN."""
        assert run_lines(f"mov a, {INT32_MIN}", "div a, -1", "msg a", "end") == str(INT32_MIN)
        assert truncating_div(INT32_MIN, -1) == 2**31

    def test_overflow_wraps(self):
        assert run_lines(f"mov a, {INT32_MAX}", "inc a", "msg a", "end") == str(INT32_MIN)
        assert run_lines(f"mov a, {INT32_MIN}", "dec a", "msg a", "end") == str(INT32_MAX)
        assert run_lines("mov a, 65536", "mul a, a", "msg a", "end") == "0"

    def test_unset_register_is_an_error(self):
        with pytest.raises(UndefinedRegister):
            run_lines("inc a", "end")
        with pytest.raises(UndefinedRegister):
            run_lines("mov a, b", "end")
        with pytest.raises(UndefinedRegister):
            run_lines("mov a, 1", "add a, b", "end")

    def test_mov_creates_register(self):
        assert run_lines("mov fresh, -1", "msg fresh", "end") == "-1"


class TestConditionalJumps:
    """Truth table for the conditional jumps.

    Each program prints 'J' when the branch is taken and 'N' otherwise.
    """

    @pytest.mark.parametrize("opcode, lhs, rhs, taken", [
        ("jne", 1, 2, True),
        ("jne", 1, 1, False),
        ("je", 1, 1, True),
        ("je", 1, 2, False),
        ("jge", 2, 1, True),
        ("jge", 1, 1, True),
        ("jge", 1, 2, False),
        ("jg", 2, 1, True),
        ("jg", 1, 1, False),
        ("jle", 1, 2, True),
        ("jle", 1, 1, True),
        ("jle", 2, 1, False),
        ("jl", 1, 2, True),
        ("jl", 1, 1, False),
        ("jl", -5, -4, True),
    ])
    def test_branch(self, opcode, lhs, rhs, taken):
        output = run_lines(
            f"cmp {lhs}, {rhs}",
            f"{opcode} yes",
            "msg 'N'",
            "end",
            "yes:",
            "msg 'J'",
            "end",
        )
        assert output == ("J" if taken else "N")

    def test_branch_before_cmp(self):
        with pytest.raises(UninitializedComparison) as excinfo:
            run_lines("x:", "je x", "end")
        assert excinfo.value.opcode == "JE"

    def test_comparison_persists_across_jumps(self):
        """Conditional jumps read the comparison without clearing it."""
        assert run_lines(
            "cmp 1, 2", "jg nope", "jl one", "nope:", "msg 'bad'", "end",
            "one:", "jl two", "end", "two:", "msg 'ok'", "end",
        ) == "ok"

    def test_cmp_registers(self):
        assert run_lines(
            "mov a, 3", "mov b, 3", "cmp a, b", "je same", "end", "same:", "msg 'eq'", "end"
        ) == "eq"

    def test_undefined_branch_label_even_if_not_taken(self):
        with pytest.raises(UndefinedLabel):
            run_lines("cmp 1, 1", "jne missing", "end")


class TestJumpsAndCalls:
    """Test JMP, CALL and RET."""

    def test_jmp_skips_lines(self):
        assert run_lines("jmp over", "msg 'skipped'", "over:", "msg 'landed'", "end") == "landed"

    def test_jmp_undefined_label(self):
        with pytest.raises(UndefinedLabel) as excinfo:
            run_lines("jmp nowhere", "end")
        assert excinfo.value.name == "nowhere"

    def test_call_returns_after_call(self):
        assert run_lines(
            "call greet", "msg '!'", "end", "greet:", "msg 'hi'", "ret"
        ) == "hi!"

    def test_nested_calls(self):
        assert run_lines(
            "call outer",
            "msg 'D'",
            "end",
            "outer:",
            "msg 'A'",
            "call inner",
            "msg 'C'",
            "ret",
            "inner:",
            "msg 'B'",
            "ret",
        ) == "ABCD"

    def test_recursion(self):
        """Countdown by recursive CALL, unwound by RET."""
        assert run_lines(
            "mov n, 3",
            "call count",
            "msg 'go'",
            "end",
            "count:",
            "cmp n, 0",
            "je base",
            "msg n, ' '",
            "dec n",
            "call count",
            "base:",
            "ret",
        ) == "3 2 1 go"

    def test_ret_with_empty_stack(self):
        with pytest.raises(EmptyCallStack):
            run_lines("ret", "end")

    def test_call_undefined_label(self):
        with pytest.raises(UndefinedLabel):
            run_lines("call nothing", "end")


class TestMessagesAndEnd:
    """Test MSG and END."""

    def test_hello(self):
        assert run_lines("MSG 'hello'", "END") == "hello"

    def test_no_implicit_separators(self):
        assert run_lines("mov a, 1", "mov b, 2", "msg a, b, 'x', a", "end") == "12x1"

    def test_literal_keeps_spaces_and_commas(self):
        assert run_lines("msg 'a, b ; c'", "end") == "a, b ; c"

    def test_integer_literal_in_msg(self):
        assert run_lines("msg 'n=', -4", "end") == "n=-4"

    def test_msg_accumulates_across_instructions(self):
        assert run_lines("msg 'a'", "msg 'b'", "end") == "ab"

    def test_end_stops_execution(self):
        assert run_lines("msg 'x'", "end", "msg 'y'", "end") == "x"

    def test_msg_unset_register(self):
        with pytest.raises(UndefinedRegister):
            run_lines("msg 'a', nope", "end")

    def test_msg_without_arguments(self):
        assert run_lines("msg", "end") == ""
        assert run_lines("msg 'a'", "msg", "end") == "a"


class TestUnrecognizedOpcode:
    """Unknown opcodes fail only when executed."""

    def test_executing_unknown_opcode(self):
        with pytest.raises(UnrecognizedOpcode) as excinfo:
            run_lines("msg 'a'", "bogus 1", "end")
        assert excinfo.value.token == "bogus"
        assert excinfo.value.line == 1
        assert excinfo.value.output == "a"

    def test_unreached_unknown_opcode(self):
        assert run_lines("jmp done", "bogus", "done:", "msg 'ok'", "end") == "ok"


class TestMalformedInstruction:
    """Known opcodes with bad operands fail only when executed."""

    def test_unreached_malformed_line(self):
        assert run_lines("mov a, 1", "jmp skip", "mov a", "skip:") is None
        assert run_lines("jmp done", "inc 5", "done:", "msg 'ok'", "end") == "ok"

    def test_executing_malformed_line(self):
        with pytest.raises(MalformedInstruction) as excinfo:
            run_lines("msg 'a'", "add a", "end")
        error = excinfo.value
        assert isinstance(error, ExecutionError)
        assert error.line == 1
        assert error.source == "add a"
        assert error.output == "a"
        assert "ADD expects 2 operand(s), got 1" in str(error)

    def test_wrong_kind_when_executed(self):
        with pytest.raises(MalformedInstruction, match="expects a label"):
            run_lines("jmp 3", "end")

    def test_handler_registered(self, registry):
        assert Opcode.INVALID in registry.get_valid_opcodes()
