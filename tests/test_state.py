"""Tests for RunState, MessageBuffer and 32-bit wrapping."""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from regasm.decode import parse_program
from regasm.errors import EmptyCallStack, UndefinedRegister, UninitializedComparison
from regasm.state import (
    INT32_MAX,
    INT32_MIN,
    Comparison,
    MessageBuffer,
    RunState,
    create_initial_state,
    wrap_int32,
)


@pytest.fixture
def state():
    return create_initial_state(parse_program("MOV a, 1\nEND"))


class TestRunStateCreation:
    """Test RunState initialization and defaults."""

    def test_initial_state_is_empty(self, state):
        """A fresh run has no registers, no stack and no comparison."""
        assert state.pc == 0
        assert state.cycle_count == 0
        assert state.halted is False
        assert state.registers == {}
        assert state.call_stack == []
        assert state.comparison is None
        assert state.result is None
        assert state.output.getvalue() == ""

    def test_states_do_not_share_containers(self):
        """Two runs over one program get independent state."""
        program = parse_program("END")
        first = create_initial_state(program)
        second = create_initial_state(program)
        first.set_register("x", 1)
        first.push_return(3)
        first.output.append("hi")

        assert second.registers == {}
        assert second.call_stack == []
        assert second.output.getvalue() == ""
        assert first.program is second.program

    def test_finished_past_last_line(self, state):
        """PC past the last line means the run is over."""
        assert state.finished is False
        state.jump(len(state.program))
        assert state.finished is True


class TestRegisters:
    """Test register reads and writes."""

    def test_read_after_write(self, state):
        state.set_register("acc", 42)
        assert state.get_register("acc") == 42

    def test_read_unset_register(self, state):
        """Reading a register never written is an error, not zero."""
        with pytest.raises(UndefinedRegister) as excinfo:
            state.get_register("nope")
        assert excinfo.value.name == "nope"

    def test_register_names_are_case_sensitive(self, state):
        state.set_register("a", 1)
        with pytest.raises(UndefinedRegister):
            state.get_register("A")

    def test_set_register_wraps(self, state):
        state.set_register("a", INT32_MAX + 1)
        assert state.get_register("a") == INT32_MIN

    def test_dump_registers_is_copy(self, state):
        state.set_register("a", 1)
        regs = state.dump_registers()
        regs["a"] = 999
        assert state.get_register("a") == 1


class TestWrapInt32:
    """Test two's-complement wrapping."""

    @pytest.mark.parametrize("value, expected", [
        (0, 0),
        (-1, -1),
        (INT32_MAX, INT32_MAX),
        (INT32_MIN, INT32_MIN),
        (INT32_MAX + 1, INT32_MIN),
        (INT32_MIN - 1, INT32_MAX),
        (2**32 + 5, 5),
    ])
    def test_wrap(self, value, expected):
        assert wrap_int32(value) == expected


class TestControlState:
    """Test comparison and call stack."""

    def test_require_comparison_before_cmp(self, state):
        with pytest.raises(UninitializedComparison):
            state.require_comparison("JE")

    def test_compare_stores_pair(self, state):
        state.compare(3, 7)
        assert state.require_comparison("JE") == Comparison(3, 7)

    def test_call_stack_is_lifo(self, state):
        state.push_return(1)
        state.push_return(5)
        assert state.pop_return() == 5
        assert state.pop_return() == 1

    def test_pop_empty_stack(self, state):
        with pytest.raises(EmptyCallStack):
            state.pop_return()

    def test_finish_freezes_output(self, state):
        state.output.append("done")
        state.finish()
        assert state.halted is True
        assert state.result == "done"


class TestSnapshot:
    """Test state snapshot for tracing."""

    def test_snapshot_is_deep_copy(self, state):
        state.set_register("a", 42)
        state.push_return(2)
        state.compare(1, 2)
        snapshot = state.snapshot()

        assert snapshot["registers"] == {"a": 42}
        assert snapshot["call_stack"] == [2]
        assert snapshot["comparison"] == (1, 2)
        assert snapshot["halted"] is False

        snapshot["registers"]["a"] = 999
        snapshot["call_stack"].append(7)
        assert state.get_register("a") == 42
        assert state.call_stack == [2]

    def test_str(self, state):
        state.set_register("b", 2)
        state.set_register("a", 1)
        assert str(state) == "[Cycle 0] PC=0 a=1 b=2"


class TestMessageBuffer:
    """Test the output accumulator."""

    def test_no_separators(self):
        buffer = MessageBuffer()
        buffer.append("a")
        buffer.append("12")
        buffer.append(" b")
        assert buffer.getvalue() == "a12 b"
        assert str(buffer) == "a12 b"
        assert len(buffer) == 5

    def test_empty(self):
        assert MessageBuffer().getvalue() == ""


def test_run_state_is_a_dataclass():
    """RunState can be constructed directly from a program."""
    program = parse_program("END")
    assert RunState(program=program).program is program
