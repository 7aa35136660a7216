"""ExecutionEngine: fetch-execute orchestrator for regasm programs.

Pipeline:
    SOURCE -> parse_program -> PROGRAM -> FETCH -> REGISTRY -> RUN STATE
                                (immutable)  (PC)   (handlers)  (per run)

A run ends in exactly one of three ways:
    - END executes: the message buffer becomes the result
    - the PC moves past the last line: no result (None)
    - an instruction fails: the ExecutionError propagates to the caller

The engine imposes no cycle limit unless one is configured; exceeding a
configured limit raises ExecutionBudgetExceeded, which is distinct from
running off the end of the program.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .decode import Program, parse_program
from .errors import ExecutionBudgetExceeded, ExecutionError, InterpreterError
from .registry import OpcodeRegistry, get_registry
from .state import RunState, create_initial_state

logger = logging.getLogger(__name__)


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        line: Line index of the executed instruction
        instruction: Source text of the instruction
        opcode: Decoded opcode name
        operands: Decoded operands, rendered as text
        pre_state: State before execution
        post_state: State after execution
        error: Error message if execution failed
    """
    cycle: int
    line: int
    instruction: str
    opcode: str
    operands: List[str] = field(default_factory=list)
    pre_state: dict = field(default_factory=dict)
    post_state: dict = field(default_factory=dict)
    error: Optional[str] = None


@dataclass(frozen=True)
class RunResult:
    """Outcome of one complete run.

    Attributes:
        output: Final output, or None if the program never reached END
        cycles: Number of executed instructions
        registers: Register values at the end of the run
    """
    output: Optional[str]
    cycles: int
    registers: Dict[str, int]

    @property
    def terminated(self) -> bool:
        return self.output is not None


class ExecutionEngine:
    """Interpreter for a parsed regasm program.

    The loaded Program is never modified; every call to run() starts from
    a fresh RunState, so one engine can run the same program repeatedly.
    An engine instance is not meant to be shared between threads, but
    any number of engines may run the same Program concurrently.

    Attributes:
        registry: OpcodeRegistry with the opcode handlers
        program: Loaded program
        state: Current run state
        trace: Trace entries (only filled when record_trace is on)
        max_cycles: Cycle limit, None for unbounded
        record_trace: Whether step() keeps trace entries
        error: Error that aborted the current run, if any
    """

    DEFAULT_MAX_CYCLES: Optional[int] = None

    def __init__(
        self,
        max_cycles: Optional[int] = DEFAULT_MAX_CYCLES,
        record_trace: bool = False,
        registry: Optional[OpcodeRegistry] = None,
    ):
        self.registry = registry or get_registry()
        self.program: Optional[Program] = None
        self.state: Optional[RunState] = None
        self.trace: List[ExecutionTraceEntry] = []
        self.max_cycles = max_cycles
        self.record_trace = record_trace
        self.error: Optional[InterpreterError] = None

    def load_program(self, source: Union[str, Program]) -> Program:
        """Load a program from source text or an already parsed Program.

        Raises:
            ParseError: If the source cannot be parsed
        """
        program = parse_program(source) if isinstance(source, str) else source
        self.program = program
        logger.debug(
            "Loaded program: %d lines, %d instructions, %d labels",
            len(program), len(program.instructions), len(program.labels),
        )
        self.reset()
        return program

    def reset(self) -> None:
        """Discard the current run and start a fresh one."""
        if self.program is None:
            raise RuntimeError("No program loaded")
        self.state = create_initial_state(self.program)
        self.trace = []
        self.error = None

    def step(self) -> Optional[ExecutionTraceEntry]:
        """Execute the next instruction, skipping empty and label lines.

        Returns:
            Trace entry for the executed instruction, or None if the PC
            ran past the last line instead

        Raises:
            RuntimeError: If no program is loaded or the run is over
            ExecutionBudgetExceeded: If max_cycles instructions already ran
            ExecutionError: If the instruction fails
        """
        return self._step(self.max_cycles)

    def _step(self, limit: Optional[int]) -> Optional[ExecutionTraceEntry]:
        state = self.state
        if state is None:
            raise RuntimeError("No program loaded")
        if self.error is not None:
            raise RuntimeError(f"Run aborted: {self.error}")
        if state.finished:
            raise RuntimeError("Program has finished")

        # FETCH: skip lines with nothing to execute
        program = state.program
        while state.pc < len(program) and program[state.pc].is_noop:
            state.advance()
        if state.pc >= len(program):
            return None

        if limit is not None and state.cycle_count >= limit:
            budget_error = ExecutionBudgetExceeded(limit)
            self.error = budget_error
            logger.debug("Run aborted after %d cycles: %s", state.cycle_count, budget_error)
            raise budget_error

        line = state.pc
        instruction = program[line].instruction
        pre_state = state.snapshot() if self.record_trace else {}

        # EXECUTE
        error = None
        try:
            self.registry.execute(state, instruction)
        except ExecutionError as e:
            e.line = line
            e.source = instruction.text
            e.output = state.output.getvalue()
            self.error = e
            error = e
            logger.debug("Run aborted at line %d: %s", line, e)

        entry = ExecutionTraceEntry(
            cycle=state.cycle_count if error else state.cycle_count - 1,
            line=line,
            instruction=instruction.text,
            opcode=instruction.opcode.value,
            operands=[str(operand) for operand in instruction.operands],
            pre_state=pre_state,
            post_state=state.snapshot() if self.record_trace else {},
            error=str(error) if error else None,
        )
        if self.record_trace:
            self.trace.append(entry)

        if error is not None:
            raise error
        return entry

    def run(self, max_cycles: Optional[int] = None) -> Optional[str]:
        """Run the loaded program from the start until it finishes.

        Args:
            max_cycles: Override the cycle limit (uses instance default if None)

        Returns:
            The output frozen by END, or None if END was never reached

        Raises:
            ExecutionBudgetExceeded: If the cycle limit ran out
            ExecutionError: If an instruction failed
        """
        self.reset()
        limit = max_cycles if max_cycles is not None else self.max_cycles
        state = self.state
        logger.debug("Run started (max_cycles=%s)", limit)

        while not state.finished:
            self._step(limit)

        if not state.halted:
            logger.warning(
                "Program ran past its last line after %d cycles without END",
                state.cycle_count,
            )
            return None

        logger.debug("Run finished after %d cycles", state.cycle_count)
        return state.result

    @property
    def output(self) -> Optional[str]:
        """Result of the current run; None unless END has executed."""
        if self.state is None:
            return None
        return self.state.result

    def get_register(self, name: str) -> int:
        """Get value of a register.

        Raises:
            UndefinedRegister: If the register has never been written
        """
        if self.state is None:
            raise RuntimeError("No program loaded")
        return self.state.get_register(name)

    def dump_registers(self) -> Dict[str, int]:
        if self.state is None:
            raise RuntimeError("No program loaded")
        return self.state.dump_registers()

    def get_pc(self) -> int:
        if self.state is None:
            raise RuntimeError("No program loaded")
        return self.state.pc

    def get_cycle_count(self) -> int:
        if self.state is None:
            return 0
        return self.state.cycle_count

    def is_halted(self) -> bool:
        """True once END ran, the run was aborted, or no program is loaded."""
        if self.state is None:
            return True
        return self.state.halted or self.error is not None

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("REGASM EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"ERROR: {entry.error}"
            print(f"\n[Cycle {entry.cycle}] line {entry.line} {status}")
            print(f"  Instruction: {entry.instruction}")
            print(f"  Decoded: {entry.opcode} {', '.join(entry.operands)}")

            pre_regs = entry.pre_state.get("registers", {})
            post_regs = entry.post_state.get("registers", {})
            changes = []
            for reg in sorted(post_regs):
                if reg not in pre_regs:
                    changes.append(f"{reg}: unset → {post_regs[reg]}")
                elif pre_regs[reg] != post_regs[reg]:
                    changes.append(f"{reg}: {pre_regs[reg]} → {post_regs[reg]}")
            if changes:
                print(f"  Changes: {', '.join(changes)}")

            pre_pc = entry.pre_state.get("pc", 0)
            post_pc = entry.post_state.get("pc", 0)
            if post_pc != pre_pc + 1 and not entry.post_state.get("halted"):
                print(f"  PC: {pre_pc} → {post_pc}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        if self.state:
            print(f"  Registers: {self.dump_registers()}")
            print(f"  PC: {self.get_pc()}")
            print(f"  Cycles: {self.get_cycle_count()}")
            print(f"  Output: {self.output!r}")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        state = self.state
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "terminated": self.output is not None,
            "output": self.output,
            "partial_output": state.output.getvalue() if state else "",
            "registers": state.dump_registers() if state else {},
            "pc": state.pc if state else 0,
            "call_depth": len(state.call_stack) if state else 0,
            "trace_length": len(self.trace),
            "error": str(self.error) if self.error else None,
        }


def execute(program: Union[str, Program], max_cycles: Optional[int] = None) -> RunResult:
    """Run a program once on a fresh engine.

    Args:
        program: Source text or parsed Program
        max_cycles: Optional cycle limit

    Returns:
        RunResult describing the finished run
    """
    engine = ExecutionEngine(max_cycles=max_cycles)
    engine.load_program(program)
    output = engine.run()
    return RunResult(
        output=output,
        cycles=engine.get_cycle_count(),
        registers=engine.dump_registers(),
    )


def interpret(source: str, max_cycles: Optional[int] = None) -> Optional[str]:
    """Interpret assembly source text.

    Returns:
        The program's output, or None if it never reached END
    """
    return execute(source, max_cycles=max_cycles).output
