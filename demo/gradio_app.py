"""regasm Interactive Demo.

A Gradio web interface for running and inspecting regasm programs.

Usage:
    cd /path/to/regasm
    python demo/gradio_app.py

Features:
    - Write or load assembly programs
    - See the program output, or why there was none
    - Step-by-step execution trace
    - Final register values
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from regasm import ExecutionBudgetExceeded, ExecutionEngine, InterpreterError, ParseError


PROGRAMS_DIR = Path(__file__).parent.parent / "programs"
TRACE_LIMIT = 100


# =============================================================================
# Example Programs
# =============================================================================

EXAMPLE_PROGRAMS = {
    "Factorial 5!": """mov   a, 5
mov   b, a
dec   a
loop:
mul   b, a      ; b *= a
dec   a
cmp   a, 1
jne   loop
msg   '(5!) = ', b
end""",

    "Hello": """msg 'Hello, world!'
end""",

    "Call/Ret": """mov a, 7
call square
msg 'a^2 = ', a
end

square:
mul a, a
ret""",

    "No END": """mov a, 1
msg 'this never becomes output'""",

    "Custom": ""
}

for path in sorted(PROGRAMS_DIR.glob("*.asm")):
    EXAMPLE_PROGRAMS.setdefault(path.name, path.read_text())


# =============================================================================
# Execution Functions
# =============================================================================

def run_program(program: str, max_cycles: int) -> tuple:
    """Execute an assembly program and return results.

    Args:
        program: Assembly source code
        max_cycles: Maximum executed instructions

    Returns:
        Tuple of (output_text, summary_text, trace_text, registers_text)
    """
    if not program.strip():
        return "", "Error: No program provided", "", ""

    engine = ExecutionEngine(max_cycles=int(max_cycles), record_trace=True)

    try:
        engine.load_program(program)
    except ParseError as e:
        return "", f"Parse error: {e}", "", ""

    error_msg = None
    try:
        engine.run()
    except ExecutionBudgetExceeded as e:
        error_msg = f"Stopped: {e}"
    except InterpreterError as e:
        error_msg = f"Error: {e}"

    summary = engine.get_summary()

    # Format output
    if summary["terminated"]:
        output_text = summary["output"]
    elif error_msg:
        output_text = f"(no result; partial output: {summary['partial_output']!r})"
    else:
        output_text = "(no result: the program ran off its last line without END)"

    # Format summary
    summary_lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"Cycles: {summary['cycles']}",
        f"Reached END: {'Yes' if summary['terminated'] else 'No'}",
        f"Final PC: {summary['pc']}",
        f"Call depth: {summary['call_depth']}",
    ]
    if error_msg:
        summary_lines.append(f"\n{error_msg}")
    summary_text = "\n".join(summary_lines)

    # Format trace
    trace = engine.trace
    trace_lines = [
        "EXECUTION TRACE",
        "=" * 60,
    ]
    for entry in trace[:TRACE_LIMIT]:
        trace_lines.append(f"\n--- Cycle {entry.cycle} (line {entry.line}) ---")
        trace_lines.append(f"Instruction: {entry.instruction}")
        trace_lines.append(f"Decoded:     {entry.opcode} {', '.join(entry.operands)}")

        pre_regs = entry.pre_state.get("registers", {})
        post_regs = entry.post_state.get("registers", {})
        changes = []
        for reg in sorted(post_regs):
            if pre_regs.get(reg) != post_regs[reg]:
                changes.append(f"{reg}: {pre_regs.get(reg, 'unset')} -> {post_regs[reg]}")
        if changes:
            trace_lines.append(f"Changes:     {', '.join(changes)}")
        if entry.error:
            trace_lines.append(f"Error:       {entry.error}")

    if len(trace) > TRACE_LIMIT:
        trace_lines.append(f"\n... ({len(trace) - TRACE_LIMIT} more entries)")

    trace_text = "\n".join(trace_lines)

    # Format registers
    regs = summary["registers"]
    reg_lines = [
        "FINAL REGISTERS",
        "=" * 30,
    ]
    for reg in sorted(regs):
        reg_lines.append(f"  {reg}: {regs[reg]:>12}")
    if not regs:
        reg_lines.append("  (none written)")
    registers_text = "\n".join(reg_lines)

    return output_text, summary_text, trace_text, registers_text


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="regasm Playground", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # regasm: Register-Machine Assembly Interpreter

        Named integer registers, labels, jumps, subroutines and `MSG`.
        A program produces output only when it reaches `END`.
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Assembly Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Factorial 5!",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS["Factorial 5!"],
                    label="Source Code",
                    lines=15,
                    placeholder="Enter assembly code here..."
                )

                gr.Markdown("### Settings")

                max_cycles = gr.Slider(
                    minimum=100,
                    maximum=1000000,
                    value=100000,
                    step=100,
                    label="Max Cycles"
                )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                output_box = gr.Textbox(
                    label="Output",
                    lines=2,
                    interactive=False
                )
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=10,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final Registers",
                        lines=10,
                        interactive=False
                    )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("Instruction Reference", open=False):
            gr.Markdown("""
            | Instruction | Description | Example |
            |-------------|-------------|---------|
            | `mov x, y` | Copy register or integer into `x` | `mov a, 5` |
            | `inc x` / `dec x` | Add / subtract 1 | `inc a` |
            | `add x, y` | `x += y` | `add a, b` |
            | `sub x, y` | `x -= y` | `sub a, 1` |
            | `mul x, y` | `x *= y` | `mul a, a` |
            | `div x, y` | `x /= y`, truncating toward zero | `div a, 2` |
            | `cmp x, y` | Remember `x` and `y` for the next jump | `cmp a, 1` |
            | `jmp lbl` | Unconditional jump | `jmp loop` |
            | `jne/je/jge/jg/jle/jl lbl` | Jump if `x != / == / >= / > / <= / < y` | `jne loop` |
            | `call lbl` / `ret` | Subroutine call and return | `call square` |
            | `msg args...` | Append `'text'`, registers and integers to the output | `msg 'a = ', a` |
            | `end` | Finish; the message becomes the output | `end` |

            **Registers**: any name, signed 32-bit, must be written before being read
            **Labels**: `name:` alone on a line
            **Comments**: everything after `;` outside quotes
            """)

        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, max_cycles],
            outputs=[output_box, summary_output, trace_output, registers_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
