#!/usr/bin/env python3
"""regasm Command Line Interface.

Run register-machine assembly programs.

Usage:
    python main.py --program programs/factorial.asm
    python main.py --inline "MSG 'hi'\\nEND"
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from regasm import ExecutionEngine, ExecutionBudgetExceeded, InterpreterError


EXIT_OK = 0
EXIT_NO_RESULT = 1
EXIT_ERROR = 2


def main():
    parser = argparse.ArgumentParser(
        description="regasm: register-machine assembly interpreter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run the factorial program
    python main.py --program programs/factorial.asm

    # Run with full trace output
    python main.py --program programs/gcd.asm --trace

    # Run inline assembly (\\n separates lines)
    python main.py --inline "MOV a, 6\\nMUL a, 7\\nMSG 'a = ', a\\nEND"
        """
    )

    parser.add_argument(
        "--program", "-p",
        type=str,
        help="Path to assembly program file (.asm)"
    )
    parser.add_argument(
        "--inline", "-i",
        type=str,
        help="Inline assembly (separate lines with a literal \\n)"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=100000,
        help="Maximum executed instructions, 0 for no limit. Default: 100000"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (program output only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    if not args.program and not args.inline:
        parser.error("Either --program or --inline is required")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )

    # Load program
    if args.program:
        program_path = Path(args.program)
        if not program_path.exists():
            print(f"Error: Program file not found: {args.program}")
            return EXIT_ERROR
        source = program_path.read_text()
        if not args.quiet:
            print(f"Loading program: {args.program}")
    else:
        source = args.inline.replace("\\n", "\n")
        if not args.quiet:
            print("Running inline assembly")

    engine = ExecutionEngine(
        max_cycles=args.max_cycles or None,
        record_trace=args.trace,
    )

    try:
        engine.load_program(source)
    except InterpreterError as e:
        print(f"Parse error: {e}")
        return EXIT_ERROR

    if not args.quiet:
        print("-" * 60)
        print("Executing...")
        print("-" * 60)

    failed = False
    try:
        engine.run()
    except ExecutionBudgetExceeded as e:
        print(f"Execution stopped: {e}")
        failed = True
    except InterpreterError as e:
        print(f"Execution error: {e}")
        failed = True

    # Output
    if args.trace:
        engine.print_trace()
    elif not args.quiet:
        print()
        summary = engine.get_summary()
        print(f"Cycles: {summary['cycles']}")
        print(f"Terminated: {summary['terminated']}")
        print(f"Registers: {summary['registers']}")
        if summary['error']:
            print(f"Partial output: {summary['partial_output']!r}")

    if engine.output is not None:
        if not args.quiet:
            print("Output:")
        print(engine.output)
    elif not failed and not args.quiet:
        print("No result: program ended without END")

    if failed:
        return EXIT_ERROR
    return EXIT_OK if engine.output is not None else EXIT_NO_RESULT


if __name__ == "__main__":
    sys.exit(main())
