from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .errors import StepLimitExceeded, UnmatchedBracket
from .interpreter import ScrewtapeInterpreter

DEMO_PROGRAM = (
    "+++++>++++++++[<+++++>-]<.>++++[<++++>-]<.>+++++<."
    ">++++++++[<++++>-]<.>+++<.>+++++++<."
)


def _read_source(path: str) -> str:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    return source_path.read_text(encoding="utf-8")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Screwtape interpreter CLI")
    parser.add_argument("source", nargs="?", help="Path to a Screwtape program")
    parser.add_argument("-e", "--eval", dest="program", help="Program text to execute")
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Run the built-in demo program",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Abort after this many instructions (default: unbounded)",
    )
    parser.add_argument(
        "--wrap",
        action="store_true",
        help="Use 8-bit cells that wrap around at 0 and 255",
    )
    parser.add_argument(
        "--show-tape",
        action="store_true",
        help="Print the final tape and pointer value to stderr",
    )
    parser.add_argument("--verbose", action="store_true", help="Trace every instruction")
    args = parser.parse_args(argv)

    given = [args.source is not None, args.program is not None, args.demo]
    if sum(given) != 1:
        parser.error("provide exactly one of SOURCE, --eval or --demo")

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    if args.demo:
        program = DEMO_PROGRAM
    elif args.program is not None:
        program = args.program
    else:
        try:
            program = _read_source(args.source)
        except OSError as exc:
            print(str(exc), file=sys.stderr)
            return 1

    if args.wrap:
        interpreter = ScrewtapeInterpreter(cell_min=0, cell_max=255, debug=args.verbose)
    else:
        interpreter = ScrewtapeInterpreter(debug=args.verbose)

    try:
        output = interpreter.execute(program, max_steps=args.max_steps)
    except UnmatchedBracket as exc:
        print(f"Invalid program: {exc}", file=sys.stderr)
        return 1
    except StepLimitExceeded as exc:
        sys.stdout.write("".join(interpreter.output_buffer))
        print(f"\n{exc}", file=sys.stderr)
        return 1

    sys.stdout.write(output)
    if output and not output.endswith("\n"):
        sys.stdout.write("\n")

    if args.show_tape:
        print(f"tape={interpreter.tape_data()}", file=sys.stderr)
        print(f"pointer_value={interpreter.pointer_value()}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
