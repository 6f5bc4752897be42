"""miniPL CLI — check and run .mpl files."""

from __future__ import annotations

import logging
import sys

from .check import analyze
from .emit import to_source
from .errors import MiniPLError
from .parse import Parser
from .runtime import execute, stream_reader, stream_writer
from .tokens import tokenize

PHASES: list[str] = ["lex", "parse", "check", "run"]

USAGE: str = """\
minipl [OPTIONS] FILE

Run a miniPL program. Program input is read from stdin, one line per `read`.

Options:
  --stop-at PHASE  Stop after phase: lex (print tokens), parse (print the
                   program in canonical form), check, run (default)
  --verbose        Log pipeline stages to stderr
  --help           Show this help message

Exit status is 0 on success, 1 on any program error, 2 on usage errors.
"""


def _report(e: MiniPLError) -> int:
    print("minipl: " + str(e.diagnostic()), file=sys.stderr)
    return 1


def parse_args(args: list[str]) -> tuple[str, str, bool] | int:
    """Parse command-line arguments. Returns (file, stop_at, verbose) or an exit code."""
    filepath: str = ""
    stop_at = "run"
    verbose = False
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            return 0
        elif arg == "--verbose" or arg == "-v":
            verbose = True
            i += 1
        elif arg == "--stop-at":
            if i + 1 >= len(args):
                print("minipl: --stop-at requires an argument", file=sys.stderr)
                return 2
            stop_at = args[i + 1]
            if stop_at not in PHASES:
                print("minipl: unknown phase '" + stop_at + "'", file=sys.stderr)
                return 2
            i += 2
        elif arg.startswith("-"):
            print("minipl: unknown flag '" + arg + "'", file=sys.stderr)
            return 2
        elif filepath == "":
            filepath = arg
            i += 1
        else:
            print("minipl: unexpected argument '" + arg + "'", file=sys.stderr)
            return 2
    if filepath == "":
        print("minipl: missing file argument", file=sys.stderr)
        return 2
    return (filepath, stop_at, verbose)


def _read_source(filepath: str) -> str | None:
    try:
        with open(filepath, "rb") as f:
            raw = f.read()
    except FileNotFoundError:
        print("minipl: " + filepath + ": No such file or directory", file=sys.stderr)
        return None
    except OSError as e:
        print("minipl: " + filepath + ": " + str(e), file=sys.stderr)
        return None
    try:
        return raw.decode("utf-8")
    except ValueError:
        print("minipl: " + filepath + ": invalid utf-8", file=sys.stderr)
        return None


def run_pipeline(source: str, stop_at: str) -> int:
    """Run the pipeline up to stop_at. Returns the exit code."""
    try:
        if stop_at == "lex":
            # A lexical error leaves stdout empty.
            tokens = tokenize(source)
            for tok in tokens:
                print(str(tok.line) + ":" + str(tok.col) + " " + tok.type + " " + tok.lexeme)
            return 0
        program = Parser(tokenize(source)).parse_program()
        if stop_at == "parse":
            sys.stdout.write(to_source(program))
            return 0
        annotated = analyze(program)
        if stop_at == "check":
            return 0
    except MiniPLError as e:
        return _report(e)
    fault = execute(
        annotated,
        read_line=stream_reader(sys.stdin),
        write_line=stream_writer(sys.stdout),
    )
    if fault is not None:
        return _report(fault)
    return 0


def main(argv: list[str] | None = None) -> int:
    parsed = parse_args(argv if argv is not None else sys.argv[1:])
    if isinstance(parsed, int):
        return parsed
    filepath, stop_at, verbose = parsed
    if verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr)
    source = _read_source(filepath)
    if source is None:
        return 1
    return run_pipeline(source, stop_at)


if __name__ == "__main__":
    sys.exit(main())
