"""miniPL lexer, parser, checker and interpreter — public API."""

from __future__ import annotations

from .ast import Program
from .check import AnnotatedProgram, analyze
from .emit import to_source
from .errors import (
    AssertionFailed as AssertionFailed,
    Diagnostic as Diagnostic,
    DivisionByZero as DivisionByZero,
    InvalidAssertType as InvalidAssertType,
    InvalidInputFormat as InvalidInputFormat,
    LexicalError as LexicalError,
    LoopControlMutationError as LoopControlMutationError,
    MiniPLError as MiniPLError,
    ParseError as ParseError,
    RedeclarationError as RedeclarationError,
    RuntimeFault as RuntimeFault,
    SemanticError as SemanticError,
    TypeMismatchError as TypeMismatchError,
    UndeclaredVariableError as UndeclaredVariableError,
    UnexpectedEndOfInput as UnexpectedEndOfInput,
)
from .parse import Parser
from .runtime import RunResult, run as run_program
from .tokens import tokenize


def parse(source: str) -> Program:
    """Parse miniPL source code into a Program."""
    tokens = tokenize(source)
    parser = Parser(tokens)
    return parser.parse_program()


def check(source: str) -> AnnotatedProgram:
    """Parse and type-check miniPL source. Raises the first error found."""
    return analyze(parse(source))


def run(source: str, *, stdin: str = "") -> RunResult:
    """Parse, check and execute miniPL source against in-memory input.

    Lexical, syntax and semantic errors are raised before anything runs; a
    runtime fault is returned in the result along with the output printed
    before it.
    """
    return run_program(check(source), stdin=stdin)


def emit(program: Program) -> str:
    """Emit a `Program` as canonical miniPL source."""
    return to_source(program)
