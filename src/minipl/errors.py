"""miniPL diagnostics — one exception family per pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .ast import Pos

if TYPE_CHECKING:
    from .tokens import Token


@dataclass(frozen=True)
class Diagnostic:
    """Structured form of a single error, as reported to the host."""

    stage: str
    line: int
    col: int
    message: str

    def __str__(self) -> str:
        return (
            self.stage
            + " error: "
            + self.message
            + " at line "
            + str(self.line)
            + " col "
            + str(self.col)
        )


class MiniPLError(Exception):
    """Base error for every stage of the pipeline."""

    stage: str = "internal"
    kind: str = "Error"

    def __init__(self, msg: str, pos: Pos | None = None):
        if pos is None:
            super().__init__(msg)
        else:
            super().__init__(f"{msg} at line {pos.line} col {pos.col}")
        self.msg = msg
        self.pos = pos

    @property
    def line(self) -> int:
        return self.pos.line if self.pos is not None else 0

    @property
    def col(self) -> int:
        return self.pos.col if self.pos is not None else 0

    def diagnostic(self) -> Diagnostic:
        return Diagnostic(self.stage, self.line, self.col, self.msg)


# ============================================================
# Lexing / parsing
# ============================================================


class LexicalError(MiniPLError):
    """Malformed token: bad character, unterminated string or comment."""

    stage = "lexical"
    kind = "LexicalError"


class ParseError(MiniPLError):
    """Token sequence does not match the grammar."""

    stage = "syntax"
    kind = "SyntaxError"

    def __init__(self, msg: str, pos: Pos, expected: tuple[str, ...], found: Token):
        super().__init__(msg, pos)
        self.expected = expected
        self.found = found


# ============================================================
# Semantic analysis
# ============================================================


class SemanticError(MiniPLError):
    stage = "semantic"
    kind = "SemanticError"


class RedeclarationError(SemanticError):
    kind = "RedeclarationError"


class UndeclaredVariableError(SemanticError):
    kind = "UndeclaredVariableError"


class TypeMismatchError(SemanticError):
    kind = "TypeMismatchError"


class LoopControlMutationError(SemanticError):
    kind = "LoopControlMutationError"


class InvalidAssertType(SemanticError):
    kind = "InvalidAssertType"


# ============================================================
# Execution
# ============================================================


class RuntimeFault(MiniPLError):
    """Error detected only while executing a checked program."""

    stage = "runtime"
    kind = "RuntimeFault"


class DivisionByZero(RuntimeFault):
    kind = "DivisionByZero"


class AssertionFailed(RuntimeFault):
    kind = "AssertionFailed"


class InvalidInputFormat(RuntimeFault):
    kind = "InvalidInputFormat"


class UnexpectedEndOfInput(RuntimeFault):
    kind = "UnexpectedEndOfInput"
