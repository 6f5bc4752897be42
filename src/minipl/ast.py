"""miniPL AST — parse-time node definitions.

Nodes are frozen: no stage after the parser mutates the tree. Types inferred
by the checker live in a side table (see `check.AnnotatedProgram`).
"""

from __future__ import annotations

from dataclasses import dataclass, fields


# ============================================================
# POSITION
# ============================================================


@dataclass(frozen=True)
class Pos:
    """Source position, 1-indexed."""

    line: int
    col: int


# ============================================================
# TYPES
# ============================================================

TY_INT: str = "int"
TY_STRING: str = "string"
TY_BOOL: str = "bool"

TYPE_NAMES: tuple[str, ...] = (TY_INT, TY_STRING, TY_BOOL)


# ============================================================
# STATEMENTS
# ============================================================


@dataclass(frozen=True)
class Stmt:
    """Base for all statements."""

    pos: Pos


@dataclass(frozen=True)
class VarDecl(Stmt):
    """var name : type (:= init)?."""

    name: str
    typ: str
    init: Expr | None


@dataclass(frozen=True)
class Assign(Stmt):
    """target := value."""

    target: str
    value: Expr


@dataclass(frozen=True)
class ForStmt(Stmt):
    """for var in start..end do body end for."""

    var: str
    start: Expr
    end: Expr
    body: tuple[Stmt, ...]


@dataclass(frozen=True)
class IfStmt(Stmt):
    """if cond do then_body (else else_body)? end if."""

    cond: Expr
    then_body: tuple[Stmt, ...]
    else_body: tuple[Stmt, ...] | None


@dataclass(frozen=True)
class ReadStmt(Stmt):
    """read target."""

    target: str


@dataclass(frozen=True)
class PrintStmt(Stmt):
    """print expr."""

    expr: Expr


@dataclass(frozen=True)
class AssertStmt(Stmt):
    """assert ( expr )."""

    expr: Expr


@dataclass(frozen=True)
class Program:
    """Top-level statement sequence."""

    stmts: tuple[Stmt, ...]


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass(frozen=True)
class Expr:
    """Base for all expressions."""

    pos: Pos


@dataclass(frozen=True)
class IntLit(Expr):
    """Integer literal."""

    value: int
    raw: str


@dataclass(frozen=True)
class StringLit(Expr):
    """String literal with escapes resolved."""

    value: str


@dataclass(frozen=True)
class BoolLit(Expr):
    """Boolean constant. Not produced by the grammar; kept for tree builders."""

    value: bool


@dataclass(frozen=True)
class Var(Expr):
    """Variable reference."""

    name: str


@dataclass(frozen=True)
class BinaryOp(Expr):
    """left op right. pos is the operator's position."""

    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class UnaryOp(Expr):
    """op operand."""

    op: str
    operand: Expr


# ============================================================
# SERIALIZATION
# ============================================================


def to_dict(obj: object) -> object:
    """Recursively serialize a node to a JSON-compatible structure."""
    if obj is None:
        return None
    if isinstance(obj, (bool, int, str)):
        return obj
    if isinstance(obj, tuple):
        return [to_dict(x) for x in obj]
    if isinstance(obj, Pos):
        return {"line": obj.line, "col": obj.col}
    out: dict[str, object] = {"_type": type(obj).__name__}
    for f in fields(obj):
        out[f.name] = to_dict(getattr(obj, f.name))
    return out
