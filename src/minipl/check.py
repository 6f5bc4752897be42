"""miniPL typechecker — validates a parsed Program against the language's static rules.

Analysis stops at the first error. On success the program is returned
together with a side table of expression types; the tree itself is not
touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .ast import (
    TY_BOOL,
    TY_INT,
    TY_STRING,
    AssertStmt,
    Assign,
    BinaryOp,
    BoolLit,
    Expr,
    ForStmt,
    IfStmt,
    IntLit,
    Pos,
    PrintStmt,
    Program,
    ReadStmt,
    Stmt,
    StringLit,
    UnaryOp,
    Var,
    VarDecl,
)
from .errors import (
    InvalidAssertType,
    LoopControlMutationError,
    RedeclarationError,
    TypeMismatchError,
    UndeclaredVariableError,
)

logger = logging.getLogger(__name__)


# ============================================================
# SYMBOLS / RESULT
# ============================================================


@dataclass
class Symbol:
    name: str
    typ: str
    pos: Pos
    is_loop_control: bool = False


@dataclass
class AnnotatedProgram:
    """A checked program plus the inferred type of every expression node."""

    program: Program
    types: dict[int, str] = field(default_factory=dict)

    def type_of(self, expr: Expr) -> str:
        return self.types[id(expr)]


# ============================================================
# CHECKER
# ============================================================


class Checker:
    def __init__(self) -> None:
        self.scopes: list[dict[str, Symbol]] = []
        self.types: dict[int, str] = {}

    # ── Scope management ──────────────────────────────────────

    def enter_scope(self) -> None:
        self.scopes.append({})

    def exit_scope(self) -> None:
        self.scopes.pop()

    def ensure_undeclared(self, name: str, pos: Pos) -> None:
        """Reject a name taken in the current scope or by an enclosing loop.

        Loop control variables cannot be shadowed anywhere inside their loop,
        so within the body the name always refers to the read-only counter.
        """
        scope = self.scopes[-1]
        if name in scope:
            prev = scope[name]
            raise RedeclarationError(
                "'"
                + name
                + "' already declared in this scope (line "
                + str(prev.pos.line)
                + ")",
                pos,
            )
        for outer in self.scopes:
            sym = outer.get(name)
            if sym is not None and sym.is_loop_control:
                raise RedeclarationError(
                    "'"
                    + name
                    + "' shadows the loop control variable declared on line "
                    + str(sym.pos.line),
                    pos,
                )

    def declare(self, name: str, typ: str, pos: Pos, *, loop_control: bool = False) -> None:
        self.ensure_undeclared(name, pos)
        self.scopes[-1][name] = Symbol(name, typ, pos, loop_control)

    def lookup(self, name: str, pos: Pos) -> Symbol:
        # Search scopes innermost-out
        i = len(self.scopes) - 1
        while i >= 0:
            if name in self.scopes[i]:
                return self.scopes[i][name]
            i -= 1
        raise UndeclaredVariableError("undeclared variable '" + name + "'", pos)

    def lookup_mutable(self, name: str, pos: Pos) -> Symbol:
        sym = self.lookup(name, pos)
        if sym.is_loop_control:
            raise LoopControlMutationError(
                "cannot modify loop control variable '" + name + "'", pos
            )
        return sym

    # ── Statement checking ────────────────────────────────────

    def check_program(self, program: Program) -> None:
        self.enter_scope()
        self.check_stmts(program.stmts)
        self.exit_scope()

    def check_stmts(self, stmts: tuple[Stmt, ...]) -> None:
        for s in stmts:
            self.check_stmt(s)

    def check_stmt(self, stmt: Stmt) -> None:
        if isinstance(stmt, VarDecl):
            self.check_var_decl(stmt)
        elif isinstance(stmt, Assign):
            self.check_assign(stmt)
        elif isinstance(stmt, ForStmt):
            self.check_for_stmt(stmt)
        elif isinstance(stmt, IfStmt):
            self.check_if_stmt(stmt)
        elif isinstance(stmt, ReadStmt):
            self.lookup_mutable(stmt.target, stmt.pos)
        elif isinstance(stmt, PrintStmt):
            self.check_expr(stmt.expr)
        elif isinstance(stmt, AssertStmt):
            typ = self.check_expr(stmt.expr)
            if typ != TY_BOOL:
                raise InvalidAssertType("assert requires bool, got " + typ, stmt.expr.pos)
        else:
            raise TypeError("unhandled statement type: " + type(stmt).__name__)

    def check_var_decl(self, stmt: VarDecl) -> None:
        self.ensure_undeclared(stmt.name, stmt.pos)
        if stmt.init is not None:
            val_type = self.check_expr(stmt.init)
            if val_type != stmt.typ:
                raise TypeMismatchError(
                    "cannot assign " + val_type + " to " + stmt.typ, stmt.init.pos
                )
        self.declare(stmt.name, stmt.typ, stmt.pos)

    def check_assign(self, stmt: Assign) -> None:
        sym = self.lookup_mutable(stmt.target, stmt.pos)
        val_type = self.check_expr(stmt.value)
        if val_type != sym.typ:
            raise TypeMismatchError(
                "cannot assign " + val_type + " to " + sym.typ, stmt.value.pos
            )

    def check_for_stmt(self, stmt: ForStmt) -> None:
        for bound in (stmt.start, stmt.end):
            bound_type = self.check_expr(bound)
            if bound_type != TY_INT:
                raise TypeMismatchError(
                    "range bound must be int, got " + bound_type, bound.pos
                )
        self.enter_scope()
        self.declare(stmt.var, TY_INT, stmt.pos, loop_control=True)
        self.check_stmts(stmt.body)
        self.exit_scope()

    def check_if_stmt(self, stmt: IfStmt) -> None:
        cond_type = self.check_expr(stmt.cond)
        if cond_type != TY_BOOL:
            raise TypeMismatchError(
                "if condition must be bool, got " + cond_type, stmt.cond.pos
            )
        self.enter_scope()
        self.check_stmts(stmt.then_body)
        self.exit_scope()
        if stmt.else_body is not None:
            self.enter_scope()
            self.check_stmts(stmt.else_body)
            self.exit_scope()

    # ── Expression checking ───────────────────────────────────

    def check_expr(self, expr: Expr) -> str:
        """Type-check an expression, record and return its type."""
        typ = self._expr_type(expr)
        self.types[id(expr)] = typ
        return typ

    def _expr_type(self, expr: Expr) -> str:
        if isinstance(expr, IntLit):
            return TY_INT
        if isinstance(expr, StringLit):
            return TY_STRING
        if isinstance(expr, BoolLit):
            return TY_BOOL
        if isinstance(expr, Var):
            return self.lookup(expr.name, expr.pos).typ
        if isinstance(expr, BinaryOp):
            return self.check_binary_chain(expr)
        if isinstance(expr, UnaryOp):
            operand = self.check_expr(expr.operand)
            return self.check_unary_op_type(expr.op, operand, expr.pos)
        raise TypeError("unhandled expression type: " + type(expr).__name__)

    def check_binary_chain(self, expr: BinaryOp) -> str:
        """Type a left-nested operator chain iteratively, innermost first."""
        spine: list[BinaryOp] = []
        node: Expr = expr
        while isinstance(node, BinaryOp):
            spine.append(node)
            node = node.left
        typ = self.check_expr(node)
        for op_node in reversed(spine):
            right = self.check_expr(op_node.right)
            typ = self.check_binary_op_types(op_node.op, typ, right, op_node.pos)
            # The outermost node is recorded by check_expr.
            if op_node is not expr:
                self.types[id(op_node)] = typ
        return typ

    def check_binary_op_types(self, op: str, left: str, right: str, pos: Pos) -> str:
        if left != right:
            raise TypeMismatchError(
                "operands of " + op + " must be same type, got " + left + " and " + right,
                pos,
            )
        # Equality: any type
        if op == "=":
            return TY_BOOL
        # Ordering: int only
        if op == "<":
            if left != TY_INT:
                raise TypeMismatchError("ordering not defined for " + left, pos)
            return TY_BOOL
        # Addition doubles as string concatenation
        if op == "+":
            if left not in (TY_INT, TY_STRING):
                raise TypeMismatchError("+ not defined for " + left, pos)
            return left
        if op in ("-", "*", "/"):
            if left != TY_INT:
                raise TypeMismatchError(op + " not defined for " + left, pos)
            return TY_INT
        if op == "&":
            if left != TY_BOOL:
                raise TypeMismatchError("& requires bool, got " + left, pos)
            return TY_BOOL
        raise TypeError("unknown binary operator: " + op)

    def check_unary_op_type(self, op: str, operand: str, pos: Pos) -> str:
        if op == "-" or op == "+":
            if operand != TY_INT:
                raise TypeMismatchError("unary " + op + " not defined for " + operand, pos)
            return TY_INT
        if op == "!":
            if operand != TY_BOOL:
                raise TypeMismatchError("logical not requires bool, got " + operand, pos)
            return TY_BOOL
        raise TypeError("unknown unary operator: " + op)


# ============================================================
# PUBLIC API
# ============================================================


def analyze(program: Program) -> AnnotatedProgram:
    """Type-check a parsed Program. Raises the first SemanticError found."""
    checker = Checker()
    checker.check_program(program)
    logger.debug("checked program, %d typed expressions", len(checker.types))
    return AnnotatedProgram(program, checker.types)
