"""miniPL emitter — converts a syntax tree back into canonical miniPL text.

Output re-parses to an equivalent tree. Parentheses appear only where the
grammar's precedence levels require them.
"""

from __future__ import annotations

from .ast import (
    AssertStmt,
    Assign,
    BinaryOp,
    BoolLit,
    Expr,
    ForStmt,
    IfStmt,
    IntLit,
    PrintStmt,
    Program,
    ReadStmt,
    Stmt,
    StringLit,
    UnaryOp,
    Var,
    VarDecl,
)


def to_source(program: Program) -> str:
    """Render a `Program` back into miniPL source text."""
    return _Emitter().emit_program(program)


class _Emitter:
    _INDENT: str = "    "

    # Expression precedence (higher binds tighter)
    _PREC_REL: int = 1
    _PREC_ADD: int = 2
    _PREC_MUL: int = 3
    _PREC_UNARY: int = 4
    _PREC_PRIMARY: int = 5

    _BIN_PREC: dict[str, int] = {
        "=": _PREC_REL,
        "<": _PREC_REL,
        "+": _PREC_ADD,
        "-": _PREC_ADD,
        "*": _PREC_MUL,
        "/": _PREC_MUL,
        "&": _PREC_MUL,
    }

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._indent_level: int = 0

    # ── Public ──────────────────────────────────────────────

    def emit_program(self, program: Program) -> str:
        self._lines = []
        self._indent_level = 0
        for stmt in program.stmts:
            self._emit_stmt(stmt)
        return "\n".join(self._lines) + "\n"

    # ── Lines / Blocks ──────────────────────────────────────

    def _emit_line(self, line: str) -> None:
        self._lines.append(self._INDENT * self._indent_level + line)

    def _emit_stmt_block(self, stmts: tuple[Stmt, ...]) -> None:
        self._indent_level += 1
        for stmt in stmts:
            self._emit_stmt(stmt)
        self._indent_level -= 1

    # ── Statements ──────────────────────────────────────────

    def _emit_stmt(self, stmt: Stmt) -> None:
        if isinstance(stmt, VarDecl):
            line = "var " + stmt.name + ": " + stmt.typ
            if stmt.init is not None:
                line += " := " + self._render_expr(stmt.init, self._PREC_REL)
            self._emit_line(line + ";")
            return
        if isinstance(stmt, Assign):
            value = self._render_expr(stmt.value, self._PREC_REL)
            self._emit_line(stmt.target + " := " + value + ";")
            return
        if isinstance(stmt, ForStmt):
            start = self._render_expr(stmt.start, self._PREC_REL)
            end = self._render_expr(stmt.end, self._PREC_REL)
            self._emit_line("for " + stmt.var + " in " + start + ".." + end + " do")
            self._emit_stmt_block(stmt.body)
            self._emit_line("end for;")
            return
        if isinstance(stmt, IfStmt):
            self._emit_line("if " + self._render_expr(stmt.cond, self._PREC_REL) + " do")
            self._emit_stmt_block(stmt.then_body)
            if stmt.else_body is not None:
                self._emit_line("else")
                self._emit_stmt_block(stmt.else_body)
            self._emit_line("end if;")
            return
        if isinstance(stmt, ReadStmt):
            self._emit_line("read " + stmt.target + ";")
            return
        if isinstance(stmt, PrintStmt):
            self._emit_line("print " + self._render_expr(stmt.expr, self._PREC_REL) + ";")
            return
        if isinstance(stmt, AssertStmt):
            self._emit_line("assert(" + self._render_expr(stmt.expr, self._PREC_REL) + ");")
            return
        raise TypeError("unhandled statement type: " + type(stmt).__name__)

    # ── Expressions ─────────────────────────────────────────

    def _expr_prec(self, expr: Expr) -> int:
        if isinstance(expr, BinaryOp):
            return self._BIN_PREC[expr.op]
        if isinstance(expr, UnaryOp):
            return self._PREC_UNARY
        return self._PREC_PRIMARY

    def _render_expr(self, expr: Expr, parent_prec: int, side: str = "") -> str:
        prec = self._expr_prec(expr)
        text = self._render_expr_inner(expr)

        if self._needs_parens(prec, parent_prec, side):
            return "(" + text + ")"
        return text

    def _needs_parens(self, prec: int, parent_prec: int, side: str) -> bool:
        if prec < parent_prec:
            return True
        if prec == parent_prec and side == "right" and prec in (
            self._PREC_ADD,
            self._PREC_MUL,
        ):
            return True
        # Relational operators do not chain.
        return prec == parent_prec and side != "" and prec == self._PREC_REL

    def _render_expr_inner(self, expr: Expr) -> str:
        if isinstance(expr, IntLit):
            return expr.raw
        if isinstance(expr, StringLit):
            return self._quote_string(expr.value)
        if isinstance(expr, BoolLit):
            # No boolean literal in the surface syntax.
            return "(0 = 0)" if expr.value else "(0 = 1)"
        if isinstance(expr, Var):
            return expr.name
        if isinstance(expr, UnaryOp):
            operand = self._render_expr(expr.operand, self._PREC_UNARY, "right")
            return expr.op + operand
        if isinstance(expr, BinaryOp):
            return self._render_binary_chain(expr)
        raise TypeError("unhandled expression type: " + type(expr).__name__)

    def _render_binary_chain(self, expr: BinaryOp) -> str:
        # Left-nested chains are rendered innermost first, without recursion.
        spine: list[BinaryOp] = []
        node: Expr = expr
        while isinstance(node, BinaryOp):
            spine.append(node)
            node = node.left
        spine.reverse()
        text = self._render_expr(node, self._BIN_PREC[spine[0].op], "left")
        prev_prec = 0
        for op_node in spine:
            op_prec = self._BIN_PREC[op_node.op]
            if prev_prec and self._needs_parens(prev_prec, op_prec, "left"):
                text = "(" + text + ")"
            right = self._render_expr(op_node.right, op_prec, "right")
            text = text + " " + op_node.op + " " + right
            prev_prec = op_prec
        return text

    # ── Literals ────────────────────────────────────────────

    def _quote_string(self, s: str) -> str:
        out = '"'
        for ch in s:
            if ch == "\n":
                out += "\\n"
            elif ch == "\t":
                out += "\\t"
            elif ch == "\\":
                out += "\\\\"
            elif ch == '"':
                out += '\\"'
            else:
                out += ch
        return out + '"'
