"""miniPL runtime — evaluate a checked program.

Integers are 64-bit signed two's complement: arithmetic wraps on overflow
and division truncates toward zero. Input arrives one line at a time through
a host-supplied `read_line` callable; each printed line is handed to
`write_line` as soon as it is produced.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, TextIO

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
    ReadStmt,
    Stmt,
    StringLit,
    UnaryOp,
    Var,
    VarDecl,
)
from .check import AnnotatedProgram
from .errors import (
    AssertionFailed,
    DivisionByZero,
    InvalidInputFormat,
    RuntimeFault,
    UnexpectedEndOfInput,
)
from .tokens import INT_MAX, INT_MIN

logger = logging.getLogger(__name__)

ReadLine = Callable[[], "str | None"]
WriteLine = Callable[[str], None]

_INT_INPUT = re.compile(r"[+-]?[0-9]+")


# ============================================================
# Values
# ============================================================


class Value:
    """A runtime value. The subclass carries the miniPL type."""

    def to_string(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class VInt(Value):
    value: int

    def to_string(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class VString(Value):
    value: str

    def to_string(self) -> str:
        return self.value


@dataclass(frozen=True)
class VBool(Value):
    value: bool

    def to_string(self) -> str:
        return "true" if self.value else "false"


def zero_value(typ: str) -> Value:
    if typ == TY_INT:
        return VInt(0)
    if typ == TY_STRING:
        return VString("")
    if typ == TY_BOOL:
        return VBool(False)
    raise TypeError("type '" + typ + "' has no zero value")


def wrap_int(n: int) -> int:
    """Reduce n into the signed 64-bit range."""
    return (n - INT_MIN) % (1 << 64) + INT_MIN


def _int_div_trunc(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        q = -q
    return q


# ============================================================
# Runtime I/O
# ============================================================


class _Input:
    """Serves lines from an in-memory string. None once exhausted."""

    def __init__(self, data: str):
        self._data = data
        self._pos = 0

    def read_line(self) -> str | None:
        if self._pos >= len(self._data):
            return None
        idx = self._data.find("\n", self._pos)
        if idx == -1:
            out = self._data[self._pos :]
            self._pos = len(self._data)
            return out
        out = self._data[self._pos : idx + 1]
        self._pos = idx + 1
        return out


def stream_reader(stream: TextIO) -> ReadLine:
    """Adapt a text stream; blocks until a full line (or EOF) is available."""

    def read_line() -> str | None:
        line = stream.readline()
        if line == "":
            return None
        return line

    return read_line


def stream_writer(stream: TextIO) -> WriteLine:
    """Write each line to stream and flush it immediately."""

    def write_line(line: str) -> None:
        stream.write(line + "\n")
        stream.flush()

    return write_line


@dataclass
class RunResult:
    exit_code: int
    stdout: str
    fault: RuntimeFault | None = None


# ============================================================
# Environment
# ============================================================


@dataclass
class _Binding:
    ty: str
    value: Value


class _RuntimeEnv:
    def __init__(self) -> None:
        self._scopes: list[dict[str, _Binding]] = []

    def push_scope(self) -> None:
        self._scopes.append({})

    def pop_scope(self) -> None:
        self._scopes.pop()

    def bind(self, name: str, typ: str, value: Value) -> None:
        self._scopes[-1][name] = _Binding(typ, value)

    def lookup(self, name: str) -> _Binding:
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        # The checker guarantees resolution; reaching here is a bug.
        raise RuntimeError("unbound name '" + name + "'")

    def get(self, name: str) -> Value:
        return self.lookup(name).value

    def get_ty(self, name: str) -> str:
        return self.lookup(name).ty

    def set(self, name: str, value: Value) -> None:
        binding = self.lookup(name)
        binding.value = value


# ============================================================
# Interpreter
# ============================================================


class Interpreter:
    def __init__(
        self,
        annotated: AnnotatedProgram,
        *,
        read_line: ReadLine,
        write_line: WriteLine,
    ):
        self.annotated = annotated
        self.read_line = read_line
        self.write_line = write_line
        self.env = _RuntimeEnv()

    def run(self) -> None:
        """Execute the program. Raises the RuntimeFault that stops it, if any."""
        stmts = self.annotated.program.stmts
        logger.debug("executing %d top-level statements", len(stmts))
        self.env.push_scope()
        try:
            self._eval_stmts(stmts)
        finally:
            self.env.pop_scope()

    # ---- Statements --------------------------------------------------------

    def _eval_stmts(self, stmts: tuple[Stmt, ...]) -> None:
        for st in stmts:
            self._eval_stmt(st)

    def _eval_block(self, stmts: tuple[Stmt, ...]) -> None:
        self.env.push_scope()
        try:
            self._eval_stmts(stmts)
        finally:
            self.env.pop_scope()

    def _eval_stmt(self, st: Stmt) -> None:
        if isinstance(st, VarDecl):
            if st.init is None:
                self.env.bind(st.name, st.typ, zero_value(st.typ))
            else:
                self.env.bind(st.name, st.typ, self._eval_expr(st.init))
            return
        if isinstance(st, Assign):
            self.env.set(st.target, self._eval_expr(st.value))
            return
        if isinstance(st, ForStmt):
            self._eval_for(st)
            return
        if isinstance(st, IfStmt):
            cond = self._eval_expr(st.cond)
            assert isinstance(cond, VBool)
            if cond.value:
                self._eval_block(st.then_body)
            elif st.else_body is not None:
                self._eval_block(st.else_body)
            return
        if isinstance(st, ReadStmt):
            self._eval_read(st)
            return
        if isinstance(st, PrintStmt):
            self.write_line(self._eval_expr(st.expr).to_string())
            return
        if isinstance(st, AssertStmt):
            cond = self._eval_expr(st.expr)
            assert isinstance(cond, VBool)
            if not cond.value:
                raise AssertionFailed("assertion failed", st.pos)
            return
        raise TypeError("unhandled statement type: " + type(st).__name__)

    def _eval_for(self, st: ForStmt) -> None:
        # Bounds are fixed before the first iteration.
        start = self._eval_int(st.start)
        end = self._eval_int(st.end)
        i = start
        while i <= end:
            self.env.push_scope()
            try:
                self.env.bind(st.var, TY_INT, VInt(i))
                self._eval_stmts(st.body)
            finally:
                self.env.pop_scope()
            i += 1

    def _eval_read(self, st: ReadStmt) -> None:
        line = self.read_line()
        if line is None:
            raise UnexpectedEndOfInput(
                "unexpected end of input while reading '" + st.target + "'", st.pos
            )
        if line.endswith("\n"):
            line = line[:-1]
            if line.endswith("\r"):
                line = line[:-1]
        typ = self.env.get_ty(st.target)
        self.env.set(st.target, self._parse_input(line, typ, st.pos))

    def _parse_input(self, text: str, typ: str, pos: Pos) -> Value:
        if typ == TY_STRING:
            return VString(text)
        stripped = text.strip()
        if typ == TY_INT:
            if _INT_INPUT.fullmatch(stripped) is None:
                raise InvalidInputFormat("expected an integer, got " + repr(text), pos)
            n = int(stripped)
            if n < INT_MIN or n > INT_MAX:
                raise InvalidInputFormat("integer out of range: " + stripped, pos)
            return VInt(n)
        if typ == TY_BOOL:
            if stripped == "true":
                return VBool(True)
            if stripped == "false":
                return VBool(False)
            raise InvalidInputFormat("expected true or false, got " + repr(text), pos)
        raise TypeError("cannot read into type '" + typ + "'")

    # ---- Expressions -------------------------------------------------------

    def _eval_int(self, expr: Expr) -> int:
        v = self._eval_expr(expr)
        assert isinstance(v, VInt)
        return v.value

    def _eval_expr(self, expr: Expr) -> Value:
        if isinstance(expr, IntLit):
            return VInt(expr.value)
        if isinstance(expr, StringLit):
            return VString(expr.value)
        if isinstance(expr, BoolLit):
            return VBool(expr.value)
        if isinstance(expr, Var):
            return self.env.get(expr.name)
        if isinstance(expr, BinaryOp):
            return self._eval_binary_chain(expr)
        if isinstance(expr, UnaryOp):
            operand = self._eval_expr(expr.operand)
            return self._eval_unary(expr.op, operand)
        raise TypeError("unhandled expression type: " + type(expr).__name__)

    def _eval_binary_chain(self, expr: BinaryOp) -> Value:
        # `a + b + c ...` nests to the left; walk that spine without recursing.
        spine: list[BinaryOp] = []
        node: Expr = expr
        while isinstance(node, BinaryOp):
            spine.append(node)
            node = node.left
        value = self._eval_expr(node)
        for op_node in reversed(spine):
            right = self._eval_expr(op_node.right)
            value = self._eval_binary(op_node.op, value, right, pos=op_node.pos)
        return value

    def _eval_unary(self, op: str, operand: Value) -> Value:
        if op == "!":
            assert isinstance(operand, VBool)
            return VBool(not operand.value)
        assert isinstance(operand, VInt)
        if op == "-":
            return VInt(wrap_int(-operand.value))
        if op == "+":
            return operand
        raise TypeError("unknown unary operator: " + op)

    def _eval_binary(self, op: str, left: Value, right: Value, *, pos: Pos) -> Value:
        if op == "=":
            return VBool(left == right)
        if op == "&":
            assert isinstance(left, VBool) and isinstance(right, VBool)
            return VBool(left.value and right.value)
        if isinstance(left, VString) and isinstance(right, VString):
            if op == "+":
                return VString(left.value + right.value)
            raise TypeError("invalid string operator: " + op)
        assert isinstance(left, VInt) and isinstance(right, VInt)
        a = left.value
        b = right.value
        if op == "<":
            return VBool(a < b)
        if op == "+":
            return VInt(wrap_int(a + b))
        if op == "-":
            return VInt(wrap_int(a - b))
        if op == "*":
            return VInt(wrap_int(a * b))
        if op == "/":
            if b == 0:
                raise DivisionByZero("division by zero", pos)
            return VInt(wrap_int(_int_div_trunc(a, b)))
        raise TypeError("unknown binary operator: " + op)


# ============================================================
# Entry points
# ============================================================


def execute(
    annotated: AnnotatedProgram,
    *,
    read_line: ReadLine,
    write_line: WriteLine,
) -> RuntimeFault | None:
    """Run a checked program. Returns the fault that stopped it, or None."""
    interp = Interpreter(annotated, read_line=read_line, write_line=write_line)
    try:
        interp.run()
    except RuntimeFault as fault:
        logger.debug("execution stopped: %s", fault)
        return fault
    return None


def run(annotated: AnnotatedProgram, *, stdin: str = "") -> RunResult:
    """Run a checked program against in-memory input, capturing its output."""
    lines: list[str] = []
    fault = execute(annotated, read_line=_Input(stdin).read_line, write_line=lines.append)
    stdout = "".join(line + "\n" for line in lines)
    if fault is not None:
        return RunResult(1, stdout, fault)
    return RunResult(0, stdout)
