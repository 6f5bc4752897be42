"""miniPL parser — LL(1) recursive descent, one method per grammar production.

Every choice is made from the current token alone; nothing is ever pushed
back. Expression precedence is encoded in the grammar's shape:

    expr       = simple ( relop simple )?
    simple     = term ( addop term )*
    term       = factor ( mulop factor )*
    factor     = INT | STRING | IDENT | '(' expr ')' | unop factor
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from .ast import (
    TYPE_NAMES,
    AssertStmt,
    Assign,
    BinaryOp,
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
from .errors import ParseError
from .tokens import TK_EOF, TK_IDENT, TK_INT, TK_STRING, Token

logger = logging.getLogger(__name__)

REL_OPS: tuple[str, ...] = ("=", "<")
ADD_OPS: tuple[str, ...] = ("+", "-")
MUL_OPS: tuple[str, ...] = ("*", "/", "&")
UNARY_OPS: tuple[str, ...] = ("-", "+", "!")

# Parenthesized and unary operands nest recursively; left-nested operator
# chains do not count.
MAX_NESTING: int = 100

# The EOF token's lexeme; used as the terminator of the top-level list.
END_OF_INPUT: str = ""


def _describe(expected: str) -> str:
    if expected == END_OF_INPUT:
        return "end of input"
    if expected in ("identifier", "expression", "statement", "type"):
        return expected
    return "'" + expected + "'"


def _describe_token(tok: Token) -> str:
    if tok.type == TK_EOF:
        return "end of input"
    return "'" + tok.lexeme + "'"


class Parser:
    """Recursive descent parser for miniPL."""

    def __init__(self, tokens: Iterable[Token]):
        self._tokens: Iterator[Token] = iter(tokens)
        self._current: Token = next(self._tokens)
        self._depth: int = 0

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        return self._current

    def advance(self) -> Token:
        tok = self._current
        if tok.type != TK_EOF:
            self._current = next(self._tokens)
        return tok

    def at(self, lexeme: str) -> bool:
        # String lexemes keep their quotes, so only real keywords,
        # operators and punctuation can match here.
        return self._current.lexeme == lexeme and self._current.type != TK_STRING

    def at_any(self, lexemes: tuple[str, ...]) -> bool:
        for lexeme in lexemes:
            if self.at(lexeme):
                return True
        return False

    def at_type(self, type_: str) -> bool:
        return self._current.type == type_

    def expect(self, lexeme: str) -> Token:
        if not self.at(lexeme):
            raise self.error((lexeme,))
        return self.advance()

    def expect_ident(self) -> Token:
        if not self.at_type(TK_IDENT):
            raise self.error(("identifier",))
        return self.advance()

    def error(self, expected: tuple[str, ...]) -> ParseError:
        tok = self._current
        msg = (
            "expected "
            + " or ".join(_describe(e) for e in expected)
            + ", got "
            + _describe_token(tok)
        )
        return ParseError(msg, tok.pos, expected, tok)

    def _pos(self) -> Pos:
        return self._current.pos

    def _enter_nesting(self, tok: Token) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise ParseError(
                "expression nested deeper than " + str(MAX_NESTING) + " levels",
                tok.pos,
                (),
                tok,
            )

    # ── Top Level ────────────────────────────────────────────

    def parse_program(self) -> Program:
        """Program = StmtList EOF"""
        stmts = self.parse_stmt_list((END_OF_INPUT,))
        logger.debug("parsed %d top-level statements", len(stmts))
        return Program(stmts)

    def parse_stmt_list(self, terminators: tuple[str, ...]) -> tuple[Stmt, ...]:
        """StmtList = Stmt ( ';' Stmt )* ';'?, stopping before a terminator."""
        stmts: list[Stmt] = [self.parse_stmt()]
        while self.at(";"):
            self.advance()
            if self.at_any(terminators):
                return tuple(stmts)
            stmts.append(self.parse_stmt())
        if not self.at_any(terminators):
            raise self.error((";",) + terminators)
        return tuple(stmts)

    # ── Statements ───────────────────────────────────────────

    def parse_stmt(self) -> Stmt:
        if self.at("var"):
            return self.parse_var_decl()
        if self.at_type(TK_IDENT):
            return self.parse_assign()
        if self.at("for"):
            return self.parse_for_stmt()
        if self.at("if"):
            return self.parse_if_stmt()
        if self.at("read"):
            return self.parse_read_stmt()
        if self.at("print"):
            return self.parse_print_stmt()
        if self.at("assert"):
            return self.parse_assert_stmt()
        raise self.error(("statement",))

    def parse_var_decl(self) -> VarDecl:
        pos = self._pos()
        self.expect("var")
        name = self.expect_ident()
        self.expect(":")
        typ = self.parse_type_name()
        init: Expr | None = None
        if self.at(":="):
            self.advance()
            init = self.parse_expr()
        return VarDecl(pos, name.lexeme, typ, init)

    def parse_type_name(self) -> str:
        if not self.at_any(TYPE_NAMES):
            raise self.error(TYPE_NAMES)
        return self.advance().lexeme

    def parse_assign(self) -> Assign:
        target = self.expect_ident()
        self.expect(":=")
        value = self.parse_expr()
        return Assign(target.pos, target.lexeme, value)

    def parse_for_stmt(self) -> ForStmt:
        pos = self._pos()
        self.expect("for")
        var = self.expect_ident()
        self.expect("in")
        start = self.parse_expr()
        self.expect("..")
        end = self.parse_expr()
        self.expect("do")
        body = self.parse_stmt_list(("end",))
        self.expect("end")
        self.expect("for")
        return ForStmt(pos, var.lexeme, start, end, body)

    def parse_if_stmt(self) -> IfStmt:
        pos = self._pos()
        self.expect("if")
        cond = self.parse_expr()
        self.expect("do")
        then_body = self.parse_stmt_list(("else", "end"))
        else_body: tuple[Stmt, ...] | None = None
        if self.at("else"):
            self.advance()
            else_body = self.parse_stmt_list(("end",))
        self.expect("end")
        self.expect("if")
        return IfStmt(pos, cond, then_body, else_body)

    def parse_read_stmt(self) -> ReadStmt:
        pos = self._pos()
        self.expect("read")
        target = self.expect_ident()
        return ReadStmt(pos, target.lexeme)

    def parse_print_stmt(self) -> PrintStmt:
        pos = self._pos()
        self.expect("print")
        return PrintStmt(pos, self.parse_expr())

    def parse_assert_stmt(self) -> AssertStmt:
        pos = self._pos()
        self.expect("assert")
        self.expect("(")
        expr = self.parse_expr()
        self.expect(")")
        return AssertStmt(pos, expr)

    # ── Expressions ──────────────────────────────────────────

    def parse_expr(self) -> Expr:
        """Expr = Simple ( ( '=' | '<' ) Simple )?"""
        left = self.parse_simple_expr()
        if self.at_any(REL_OPS):
            op_tok = self.advance()
            right = self.parse_simple_expr()
            return BinaryOp(op_tok.pos, op_tok.lexeme, left, right)
        return left

    def parse_simple_expr(self) -> Expr:
        """Simple = Term ( ( '+' | '-' ) Term )*"""
        left = self.parse_term()
        while self.at_any(ADD_OPS):
            op_tok = self.advance()
            right = self.parse_term()
            left = BinaryOp(op_tok.pos, op_tok.lexeme, left, right)
        return left

    def parse_term(self) -> Expr:
        """Term = Factor ( ( '*' | '/' | '&' ) Factor )*"""
        left = self.parse_factor()
        while self.at_any(MUL_OPS):
            op_tok = self.advance()
            right = self.parse_factor()
            left = BinaryOp(op_tok.pos, op_tok.lexeme, left, right)
        return left

    def parse_factor(self) -> Expr:
        """Factor = INT | STRING | IDENT | '(' Expr ')' | ( '-' | '+' | '!' ) Factor"""
        tok = self.current()
        if tok.type == TK_INT:
            self.advance()
            return IntLit(tok.pos, int(tok.value), tok.lexeme)
        if tok.type == TK_STRING:
            self.advance()
            return StringLit(tok.pos, str(tok.value))
        if tok.type == TK_IDENT:
            self.advance()
            return Var(tok.pos, tok.lexeme)
        if self.at("(") or self.at_any(UNARY_OPS):
            self._enter_nesting(tok)
            try:
                if self.at("("):
                    self.advance()
                    expr = self.parse_expr()
                    self.expect(")")
                    return expr
                self.advance()
                operand = self.parse_factor()
                return UnaryOp(tok.pos, tok.lexeme, operand)
            finally:
                self._depth -= 1
        raise self.error(("expression",))


def parse_program(tokens: Iterable[Token]) -> Program:
    """Parse a token stream (a `Lexer` or any iterable of tokens)."""
    return Parser(tokens).parse_program()
