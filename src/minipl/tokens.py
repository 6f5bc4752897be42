"""miniPL tokenizer — lexes source into a lazy stream of tokens."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from .ast import Pos
from .errors import LexicalError

logger = logging.getLogger(__name__)


# Token type constants
TK_INT = "INT"
TK_STRING = "STRING"
TK_IDENT = "IDENT"
TK_KEYWORD = "KEYWORD"
TK_OP = "OP"
TK_PUNCT = "PUNCT"
TK_EOF = "EOF"

KEYWORDS: set[str] = {
    "assert",
    "bool",
    "do",
    "else",
    "end",
    "for",
    "if",
    "in",
    "int",
    "print",
    "read",
    "string",
    "var",
}

# Two-character tokens, checked before their one-character prefixes
MULTI_OPS: list[str] = [":=", ".."]

SINGLE_OPS: set[str] = {"+", "-", "*", "/", "=", "<", "&", "!"}

PUNCTUATION: set[str] = {":", ";", "(", ")", ","}

ESCAPE_MAP: dict[str, str] = {
    "n": "\n",
    "t": "\t",
    "\\": "\\",
    '"': '"',
}

# Integers are 64-bit signed two's complement.
INT_MIN: int = -(2**63)
INT_MAX: int = 2**63 - 1


@dataclass(frozen=True)
class Token:
    """A token with type, raw lexeme, and position.

    value holds the decoded payload: the int for TK_INT, the escape-resolved
    text for TK_STRING, and the lexeme itself otherwise.
    """

    type: str
    lexeme: str
    line: int
    col: int
    value: object = None

    @property
    def pos(self) -> Pos:
        return Pos(self.line, self.col)

    def __repr__(self) -> str:
        return (
            "Token("
            + self.type
            + ", "
            + repr(self.lexeme)
            + ", "
            + str(self.line)
            + ", "
            + str(self.col)
            + ")"
        )


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_alpha(c: str) -> bool:
    return (c >= "a" and c <= "z") or (c >= "A" and c <= "Z")


def _is_ident_char(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c) or c == "_"


class Lexer:
    """Produces tokens on demand. Not restartable; EOF repeats once reached."""

    def __init__(self, source: str):
        self.source: str = source
        self.pos: int = 0
        self.line: int = 1
        self.col: int = 1
        self._eof: Token | None = None
        self._count: int = 0

    def __iter__(self) -> Iterator[Token]:
        while True:
            tok = self.next_token()
            yield tok
            if tok.type == TK_EOF:
                return

    # ── Helpers ──────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx >= len(self.source):
            return ""
        return self.source[idx]

    def _bump(self) -> str:
        c = self.source[self.pos]
        self.pos += 1
        if c == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return c

    def _token(self, type_: str, start: int, line: int, col: int, value: object = None) -> Token:
        lexeme = self.source[start : self.pos]
        self._count += 1
        return Token(type_, lexeme, line, col, lexeme if value is None else value)

    # ── Trivia ───────────────────────────────────────────────

    def _skip_trivia(self) -> None:
        while self.pos < len(self.source):
            c = self._peek()
            if c == " " or c == "\t" or c == "\r" or c == "\n":
                self._bump()
                continue
            if c == "/" and self._peek(1) == "/":
                while self.pos < len(self.source) and self._peek() != "\n":
                    self._bump()
                continue
            if c == "/" and self._peek(1) == "*":
                self._skip_block_comment()
                continue
            return

    def _skip_block_comment(self) -> None:
        """Skip a block comment. Nested /* */ pairs must balance."""
        start_line = self.line
        start_col = self.col
        self._bump()
        self._bump()
        depth = 1
        while depth > 0:
            if self.pos >= len(self.source):
                raise LexicalError("unterminated block comment", Pos(start_line, start_col))
            if self._peek() == "/" and self._peek(1) == "*":
                self._bump()
                self._bump()
                depth += 1
            elif self._peek() == "*" and self._peek(1) == "/":
                self._bump()
                self._bump()
                depth -= 1
            else:
                self._bump()

    # ── Tokens ───────────────────────────────────────────────

    def next_token(self) -> Token:
        if self._eof is not None:
            return self._eof
        self._skip_trivia()

        start = self.pos
        line = self.line
        col = self.col

        if self.pos >= len(self.source):
            self._eof = Token(TK_EOF, "", line, col, "")
            logger.debug("lexed %d tokens", self._count)
            return self._eof

        c = self._peek()

        # Integer literal
        if _is_digit(c):
            while _is_digit(self._peek()):
                self._bump()
            value = int(self.source[start : self.pos])
            if value > INT_MAX:
                raise LexicalError("integer literal out of range", Pos(line, col))
            return self._token(TK_INT, start, line, col, value)

        # String literal: "..."
        if c == '"':
            return self._string_literal(start, line, col)

        # Identifier or keyword
        if _is_alpha(c):
            while _is_ident_char(self._peek()):
                self._bump()
            word = self.source[start : self.pos]
            if word in KEYWORDS:
                return self._token(TK_KEYWORD, start, line, col)
            return self._token(TK_IDENT, start, line, col)

        # Multi-character operators
        for op in MULTI_OPS:
            if self.source.startswith(op, self.pos):
                for _ in op:
                    self._bump()
                return self._token(TK_OP, start, line, col)

        # Single-character operators and punctuation
        if c in SINGLE_OPS:
            self._bump()
            return self._token(TK_OP, start, line, col)
        if c in PUNCTUATION:
            self._bump()
            return self._token(TK_PUNCT, start, line, col)

        raise LexicalError("unrecognized character: " + repr(c), Pos(line, col))

    def _string_literal(self, start: int, line: int, col: int) -> Token:
        self._bump()  # opening "
        chars: list[str] = []
        while True:
            if self.pos >= len(self.source) or self._peek() == "\n":
                raise LexicalError("unterminated string literal", Pos(line, col))
            c = self._peek()
            if c == '"':
                self._bump()
                break
            if c == "\\":
                esc_pos = Pos(self.line, self.col)
                self._bump()
                if self.pos >= len(self.source):
                    raise LexicalError("unterminated string literal", Pos(line, col))
                e = self._peek()
                if e not in ESCAPE_MAP:
                    raise LexicalError("invalid escape: \\" + e, esc_pos)
                self._bump()
                chars.append(ESCAPE_MAP[e])
                continue
            chars.append(self._bump())
        return self._token(TK_STRING, start, line, col, "".join(chars))


def tokenize(source: str) -> list[Token]:
    """Tokenize miniPL source into a flat list ending with TK_EOF."""
    return list(Lexer(source))
