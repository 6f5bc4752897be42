"""Tests for the lazy lexer."""

import pytest

from minipl.errors import LexicalError
from minipl.tokens import (
    MULTI_OPS,
    PUNCTUATION,
    SINGLE_OPS,
    TK_EOF,
    TK_IDENT,
    TK_INT,
    TK_KEYWORD,
    Lexer,
    tokenize,
)


def test_end_of_input_repeats():
    lexer = Lexer("x")
    assert lexer.next_token().type == TK_IDENT
    first = lexer.next_token()
    assert first.type == TK_EOF
    for _ in range(3):
        assert lexer.next_token() is first


def test_lexer_is_lazy():
    # The bad character is never reached when only the first token is pulled.
    lexer = Lexer("var $")
    assert lexer.next_token().lexeme == "var"
    with pytest.raises(LexicalError):
        lexer.next_token()


def test_iteration_stops_after_eof():
    toks = list(Lexer("print 1;"))
    assert [t.type for t in toks][-1] == TK_EOF
    assert len(toks) == 4


def test_lexemes_round_trip():
    source = 'var  x : int := 12 ; print "a\\n" + x..y'
    toks = tokenize(source)
    for tok in toks[:-1]:
        line_text = source.split("\n")[tok.line - 1]
        start = tok.col - 1
        assert line_text[start : start + len(tok.lexeme)] == tok.lexeme


def test_lexemes_round_trip_across_lines():
    source = "for i in 1..3 do\n  print i;\nend for;\n"
    for tok in tokenize(source)[:-1]:
        line_text = source.split("\n")[tok.line - 1]
        assert line_text[tok.col - 1 :].startswith(tok.lexeme)


@pytest.mark.parametrize(
    "source",
    [
        'print "a\\n\\t\\\\\\"b" + "";',
        "var x : int := 12; for i in x..y do end for;",
        "assert(!b & 1 < 3 = (4 - 5 * 6 / 7), +z);",
        "if else read string bool print in do end var int 0 007 q_1 W9",
    ],
)
def test_each_lexeme_relexes_to_the_same_token(source):
    toks = tokenize(source)
    assert len(toks) > 1
    for tok in toks[:-1]:
        again = tokenize(tok.lexeme)
        assert len(again) == 2, tok
        assert again[0].type == tok.type
        assert again[0].lexeme == tok.lexeme
        assert again[0].value == tok.value
        assert again[1].type == TK_EOF


def test_relex_covers_every_operator_and_punctuation():
    seen = {t.lexeme for t in tokenize("+ - * / = < & ! := .. : ; ( ) ,")[:-1]}
    assert seen == set(MULTI_OPS) | SINGLE_OPS | PUNCTUATION
    for lexeme in seen:
        assert [t.lexeme for t in tokenize(lexeme)] == [lexeme, ""]


def test_token_values():
    toks = tokenize('42 "x\\ty" foo')
    assert toks[0].type == TK_INT
    assert toks[0].value == 42
    assert toks[1].value == "x\ty"
    assert toks[2].value == "foo"


def test_keywords_include_if_else():
    kinds = [t.type for t in tokenize("if else end")[:-1]]
    assert kinds == [TK_KEYWORD, TK_KEYWORD, TK_KEYWORD]


def test_error_position_of_unterminated_comment():
    with pytest.raises(LexicalError) as exc:
        tokenize("x\n  /* open /* */")
    assert exc.value.pos is not None
    assert (exc.value.line, exc.value.col) == (2, 3)


def test_error_position_of_bad_escape():
    with pytest.raises(LexicalError) as exc:
        tokenize('print "ab\\z"')
    assert (exc.value.line, exc.value.col) == (1, 10)
    assert exc.value.diagnostic().stage == "lexical"


def test_non_ascii_letter_rejected():
    with pytest.raises(LexicalError, match="unrecognized character"):
        tokenize("var é : int;")
