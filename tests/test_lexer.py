"""Tests for the OpenSCAD lexer."""

import pytest

from openscad_grammar import LexError, Token, TokenKind, tokenize


def kinds(text):
    return [tok.kind for tok in tokenize(text)]


def texts(text):
    return [tok.text for tok in tokenize(text) if tok.kind != TokenKind.EOF]


class TestBasics:
    """Test token stream shape."""

    def test_empty_source(self):
        tokens = tokenize("")
        assert len(tokens) == 1
        assert tokens[0].kind == TokenKind.EOF

    def test_always_ends_with_eof(self):
        assert kinds("x = 1;")[-1] == TokenKind.EOF

    def test_simple_assignment(self):
        assert kinds("x = 1;") == [
            TokenKind.IDENTIFIER, TokenKind.ASSIGN, TokenKind.NUMBER,
            TokenKind.SEMICOLON, TokenKind.EOF,
        ]

    def test_origin_recorded_in_spans(self):
        tokens = tokenize("x;", origin="main.scad")
        assert all(tok.span.origin == "main.scad" for tok in tokens)

    def test_token_str(self):
        tokens = tokenize("foo")
        assert str(tokens[0]) == "'foo'"
        assert str(tokens[1]) == "end of input"


class TestKeywordsAndIdentifiers:
    """Test keyword recognition and identifier rules."""

    @pytest.mark.parametrize("word,kind", [
        ("for", TokenKind.FOR),
        ("let", TokenKind.LET),
        ("assert", TokenKind.ASSERT),
        ("echo", TokenKind.ECHO),
        ("each", TokenKind.EACH),
        ("function", TokenKind.FUNCTION),
        ("module", TokenKind.MODULE),
        ("if", TokenKind.IF),
        ("else", TokenKind.ELSE),
        ("include", TokenKind.INCLUDE),
        ("use", TokenKind.USE),
        ("true", TokenKind.TRUE),
        ("false", TokenKind.FALSE),
        ("undef", TokenKind.UNDEF),
    ])
    def test_keyword(self, word, kind):
        assert kinds(word) == [kind, TokenKind.EOF]

    def test_keyword_prefix_is_identifier(self):
        assert kinds("format") == [TokenKind.IDENTIFIER, TokenKind.EOF]
        assert kinds("iffy") == [TokenKind.IDENTIFIER, TokenKind.EOF]

    def test_special_variable(self):
        tokens = tokenize("$fn")
        assert tokens[0].kind == TokenKind.IDENTIFIER
        assert tokens[0].text == "$fn"

    def test_identifier_starting_with_digit(self):
        tokens = tokenize("2d_shape")
        assert tokens[0].kind == TokenKind.IDENTIFIER
        assert tokens[0].text == "2d_shape"


class TestNumbers:
    """Test numeric literal forms."""

    @pytest.mark.parametrize("text", ["1", "42", "2.5", ".5", "3.", "1e3", "1.5e-3", "2E+4", "0x1F"])
    def test_number_forms(self, text):
        tokens = tokenize(text)
        assert tokens[0].kind == TokenKind.NUMBER
        assert tokens[0].text == text
        assert tokens[1].kind == TokenKind.EOF

    def test_member_access_is_not_a_number(self):
        assert kinds("v.x") == [
            TokenKind.IDENTIFIER, TokenKind.DOT, TokenKind.IDENTIFIER, TokenKind.EOF,
        ]


class TestStrings:
    """Test string literals."""

    def test_double_quoted(self):
        tokens = tokenize('"hello"')
        assert tokens[0].kind == TokenKind.STRING
        assert tokens[0].text == "hello"

    def test_single_quoted(self):
        tokens = tokenize("'hi there'")
        assert tokens[0].kind == TokenKind.STRING
        assert tokens[0].text == "hi there"

    def test_escaped_quote_does_not_close(self):
        tokens = tokenize(r'"a\"b"')
        assert tokens[0].kind == TokenKind.STRING
        assert tokens[0].text == r'a\"b'
        assert tokens[1].kind == TokenKind.EOF

    def test_span_includes_quotes(self):
        token = tokenize('"ab"')[0]
        assert token.span.start.offset == 0
        assert token.span.end.offset == 4

    def test_comment_markers_inside_string(self):
        tokens = tokenize('"// not a comment"')
        assert tokens[0].text == "// not a comment"


class TestComments:
    """Test that comments and whitespace are skipped."""

    def test_line_comment(self):
        assert texts("a // comment\nb") == ["a", "b"]

    def test_block_comment(self):
        assert texts("a /* one\ntwo */ b") == ["a", "b"]

    def test_block_comment_is_not_greedy(self):
        assert texts("/* a */ x /* b */") == ["x"]

    def test_position_after_comments(self):
        tokens = tokenize("a // c\n/* x\n y */ b")
        b = tokens[1]
        assert b.text == "b"
        assert b.span.start.line == 3
        assert b.span.start.column == 7


class TestFileReferences:
    """Test <file> tokens after include and use."""

    def test_include(self):
        tokens = tokenize("include <lib/shapes.scad>")
        assert [t.kind for t in tokens] == [TokenKind.INCLUDE, TokenKind.FILE, TokenKind.EOF]
        assert tokens[1].text == "lib/shapes.scad"

    def test_use_without_space(self):
        tokens = tokenize("use<MCAD/boxes.scad>")
        assert tokens[1].kind == TokenKind.FILE
        assert tokens[1].text == "MCAD/boxes.scad"

    def test_less_than_elsewhere(self):
        assert kinds("a < b") == [
            TokenKind.IDENTIFIER, TokenKind.LESS, TokenKind.IDENTIFIER, TokenKind.EOF,
        ]


class TestOperators:
    """Test operator tokens."""

    def test_two_character_operators(self):
        assert kinds("<= >= == != && ||")[:-1] == [
            TokenKind.LESS_EQUAL, TokenKind.GREATER_EQUAL, TokenKind.EQUAL,
            TokenKind.NOT_EQUAL, TokenKind.LOGICAL_AND, TokenKind.LOGICAL_OR,
        ]

    def test_longest_match_without_spaces(self):
        assert kinds("a<=b")[:-1] == [
            TokenKind.IDENTIFIER, TokenKind.LESS_EQUAL, TokenKind.IDENTIFIER,
        ]

    def test_modifier_characters(self):
        assert kinds("! # % *")[:-1] == [
            TokenKind.BANG, TokenKind.HASH, TokenKind.PERCENT, TokenKind.STAR,
        ]

    def test_punctuation(self):
        assert kinds("()[]{},;:?.^")[:-1] == [
            TokenKind.LPAREN, TokenKind.RPAREN, TokenKind.LBRACKET, TokenKind.RBRACKET,
            TokenKind.LBRACE, TokenKind.RBRACE, TokenKind.COMMA, TokenKind.SEMICOLON,
            TokenKind.COLON, TokenKind.QUESTION, TokenKind.DOT, TokenKind.CARET,
        ]


class TestPositions:
    """Test line, column and offset tracking."""

    def test_line_and_column(self):
        tokens = tokenize("a\n  b")
        b = tokens[1]
        assert b.span.start.offset == 4
        assert b.span.start.line == 2
        assert b.span.start.column == 3
        assert b.span.end.column == 4

    def test_eof_position(self):
        tokens = tokenize("ab\n")
        assert tokens[-1].span.start.offset == 3
        assert tokens[-1].span.start.line == 2


class TestLexErrors:
    """Test recovery from lexical errors."""

    def test_unknown_character_is_skipped(self, collector):
        tokens = tokenize("x = 1 @ 2;", diagnostics=collector)
        assert [t.kind for t in tokens] == [
            TokenKind.IDENTIFIER, TokenKind.ASSIGN, TokenKind.NUMBER,
            TokenKind.NUMBER, TokenKind.SEMICOLON, TokenKind.EOF,
        ]
        assert len(collector) == 1
        error = collector.diagnostics[0]
        assert isinstance(error, LexError)
        assert error.character == "@"
        assert error.span.start.offset == 6

    def test_single_ampersand_is_an_error(self, collector):
        tokenize("a & b", diagnostics=collector)
        assert [e.character for e in collector] == ["&"]

    def test_unterminated_string(self, collector):
        tokens = tokenize('x = "abc', diagnostics=collector)
        assert len(collector) == 1
        error = collector.diagnostics[0]
        assert "unterminated string" in error.message
        assert error.span.start.offset == 4
        assert error.span.end.offset == 8
        assert [t.kind for t in tokens] == [TokenKind.IDENTIFIER, TokenKind.ASSIGN,
                                            TokenKind.EOF]

    def test_unterminated_block_comment(self, collector):
        tokens = tokenize("a = 1;\n/* b = 2;", diagnostics=collector)
        (error,) = collector.diagnostics
        assert "unterminated block comment" in error.message
        assert (error.span.start.line, error.span.start.column) == (2, 1)
        assert [t.text for t in tokens] == ["a", "=", "1", ";", ""]

    def test_errors_without_sink(self):
        tokens = tokenize("@@")
        assert [t.kind for t in tokens] == [TokenKind.EOF]

    def test_token_is_immutable(self):
        token = tokenize("x")[0]
        with pytest.raises(AttributeError):
            token.text = "y"
        assert isinstance(token, Token)
