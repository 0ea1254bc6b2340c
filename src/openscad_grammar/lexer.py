"""Lexer for the OpenSCAD language.

Turns source text into a list of :class:`~openscad_grammar.tokens.Token`,
skipping whitespace and comments. The token patterns follow the OpenSCAD
grammar: ``$``-prefixed special variables are ordinary identifiers, numbers
may start with a dot or carry an exponent, and ``<file>`` references are only
recognized right after ``include`` or ``use``.
"""

from __future__ import annotations

import logging
import re

from .errors import DiagnosticSink, LexError
from .span import Position, Span
from .tokens import (
    FILE_REFERENCE_PREFIXES,
    KEYWORDS,
    OPERATORS,
    Token,
    TokenKind,
)

logger = logging.getLogger(__name__)


_WHITESPACE = re.compile(r'[ \t\r\n\f\v]+')
_COMMENT_LINE = re.compile(r'//[^\n]*')
_COMMENT_MULTI = re.compile(r'/\*.*?\*/', re.DOTALL)
_IDENTIFIER = re.compile(r'\$?[A-Za-z0-9_]+')
_NUMBER = re.compile(
    r'0[xX][0-9A-Fa-f]+'
    r'|(\d+([.]\d*)?|[.]\d+)([eE][+-]?\d+)?'
)
_FILE_REFERENCE = re.compile(r'<([^>\n]*)>')


class Lexer:
    """Tokenizes OpenSCAD source text.

    Lexical errors never stop the lexer: the offending character is reported
    as a :class:`LexError`, skipped, and lexing resumes with the next one.
    """

    def __init__(self, source: str, origin: str = "<string>",
                 diagnostics: DiagnosticSink | None = None):
        self.source = source
        self.origin = origin
        self.diagnostics = diagnostics
        self.pos = 0
        self.line = 1
        self.col = 1
        self.tokens: list[Token] = []
        self.errors: list[LexError] = []

    def lex(self) -> list[Token]:
        """Tokenize the entire source and return the token list, ending in EOF."""
        while self.pos < len(self.source):
            if self._skip_trivia():
                continue
            ch = self.source[self.pos]
            if ch == '"' or ch == "'":
                self._lex_string(ch)
            elif ch == '<' and self._expects_file_reference():
                self._lex_file_reference()
            elif ch.isalnum() or ch in '_$.':
                if not self._lex_word_or_number():
                    self._lex_operator()
            else:
                self._lex_operator()
        start = self._position()
        self.tokens.append(Token(TokenKind.EOF, "", Span(self.origin, start, start)))
        logger.debug("lexed %d tokens from %s with %d errors",
                     len(self.tokens), self.origin, len(self.errors))
        return self.tokens

    # --- Helpers ---

    def _position(self) -> Position:
        return Position(self.pos, self.line, self.col)

    def _advance(self, count: int) -> None:
        text = self.source[self.pos:self.pos + count]
        newlines = text.count('\n')
        if newlines:
            self.line += newlines
            self.col = count - text.rfind('\n')
        else:
            self.col += count
        self.pos += count

    def _emit(self, kind: TokenKind, text: str, length: int) -> Token:
        start = self._position()
        self._advance(length)
        token = Token(kind, text, Span(self.origin, start, self._position()))
        self.tokens.append(token)
        return token

    def _error(self, message: str, length: int = 1) -> None:
        start = self._position()
        character = self.source[self.pos:self.pos + 1]
        self._advance(length)
        error = LexError(Span(self.origin, start, self._position()), message, character)
        self.errors.append(error)
        if self.diagnostics is not None:
            self.diagnostics.report(error)

    def _skip_trivia(self) -> bool:
        """Skip one run of whitespace or one comment. Returns True if anything was skipped."""
        for pattern in (_WHITESPACE, _COMMENT_MULTI, _COMMENT_LINE):
            match = pattern.match(self.source, self.pos)
            if match:
                self._advance(match.end() - self.pos)
                return True
        if self.source.startswith('/*', self.pos):
            self._error("unterminated block comment", len(self.source) - self.pos)
            return True
        return False

    def _expects_file_reference(self) -> bool:
        return bool(self.tokens) and self.tokens[-1].kind in FILE_REFERENCE_PREFIXES

    # --- Token rules ---

    def _lex_string(self, quote: str) -> None:
        end = self.pos + 1
        while end < len(self.source) and self.source[end] != quote:
            # A backslash keeps the following character from closing the string.
            end += 2 if self.source[end] == '\\' else 1
        if end >= len(self.source):
            self._error("unterminated string literal", len(self.source) - self.pos)
            return
        self._emit(TokenKind.STRING, self.source[self.pos + 1:end], end + 1 - self.pos)

    def _lex_file_reference(self) -> None:
        match = _FILE_REFERENCE.match(self.source, self.pos)
        if match is None:
            self._error("unterminated file reference")
            return
        self._emit(TokenKind.FILE, match.group(1), match.end() - self.pos)

    def _lex_word_or_number(self) -> bool:
        ident = _IDENTIFIER.match(self.source, self.pos)
        number = _NUMBER.match(self.source, self.pos)
        ident_len = ident.end() - self.pos if ident else 0
        number_len = number.end() - self.pos if number else 0
        if number_len and number_len >= ident_len:
            self._emit(TokenKind.NUMBER, number.group(0), number_len)
            return True
        if ident_len:
            text = ident.group(0)
            self._emit(KEYWORDS.get(text, TokenKind.IDENTIFIER), text, ident_len)
            return True
        return False

    def _lex_operator(self) -> None:
        for text, kind in OPERATORS:
            if self.source.startswith(text, self.pos):
                self._emit(kind, text, len(text))
                return
        self._error(f"unexpected character {self.source[self.pos]!r}")


def tokenize(text: str, origin: str = "<string>",
             diagnostics: DiagnosticSink | None = None) -> list[Token]:
    """Convert source text into a token list terminated by an EOF token.

    Args:
        text: OpenSCAD source text.
        origin: Name of the source, copied into every token span.
        diagnostics: Optional sink that receives each :class:`LexError`.

    Returns:
        The tokens, without whitespace or comments, ending with ``TokenKind.EOF``.
    """
    return Lexer(text, origin, diagnostics).lex()
