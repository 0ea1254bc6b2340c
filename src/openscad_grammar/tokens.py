"""Token kinds and token representation for the OpenSCAD lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .span import Span


class TokenKind(Enum):
    # Keywords
    FOR = auto()
    LET = auto()
    ASSERT = auto()
    ECHO = auto()
    EACH = auto()
    FUNCTION = auto()
    MODULE = auto()
    IF = auto()
    ELSE = auto()
    INCLUDE = auto()
    USE = auto()
    TRUE = auto()
    FALSE = auto()
    UNDEF = auto()

    # Literals and names
    IDENTIFIER = auto()
    NUMBER = auto()
    STRING = auto()
    FILE = auto()

    # Operators
    LOGICAL_OR = auto()
    LOGICAL_AND = auto()
    EQUAL = auto()
    NOT_EQUAL = auto()
    LESS_EQUAL = auto()
    GREATER_EQUAL = auto()
    LESS = auto()
    GREATER = auto()
    ASSIGN = auto()
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    PERCENT = auto()
    CARET = auto()
    BANG = auto()
    HASH = auto()
    QUESTION = auto()
    COLON = auto()

    # Punctuation
    SEMICOLON = auto()
    COMMA = auto()
    DOT = auto()
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LBRACE = auto()
    RBRACE = auto()

    EOF = auto()


KEYWORDS: dict[str, TokenKind] = {
    "for": TokenKind.FOR,
    "let": TokenKind.LET,
    "assert": TokenKind.ASSERT,
    "echo": TokenKind.ECHO,
    "each": TokenKind.EACH,
    "function": TokenKind.FUNCTION,
    "module": TokenKind.MODULE,
    "if": TokenKind.IF,
    "else": TokenKind.ELSE,
    "include": TokenKind.INCLUDE,
    "use": TokenKind.USE,
    "true": TokenKind.TRUE,
    "false": TokenKind.FALSE,
    "undef": TokenKind.UNDEF,
}

# Longest operators first so that "<=" is never split into "<" "=".
OPERATORS: tuple[tuple[str, TokenKind], ...] = (
    ("||", TokenKind.LOGICAL_OR),
    ("&&", TokenKind.LOGICAL_AND),
    ("==", TokenKind.EQUAL),
    ("!=", TokenKind.NOT_EQUAL),
    ("<=", TokenKind.LESS_EQUAL),
    (">=", TokenKind.GREATER_EQUAL),
    ("<", TokenKind.LESS),
    (">", TokenKind.GREATER),
    ("=", TokenKind.ASSIGN),
    ("+", TokenKind.PLUS),
    ("-", TokenKind.MINUS),
    ("*", TokenKind.STAR),
    ("/", TokenKind.SLASH),
    ("%", TokenKind.PERCENT),
    ("^", TokenKind.CARET),
    ("!", TokenKind.BANG),
    ("#", TokenKind.HASH),
    ("?", TokenKind.QUESTION),
    (":", TokenKind.COLON),
    (";", TokenKind.SEMICOLON),
    (",", TokenKind.COMMA),
    (".", TokenKind.DOT),
    ("(", TokenKind.LPAREN),
    (")", TokenKind.RPAREN),
    ("[", TokenKind.LBRACKET),
    ("]", TokenKind.RBRACKET),
    ("{", TokenKind.LBRACE),
    ("}", TokenKind.RBRACE),
)

# Module instantiation modifier characters, keyed by the token that spells them.
MODIFIERS: dict[TokenKind, str] = {
    TokenKind.BANG: "!",
    TokenKind.HASH: "#",
    TokenKind.PERCENT: "%",
    TokenKind.STAR: "*",
}

# Token kinds after which a '<' starts a file reference rather than an operator.
FILE_REFERENCE_PREFIXES = frozenset({TokenKind.INCLUDE, TokenKind.USE})


@dataclass(frozen=True)
class Token:
    """A single lexical token.

    Attributes:
        kind: The token kind.
        text: The token text. String and file tokens exclude their delimiters.
        span: Where the token (including delimiters) appears in the source.
    """
    kind: TokenKind
    text: str
    span: "Span"

    def __str__(self):
        if self.kind == TokenKind.EOF:
            return "end of input"
        return repr(self.text)
