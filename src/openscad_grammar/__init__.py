"""Parse OpenSCAD source into resolved syntax trees for editor tooling."""

from .ast import Binding, BindingKind, Document, Scope, ScopeResolver, resolve
from .builtins import OPENSCAD_BUILTINS, Builtins
from .errors import (
    BindingError,
    Diagnostic,
    DiagnosticCollector,
    DiagnosticSink,
    LexError,
    LoggingDiagnosticSink,
    ParseError,
    Severity,
    format_diagnostic,
)
from .lexer import Lexer, tokenize
from .loader import (
    clear_ast_cache,
    findLibraryFile,
    getASTfromFile,
    getASTfromLibraryFile,
    getASTfromString,
)
from .parser import Parser, parse
from .span import Position, Span
from .tokens import Token, TokenKind

__all__ = [
    "Binding",
    "BindingError",
    "BindingKind",
    "Builtins",
    "Diagnostic",
    "DiagnosticCollector",
    "DiagnosticSink",
    "Document",
    "LexError",
    "Lexer",
    "LoggingDiagnosticSink",
    "OPENSCAD_BUILTINS",
    "ParseError",
    "Parser",
    "Position",
    "Scope",
    "ScopeResolver",
    "Severity",
    "Span",
    "Token",
    "TokenKind",
    "clear_ast_cache",
    "findLibraryFile",
    "format_diagnostic",
    "getASTfromFile",
    "getASTfromLibraryFile",
    "getASTfromString",
    "parse",
    "resolve",
    "tokenize",
]
