"""Diagnostics reported by the lexer, parser and scope resolver.

None of these are raised. Each producer appends them to its own result list and
forwards them to an optional :class:`DiagnosticSink`, so a host (an editor, a
linter) can render them however it likes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .span import Span

logger = logging.getLogger(__name__)


class Severity(Enum):
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """Base class for all diagnostics.

    Attributes:
        span: The offending source range.
        message: Human readable description of the problem.
    """
    span: Span
    message: str

    @property
    def severity(self) -> Severity:
        return Severity.ERROR

    def __str__(self):
        return f"{self.span}: {self.message}"


@dataclass(frozen=True)
class LexError(Diagnostic):
    """A character that does not start any token.

    The lexer skips the character and carries on, so a single stray character
    never hides the rest of the file.

    Attributes:
        character: The offending character.
    """
    character: str = ""


@dataclass(frozen=True)
class ParseError(Diagnostic):
    """The token stream does not match the grammar at ``span``."""
    pass


@dataclass(frozen=True)
class BindingError(Diagnostic):
    """A reference whose name is not declared in any enclosing scope.

    Attributes:
        identifier: The name that could not be resolved.
    """
    identifier: str = ""


class DiagnosticSink(Protocol):
    """Receives diagnostics as they are produced."""

    def report(self, diagnostic: Diagnostic) -> None:
        ...


class DiagnosticCollector:
    """A sink that keeps every diagnostic it is given, in order."""

    def __init__(self):
        self.diagnostics: list[Diagnostic] = []

    def report(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    def __len__(self):
        return len(self.diagnostics)

    def __iter__(self):
        return iter(self.diagnostics)


class LoggingDiagnosticSink:
    """A sink that forwards every diagnostic to a :mod:`logging` logger."""

    def __init__(self, log: logging.Logger | None = None, source: str | None = None):
        self.log = log or logger
        self.source = source

    def report(self, diagnostic: Diagnostic) -> None:
        if self.source is not None:
            self.log.warning("%s", format_diagnostic(diagnostic, self.source))
        else:
            self.log.warning("%s", diagnostic)


def format_diagnostic(diagnostic: Diagnostic, source: str) -> str:
    """Render a diagnostic with the offending line and a caret under the error.

    Args:
        diagnostic: The diagnostic to render.
        source: The full source text the diagnostic's span refers to.

    Returns:
        A multi-line string such as::

            error in main.scad at line 2, column 5: expected ';'
            x = 1
                ^
    """
    span = diagnostic.span
    header = (
        f"{diagnostic.severity.value} in {span.origin} at line {span.line}, "
        f"column {span.column}: {diagnostic.message}"
    )
    lines = source.split('\n')
    if not 1 <= span.line <= len(lines):
        return header
    line_text = lines[span.line - 1]
    caret_pos = min(max(span.column - 1, 0), len(line_text))
    # Expand tabs so the caret lines up with what a terminal shows.
    expanded_caret_pos = len(line_text[:caret_pos].expandtabs())
    return f"{header}\n{line_text}\n{' ' * expanded_caret_pos}^"
