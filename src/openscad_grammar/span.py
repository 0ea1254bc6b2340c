"""Source locations for tokens, AST nodes and diagnostics."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Position:
    """A single point in a source text.

    Attributes:
        offset: Character offset into the source text (0-indexed).
        line: Line number (1-indexed).
        column: Column number (1-indexed).
    """
    offset: int
    line: int
    column: int

    def __str__(self):
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class Span:
    """A half-open range of source text, ``start`` inclusive and ``end`` exclusive.

    Attributes:
        origin: Identifier of the source (file path, "<string>", "<editor>", ...).
        start: Position of the first character.
        end: Position just past the last character.
    """
    origin: str
    start: Position
    end: Position

    @property
    def line(self) -> int:
        return self.start.line

    @property
    def column(self) -> int:
        return self.start.column

    def merge(self, other: "Span") -> "Span":
        """Return the smallest span covering both this span and ``other``."""
        start = self.start if self.start.offset <= other.start.offset else other.start
        end = self.end if self.end.offset >= other.end.offset else other.end
        return Span(self.origin, start, end)

    def __str__(self):
        return f"{self.origin}:{self.start}"
