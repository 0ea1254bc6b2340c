"""Tests for diagnostics, sinks and source spans."""

import logging

import pytest

from openscad_grammar import (
    BindingError,
    DiagnosticCollector,
    LexError,
    LoggingDiagnosticSink,
    ParseError,
    Severity,
    format_diagnostic,
    parse,
    resolve,
    tokenize,
)
from openscad_grammar.span import Position, Span


def _span(line, column, offset=0, origin="main.scad"):
    return Span(origin, Position(offset, line, column), Position(offset + 1, line, column + 1))


class TestSpan:
    """Tests for Span helpers."""

    def test_str(self):
        assert str(_span(3, 7)) == "main.scad:3:7"

    def test_merge(self):
        first = Span("a", Position(2, 1, 3), Position(4, 1, 5))
        second = Span("a", Position(6, 1, 7), Position(9, 1, 10))
        merged = first.merge(second)
        assert merged.start == first.start
        assert merged.end == second.end
        assert second.merge(first) == merged

    def test_spans_are_hashable(self):
        assert len({_span(1, 1), _span(1, 1)}) == 1


class TestDiagnostics:
    """Tests for the diagnostic classes."""

    def test_str(self):
        error = ParseError(_span(2, 4), "expected ';'")
        assert str(error) == "main.scad:2:4: expected ';'"

    def test_severity(self):
        assert LexError(_span(1, 1), "bad", "@").severity == Severity.ERROR
        assert BindingError(_span(1, 1), "unknown", "x").severity == Severity.ERROR

    def test_every_severity_is_produced(self, collector):
        tokens = tokenize("x = @;\ny = ;\nz = q;", origin="main.scad", diagnostics=collector)
        resolve(parse(tokens, diagnostics=collector), diagnostics=collector)
        assert {d.severity for d in collector} == set(Severity)
        assert collector.errors == collector.diagnostics

    def test_diagnostics_are_immutable(self):
        error = BindingError(_span(1, 1), "unknown variable 'x'", "x")
        with pytest.raises(AttributeError):
            error.identifier = "y"


class TestFormatDiagnostic:
    """Tests for format_diagnostic()."""

    def test_caret_under_error(self):
        source = "x = 1;\ny = ;\n"
        error = ParseError(_span(2, 5, offset=11), "expected an expression")
        assert format_diagnostic(error, source) == (
            "error in main.scad at line 2, column 5: expected an expression\n"
            "y = ;\n"
            "    ^"
        )

    def test_tabs_are_expanded(self):
        source = "\tx = ;"
        error = ParseError(_span(1, 6, offset=5), "expected an expression")
        lines = format_diagnostic(error, source).split("\n")
        assert lines[2] == " " * 12 + "^"

    def test_line_outside_source(self):
        error = ParseError(_span(9, 1), "expected '}'")
        text = format_diagnostic(error, "x = 1;")
        assert text == "error in main.scad at line 9, column 1: expected '}'"

    def test_error_at_end_of_input(self):
        source = "cube(1"
        tokens = tokenize(source, origin="main.scad")
        error = ParseError(tokens[-1].span, "expected ')'")
        assert format_diagnostic(error, source).endswith("cube(1\n      ^")


class TestSinks:
    """Tests for the diagnostic sinks."""

    def test_collector(self):
        collector = DiagnosticCollector()
        error = LexError(_span(1, 1), "unexpected character '@'", "@")
        collector.report(error)
        assert len(collector) == 1
        assert list(collector) == [error]
        assert collector.errors == [error]

    def test_logging_sink(self, caplog):
        sink = LoggingDiagnosticSink(logging.getLogger("scad.test"))
        with caplog.at_level(logging.WARNING, logger="scad.test"):
            sink.report(ParseError(_span(1, 3), "expected ';'"))
        assert caplog.records[0].levelno == logging.WARNING
        assert "main.scad:1:3: expected ';'" in caplog.text

    def test_logging_sink_with_source(self, caplog):
        sink = LoggingDiagnosticSink(source="x = @;")
        with caplog.at_level(logging.WARNING, logger="openscad_grammar.errors"):
            tokenize("x = @;", origin="main.scad", diagnostics=sink)
        assert "x = @;\n    ^" in caplog.text
