"""Pytest configuration and shared fixtures for OpenSCAD grammar tests."""

import pytest

from openscad_grammar import (
    OPENSCAD_BUILTINS,
    DiagnosticCollector,
    clear_ast_cache,
    parse,
    resolve,
    tokenize,
)


@pytest.fixture
def collector():
    """Create a diagnostic sink that records everything reported to it."""
    return DiagnosticCollector()


@pytest.fixture(autouse=True)
def fresh_ast_cache():
    """Keep the loader's file cache from leaking between tests."""
    clear_ast_cache()
    yield
    clear_ast_cache()


def _parse_code(code, origin="<test>"):
    return parse(tokenize(code, origin), origin)


@pytest.fixture
def parse_code():
    """Tokenize and parse code into a Document, errors and all."""
    return _parse_code


@pytest.fixture
def parse_clean():
    """Parse code and assert it has no syntax errors."""
    def _parse_clean(code, origin="<test>"):
        document = _parse_code(code, origin)
        assert document.syntax_errors == []
        return document
    return _parse_clean


@pytest.fixture
def parse_expr(parse_clean):
    """Parse `x = <code>;` and return the expression."""
    def _parse_expr(code):
        return parse_clean(f"x = {code};").statements[0].expr
    return _parse_expr


@pytest.fixture
def resolve_code():
    """Parse and resolve code, with the stock builtin table by default."""
    def _resolve_code(code, builtins=OPENSCAD_BUILTINS, dependencies=None, origin="<test>"):
        return resolve(_parse_code(code, origin), dependencies=dependencies, builtins=builtins)
    return _resolve_code


def refs_named(document, name):
    return [ref for ref in document.references() if ref.name == name]


@pytest.fixture
def refs():
    """Find all reachable reference nodes with a given name."""
    return refs_named
