"""Tests for the loader functions: getASTfromString, getASTfromFile, getASTfromLibraryFile."""

import logging
import os

import pytest

from openscad_grammar import (
    BindingKind,
    Document,
    clear_ast_cache,
    findLibraryFile,
    getASTfromFile,
    getASTfromLibraryFile,
    getASTfromString,
)
from openscad_grammar.ast import Assignment, ModuleDefinition, NumberLiteral
from openscad_grammar.loader import library_search_path


@pytest.fixture(autouse=True)
def no_library_path(monkeypatch):
    """Keep the user's OpenSCAD libraries out of the search path."""
    monkeypatch.setenv("OPENSCADPATH", "")


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def touch_later(path):
    """Move a file's modification time forward so caches notice the change."""
    st = os.stat(path)
    os.utime(path, (st.st_atime, st.st_mtime + 10))


class TestGetASTfromString:
    """Test getASTfromString() function."""

    def test_simple_assignment(self):
        """Test parsing a simple assignment from string."""
        document = getASTfromString("x = 42;")

        assert isinstance(document, Document)
        assert document.origin == "<string>"
        (stmt,) = document.statements
        assert isinstance(stmt, Assignment)
        assert stmt.name == "x"
        assert isinstance(stmt.expr, NumberLiteral)
        assert stmt.expr.val == 42

    def test_empty_code(self):
        """Test parsing empty code."""
        document = getASTfromString("")

        assert document.statements == []
        assert document.diagnostics == []

    def test_references_are_resolved(self):
        """Test that references are bound using the stock builtins."""
        document = getASTfromString("size = 2; cube(size);")

        assert document.binding_errors == []
        arg = document.statements[1].payload.callee.arguments[0].expr
        assert arg.binding.kind == BindingKind.VARIABLE
        assert document.statements[1].payload.callee.module.binding.kind == BindingKind.BUILTIN

    def test_without_builtins(self):
        """Test that builtin names are unresolved without a builtin table."""
        document = getASTfromString("cube(1);", builtins=None)

        assert [e.identifier for e in document.binding_errors] == ["cube"]

    def test_dependencies(self):
        """Test resolving against an already parsed library."""
        library = getASTfromString("module part() {}", origin="lib.scad")
        document = getASTfromString("use <lib.scad>\npart();",
                                    dependencies={"lib.scad": library})

        binding = document.statements[1].payload.callee.module.binding
        assert binding.origin == "lib.scad"
        assert isinstance(library.declaration_of(binding), ModuleDefinition)

    def test_all_diagnostics_reach_the_sink(self, collector):
        """Test that lexical, syntax and binding errors are all reported."""
        document = getASTfromString("x = 1 @; y = q; z = ;", diagnostics=collector)

        names = sorted(type(d).__name__ for d in collector)
        assert names == ["BindingError", "LexError", "ParseError"]
        assert len(document.lex_errors) == 1
        assert len(document.syntax_errors) == 1
        assert len(document.binding_errors) == 1
        assert len(document.diagnostics) == 3

    def test_syntax_errors_are_logged(self, caplog):
        """Test that syntax errors are logged with the offending line."""
        with caplog.at_level(logging.WARNING, logger="openscad_grammar.loader"):
            getASTfromString("x = ;", origin="bad.scad")

        assert "error in bad.scad at line 1, column 5" in caplog.text
        assert "x = ;\n    ^" in caplog.text


class TestGetASTfromFile:
    """Test getASTfromFile() function."""

    def test_parse_file(self, tmp_path):
        """Test parsing a file."""
        path = write(tmp_path / "model.scad", "x = 42;")
        document = getASTfromFile(str(path))

        assert document.origin == os.path.abspath(path)
        assert document.statements[0].name == "x"
        assert document.statements[0].span.origin == document.origin

    def test_file_caching(self, tmp_path):
        """Test that file caching works."""
        path = write(tmp_path / "model.scad", "x = 42;")

        assert getASTfromFile(str(path)) is getASTfromFile(str(path))

    def test_cache_invalidation_on_modification(self, tmp_path):
        """Test that cache is invalidated when file is modified."""
        path = write(tmp_path / "model.scad", "x = 42;")
        first = getASTfromFile(str(path))

        write(path, "y = 100;")
        touch_later(path)
        second = getASTfromFile(str(path))

        assert first is not second
        assert first.statements[0].name == "x"
        assert second.statements[0].name == "y"

    def test_file_not_found(self, tmp_path):
        """Test that FileNotFoundError is raised for non-existent files."""
        with pytest.raises(FileNotFoundError):
            getASTfromFile(str(tmp_path / "nonexistent_file.scad"))

    def test_multiple_files_cached_independently(self, tmp_path):
        """Test that multiple files are cached independently."""
        one = write(tmp_path / "one.scad", "x = 1;")
        two = write(tmp_path / "two.scad", "y = 2;")

        first = getASTfromFile(str(one))
        second = getASTfromFile(str(two))

        assert getASTfromFile(str(one)) is first
        assert getASTfromFile(str(two)) is second
        assert first is not second

    def test_clear_cache(self, tmp_path):
        """Test that clear_ast_cache() clears the cache."""
        path = write(tmp_path / "model.scad", "x = 42;")
        first = getASTfromFile(str(path))

        clear_ast_cache()

        assert getASTfromFile(str(path)) is not first


class TestFileDependencies:
    """Test that include and use targets are loaded and resolved against."""

    def test_use(self, tmp_path):
        """Test that modules from a used file resolve into that file."""
        library = write(tmp_path / "lib" / "shapes.scad", "module rounded(r) sphere(r);")
        main = write(tmp_path / "main.scad", "use <lib/shapes.scad>\nrounded(r=2);")

        document = getASTfromFile(str(main))

        assert document.binding_errors == []
        callee = document.statements[1].payload.callee
        assert callee.module.binding.kind == BindingKind.MODULE
        assert callee.module.binding.origin == os.path.abspath(library)
        assert callee.arguments[0].name.binding.kind == BindingKind.PARAMETER

    def test_declaration_in_library(self, tmp_path):
        """Test mapping a binding back to the library's declaration node."""
        library = write(tmp_path / "lib.scad", "width = 3;")
        main = write(tmp_path / "main.scad", "include <lib.scad>\ncube(width);")

        document = getASTfromFile(str(main))
        ref = document.statements[1].payload.callee.arguments[0].expr
        library_doc = getASTfromFile(str(library))

        assert ref.binding.kind == BindingKind.VARIABLE
        assert library_doc.declaration_of(ref.binding) is library_doc.statements[0].target

    def test_use_does_not_export_variables(self, tmp_path):
        """Test that a used file's variables stay private."""
        write(tmp_path / "lib.scad", "width = 3;")
        main = write(tmp_path / "main.scad", "use <lib.scad>\ncube(width);")

        document = getASTfromFile(str(main))

        assert [e.identifier for e in document.binding_errors] == ["width"]

    def test_transitive_include(self, tmp_path):
        """Test that includes inside an included file are followed."""
        write(tmp_path / "b.scad", "function deep() = 1;")
        write(tmp_path / "a.scad", "include <b.scad>")
        main = write(tmp_path / "main.scad", "include <a.scad>\nx = deep();")

        document = getASTfromFile(str(main))

        assert document.binding_errors == []
        assert document.statements[1].expr.target.binding.origin == \
            os.path.abspath(tmp_path / "b.scad")

    def test_library_from_openscadpath(self, tmp_path, monkeypatch):
        """Test that dependencies are found through OPENSCADPATH."""
        libraries = tmp_path / "libraries"
        write(libraries / "MCAD" / "gears.scad", "module gear(teeth) {}")
        main = write(tmp_path / "project" / "main.scad", "use <MCAD/gears.scad>\ngear(12);")
        monkeypatch.setenv("OPENSCADPATH", str(libraries))

        document = getASTfromFile(str(main))

        assert document.binding_errors == []

    def test_missing_dependency(self, tmp_path, caplog):
        """Test that a missing library is logged and skipped."""
        main = write(tmp_path / "main.scad", "use <nowhere.scad>\npart();")

        with caplog.at_level(logging.WARNING, logger="openscad_grammar.loader"):
            document = getASTfromFile(str(main))

        assert "cannot find library file 'nowhere.scad'" in caplog.text
        assert [e.identifier for e in document.binding_errors] == ["part"]

    def test_circular_include(self, tmp_path):
        """Test that include cycles terminate."""
        a = write(tmp_path / "a.scad", "include <b.scad>\nfunction fa() = fb();")
        write(tmp_path / "b.scad", "include <a.scad>\nfunction fb() = 1;")

        document = getASTfromFile(str(a))

        assert document.binding_errors == []

    def test_cycle_result_independent_of_load_order(self, tmp_path):
        """Test that a file loaded inside a cycle is not cached with the cycle cut."""
        a = write(tmp_path / "a.scad", "include <b.scad>\nmodule ma() {}")
        b = write(tmp_path / "b.scad", "include <a.scad>\nma();")

        getASTfromFile(str(a))
        document = getASTfromFile(str(b))

        callee = document.statements[1].payload.callee.module
        assert callee.binding.kind == BindingKind.MODULE
        assert document.binding_errors == []

    def test_cycle_root_is_cached(self, tmp_path):
        """Test that the file a cycle was loaded from is still cached."""
        a = write(tmp_path / "a.scad", "include <b.scad>\nmodule ma() {}")
        write(tmp_path / "b.scad", "include <a.scad>\nma();")

        assert getASTfromFile(str(a)) is getASTfromFile(str(a))

    def test_self_include(self, tmp_path):
        """Test that a file including itself terminates."""
        a = write(tmp_path / "a.scad", "include <a.scad>\nx = 1;")

        document = getASTfromFile(str(a))

        assert len(document.statements) == 2

    def test_without_loading_dependencies(self, tmp_path):
        """Test that load_dependencies=False leaves library references unresolved."""
        write(tmp_path / "lib.scad", "module part() {}")
        main = write(tmp_path / "main.scad", "use <lib.scad>\npart();")

        alone = getASTfromFile(str(main), load_dependencies=False)
        linked = getASTfromFile(str(main))

        assert alone is not linked
        assert [e.identifier for e in alone.binding_errors] == ["part"]
        assert linked.binding_errors == []


class TestFindLibraryFile:
    """Test findLibraryFile() helper function."""

    def test_find_in_current_file_directory(self, tmp_path):
        """Test finding library file in current file's directory."""
        current = write(tmp_path / "main.scad", "// main file")
        library = write(tmp_path / "library.scad", "cube(10);")

        assert findLibraryFile(str(current), "library.scad") == str(library)

    def test_find_in_subdirectory(self, tmp_path):
        """Test finding a library file by relative path."""
        current = write(tmp_path / "main.scad", "")
        library = write(tmp_path / "utils" / "math.scad", "")

        assert findLibraryFile(str(current), "utils/math.scad") == str(library)

    def test_find_in_openscadpath(self, tmp_path, monkeypatch):
        """Test searching every OPENSCADPATH entry in order."""
        first = tmp_path / "first"
        second = tmp_path / "second"
        first.mkdir()
        library = write(second / "lib.scad", "")
        monkeypatch.setenv("OPENSCADPATH", os.pathsep.join([str(first), str(second)]))

        assert findLibraryFile("", "lib.scad") == str(library)

    def test_current_directory_wins(self, tmp_path, monkeypatch):
        """Test that the current file's directory is searched first."""
        current = write(tmp_path / "project" / "main.scad", "")
        local = write(tmp_path / "project" / "lib.scad", "")
        write(tmp_path / "libraries" / "lib.scad", "")
        monkeypatch.setenv("OPENSCADPATH", str(tmp_path / "libraries"))

        assert findLibraryFile(str(current), "lib.scad") == str(local)

    def test_environment_variables_expanded(self, tmp_path, monkeypatch):
        """Test that OPENSCADPATH entries may reference environment variables."""
        library = write(tmp_path / "libs" / "lib.scad", "")
        monkeypatch.setenv("LIBROOT", str(tmp_path))
        monkeypatch.setenv("OPENSCADPATH", "$LIBROOT/libs")

        assert os.path.samefile(findLibraryFile("", "lib.scad"), library)

    def test_not_found(self, tmp_path):
        """Test that None is returned when library file is not found."""
        current = write(tmp_path / "main.scad", "")

        assert findLibraryFile(str(current), "nonexistent.scad") is None
        assert findLibraryFile("", "nonexistent.scad") is None

    def test_search_path_order(self, tmp_path, monkeypatch):
        """Test the directories searched, in order."""
        monkeypatch.setenv("OPENSCADPATH", str(tmp_path / "libs"))
        current = tmp_path / "project" / "main.scad"

        assert library_search_path(str(current)) == [
            str(tmp_path / "project"),
            str(tmp_path / "libs"),
        ]


class TestGetASTfromLibraryFile:
    """Test getASTfromLibraryFile() function."""

    def test_find_and_parse(self, tmp_path):
        """Test finding and parsing a library file."""
        current = write(tmp_path / "main.scad", "")
        library = write(tmp_path / "utils" / "math.scad", "function half(x) = x / 2;")

        document, path = getASTfromLibraryFile(str(current), "utils/math.scad")

        assert path == os.path.abspath(library)
        assert document.origin == path
        assert document.statements[0].name == "half"

    def test_shares_the_file_cache(self, tmp_path):
        """Test that library parsing goes through the same cache."""
        current = write(tmp_path / "main.scad", "")
        library = write(tmp_path / "library.scad", "x = 1;")

        document, _ = getASTfromLibraryFile(str(current), "library.scad")

        assert getASTfromFile(str(library)) is document

    def test_not_found(self, tmp_path):
        """Test that FileNotFoundError is raised when library file is not found."""
        current = write(tmp_path / "main.scad", "")

        with pytest.raises(FileNotFoundError, match="nonexistent.scad"):
            getASTfromLibraryFile(str(current), "nonexistent.scad")
