"""Host-side helpers: read files, find libraries and build resolved documents.

The core functions (:func:`~openscad_grammar.lexer.tokenize`,
:func:`~openscad_grammar.parser.parse` and
:func:`~openscad_grammar.ast.scope.resolve`) never touch the file system. This
module is the collaborator that does: it locates ``include``/``use`` targets
on the OpenSCAD library path, parses them, resolves each file against its
dependencies and caches the results.
"""

from __future__ import annotations

import logging
import os
import platform
from typing import Mapping

from .ast.document import Document
from .ast.nodes import IncludeStatement, UseStatement
from .ast.scope import resolve
from .builtins import OPENSCAD_BUILTINS, Builtins
from .errors import DiagnosticSink, format_diagnostic
from .lexer import Lexer
from .parser import parse

logger = logging.getLogger(__name__)


def _default_library_path() -> tuple[str, str]:
    """Return the platform's OPENSCADPATH separator and default library directory."""
    system = platform.system()
    if system == "Windows":  # pragma: no cover
        return ";", os.path.join(os.path.expanduser("~"), "Documents", "OpenSCAD", "libraries")
    if system == "Darwin":  # pragma: no cover
        return ":", os.path.expanduser("~/Documents/OpenSCAD/libraries")
    if system == "Linux":  # pragma: no cover
        return ":", os.path.expanduser("~/.local/share/OpenSCAD/libraries")
    return ":", ""  # pragma: no cover


def library_search_path(currfile: str = "") -> list[str]:
    """List the directories searched for library files, in order.

    1. Directory of the current file (if currfile is provided)
    2. Directories specified in the OPENSCADPATH environment variable
    3. The platform-specific default library directory, when OPENSCADPATH is unset
    """
    dirs = []
    if currfile:
        dirs.append(os.path.dirname(os.path.abspath(currfile)))
    pathsep, default_path = _default_library_path()
    env = os.getenv("OPENSCADPATH", default_path)
    for path in env.split(pathsep) if env else ():
        expanded_path = os.path.expandvars(path)
        if expanded_path:
            dirs.append(expanded_path)
    return dirs


def findLibraryFile(currfile: str, libfile: str) -> str | None:
    """Find a library file using OpenSCAD's search path rules.

    Args:
        currfile: Full path to the current OpenSCAD file (can be empty string)
        libfile: Partial or full path to the library file to find

    Returns:
        Full path to the found library file, or None if not found
    """
    for d in library_search_path(currfile):
        test_file = os.path.join(d, libfile)
        if os.path.isfile(test_file):
            logger.debug("found library %s at %s", libfile, test_file)
            return test_file
    logger.debug("library %s not found from %s", libfile, currfile or "<no file>")
    return None


def _log_diagnostics(document: Document, code: str) -> None:
    for error in [*document.lex_errors, *document.syntax_errors]:
        logger.warning("%s", format_diagnostic(error, code))
    for error in document.binding_errors:
        logger.debug("%s", error)


def _parse_source(code: str, origin: str,
                  diagnostics: DiagnosticSink | None) -> Document:
    lexer = Lexer(code, origin, diagnostics)
    document = parse(lexer.lex(), origin, diagnostics)
    document.lex_errors = lexer.errors
    return document


def getASTfromString(code: str, origin: str = "<string>",
                     dependencies: Mapping[str, Document] | None = None,
                     builtins: Builtins | None = OPENSCAD_BUILTINS,
                     diagnostics: DiagnosticSink | None = None) -> Document:
    """
    Parse OpenSCAD source code from a string and return its resolved Document.

    Args:
        code (str): The OpenSCAD source code to be parsed.
        origin (str): Origin identifier for source location tracking (default: "<string>").
        dependencies: Already parsed documents for the file's include and use
            statements, keyed by the file reference text.
        builtins: Builtin name table for the resolver (default: OPENSCAD_BUILTINS).
        diagnostics: Optional sink receiving every lexical, syntax and binding error.

    Returns:
        Document: The parsed and resolved document. Errors are reported in its
            ``lex_errors``, ``syntax_errors`` and ``binding_errors``.

    Example:
        doc = getASTfromString("cube([1,2,3]);")
        doc.statements[0].payload.callee.module.binding
    """
    document = _parse_source(code, origin, diagnostics)
    resolve(document, dependencies, builtins, diagnostics)
    _log_diagnostics(document, code)
    return document


# Module-level cache for resolved documents
# Key: tuple of (absolute file path, load_dependencies, builtins)
# Value: tuple of (document, dependency documents by file reference, modification timestamp)
_ast_cache: dict[tuple[str, bool, Builtins | None],
                 tuple[Document, dict[str, Document], float]] = {}


def clear_ast_cache():
    """Clear the in-memory AST cache.

    This function removes all cached documents, forcing all subsequent
    calls to getASTfromFile() to re-parse files.
    """
    _ast_cache.clear()


def _load_file(file_path: str, builtins: Builtins | None, load_dependencies: bool,
               loading: frozenset[str]) -> tuple[Document, dict[str, Document], frozenset[str]]:
    """Parse and resolve one file, loading its dependencies first.

    Returns the document, every dependency document reachable from it keyed
    by file reference text, and the files above it in ``loading`` whose
    references were skipped as circular. Only a document with no such skipped
    ancestor is cached, since its resolution would differ when loaded alone.
    """
    current_mtime = os.path.getmtime(file_path)
    cache_key = (file_path, load_dependencies, builtins)

    if cache_key in _ast_cache:
        cached_doc, cached_deps, cached_mtime = _ast_cache[cache_key]
        if cached_mtime != current_mtime:
            del _ast_cache[cache_key]
        elif any(dep.origin in loading for dep in cached_deps.values()):
            logger.debug("cached %s depends on a file being loaded, reloading", file_path)
        else:
            logger.debug("cache hit for %s", file_path)
            return cached_doc, cached_deps, frozenset()

    with open(file_path, 'r', encoding='utf-8') as f:
        code = f.read()

    document = _parse_source(code, file_path, None)
    dependencies: dict[str, Document] = {}
    skipped: set[str] = set()
    if load_dependencies:
        loading = loading | {file_path}
        for statement in document.statements:
            if not isinstance(statement, (IncludeStatement, UseStatement)):
                continue
            found = findLibraryFile(file_path, statement.filename)
            if found is None:
                logger.warning("%s: cannot find library file '%s'",
                               file_path, statement.filename)
                continue
            found = os.path.abspath(found)
            if found in loading:
                logger.debug("skipping circular reference %s -> %s", file_path, found)
                skipped.add(found)
                continue
            dep_doc, dep_deps, dep_skipped = _load_file(found, builtins,
                                                        load_dependencies, loading)
            skipped.update(dep_skipped)
            dependencies[statement.filename] = dep_doc
            for name, nested in dep_deps.items():
                dependencies.setdefault(name, nested)

    resolve(document, dependencies, builtins)
    _log_diagnostics(document, code)

    skipped.discard(file_path)
    if not skipped:
        _ast_cache[cache_key] = (document, dependencies, current_mtime)
    return document, dependencies, frozenset(skipped)


def getASTfromFile(file: str, builtins: Builtins | None = OPENSCAD_BUILTINS,
                   load_dependencies: bool = True) -> Document:
    """
    Parse an OpenSCAD source file and return its resolved Document.

    Every ``include <...>`` and ``use <...>`` target is located with
    findLibraryFile(), parsed the same way, and made available to the
    resolver, so references into libraries bind to their declarations.
    Missing dependencies are logged and skipped; circular references are
    broken at the first repeated file.

    Documents are cached in memory. Cache entries are automatically invalidated
    if the file's modification timestamp changes, ensuring that updated files are re-parsed.

    Args:
        file (str): The OpenSCAD source file to be parsed.
        builtins: Builtin name table for the resolver (default: OPENSCAD_BUILTINS).
        load_dependencies (bool): If False, include and use targets are not
            loaded and references into them stay unresolved (default: True).

    Returns:
        Document: The parsed and resolved document. Its origin is the absolute file path.

    Raises:
        FileNotFoundError: If the specified file does not exist.
        OSError: If the file cannot be read.

    Example:
        doc = getASTfromFile("my_model.scad")
        doc_alone = getASTfromFile("my_model.scad", load_dependencies=False)
    """
    file_path = os.path.abspath(file)
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File {file} not found")
    document, _, _ = _load_file(file_path, builtins, load_dependencies, frozenset())
    return document


def getASTfromLibraryFile(currfile: str, libfile: str,
                          builtins: Builtins | None = OPENSCAD_BUILTINS,
                          load_dependencies: bool = True) -> tuple[Document, str]:
    """
    Find and parse an OpenSCAD library file using OpenSCAD's search path rules,
    and return both the Document and absolute path to the file.

    Args:
        currfile: Full path to the current OpenSCAD file that wants to include/use
                  the library file. Can be empty string if not available.
        libfile: Partial or full path to the library file to find and parse.
                 This is typically the path specified in a 'use' or 'include' statement.
        builtins: Builtin name table for the resolver (default: OPENSCAD_BUILTINS).
        load_dependencies (bool): If True, load the library's own dependencies (default: True).

    Returns:
        tuple[Document, str]: The resolved document of the library file and the
            absolute path of the file parsed.

    Raises:
        FileNotFoundError: If the library file cannot be found in any search path.

    Example:
        doc, path = getASTfromLibraryFile("/path/to/main.scad", "utils/math.scad")
    """
    found_file = findLibraryFile(currfile, libfile)

    if found_file is None:
        raise FileNotFoundError(
            f"Library file '{libfile}' not found in search paths. "
            f"Searched in: current file directory, OPENSCADPATH, and platform default paths."
        )

    document = getASTfromFile(found_file, builtins=builtins, load_dependencies=load_dependencies)
    return document, os.path.abspath(found_file)
