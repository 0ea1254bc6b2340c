"""The parse result: top-level statements, node arena and diagnostics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Iterator

from .nodes import (
    ASTNode,
    ArgumentName,
    IncludeStatement,
    ModuleId,
    Statement,
    UseStatement,
    VariableRef,
    walk,
)

if TYPE_CHECKING:
    from ..errors import BindingError, Diagnostic, LexError, ParseError
    from .scope import Binding


REFERENCE_TYPES = (VariableRef, ModuleId, ArgumentName)


class NodeArena:
    """Owns every node of a document and addresses it by a stable integer id.

    Ids are handed out in creation order and never reused. Nodes built for a
    statement that error recovery later discarded stay registered, they are
    simply not reachable from the document's statements.
    """

    def __init__(self, nodes: Iterable[ASTNode] = ()):
        self._nodes: dict[int, ASTNode] = {}
        self._next_id = 0
        for node in nodes:
            self._restore(node)

    def add(self, node: ASTNode) -> ASTNode:
        """Register ``node`` and assign it the next id."""
        node.node_id = self._next_id
        self._nodes[self._next_id] = node
        self._next_id += 1
        return node

    def _restore(self, node: ASTNode) -> None:
        if node.node_id < 0:
            self.add(node)
            return
        self._nodes[node.node_id] = node
        self._next_id = max(self._next_id, node.node_id + 1)

    def get(self, node_id: int) -> ASTNode | None:
        return self._nodes.get(node_id)

    def __getitem__(self, node_id: int) -> ASTNode:
        return self._nodes[node_id]

    def __contains__(self, node_id: int) -> bool:
        return node_id in self._nodes

    def __len__(self):
        return len(self._nodes)

    def __iter__(self) -> Iterator[ASTNode]:
        return iter(self._nodes.values())


@dataclass
class Document:
    """A parsed OpenSCAD source.

    Attributes:
        origin: Identifier of the source (file path or "<string>").
        statements: The top-level statements.
        arena: Every node created while parsing, by id.
        lex_errors: Lexical errors, if the host recorded them.
        syntax_errors: Errors reported by the parser.
        binding_errors: Errors reported by the last resolution pass.
    """
    origin: str
    statements: list[Statement]
    arena: NodeArena = field(default_factory=NodeArena, compare=False, repr=False)
    lex_errors: list["LexError"] = field(default_factory=list)
    syntax_errors: list["ParseError"] = field(default_factory=list)
    binding_errors: list["BindingError"] = field(default_factory=list)

    def get_node(self, node_id: int) -> ASTNode | None:
        """Return the node with the given arena id, or None."""
        return self.arena.get(node_id)

    def walk(self) -> Iterator[ASTNode]:
        """Yield every node reachable from the statements, in source order."""
        for statement in self.statements:
            yield from walk(statement)

    def references(self) -> Iterator[VariableRef | ModuleId | ArgumentName]:
        """Yield every reachable reference node."""
        for node in self.walk():
            if isinstance(node, REFERENCE_TYPES):
                yield node

    @property
    def includes(self) -> list[IncludeStatement]:
        return [s for s in self.statements if isinstance(s, IncludeStatement)]

    @property
    def uses(self) -> list[UseStatement]:
        return [s for s in self.statements if isinstance(s, UseStatement)]

    @property
    def diagnostics(self) -> list["Diagnostic"]:
        """All lexical, syntax and binding errors, ordered by source offset."""
        found = [*self.lex_errors, *self.syntax_errors, *self.binding_errors]
        return sorted(found, key=lambda d: d.span.start.offset)

    def declaration_of(self, binding: "Binding | None") -> ASTNode | None:
        """Return the declaring node of a binding into this document.

        Bindings to builtins, special variables, unresolved names and nodes
        of other documents return None.
        """
        if binding is None or binding.target is None:
            return None
        if binding.origin is not None and binding.origin != self.origin:
            return None
        return self.arena.get(binding.target)

    def __str__(self):
        return '\n'.join(str(statement) for statement in self.statements)
