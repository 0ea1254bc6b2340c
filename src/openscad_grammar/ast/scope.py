"""Scope resolution for OpenSCAD ASTs.

This module binds every variable, module, function and named argument
reference of a document to the node that declares it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Optional

from ..errors import BindingError, DiagnosticSink
from .nodes import (
    ArgumentName,
    AssertOrEchoOp,
    Assignment,
    Block,
    CallExpr,
    CallOp,
    EmptyStatement,
    FunctionDefinition,
    FunctionLiteral,
    IncludeStatement,
    IndexOp,
    LetOp,
    ListCompFor,
    ModularAssert,
    ModularCall,
    ModularEcho,
    ModularIfElse,
    ModuleDefinition,
    ModuleInstantiation,
    UseStatement,
    VariableDefinition,
    VariableRef,
    iter_child_nodes,
)

if TYPE_CHECKING:
    from ..builtins import Builtins
    from .document import Document
    from .nodes import (
        Argument, ASTNode, ModuleId, ParameterDefinition, Statement,
    )

logger = logging.getLogger(__name__)

# Module ids that are builtin pseudo-modules rather than references to a definition.
PSEUDO_MODULES = frozenset({"for", "intersection_for", "let", "each"})


class BindingKind(Enum):
    VARIABLE = "variable"
    PARAMETER = "parameter"
    FUNCTION = "function"
    MODULE = "module"
    BUILTIN = "builtin"
    SPECIAL = "special"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Binding:
    """Where a reference was declared.

    Attributes:
        kind: What sort of declaration the reference resolved to.
        target: Arena id of the declaring node. None for builtin, special
            and unresolved bindings.
        origin: Origin of the document that owns the declaring node.
    """
    kind: BindingKind
    target: int | None = None
    origin: str | None = None

    @property
    def resolved(self) -> bool:
        return self.kind != BindingKind.UNRESOLVED


_SPECIAL = Binding(BindingKind.SPECIAL)
_BUILTIN = Binding(BindingKind.BUILTIN)
_UNRESOLVED = Binding(BindingKind.UNRESOLVED)


@dataclass
class Scope:
    """Represents a lexical scope in OpenSCAD.

    Scopes form a tree through parent references, so lookups walk from the
    innermost scope outwards.

    OpenSCAD has three separate namespaces:
    - Variables: assignments, parameters, let and loop variables
    - Functions: FunctionDefinition nodes
    - Modules: ModuleDefinition nodes

    The same name can exist in all three namespaces simultaneously. Within one
    scope the last definition of a name wins.

    Attributes:
        parent: The enclosing (parent) scope, or None for the root scope.
        variables: Variables defined in this scope (name -> binding).
        functions: Functions defined in this scope (name -> binding).
        modules: Modules defined in this scope (name -> binding).
    """
    parent: Optional["Scope"] = None
    variables: dict[str, Binding] = field(default_factory=dict)
    functions: dict[str, Binding] = field(default_factory=dict)
    modules: dict[str, Binding] = field(default_factory=dict)

    def lookup_variable(self, name: str) -> Binding | None:
        """Look up a variable by name, searching parent scopes.

        Args:
            name: The variable name to look up.

        Returns:
            The variable's binding, or None if not found in this scope or any
            parent scope.
        """
        if name in self.variables:
            return self.variables[name]
        if self.parent:
            return self.parent.lookup_variable(name)
        return None

    def lookup_function(self, name: str) -> Binding | None:
        """Look up a function by name, searching parent scopes."""
        if name in self.functions:
            return self.functions[name]
        if self.parent:
            return self.parent.lookup_function(name)
        return None

    def lookup_module(self, name: str) -> Binding | None:
        """Look up a module by name, searching parent scopes."""
        if name in self.modules:
            return self.modules[name]
        if self.parent:
            return self.parent.lookup_module(name)
        return None

    def define_variable(self, name: str, binding: Binding) -> None:
        self.variables[name] = binding

    def define_function(self, name: str, binding: Binding) -> None:
        self.functions[name] = binding

    def define_module(self, name: str, binding: Binding) -> None:
        self.modules[name] = binding

    def child_scope(self) -> "Scope":
        """Create a new child scope with this scope as parent."""
        return Scope(parent=self)

    def __repr__(self) -> str:
        vars_str = ", ".join(self.variables.keys()) if self.variables else "none"
        funcs_str = ", ".join(self.functions.keys()) if self.functions else "none"
        mods_str = ", ".join(self.modules.keys()) if self.modules else "none"
        parent_str = "has parent" if self.parent else "root"
        return f"<Scope({parent_str}) vars=[{vars_str}] funcs=[{funcs_str}] mods=[{mods_str}]>"


class ScopeResolver:
    """Resolves the references of a Document.

    The resolver walks the document with a chain of scopes and writes a
    Binding into every VariableRef, ModuleId and ArgumentName it reaches. Names
    that cannot be found are bound as UNRESOLVED and reported as
    BindingErrors. Resolution starts from scratch each time, so resolving a
    document twice gives the same result.

    Usage:
        doc = parse(tokenize("x = 10; cube(x);"))
        root_scope = ScopeResolver(builtins=OPENSCAD_BUILTINS).resolve(doc)
        root_scope.lookup_variable("x")

    Args:
        dependencies: Already parsed documents, keyed by the text of the
            ``include``/``use`` file reference that names them.
        builtins: Optional table of builtin names.
        diagnostics: Optional sink that receives each BindingError.
    """

    def __init__(self, dependencies: Mapping[str, "Document"] | None = None,
                 builtins: "Builtins | None" = None,
                 diagnostics: DiagnosticSink | None = None):
        self.dependencies = dependencies or {}
        self.builtins = builtins
        self.diagnostics = diagnostics
        self._document: "Document | None" = None
        self._documents: dict[str, "Document"] = {}

    def resolve(self, document: "Document") -> Scope:
        """Bind every reference of ``document``.

        Args:
            document: The parsed document. Its ``binding_errors`` are replaced.

        Returns:
            The file-level scope. Its parent holds the names exported by the
            dependencies.
        """
        self._document = document
        self._documents = {document.origin: document}
        document.binding_errors = []

        library_scope = Scope()
        self._import_dependencies(document, library_scope)
        root_scope = library_scope.child_scope()
        self._resolve_statements(document.statements, root_scope)

        logger.debug("resolved %s with %d binding errors",
                     document.origin, len(document.binding_errors))
        return root_scope

    # --- Dependencies ---

    def _import_dependencies(self, document: "Document", scope: Scope) -> None:
        seen = {document.origin}
        for statement in document.statements:
            if isinstance(statement, (IncludeStatement, UseStatement)):
                dependency = self.dependencies.get(statement.filename)
                if dependency is None:
                    logger.debug("no document for %s <%s>", type(statement).__name__,
                                 statement.filename)
                    continue
                self._export(dependency, scope,
                             isinstance(statement, IncludeStatement), seen)

    def _export(self, dependency: "Document", scope: Scope,
                with_variables: bool, seen: set[str]) -> None:
        """Define the names a dependency exports in ``scope``.

        ``use`` exports functions and modules; ``include`` also exports the
        top-level variables. Includes inside the dependency are followed,
        its uses are not.
        """
        if dependency.origin in seen:
            return
        seen.add(dependency.origin)
        self._documents[dependency.origin] = dependency
        origin = dependency.origin
        for statement in dependency.statements:
            if isinstance(statement, IncludeStatement):
                nested = self.dependencies.get(statement.filename)
                if nested is not None:
                    self._export(nested, scope, with_variables, seen)
            elif isinstance(statement, ModuleDefinition):
                scope.define_module(statement.name, Binding(
                    BindingKind.MODULE, statement.node_id, origin))
            elif isinstance(statement, FunctionDefinition):
                scope.define_function(statement.name, Binding(
                    BindingKind.FUNCTION, statement.node_id, origin))
            elif isinstance(statement, Assignment) and with_variables:
                scope.define_variable(statement.name, Binding(
                    BindingKind.VARIABLE, statement.target.node_id, origin))

    def _declaration(self, binding: Binding | None) -> "ASTNode | None":
        if binding is None or binding.target is None or binding.origin is None:
            return None
        document = self._documents.get(binding.origin)
        return document.get_node(binding.target) if document is not None else None

    # --- Diagnostics ---

    def _report(self, node: "ASTNode", identifier: str, message: str) -> None:
        error = BindingError(node.span, message, identifier)
        self._document.binding_errors.append(error)
        logger.debug("%s", error)
        if self.diagnostics is not None:
            self.diagnostics.report(error)

    def _binding(self, kind: BindingKind, node: "ASTNode") -> Binding:
        return Binding(kind, node.node_id, self._document.origin)

    # --- Statements ---

    def _resolve_statements(self, statements: list["Statement"], scope: Scope) -> None:
        """Resolve a statement list in ``scope``.

        Module and function names are visible throughout the list. Variables
        become visible after their assignment, also to definition bodies, which
        are resolved where they appear.
        """
        for statement in statements:
            if isinstance(statement, ModuleDefinition):
                scope.define_module(statement.name,
                                    self._binding(BindingKind.MODULE, statement))
            elif isinstance(statement, FunctionDefinition):
                scope.define_function(statement.name,
                                      self._binding(BindingKind.FUNCTION, statement))

        for statement in statements:
            if isinstance(statement, (ModuleDefinition, FunctionDefinition)):
                self._resolve_definition(statement, scope)
            else:
                self._resolve_statement(statement, scope)

    def _resolve_statement(self, statement: "Statement", scope: Scope) -> None:
        if isinstance(statement, Assignment):
            self._resolve_assignment(statement, scope)
        elif isinstance(statement, Block):
            self._resolve_statements(statement.statements, scope.child_scope())
        elif isinstance(statement, ModuleInstantiation):
            self._resolve_instantiation(statement, scope)
        # Empty statements, include and use have nothing to resolve.

    def _resolve_assignment(self, node: Assignment, scope: Scope) -> None:
        """Resolve the value, then define the variable.

        The value cannot see the variable being defined, except for function
        literals which can see it for recursion.
        """
        if isinstance(node.expr, FunctionLiteral):
            self._resolve_function_literal(node.expr, scope, pending_var=node)
        else:
            self._resolve_expression(node.expr, scope)
        scope.define_variable(node.name, self._binding(BindingKind.VARIABLE, node.target))

    def _resolve_definition(self, node: "ModuleDefinition | FunctionDefinition",
                            scope: Scope) -> None:
        body_scope = scope.child_scope()
        self._define_parameters(node.parameters, scope, body_scope)
        if isinstance(node, FunctionDefinition):
            self._resolve_expression(node.expr, body_scope)
        elif isinstance(node.body, Block):
            self._resolve_statements(node.body.statements, body_scope)
        else:
            self._resolve_statements([node.body], body_scope)

    def _define_parameters(self, parameters: list["ParameterDefinition"],
                           outer: Scope, inner: Scope) -> None:
        for param in parameters:
            if param.default is not None:
                # Default values are evaluated in the enclosing scope.
                self._resolve_expression(param.default, outer)
            inner.define_variable(param.name, self._binding(BindingKind.PARAMETER, param))

    def _resolve_child(self, child: "Statement | None", scope: Scope) -> None:
        """Resolve an instantiation's child statement in a scope of its own."""
        if child is None or isinstance(child, EmptyStatement):
            return
        child_scope = scope.child_scope()
        if isinstance(child, Block):
            self._resolve_statements(child.statements, child_scope)
        else:
            self._resolve_statements([child], child_scope)

    def _resolve_instantiation(self, node: ModuleInstantiation, scope: Scope) -> None:
        payload = node.payload
        if isinstance(payload, ModularCall):
            callee = payload.callee
            if callee.module.name in PSEUDO_MODULES:
                callee.module.binding = _BUILTIN
                inner = scope.child_scope()
                for arg in callee.arguments:
                    self._resolve_expression(arg.expr, inner)
                    if isinstance(arg.name, VariableDefinition):
                        inner.define_variable(
                            arg.name.name, self._binding(BindingKind.VARIABLE, arg.name))
                    elif isinstance(arg.name, ArgumentName):
                        arg.name.binding = _UNRESOLVED
                self._resolve_child(payload.child, inner)
                return
            binding = self._bind_module(callee.module, scope)
            self._resolve_arguments(callee.arguments, scope, binding, callee.module.name)
            self._resolve_child(payload.child, scope)
        elif isinstance(payload, (ModularEcho, ModularAssert)):
            self._resolve_arguments(payload.arguments, scope)
            self._resolve_child(payload.child, scope)
        elif isinstance(payload, ModularIfElse):
            self._resolve_expression(payload.condition, scope)
            self._resolve_child(payload.true_branch, scope)
            self._resolve_child(payload.false_branch, scope)

    # --- References ---

    def _bind_module(self, module: "ModuleId", scope: Scope) -> Binding:
        binding = scope.lookup_module(module.name)
        if binding is None:
            if self.builtins is not None and module.name in self.builtins.modules:
                binding = _BUILTIN
            else:
                binding = _UNRESOLVED
                self._report(module, module.name, f"unknown module '{module.name}'")
        module.binding = binding
        return binding

    def _bind_variable(self, ref: VariableRef, scope: Scope) -> Binding:
        binding = scope.lookup_variable(ref.name)
        if binding is None:
            if ref.name.startswith("$"):
                binding = _SPECIAL
            elif self.builtins is not None and ref.name in self.builtins.variables:
                binding = _BUILTIN
            else:
                binding = _UNRESOLVED
                self._report(ref, ref.name, f"unknown variable '{ref.name}'")
        ref.binding = binding
        return binding

    def _bind_function(self, ref: VariableRef, scope: Scope) -> Binding:
        """Bind the target of a call: functions first, then variables, then builtins."""
        binding = scope.lookup_function(ref.name) or scope.lookup_variable(ref.name)
        if binding is None:
            if ref.name.startswith("$"):
                binding = _SPECIAL
            elif self.builtins is not None and ref.name in self.builtins.functions:
                binding = _BUILTIN
            else:
                binding = _UNRESOLVED
                self._report(ref, ref.name, f"unknown function '{ref.name}'")
        ref.binding = binding
        return binding

    def _resolve_arguments(self, arguments: list["Argument"], scope: Scope,
                           callee: Binding | None = None, callee_name: str = "") -> None:
        """Resolve argument values and bind named arguments to the callee's parameters."""
        declaration = self._declaration(callee)
        parameters = None
        if isinstance(declaration, (ModuleDefinition, FunctionDefinition)):
            parameters = {param.name: param for param in declaration.parameters}
        for arg in arguments:
            self._resolve_expression(arg.expr, scope)
            if not isinstance(arg.name, ArgumentName):
                continue
            name = arg.name
            if parameters is None:
                name.binding = _UNRESOLVED
            elif name.name in parameters:
                name.binding = Binding(BindingKind.PARAMETER,
                                       parameters[name.name].node_id, callee.origin)
            elif name.name.startswith("$"):
                name.binding = _SPECIAL
            else:
                name.binding = _UNRESOLVED
                self._report(name, name.name,
                             f"'{callee_name}' has no parameter '{name.name}'")

    # --- Expressions ---

    def _resolve_expression(self, node: "ASTNode | None", scope: Scope) -> None:
        """Resolve the references in an expression or list comprehension element."""
        if node is None:
            return
        if isinstance(node, VariableRef):
            self._bind_variable(node, scope)
        elif isinstance(node, CallExpr):
            self._resolve_call(node, scope)
        elif isinstance(node, LetOp):
            let_scope = scope.child_scope()
            for assignment in node.assignments:
                self._resolve_assignment(assignment, let_scope)
            self._resolve_expression(node.body, let_scope)
        elif isinstance(node, FunctionLiteral):
            self._resolve_function_literal(node, scope)
        elif isinstance(node, AssertOrEchoOp):
            self._resolve_arguments(node.arguments, scope)
            self._resolve_expression(node.body, scope)
        elif isinstance(node, ListCompFor):
            self._resolve_list_comp_for(node, scope)
        else:
            # Operators, literals, vectors, ranges and the remaining
            # comprehension elements open no scope.
            for child in iter_child_nodes(node):
                self._resolve_expression(child, scope)

    def _resolve_call(self, node: CallExpr, scope: Scope) -> None:
        chain = node.chain
        callee = None
        callee_name = ""
        if isinstance(node.target, VariableRef) and isinstance(chain[0], CallOp):
            callee = self._bind_function(node.target, scope)
            callee_name = node.target.name
        else:
            self._resolve_expression(node.target, scope)
        for index, op in enumerate(chain):
            if isinstance(op, CallOp):
                # Only the first call applies to the named callee.
                if index == 0:
                    self._resolve_arguments(op.arguments, scope, callee, callee_name)
                else:
                    self._resolve_arguments(op.arguments, scope)
            elif isinstance(op, IndexOp):
                self._resolve_expression(op.index, scope)

    def _resolve_function_literal(self, node: FunctionLiteral, scope: Scope,
                                  pending_var: Assignment | None = None) -> None:
        """Resolve a function literal.

        Args:
            node: The FunctionLiteral node.
            scope: The current scope.
            pending_var: The assignment the literal is the value of; its
                variable is visible in the body, for recursive literals.
        """
        func_scope = scope.child_scope()
        if pending_var is not None:
            func_scope.define_variable(
                pending_var.name, self._binding(BindingKind.VARIABLE, pending_var.target))
        self._define_parameters(node.parameters, scope, func_scope)
        self._resolve_expression(node.body, func_scope)

    def _resolve_list_comp_for(self, node: ListCompFor, scope: Scope) -> None:
        for_scope = scope.child_scope()
        for assignment in node.assignments:
            self._resolve_assignment(assignment, for_scope)
        self._resolve_expression(node.condition, for_scope)
        for update in node.updates:
            self._bind_variable(update.target, for_scope)
            self._resolve_expression(update.expr, for_scope)
        self._resolve_expression(node.body, for_scope)


def resolve(document: "Document",
            dependencies: Mapping[str, "Document"] | None = None,
            builtins: "Builtins | None" = None,
            diagnostics: DiagnosticSink | None = None) -> "Document":
    """Bind every reference in ``document`` and return it.

    Args:
        document: A document produced by :func:`~openscad_grammar.parser.parse`.
        dependencies: Documents for the file references of its ``include``
            and ``use`` statements, keyed by the reference text.
        builtins: Optional table of builtin names.
        diagnostics: Optional sink that receives each BindingError.

    Returns:
        The same document, with bindings written and ``binding_errors`` replaced.
    """
    ScopeResolver(dependencies, builtins, diagnostics).resolve(document)
    return document
