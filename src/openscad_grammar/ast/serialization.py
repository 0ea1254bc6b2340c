"""Convert syntax trees to and from JSON and YAML.

This module provides functions to serialize AST nodes, node lists and whole
documents to JSON and YAML formats, and to deserialize them back. Node ids
and resolved bindings are kept, so a restored document's bindings still point
at the right nodes.

Example:
    from openscad_grammar import getASTfromString
    from openscad_grammar.ast import ast_to_json, ast_from_json

    doc = getASTfromString("cube(10);")
    json_str = ast_to_json(doc)
    doc_restored = ast_from_json(json_str)
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any

from ..span import Position, Span
from .document import Document, NodeArena
from .nodes import (
    ASTNode,
    AdditiveOp,
    Argument,
    ArgumentName,
    AssertOp,
    Assignment,
    Block,
    BooleanLiteral,
    CallExpr,
    CallOp,
    ComparisonOp,
    EchoOp,
    EmptyStatement,
    EqualityOp,
    ExponentOp,
    FunctionDefinition,
    FunctionLiteral,
    IncludeStatement,
    IndexOp,
    LetOp,
    ListCompEach,
    ListCompFor,
    ListCompIfElse,
    LogicalAndOp,
    LogicalOrOp,
    LoopUpdate,
    MemberOp,
    ModularAssert,
    ModularCall,
    ModularEcho,
    ModularIfElse,
    ModuleDefinition,
    ModuleId,
    ModuleInstantiation,
    MultiplicativeOp,
    NumberLiteral,
    ParameterDefinition,
    ParenExpr,
    RangeLiteral,
    SingleModuleInstantiation,
    StringLiteral,
    TernaryOp,
    UndefinedLiteral,
    UnaryOp,
    UseStatement,
    VariableDefinition,
    VariableRef,
    Vector,
    walk,
)
from .scope import Binding, BindingKind


# Registry mapping class names to classes for deserialization
_NODE_REGISTRY: dict[str, type[ASTNode]] = {
    cls.__name__: cls
    for cls in [
        # Literals/Primaries
        NumberLiteral,
        StringLiteral,
        BooleanLiteral,
        UndefinedLiteral,
        VariableRef,
        ParenExpr,
        Vector,
        RangeLiteral,
        # Declarations and arguments
        VariableDefinition,
        ParameterDefinition,
        ArgumentName,
        Argument,
        # Expression operators
        TernaryOp,
        LogicalOrOp,
        LogicalAndOp,
        EqualityOp,
        ComparisonOp,
        AdditiveOp,
        MultiplicativeOp,
        UnaryOp,
        ExponentOp,
        # Function/Call expressions
        CallExpr,
        CallOp,
        IndexOp,
        MemberOp,
        FunctionLiteral,
        LetOp,
        EchoOp,
        AssertOp,
        # List comprehension
        ListCompEach,
        ListCompFor,
        ListCompIfElse,
        LoopUpdate,
        # Statements
        EmptyStatement,
        Block,
        Assignment,
        ModuleInstantiation,
        ModuleId,
        SingleModuleInstantiation,
        ModularCall,
        ModularEcho,
        ModularAssert,
        ModularIfElse,
        ModuleDefinition,
        FunctionDefinition,
        UseStatement,
        IncludeStatement,
    ]
}

# Fields stored as frozensets on the node and as sorted lists when serialized.
_SET_FIELDS = frozenset({"modifiers"})

_SPECIAL_FIELDS = frozenset({"span", "node_id", "binding"})

_UNKNOWN_POSITION = Position(offset=0, line=0, column=0)


def _serialize_position(position: Position) -> dict[str, Any]:
    return {
        "offset": position.offset,
        "line": position.line,
        "column": position.column,
    }


def _serialize_span(span: Span) -> dict[str, Any]:
    """Serialize a Span to a dictionary."""
    return {
        "origin": span.origin,
        "start": _serialize_position(span.start),
        "end": _serialize_position(span.end),
    }


def _serialize_binding(binding: Binding) -> dict[str, Any]:
    return {
        "kind": binding.kind.value,
        "target": binding.target,
        "origin": binding.origin,
    }


def _serialize_value(value: Any, include_position: bool) -> Any:
    """Convert a field value, descending into nodes and lists."""
    if value is None:
        return None
    elif isinstance(value, ASTNode):
        return _serialize_node(value, include_position)
    elif isinstance(value, list):
        return [_serialize_value(item, include_position) for item in value]
    elif isinstance(value, frozenset):
        return sorted(value)
    elif isinstance(value, (str, int, float, bool)):
        return value
    else:
        raise TypeError(f"Unsupported type for serialization: {type(value)}")


def _serialize_node(node: ASTNode, include_position: bool) -> dict[str, Any]:
    """Convert one node to a dict tagged with its class name."""
    result: dict[str, Any] = {
        "_type": node.__class__.__name__,
        "_id": node.node_id,
    }

    if include_position:
        result["_span"] = _serialize_span(node.span)

    binding = getattr(node, "binding", None)
    if binding is not None:
        result["_binding"] = _serialize_binding(binding)

    for field in dataclasses.fields(node):
        if field.name in _SPECIAL_FIELDS:
            continue
        value = getattr(node, field.name)
        result[field.name] = _serialize_value(value, include_position)

    return result


def _serialize_document(document: Document, include_position: bool) -> dict[str, Any]:
    return {
        "_type": "Document",
        "origin": document.origin,
        "statements": [_serialize_node(s, include_position) for s in document.statements],
    }


def ast_to_dict(
    ast: Document | ASTNode | list[ASTNode] | None,
    include_position: bool = True,
) -> dict[str, Any] | list[dict[str, Any]] | None:
    """Convert a document, node or node list to plain dicts and lists.

    Args:
        ast: A Document, an AST node, a list of AST nodes, or None.
        include_position: If True, include source spans (default: True).

    Returns:
        JSON-compatible data mirroring the input shape, or None.

    Example:
        doc = getASTfromString("x = 42;")
        data = ast_to_dict(doc)
    """
    if ast is None:
        return None
    elif isinstance(ast, Document):
        return _serialize_document(ast, include_position)
    elif isinstance(ast, list):
        return [_serialize_node(node, include_position) for node in ast]
    else:
        return _serialize_node(ast, include_position)


def ast_to_json(
    ast: Document | ASTNode | list[ASTNode] | None,
    include_position: bool = True,
    indent: int | None = 2,
) -> str:
    """Render a document, node or node list as JSON text.

    Args:
        ast: A Document, an AST node, a list of AST nodes, or None.
        include_position: If True, include source spans (default: True).
        indent: Passed to :func:`json.dumps`; None gives a single line.

    Returns:
        The JSON text.
    """
    data = ast_to_dict(ast, include_position=include_position)
    return json.dumps(data, indent=indent)


def _deserialize_position(data: dict[str, Any]) -> Position:
    return Position(
        offset=data["offset"],
        line=data["line"],
        column=data["column"],
    )


def _deserialize_span(data: dict[str, Any]) -> Span:
    """Deserialize a Span from a dictionary."""
    return Span(
        origin=data["origin"],
        start=_deserialize_position(data["start"]),
        end=_deserialize_position(data["end"]),
    )


def _deserialize_binding(data: dict[str, Any]) -> Binding:
    try:
        kind = BindingKind(data["kind"])
    except ValueError:
        raise ValueError(f"Unknown binding kind: {data['kind']}") from None
    return Binding(kind, data.get("target"), data.get("origin"))


def _deserialize_value(value: Any) -> Any:
    """Rebuild nested nodes and lists inside a field value."""
    if value is None:
        return None
    elif isinstance(value, dict) and "_type" in value:
        return _deserialize_node(value)
    elif isinstance(value, list):
        return [_deserialize_value(item) for item in value]
    elif isinstance(value, (str, int, float, bool)):
        return value
    else:
        raise TypeError(f"Unsupported type for deserialization: {type(value)}")


def _deserialize_node(data: dict[str, Any]) -> ASTNode:
    """Rebuild one node, its span, id and binding from its dict form."""
    if "_type" not in data:
        raise ValueError("Missing '_type' field in node data")

    type_name = data["_type"]
    if type_name not in _NODE_REGISTRY:
        raise ValueError(f"Unknown node type: {type_name}")

    node_class = _NODE_REGISTRY[type_name]

    if "_span" in data:
        span = _deserialize_span(data["_span"])
    else:
        span = Span("<unknown>", _UNKNOWN_POSITION, _UNKNOWN_POSITION)

    field_names = {f.name for f in dataclasses.fields(node_class)} - _SPECIAL_FIELDS

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key.startswith("_"):
            continue  # Skip _type, _id, _span, _binding
        if key in field_names:
            value = _deserialize_value(value)
            if key in _SET_FIELDS:
                value = frozenset(value)
            kwargs[key] = value

    node = node_class(span, node_id=data.get("_id", -1), **kwargs)
    if "_binding" in data:
        node.binding = _deserialize_binding(data["_binding"])
    return node


def _deserialize_document(data: dict[str, Any]) -> Document:
    statements = [_deserialize_node(item) for item in data.get("statements", [])]
    arena = NodeArena(node for statement in statements for node in walk(statement))
    return Document(origin=data["origin"], statements=statements, arena=arena)


def ast_from_dict(
    data: dict[str, Any] | list[dict[str, Any]] | None,
) -> Document | ASTNode | list[ASTNode] | None:
    """Rebuild nodes or a document from the output of :func:`ast_to_dict`.

    Args:
        data: A node dict, a list of node dicts, a document dict, or None.

    Returns:
        A Document, an AST node, a list of AST nodes, or None.

    Raises:
        ValueError: On a missing or unknown ``_type`` or binding kind.
    """
    if data is None:
        return None
    elif isinstance(data, list):
        return [_deserialize_node(item) for item in data]
    elif data.get("_type") == "Document":
        return _deserialize_document(data)
    else:
        return _deserialize_node(data)


def ast_from_json(json_str: str) -> Document | ASTNode | list[ASTNode] | None:
    """Rebuild nodes or a document from JSON text.

    Args:
        json_str: Text produced by :func:`ast_to_json`.

    Returns:
        A Document, an AST node, a list of AST nodes, or None.

    Raises:
        ValueError: On a missing or unknown ``_type`` or binding kind.
        json.JSONDecodeError: If the string is not valid JSON.
    """
    data = json.loads(json_str)
    return ast_from_dict(data)


def ast_to_yaml(
    ast: Document | ASTNode | list[ASTNode] | None,
    include_position: bool = True,
) -> str:
    """Render a document, node or node list as YAML text.

    Requires PyYAML to be installed: pip install openscad-grammar[yaml]

    Raises:
        ImportError: If PyYAML is not installed.
    """
    try:
        import yaml
    except ImportError:
        raise ImportError(
            "PyYAML is required for YAML serialization. "
            "Install it with: pip install openscad-grammar[yaml]"
        )

    data = ast_to_dict(ast, include_position=include_position)
    return yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)


def ast_from_yaml(yaml_str: str) -> Document | ASTNode | list[ASTNode] | None:
    """Rebuild nodes or a document from YAML text.

    Requires PyYAML to be installed: pip install openscad-grammar[yaml]

    Raises:
        ImportError: If PyYAML is not installed.
        ValueError: On a missing or unknown ``_type`` or binding kind.
    """
    try:
        import yaml
    except ImportError:
        raise ImportError(
            "PyYAML is required for YAML deserialization. "
            "Install it with: pip install openscad-grammar[yaml]"
        )

    data = yaml.safe_load(yaml_str)
    return ast_from_dict(data)
