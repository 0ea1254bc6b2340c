from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from ..span import Span
    from .scope import Binding


# --- AST nodes classes. ---

@dataclass
class ASTNode(object):
    """Base class for all AST nodes.

    Every node records the source range it was parsed from and the id it was
    given in its document's node arena. Neither takes part in equality, so two
    trees parsed from differently formatted sources compare equal when their
    structure does.

    Attributes:
        span: The source range of this node in the original OpenSCAD code.
        node_id: Stable id of this node in its document's arena, or -1 for a
            node that was built by hand and never registered.
    """
    span: "Span" = field(compare=False, repr=False)
    node_id: int = field(default=-1, kw_only=True, compare=False, repr=False)

    def __str__(self) -> str:
        """Return OpenSCAD source text for the node."""
        raise NotImplementedError


def _format_number(val: float) -> str:
    if val == int(val) and abs(val) < 1e16:
        return str(int(val))
    return repr(val)


def _join(items) -> str:
    return ', '.join(str(item) for item in items)


def _quote(text: str) -> str:
    """Wrap raw string text in a quote character it does not use unescaped."""
    i = 0
    while i < len(text):
        if text[i] == '\\':
            i += 2
        elif text[i] == '"':
            return f"'{text}'"
        else:
            i += 1
    return f'"{text}"'


def _assignments_str(assignments: list["Assignment"]) -> str:
    return ', '.join(f"{a.target} = {a.expr}" for a in assignments)


# --- Expressions ---

@dataclass
class Expression(ASTNode):
    """Base class for all OpenSCAD expressions.

    Expressions are constructs that evaluate to a value. This includes:
    - Literals (numbers, strings, booleans, undef)
    - Operator chains, unary operators and exponentiation
    - Calls, index and member access
    - Vectors, ranges and function literals
    - let, assert and echo expressions
    """
    pass


@dataclass
class Primary(Expression):
    """Base class for the atomic OpenSCAD expressions.

    Examples:
        - Number literals: 42, 3.14, 1e10, 0xff
        - String literals: "hello", 'world'
        - Boolean literals: true, false
        - Undefined: undef
        - Variable references: foo, $fn
        - Parenthesized expressions, vectors and ranges
    """
    pass


@dataclass
class NumberLiteral(Primary):
    """Represents an OpenSCAD numeric literal.

    Examples:
        42              // Integer
        3.14            // Floating point
        .5              // Leading dot
        1.5e-3          // Scientific notation
        0x1F            // Hexadecimal

    Attributes:
        val: The numeric value as a float.
    """
    val: float

    def __str__(self):
        return _format_number(self.val)


@dataclass
class StringLiteral(Primary):
    """Represents an OpenSCAD string literal.

    Escape sequences are kept as written; ``"a\\"b"`` has the value ``a\\"b``.

    Attributes:
        val: The string text without the surrounding quotes.
    """
    val: str

    def __str__(self):
        return _quote(self.val)


@dataclass
class BooleanLiteral(Primary):
    """Represents ``true`` or ``false``."""
    val: bool

    def __str__(self):
        return "true" if self.val else "false"


@dataclass
class UndefinedLiteral(Primary):
    """Represents the ``undef`` keyword."""

    def __str__(self):
        return "undef"


@dataclass
class VariableRef(Primary):
    """A reference to a variable, parameter or function by name.

    Examples:
        x + 1           // 'x' is a VariableRef
        f(2)            // 'f' is the VariableRef target of a call
        $fn             // special variables are VariableRefs too

    Attributes:
        name: The referenced name.
        binding: Where the name was declared, filled in by the scope resolver.
    """
    name: str
    binding: "Binding | None" = field(default=None, kw_only=True, compare=False)

    def __str__(self):
        return self.name


@dataclass
class ParenExpr(Primary):
    """A parenthesized expression, kept so that source text renders faithfully."""
    expr: Expression

    def __str__(self):
        return f"({self.expr})"


@dataclass
class Vector(Primary):
    """Represents an OpenSCAD vector literal or list comprehension.

    The top-level elements are either all plain expressions or all list
    comprehension elements.

    Examples:
        []                              // Empty vector
        [1, 2, 3]                       // Plain elements
        [for (i = [0:5]) i * i]         // One ListCompFor element
        [each a, each b]                // Two ListCompEach elements

    Attributes:
        elements: The vector elements in source order.
    """
    elements: list["Expression | ListCompElement"]

    def __str__(self):
        return f"[{_join(self.elements)}]"


@dataclass
class RangeLiteral(Primary):
    """Represents an OpenSCAD range literal.

    Ranges are written ``[start:end]`` or ``[start:step:end]``; the step sits
    in the middle in source but is stored separately here.

    Examples:
        [0:10]      // start 0, end 10, no step
        [0:2:10]    // start 0, end 10, step 2
        [10:-1:0]   // counting down

    Attributes:
        start: The first value of the range.
        end: The last value of the range.
        step: The step expression, or None when the range has two operands.
    """
    start: Expression
    end: Expression
    step: Expression | None

    def __str__(self):
        if self.step is None:
            return f"[{self.start}:{self.end}]"
        return f"[{self.start}:{self.step}:{self.end}]"


@dataclass
class TernaryOp(Expression):
    """Represents the conditional operator ``condition ? true_expr : false_expr``.

    Attributes:
        condition: The condition expression.
        true_expr: Value when the condition holds.
        false_expr: Value otherwise.
    """
    condition: Expression
    true_expr: Expression
    false_expr: Expression

    def __str__(self):
        return f"{self.condition} ? {self.true_expr} : {self.false_expr}"


@dataclass
class OperatorChain(Expression):
    """Base class for left associative binary operator chains.

    A chain holds ``n`` operands and ``n - 1`` operator strings; ``a - b + c``
    is one AdditiveOp with operands ``[a, b, c]`` and operators ``["-", "+"]``.
    The parser only builds a chain when at least one operator is present.

    Attributes:
        operands: The operand expressions, left to right.
        operators: The operator spellings between consecutive operands.
    """
    operands: list[Expression]
    operators: list[str]

    def __str__(self):
        parts = [str(self.operands[0])]
        for op, operand in zip(self.operators, self.operands[1:]):
            parts.append(f"{op} {operand}")
        return ' '.join(parts)


@dataclass
class LogicalOrOp(OperatorChain):
    """``a || b || ...``"""
    pass


@dataclass
class LogicalAndOp(OperatorChain):
    """``a && b && ...``"""
    pass


@dataclass
class EqualityOp(OperatorChain):
    """A chain of ``==`` and ``!=`` comparisons."""
    pass


@dataclass
class ComparisonOp(OperatorChain):
    """A chain of ``<``, ``<=``, ``>`` and ``>=`` comparisons."""
    pass


@dataclass
class AdditiveOp(OperatorChain):
    """Represents a chain of additions and subtractions.

    Examples:
        1 + 2                          // operands [1, 2], operators ["+"]
        a - b + c                      // operands [a, b, c], operators ["-", "+"]
    """
    pass


@dataclass
class MultiplicativeOp(OperatorChain):
    """A chain of ``*``, ``/`` and ``%`` operations."""
    pass


@dataclass
class UnaryOp(Expression):
    """Represents a prefix ``-``, ``+`` or ``!`` operator.

    Examples:
        -5
        !(a && b)
        - -x                           // nested UnaryOps

    Attributes:
        operator: The operator spelling.
        expr: The operand.
    """
    operator: str
    expr: Expression

    def __str__(self):
        return f"{self.operator}{self.expr}"


@dataclass
class ExponentOp(Expression):
    """Represents exponentiation, which is right associative.

    ``2 ^ 3 ^ 2`` parses as ``2 ^ (3 ^ 2)``. The exponent may carry a unary
    operator: ``2 ^ -1``.

    Attributes:
        base: The base expression.
        exponent: The exponent expression.
    """
    base: Expression
    exponent: Expression

    def __str__(self):
        return f"{self.base} ^ {self.exponent}"


@dataclass
class PostfixOp(ASTNode):
    """Base class for the call, index and member suffixes of a CallExpr."""
    pass


@dataclass
class CallOp(PostfixOp):
    """An argument list suffix, ``(args)``."""
    arguments: list["Argument"]

    def __str__(self):
        return f"({_join(self.arguments)})"


@dataclass
class IndexOp(PostfixOp):
    """An index suffix, ``[index]``."""
    index: Expression

    def __str__(self):
        return f"[{self.index}]"


@dataclass
class MemberOp(PostfixOp):
    """A member access suffix such as ``.x``."""
    member: str

    def __str__(self):
        return f".{self.member}"


@dataclass
class CallExpr(Expression):
    """Represents a primary followed by call, index and member suffixes.

    Examples:
        foo(1, 2)                       // target foo, chain [CallOp]
        m[2][3]                         // target m, chain [IndexOp, IndexOp]
        v.x                             // target v, chain [MemberOp]
        f(1)(2)[0]                      // calls on call results

    Attributes:
        target: The primary expression the suffixes apply to.
        chain: The suffixes, left to right. Never empty.
    """
    target: Expression
    chain: list[PostfixOp]

    def __str__(self):
        return f"{self.target}{''.join(str(op) for op in self.chain)}"


@dataclass
class FunctionLiteral(Expression):
    """Represents an anonymous function, ``function(params) body``.

    Examples:
        f = function(x) x * 2;
        g = function(a, b=1) a + b;

    Attributes:
        parameters: The declared parameters.
        body: The expression the function evaluates to.
    """
    parameters: list["ParameterDefinition"]
    body: Expression

    def __str__(self):
        return f"function({_join(self.parameters)}) {self.body}"


@dataclass
class LetOp(Expression):
    """Represents an OpenSCAD let expression.

    Each assignment sees the ones before it, and the body sees all of them.
    Inside a vector the body may be a list comprehension element.

    Examples:
        let(a=1, b=a+1) a + b
        [let(n=len(v)) for (i=[0:n-1]) v[i]]

    Attributes:
        assignments: The local variable assignments, in order.
        body: An expression, or a list comprehension element.
    """
    assignments: list["Assignment"]
    body: "Expression | ListCompElement"

    def __str__(self):
        return f"let({_assignments_str(self.assignments)}) {self.body}"


@dataclass
class AssertOrEchoOp(Expression):
    """Base class for assert and echo expressions.

    Attributes:
        arguments: The arguments inside the parentheses.
        body: The expression returned afterwards, or None when omitted.
    """
    arguments: list["Argument"]
    body: Expression | None

    keyword = ""

    def __str__(self):
        text = f"{self.keyword}({_join(self.arguments)})"
        return f"{text} {self.body}" if self.body is not None else text


@dataclass
class EchoOp(AssertOrEchoOp):
    """``echo(args) body``"""
    keyword = "echo"


@dataclass
class AssertOp(AssertOrEchoOp):
    """``assert(condition, message) body``"""
    keyword = "assert"


# --- List comprehension elements ---

@dataclass
class ListCompElement(ASTNode):
    """Base class for the generator elements of a list comprehension.

    A body is either another element, nesting generators, or an expression.
    """
    pass


@dataclass
class ListCompEach(ListCompElement):
    """Represents ``each`` inside a vector, which splices a list in place.

    Examples:
        [each [1, 2, 3]]
        [for (p = pts) each p]

    Attributes:
        body: The element or expression to flatten.
    """
    body: "Expression | ListCompElement"

    def __str__(self):
        return f"each {self.body}"


@dataclass
class LoopUpdate(ASTNode):
    """One ``name = expr`` update of a C-style comprehension loop.

    The target refers back to the loop variable declared in the initializer.
    """
    target: VariableRef
    expr: Expression

    def __str__(self):
        return f"{self.target} = {self.expr}"


@dataclass
class ListCompFor(ListCompElement):
    """Represents a ``for`` generator within a list comprehension.

    Both the plain form and the C-style form are represented by this node. The
    C-style form carries a condition and update list.

    Examples:
        [for (i = [0:5]) i * i]
        [for (x = xs, y = ys) [x, y]]
        [for (i = 0; i < 5; i = i + 1) i]

    Attributes:
        assignments: Loop variable assignments (initializers for C-style).
        condition: Continuation condition of a C-style loop, otherwise None.
        updates: Updates of a C-style loop, otherwise empty.
        body: The element or expression produced per iteration.
    """
    assignments: list["Assignment"]
    condition: Expression | None
    updates: list[LoopUpdate]
    body: "Expression | ListCompElement"

    def __str__(self):
        if self.condition is None and not self.updates:
            return f"for ({_assignments_str(self.assignments)}) {self.body}"
        return (
            f"for ({_assignments_str(self.assignments)}; {self.condition}; "
            f"{_join(self.updates)}) {self.body}"
        )


@dataclass
class ListCompIfElse(ListCompElement):
    """Represents ``if`` (optionally with ``else``) within a list comprehension.

    A false condition without an else branch adds no element at all.

    Examples:
        [for (i = [0:9]) if (i % 2 == 0) i]
        [for (x = xs) if (x > 0) x else -x]

    Attributes:
        condition: The condition.
        true_expr: Produced when the condition holds.
        false_expr: Produced otherwise, or None when there is no else branch.
    """
    condition: Expression
    true_expr: "Expression | ListCompElement"
    false_expr: "Expression | ListCompElement | None"

    def __str__(self):
        text = f"if ({self.condition}) {self.true_expr}"
        if self.false_expr is not None:
            text += f" else {self.false_expr}"
        return text


# --- Declarations and arguments ---

@dataclass
class VariableDefinition(ASTNode):
    """The declaring occurrence of a variable name.

    Examples:
        x = 10;                         // assignment target
        let(a = 1) a                    // let variable
        for (i = [0:3]) cube(i);        // loop variable

    Attributes:
        name: The declared name.
    """
    name: str

    def __str__(self):
        return self.name


@dataclass
class ParameterDefinition(ASTNode):
    """Represents a parameter declaration in a module, function or function literal.

    Examples:
        function foo(x) = x;             // Required parameter
        module test(a, b=2) { ... }      // Parameter with a default

    Attributes:
        name: The parameter name.
        default: The default value expression, or None if no default is provided.
    """
    name: str
    default: Expression | None

    def __str__(self):
        return f"{self.name}{f' = {self.default}' if self.default is not None else ''}"


@dataclass
class ArgumentName(ASTNode):
    """The name of a named argument; it binds to the callee's parameter."""
    name: str
    binding: "Binding | None" = field(default=None, kw_only=True, compare=False)

    def __str__(self):
        return self.name


@dataclass
class Argument(ASTNode):
    """Represents one argument of a call, instantiation, echo or assert.

    Examples:
        foo(1, 2)                       // positional: name is None
        cube(size=10)                   // named: name is an ArgumentName
        for (i = [0:3]) cube(i);        // loop variable: name is a VariableDefinition

    Attributes:
        name: None for a positional argument, an ArgumentName for a named one,
            or a VariableDefinition for the arguments of the for, let and each
            pseudo-modules, which declare variables.
        expr: The argument value.
    """
    name: ArgumentName | VariableDefinition | None
    expr: Expression

    @property
    def is_named(self) -> bool:
        return self.name is not None

    def __str__(self):
        if self.name is None:
            return str(self.expr)
        return f"{self.name}={self.expr}"


# --- Statements ---

@dataclass
class Statement(ASTNode):
    """Base class for all OpenSCAD statements."""
    pass


@dataclass
class EmptyStatement(Statement):
    """A lone ``;``."""

    def __str__(self):
        return ";"


@dataclass
class Block(Statement):
    """Represents a braced statement list.

    Blocks appear as plain statements, as module bodies and as the child of
    module instantiations.

    Attributes:
        statements: The statements inside the braces.
    """
    statements: list[Statement]

    def __str__(self):
        if not self.statements:
            return "{ }"
        return f"{{ {' '.join(str(s) for s in self.statements)} }}"


@dataclass
class Assignment(Statement):
    """Represents a variable assignment in OpenSCAD.

    Assignments appear as statements and inside let expressions and for loops.

    Examples:
        x = 10;
        let(a=1, b=2) a + b
        [for (i = [0:10]) i]

    Attributes:
        target: The declared variable.
        expr: The expression value being assigned.
    """
    target: VariableDefinition
    expr: Expression

    @property
    def name(self) -> str:
        return self.target.name

    def __str__(self):
        return f"{self.target} = {self.expr};"


@dataclass
class ModuleId(ASTNode):
    """The module name of an instantiation; also ``for``, ``let`` and ``each``."""
    name: str
    binding: "Binding | None" = field(default=None, kw_only=True, compare=False)

    def __str__(self):
        return self.name


@dataclass
class SingleModuleInstantiation(ASTNode):
    """A module name with its argument list, ``name(args)``.

    Attributes:
        module: The referenced module.
        arguments: The call arguments.
    """
    module: ModuleId
    arguments: list[Argument]

    def __str__(self):
        return f"{self.module}({_join(self.arguments)})"


@dataclass
class ModularPayload(ASTNode):
    """Base class for what a ModuleInstantiation instantiates."""
    pass


@dataclass
class ModularCall(ModularPayload):
    """Represents a module call with its child.

    Examples:
        cube(10);                      // child is an EmptyStatement
        translate([1, 2, 3]) cube(10); // child is a ModuleInstantiation
        union() { a(); b(); }          // child is a Block

    Attributes:
        callee: The module and its arguments.
        child: The child statement.
    """
    callee: SingleModuleInstantiation
    child: Statement

    def __str__(self):
        return _with_child(str(self.callee), self.child)


@dataclass
class ModularEcho(ModularPayload):
    """``echo(args) child`` as a statement."""
    arguments: list[Argument]
    child: Statement

    def __str__(self):
        return _with_child(f"echo({_join(self.arguments)})", self.child)


@dataclass
class ModularAssert(ModularPayload):
    """Represents an assert statement with its child.

    Examples:
        assert(x > 0, "x must be positive") cube(x);
        assert(condition=ok, message="bad") { a(); }

    Attributes:
        arguments: The arguments, typically a condition and an optional message.
        child: The child statement.
    """
    arguments: list[Argument]
    child: Statement

    @property
    def condition(self) -> Expression | None:
        return self._argument(0, "condition")

    @property
    def message(self) -> Expression | None:
        return self._argument(1, "message")

    def _argument(self, position: int, name: str) -> Expression | None:
        for arg in self.arguments:
            if arg.name is not None and arg.name.name == name:
                return arg.expr
        positional = [arg for arg in self.arguments if arg.name is None]
        if position < len(positional):
            return positional[position].expr
        return None

    def __str__(self):
        return _with_child(f"assert({_join(self.arguments)})", self.child)


@dataclass
class ModularIfElse(ModularPayload):
    """Represents an if statement, with or without an else branch.

    Examples:
        if (x > 0) cube(x);
        if (a) { b(); } else c();

    Attributes:
        condition: The condition.
        true_branch: The child statement when the condition holds.
        false_branch: The else child statement, or None.
    """
    condition: Expression
    true_branch: Statement
    false_branch: Statement | None

    def __str__(self):
        text = f"if ({self.condition}) {self.true_branch}"
        if self.false_branch is not None:
            text += f" else {self.false_branch}"
        return text


@dataclass
class ModuleInstantiation(Statement):
    """Represents a module instantiation statement and its modifiers.

    The modifiers form a set, so ``#!a();`` and ``!#a();`` are equal and
    repeated modifiers collapse.

    Examples:
        cube(10);
        #translate([1, 0, 0]) sphere(2);
        !%if (debug) marker();

    Attributes:
        modifiers: Any of ``!`` (show only), ``#`` (highlight), ``%``
            (background) and ``*`` (disable).
        payload: The call, echo, assert or if/else being instantiated.
    """
    modifiers: frozenset[str]
    payload: ModularPayload

    def __str__(self):
        return f"{''.join(sorted(self.modifiers))}{self.payload}"


@dataclass
class ModuleDefinition(Statement):
    """Represents an OpenSCAD module definition.

    Examples:
        module box(size) cube(size);
        module test(x, y=2) {
            translate([x, y, 0]) cube(1);
        }

    Attributes:
        name: The module name.
        parameters: The declared parameters.
        body: The body statement, usually a Block.
    """
    name: str
    parameters: list[ParameterDefinition]
    body: Statement

    def __str__(self):
        return f"module {self.name}({_join(self.parameters)}) {self.body}"


@dataclass
class FunctionDefinition(Statement):
    """Represents an OpenSCAD function definition.

    Examples:
        function add(x, y) = x + y;
        function fact(n) = n <= 1 ? 1 : n * fact(n - 1);

    Attributes:
        name: The function name.
        parameters: The declared parameters.
        expr: The expression body that the function evaluates to.
    """
    name: str
    parameters: list[ParameterDefinition]
    expr: Expression

    def __str__(self):
        return f"function {self.name}({_join(self.parameters)}) = {self.expr};"


@dataclass
class IncludeStatement(Statement):
    """Represents ``include <file>``.

    Everything the included file declares, variables included, becomes visible.

    Attributes:
        filename: The file reference without angle brackets.
    """
    filename: str

    def __str__(self):
        return f"include <{self.filename}>"


@dataclass
class UseStatement(Statement):
    """Represents ``use <file>``, which imports only functions and modules.

    Attributes:
        filename: The file reference without angle brackets.
    """
    filename: str

    def __str__(self):
        return f"use <{self.filename}>"


def _with_child(head: str, child: Statement) -> str:
    if isinstance(child, EmptyStatement):
        return f"{head};"
    return f"{head} {child}"


# --- Traversal helpers ---

_NON_CHILD_FIELDS = frozenset({"span", "node_id", "binding"})


def iter_child_nodes(node: ASTNode) -> Iterator[ASTNode]:
    """Yield the direct children of ``node`` in field order."""
    for f in fields(node):
        if f.name in _NON_CHILD_FIELDS:
            continue
        value = getattr(node, f.name)
        if isinstance(value, ASTNode):
            yield value
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, ASTNode):
                    yield item


def walk(node: ASTNode) -> Iterator[ASTNode]:
    """Yield ``node`` and all of its descendants in source (pre-)order."""
    stack = deque([node])
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(iter_child_nodes(current))))
