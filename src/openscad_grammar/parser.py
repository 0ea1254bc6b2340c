"""Parser for the OpenSCAD language.

Transforms a token stream into a :class:`~openscad_grammar.ast.document.Document`
using recursive descent for statements and precedence climbing for expressions.

The parser never gives up on a file. A missing delimiter is reported and the
parser carries on as if it had been there, so the tree stays as complete as
possible. A token that cannot start an expression or statement is reported and
the enclosing statement is abandoned; parsing resumes after the next ``;`` or
at the ``}`` closing the current block.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable

from .ast.document import Document, NodeArena
from .ast.nodes import (
    AdditiveOp,
    Argument,
    ArgumentName,
    AssertOp,
    Assignment,
    ASTNode,
    Block,
    BooleanLiteral,
    CallExpr,
    CallOp,
    ComparisonOp,
    EchoOp,
    EmptyStatement,
    EqualityOp,
    ExponentOp,
    Expression,
    FunctionDefinition,
    FunctionLiteral,
    IncludeStatement,
    IndexOp,
    LetOp,
    ListCompEach,
    ListCompElement,
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
    ModularPayload,
    ModuleDefinition,
    ModuleId,
    ModuleInstantiation,
    MultiplicativeOp,
    NumberLiteral,
    OperatorChain,
    ParameterDefinition,
    ParenExpr,
    PostfixOp,
    RangeLiteral,
    SingleModuleInstantiation,
    Statement,
    StringLiteral,
    TernaryOp,
    UndefinedLiteral,
    UnaryOp,
    UseStatement,
    VariableDefinition,
    VariableRef,
    Vector,
)
from .errors import DiagnosticSink, ParseError
from .span import Position, Span
from .tokens import KEYWORDS, MODIFIERS, OPERATORS, Token, TokenKind

logger = logging.getLogger(__name__)


_KIND_TEXT: dict[TokenKind, str] = {
    **{kind: f"'{text}'" for text, kind in OPERATORS},
    **{kind: f"'{text}'" for text, kind in KEYWORDS.items()},
    TokenKind.IDENTIFIER: "identifier",
    TokenKind.NUMBER: "number",
    TokenKind.STRING: "string",
    TokenKind.FILE: "file reference",
    TokenKind.EOF: "end of input",
}

_EXPRESSION_START = frozenset({
    TokenKind.IDENTIFIER, TokenKind.NUMBER, TokenKind.STRING,
    TokenKind.TRUE, TokenKind.FALSE, TokenKind.UNDEF,
    TokenKind.LPAREN, TokenKind.LBRACKET,
    TokenKind.MINUS, TokenKind.PLUS, TokenKind.BANG,
    TokenKind.LET, TokenKind.ASSERT, TokenKind.ECHO, TokenKind.FUNCTION,
})

# Module ids that name builtin pseudo-modules whose named arguments declare variables.
_PSEUDO_MODULES = frozenset({TokenKind.FOR, TokenKind.LET, TokenKind.EACH})
_MODULE_ID_START = _PSEUDO_MODULES | {TokenKind.IDENTIFIER}
# Builtin loop modules spelled as plain identifiers.
_LOOP_MODULE_NAMES = frozenset({"intersection_for"})

_COMPREHENSION_START = frozenset({TokenKind.FOR, TokenKind.EACH, TokenKind.IF})

_UNARY_OPERATORS = (TokenKind.PLUS, TokenKind.MINUS, TokenKind.BANG)

# Each level costs up to ~18 interpreter frames in the expression ladder.
MAX_NESTING_DEPTH = 40


def _describe(kind: TokenKind) -> str:
    return _KIND_TEXT.get(kind, kind.name)


def _is_comprehension(element: ASTNode) -> bool:
    """True when a vector element is a generator rather than a plain value."""
    while isinstance(element, LetOp):
        element = element.body
    return isinstance(element, ListCompElement)


class _ParseError(Exception):
    """Internal exception for parser error recovery."""


class Parser:
    """Parses a list of OpenSCAD tokens into a Document."""

    def __init__(self, tokens: list[Token], origin: str | None = None,
                 diagnostics: DiagnosticSink | None = None) -> None:
        if not tokens or tokens[-1].kind != TokenKind.EOF:
            tokens = list(tokens)
            tokens.append(self._eof_after(tokens, origin))
        self.tokens = tokens
        self.origin = origin if origin is not None else tokens[0].span.origin
        self.diagnostics = diagnostics
        self.pos = 0
        self.arena = NodeArena()
        self.errors: list[ParseError] = []
        self._last_error_offset = -1
        self._depth = 0

    @staticmethod
    def _eof_after(tokens: list[Token], origin: str | None) -> Token:
        if tokens:
            end = tokens[-1].span.end
            return Token(TokenKind.EOF, "", Span(tokens[-1].span.origin, end, end))
        start = Position(0, 1, 1)
        return Token(TokenKind.EOF, "", Span(origin or "<string>", start, start))

    # --- Token access ---

    def _current(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]

    def _previous(self) -> Token:
        return self.tokens[self.pos - 1] if self.pos > 0 else self.tokens[0]

    def _at(self, kind: TokenKind) -> bool:
        return self._current().kind == kind

    def _at_any(self, *kinds: TokenKind) -> bool:
        return self._current().kind in kinds

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _expect(self, kind: TokenKind) -> Token | None:
        """Consume a token of the given kind, or report it missing and consume nothing."""
        if self._at(kind):
            return self._advance()
        tok = self._current()
        self._error(f"expected {_describe(kind)} but found {tok}", tok.span)
        return None

    def _starts_expression(self) -> bool:
        return self._current().kind in _EXPRESSION_START

    # --- Diagnostics and recovery ---

    def _error(self, message: str, span: Span) -> None:
        offset = span.start.offset
        if offset == self._last_error_offset:
            return
        self._last_error_offset = offset
        error = ParseError(span, message)
        self.errors.append(error)
        logger.debug("%s", error)
        if self.diagnostics is not None:
            self.diagnostics.report(error)

    def _fail(self, message: str) -> _ParseError:
        self._error(message, self._current().span)
        return _ParseError(message)

    @contextmanager
    def _nested(self):
        """Enter one level of nesting, abandoning the statement past the limit."""
        if self._depth >= MAX_NESTING_DEPTH:
            raise self._fail("too deeply nested")
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1

    def _synchronize(self) -> None:
        """Skip tokens up to the end of the abandoned statement.

        Stops after a ``;`` outside of braces, after a balanced ``{...}`` that
        the statement opened, or before a ``}`` that closes an enclosing block.
        """
        start = self._current()
        depth = 0
        while not self._at(TokenKind.EOF):
            kind = self._current().kind
            if kind == TokenKind.SEMICOLON and depth == 0:
                self._advance()
                break
            if kind == TokenKind.LBRACE:
                depth += 1
            elif kind == TokenKind.RBRACE:
                if depth == 0:
                    break
                depth -= 1
                if depth == 0:
                    self._advance()
                    break
            self._advance()
        logger.debug("recovered from %s to %s", start.span, self._current().span)

    # --- Node construction ---

    def _span_from(self, start: Token) -> Span:
        end = self._previous().span.end
        if end.offset < start.span.start.offset:
            end = start.span.start
        return Span(self.origin, start.span.start, end)

    def _make(self, cls, start_token: Token, /, **fields):
        node = cls(self._span_from(start_token), **fields)
        self.arena.add(node)
        return node

    # --- Statements ---

    def parse(self) -> Document:
        """Parse the entire token stream into a Document."""
        statements = self._parse_statements(in_block=False)
        logger.debug("parsed %d statements, %d nodes from %s with %d errors",
                     len(statements), len(self.arena), self.origin, len(self.errors))
        return Document(
            origin=self.origin,
            statements=statements,
            arena=self.arena,
            syntax_errors=self.errors,
        )

    def _parse_statements(self, in_block: bool) -> list[Statement]:
        statements: list[Statement] = []
        while not self._at(TokenKind.EOF):
            if self._at(TokenKind.RBRACE):
                if in_block:
                    break
                self._error("unmatched '}'", self._advance().span)
                continue
            try:
                statement = self._parse_statement()
            except _ParseError:
                self._synchronize()
                continue
            if statement is not None:
                statements.append(statement)
        return statements

    def _parse_statement(self) -> Statement | None:
        tok = self._current()
        if tok.kind == TokenKind.SEMICOLON:
            self._advance()
            return self._make(EmptyStatement, tok)
        if tok.kind == TokenKind.LBRACE:
            return self._parse_block()
        if tok.kind == TokenKind.MODULE:
            return self._parse_module_definition()
        if tok.kind == TokenKind.FUNCTION:
            return self._parse_function_definition()
        if tok.kind in (TokenKind.INCLUDE, TokenKind.USE):
            return self._parse_file_reference()
        if tok.kind == TokenKind.IDENTIFIER and self._peek(1).kind == TokenKind.ASSIGN:
            return self._parse_assignment_statement()
        return self._parse_instantiation()

    def _parse_block(self) -> Block:
        start = self._current()
        with self._nested():
            self._advance()
            statements = self._parse_statements(in_block=True)
        self._expect(TokenKind.RBRACE)
        return self._make(Block, start, statements=statements)

    def _parse_file_reference(self) -> Statement | None:
        start = self._advance()
        if not self._at(TokenKind.FILE):
            tok = self._current()
            self._error(f"expected {_describe(TokenKind.FILE)} after '{start.text}' "
                        f"but found {tok}", tok.span)
            return None
        filename = self._advance().text
        cls = IncludeStatement if start.kind == TokenKind.INCLUDE else UseStatement
        return self._make(cls, start, filename=filename)

    def _parse_name(self) -> str:
        tok = self._expect(TokenKind.IDENTIFIER)
        return tok.text if tok is not None else ""

    def _parse_module_definition(self) -> ModuleDefinition:
        start = self._advance()
        name = self._parse_name()
        parameters = self._parse_parameters()
        body = self._parse_statement()
        if body is None:
            body = self._make(EmptyStatement, self._current())
        return self._make(ModuleDefinition, start, name=name,
                          parameters=parameters, body=body)

    def _parse_function_definition(self) -> FunctionDefinition:
        start = self._advance()
        name = self._parse_name()
        parameters = self._parse_parameters()
        self._expect(TokenKind.ASSIGN)
        expr = self._parse_expression()
        self._expect(TokenKind.SEMICOLON)
        return self._make(FunctionDefinition, start, name=name,
                          parameters=parameters, expr=expr)

    def _parse_assignment_statement(self) -> Assignment:
        start = self._current()
        assignment = self._parse_assignment()
        self._expect(TokenKind.SEMICOLON)
        # Widen the span to cover the semicolon.
        assignment.span = self._span_from(start)
        return assignment

    def _parse_assignment(self) -> Assignment:
        start = self._advance()
        target = self._make(VariableDefinition, start, name=start.text)
        self._expect(TokenKind.ASSIGN)
        expr = self._parse_expression()
        return self._make(Assignment, start, target=target, expr=expr)

    def _parse_instantiation(self) -> ModuleInstantiation:
        start = self._current()
        modifiers: set[str] = set()
        while self._current().kind in MODIFIERS:
            modifiers.add(MODIFIERS[self._advance().kind])
        payload = self._parse_modular_payload()
        return self._make(ModuleInstantiation, start,
                          modifiers=frozenset(modifiers), payload=payload)

    def _parse_modular_payload(self) -> ModularPayload:
        start = self._current()
        if start.kind == TokenKind.IF:
            self._advance()
            self._expect(TokenKind.LPAREN)
            condition = self._parse_expression()
            self._expect(TokenKind.RPAREN)
            true_branch = self._parse_child()
            false_branch = None
            if self._at(TokenKind.ELSE):
                self._advance()
                false_branch = self._parse_child()
            return self._make(ModularIfElse, start, condition=condition,
                              true_branch=true_branch, false_branch=false_branch)
        if start.kind in (TokenKind.ECHO, TokenKind.ASSERT):
            self._advance()
            arguments = self._parse_arguments()
            child = self._parse_child()
            cls = ModularEcho if start.kind == TokenKind.ECHO else ModularAssert
            return self._make(cls, start, arguments=arguments, child=child)
        if start.kind in _MODULE_ID_START:
            self._advance()
            module = self._make(ModuleId, start, name=start.text)
            arguments = self._parse_arguments(
                declares_variables=(start.kind in _PSEUDO_MODULES
                                    or start.text in _LOOP_MODULE_NAMES))
            callee = self._make(SingleModuleInstantiation, start,
                                module=module, arguments=arguments)
            child = self._parse_child()
            return self._make(ModularCall, start, callee=callee, child=child)
        raise self._fail(f"expected a statement but found {start}")

    def _parse_child(self) -> Statement:
        tok = self._current()
        if tok.kind == TokenKind.SEMICOLON:
            self._advance()
            return self._make(EmptyStatement, tok)
        if tok.kind == TokenKind.LBRACE:
            return self._parse_block()
        with self._nested():
            return self._parse_instantiation()

    # --- Parameters, arguments, assignments ---

    def _parse_parameters(self) -> list[ParameterDefinition]:
        self._expect(TokenKind.LPAREN)
        parameters: list[ParameterDefinition] = []
        while self._at(TokenKind.IDENTIFIER):
            start = self._advance()
            default = None
            if self._at(TokenKind.ASSIGN):
                self._advance()
                default = self._parse_expression()
            parameters.append(self._make(ParameterDefinition, start,
                                         name=start.text, default=default))
            if not self._skip_commas():
                break
        self._expect(TokenKind.RPAREN)
        return parameters

    def _parse_arguments(self, declares_variables: bool = False) -> list[Argument]:
        self._expect(TokenKind.LPAREN)
        arguments: list[Argument] = []
        while self._starts_expression():
            arguments.append(self._parse_argument(declares_variables))
            if not self._skip_commas():
                break
        self._expect(TokenKind.RPAREN)
        return arguments

    def _parse_argument(self, declares_variables: bool) -> Argument:
        start = self._current()
        name = None
        if start.kind == TokenKind.IDENTIFIER and self._peek(1).kind == TokenKind.ASSIGN:
            self._advance()
            cls = VariableDefinition if declares_variables else ArgumentName
            name = self._make(cls, start, name=start.text)
            self._advance()
        expr = self._parse_expression()
        return self._make(Argument, start, name=name, expr=expr)

    def _skip_commas(self) -> bool:
        """Consume one or more commas. Returns False if there was none."""
        if not self._at(TokenKind.COMMA):
            return False
        while self._at(TokenKind.COMMA):
            self._advance()
        return True

    def _parse_assignments(self) -> list[Assignment]:
        """Parse ``name = expr, ...`` up to, but not including, ``)`` or ``;``."""
        assignments: list[Assignment] = []
        while self._at(TokenKind.IDENTIFIER):
            assignments.append(self._parse_assignment())
            if not self._skip_commas():
                break
        return assignments

    def _parse_loop_updates(self) -> list[LoopUpdate]:
        updates: list[LoopUpdate] = []
        while self._at(TokenKind.IDENTIFIER):
            start = self._advance()
            target = self._make(VariableRef, start, name=start.text)
            self._expect(TokenKind.ASSIGN)
            expr = self._parse_expression()
            updates.append(self._make(LoopUpdate, start, target=target, expr=expr))
            if not self._skip_commas():
                break
        return updates

    def _parse_let_assignments(self) -> list[Assignment]:
        self._expect(TokenKind.LPAREN)
        assignments = self._parse_assignments()
        self._expect(TokenKind.RPAREN)
        return assignments

    # --- Expressions ---

    def _parse_expression(self) -> Expression:
        with self._nested():
            return self._parse_expression_level()

    def _parse_expression_level(self) -> Expression:
        start = self._current()
        if start.kind == TokenKind.LET:
            self._advance()
            assignments = self._parse_let_assignments()
            body = self._parse_expression()
            return self._make(LetOp, start, assignments=assignments, body=body)
        if start.kind in (TokenKind.ASSERT, TokenKind.ECHO):
            self._advance()
            arguments = self._parse_arguments()
            body = self._parse_expression() if self._starts_expression() else None
            cls = EchoOp if start.kind == TokenKind.ECHO else AssertOp
            return self._make(cls, start, arguments=arguments, body=body)
        if start.kind == TokenKind.FUNCTION:
            self._advance()
            parameters = self._parse_parameters()
            body = self._parse_expression()
            return self._make(FunctionLiteral, start, parameters=parameters, body=body)
        return self._parse_ternary()

    def _parse_ternary(self) -> Expression:
        start = self._current()
        condition = self._parse_logical_or()
        if not self._at(TokenKind.QUESTION):
            return condition
        self._advance()
        true_expr = self._parse_expression()
        self._expect(TokenKind.COLON)
        false_expr = self._parse_expression()
        return self._make(TernaryOp, start, condition=condition,
                          true_expr=true_expr, false_expr=false_expr)

    def _parse_chain(self, cls: type[OperatorChain],
                     operand: Callable[[], Expression],
                     *kinds: TokenKind) -> Expression:
        """Parse a left associative chain of operators of one precedence level."""
        start = self._current()
        first = operand()
        if not self._at_any(*kinds):
            return first
        operands = [first]
        operators: list[str] = []
        while self._at_any(*kinds):
            operators.append(self._advance().text)
            operands.append(operand())
        return self._make(cls, start, operands=operands, operators=operators)

    def _parse_logical_or(self) -> Expression:
        return self._parse_chain(LogicalOrOp, self._parse_logical_and,
                                 TokenKind.LOGICAL_OR)

    def _parse_logical_and(self) -> Expression:
        return self._parse_chain(LogicalAndOp, self._parse_equality,
                                 TokenKind.LOGICAL_AND)

    def _parse_equality(self) -> Expression:
        return self._parse_chain(EqualityOp, self._parse_comparison,
                                 TokenKind.EQUAL, TokenKind.NOT_EQUAL)

    def _parse_comparison(self) -> Expression:
        return self._parse_chain(ComparisonOp, self._parse_additive,
                                 TokenKind.LESS, TokenKind.LESS_EQUAL,
                                 TokenKind.GREATER, TokenKind.GREATER_EQUAL)

    def _parse_additive(self) -> Expression:
        return self._parse_chain(AdditiveOp, self._parse_multiplicative,
                                 TokenKind.PLUS, TokenKind.MINUS)

    def _parse_multiplicative(self) -> Expression:
        return self._parse_chain(MultiplicativeOp, self._parse_unary,
                                 TokenKind.STAR, TokenKind.SLASH, TokenKind.PERCENT)

    def _parse_unary(self) -> Expression:
        start = self._current()
        if start.kind in _UNARY_OPERATORS:
            self._advance()
            with self._nested():
                expr = self._parse_unary()
            return self._make(UnaryOp, start, operator=start.text, expr=expr)
        return self._parse_power()

    def _parse_power(self) -> Expression:
        start = self._current()
        base = self._parse_postfix()
        if not self._at(TokenKind.CARET):
            return base
        self._advance()
        # Right associative: the exponent recurses through unary back into power.
        with self._nested():
            exponent = self._parse_unary()
        return self._make(ExponentOp, start, base=base, exponent=exponent)

    def _parse_postfix(self) -> Expression:
        start = self._current()
        target = self._parse_primary()
        chain: list[PostfixOp] = []
        while True:
            tok = self._current()
            if tok.kind == TokenKind.LPAREN:
                arguments = self._parse_arguments()
                chain.append(self._make(CallOp, tok, arguments=arguments))
            elif tok.kind == TokenKind.LBRACKET:
                self._advance()
                index = self._parse_expression()
                self._expect(TokenKind.RBRACKET)
                chain.append(self._make(IndexOp, tok, index=index))
            elif tok.kind == TokenKind.DOT:
                self._advance()
                member = self._parse_name()
                chain.append(self._make(MemberOp, tok, member=member))
            else:
                break
        if not chain:
            return target
        return self._make(CallExpr, start, target=target, chain=chain)

    def _parse_primary(self) -> Expression:
        tok = self._current()
        kind = tok.kind
        if kind == TokenKind.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenKind.RPAREN)
            return self._make(ParenExpr, tok, expr=expr)
        if kind == TokenKind.LBRACKET:
            return self._parse_vector_or_range()
        if kind in (TokenKind.TRUE, TokenKind.FALSE):
            self._advance()
            return self._make(BooleanLiteral, tok, val=kind == TokenKind.TRUE)
        if kind == TokenKind.UNDEF:
            self._advance()
            return self._make(UndefinedLiteral, tok)
        if kind == TokenKind.NUMBER:
            self._advance()
            return self._make(NumberLiteral, tok, val=self._number_value(tok.text))
        if kind == TokenKind.STRING:
            self._advance()
            return self._make(StringLiteral, tok, val=tok.text)
        if kind == TokenKind.IDENTIFIER:
            self._advance()
            return self._make(VariableRef, tok, name=tok.text)
        raise self._fail(f"expected an expression but found {tok}")

    @staticmethod
    def _number_value(text: str) -> float:
        if text[:2] in ("0x", "0X"):
            return float(int(text, 16))
        return float(text)

    # --- Vectors, ranges and list comprehensions ---

    def _parse_vector_or_range(self) -> Expression:
        start = self._advance()
        if self._at(TokenKind.RBRACKET):
            self._advance()
            return self._make(Vector, start, elements=[])
        first = self._parse_vector_element()
        if self._at(TokenKind.COLON):
            return self._parse_range_rest(start, first)
        elements = [first]
        while self._skip_commas():
            if self._at(TokenKind.RBRACKET):
                break
            elements.append(self._parse_vector_element())
        self._expect(TokenKind.RBRACKET)
        vector = self._make(Vector, start, elements=elements)
        self._check_uniform(vector)
        return vector

    def _parse_range_rest(self, start: Token, first: ASTNode) -> RangeLiteral:
        if _is_comprehension(first):
            self._error("a list comprehension element cannot start a range", self._current().span)
        self._advance()
        second = self._parse_expression()
        step = None
        end = second
        if self._at(TokenKind.COLON):
            self._advance()
            step = second
            end = self._parse_expression()
        self._expect(TokenKind.RBRACKET)
        return self._make(RangeLiteral, start, start=first, end=end, step=step)

    def _check_uniform(self, vector: Vector) -> None:
        kinds = [_is_comprehension(e) for e in vector.elements]
        for element, kind in zip(vector.elements, kinds):
            if kind != kinds[0]:
                self._error("list comprehension elements cannot be mixed with "
                            "plain vector elements", element.span)
                return

    def _parse_nested_element(self) -> Expression | ListCompElement:
        with self._nested():
            return self._parse_vector_element()

    def _parse_vector_element(self) -> Expression | ListCompElement:
        start = self._current()
        kind = start.kind
        if kind == TokenKind.FOR:
            return self._parse_comprehension_for()
        if kind == TokenKind.EACH:
            self._advance()
            body = self._parse_nested_element()
            return self._make(ListCompEach, start, body=body)
        if kind == TokenKind.IF:
            self._advance()
            self._expect(TokenKind.LPAREN)
            condition = self._parse_expression()
            self._expect(TokenKind.RPAREN)
            true_expr = self._parse_nested_element()
            false_expr = None
            if self._at(TokenKind.ELSE):
                self._advance()
                false_expr = self._parse_nested_element()
            return self._make(ListCompIfElse, start, condition=condition,
                              true_expr=true_expr, false_expr=false_expr)
        if kind == TokenKind.LET:
            self._advance()
            assignments = self._parse_let_assignments()
            body = self._parse_nested_element()
            return self._make(LetOp, start, assignments=assignments, body=body)
        if kind == TokenKind.LPAREN and self._peek(1).kind in _COMPREHENSION_START:
            self._advance()
            element = self._parse_nested_element()
            self._expect(TokenKind.RPAREN)
            return element
        return self._parse_expression()

    def _parse_comprehension_for(self) -> ListCompFor:
        start = self._advance()
        self._expect(TokenKind.LPAREN)
        assignments = self._parse_assignments()
        condition = None
        updates: list[LoopUpdate] = []
        if self._at(TokenKind.SEMICOLON):
            self._advance()
            condition = self._parse_expression()
            self._expect(TokenKind.SEMICOLON)
            updates = self._parse_loop_updates()
        self._expect(TokenKind.RPAREN)
        body = self._parse_nested_element()
        return self._make(ListCompFor, start, assignments=assignments,
                          condition=condition, updates=updates, body=body)


def parse(tokens: list[Token], origin: str | None = None,
          diagnostics: DiagnosticSink | None = None) -> Document:
    """Parse a token list into a Document.

    Args:
        tokens: Tokens from :func:`~openscad_grammar.lexer.tokenize`. An EOF
            token is appended if missing.
        origin: Source name for the document; defaults to the tokens' origin.
        diagnostics: Optional sink that receives each :class:`ParseError`.

    Returns:
        The Document. Syntax errors are in ``document.syntax_errors``; parsing
        never raises on malformed input.
    """
    return Parser(tokens, origin, diagnostics).parse()
