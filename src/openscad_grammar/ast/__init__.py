# Import all AST nodes from nodes
from .nodes import (
    ASTNode,
    Expression,
    Primary,
    NumberLiteral,
    StringLiteral,
    BooleanLiteral,
    UndefinedLiteral,
    VariableRef,
    ParenExpr,
    Vector,
    RangeLiteral,
    TernaryOp,
    OperatorChain,
    LogicalOrOp,
    LogicalAndOp,
    EqualityOp,
    ComparisonOp,
    AdditiveOp,
    MultiplicativeOp,
    UnaryOp,
    ExponentOp,
    PostfixOp,
    CallOp,
    IndexOp,
    MemberOp,
    CallExpr,
    FunctionLiteral,
    LetOp,
    AssertOrEchoOp,
    EchoOp,
    AssertOp,
    ListCompElement,
    ListCompEach,
    LoopUpdate,
    ListCompFor,
    ListCompIfElse,
    VariableDefinition,
    ParameterDefinition,
    ArgumentName,
    Argument,
    Statement,
    EmptyStatement,
    Block,
    Assignment,
    ModuleId,
    SingleModuleInstantiation,
    ModularPayload,
    ModularCall,
    ModularEcho,
    ModularAssert,
    ModularIfElse,
    ModuleInstantiation,
    ModuleDefinition,
    FunctionDefinition,
    IncludeStatement,
    UseStatement,
    iter_child_nodes,
    walk,
)

from .document import Document, NodeArena

# Import scope resolution
from .scope import (
    Binding,
    BindingKind,
    Scope,
    ScopeResolver,
    resolve,
)

# Import serialization functions
from .serialization import (
    ast_to_dict,
    ast_to_json,
    ast_from_dict,
    ast_from_json,
    ast_to_yaml,
    ast_from_yaml,
)
