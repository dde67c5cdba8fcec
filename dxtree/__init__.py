"""
DXTREE - Derivatives of eXpression TREEs

Parses function-call-style expressions into trees and differentiates
them by structural rewriting.

Quick Start:
    from dxtree import differentiate

    differentiate("sin(x)")           # => "MULTIPLY(COS(x), 1)"
    differentiate("multiply(x,x)")    # => "ADD(MULTIPLY(1, x), MULTIPLY(x, 1))"

Working with trees:
    from dxtree import parse, derivative, format_tree, DerivativeTrace

    tree = parse("divide(x, 2)")
    trace = DerivativeTrace()
    result = derivative(tree, trace)
    format_tree(result)
    # => "DIVIDE(SUBTRACT(MULTIPLY(1, 2), MULTIPLY(x, 0)), MULTIPLY(2, 2))"
    trace.format("rules")
    # => "variable -> constant -> quotient"

Vocabulary:
    constants   any numeral, e, pi
    variables   x, y, z (all treated as the one variable of differentiation)
    functions   add, subtract, multiply, divide (binary), sin, cos, negate (unary)
"""

__version__ = "0.1.0"

# Symbols and classification
from .symbols import (
    Symbol,
    SymbolKind,
    Vocabulary,
    classify,
    default_vocabulary,
    function_table,
    is_value,
    ARITY,
    NULLSYMBOL,
    ADD,
    SUBTRACT,
    NEGATE,
    MULTIPLY,
    DIVIDE,
    SIN,
    COS,
    DERIVATIVE,
    NUMERICAL_DERIVATIVE,
    UNKNOWN,
)

# Parsing and printing
from .tree import (
    ArenaNode,
    ArenaTree,
    Node,
    tokenize,
    build_arena,
    materialize,
    parse,
    format_tree,
    ExpressionError,
    UnbalancedParenthesesError,
    EmptyExpressionError,
)

# Differentiation
from .derivative import (
    derivative,
    differentiate,
    rule_for,
    RULES,
    DerivativeRule,
    DerivativeStep,
    DerivativeTrace,
    DerivativeError,
    NoDerivativeRuleError,
    MalformedNodeError,
    NestingTooDeepError,
)

from .logger import dxtree_logger

# Public API
__all__ = [
    # Version
    "__version__",
    # Symbols
    "Symbol",
    "SymbolKind",
    "Vocabulary",
    "classify",
    "default_vocabulary",
    "function_table",
    "is_value",
    "ARITY",
    "NULLSYMBOL",
    "ADD",
    "SUBTRACT",
    "NEGATE",
    "MULTIPLY",
    "DIVIDE",
    "SIN",
    "COS",
    "DERIVATIVE",
    "NUMERICAL_DERIVATIVE",
    "UNKNOWN",
    # Trees
    "ArenaNode",
    "ArenaTree",
    "Node",
    "tokenize",
    "build_arena",
    "materialize",
    "parse",
    "format_tree",
    # Differentiation
    "derivative",
    "differentiate",
    "rule_for",
    "RULES",
    "DerivativeRule",
    "DerivativeStep",
    "DerivativeTrace",
    # Errors
    "ExpressionError",
    "UnbalancedParenthesesError",
    "EmptyExpressionError",
    "DerivativeError",
    "NoDerivativeRuleError",
    "MalformedNodeError",
    "NestingTooDeepError",
    # Logging
    "dxtree_logger",
]
