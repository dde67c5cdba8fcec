"""
Symbolic differentiation of expression trees.

DXTREE - Derivatives of eXpression TREEs

Each differentiable symbol kind has one rule in RULES. A rule receives
the node and a callback that differentiates a child, and builds the
derivative out of new nodes plus the node's own, unchanged children:

    sum          (+ u v)'     = (+ u' v')
    difference   (- u v)'     = (- u' v')
    product      (* u v)'     = (+ (* u' v) (* u v'))
    quotient     (/ u v)'     = (/ (- (* u' v) (* u v')) (* v v))
    sin-chain    (sin u)'     = (* (cos u) u')
    cos-chain    (cos u)'     = (* (* -1 (sin u)) u')
    constant     c'           = 0
    variable     x'           = 1

There is a single, implicit variable of differentiation: every VARIABLE
differentiates to 1 whatever its name.

Tracing:
    result, trace = differentiate("sin(x)", trace=True)
    print(trace.format("rules"))    # variable -> sin-chain
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple, Union

from .logger import dxtree_logger
from .symbols import (
    ADD, SUBTRACT, MULTIPLY, DIVIDE, SIN, COS,
    ARITY, Symbol, SymbolKind, Vocabulary,
)
from .tree import Node, format_tree, parse

ChildDerivative = Callable[[Node], Node]
RuleFunc = Callable[[Node, ChildDerivative], Node]

ZERO = Node(Symbol.constant("0"))
ONE = Node(Symbol.constant("1"))
MINUS_ONE = Node(Symbol.constant("-1"))


class DerivativeError(ValueError):
    """Raised when a tree cannot be differentiated."""


class NoDerivativeRuleError(DerivativeError):
    """Raised for a symbol that has no differentiation rule."""

    def __init__(self, symbol: Symbol):
        self.symbol = symbol
        super().__init__(f"no differentiation rule for symbol {symbol!r}")


class MalformedNodeError(DerivativeError):
    """Raised when a node has the wrong number of children for its symbol."""

    def __init__(self, symbol: Symbol, expected: int, found: int):
        self.symbol = symbol
        self.expected = expected
        self.found = found
        super().__init__(
            f"malformed node: expected {expected} children, found {found} ({symbol.name})"
        )


class NestingTooDeepError(DerivativeError):
    """Raised when a tree is nested deeper than the engine can recurse."""

    def __init__(self):
        super().__init__("expression nested too deeply to differentiate")


# ============================================================
# Rules
# ============================================================

class DerivativeRule:
    """A named differentiation rule for one symbol kind."""

    __slots__ = ('name', 'kind', 'arity', 'description', 'apply')

    def __init__(self, name: str, kind: SymbolKind, apply: RuleFunc,
                 description: Optional[str] = None):
        self.name = name
        self.kind = kind
        self.arity = ARITY[kind]
        self.description = description
        self.apply = apply

    def __repr__(self) -> str:
        if self.description:
            return f"@{self.name} \"{self.description}\""
        return f"@{self.name}"


def linear(symbol: Symbol) -> RuleFunc:
    """Rule that keeps the operator and differentiates every child."""
    def rule(node: Node, d: ChildDerivative) -> Node:
        return Node(symbol, tuple(d(child) for child in node.children))
    return rule


def product_rule(node: Node, d: ChildDerivative) -> Node:
    u, v = node.children
    return Node(ADD, (
        Node(MULTIPLY, (d(u), v)),
        Node(MULTIPLY, (u, d(v))),
    ))


def quotient_rule(node: Node, d: ChildDerivative) -> Node:
    u, v = node.children
    numerator = Node(SUBTRACT, (
        Node(MULTIPLY, (d(u), v)),
        Node(MULTIPLY, (u, d(v))),
    ))
    denominator = Node(MULTIPLY, (v, v))
    return Node(DIVIDE, (numerator, denominator))


def sin_rule(node: Node, d: ChildDerivative) -> Node:
    (u,) = node.children
    return Node(MULTIPLY, (Node(COS, (u,)), d(u)))


def cos_rule(node: Node, d: ChildDerivative) -> Node:
    (u,) = node.children
    negative_sin = Node(MULTIPLY, (MINUS_ONE, Node(SIN, (u,))))
    return Node(MULTIPLY, (negative_sin, d(u)))


def constant_rule(node: Node, d: ChildDerivative) -> Node:
    return ZERO


def variable_rule(node: Node, d: ChildDerivative) -> Node:
    return ONE


RULES: Dict[SymbolKind, DerivativeRule] = {
    rule.kind: rule for rule in [
        DerivativeRule("sum", SymbolKind.ADD, linear(ADD), "(u + v)' = u' + v'"),
        DerivativeRule("difference", SymbolKind.SUBTRACT, linear(SUBTRACT), "(u - v)' = u' - v'"),
        DerivativeRule("product", SymbolKind.MULTIPLY, product_rule, "(u v)' = u' v + u v'"),
        DerivativeRule("quotient", SymbolKind.DIVIDE, quotient_rule,
                       "(u / v)' = (u' v - u v') / (v v)"),
        DerivativeRule("sin-chain", SymbolKind.SIN, sin_rule, "sin(u)' = cos(u) u'"),
        DerivativeRule("cos-chain", SymbolKind.COS, cos_rule, "cos(u)' = -sin(u) u'"),
        DerivativeRule("constant", SymbolKind.CONSTANT, constant_rule, "c' = 0"),
        DerivativeRule("variable", SymbolKind.VARIABLE, variable_rule, "x' = 1"),
    ]
}


def rule_for(kind: SymbolKind) -> Optional[DerivativeRule]:
    """Return the rule for a symbol kind, or None if it has none."""
    return RULES.get(kind)


# ============================================================
# Tracing
# ============================================================

class DerivativeStep:
    """One rule application: the node it fired on and what it produced."""

    def __init__(self, rule: DerivativeRule, before: Node, after: Node):
        self.rule = rule
        self.before = before
        self.after = after

    def __repr__(self) -> str:
        return f"{self.rule.name}: {format_tree(self.before)} → {format_tree(self.after)}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "rule_name": self.rule.name,
            "description": self.rule.description,
            "before": format_tree(self.before),
            "after": format_tree(self.after),
        }


class DerivativeTrace:
    """
    Record of the rules fired while differentiating.

    Steps are recorded innermost first: a rule is logged once the
    derivatives of the children it needed are done.

    Formatting options:
        - Default repr / format("verbose"): multi-line, before and after
        - format("compact"): single line showing the rule chain
        - format("rules"): just the rule names applied
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self):
        self.steps: List[DerivativeStep] = []
        self.initial: Optional[Node] = None
        self.final: Optional[Node] = None

    def add_step(self, step: DerivativeStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace.

        Args:
            style: One of "verbose", "compact", "rules"

        Returns:
            Formatted string representation of the trace.
        """
        if style == "compact":
            return (f"{self._show(self.initial)} --[{', '.join(self.rules_applied())}]--> "
                    f"{self._show(self.final)}")

        elif style == "rules":
            rules = self.rules_applied()
            return " -> ".join(rules) if rules else "(no rules applied)"

        else:  # verbose (default)
            return repr(self)

    @staticmethod
    def _show(node: Optional[Node]) -> str:
        return format_tree(node) if node is not None else "?"

    def __repr__(self) -> str:
        lines = [f"Initial: {self._show(self.initial)}"]
        for i, step in enumerate(self.steps, 1):
            lines.append(f"  {i}. {step}")
        lines.append(f"Final: {self._show(self.final)}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any rule fired."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        """Convert trace to dictionary for JSON serialization."""
        return {
            "initial": self._show(self.initial),
            "final": self._show(self.final),
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
        }

    def rule_counts(self) -> Dict[str, int]:
        """Count how many times each rule fired."""
        counts: Dict[str, int] = {}
        for step in self.steps:
            counts[step.rule.name] = counts.get(step.rule.name, 0) + 1
        return counts

    def rules_applied(self) -> List[str]:
        """Rule names in order of application."""
        return [step.rule.name for step in self.steps]

    def summary(self) -> str:
        """Get a brief summary of the differentiation."""
        if not self.steps:
            return "No rules applied"
        counts = self.rule_counts()
        most_used = max(counts.items(), key=lambda x: x[1])
        return (f"{len(self.steps)} steps using {len(counts)} unique rules. "
                f"Most used: {most_used[0]} ({most_used[1]}x)")


# ============================================================
# Engine
# ============================================================

def _derive(node: Node, trace: Optional[DerivativeTrace]) -> Node:
    symbol = node.symbol
    rule = RULES.get(symbol.kind)
    if rule is None:
        raise NoDerivativeRuleError(symbol)

    found = len(node.children)
    if found != rule.arity:
        raise MalformedNodeError(symbol, rule.arity, found)

    result = rule.apply(node, lambda child: _derive(child, trace))

    if dxtree_logger.isEnabledFor(logging.DEBUG):
        dxtree_logger.debug("rule %s: %s -> %s", rule.name, format_tree(node), format_tree(result))
    if trace is not None:
        trace.add_step(DerivativeStep(rule, node, result))
    return result


def derivative(node: Node, trace: Optional[DerivativeTrace] = None) -> Node:
    """
    Return a new tree holding the derivative of `node`.

    The input tree is not modified. Children that appear unchanged in
    the result (u and v in the product rule, for instance) are the
    original Node objects, not copies.

    Args:
        node: Tree to differentiate
        trace: Optional DerivativeTrace that collects the fired rules

    Raises:
        NoDerivativeRuleError: A node's symbol has no rule (UNKNOWN, NEGATE, ...)
        MalformedNodeError: A node has the wrong number of children
        NestingTooDeepError: The tree exceeds the interpreter's recursion limit
    """
    if trace is not None and trace.initial is None:
        trace.initial = node
    try:
        result = _derive(node, trace)
    except RecursionError:
        raise NestingTooDeepError() from None
    if trace is not None:
        trace.final = result
    return result


def differentiate(
    expression: str,
    order: int = 1,
    vocabulary: Optional[Vocabulary] = None,
    trace: bool = False,
) -> Union[str, Tuple[str, DerivativeTrace]]:
    """
    Parse an expression, differentiate it, and render the result.

    Args:
        expression: Function-call-style expression, e.g. "sin(add(z,3))"
        order: How many times to differentiate (default: 1)
        vocabulary: Names to recognize (default: the built-in vocabulary)
        trace: If True, return (text, DerivativeTrace)

    Examples:
        differentiate("sin(x)")          -> "MULTIPLY(COS(x), 1)"
        differentiate("multiply(x,x)")   -> "ADD(MULTIPLY(1, x), MULTIPLY(x, 1))"

    Raises:
        ValueError: If order < 1
        ExpressionError: If the expression cannot be parsed
        DerivativeError: If the tree cannot be differentiated
    """
    if order < 1:
        raise ValueError(f"order must be at least 1, got {order}")

    tree = parse(expression, vocabulary)
    collector = DerivativeTrace() if trace else None

    for _ in range(order):
        tree = derivative(tree, collector)

    text = format_tree(tree)
    if trace:
        return text, collector
    return text
