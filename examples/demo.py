#!/usr/bin/env python3
"""
DXTREE Feature Demonstration

This script walks through parsing, differentiation, tracing and error
reporting.
"""

import logging

from dxtree import (
    tokenize, build_arena, materialize, parse, format_tree,
    derivative, differentiate, DerivativeTrace, Vocabulary,
    SIN, COS, MULTIPLY, ExpressionError, DerivativeError,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_pipeline():
    """Show each parsing step for one expression."""
    section("Parsing Pipeline")

    expr = "sin(add(sin(z),2))"
    tokens = tokenize(expr)
    arena = build_arena(tokens)
    tree = materialize(arena)

    print(f"  expression: {expr}")
    print(f"  tokens:     {tokens}")
    print(f"  arena root: {arena.root}")
    for i, node in enumerate(arena.nodes):
        print(f"    [{i}] {node.symbol!r} -> {node.children}")
    print(f"  tree:       {format_tree(tree)}")


def demo_rules():
    """Differentiate one expression per rule."""
    section("Differentiation Rules")

    examples = [
        "add(x, 3)",
        "subtract(x, pi)",
        "multiply(x, x)",
        "divide(x, 2)",
        "sin(x)",
        "cos(x)",
        "sin(add(sin(z), 2))",
    ]

    for expr in examples:
        print(f"  d/dx {expr} = {differentiate(expr)}")


def demo_higher_order():
    """Differentiate more than once."""
    section("Higher Order")

    for order in (1, 2, 3):
        print(f"  order {order}: {differentiate('cos(x)', order=order)}")


def demo_trace():
    """Show which rules fired."""
    section("Tracing")

    tree = parse("divide(sin(x), y)")
    trace = DerivativeTrace()
    derivative(tree, trace)

    print(trace.format("verbose"))
    print()
    print(f"  rules:   {trace.format('rules')}")
    print(f"  summary: {trace.summary()}")


def demo_sharing():
    """Unchanged operands are shared between input and output."""
    section("Shared Subtrees")

    tree = parse("multiply(sin(x), cos(y))")
    u, v = tree.children
    result = derivative(tree)
    left, right = result.children
    print(f"  result: {format_tree(result)}")
    print(f"  v reused in left product:  {left.children[1] is v}")
    print(f"  u reused in right product: {right.children[0] is u}")


def demo_vocabulary():
    """Differentiate with a custom vocabulary."""
    section("Custom Vocabulary")

    vocab = Vocabulary({"g"}, {"t"}, {"sin": SIN, "cos": COS, "times": MULTIPLY})
    expr = "times(g, sin(t))"
    print(f"  d/dt {expr} = {differentiate(expr, vocabulary=vocab)}")


def demo_errors():
    """Show how malformed input is reported."""
    section("Errors")

    for expr in ["add(x,2", "add(x,2))", "", "foo(x)", "negate(x)", "add(x)"]:
        try:
            differentiate(expr)
        except (ExpressionError, DerivativeError) as e:
            print(f"  {expr!r:14} {type(e).__name__}: {e}")


def main():
    logging.basicConfig(level=logging.WARNING, format="%(name)s | %(levelname)s | %(message)s")

    demo_pipeline()
    demo_rules()
    demo_higher_order()
    demo_trace()
    demo_sharing()
    demo_vocabulary()
    demo_errors()


if __name__ == "__main__":
    main()
