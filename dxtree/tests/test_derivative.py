"""Tests for the differentiation engine."""

import logging

import pytest
from dxtree import (
    derivative, differentiate, parse, format_tree, rule_for, RULES,
    Node, Symbol, SymbolKind, Vocabulary,
    ADD, SUBTRACT, MULTIPLY, DIVIDE, SIN, COS, NEGATE, NULLSYMBOL,
    DERIVATIVE, NUMERICAL_DERIVATIVE, UNKNOWN,
    DerivativeError, NoDerivativeRuleError, MalformedNodeError, NestingTooDeepError,
    UnbalancedParenthesesError, EmptyExpressionError,
)


def leaf_x():
    return Node(Symbol.variable("x"))


class TestLeafRules:
    """Tests for constants and variables."""

    @pytest.mark.parametrize("text", ["0", "3.5", "-2", "e", "pi", "anything"])
    def test_constant_is_zero(self, text):
        result = derivative(Node(Symbol.constant(text)))
        assert result.symbol == Symbol.constant("0")
        assert result.children == ()

    @pytest.mark.parametrize("name", ["x", "y", "z", "t"])
    def test_variable_is_one(self, name):
        """Every variable differentiates to 1, whatever its name."""
        result = derivative(Node(Symbol.variable(name)))
        assert result.symbol == Symbol.constant("1")

    def test_repeated_differentiation_of_constant(self):
        """d/dx of a constant stays zero."""
        node = Node(Symbol.constant("7"))
        for _ in range(3):
            node = derivative(node)
            assert node.symbol == Symbol.constant("0")

    def test_variable_then_constant(self):
        once = derivative(leaf_x())
        twice = derivative(once)
        assert format_tree(once) == "1"
        assert format_tree(twice) == "0"


class TestOperatorRules:
    """Tests for each operator rule, via differentiate()."""

    def test_add(self):
        assert differentiate("add(x,3)") == "ADD(1, 0)"

    def test_subtract(self):
        assert differentiate("subtract(x, y)") == "SUBTRACT(1, 1)"

    def test_product_rule(self):
        assert differentiate("multiply(x,x)") == "ADD(MULTIPLY(1, x), MULTIPLY(x, 1))"

    def test_quotient_rule(self):
        assert differentiate("divide(x,2)") == (
            "DIVIDE(SUBTRACT(MULTIPLY(1, 2), MULTIPLY(x, 0)), MULTIPLY(2, 2))"
        )

    def test_sin_chain_rule(self):
        assert differentiate("sin(x)") == "MULTIPLY(COS(x), 1)"

    def test_cos_chain_rule(self):
        assert differentiate("cos(x)") == "MULTIPLY(MULTIPLY(-1, SIN(x)), 1)"

    def test_nested_chain(self):
        assert differentiate("sin(add(z,3))") == "MULTIPLY(COS(ADD(z, 3)), ADD(1, 0))"

    def test_nested_product_in_sum(self):
        assert differentiate("add(multiply(2, x), sin(y))") == (
            "ADD(ADD(MULTIPLY(0, x), MULTIPLY(2, 1)), MULTIPLY(COS(y), 1))"
        )

    def test_sin_of_sin(self):
        assert differentiate("sin(add(sin(z),2))") == (
            "MULTIPLY(COS(ADD(SIN(z), 2)), ADD(MULTIPLY(COS(z), 1), 0))"
        )


class TestSharing:
    """Unchanged operands are reused, not copied."""

    def test_product_shares_operands(self):
        tree = parse("multiply(sin(x), y)")
        u, v = tree.children
        result = derivative(tree)
        left, right = result.children
        assert left.children[1] is v
        assert right.children[0] is u

    def test_quotient_shares_denominator(self):
        tree = parse("divide(x, cos(y))")
        u, v = tree.children
        result = derivative(tree)
        numerator, denominator = result.children
        assert denominator.children[0] is v
        assert denominator.children[1] is v
        assert numerator.children[1].children[0] is u

    def test_chain_shares_argument(self):
        tree = parse("sin(add(x, 1))")
        (u,) = tree.children
        result = derivative(tree)
        assert result.children[0].children[0] is u

    def test_input_not_modified(self):
        tree = parse("divide(multiply(x, x), sin(z))")
        before = format_tree(tree)
        derivative(tree)
        assert format_tree(tree) == before


class TestMissingRules:
    """Symbols without a rule are reported, not papered over."""

    def test_unknown_symbol(self):
        with pytest.raises(NoDerivativeRuleError, match="no differentiation rule"):
            differentiate("foo(x)")

    def test_unknown_node_directly(self):
        node = Node(UNKNOWN, (leaf_x(),))
        with pytest.raises(NoDerivativeRuleError) as exc_info:
            derivative(node)
        assert exc_info.value.symbol == UNKNOWN

    @pytest.mark.parametrize("symbol", [NEGATE, NULLSYMBOL, DERIVATIVE, NUMERICAL_DERIVATIVE])
    def test_reserved_symbols(self, symbol):
        with pytest.raises(NoDerivativeRuleError):
            derivative(Node(symbol, (leaf_x(),)))

    def test_negate_from_text(self):
        with pytest.raises(NoDerivativeRuleError, match="NEGATE"):
            differentiate("negate(x)")

    def test_unknown_nested_deep(self):
        """An unknown symbol anywhere in the tree fails the whole call."""
        with pytest.raises(NoDerivativeRuleError):
            differentiate("add(x, sin(bar(y)))")

    def test_bare_unknown_argument(self):
        """A bare unknown name in argument position is reported by name."""
        with pytest.raises(NoDerivativeRuleError) as exc_info:
            differentiate("add(x, w)")
        assert exc_info.value.symbol == UNKNOWN

    def test_is_derivative_error(self):
        assert issubclass(NoDerivativeRuleError, DerivativeError)
        assert issubclass(DerivativeError, ValueError)


class TestArity:
    """Nodes with the wrong number of children are rejected."""

    def test_multiply_one_child(self):
        node = Node(MULTIPLY, (leaf_x(),))
        with pytest.raises(MalformedNodeError, match="expected 2 children, found 1") as exc_info:
            derivative(node)
        assert exc_info.value.expected == 2
        assert exc_info.value.found == 1

    def test_divide_three_children(self):
        node = Node(DIVIDE, (leaf_x(), leaf_x(), leaf_x()))
        with pytest.raises(MalformedNodeError, match="expected 2 children, found 3"):
            derivative(node)

    def test_sin_no_children(self):
        with pytest.raises(MalformedNodeError, match="expected 1 children, found 0"):
            derivative(Node(SIN))

    def test_cos_two_children(self):
        with pytest.raises(MalformedNodeError):
            derivative(Node(COS, (leaf_x(), leaf_x())))

    def test_add_arity_from_text(self):
        with pytest.raises(MalformedNodeError):
            differentiate("add(x)")
        with pytest.raises(MalformedNodeError):
            differentiate("add(x, y, z)")

    def test_subtract_arity(self):
        with pytest.raises(MalformedNodeError):
            derivative(Node(SUBTRACT, ()))

    def test_leaf_with_children(self):
        node = Node(Symbol.constant("1"), (leaf_x(),))
        with pytest.raises(MalformedNodeError, match="expected 0 children, found 1"):
            derivative(node)

    def test_bare_operator_argument(self):
        """An operator written without parens has no operand."""
        with pytest.raises(MalformedNodeError, match="expected 1 children, found 0"):
            differentiate("multiply(sin, x)")

    def test_bare_operator_alone(self):
        with pytest.raises(MalformedNodeError):
            differentiate("sin")


class TestDeepNesting:
    """Trees nested past the recursion limit fail with a clear error."""

    def test_too_deep(self):
        deep = "sin(" * 3000 + "x" + ")" * 3000
        with pytest.raises(NestingTooDeepError, match="nested too deeply"):
            differentiate(deep)

    def test_is_derivative_error(self):
        assert issubclass(NestingTooDeepError, DerivativeError)

    def test_moderate_depth_works(self):
        text = differentiate("sin(" * 50 + "x" + ")" * 50)
        assert text.startswith("MULTIPLY(COS(SIN(")


class TestDifferentiate:
    """Tests for the differentiate() entry point."""

    def test_unbalanced(self):
        with pytest.raises(UnbalancedParenthesesError):
            differentiate("add(x,2")
        with pytest.raises(UnbalancedParenthesesError):
            differentiate("add(x,2))")

    def test_empty(self):
        with pytest.raises(EmptyExpressionError):
            differentiate("")

    def test_second_order_sin(self):
        assert differentiate("sin(x)", order=2) == (
            "ADD(MULTIPLY(MULTIPLY(MULTIPLY(-1, SIN(x)), 1), 1), MULTIPLY(COS(x), 0))"
        )

    def test_order_matches_repeated_calls(self):
        tree = parse("multiply(x, cos(x))")
        twice = derivative(derivative(tree))
        assert differentiate("multiply(x, cos(x))", order=2) == format_tree(twice)

    def test_invalid_order(self):
        with pytest.raises(ValueError, match="order"):
            differentiate("x", order=0)

    def test_custom_vocabulary(self):
        vocab = Vocabulary({"k"}, {"t"}, {"sin": SIN, "times": MULTIPLY})
        assert differentiate("times(k, sin(t))", vocabulary=vocab) == (
            "ADD(MULTIPLY(0, SIN(t)), MULTIPLY(k, MULTIPLY(COS(t), 1)))"
        )

    def test_trace_returns_tuple(self):
        text, trace = differentiate("sin(x)", trace=True)
        assert text == "MULTIPLY(COS(x), 1)"
        assert trace.rules_applied() == ["variable", "sin-chain"]


class TestRuleTable:
    """Tests for the rule table."""

    def test_differentiable_kinds(self):
        assert set(RULES) == {
            SymbolKind.ADD, SymbolKind.SUBTRACT, SymbolKind.MULTIPLY,
            SymbolKind.DIVIDE, SymbolKind.SIN, SymbolKind.COS,
            SymbolKind.CONSTANT, SymbolKind.VARIABLE,
        }

    def test_rule_for(self):
        assert rule_for(SymbolKind.MULTIPLY).name == "product"
        assert rule_for(SymbolKind.DIVIDE).arity == 2
        assert rule_for(SymbolKind.SIN).arity == 1
        assert rule_for(SymbolKind.UNKNOWN) is None

    def test_rule_repr(self):
        assert repr(rule_for(SymbolKind.CONSTANT)) == "@constant \"c' = 0\""


class TestLogging:
    """Fired rules are reported on the package logger."""

    def test_rules_logged_at_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="dxtree"):
            differentiate("sin(x)")
        messages = [r.getMessage() for r in caplog.records if r.name == "dxtree"]
        assert any("rule sin-chain" in m for m in messages)
        assert any("rule variable" in m for m in messages)

    def test_silent_by_default(self, caplog):
        with caplog.at_level(logging.WARNING, logger="dxtree"):
            differentiate("multiply(x, x)")
        assert not [r for r in caplog.records if r.name == "dxtree"]
