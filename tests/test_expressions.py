"""
Tests for data_ops.expressions - parsing and evaluating overlay equations.

Run with: python -m pytest tests/test_expressions.py
"""

import math

import pytest

from data_ops.expressions import (
    BinaryOp,
    Call,
    ExpressionError,
    ExpressionEvaluator,
    Name,
    MAX_NESTING,
    PARSE_CACHE_SIZE,
    UnaryOp,
    _parse_cached,
    parse,
)


@pytest.fixture
def ev():
    return ExpressionEvaluator()


class TestParse:
    def test_precedence(self):
        node = parse("1 + 2 * x")
        assert isinstance(node, BinaryOp) and node.op == "+"
        assert isinstance(node.right, BinaryOp) and node.right.op == "*"

    def test_power_is_right_associative(self):
        node = parse("2^3^2")
        assert node.op == "^"
        assert isinstance(node.right, BinaryOp) and node.right.op == "^"

    def test_unary_minus_binds_looser_than_power(self):
        node = parse("-x^2")
        assert isinstance(node, UnaryOp)
        assert isinstance(node.operand, BinaryOp) and node.operand.op == "^"

    def test_function_names_are_case_insensitive(self):
        node = parse("SIN(x)")
        assert isinstance(node, Call) and node.func == "sin"

    def test_unknown_function_rejected(self):
        with pytest.raises(ExpressionError, match="unknown function 'foo'"):
            parse("foo(x)")

    @pytest.mark.parametrize("text", ["", "   ", "2 +", "(x", "x)", "2 $ 3", "sin x"])
    def test_malformed(self, text):
        with pytest.raises(ExpressionError):
            parse(text)

    def test_name(self):
        assert parse("radius") == Name("radius")


class TestEvaluate:
    @pytest.mark.parametrize("expr,bindings,expected", [
        ("2*x + 1", {"x": 3}, 7.0),
        ("x^2", {"x": 4}, 16.0),
        ("x**2", {"x": 4}, 16.0),
        ("2^3^2", {}, 512.0),
        ("-x^2", {"x": 3}, -9.0),
        ("(-x)^2", {"x": 3}, 9.0),
        ("8 / 4 / 2", {}, 1.0),
        ("sqrt(x^2 + y^2)", {"x": 3, "y": 4}, 5.0),
        ("abs(-2.5)", {}, 2.5),
        ("exp(0) + log(1)", {}, 1.0),
        ("1e2 + .5", {}, 100.5),
    ])
    def test_values(self, ev, expr, bindings, expected):
        assert ev.evaluate(expr, bindings) == pytest.approx(expected)
        assert ev.consume_error() is None

    def test_constants_case_insensitive(self, ev):
        assert ev.evaluate("PI", {}) == pytest.approx(math.pi)
        assert ev.evaluate("e", {}) == pytest.approx(math.e)

    def test_constant_wins_over_binding(self, ev):
        assert ev.evaluate("e", {"e": 5.0}) == pytest.approx(math.e)

    def test_variables_are_case_sensitive(self, ev):
        assert math.isnan(ev.evaluate("X", {"x": 1.0}))
        assert "undefined variable 'X'" in ev.consume_error()

    def test_implicit_multiplication_hint(self, ev):
        assert math.isnan(ev.evaluate("xy", {"x": 1.0, "y": 2.0}))
        error = ev.consume_error()
        assert error.startswith('Invalid expression "xy"')
        assert 'Use * for multiplication (e.g., "x*y" not "xy").' in error

    @pytest.mark.parametrize("expr,reason", [
        ("1/0", "division by zero"),
        ("exp(1000)", "numeric overflow"),
        ("sqrt(-1)", "math domain error"),
        ("log(0)", "math domain error"),
    ])
    def test_runtime_failures(self, ev, expr, reason):
        assert math.isnan(ev.evaluate(expr, {}))
        assert reason in ev.consume_error()

    def test_consume_clears(self, ev):
        ev.evaluate("1/0", {})
        assert ev.consume_error() is not None
        assert ev.consume_error() is None

    def test_failure_does_not_raise_for_parse_errors(self, ev):
        assert math.isnan(ev.evaluate("2 +", {}))
        assert math.isnan(ev.evaluate("2 +", {}))
        assert ev.last_error is not None

    def test_compile_caches(self, ev):
        assert ev.compile("x + 1") is ev.compile("x + 1")

    def test_compile_raises_cached_parse_error(self, ev):
        with pytest.raises(ExpressionError):
            ev.compile("(")
        with pytest.raises(ExpressionError):
            ev.compile("(")


    def test_parse_cache_is_shared_and_bounded(self):
        assert ExpressionEvaluator().compile("y - 2") is ExpressionEvaluator().compile("y - 2")
        ev = ExpressionEvaluator()
        for i in range(PARSE_CACHE_SIZE + 20):
            ev.evaluate(f"x + {i}", {"x": 1.0})
        assert _parse_cached.cache_info().currsize <= PARSE_CACHE_SIZE


class TestNesting:
    def test_deep_parentheses(self, ev):
        text = "(" * 300 + "x" + ")" * 300
        assert math.isnan(ev.evaluate(text, {"x": 1.0}))
        assert "nested too deeply" in ev.consume_error()

    def test_deep_unary_chain(self, ev):
        assert math.isnan(ev.evaluate("-" * 2000 + "x", {"x": 1.0}))
        assert "nested too deeply" in ev.consume_error()

    def test_deep_function_calls(self, ev):
        text = "sin(" * 200 + "x" + ")" * 200
        assert math.isnan(ev.evaluate(text, {"x": 0.0}))

    def test_long_flat_sum_does_not_crash(self, ev):
        value = ev.evaluate("+".join(["x"] * 5000), {"x": 1.0})
        assert math.isnan(value) or value == 5000.0

    def test_nesting_limit_boundary(self, ev):
        inside = "(" * MAX_NESTING + "x" + ")" * MAX_NESTING
        assert ev.evaluate(inside, {"x": 2.0}) == 2.0
        with pytest.raises(ExpressionError, match="nested too deeply"):
            parse("(" + inside + ")")
