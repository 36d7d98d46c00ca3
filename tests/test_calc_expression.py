"""Tests for the napkin.calc recursive-descent expression engine."""

from __future__ import annotations

import math

import pytest

from napkin._errors import EvaluationFault
from napkin.calc._expression import ArithmeticEngine
from napkin.calc._functions import FunctionRegistry
from napkin.calc._protocol import ExpressionEngine


@pytest.fixture()
def engine() -> ArithmeticEngine:
    return ArithmeticEngine()


class TestArithmetic:
    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ("1+2*3", 7.0),
            ("(1+2)*3", 9.0),
            ("10-4-3", 3.0),
            ("12/3/2", 2.0),
            ("2^3^2", 512.0),
            ("-2^2", -4.0),
            ("2^-1", 0.5),
            ("2*-3", -6.0),
            ("1 - -2", 3.0),
            ("7 % 3", 1.0),
            ("-7 % 3", 2.0),
            ("2.5e-1*4", 1.0),
            ("1E3+1", 1001.0),
            (".5+1.", 1.5),
            ("((4))", 4.0),
            ("  3  ", 3.0),
        ],
    )
    def test_precedence_and_associativity(
        self, engine: ArithmeticEngine, body: str, expected: float
    ) -> None:
        assert engine.evaluate(body, {}) == expected

    def test_bindings(self, engine: ArithmeticEngine) -> None:
        assert engine.evaluate("A1*2+B2", {"A1": 4.0, "B2": 1.5}) == 9.5

    def test_constants(self, engine: ArithmeticEngine) -> None:
        assert engine.evaluate("PI", {}) == math.pi
        assert engine.evaluate("2*pi", {}) == 2 * math.pi
        assert engine.evaluate("E", {}) == math.e

    def test_booleans_are_numeric_in_arithmetic(self, engine: ArithmeticEngine) -> None:
        assert engine.evaluate("TRUE+1", {}) == 2.0


class TestComparison:
    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ("1<2", True),
            ("2<=1", False),
            ("3>=3", True),
            ("3>3", False),
            ("1=1", True),
            ("1==2", False),
            ("2<>2", False),
            ("2!=3", True),
            ("1+1=2", True),
            ('"abc"="ABC"', True),
        ],
    )
    def test_comparisons(self, engine: ArithmeticEngine, body: str, expected: bool) -> None:
        assert engine.evaluate(body, {}) is expected


class TestFunctions:
    def test_nested_calls(self, engine: ArithmeticEngine) -> None:
        assert engine.evaluate("ROUND(SQRT(A1^2+B1^2)*1.1,2)", {"A1": 3.0, "B1": 4.0}) == 5.5

    def test_case_insensitive_names(self, engine: ArithmeticEngine) -> None:
        assert engine.evaluate("max(1, 5) + Min(2, 3)", {}) == 7.0

    def test_sum_of_refs(self, engine: ArithmeticEngine) -> None:
        assert engine.evaluate("SUM(A1, B2, 3)", {"A1": 1.0, "B2": 2.0}) == 6.0

    def test_if_returns_branch(self, engine: ArithmeticEngine) -> None:
        assert engine.evaluate("IF(A1>1, 10, 20)", {"A1": 2.0}) == 10.0

    def test_custom_registry(self) -> None:
        reg = FunctionRegistry()
        reg.register("TRIPLE", lambda args: args[0] * 3)
        assert ArithmeticEngine(reg).evaluate("TRIPLE(2)+1", {}) == 7.0


class TestStrings:
    def test_string_literal(self, engine: ArithmeticEngine) -> None:
        assert engine.evaluate('"hello"', {}) == "hello"

    def test_string_arithmetic_fails(self, engine: ArithmeticEngine) -> None:
        with pytest.raises(EvaluationFault):
            engine.evaluate('"a"+1', {})


class TestFaults:
    @pytest.mark.parametrize(
        "body",
        [
            "",
            "   ",
            "1/0",
            "1/(1-1)",
            "5 % 0",
            "foo+1",
            "a1",
            "NOPE(1)",
            "1+",
            "*2",
            "(1+2",
            "SUM(1,,2)",
            "SQRT(-1)",
            "AVERAGE()",
            "10^400",
            "1e308*10",
            "1 2",
        ],
    )
    def test_raises_evaluation_fault(self, engine: ArithmeticEngine, body: str) -> None:
        with pytest.raises(EvaluationFault):
            engine.evaluate(body, {})

    def test_function_failure_is_wrapped(self) -> None:
        reg = FunctionRegistry()

        def boom(args: list[object]) -> float:
            raise RuntimeError("boom")

        reg.register("BOOM", boom)
        with pytest.raises(EvaluationFault, match="boom"):
            ArithmeticEngine(reg).evaluate("BOOM()", {})


class TestProtocol:
    def test_engine_satisfies_protocol(self, engine: ArithmeticEngine) -> None:
        assert isinstance(engine, ExpressionEngine)
