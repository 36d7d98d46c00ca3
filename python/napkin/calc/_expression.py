"""ArithmeticEngine: recursive-descent evaluator for formula bodies.

Splits the expression at its lowest-precedence top-level operator and
recurses into both sides, so balanced parentheses, operator precedence and
nested calls like ``ROUND(SQRT(A1^2+B1^2)*1.1,2)`` all fall out of the same
few rules.  References are never resolved here: the caller binds every
reference name to a number before evaluation.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from typing import Any

from napkin._errors import EvaluationFault
from napkin.calc._functions import CONSTANTS, FormulaValue, FunctionRegistry, power

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_CALL_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*\(")

# Characters after which +/- (or any operator) must be a unary prefix.
_OPERATOR_CHARS = ("(", ",", "+", "-", "*", "/", "%", "^", ">", "<", "=", "!")

_TWO_CHAR_CMP = (">=", "<=", "<>", "==", "!=")


# ---------------------------------------------------------------------------
# Expression parsing helpers
# ---------------------------------------------------------------------------


def _find_matching_paren(expr: str, start: int) -> int:
    """Index of the ``')'`` matching the ``'('`` at *expr[start]*, or -1."""
    depth = 1
    i = start + 1
    in_string = False
    while i < len(expr):
        ch = expr[i]
        if ch == '"':
            in_string = not in_string
        elif not in_string:
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    return i
        i += 1
    return -1


def _match_function_call(expr: str) -> tuple[str, str] | None:
    """If *expr* is exactly ``NAME(balanced_args)``, return ``(name, args_str)``."""
    m = _CALL_RE.match(expr)
    if not m:
        return None
    open_idx = m.end() - 1
    close_idx = _find_matching_paren(expr, open_idx)
    if close_idx >= 0 and close_idx == len(expr) - 1:
        return m.group(1), expr[open_idx + 1 : close_idx]
    return None


def _find_top_level_split(expr: str) -> tuple[str, str, str] | None:
    """Find the rightmost lowest-precedence binary operator at paren depth 0.

    Precedence (lowest to highest)::

        1. comparison     (=, ==, <>, !=, <, <=, >, >=)
        2. additive       (+, -)
        3. multiplicative (*, /, %)

    Scanning right to left makes all three levels left-associative.
    Returns ``(left, op, right)`` or ``None``.
    """
    for pass_type in ("cmp", "add", "mul"):
        depth = 0
        in_string = False
        i = len(expr) - 1
        while i > 0:
            ch = expr[i]

            if ch == '"':
                in_string = not in_string
                i -= 1
                continue
            if in_string:
                i -= 1
                continue

            # Parentheses are inverted when scanning right to left
            if ch == ")":
                depth += 1
                i -= 1
                continue
            if ch == "(":
                depth -= 1
                i -= 1
                continue
            if depth != 0:
                i -= 1
                continue

            matched_op: str | None = None
            op_start = i

            if pass_type == "cmp":
                if expr[i - 1 : i + 1] in _TWO_CHAR_CMP:
                    matched_op = expr[i - 1 : i + 1]
                    op_start = i - 1
                elif ch in (">", "<"):
                    matched_op = ch
                elif ch == "=" and expr[i - 1] not in (">", "<", "!", "="):
                    matched_op = ch
            elif pass_type == "add" and ch in ("+", "-"):
                matched_op = ch
            elif pass_type == "mul" and ch in ("*", "/", "%"):
                matched_op = ch

            if matched_op is not None and op_start > 0:
                j = op_start - 1
                while j >= 0 and expr[j] == " ":
                    j -= 1
                # A preceding operator means this one is a unary prefix
                is_binary = j >= 0 and expr[j] not in _OPERATOR_CHARS
                # +/- inside scientific notation such as 2.5e-1
                if (
                    is_binary
                    and matched_op in ("+", "-")
                    and expr[j] in ("e", "E")
                    and j >= 1
                    and (expr[j - 1].isdigit() or expr[j - 1] == ".")
                    and _NUMBER_RE.fullmatch(_trailing_number(expr, j - 1)) is not None
                ):
                    is_binary = False
                if is_binary:
                    left = expr[:op_start].strip()
                    right = expr[op_start + len(matched_op) :].strip()
                    if left and right:
                        return left, matched_op, right

            i = op_start - 1

    return None


def _trailing_number(expr: str, end: int) -> str:
    """The run of digits and dots ending at *expr[end]*, if it starts a token."""
    start = end
    while start > 0 and (expr[start - 1].isdigit() or expr[start - 1] == "."):
        start -= 1
    if start > 0 and (expr[start - 1].isalnum() or expr[start - 1] == "_"):
        # Part of an identifier such as A1e-2, not a literal
        return ""
    return expr[start : end + 1]


def _find_power_split(expr: str) -> tuple[str, str] | None:
    """Split at the leftmost top-level ``^`` (right-associative)."""
    depth = 0
    in_string = False
    for i, ch in enumerate(expr):
        if ch == '"':
            in_string = not in_string
        elif in_string:
            continue
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "^" and depth == 0 and i > 0:
            return expr[:i].strip(), expr[i + 1 :].strip()
    return None


def _split_top_level_args(args_str: str) -> list[str]:
    """Split on commas at depth 0, respecting strings."""
    if not args_str.strip():
        return []
    args: list[str] = []
    depth = 0
    in_string = False
    current = ""
    for ch in args_str:
        if ch == '"':
            in_string = not in_string
        elif not in_string:
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
            elif ch == "," and depth == 0:
                args.append(current)
                current = ""
                continue
        current += ch
    args.append(current)
    return args


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


def _as_number(value: Any, op: str) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    raise EvaluationFault(f"Operator {op!r} needs numbers, got {value!r}")


def _arith(left: Any, op: str, right: Any) -> float:
    a = _as_number(left, op)
    b = _as_number(right, op)
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    if op == "/":
        if b == 0:
            raise EvaluationFault("Division by zero")
        return a / b
    if op == "%":
        if b == 0:
            raise EvaluationFault("Modulo by zero")
        return a - b * math.floor(a / b)
    if op == "^":
        return power(a, b)
    raise EvaluationFault(f"Unknown operator {op!r}")


def _compare(left: Any, op: str, right: Any) -> bool:
    """Numeric comparison, or case-insensitive comparison of two strings."""
    if isinstance(left, str) and isinstance(right, str):
        lv: Any = left.lower()
        rv: Any = right.lower()
    else:
        lv = _as_number(left, op)
        rv = _as_number(right, op)
    if op in ("=", "=="):
        return lv == rv
    if op in ("<>", "!="):
        return lv != rv
    if op == "<":
        return lv < rv
    if op == "<=":
        return lv <= rv
    if op == ">":
        return lv > rv
    if op == ">=":
        return lv >= rv
    raise EvaluationFault(f"Unknown comparison {op!r}")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ArithmeticEngine:
    """Default :class:`~napkin.calc.ExpressionEngine` implementation.

    Usage::

        engine = ArithmeticEngine()
        engine.evaluate("A1*2+MAX(B2,3)", {"A1": 4.0, "B2": 1.0})  # -> 11.0
    """

    def __init__(self, functions: FunctionRegistry | None = None) -> None:
        self.functions = functions if functions is not None else FunctionRegistry()

    def evaluate(self, body: str, bindings: Mapping[str, float]) -> FormulaValue:
        """Evaluate *body* against *bindings*.

        Raises EvaluationFault for anything the grammar rejects, including
        failures inside function implementations and non-finite results.
        """
        expr = body.strip()
        if not expr:
            raise EvaluationFault("Empty formula")
        try:
            result = self._eval_expr(expr, bindings)
        except EvaluationFault:
            raise
        except Exception as e:
            raise EvaluationFault(f"Cannot evaluate {body!r}: {e}") from e
        if isinstance(result, float) and not math.isfinite(result):
            raise EvaluationFault(f"Non-finite result for {body!r}")
        return result

    def _eval_expr(self, expr: str, bindings: Mapping[str, float]) -> FormulaValue:
        """Recursively evaluate an expression.

        Dispatch order (first match wins):

        1. Comparison / additive / multiplicative split at top level
        2. Unary minus / plus
        3. Power split (``^``)
        4. Parenthesized sub-expression
        5. Function call
        6. Numeric literal
        7. String literal
        8. Boolean literal
        9. Bound reference, then named constant
        """
        expr = expr.strip()
        if not expr:
            raise EvaluationFault("Missing operand")

        # 1. Binary split
        split = _find_top_level_split(expr)
        if split:
            left_str, op, right_str = split
            left = self._eval_expr(left_str, bindings)
            right = self._eval_expr(right_str, bindings)
            if op in ("+", "-", "*", "/", "%"):
                return _arith(left, op, right)
            return _compare(left, op, right)

        # 2. Unary minus / plus
        if expr[0] in ("-", "+"):
            val = _as_number(self._eval_expr(expr[1:], bindings), expr[0])
            return -val if expr[0] == "-" else val

        # 3. Power
        pow_split = _find_power_split(expr)
        if pow_split:
            base = self._eval_expr(pow_split[0], bindings)
            exponent = self._eval_expr(pow_split[1], bindings)
            return _arith(base, "^", exponent)

        # 4. Parenthesized sub-expression
        if expr[0] == "(":
            close = _find_matching_paren(expr, 0)
            if close == len(expr) - 1:
                return self._eval_expr(expr[1:close], bindings)
            raise EvaluationFault(f"Unbalanced parentheses in {expr!r}")

        # 5. Function call
        call = _match_function_call(expr)
        if call:
            return self._eval_function(call[0], call[1], bindings)

        # 6. Numeric literal
        if _NUMBER_RE.fullmatch(expr):
            return float(expr)

        # 7. String literal
        if len(expr) >= 2 and expr[0] == '"' and expr[-1] == '"' and '"' not in expr[1:-1]:
            return expr[1:-1]

        # 8. Boolean
        upper = expr.upper()
        if upper == "TRUE":
            return True
        if upper == "FALSE":
            return False

        # 9. Identifiers
        if _IDENT_RE.fullmatch(expr):
            if expr in bindings:
                return float(bindings[expr])
            if upper in CONSTANTS:
                return CONSTANTS[upper]
            raise EvaluationFault(f"Undefined symbol {expr!r}")

        raise EvaluationFault(f"Cannot parse {expr!r}")

    def _eval_function(
        self, name: str, args_str: str, bindings: Mapping[str, float]
    ) -> FormulaValue:
        func = self.functions.get(name)
        if func is None:
            logger.debug("Unsupported function: %s", name)
            raise EvaluationFault(f"Unknown function {name!r}")
        args = [self._eval_expr(arg, bindings) for arg in _split_top_level_args(args_str)]
        return func(args)
