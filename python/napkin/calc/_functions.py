"""Function registry, builtin implementations and formula value helpers."""

from __future__ import annotations

import math
from typing import Any, Callable, Union

# ---------------------------------------------------------------------------
# FormulaError: the error token carried as a value
# ---------------------------------------------------------------------------


class FormulaError:
    """Error value produced by a failed or circular formula.

    Use ``FormulaError.of(code)`` for a cached singleton per code.  Errors
    compare equal to their display string.
    """

    __slots__ = ("code",)
    _cache: dict[str, FormulaError] = {}

    ERROR: FormulaError

    def __init__(self, code: str) -> None:
        self.code = code

    @classmethod
    def of(cls, code: str) -> FormulaError:
        canon = code.upper()
        if canon not in cls._cache:
            cls._cache[canon] = cls(canon)
        return cls._cache[canon]

    def __repr__(self) -> str:
        return self.code

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FormulaError):
            return self.code == other.code
        if isinstance(other, str):
            return self.code == other.upper()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)


FormulaError.ERROR = FormulaError.of("#ERROR")

ERROR_VALUE = str(FormulaError.ERROR)

FormulaValue = Union[float, bool, str, FormulaError]


def is_error(val: Any) -> bool:
    return isinstance(val, FormulaError)


def format_number(value: float) -> str:
    """Render a number the way the grid displays it.

    Integral values drop the fractional part (``10.0 -> "10"``); everything
    else uses the shortest repr that round-trips.
    """
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def to_display(value: FormulaValue) -> str:
    """Stringify a formula result for the display-value map."""
    if is_error(value):
        return str(value)
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return format_number(float(value))
    return str(value)


# ---------------------------------------------------------------------------
# Builtin implementations - each takes a list of evaluated arguments.
# Raising ValueError/ArithmeticError signals an evaluation failure.
# ---------------------------------------------------------------------------


def _coerce_numeric(values: list[Any]) -> list[float]:
    """Numeric view of aggregate arguments; strings are skipped."""
    result: list[float] = []
    for v in values:
        if isinstance(v, bool):
            result.append(float(v))
        elif isinstance(v, (int, float)):
            result.append(float(v))
    return result


def _number(name: str, value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    raise ValueError(f"{name}: non-numeric argument {value!r}")


def _unary(name: str, fn: Callable[[float], float]) -> Callable[[list[Any]], float]:
    def builtin(args: list[Any]) -> float:
        if len(args) != 1:
            raise ValueError(f"{name} requires exactly 1 argument")
        return fn(_number(name, args[0]))

    builtin.__name__ = f"_builtin_{name.lower()}"
    return builtin


def _builtin_sum(args: list[Any]) -> float:
    return math.fsum(_coerce_numeric(args))


def _builtin_average(args: list[Any]) -> float:
    nums = _coerce_numeric(args)
    if not nums:
        raise ValueError("AVERAGE: no numeric values")
    return math.fsum(nums) / len(nums)


def _builtin_min(args: list[Any]) -> float:
    nums = _coerce_numeric(args)
    if not nums:
        raise ValueError("MIN: no numeric values")
    return min(nums)


def _builtin_max(args: list[Any]) -> float:
    nums = _coerce_numeric(args)
    if not nums:
        raise ValueError("MAX: no numeric values")
    return max(nums)


def _builtin_count(args: list[Any]) -> float:
    return float(len(_coerce_numeric(args)))


def _builtin_round(args: list[Any]) -> float:
    if len(args) < 1 or len(args) > 2:
        raise ValueError("ROUND requires 1 or 2 arguments")
    value = _number("ROUND", args[0])
    digits = int(_number("ROUND", args[1])) if len(args) > 1 else 0
    # Half away from zero, not banker's rounding.
    factor = 10.0 ** digits
    return math.copysign(math.floor(abs(value) * factor + 0.5) / factor, value)


def _builtin_mod(args: list[Any]) -> float:
    if len(args) != 2:
        raise ValueError("MOD requires exactly 2 arguments")
    a, b = _number("MOD", args[0]), _number("MOD", args[1])
    if b == 0:
        raise ZeroDivisionError("MOD: division by zero")
    # Result takes the sign of the divisor.
    return a - b * math.floor(a / b)


def _builtin_power(args: list[Any]) -> float:
    if len(args) != 2:
        raise ValueError("POWER requires exactly 2 arguments")
    return power(_number("POWER", args[0]), _number("POWER", args[1]))


def power(base: float, exponent: float) -> float:
    if base < 0 and not float(exponent).is_integer():
        raise ValueError("POWER: negative base with fractional exponent")
    if base == 0 and exponent < 0:
        raise ZeroDivisionError("POWER: zero to a negative power")
    return math.pow(base, exponent)


def _sqrt(value: float) -> float:
    if value < 0:
        raise ValueError("SQRT: negative argument")
    return math.sqrt(value)


def _ln(value: float) -> float:
    if value <= 0:
        raise ValueError("LN: non-positive argument")
    return math.log(value)


def _log10(value: float) -> float:
    if value <= 0:
        raise ValueError("LOG10: non-positive argument")
    return math.log10(value)


def _sign(value: float) -> float:
    if value > 0:
        return 1.0
    if value < 0:
        return -1.0
    return 0.0


def _truthy(value: Any) -> bool:
    if isinstance(value, (int, float)):
        return value != 0
    return bool(value)


def _builtin_if(args: list[Any]) -> Any:
    if len(args) < 2 or len(args) > 3:
        raise ValueError("IF requires 2 or 3 arguments")
    if _truthy(args[0]):
        return args[1]
    return args[2] if len(args) > 2 else False


def _builtin_and(args: list[Any]) -> bool:
    if not args:
        raise ValueError("AND requires at least 1 argument")
    return all(_truthy(a) for a in args)


def _builtin_or(args: list[Any]) -> bool:
    if not args:
        raise ValueError("OR requires at least 1 argument")
    return any(_truthy(a) for a in args)


def _builtin_not(args: list[Any]) -> bool:
    if len(args) != 1:
        raise ValueError("NOT requires exactly 1 argument")
    return not _truthy(args[0])


_BUILTINS: dict[str, Callable[[list[Any]], Any]] = {
    # Aggregates
    "SUM": _builtin_sum,
    "AVERAGE": _builtin_average,
    "MEAN": _builtin_average,
    "MIN": _builtin_min,
    "MAX": _builtin_max,
    "COUNT": _builtin_count,
    # Math
    "ABS": _unary("ABS", abs),
    "ROUND": _builtin_round,
    "FLOOR": _unary("FLOOR", lambda v: float(math.floor(v))),
    "CEIL": _unary("CEIL", lambda v: float(math.ceil(v))),
    "CEILING": _unary("CEILING", lambda v: float(math.ceil(v))),
    "INT": _unary("INT", lambda v: float(math.floor(v))),
    "MOD": _builtin_mod,
    "POWER": _builtin_power,
    "POW": _builtin_power,
    "SQRT": _unary("SQRT", _sqrt),
    "EXP": _unary("EXP", math.exp),
    "LN": _unary("LN", _ln),
    "LOG": _unary("LOG", _ln),
    "LOG10": _unary("LOG10", _log10),
    "SIN": _unary("SIN", math.sin),
    "COS": _unary("COS", math.cos),
    "TAN": _unary("TAN", math.tan),
    "SIGN": _unary("SIGN", _sign),
    # Logic
    "IF": _builtin_if,
    "AND": _builtin_and,
    "OR": _builtin_or,
    "NOT": _builtin_not,
}

CONSTANTS: dict[str, float] = {
    "PI": math.pi,
    "E": math.e,
}


class FunctionRegistry:
    """Registry of callable function implementations.

    Starts with builtins and can be extended with custom functions.
    Lookups are case-insensitive.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[[list[Any]], Any]] = dict(_BUILTINS)

    def register(self, name: str, func: Callable[[list[Any]], Any]) -> None:
        self._functions[name.upper()] = func

    def get(self, name: str) -> Callable[[list[Any]], Any] | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())
