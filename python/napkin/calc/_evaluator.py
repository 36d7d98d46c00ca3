"""Cell evaluator: display values with memoization and cycle detection.

Every formula cell is evaluated once its references are resolved (sharing
one :class:`EvaluationContext` per pass): each referenced display value is
coerced to a number and the body plus those bindings go to an
:class:`ExpressionEngine`.  Cells on a reference cycle are found up front
from the snapshot's dependency graph.  Cycles and engine failures become
the ``#ERROR`` token; nothing raised while evaluating escapes this module.
"""

from __future__ import annotations

import logging
import math
import re

from napkin._cells import CellStore
from napkin._coords import ref_to_key, to_key
from napkin.calc._expression import ArithmeticEngine
from napkin.calc._functions import ERROR_VALUE, FormulaError, FormulaValue, to_display
from napkin.calc._graph import DependencyGraph
from napkin.calc._parser import extract_references, formula_body, is_formula
from napkin.calc._protocol import EvaluationContext, ExpressionEngine

logger = logging.getLogger(__name__)

DEFAULT_NUMERIC_VALUE = 0.0

# Nested formula evaluations allowed in one pass.  A 30x30 grid can never
# chain deeper than its 900 cells.
MAX_RECURSION_DEPTH = 1024

_LEADING_NUMBER_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

_default_engine = ArithmeticEngine()


def parse_numeric(value: str) -> float:
    """Numeric contribution of a display value used as a formula operand.

    Thousands separators are dropped and the longest leading decimal number
    is taken (``"1,250 kg" -> 1250``).  Anything without one, or with a
    non-finite one, counts as ``DEFAULT_NUMERIC_VALUE``.
    """
    m = _LEADING_NUMBER_RE.match(value.replace(",", ""))
    if not m:
        return DEFAULT_NUMERIC_VALUE
    num = float(m.group(1))
    return num if math.isfinite(num) else DEFAULT_NUMERIC_VALUE


def _prepare(store: CellStore, context: EvaluationContext | None) -> EvaluationContext:
    if context is None:
        context = EvaluationContext()
    if context.cyclic is None:
        context.cyclic = DependencyGraph.from_store(store).cyclic_cells()
        if context.cyclic:
            logger.debug("Circular references: %s", ", ".join(sorted(context.cyclic)))
    return context


def _settled(store: CellStore, key: str, context: EvaluationContext) -> str | None:
    """Display value of *key* if it needs no formula evaluation, else None."""
    memo = context.memo
    if key in memo:
        return memo[key]

    cell = store.get(key)
    if cell is None or not cell.content:
        value = ""
    elif not cell.is_formula:
        value = cell.content
    elif key in (context.cyclic or ()):
        value = ERROR_VALUE
    else:
        return None

    memo[key] = value
    return value


def _pending_reference(store: CellStore, key: str, context: EvaluationContext) -> str | None:
    """First reference of the formula at *key* that still needs evaluating."""
    for ref in extract_references(formula_body(store[key].content)):
        ref_key = ref_to_key(ref, store.bounds)
        if ref_key is None or ref_key in context.visiting:
            continue
        if _settled(store, ref_key, context) is None:
            return ref_key
    return None


def _evaluate_formula(
    store: CellStore,
    key: str,
    content: str,
    context: EvaluationContext,
    engine: ExpressionEngine,
) -> str:
    """Evaluate *content* as if stored at *key*; its references are settled."""
    body = formula_body(content)
    bindings: dict[str, float] = {}
    for ref in extract_references(body):
        ref_key = ref_to_key(ref, store.bounds)
        if ref_key is None:
            bindings[ref] = DEFAULT_NUMERIC_VALUE
            continue
        # A reference back onto the stack only happens with a context
        # prepared for another snapshot; it reads as the error token.
        bindings[ref] = parse_numeric(context.memo.get(ref_key, ERROR_VALUE))

    result: FormulaValue
    try:
        result = engine.evaluate(body, bindings)
    except Exception as e:
        logger.debug("Cannot evaluate %r in %s: %s", content, key, e)
        result = FormulaError.ERROR
    return to_display(result)


def _evaluate(
    store: CellStore,
    key: str,
    context: EvaluationContext,
    engine: ExpressionEngine,
) -> str:
    value = _settled(store, key, context)
    if value is not None:
        return value

    # Depth-first over references with an explicit stack, so chains as
    # long as the grid never touch the interpreter's recursion limit.
    memo = context.memo
    context.enter(key)
    while context.stack:
        current = context.stack[-1]
        pending = _pending_reference(store, current, context)
        if pending is not None:
            if context.depth >= MAX_RECURSION_DEPTH:
                logger.debug("Maximum formula depth reached at %s", pending)
                memo[pending] = ERROR_VALUE
            else:
                context.enter(pending)
            continue

        memo[current] = _evaluate_formula(store, current, store[current].content, context, engine)
        context.leave(current)

    return memo[key]


def evaluate(
    store: CellStore,
    key: str,
    context: EvaluationContext | None = None,
    *,
    engine: ExpressionEngine | None = None,
) -> str:
    """Display value of the cell at *key*.

    Pass the same *context* to evaluate several keys of one snapshot in a
    single pass; omit it for a one-off evaluation.
    """
    context = _prepare(store, context)
    return _evaluate(store, key, context, engine or _default_engine)


def evaluate_keys(
    store: CellStore,
    keys: list[str] | set[str] | frozenset[str],
    *,
    engine: ExpressionEngine | None = None,
) -> dict[str, str]:
    """Evaluate *keys* in one pass sharing a fresh context."""
    context = _prepare(store, None)
    engine = engine or _default_engine
    return {key: _evaluate(store, key, context, engine) for key in keys}


def compute_all(store: CellStore, *, engine: ExpressionEngine | None = None) -> dict[str, str]:
    """Full recompute: display values for every cell in *store*."""
    return evaluate_keys(store, list(store), engine=engine)


def preview(
    store: CellStore,
    x: int,
    y: int,
    content: str,
    *,
    engine: ExpressionEngine | None = None,
) -> str:
    """What ``(x, y)`` would display if *content* were committed.

    The real store is left untouched and a fresh context is used, since a
    hypothetical value is being evaluated.  Coordinates outside the grid
    are evaluated too: no cell can reference them, so the formula only
    reads from *store*.
    """
    if not content:
        return ""
    if not is_formula(content):
        return content

    engine = engine or _default_engine
    key = to_key(x, y)
    if store.bounds.contains(x, y):
        hypothetical = store.set_cell(x, y, content)
        return _evaluate(hypothetical, key, _prepare(hypothetical, None), engine)

    context = _prepare(store, None)
    for ref in extract_references(formula_body(content)):
        ref_key = ref_to_key(ref, store.bounds)
        if ref_key is not None:
            _evaluate(store, ref_key, context, engine)
    return _evaluate_formula(store, key, content, context, engine)
