"""napkin.calc - Formula evaluation and dependency tracking for napkin grids."""

from napkin.calc._evaluator import (
    DEFAULT_NUMERIC_VALUE,
    MAX_RECURSION_DEPTH,
    compute_all,
    evaluate,
    evaluate_keys,
    parse_numeric,
    preview,
)
from napkin.calc._expression import ArithmeticEngine
from napkin.calc._functions import ERROR_VALUE, FormulaError, FunctionRegistry, to_display
from napkin.calc._graph import DependencyGraph
from napkin.calc._parser import (
    HIGHLIGHT_PALETTE,
    ReferenceTarget,
    extract_references,
    formula_body,
    insert_reference,
    is_formula,
    reference_targets,
)
from napkin.calc._protocol import CellDelta, EvaluationContext, ExpressionEngine, RecalcResult
from napkin.calc._recalc import recalculate, recompute

__all__ = [
    "ArithmeticEngine",
    "CellDelta",
    "DEFAULT_NUMERIC_VALUE",
    "DependencyGraph",
    "ERROR_VALUE",
    "EvaluationContext",
    "ExpressionEngine",
    "FormulaError",
    "FunctionRegistry",
    "HIGHLIGHT_PALETTE",
    "MAX_RECURSION_DEPTH",
    "RecalcResult",
    "ReferenceTarget",
    "compute_all",
    "evaluate",
    "evaluate_keys",
    "extract_references",
    "formula_body",
    "insert_reference",
    "is_formula",
    "parse_numeric",
    "preview",
    "recalculate",
    "recompute",
    "reference_targets",
    "to_display",
]
