"""Exceptions raised for caller mistakes.

Formula evaluation never raises; these cover store mutations and snapshot
parsing only.
"""

from __future__ import annotations


class NapkinError(Exception):
    """Base class for all napkin errors."""


class GridBoundsError(NapkinError, ValueError):
    """A store mutation named a coordinate outside the grid bounds."""

    def __init__(self, x: int, y: int, lo: int, hi: int) -> None:
        super().__init__(f"Cell ({x}, {y}) is outside grid bounds [{lo}, {hi}]")
        self.x = x
        self.y = y


class SnapshotError(NapkinError, ValueError):
    """A persisted snapshot could not be turned back into a napkin."""


class EvaluationFault(NapkinError):
    """The expression engine rejected a formula body.

    Raised inside the engine only; the evaluator turns it into the error
    token and never lets it escape.
    """
