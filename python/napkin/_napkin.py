"""Napkin: one grid document, its committed cells and their display values."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from napkin._cells import Cell, CellStore
from napkin._coords import DEFAULT_BOUNDS, GridBounds, to_key
from napkin._errors import GridBoundsError, SnapshotError
from napkin.calc._evaluator import preview
from napkin.calc._parser import ReferenceTarget, insert_reference, reference_targets
from napkin.calc._protocol import ExpressionEngine, RecalcResult
from napkin.calc._recalc import recalculate

logger = logging.getLogger(__name__)


class Napkin:
    """A named grid of cells kept in sync with its display values.

    Usage::

        napkin = Napkin.new()
        napkin.commit(0, 0, "2")
        napkin.commit(1, 0, "=O16*2")
        napkin.display_value(1, 0)  # -> "4"
    """

    def __init__(
        self,
        name: str = "Untitled",
        cells: CellStore | None = None,
        *,
        engine: ExpressionEngine | None = None,
    ) -> None:
        self.name = name
        self._engine = engine
        self._cells = cells if cells is not None else CellStore.initial()
        self.last_result: RecalcResult = recalculate(self._cells, engine=engine)
        self._values: dict[str, str] = self.last_result.values

    @classmethod
    def new(
        cls,
        name: str = "Untitled",
        bounds: GridBounds = DEFAULT_BOUNDS,
        *,
        engine: ExpressionEngine | None = None,
    ) -> Napkin:
        return cls(name, CellStore.initial(bounds), engine=engine)

    @property
    def cells(self) -> CellStore:
        return self._cells

    @property
    def bounds(self) -> GridBounds:
        return self._cells.bounds

    @property
    def display_values(self) -> Mapping[str, str]:
        return MappingProxyType(self._values)

    def display_value(self, x: int, y: int) -> str:
        return self._values.get(to_key(x, y), "")

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def commit(self, x: int, y: int, content: str) -> bool:
        """Store *content* at ``(x, y)`` and refresh the affected values.

        Filling an empty cell grows the grid around it; clearing a cell
        prunes neighbours left isolated.  Returns False when the content is
        unchanged.
        """
        before = self._cells.content_at(x, y)
        if before == content:
            return False

        cells = self._cells.set_cell(x, y, content)
        if not before and content.strip():
            cells = cells.expand_if_allowed(x, y)
        elif before and not content.strip():
            cells = cells.prune_adjacent_isolated_empties(x, y)

        changed = self._cells.diff_keys(cells)
        result = recalculate(cells, self._values, changed, engine=self._engine)
        logger.debug(
            "Committed %s: %d changed, %d affected", to_key(x, y), len(changed), len(result.affected)
        )
        self._cells = cells
        self._values = result.values
        self.last_result = result
        return True

    def preview(self, x: int, y: int, content: str) -> str:
        """Display value ``(x, y)`` would get if *content* were committed."""
        return preview(self._cells, x, y, content, engine=self._engine)

    def referenced_cells(self, text: str) -> list[ReferenceTarget]:
        """Cells referenced by in-progress formula input, with highlight colours."""
        return reference_targets(text, self.bounds)

    def insert_reference(
        self, text: str, x: int, y: int, selection: tuple[int, int] | None = None
    ) -> tuple[str, int]:
        """Formula input with the label of a tapped cell inserted at *selection*."""
        return insert_reference(text, x, y, selection, self.bounds)

    # ------------------------------------------------------------------
    # Snapshots for an external persistence layer
    # ------------------------------------------------------------------

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "cells": {
                key: {"x": cell.x, "y": cell.y, "content": cell.content}
                for key, cell in self._cells.items()
            },
        }

    @classmethod
    def from_snapshot(
        cls,
        data: Mapping[str, Any],
        bounds: GridBounds = DEFAULT_BOUNDS,
        *,
        engine: ExpressionEngine | None = None,
    ) -> Napkin:
        """Rebuild a napkin from :meth:`to_snapshot` output.

        Raises SnapshotError when the data is malformed or names a cell
        outside *bounds*.
        """
        if not isinstance(data, Mapping):
            raise SnapshotError(f"Snapshot must be a mapping, got {type(data).__name__}")
        raw_cells = data.get("cells", {})
        if not isinstance(raw_cells, Mapping):
            raise SnapshotError("Snapshot 'cells' must be a mapping")

        cells: list[Cell] = []
        for key, raw in raw_cells.items():
            cells.append(_cell_from_snapshot(key, raw))
        try:
            store = CellStore(cells, bounds)
        except GridBoundsError as e:
            raise SnapshotError(str(e)) from e

        name = data.get("name", "Untitled")
        if not isinstance(name, str):
            raise SnapshotError("Snapshot 'name' must be a string")
        return cls(name, store, engine=engine)


def _cell_from_snapshot(key: Any, raw: Any) -> Cell:
    if not isinstance(raw, Mapping):
        raise SnapshotError(f"Cell {key!r} must be a mapping")
    x, y, content = raw.get("x"), raw.get("y"), raw.get("content", "")
    if type(x) is not int or type(y) is not int:
        raise SnapshotError(f"Cell {key!r} has non-integer coordinates")
    if content is None:
        content = ""
    if not isinstance(content, str):
        raise SnapshotError(f"Cell {key!r} content must be a string")
    if key != to_key(x, y):
        raise SnapshotError(f"Cell key {key!r} does not match coordinates ({x}, {y})")
    return Cell(x, y, content)
