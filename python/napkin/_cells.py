"""Cell store: an immutable snapshot of the cells of one napkin.

Every mutation returns a new :class:`CellStore`; existing snapshots are
never modified, so evaluation passes can hold on to one safely.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass

from napkin._coords import DEFAULT_BOUNDS, GridBounds, to_key
from napkin._errors import GridBoundsError

FORMULA_SIGIL = "="


@dataclass(frozen=True)
class Cell:
    """A single grid cell holding literal text or a formula."""

    x: int
    y: int
    content: str = ""

    @property
    def key(self) -> str:
        return to_key(self.x, self.y)

    @property
    def is_empty(self) -> bool:
        """Whitespace-only content counts as empty."""
        return not self.content or not self.content.strip()

    @property
    def is_formula(self) -> bool:
        return self.content.startswith(FORMULA_SIGIL)


def _neighbors4(x: int, y: int) -> list[tuple[int, int]]:
    # top, right, bottom, left
    return [(x, y + 1), (x + 1, y), (x, y - 1), (x - 1, y)]


class CellStore(Mapping[str, Cell]):
    """Mapping of cell key -> :class:`Cell` confined to a bounded grid.

    Usage::

        store = CellStore.initial()
        store = store.set_cell(0, 0, "=B15*2")
        store = store.expand_if_allowed(0, 0)
    """

    __slots__ = ("_cells", "bounds")

    def __init__(
        self,
        cells: Iterable[Cell] = (),
        bounds: GridBounds = DEFAULT_BOUNDS,
    ) -> None:
        self.bounds = bounds
        self._cells: dict[str, Cell] = {}
        for cell in cells:
            self._check_bounds(cell.x, cell.y)
            self._cells[cell.key] = cell

    @classmethod
    def initial(cls, bounds: GridBounds = DEFAULT_BOUNDS) -> CellStore:
        """A fresh napkin: one empty cell at the origin."""
        return cls([Cell(0, 0, "")], bounds)

    @classmethod
    def _adopt(cls, cells: dict[str, Cell], bounds: GridBounds) -> CellStore:
        store = object.__new__(cls)
        store.bounds = bounds
        store._cells = cells
        return store

    def _check_bounds(self, x: int, y: int) -> None:
        if not self.bounds.contains(x, y):
            raise GridBoundsError(x, y, self.bounds.min, self.bounds.max)

    # ------------------------------------------------------------------
    # Mapping protocol
    # ------------------------------------------------------------------

    def __getitem__(self, key: str) -> Cell:
        return self._cells[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def __repr__(self) -> str:
        return f"CellStore({len(self._cells)} cells, bounds={self.bounds})"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def cell_at(self, x: int, y: int) -> Cell | None:
        return self._cells.get(to_key(x, y))

    def has(self, x: int, y: int) -> bool:
        return to_key(x, y) in self._cells

    def content_at(self, x: int, y: int) -> str:
        cell = self.cell_at(x, y)
        return cell.content if cell is not None else ""

    def cells(self) -> list[Cell]:
        return list(self._cells.values())

    def diff_keys(self, other: CellStore) -> set[str]:
        """Keys added, removed or whose content differs between two snapshots."""
        changed = set(self._cells.keys() ^ other._cells.keys())
        for key in self._cells.keys() & other._cells.keys():
            if self._cells[key].content != other._cells[key].content:
                changed.add(key)
        return changed

    # ------------------------------------------------------------------
    # Mutations (each returns a new store)
    # ------------------------------------------------------------------

    def set_cell(self, x: int, y: int, content: str) -> CellStore:
        self._check_bounds(x, y)
        cells = dict(self._cells)
        cells[to_key(x, y)] = Cell(x, y, content)
        return self._adopt(cells, self.bounds)

    def remove(self, x: int, y: int) -> CellStore:
        key = to_key(x, y)
        if key not in self._cells:
            return self
        cells = dict(self._cells)
        del cells[key]
        return self._adopt(cells, self.bounds)

    def expand_if_allowed(self, x: int, y: int) -> CellStore:
        """Add the missing orthogonal neighbours of ``(x, y)`` as empty cells.

        All-or-nothing: if any of the four neighbours falls outside the
        bounds, the store is returned unchanged.
        """
        candidates = _neighbors4(x, y)
        if not all(self.bounds.contains(cx, cy) for cx, cy in candidates):
            return self
        cells = dict(self._cells)
        for cx, cy in candidates:
            key = to_key(cx, cy)
            if key not in cells:
                cells[key] = Cell(cx, cy, "")
        return self._adopt(cells, self.bounds)

    def _has_non_empty_neighbor(self, cells: dict[str, Cell], x: int, y: int) -> bool:
        for nx, ny in _neighbors4(x, y):
            cell = cells.get(to_key(nx, ny))
            if cell is not None and not cell.is_empty:
                return True
        return False

    def prune_adjacent_isolated_empties(self, x: int, y: int) -> CellStore:
        """Drop empty neighbours of ``(x, y)`` left without a non-empty neighbour.

        Only the four direct neighbours are considered (one hop per call).
        """
        cells = dict(self._cells)
        for nx, ny in _neighbors4(x, y):
            key = to_key(nx, ny)
            cell = cells.get(key)
            if cell is None or not cell.is_empty:
                continue
            if not self._has_non_empty_neighbor(cells, nx, ny):
                del cells[key]
        return self._adopt(cells, self.bounds)
