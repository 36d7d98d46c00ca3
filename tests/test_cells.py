"""Tests for napkin cell store snapshots, expansion and pruning."""

from __future__ import annotations

import pytest

from napkin._cells import Cell, CellStore
from napkin._coords import GridBounds, to_key
from napkin._errors import GridBoundsError


def _keys(*coords: tuple[int, int]) -> set[str]:
    return {to_key(x, y) for x, y in coords}


class TestCell:
    def test_key(self) -> None:
        assert Cell(2, -1, "x").key == "2,-1"

    def test_empty(self) -> None:
        assert Cell(0, 0).is_empty
        assert Cell(0, 0, "   ").is_empty
        assert not Cell(0, 0, "0").is_empty

    def test_formula(self) -> None:
        assert Cell(0, 0, "=1+1").is_formula
        assert not Cell(0, 0, "1=1").is_formula


class TestCellStore:
    def test_initial(self) -> None:
        store = CellStore.initial()
        assert set(store) == {"0,0"}
        assert store["0,0"] == Cell(0, 0, "")

    def test_mapping_protocol(self) -> None:
        store = CellStore([Cell(0, 0, "a"), Cell(1, 0, "b")])
        assert len(store) == 2
        assert "1,0" in store
        assert store.get("5,5") is None
        assert dict(store.items())["0,0"].content == "a"

    def test_reads(self) -> None:
        store = CellStore([Cell(1, 2, "hi")])
        assert store.has(1, 2)
        assert not store.has(2, 1)
        assert store.content_at(1, 2) == "hi"
        assert store.content_at(9, 9) == ""
        assert store.cell_at(1, 2) == Cell(1, 2, "hi")

    def test_set_cell_returns_new_store(self) -> None:
        store = CellStore.initial()
        updated = store.set_cell(0, 0, "42")
        assert store.content_at(0, 0) == ""
        assert updated.content_at(0, 0) == "42"

    def test_set_cell_out_of_bounds(self) -> None:
        with pytest.raises(GridBoundsError):
            CellStore.initial().set_cell(16, 0, "x")

    def test_bounds_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            CellStore([Cell(0, 99, "x")])

    def test_remove(self) -> None:
        store = CellStore([Cell(0, 0, "a"), Cell(1, 0, "b")])
        assert set(store.remove(1, 0)) == {"0,0"}
        assert store.remove(5, 5) is store

    def test_diff_keys(self) -> None:
        before = CellStore([Cell(0, 0, "a"), Cell(1, 0, "b"), Cell(2, 0, "c")])
        after = before.set_cell(0, 0, "A").remove(1, 0).set_cell(3, 0, "")
        assert before.diff_keys(after) == {"0,0", "1,0", "3,0"}
        assert after.diff_keys(before) == {"0,0", "1,0", "3,0"}
        assert before.diff_keys(before) == set()


class TestExpand:
    def test_adds_four_neighbours(self) -> None:
        store = CellStore.initial().set_cell(0, 0, "x").expand_if_allowed(0, 0)
        assert set(store) == _keys((0, 0), (0, 1), (1, 0), (0, -1), (-1, 0))
        assert all(store[k].content == "" for k in _keys((0, 1), (1, 0), (0, -1), (-1, 0)))

    def test_existing_neighbours_untouched(self) -> None:
        store = CellStore([Cell(0, 0, "x"), Cell(1, 0, "keep")]).expand_if_allowed(0, 0)
        assert store.content_at(1, 0) == "keep"
        assert len(store) == 5

    def test_blocked_at_boundary(self) -> None:
        store = CellStore([Cell(15, 0, "x")])
        assert store.expand_if_allowed(15, 0) is store

    def test_blocked_at_corner(self) -> None:
        store = CellStore([Cell(-14, 15, "x")])
        assert set(store.expand_if_allowed(-14, 15)) == _keys((-14, 15))

    def test_custom_bounds(self) -> None:
        bounds = GridBounds(min=0, max=2)
        store = CellStore([Cell(1, 1, "x")], bounds).expand_if_allowed(1, 1)
        assert len(store) == 5
        assert store.bounds is bounds


class TestPrune:
    def test_removes_isolated_empties(self) -> None:
        store = CellStore.initial().set_cell(0, 0, "x").expand_if_allowed(0, 0)
        cleared = store.set_cell(0, 0, "").prune_adjacent_isolated_empties(0, 0)
        assert set(cleared) == _keys((0, 0))

    def test_keeps_empty_with_non_empty_neighbour(self) -> None:
        store = CellStore([Cell(0, 0, ""), Cell(1, 0, ""), Cell(2, 0, "busy"), Cell(-1, 0, "")])
        pruned = store.prune_adjacent_isolated_empties(0, 0)
        assert pruned.has(1, 0)
        assert not pruned.has(-1, 0)

    def test_keeps_non_empty_neighbours(self) -> None:
        store = CellStore([Cell(0, 0, ""), Cell(0, 1, "text")])
        assert store.prune_adjacent_isolated_empties(0, 0).has(0, 1)

    def test_only_one_hop(self) -> None:
        store = CellStore([Cell(0, 0, ""), Cell(1, 0, ""), Cell(2, 0, ""), Cell(3, 0, "")])
        pruned = store.prune_adjacent_isolated_empties(0, 0)
        assert not pruned.has(1, 0)
        assert pruned.has(2, 0)
        assert pruned.has(3, 0)

    def test_whitespace_counts_as_empty(self) -> None:
        store = CellStore([Cell(0, 0, ""), Cell(0, -1, "  ")])
        assert not store.prune_adjacent_isolated_empties(0, 0).has(0, -1)
