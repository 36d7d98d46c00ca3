"""Tests for napkin.calc dependency graph construction and traversal."""

from __future__ import annotations

from napkin._cells import Cell, CellStore
from napkin._coords import GridBounds, coords_to_ref
from napkin.calc._graph import DependencyGraph

A1, B1, C1, D1 = "-14,15", "-13,15", "-12,15", "-11,15"


class TestAddFormula:
    def test_simple_dependency(self) -> None:
        g = DependencyGraph()
        g.add_formula(B1, "=A1+1")
        assert g.dependencies[B1] == {A1}
        assert g.dependents[A1] == {B1}

    def test_repeated_reference_single_edge(self) -> None:
        g = DependencyGraph()
        g.add_formula(C1, "=A1*A1+B1")
        assert g.dependencies[C1] == {A1, B1}

    def test_unresolvable_refs_skipped(self) -> None:
        g = DependencyGraph()
        g.add_formula(A1, "=Z99+LOG10(B1)+AE1")
        assert g.dependencies[A1] == {B1}

    def test_custom_bounds(self) -> None:
        g = DependencyGraph()
        g.add_formula("0,0", "=B1", GridBounds(min=0, max=2))
        assert g.dependencies["0,0"] == {"1,2"}


class TestFromStore:
    def test_every_cell_registered(self) -> None:
        store = CellStore([Cell(-14, 15, "1"), Cell(-13, 15, "text"), Cell(0, 0, "")])
        g = DependencyGraph.from_store(store)
        assert set(g.dependencies) == set(store)
        assert all(not deps for deps in g.dependencies.values())

    def test_dangling_reference_gets_dependents_entry(self) -> None:
        store = CellStore([Cell(-13, 15, "=A1*2")])
        g = DependencyGraph.from_store(store)
        assert A1 not in store
        assert g.dependents[A1] == {B1}

    def test_edges_are_symmetric(self) -> None:
        store = CellStore(
            [
                Cell(-14, 15, "2"),
                Cell(-13, 15, "=A1+1"),
                Cell(-12, 15, "=A1*2"),
                Cell(-11, 15, "=B1+C1"),
            ]
        )
        g = DependencyGraph.from_store(store)
        for key, deps in g.dependencies.items():
            for dep in deps:
                assert key in g.dependents[dep]
        for key, readers in g.dependents.items():
            for reader in readers:
                assert key in g.dependencies[reader]

    def test_text_that_looks_like_refs_adds_no_edges(self) -> None:
        store = CellStore([Cell(-14, 15, "see B1"), Cell(-13, 15, "1")])
        g = DependencyGraph.from_store(store)
        assert g.dependents[B1] == set()


class TestAffectedCells:
    def _diamond(self) -> DependencyGraph:
        g = DependencyGraph()
        g.add_cell(A1)
        g.add_formula(B1, "=A1+1")
        g.add_formula(C1, "=A1*2")
        g.add_formula(D1, "=B1+C1")
        return g

    def test_reflexive(self) -> None:
        assert self._diamond().affected_cells([D1]) == {D1}

    def test_transitive(self) -> None:
        assert self._diamond().affected_cells([A1]) == {A1, B1, C1, D1}

    def test_partial(self) -> None:
        assert self._diamond().affected_cells([C1]) == {C1, D1}

    def test_unknown_key(self) -> None:
        assert self._diamond().affected_cells(["9,9"]) == {"9,9"}

    def test_empty(self) -> None:
        assert self._diamond().affected_cells([]) == set()

    def test_cycle_terminates(self) -> None:
        g = DependencyGraph()
        g.add_formula(A1, "=B1")
        g.add_formula(B1, "=A1")
        g.add_formula(C1, "=B1")
        assert g.affected_cells([A1]) == {A1, B1, C1}


class TestCyclicCells:
    def test_acyclic(self) -> None:
        g = DependencyGraph()
        g.add_cell(A1)
        g.add_formula(B1, "=A1")
        g.add_formula(C1, "=A1+B1")
        assert g.cyclic_cells() == set()

    def test_self_reference(self) -> None:
        g = DependencyGraph()
        g.add_formula(A1, "=A1+1")
        g.add_formula(B1, "=A1")
        assert g.cyclic_cells() == {A1}

    def test_two_cycle_with_reader(self) -> None:
        g = DependencyGraph()
        g.add_formula(A1, "=B1")
        g.add_formula(B1, "=A1")
        g.add_formula(C1, "=A1+1")
        assert g.cyclic_cells() == {A1, B1}

    def test_tangled_component(self) -> None:
        g = DependencyGraph()
        g.add_formula(A1, "=B1+C1")
        g.add_formula(B1, "=A1")
        g.add_formula(C1, "=B1")
        assert g.cyclic_cells() == {A1, B1, C1}

    def test_independent_of_insertion_order(self) -> None:
        formulas = [(A1, "=B1+C1"), (B1, "=A1"), (C1, "=B1"), (D1, "=C1")]
        forward, backward = DependencyGraph(), DependencyGraph()
        for key, content in formulas:
            forward.add_formula(key, content)
        for key, content in reversed(formulas):
            backward.add_formula(key, content)
        assert forward.cyclic_cells() == backward.cyclic_cells() == {A1, B1, C1}

    def test_separate_cycles(self) -> None:
        store = CellStore(
            [
                Cell(-14, 15, "=B1"),
                Cell(-13, 15, "=A1"),
                Cell(-12, 15, "=D1"),
                Cell(-11, 15, "=C1"),
                Cell(-14, 14, "=A1+C1"),
            ]
        )
        assert DependencyGraph.from_store(store).cyclic_cells() == {A1, B1, C1, D1}

    def test_long_cycle(self) -> None:
        cells = [Cell(x, 0, f"={coords_to_ref(x + 1, 0)}") for x in range(-14, 15)]
        cells.append(Cell(15, 0, "=A16"))
        store = CellStore(cells)
        assert DependencyGraph.from_store(store).cyclic_cells() == set(store)
