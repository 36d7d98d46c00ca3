"""Reference dependency graph built from a cell store snapshot."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from napkin._cells import CellStore
from napkin._coords import DEFAULT_BOUNDS, GridBounds, ref_to_key
from napkin.calc._parser import extract_references, formula_body

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Tracks which cells reference which, by cell key.

    ``b in dependencies[a]`` iff ``a in dependents[b]`` iff the formula in
    ``a`` names the coordinate of ``b``.  Referenced coordinates that hold
    no cell still get a ``dependents`` entry, so filling them in later is
    detected as a change affecting their readers.
    """

    __slots__ = ("dependencies", "dependents")

    def __init__(self) -> None:
        # cell -> set of cells it reads from
        self.dependencies: dict[str, set[str]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self.dependents: dict[str, set[str]] = {}

    def add_cell(self, key: str) -> None:
        self.dependencies.setdefault(key, set())
        self.dependents.setdefault(key, set())

    def add_formula(self, key: str, content: str, bounds: GridBounds = DEFAULT_BOUNDS) -> None:
        """Register the edges of one formula cell.  Unresolvable refs are skipped."""
        self.add_cell(key)
        for ref in extract_references(formula_body(content)):
            ref_key = ref_to_key(ref, bounds)
            if ref_key is None:
                continue
            self.dependencies[key].add(ref_key)
            self.dependents.setdefault(ref_key, set()).add(key)

    def affected_cells(self, changed_keys: Iterable[str]) -> set[str]:
        """Changed keys plus everything that transitively reads from them."""
        affected: set[str] = set(changed_keys)
        to_process: list[str] = list(affected)

        while to_process:
            key = to_process.pop()
            for dep in self.dependents.get(key, ()):
                if dep not in affected:
                    affected.add(dep)
                    to_process.append(dep)

        return affected

    def cyclic_cells(self) -> set[str]:
        """Keys that sit on a reference cycle.

        Every member of a strongly connected component with more than one
        cell, plus every cell that references itself.  Found with an
        iterative Tarjan walk over ``dependencies``, so the result depends
        only on the edges and not on the order cells are visited.
        """
        index: dict[str, int] = {}
        lowlink: dict[str, int] = {}
        on_stack: set[str] = set()
        stack: list[str] = []
        cyclic: set[str] = set()
        counter = 0

        for root in list(self.dependencies):
            if root in index:
                continue
            index[root] = lowlink[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work: list[tuple[str, Iterator[str]]] = [(root, iter(self.dependencies[root]))]

            while work:
                key, children = work[-1]
                descended = False
                for child in children:
                    if child not in index:
                        index[child] = lowlink[child] = counter
                        counter += 1
                        stack.append(child)
                        on_stack.add(child)
                        work.append((child, iter(self.dependencies.get(child, ()))))
                        descended = True
                        break
                    if child in on_stack:
                        lowlink[key] = min(lowlink[key], index[child])
                if descended:
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[key])
                if lowlink[key] != index[key]:
                    continue

                component: list[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == key:
                        break
                if len(component) > 1 or key in self.dependencies.get(key, ()):
                    cyclic.update(component)

        return cyclic

    @classmethod
    def from_store(cls, store: CellStore) -> DependencyGraph:
        """Build the graph by scanning every formula cell of *store*."""
        graph = cls()
        for key in store:
            graph.add_cell(key)
        for key, cell in store.items():
            if cell.is_formula:
                graph.add_formula(key, cell.content, store.bounds)
        logger.debug(
            "Built dependency graph: %d cells, %d edges",
            len(store),
            sum(len(deps) for deps in graph.dependencies.values()),
        )
        return graph
