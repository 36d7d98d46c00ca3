"""Selective recompute: re-evaluate only the cells an edit can affect."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from napkin._cells import CellStore
from napkin.calc._evaluator import compute_all, evaluate_keys
from napkin.calc._graph import DependencyGraph
from napkin.calc._protocol import CellDelta, ExpressionEngine, RecalcResult

logger = logging.getLogger(__name__)


def recalculate(
    store: CellStore,
    previous_values: Mapping[str, str] | None = None,
    changed_keys: Iterable[str] | None = None,
    *,
    engine: ExpressionEngine | None = None,
) -> RecalcResult:
    """Recompute display values after the cells in *changed_keys* changed.

    Without previous values or changed keys this is a full recompute (the
    bootstrap path for a freshly loaded napkin).  Otherwise the dependency
    graph is rebuilt from *store*, the changed keys are closed under the
    dependents relation, and only that affected set is re-evaluated on top
    of a copy of *previous_values*.  Affected keys no longer present in the
    store are dropped from the result.

    *changed_keys* must be the true set of keys whose content changed;
    unaffected keys keep their previous value as-is.
    """
    changed = frozenset(changed_keys or ())
    old = dict(previous_values or {})

    if previous_values is None or not changed:
        values = compute_all(store, engine=engine)
        logger.debug("Full recompute of %d cells", len(values))
        return RecalcResult(
            values=values,
            changed=changed,
            affected=frozenset(values),
            deltas=_deltas(old, values, values.keys()),
            full=True,
        )

    graph = DependencyGraph.from_store(store)
    affected = frozenset(graph.affected_cells(changed))

    values = dict(old)
    fresh = evaluate_keys(store, affected, engine=engine)
    for key in affected:
        if key in store:
            values[key] = fresh[key]
        else:
            values.pop(key, None)

    logger.debug(
        "Selective recompute: %d changed, %d affected of %d cells",
        len(changed),
        len(affected),
        len(store),
    )
    return RecalcResult(
        values=values,
        changed=changed,
        affected=affected,
        deltas=_deltas(old, values, affected),
        full=False,
    )


def recompute(
    store: CellStore,
    previous_values: Mapping[str, str] | None = None,
    changed_keys: Iterable[str] | None = None,
    *,
    engine: ExpressionEngine | None = None,
) -> dict[str, str]:
    """Display-value map for *store*; see :func:`recalculate`."""
    return recalculate(store, previous_values, changed_keys, engine=engine).values


def _deltas(
    old: Mapping[str, str],
    new: Mapping[str, str],
    keys: Iterable[str],
) -> tuple[CellDelta, ...]:
    deltas: list[CellDelta] = []
    for key in sorted(keys):
        before = old.get(key)
        after = new.get(key)
        if before != after:
            deltas.append(CellDelta(key=key, old_value=before, new_value=after))
    return tuple(deltas)
