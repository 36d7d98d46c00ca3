"""ExpressionEngine protocol, per-pass evaluation context and result dataclasses."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from napkin.calc._functions import FormulaValue


@runtime_checkable
class ExpressionEngine(Protocol):
    """Protocol for the grammar that evaluates one formula body."""

    def evaluate(self, body: str, bindings: Mapping[str, float]) -> FormulaValue:
        """Evaluate *body* with every reference name bound to a number.

        Raises EvaluationFault when the body cannot be evaluated.
        """
        ...


@dataclass
class EvaluationContext:
    """Scratch state for one recompute pass over one store snapshot.

    ``memo`` caches display strings by cell key.  ``stack`` holds the
    formula keys currently being evaluated, innermost last; ``visiting``
    mirrors it as a set.  ``cyclic`` holds the keys on a reference cycle
    of the snapshot and is filled in from its dependency graph on first
    use.  Never reuse a context for a different snapshot.
    """

    memo: dict[str, str] = field(default_factory=dict)
    stack: list[str] = field(default_factory=list)
    visiting: set[str] = field(default_factory=set)
    cyclic: set[str] | None = None

    @property
    def depth(self) -> int:
        return len(self.stack)

    def enter(self, key: str) -> None:
        self.stack.append(key)
        self.visiting.add(key)

    def leave(self, key: str) -> None:
        self.stack.pop()
        self.visiting.discard(key)


@dataclass(frozen=True)
class CellDelta:
    """A single cell's display value change from a recompute."""

    key: str
    old_value: str | None
    new_value: str | None


@dataclass(frozen=True)
class RecalcResult:
    """Outcome of a full or selective recompute."""

    values: dict[str, str]
    changed: frozenset[str] = frozenset()
    affected: frozenset[str] = frozenset()
    deltas: tuple[CellDelta, ...] = ()
    full: bool = False

    @property
    def recomputed_ratio(self) -> float:
        if not self.values:
            return 0.0
        if self.full:
            return 1.0
        return len(self.affected & self.values.keys()) / len(self.values)
