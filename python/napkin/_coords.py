"""Coordinate codec: grid coordinates <-> cell keys <-> A1-style references.

The grid is a square ``[min, max] x [min, max]`` region with ``y`` growing
upwards.  Column ``A`` is ``x == min`` and row ``1`` is ``y == max`` (the
topmost row), so row numbers grow as ``y`` decreases.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

_REF_RE = re.compile(r"^([A-Z]+)([1-9][0-9]*)$")


@dataclass(frozen=True)
class GridBounds:
    """Inclusive bounds shared by both axes."""

    min: int = -14
    max: int = 15

    def __post_init__(self) -> None:
        if self.min > self.max:
            raise ValueError(f"Invalid grid bounds: min {self.min} > max {self.max}")

    @property
    def size(self) -> int:
        return self.max - self.min + 1

    def contains(self, x: int, y: int) -> bool:
        return self.min <= x <= self.max and self.min <= y <= self.max


DEFAULT_BOUNDS = GridBounds()


# ---------------------------------------------------------------------------
# Cell keys
# ---------------------------------------------------------------------------


def to_key(x: int, y: int) -> str:
    """Canonical map key for ``(x, y)``, e.g. ``"3,-2"``."""
    return f"{x},{y}"


def key_to_coords(key: str) -> tuple[int, int]:
    """Exact inverse of :func:`to_key`.

    Raises ValueError for anything :func:`to_key` cannot have produced.
    """
    parts = key.split(",")
    if len(parts) != 2:
        raise ValueError(f"Invalid cell key: {key!r}")
    return int(parts[0]), int(parts[1])


# ---------------------------------------------------------------------------
# Column letters (bijective base-26)
# ---------------------------------------------------------------------------


def column_letters(index: int) -> str:
    """0 -> ``A``, 25 -> ``Z``, 26 -> ``AA``."""
    if index < 0:
        raise ValueError(f"Column index must be non-negative, got {index}")
    n = index + 1
    letters = ""
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def column_index(letters: str) -> int:
    """Inverse of :func:`column_letters`."""
    n = 0
    for ch in letters:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


# ---------------------------------------------------------------------------
# A1 references
# ---------------------------------------------------------------------------


def in_bounds(x: int, y: int, bounds: GridBounds = DEFAULT_BOUNDS) -> bool:
    return bounds.contains(x, y)


def coords_to_ref(x: int, y: int, bounds: GridBounds = DEFAULT_BOUNDS) -> str:
    """A1-style label for an in-bounds coordinate.

    Raises ValueError when ``(x, y)`` lies outside *bounds*.
    """
    if not bounds.contains(x, y):
        raise ValueError(f"Cell ({x}, {y}) is outside grid bounds [{bounds.min}, {bounds.max}]")
    return f"{column_letters(x - bounds.min)}{bounds.max - y + 1}"


def ref_to_coords(ref: Any, bounds: GridBounds = DEFAULT_BOUNDS) -> tuple[int, int] | None:
    """Parse an A1-style reference into grid coordinates.

    Returns None for non-string, empty or malformed input, and for
    references that land outside *bounds*.  None means "unresolvable",
    never an error.
    """
    if not isinstance(ref, str):
        logger.debug("Unresolvable reference (not a string): %r", ref)
        return None
    m = _REF_RE.match(ref.strip())
    if not m:
        logger.debug("Unresolvable reference (malformed): %r", ref)
        return None
    x = bounds.min + column_index(m.group(1))
    y = bounds.max - (int(m.group(2)) - 1)
    if not bounds.contains(x, y):
        logger.debug("Unresolvable reference (out of bounds): %s", ref)
        return None
    return x, y


def ref_to_key(ref: Any, bounds: GridBounds = DEFAULT_BOUNDS) -> str | None:
    """Resolve an A1 reference straight to its cell key, or None."""
    xy = ref_to_coords(ref, bounds)
    if xy is None:
        return None
    return to_key(*xy)
