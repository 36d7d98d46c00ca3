"""Formula text helpers: validity check and A1 reference extraction."""

from __future__ import annotations

import re
from dataclasses import dataclass

from napkin._cells import FORMULA_SIGIL
from napkin._coords import DEFAULT_BOUNDS, GridBounds, coords_to_ref, ref_to_coords, to_key

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

# Uppercase column letters followed by a row number without a leading zero.
# Word boundaries keep "AB12C" or "X1Y2" from yielding partial matches.
_REF_RE = re.compile(r"\b([A-Z]+[1-9][0-9]*)\b")

# Colours handed to the editor for highlighting referenced cells, in order.
HIGHLIGHT_PALETTE: tuple[str, ...] = (
    "#ff3b30",
    "#ff9500",
    "#ffcc00",
    "#34c759",
    "#007aff",
    "#af52de",
)


def is_formula(content: str | None) -> bool:
    """True for content that should be evaluated as a formula.

    A lone ``"="`` is plain text: the sigil needs a body after it.
    """
    return bool(content) and content.startswith(FORMULA_SIGIL) and len(content) > 1


def formula_body(content: str) -> str:
    """Strip the leading sigil from formula content."""
    if content.startswith(FORMULA_SIGIL):
        return content[len(FORMULA_SIGIL):]
    return content


def extract_references(formula: str) -> list[str]:
    """Distinct A1-style references in *formula*, in first-occurrence order.

    Pure text scan: nothing here checks that a reference is inside the grid.
    """
    refs: list[str] = []
    seen: set[str] = set()
    for m in _REF_RE.finditer(formula):
        ref = m.group(1)
        if ref not in seen:
            refs.append(ref)
            seen.add(ref)
    return refs


# ---------------------------------------------------------------------------
# Highlighting support for the formula editor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReferenceTarget:
    """A reference typed into the editor and the cell it points at."""

    ref: str
    x: int
    y: int
    color: str

    @property
    def key(self) -> str:
        return to_key(self.x, self.y)


def reference_targets(
    text: str,
    bounds: GridBounds = DEFAULT_BOUNDS,
    palette: tuple[str, ...] = HIGHLIGHT_PALETTE,
) -> list[ReferenceTarget]:
    """Resolve the references of in-progress formula input for highlighting.

    Non-formula input yields nothing.  Unresolvable references are skipped
    but still consume their palette slot, so colours stay stable while the
    user types.
    """
    if not text.startswith(FORMULA_SIGIL):
        return []
    targets: list[ReferenceTarget] = []
    for idx, ref in enumerate(extract_references(formula_body(text))):
        xy = ref_to_coords(ref, bounds)
        if xy is None:
            continue
        targets.append(ReferenceTarget(ref, xy[0], xy[1], palette[idx % len(palette)]))
    return targets


def insert_reference(
    text: str,
    x: int,
    y: int,
    selection: tuple[int, int] | None = None,
    bounds: GridBounds = DEFAULT_BOUNDS,
) -> tuple[str, int]:
    """Put the label of ``(x, y)`` into formula input, replacing *selection*.

    Returns the new text and the cursor position just after the label.
    Without a selection the label is appended.  Input that is not a
    formula, or a coordinate outside *bounds*, leaves the text as is.
    """
    if selection is None:
        start = end = len(text)
    else:
        start, end = sorted(max(0, min(pos, len(text))) for pos in selection)
    if not text.startswith(FORMULA_SIGIL) or not bounds.contains(x, y):
        return text, end

    ref = coords_to_ref(x, y, bounds)
    return text[:start] + ref + text[end:], start + len(ref)
