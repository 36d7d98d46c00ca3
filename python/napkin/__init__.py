"""napkin - a bounded grid of notes where any cell can be a formula.

Usage::

    from napkin import Napkin

    napkin = Napkin.new()
    napkin.commit(0, 0, "2")
    napkin.commit(1, 0, "=O16*3")
    print(napkin.display_value(1, 0))   # "6"
    print(napkin.preview(1, 0, "=O16+1"))  # "3", nothing committed
"""

from napkin._cells import FORMULA_SIGIL, Cell, CellStore
from napkin._coords import (
    DEFAULT_BOUNDS,
    GridBounds,
    coords_to_ref,
    in_bounds,
    key_to_coords,
    ref_to_coords,
    ref_to_key,
    to_key,
)
from napkin._errors import EvaluationFault, GridBoundsError, NapkinError, SnapshotError
from napkin._napkin import Napkin

__version__ = "0.3.0"

__all__ = [
    "__version__",
    "Cell",
    "CellStore",
    "DEFAULT_BOUNDS",
    "EvaluationFault",
    "FORMULA_SIGIL",
    "GridBounds",
    "GridBoundsError",
    "Napkin",
    "NapkinError",
    "SnapshotError",
    "coords_to_ref",
    "in_bounds",
    "key_to_coords",
    "ref_to_coords",
    "ref_to_key",
    "to_key",
]
