"""Shared helpers for dense 2D grids: compass table, validation, padding.

Compass layout used by the edge grower and the stroke-width propagator::

    | 2 | 3 | 4 |
    | 1 | 0 | 5 |
    | 8 | 7 | 6 |

Direction bin ``k`` (1..8) and bit ``k - 1`` of a neighbor bitmask both
refer to the same neighbor.
"""

from __future__ import annotations

import numpy as np

from robust_text_detector.errors import PreconditionError

# (dy, dx) per direction bin, index 0 is bin 1 (west).
COMPASS_OFFSETS: tuple[tuple[int, int], ...] = (
    (0, -1),   # 1: west
    (-1, -1),  # 2: north-west
    (-1, 0),   # 3: north
    (-1, 1),   # 4: north-east
    (0, 1),    # 5: east
    (1, 1),    # 6: south-east
    (1, 0),    # 7: south
    (1, -1),   # 8: south-west
)


def require_single_channel(grid: np.ndarray, name: str = "grid") -> np.ndarray:
    """Return ``grid`` as a 2D array or raise :class:`PreconditionError`.

    A trailing channel axis of size 1 (H x W x 1) is squeezed away.
    """
    if grid is None:
        raise PreconditionError(f"{name} is None")
    arr = np.asarray(grid)
    if arr.ndim == 3 and arr.shape[2] == 1:
        arr = arr[:, :, 0]
    if arr.ndim != 2:
        raise PreconditionError(
            f"{name} must be single-channel 2D, got shape {arr.shape}"
        )
    if arr.size == 0:
        raise PreconditionError(f"{name} is empty")
    return arr


def require_binary_mask(mask: np.ndarray, name: str = "mask") -> np.ndarray:
    """Validate an 8-bit 0/255 mask."""
    arr = require_single_channel(mask, name)
    if arr.dtype != np.uint8:
        raise PreconditionError(f"{name} must be uint8, got {arr.dtype}")
    if np.any((arr != 0) & (arr != 255)):
        raise PreconditionError(f"{name} must be binary (0/255)")
    return arr


def pad_border(grid: np.ndarray, dtype: np.dtype | type = np.int32) -> np.ndarray:
    """Copy ``grid`` into a zero-filled array with a 1-pixel border."""
    h, w = grid.shape
    padded = np.zeros((h + 2, w + 2), dtype=dtype)
    padded[1 : h + 1, 1 : w + 1] = grid
    return padded


def shifted_view(padded: np.ndarray, dy: int, dx: int) -> np.ndarray:
    """View of the neighbor at (dy, dx) for every interior pixel of ``padded``.

    ``shifted_view(p, 0, 0)`` is the interior itself; all views share its shape.
    """
    h, w = padded.shape
    return padded[1 + dy : h - 1 + dy, 1 + dx : w - 1 + dx]
