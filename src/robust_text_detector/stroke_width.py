"""Stroke-width estimation by propagating ridge values of a distance transform.

Each foreground pixel of the distance grid records, as an 8-bit mask,
which neighbors hold a strictly smaller nonzero value ("downhill"). Stroke
values are then processed from the global maximum down to 1: every pixel
still holding the current value pushes it onto its downhill neighbors.
Starting from the medial axis, a whole stroke ends up carrying its ridge
value instead of its local distance to the background.

The downhill masks are computed once from the input values, so the
propagation paths never change while values are being overwritten.
"""

from __future__ import annotations

import logging

import numpy as np

from robust_text_detector.errors import PreconditionError
from robust_text_detector.raster import (
    COMPASS_OFFSETS,
    pad_border,
    require_single_channel,
    shifted_view,
)

logger = logging.getLogger(__name__)


def downhill_lookup(padded: np.ndarray) -> np.ndarray:
    """Bitmask of strictly smaller nonzero neighbors for every pixel.

    ``padded`` must carry a zero border; the result has the same shape and
    bit ``k - 1`` refers to compass direction ``k``. Background pixels and
    the border get 0.
    """
    lookup = np.zeros(padded.shape, dtype=np.uint8)
    center = shifted_view(padded, 0, 0)
    inner = shifted_view(lookup, 0, 0)
    foreground = center != 0

    for bit, (dy, dx) in enumerate(COMPASS_OFFSETS):
        neighbor = shifted_view(padded, dy, dx)
        smaller = foreground & (neighbor != 0) & (neighbor < center)
        inner[smaller] |= np.uint8(1 << bit)

    return lookup


def _downhill_targets(sources: np.ndarray, lookup: np.ndarray) -> np.ndarray:
    """Pixels reached by one downhill hop from any pixel in ``sources``."""
    targets = np.zeros(sources.shape, dtype=bool)
    inner_sources = shifted_view(sources, 0, 0)
    inner_lookup = shifted_view(lookup, 0, 0)

    for bit, (dy, dx) in enumerate(COMPASS_OFFSETS):
        hop = inner_sources & ((inner_lookup & (1 << bit)) != 0)
        if hop.any():
            shifted_view(targets, dy, dx)[hop] = True

    return targets


def _require_distance_grid(dist: np.ndarray) -> np.ndarray:
    arr = require_single_channel(dist, "dist")
    if np.issubdtype(arr.dtype, np.floating):
        if not np.all(np.isfinite(arr)) or np.any(arr != np.round(arr)):
            raise PreconditionError("dist must hold integer values")
    elif not (np.issubdtype(arr.dtype, np.integer) or arr.dtype == np.bool_):
        raise PreconditionError(f"dist must be numeric, got {arr.dtype}")
    if np.any(arr < 0):
        raise PreconditionError("dist must be non-negative")
    return arr


def compute_stroke_width(dist: np.ndarray, transitive: bool = True) -> np.ndarray:
    """Propagate ridge values of ``dist`` outward to the stroke boundary.

    Args:
        dist: Non-negative integer distance grid, 0 is background.
        transitive: Follow downhill links all the way to the boundary at
            each stroke value. When False only the direct downhill
            neighbors of pixels holding the value are overwritten
            (single hop per value).

    Returns:
        int32 grid of the input's size; background stays 0.
    """
    arr = _require_distance_grid(dist)
    padded = pad_border(arr, np.int32)
    lookup = downhill_lookup(padded)

    # Overwrites only copy values already present, so the levels never change.
    levels = np.unique(padded[padded > 0])[::-1]
    logger.debug("Stroke width propagation over %d levels", len(levels))

    for stroke in levels.tolist():
        sources = padded == stroke
        if not sources.any():
            continue

        reached = _downhill_targets(sources, lookup)
        if transitive:
            frontier = reached
            while frontier.any():
                frontier = _downhill_targets(frontier, lookup) & ~reached
                reached |= frontier

        padded[reached] = stroke

    return np.ascontiguousarray(padded[1:-1, 1:-1])
