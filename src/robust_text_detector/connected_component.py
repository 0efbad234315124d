"""Two-pass connected component labeling with per-blob shape metrics.

Pass 1 scans a padded copy of the grid in raster order, hands out
provisional labels and records label equivalences in an array-backed
disjoint-set forest. Pass 2 resolves every provisional label to its root
and renumbers the roots to a compact 1..K range in order of first
appearance. Each final label then gets its area, centroid, eccentricity
and solidity measured from its binary mask.

Foreground is any nonzero pixel. A foreground pixel with no foreground
pixel anywhere in its neighborhood is treated as noise and dropped.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import IntEnum

import cv2
import numpy as np

from robust_text_detector.errors import CapacityExceededError, PreconditionError
from robust_text_detector.raster import pad_border, require_single_channel

logger = logging.getLogger(__name__)


class Connectivity(IntEnum):
    FOUR = 4
    EIGHT = 8


# Neighbors already visited by the raster scan (top row, then left).
_VISITED_OFFSETS: dict[Connectivity, tuple[tuple[int, int], ...]] = {
    Connectivity.FOUR: ((-1, 0), (0, -1)),
    Connectivity.EIGHT: ((-1, -1), (-1, 0), (-1, 1), (0, -1)),
}

# Neighbors the scan has not reached yet (right, then the row below).
_PENDING_OFFSETS: dict[Connectivity, tuple[tuple[int, int], ...]] = {
    Connectivity.FOUR: ((0, 1), (1, 0)),
    Connectivity.EIGHT: ((0, 1), (1, -1), (1, 0), (1, 1)),
}


@dataclass(frozen=True)
class ComponentProperty:
    """Shape metrics of one labeled blob."""

    label_id: int
    area: int
    centroid: tuple[float, float]  # (x, y)
    eccentricity: float
    solidity: float

    def __str__(self) -> str:
        x, y = self.centroid
        return (
            f"     Label ID: {self.label_id}\n"
            f"         Area: {self.area}\n"
            f"     Centroid: [{x:.3f}, {y:.3f}]\n"
            f" Eccentricity: {self.eccentricity:.4f}\n"
            f"     Solidity: {self.solidity:.4f}\n"
        )


# ---------------------------------------------------------------------------
# Disjoint-set forest
# ---------------------------------------------------------------------------

class DisjointSetForest:
    """Parent-pointer forest indexed by provisional label.

    ``parent[label] == 0`` marks a root, any positive value points at the
    parent label. Find walks the links without compressing them. Union
    always keeps the numerically smaller root, so a merged blob is
    represented by the earliest label handed out for it.

    Example:
        >>> forest = DisjointSetForest(8)
        >>> a, b, c = forest.new_label(), forest.new_label(), forest.new_label()
        >>> forest.union(c, b)
        2
        >>> forest.union(b, a)
        1
        >>> forest.find(c)
        1
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise PreconditionError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._parent = [0] * (capacity + 1)
        self._label_count = 0

    @property
    def label_count(self) -> int:
        return self._label_count

    def new_label(self) -> int:
        """Hand out the next provisional label (1, 2, 3, ...)."""
        if self._label_count >= self.capacity:
            raise CapacityExceededError(self._label_count + 1, self.capacity)
        self._label_count += 1
        return self._label_count

    def find(self, label: int) -> int:
        parent = self._parent
        while parent[label] > 0:
            label = parent[label]
        return label

    def union(self, a: int, b: int) -> int:
        """Merge the sets of ``a`` and ``b``; return the surviving root."""
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return root_a
        if root_a < root_b:
            self._parent[root_b] = root_a
            return root_a
        self._parent[root_a] = root_b
        return root_b


# ---------------------------------------------------------------------------
# Labeling passes
# ---------------------------------------------------------------------------

def _first_pass(
    rows: list[list[int]],
    coords: list[list[int]],
    connectivity: Connectivity,
    forest: DisjointSetForest,
) -> None:
    """Assign provisional labels in place and record equivalences."""
    visited = _VISITED_OFFSETS[connectivity]
    pending = _PENDING_OFFSETS[connectivity]

    for y, x in coords:
        found = {rows[y + dy][x + dx] for dy, dx in visited}
        found.discard(0)

        if not found:
            if all(rows[y + dy][x + dx] == 0 for dy, dx in pending):
                # Isolated single pixel, drop it.
                rows[y][x] = 0
            else:
                rows[y][x] = forest.new_label()
            continue

        label = min(found)
        rows[y][x] = label
        for other in found:
            if other != label:
                forest.union(label, other)


def _second_pass(
    rows: list[list[int]],
    coords: list[list[int]],
    forest: DisjointSetForest,
) -> dict[int, list[int]]:
    """Rewrite provisional labels as compact final labels.

    Returns the bounding box ``[y0, x0, y1, x1]`` (padded coordinates,
    exclusive end) of every final label.
    """
    final_of_root: dict[int, int] = {}
    next_final = 1
    boxes: dict[int, list[int]] = {}

    for y, x in coords:
        provisional = rows[y][x]
        if provisional == 0:
            continue
        root = forest.find(provisional)
        final = final_of_root.get(root)
        if final is None:
            final = next_final
            final_of_root[root] = final
            next_final += 1
            boxes[final] = [y, x, y + 1, x + 1]
        else:
            box = boxes[final]
            if x < box[1]:
                box[1] = x
            if y + 1 > box[2]:
                box[2] = y + 1
            if x + 1 > box[3]:
                box[3] = x + 1
        rows[y][x] = final

    return boxes


# ---------------------------------------------------------------------------
# Blob metrics
# ---------------------------------------------------------------------------

def blob_centroid(moment: dict[str, float]) -> tuple[float, float]:
    return moment["m10"] / moment["m00"], moment["m01"] / moment["m00"]


def blob_eccentricity(moment: dict[str, float]) -> float:
    """Eccentricity from the eigenvalues of the normalized covariance matrix.

    Uses ``[[nu20, nu11], [nu11, nu02]]``: 0 for a circle, approaching 1
    for an elongated blob. A blob whose larger eigenvalue is zero reports 0.
    """
    nu20, nu02, nu11 = moment["nu20"], moment["nu02"], moment["nu11"]
    mean = (nu20 + nu02) / 2.0
    spread = math.sqrt(4 * nu11 * nu11 + (nu20 - nu02) * (nu20 - nu02)) / 2.0

    eig_val_1 = mean + spread
    eig_val_2 = mean - spread
    if eig_val_1 <= 0:
        return 0.0
    return math.sqrt(max(0.0, 1.0 - eig_val_2 / eig_val_1))


def blob_solidity(blob: np.ndarray, area: int) -> float:
    """Pixel area over the convex hull area of the blob's external contour.

    The hull runs through pixel centers, so small blobs may exceed 1.
    A hull of zero area (a one-pixel-thin straight blob) reports 0.
    """
    contours, _ = cv2.findContours(blob, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    if not contours:
        return 0.0
    hull = cv2.convexHull(np.vstack(contours))
    hull_area = float(cv2.contourArea(hull))
    if hull_area <= 0:
        return 0.0
    return area / hull_area


def _measure_components(
    labels: np.ndarray,
    boxes: dict[int, list[int]],
) -> list[ComponentProperty]:
    properties: list[ComponentProperty] = []

    for label_id, (y0, x0, y1, x1) in boxes.items():
        # Boxes are in padded coordinates, labels is the unpadded grid.
        window = labels[y0 - 1 : y1 - 1, x0 - 1 : x1 - 1]
        # Blob mask with a 1-pixel empty margin, so the window origin sits
        # at (x0 - 2, y0 - 2) in image coordinates.
        blob = np.pad(np.where(window == label_id, 255, 0).astype(np.uint8), 1)
        top, left = y0 - 2, x0 - 2

        moment = cv2.moments(blob, binaryImage=True)
        area = int(cv2.countNonZero(blob))
        cx, cy = blob_centroid(moment)

        solidity = blob_solidity(blob, area)
        if solidity == 0.0:
            logger.debug("Label %d: degenerate convex hull, solidity set to 0", label_id)

        properties.append(
            ComponentProperty(
                label_id=label_id,
                area=area,
                centroid=(cx + left, cy + top),
                eccentricity=blob_eccentricity(moment),
                solidity=solidity,
            )
        )

    # By default, largest blobs first.
    properties.sort(key=lambda p: p.area, reverse=True)
    return properties


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def label_components(
    grid: np.ndarray,
    connectivity: Connectivity | int = Connectivity.EIGHT,
    max_components: int = 1000,
) -> tuple[np.ndarray, list[ComponentProperty]]:
    """Label the foreground of ``grid`` and measure every component.

    Args:
        grid: Single-channel grid, nonzero pixels are foreground. Not mutated.
        connectivity: 4 or 8.
        max_components: Maximum number of provisional labels pass 1 may use.

    Returns:
        ``(labels, properties)``: an int32 grid of the input's size with
        background 0 and components numbered 1..K, and the properties of
        those K components sorted by descending area.

    Raises:
        PreconditionError: empty or multi-channel grid, bad connectivity.
        CapacityExceededError: more than ``max_components`` provisional labels.
    """
    arr = require_single_channel(grid)
    try:
        conn = Connectivity(int(connectivity))
    except ValueError:
        raise PreconditionError(
            f"connectivity must be 4 or 8, got {connectivity}"
        ) from None

    # 1-pixel border so neighbor lookups never leave the grid.
    padded = pad_border(arr != 0, np.int32)
    coords = np.argwhere(padded).tolist()
    rows = padded.tolist()

    forest = DisjointSetForest(max_components)
    _first_pass(rows, coords, conn, forest)
    boxes = _second_pass(rows, coords, forest)

    labels = np.ascontiguousarray(np.array(rows, dtype=np.int32)[1:-1, 1:-1])
    properties = _measure_components(labels, boxes)

    logger.debug(
        "Labeled %d components from %d provisional labels (%d-connectivity)",
        len(properties), forest.label_count, int(conn),
    )
    return labels, properties


class ConnectedComponentLabeler:
    """Reusable labeler holding its capacity and connectivity.

    Holds no state between calls; ``apply`` is :func:`label_components`.
    """

    def __init__(
        self,
        max_components: int = 1000,
        connectivity: Connectivity | int = Connectivity.EIGHT,
    ) -> None:
        self.max_components = max_components
        self.connectivity = connectivity

    def apply(self, grid: np.ndarray) -> tuple[np.ndarray, list[ComponentProperty]]:
        return label_components(grid, self.connectivity, self.max_components)
