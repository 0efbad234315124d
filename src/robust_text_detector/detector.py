"""Detect text regions in natural images with edge-enhanced MSER.

Pipeline:
1. Grayscale conversion
2. MSER region mask
3. Canny edges, intersected with the MSER mask
4. Grow the intersection one pixel along the gradient, cut it out of the
   MSER mask -- this separates touching characters
5. Label the edge-enhanced mask and keep character-like components
   (area, eccentricity, solidity)
6. Distance transform + stroke-width propagation
7. Label again and drop components whose stroke width varies too much
8. Close/open the survivors into one region and take its bounding rect

Based on Chen et al., "Robust Text Detection in Natural Images with
Edge-Enhanced Maximally Stable Extremal Regions", ICIP 2011.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from robust_text_detector.connected_component import (
    ComponentProperty,
    Connectivity,
    label_components,
)
from robust_text_detector.debug_service import DebugService
from robust_text_detector.edge_grower import grow_edges
from robust_text_detector.errors import PreconditionError
from robust_text_detector.stroke_width import compute_stroke_width

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class DetectorConfig:
    """Tunable parameters for the text detection pipeline.

    Defaults are the values the method was tuned with on camera photos of
    signs and labels (characters roughly 10-40 px tall).
    """

    # -- MSER --
    # Step between intensity thresholds.
    mser_delta: int = 8
    # Region size limits in pixels.
    min_mser_area: int = 10
    max_mser_area: int = 2000

    # -- Canny --
    canny_threshold1: int = 20
    canny_threshold2: int = 100

    # -- Connected components --
    # Provisional label capacity for each labeling pass. Raise it for large,
    # busy images; the pipeline fails instead of silently truncating.
    max_conn_comp_count: int = 3000
    # Area range of a single character blob in pixels.
    min_conn_comp_area: int = 75
    max_conn_comp_area: int = 600
    # Eccentricity range: rejects near-perfect discs and thin lines.
    min_eccentricity: float = 0.1
    max_eccentricity: float = 0.995
    # Minimum blob area / convex hull area. Ragged blobs are texture, not text.
    min_solidity: float = 0.4

    # -- Stroke width --
    # Maximum std/mean of stroke width within one component.
    max_std_dev_mean_ratio: float = 0.5
    # Flood each ridge value all the way to the stroke boundary.
    # False keeps the older single-hop propagation.
    transitive_stroke_flood: bool = True

    # -- Bounding region --
    # Elliptical kernel sizes for the close/open that merges characters.
    close_kernel_size: int = 25
    open_kernel_size: int = 7
    # Margin added around the final bounding rect.
    bounding_margin: int = 5


# Singleton default config used when none is passed.
_default_config = DetectorConfig()


# (x, y, width, height)
Rect = tuple[int, int, int, int]


# ---------------------------------------------------------------------------
# Stage helpers
# ---------------------------------------------------------------------------

def preprocess_image(image: np.ndarray) -> np.ndarray:
    """Return a single-channel uint8 grey image."""
    if image is None or image.size == 0:
        raise PreconditionError("image is empty")
    if image.ndim == 2:
        grey = image
    elif image.ndim == 3 and image.shape[2] == 1:
        grey = image[:, :, 0]
    elif image.ndim == 3 and image.shape[2] == 3:
        grey = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    elif image.ndim == 3 and image.shape[2] == 4:
        grey = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    else:
        raise PreconditionError(f"unsupported image shape {image.shape}")
    if grey.dtype != np.uint8:
        grey = cv2.normalize(grey, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)
    return grey


def create_mser_mask(grey: np.ndarray, cfg: DetectorConfig) -> np.ndarray:
    """Binary mask with every pixel of every MSER region set to 255."""
    mser = cv2.MSER_create(
        cfg.mser_delta, cfg.min_mser_area, cfg.max_mser_area,
        0.25, 0.1, 100, 1.01, 0.03, 5,
    )
    regions, _ = mser.detectRegions(grey)

    mask = np.zeros(grey.shape, dtype=np.uint8)
    for points in regions:
        mask[points[:, 1], points[:, 0]] = 255
    return mask


def _is_character_like(prop: ComponentProperty, cfg: DetectorConfig) -> bool:
    if prop.area < cfg.min_conn_comp_area or prop.area > cfg.max_conn_comp_area:
        return False
    if prop.eccentricity < cfg.min_eccentricity or prop.eccentricity > cfg.max_eccentricity:
        return False
    return prop.solidity >= cfg.min_solidity


def filter_components(
    labels: np.ndarray,
    props: list[ComponentProperty],
    cfg: DetectorConfig,
) -> np.ndarray:
    """Mask of the components that pass the area/eccentricity/solidity filters."""
    keep = [p.label_id for p in props if _is_character_like(p, cfg)]
    logger.debug("Component filter kept %d of %d", len(keep), len(props))
    return np.where(np.isin(labels, keep), 255, 0).astype(np.uint8)


def stroke_width_variation(values: np.ndarray) -> float:
    """Population std / mean of the nonzero stroke widths in ``values``."""
    nonzero = values[values > 0].astype(np.float64)
    if nonzero.size == 0:
        return float("inf")
    mean = float(np.mean(nonzero))
    return float(np.std(nonzero)) / mean


def filter_by_stroke_width(
    stroke_width: np.ndarray,
    cfg: DetectorConfig,
) -> np.ndarray:
    """Mask of stroke components whose width is consistent enough to be text."""
    labels, props = label_components(
        stroke_width, Connectivity.FOUR, cfg.max_conn_comp_count
    )
    filtered = np.zeros(stroke_width.shape, dtype=np.uint8)
    for prop in props:
        mask = labels == prop.label_id
        if stroke_width_variation(stroke_width[mask]) > cfg.max_std_dev_mean_ratio:
            continue
        filtered[mask] = 255
    return filtered


def clamp_rect(rect: Rect, width: int, height: int) -> Rect:
    """Clip ``rect`` to an image of the given size."""
    x, y, w, h = rect
    if x < 0:
        w += x
        x = 0
    if y < 0:
        h += y
        y = 0
    if x + w > width:
        w = width - x
    if y + h > height:
        h = height - y
    return x, y, max(0, w), max(0, h)


def bounding_region(mask: np.ndarray, cfg: DetectorConfig) -> Rect | None:
    """Bounding rect of ``mask`` after merging characters into one region."""
    close_k = cv2.getStructuringElement(
        cv2.MORPH_ELLIPSE, (cfg.close_kernel_size, cfg.close_kernel_size)
    )
    open_k = cv2.getStructuringElement(
        cv2.MORPH_ELLIPSE, (cfg.open_kernel_size, cfg.open_kernel_size)
    )
    region = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, close_k)
    region = cv2.morphologyEx(region, cv2.MORPH_OPEN, open_k)

    coords = cv2.findNonZero(region)
    if coords is None:
        return None
    x, y, w, h = cv2.boundingRect(coords)
    return int(x), int(y), int(w), int(h)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

class RobustTextDetector:
    """Edge-enhanced MSER text detector.

    Args:
        config: Optional configuration override. Uses module defaults
                if not provided.
        debug: Optional debug service that receives every intermediate grid.
    """

    def __init__(
        self,
        config: DetectorConfig | None = None,
        debug: DebugService | None = None,
    ) -> None:
        self.config = config or _default_config
        self._debug = debug

    def _save(self, name: str, grid: np.ndarray) -> None:
        if self._debug:
            self._debug.save_stage(name, grid)

    def apply(self, image: np.ndarray) -> tuple[np.ndarray, Rect | None]:
        """Detect the text region of ``image`` (BGR or grey).

        Returns ``(stroke_mask, rect)``: a 0/255 mask of the filtered
        character strokes inside the text region, and the region as
        ``(x, y, w, h)`` grown by the configured margin and clamped to the
        image. ``rect`` is None and the mask empty when no text is found.
        """
        cfg = self.config
        grey = preprocess_image(image)
        img_h, img_w = grey.shape

        mser_mask = create_mser_mask(grey, cfg)
        edges = cv2.Canny(grey, cfg.canny_threshold1, cfg.canny_threshold2)

        # Edge-enhanced MSER: cut the grown edges out of the regions.
        edge_mser_intersection = cv2.bitwise_and(edges, mser_mask)
        gradient_grown = grow_edges(grey, edge_mser_intersection)
        edge_enhanced_mser = cv2.bitwise_and(cv2.bitwise_not(gradient_grown), mser_mask)

        self._save("grey", grey)
        self._save("mser_mask", mser_mask)
        self._save("canny_edges", edges)
        self._save("edge_mser_intersection", edge_mser_intersection)
        self._save("gradient_grown", gradient_grown)
        self._save("edge_enhanced_mser", edge_enhanced_mser)

        labels, props = label_components(
            edge_enhanced_mser, Connectivity.FOUR, cfg.max_conn_comp_count
        )
        characters = filter_components(labels, props, cfg)

        dist = cv2.distanceTransform(characters, cv2.DIST_L2, 3)
        dist = np.rint(dist).astype(np.int32)
        stroke_width = compute_stroke_width(dist, cfg.transitive_stroke_flood)
        self._save("stroke_width", stroke_width)

        filtered = filter_by_stroke_width(stroke_width, cfg)

        rect = bounding_region(filtered, cfg)
        if rect is None:
            logger.info("No text region found")
            self._save("filtered_stroke_width", filtered)
            return filtered, None

        # Discard everything outside the (unpadded) bounding rect.
        x, y, w, h = rect
        bounding_mask = np.zeros_like(filtered)
        bounding_mask[y : y + h, x : x + w] = 255
        filtered = cv2.bitwise_and(filtered, bounding_mask)
        self._save("filtered_stroke_width", filtered)

        m = cfg.bounding_margin
        rect = clamp_rect((x - m, y - m, w + 2 * m, h + 2 * m), img_w, img_h)
        logger.info("Text region: x=%d y=%d w=%d h=%d", *rect)
        return filtered, rect


def detect_text(
    image: np.ndarray,
    config: DetectorConfig | None = None,
) -> tuple[np.ndarray, Rect | None]:
    """Module-level shortcut for :meth:`RobustTextDetector.apply`."""
    return RobustTextDetector(config).apply(image)
