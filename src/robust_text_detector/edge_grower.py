"""Grow a binary edge mask by one pixel along the local gradient direction.

Every edge pixel writes foreground into exactly one of its 8 neighbors,
chosen from the quantized gradient angle of the source image. Reads come
from the input edge mask and direction grid, writes go to a separate
result grid, so growth never cascades within one call.
"""

from __future__ import annotations

import math

import cv2
import numpy as np

from robust_text_detector.errors import PreconditionError
from robust_text_detector.raster import (
    COMPASS_OFFSETS,
    require_binary_mask,
    require_single_channel,
    shifted_view,
)


def to_bin(angle: float, neighbors: int = 8) -> int:
    """Quantize a gradient angle in degrees to a direction bin in 1..neighbors.

    Bins follow the compass layout of :mod:`robust_text_detector.raster`
    (1 = west, 3 = north, 5 = east, 7 = south).
    """
    divisor = 180.0 / neighbors
    return ((math.floor(angle / divisor) - 1) // 2 + 1) % neighbors + 1


def direction_bins(angles: np.ndarray, neighbors: int = 8) -> np.ndarray:
    """Vectorized :func:`to_bin`; an angle of exactly 0 maps to bin 0 (no growth)."""
    divisor = 180.0 / neighbors
    steps = np.floor(angles / divisor).astype(np.int64)
    bins = ((steps - 1) // 2 + 1) % neighbors + 1
    bins[angles == 0] = 0
    return bins.astype(np.uint8)


def grow_along_directions(edges: np.ndarray, bins: np.ndarray) -> np.ndarray:
    """Grow ``edges`` into the neighbor selected by ``bins`` for each edge pixel.

    Args:
        edges: uint8 0/255 edge mask.
        bins: Direction bin per pixel (0 = do not grow, 1..8 compass).

    Pixels on the outer border of the grid are never grown from.
    """
    edges = require_binary_mask(edges, "edges")
    bins = require_single_channel(bins, "bins")
    if bins.shape != edges.shape:
        raise PreconditionError(
            f"bins shape {bins.shape} does not match edges shape {edges.shape}"
        )

    result = edges.copy()
    h, w = edges.shape
    if h < 3 or w < 3:
        return result

    # Interior of the inputs; the outer ring acts as the padding.
    is_edge = shifted_view(edges, 0, 0) != 0
    inner_bins = shifted_view(bins, 0, 0)

    for k, (dy, dx) in enumerate(COMPASS_OFFSETS, start=1):
        grow = is_edge & (inner_bins == k)
        if not grow.any():
            continue
        target = shifted_view(result, dy, dx)
        target[grow] = 255

    return result


def grow_edges(image: np.ndarray, edges: np.ndarray) -> np.ndarray:
    """Grow ``edges`` one pixel along the Sobel gradient of ``image``.

    Args:
        image: Single-channel intensity grid the edges were detected on.
        edges: uint8 0/255 edge mask of the same size.

    Returns:
        A new uint8 0/255 mask; the inputs are not modified.
    """
    image = require_single_channel(image, "image")
    edges = require_binary_mask(edges, "edges")
    if image.shape != edges.shape:
        raise PreconditionError(
            f"image shape {image.shape} does not match edges shape {edges.shape}"
        )

    if image.dtype not in (np.uint8, np.uint16, np.int16, np.float32, np.float64):
        image = image.astype(np.float32)

    grad_x = cv2.Sobel(image, cv2.CV_32F, 1, 0)
    grad_y = cv2.Sobel(image, cv2.CV_32F, 0, 1)
    _, grad_dir = cv2.cartToPolar(grad_x, grad_y, angleInDegrees=True)

    return grow_along_directions(edges, direction_bins(grad_dir))
