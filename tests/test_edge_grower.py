"""Tests for gradient-direction edge growing."""

from __future__ import annotations

import numpy as np
import pytest

from robust_text_detector.edge_grower import (
    direction_bins,
    grow_along_directions,
    grow_edges,
    to_bin,
)
from robust_text_detector.errors import PreconditionError

# Compass neighbor written for each direction bin, as (dy, dx).
EXPECTED_OFFSET = {
    1: (0, -1),   # west
    2: (-1, -1),  # north-west
    3: (-1, 0),   # north
    4: (-1, 1),   # north-east
    5: (0, 1),    # east
    6: (1, 1),    # south-east
    7: (1, 0),    # south
    8: (1, -1),   # south-west
}


@pytest.mark.parametrize(
    "angle, expected",
    [
        (0.0, 1),
        (22.4, 1),
        (22.5, 2),
        (45.0, 2),
        (67.5, 3),
        (90.0, 3),
        (112.5, 4),
        (135.0, 4),
        (157.5, 5),
        (180.0, 5),
        (202.5, 6),
        (225.0, 6),
        (247.5, 7),
        (270.0, 7),
        (292.5, 8),
        (315.0, 8),
        (337.5, 1),
        (359.9, 1),
    ],
)
def test_to_bin_boundaries(angle, expected):
    assert to_bin(angle) == expected


def test_direction_bins_matches_to_bin():
    angles = np.arange(0.5, 360.0, 7.25, dtype=np.float32)
    bins = direction_bins(angles)
    assert bins.tolist() == [to_bin(float(a)) for a in angles]


def test_direction_bins_zero_angle_means_no_growth():
    bins = direction_bins(np.array([[0.0, 90.0]], dtype=np.float32))
    assert bins.tolist() == [[0, 3]]


@pytest.mark.parametrize(
    "angle",
    [0.1, 22.5, 67.5, 112.5, 157.5, 202.5, 247.5, 292.5],
)
def test_single_pixel_grows_into_binned_neighbor(angle):
    edges = np.zeros((5, 5), dtype=np.uint8)
    edges[2, 2] = 255
    k = to_bin(angle)
    bins = np.full(edges.shape, k, dtype=np.uint8)

    result = grow_along_directions(edges, bins)

    dy, dx = EXPECTED_OFFSET[k]
    expected = edges.copy()
    expected[2 + dy, 2 + dx] = 255
    np.testing.assert_array_equal(result, expected)


def test_all_eight_bins_are_reached():
    reached = {to_bin(a) for a in (0.1, 22.5, 67.5, 112.5, 157.5, 202.5, 247.5, 292.5)}
    assert reached == set(range(1, 9))


def test_growth_does_not_cascade():
    edges = np.zeros((7, 7), dtype=np.uint8)
    edges[2, 1:4] = 255
    bins = np.full(edges.shape, 5, dtype=np.uint8)  # east

    result = grow_along_directions(edges, bins)

    expected = np.zeros_like(edges)
    expected[2, 1:5] = 255
    np.testing.assert_array_equal(result, expected)


def test_border_pixels_do_not_grow():
    edges = np.zeros((5, 5), dtype=np.uint8)
    edges[0, 2] = 255
    edges[2, 4] = 255
    bins = np.full(edges.shape, 7, dtype=np.uint8)  # south
    np.testing.assert_array_equal(grow_along_directions(edges, bins), edges)


def test_bin_zero_leaves_mask_unchanged():
    edges = np.zeros((5, 5), dtype=np.uint8)
    edges[2, 2] = 255
    bins = np.zeros(edges.shape, dtype=np.uint8)
    np.testing.assert_array_equal(grow_along_directions(edges, bins), edges)


def test_inputs_are_not_modified():
    edges = np.zeros((5, 5), dtype=np.uint8)
    edges[2, 2] = 255
    bins = np.full(edges.shape, 3, dtype=np.uint8)
    edges_before, bins_before = edges.copy(), bins.copy()
    grow_along_directions(edges, bins)
    np.testing.assert_array_equal(edges, edges_before)
    np.testing.assert_array_equal(bins, bins_before)


def test_grow_edges_follows_gradient_towards_dark_side():
    # Bright left half, dark right half: gradient points west (180 deg),
    # which grows the edge one pixel east.
    image = np.zeros((9, 9), dtype=np.uint8)
    image[:, :5] = 200
    edges = np.zeros_like(image)
    edges[1:8, 4] = 255

    result = grow_edges(image, edges)

    expected = edges.copy()
    expected[1:8, 5] = 255
    np.testing.assert_array_equal(result, expected)


def test_grow_edges_zero_angle_does_not_grow():
    # Dark left half, bright right half: gradient angle is exactly 0.
    image = np.zeros((9, 9), dtype=np.uint8)
    image[:, 5:] = 200
    edges = np.zeros_like(image)
    edges[1:8, 4] = 255
    np.testing.assert_array_equal(grow_edges(image, edges), edges)


def test_grow_edges_rejects_non_binary_mask():
    image = np.zeros((5, 5), dtype=np.uint8)
    edges = np.zeros((5, 5), dtype=np.uint8)
    edges[2, 2] = 1
    with pytest.raises(PreconditionError):
        grow_edges(image, edges)


def test_grow_edges_rejects_multi_channel_image():
    image = np.zeros((5, 5, 3), dtype=np.uint8)
    edges = np.zeros((5, 5), dtype=np.uint8)
    with pytest.raises(PreconditionError):
        grow_edges(image, edges)


def test_grow_edges_rejects_shape_mismatch():
    with pytest.raises(PreconditionError):
        grow_edges(np.zeros((5, 5), dtype=np.uint8), np.zeros((5, 6), dtype=np.uint8))


def test_grow_edges_rejects_empty_grid():
    with pytest.raises(PreconditionError):
        grow_edges(np.zeros((0, 0), dtype=np.uint8), np.zeros((0, 0), dtype=np.uint8))
