"""Tests for ridge-value propagation over distance-transform grids."""

from __future__ import annotations

import cv2
import numpy as np
import pytest

from robust_text_detector import stroke_width
from robust_text_detector.errors import PreconditionError
from robust_text_detector.stroke_width import compute_stroke_width, downhill_lookup


def _chessboard_stroke(height: int, width: int, border: int = 1) -> np.ndarray:
    """Distance grid of a filled rectangle: distance to the nearest side."""
    grid = np.zeros((height + 2 * border, width + 2 * border), dtype=np.int32)
    for r in range(height):
        for c in range(width):
            grid[border + r, border + c] = min(r + 1, height - r, c + 1, width - c)
    return grid


def test_downhill_lookup_bits():
    padded = np.array(
        [
            [0, 0, 0, 0, 0],
            [0, 1, 2, 1, 0],
            [0, 2, 3, 2, 0],
            [0, 1, 2, 3, 0],
            [0, 0, 0, 0, 0],
        ],
        dtype=np.int32,
    )
    lookup = downhill_lookup(padded)

    # W, NW, N, NE, E are smaller; SE ties; S, SW are smaller.
    assert lookup[2, 2] == 0b11011111
    # Smallest values have nothing downhill; background and border stay 0.
    assert lookup[1, 1] == 0
    assert lookup[0, 0] == 0
    # (1, 2) = 2 sees W and E (both 1); the 3 below is uphill.
    assert lookup[1, 2] == 0b00010001


def test_rectangle_takes_ridge_value_everywhere():
    dist = _chessboard_stroke(5, 12)
    result = compute_stroke_width(dist)

    stroke = dist > 0
    assert dist.max() == 3
    assert (result[stroke] == 3).all()
    assert not result[~stroke].any()


def test_single_hop_leaves_outer_ring():
    dist = _chessboard_stroke(5, 12)
    result = compute_stroke_width(dist, transitive=False)

    stroke = dist > 0
    expected = np.where(dist == 1, 1, 3)
    np.testing.assert_array_equal(result[stroke], expected[stroke])
    assert not result[~stroke].any()


def test_separate_strokes_keep_their_own_width():
    thick = _chessboard_stroke(5, 12)
    thin = _chessboard_stroke(3, 12)
    dist = np.hstack([thick, np.zeros((7, 3), dtype=np.int32), np.pad(thin, ((1, 1), (0, 0)))])

    result = compute_stroke_width(dist)

    left = result[:, : thick.shape[1]]
    right = result[:, thick.shape[1] + 3 :]
    assert set(np.unique(left[left > 0])) == {3}
    assert set(np.unique(right[right > 0])) == {2}


def test_real_distance_transform_rectangle():
    mask = np.zeros((15, 40), dtype=np.uint8)
    mask[4:11, 5:35] = 255
    dist = np.rint(cv2.distanceTransform(mask, cv2.DIST_L2, 3)).astype(np.int32)
    assert len(np.unique(dist[mask > 0])) > 1

    result = compute_stroke_width(dist)

    assert (result[mask > 0] == dist.max()).all()
    assert not result[mask == 0].any()


def test_plateau_is_not_downhill():
    dist = np.zeros((3, 6), dtype=np.int32)
    dist[1, 1:5] = 2
    result = compute_stroke_width(dist)
    np.testing.assert_array_equal(result, dist)


def test_all_background_returns_zeros():
    result = compute_stroke_width(np.zeros((4, 4), dtype=np.int32))
    assert result.shape == (4, 4)
    assert not result.any()


def test_output_shape_and_dtype():
    dist = _chessboard_stroke(3, 4)
    result = compute_stroke_width(dist)
    assert result.shape == dist.shape
    assert result.dtype == np.int32


def test_input_is_not_mutated():
    dist = _chessboard_stroke(5, 8)
    before = dist.copy()
    compute_stroke_width(dist)
    np.testing.assert_array_equal(dist, before)


def test_integral_float_input_accepted():
    dist = _chessboard_stroke(5, 8).astype(np.float32)
    result = compute_stroke_width(dist)
    assert set(np.unique(result)) == {0, 3}


def test_fractional_values_rejected():
    dist = np.zeros((3, 3), dtype=np.float32)
    dist[1, 1] = 1.5
    with pytest.raises(PreconditionError):
        compute_stroke_width(dist)


def test_negative_values_rejected():
    dist = np.zeros((3, 3), dtype=np.int32)
    dist[1, 1] = -1
    with pytest.raises(PreconditionError):
        compute_stroke_width(dist)


def test_multi_channel_rejected():
    with pytest.raises(PreconditionError):
        compute_stroke_width(np.zeros((3, 3, 2), dtype=np.int32))


def test_only_levels_present_in_grid_are_visited(monkeypatch):
    dist = np.zeros((5, 7), dtype=np.int32)
    dist[1:4, 1:6] = 1
    dist[2, 2] = 5000

    calls = []
    real_targets = stroke_width._downhill_targets

    def counting(sources, lookup):
        calls.append(int(sources.sum()))
        return real_targets(sources, lookup)

    monkeypatch.setattr(stroke_width, "_downhill_targets", counting)
    result = compute_stroke_width(dist, transitive=False)

    # One pass for 5000 and one for 1, not one per integer in between.
    assert len(calls) == 2
    expected = dist.copy()
    expected[1:4, 1:4] = 5000
    np.testing.assert_array_equal(result, expected)
