"""Tests for sorting.segments — classify, extract, extend, merge."""

import numpy as np
import pytest

from sorting.rules import ColorThreshold, LuminanceThreshold
from sorting.segments import classify, extend_runs, extract_runs, merge_runs

pytestmark = pytest.mark.smoke

DARK = (10, 10, 10, 255)
BRIGHT = (250, 250, 250, 255)


def _row(pixels) -> np.ndarray:
    return np.array(pixels, dtype=np.uint8).reshape(-1, 4)


def _assert_ordered_in_bounds(runs, width):
    for start, end in runs:
        assert 0 <= start < end <= width
    for (_, prev_end), (next_start, _) in zip(runs, runs[1:]):
        assert prev_end <= next_start


def _assert_strictly_separated(runs):
    for (_, prev_end), (next_start, _) in zip(runs, runs[1:]):
        assert prev_end < next_start


# --- classify ---


def test_classify_luminance_below_limit():
    row = _row([DARK, BRIGHT, DARK])
    mask = classify(row, LuminanceThreshold(150.0))
    assert mask.tolist() == [True, False, True]


def test_classify_limit_is_strict():
    # luminance of (150,150,150) is exactly 150
    row = _row([(150, 150, 150, 255)])
    assert classify(row, LuminanceThreshold(150.0)).tolist() == [False]
    assert classify(row, LuminanceThreshold(150.5)).tolist() == [True]


def test_classify_color_similarity():
    row = _row([(0, 255, 0, 255), (0, 0, 0, 255), (0, 250, 0, 255)])
    mask = classify(row, ColorThreshold(100, (0, 255, 0)))
    assert mask.tolist() == [True, False, True]


def test_classify_unknown_rule():
    with pytest.raises(TypeError, match="unknown threshold rule"):
        classify(_row([DARK]), object())


# --- extract_runs ---


def test_extract_basic_runs():
    mask = np.array([False, True, True, False, True])
    assert extract_runs(mask) == [(1, 3), (4, 5)]


def test_extract_reversed_selects_false_groups():
    mask = np.array([False, True, True, False, True])
    assert extract_runs(mask, reverse=True) == [(0, 1), (3, 4)]


def test_extract_empty_row():
    assert extract_runs(np.array([], dtype=bool)) == []
    assert extract_runs(np.array([], dtype=bool), reverse=True) == []


@pytest.mark.parametrize("value", [True, False])
@pytest.mark.parametrize("reverse", [True, False])
def test_extract_uniform_mask(value, reverse):
    mask = np.full(12, value)
    runs = extract_runs(mask, reverse)
    if value != reverse:
        assert runs == [(0, 12)]
    else:
        assert runs == []


def test_extract_single_pixel_groups():
    mask = np.array([True, False, True, False, True])
    assert extract_runs(mask) == [(0, 1), (2, 3), (4, 5)]


@pytest.mark.parametrize("seed", range(20))
def test_extract_runs_ordered_and_in_bounds(seed):
    rng = np.random.default_rng(seed)
    width = int(rng.integers(1, 200))
    mask = rng.random(width) < rng.random()
    for reverse in (False, True):
        runs = extract_runs(mask, reverse)
        _assert_ordered_in_bounds(runs, width)
        _assert_strictly_separated(runs)
        covered = np.zeros(width, dtype=bool)
        for start, end in runs:
            covered[start:end] = True
        np.testing.assert_array_equal(covered, mask != reverse)


def test_scenario_dark_prefix_gives_one_run():
    row = _row([DARK] * 3 + [BRIGHT] * 7)
    runs = extract_runs(classify(row, LuminanceThreshold(150.0)))
    runs = merge_runs(extend_runs(runs, 0, 0, 10), 0)
    assert runs == [(0, 3)]


# --- extend_runs ---


def test_extend_right_clamped_to_width():
    assert extend_runs([(0, 3)], 0, 2, 10) == [(0, 5)]
    assert extend_runs([(7, 9)], 0, 5, 10) == [(7, 10)]


def test_extend_left_clamped_to_zero():
    assert extend_runs([(2, 4)], 10, 0, 10) == [(0, 4)]


def test_extend_zero_is_identity():
    runs = [(1, 3), (5, 6), (8, 10)]
    assert extend_runs(runs, 0, 0, 10) == runs


def test_extend_against_neighbours():
    runs = [(2, 4), (6, 8)]
    assert extend_runs(runs, 1, 1, 10) == [(1, 5), (5, 9)]


def test_extend_stops_at_neighbour_far_edges():
    # right edge of the first run may not pass the second run's end,
    # left edge of the second may not pass the first run's start
    runs = [(2, 3), (5, 6)]
    assert extend_runs(runs, 10, 10, 20) == [(0, 6), (2, 16)]


def test_extend_uses_original_neighbours():
    runs = [(0, 1), (3, 4), (6, 7)]
    # middle run is clamped by the pre-extension (0, 1) and (6, 7)
    assert extend_runs(runs, 5, 5, 10)[1] == (0, 7)


def test_extend_empty():
    assert extend_runs([], 3, 3, 10) == []


# --- merge_runs ---


def test_merge_small_gap():
    assert merge_runs([(0, 2), (3, 6)], 1) == [(0, 6)]


def test_merge_gap_too_large():
    assert merge_runs([(0, 2), (4, 6)], 1) == [(0, 2), (4, 6)]


def test_merge_touching_runs_with_zero_limit():
    assert merge_runs([(0, 2), (2, 5)], 0) == [(0, 5)]


def test_merge_first_pair_is_eligible():
    assert merge_runs([(0, 1), (2, 3), (9, 10)], 1) == [(0, 3), (9, 10)]


def test_merge_chains():
    assert merge_runs([(0, 1), (2, 3), (4, 5), (6, 7)], 1) == [(0, 7)]


def test_merge_overlap_keeps_furthest_end():
    assert merge_runs([(0, 8), (3, 6)], 0) == [(0, 8)]


def test_merge_empty_and_single():
    assert merge_runs([], 5) == []
    assert merge_runs([(3, 4)], 5) == [(3, 4)]


@pytest.mark.parametrize("seed", range(30))
def test_extend_then_merge_keeps_runs_disjoint(seed):
    rng = np.random.default_rng(seed)
    width = int(rng.integers(1, 300))
    mask = rng.random(width) < 0.5
    runs = extract_runs(mask, bool(rng.integers(0, 2)))
    extended = extend_runs(
        runs, int(rng.integers(0, 20)), int(rng.integers(0, 20)), width
    )
    merged = merge_runs(extended, int(rng.integers(0, 10)))

    _assert_ordered_in_bounds(merged, width)
    assert len(merged) <= len(runs)
    # every originally selected pixel is still covered
    covered = np.zeros(width, dtype=bool)
    for start, end in merged:
        assert not covered[start:end].any()
        covered[start:end] = True
    for start, end in runs:
        assert covered[start:end].all()
