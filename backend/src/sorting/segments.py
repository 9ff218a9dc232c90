"""Row segmentation — threshold mask, run extraction, extension and merging.

A run is a half-open interval (start, end) of pixel indices within one row.
"""

import numpy as np

from sorting.metrics import distance, luminance
from sorting.rules import ColorThreshold, LuminanceThreshold, ThresholdRule

Run = tuple[int, int]


def classify(row: np.ndarray, rule: ThresholdRule) -> np.ndarray:
    """Boolean mask over a (W, 4) row: True where the metric is below the limit."""
    if isinstance(rule, LuminanceThreshold):
        return luminance(row) < rule.limit
    if isinstance(rule, ColorThreshold):
        return distance(row, rule.color) < rule.limit
    raise TypeError(f"unknown threshold rule: {rule!r}")


def extract_runs(mask: np.ndarray, reverse: bool = False) -> list[Run]:
    """Maximal runs of mask values that differ from ``reverse``.

    With reverse=False the True groups become runs; with reverse=True the
    False groups do.
    """
    selected = np.asarray(mask, dtype=bool) != reverse
    if selected.size == 0:
        return []

    # Pad with unselected sentinels so every run has a rising and falling edge.
    edges = np.diff(np.concatenate(([0], selected.astype(np.int8), [0])))
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    return [(int(s), int(e)) for s, e in zip(starts, ends)]


def extend_runs(
    runs: list[Run], extend_left: int, extend_right: int, width: int
) -> list[Run]:
    """Widen every run by the given margins.

    Single pass against the original list: the right edge stops at the next
    run's end (or the row width), the left edge at the previous run's start
    (or 0). Starts stay ordered; runs that now touch or overlap are joined
    by merge_runs().
    """
    extended: list[Run] = []
    last = len(runs) - 1
    for i, (start, end) in enumerate(runs):
        right_limit = runs[i + 1][1] if i < last else width
        left_limit = runs[i - 1][0] if i > 0 else 0
        extended.append(
            (max(start - extend_left, left_limit, 0), min(end + extend_right, right_limit))
        )
    return extended


def merge_runs(runs: list[Run], merge_limit: int) -> list[Run]:
    """Join neighbouring runs whose gap is at most ``merge_limit`` pixels.

    Overlapping runs have a negative gap and are always joined.
    """
    merged: list[list[int]] = []
    for start, end in runs:
        if merged and start - merged[-1][1] <= merge_limit:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])
    return [(start, end) for start, end in merged]
