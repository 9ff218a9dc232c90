"""Row processor — classify, extract, extend, merge, then reorder each run."""

import numpy as np

from sorting.ordering import order_pixels
from sorting.segments import Run, classify, extend_runs, extract_runs, merge_runs
from sorting.settings import Settings


def find_runs(row: np.ndarray, settings: Settings) -> list[Run]:
    """Final, non-overlapping run list for a (W, 4) row."""
    width = row.shape[0]
    mask = classify(row, settings.threshold)
    runs = extract_runs(mask, settings.threshold_reverse)
    runs = extend_runs(runs, settings.extend_left, settings.extend_right, width)
    return merge_runs(runs, settings.merge_limit)


def process_row(row: np.ndarray, settings: Settings) -> int:
    """Sort every run of ``row`` in place. Returns the number of runs written."""
    width = row.shape[0]
    runs = find_runs(row, settings)
    for start, end in runs:
        assert 0 <= start < end <= width, (
            f"run ({start}, {end}) outside row of width {width}"
        )
        row[start:end] = order_pixels(
            row[start:end], settings.ordering, settings.ordering_reverse
        )
    return len(runs)
