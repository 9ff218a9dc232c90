"""Pixel ordering — permute one run of pixels by a sort key."""

import numpy as np

from sorting.metrics import distance, luminance
from sorting.rules import ColorOrder, LuminanceOrder, OrderingRule


def sort_keys(pixels: np.ndarray, rule: OrderingRule) -> np.ndarray:
    """Per-pixel key for an (N, 4) run."""
    if isinstance(rule, LuminanceOrder):
        return luminance(pixels)
    if isinstance(rule, ColorOrder):
        return distance(pixels, rule.color)
    raise TypeError(f"unknown ordering rule: {rule!r}")


def order_pixels(
    pixels: np.ndarray, rule: OrderingRule, reverse: bool = False
) -> np.ndarray:
    """Return the run's pixels sorted by non-decreasing key.

    Ties land in no particular order. With ``reverse`` the ascending result
    is flipped end to end. The input is not modified.
    """
    order = np.argsort(sort_keys(pixels, rule), kind="quicksort")
    if reverse:
        order = order[::-1]
    return pixels[order]
