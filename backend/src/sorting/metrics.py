"""Pixel metrics — brightness and colour-distance scores for RGBA pixels.

Both functions accept a single pixel (shape (4,)) or any array of pixels
whose last axis holds the channels, and are vectorised over the leading
axes. Channel 3 (alpha) is never examined.
"""

import numpy as np

# Upper bound of |distance()| for 8-bit channels: 2*255 + 4*255 + 2*255.
MAX_DISTANCE = 2040


def luminance(pixels: np.ndarray) -> np.ndarray:
    """Cheap weighted brightness: (2R + 3G + B) / 6.

    Monotonic in every channel but not calibrated to any colour space.
    """
    rgb = np.asarray(pixels)[..., :3].astype(np.int32)
    return (2 * rgb[..., 0] + 3 * rgb[..., 1] + rgb[..., 2]) / 6.0


def distance(pixels: np.ndarray, color: tuple[int, int, int]) -> np.ndarray:
    """Approximate perceptual distance between pixels and a reference colour.

    Integer-weighted channel differences, with the mean red level biasing
    the red/blue weights (compuphase "redmean" approximation, without the
    square root). Returns non-negative integers; only comparisons between
    results are meaningful.
    """
    rgb = np.asarray(pixels)[..., :3].astype(np.int32)
    ref = np.asarray(color, dtype=np.int32)

    rmean = (rgb[..., 0] + ref[0]) // 2
    dr = rgb[..., 0] - ref[0]
    dg = rgb[..., 1] - ref[1]
    db = rgb[..., 2] - ref[2]

    return np.abs((2 + rmean // 256) * dr + 4 * dg + (2 + (255 - rmean) // 256) * db)
