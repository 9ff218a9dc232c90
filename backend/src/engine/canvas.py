"""Canvas — the source/destination RGBA buffer pair behind one loaded image."""

import logging
from pathlib import Path

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

JPEG_EXTENSIONS = {".jpg", ".jpeg"}


class Canvas:
    """Owns the untouched source pixels and the working destination buffer.

    Both buffers are (H, W, 4) uint8, C-contiguous, row-major. The sort only
    ever writes to ``destination``.
    """

    def __init__(self, source: np.ndarray):
        if source.ndim != 3 or source.shape[2] != 4 or source.dtype != np.uint8:
            raise ValueError(
                f"Canvas needs an (H, W, 4) uint8 array, got {source.shape} {source.dtype}"
            )
        self.source = np.ascontiguousarray(source)
        self.destination = self.source.copy()

    @classmethod
    def from_file(cls, path: str) -> "Canvas":
        """Decode an image file into RGBA8 (Pillow)."""
        with Image.open(path) as img:
            rgba = np.array(img.convert("RGBA"))
        logger.info("Loaded %s (%dx%d)", Path(path).name, rgba.shape[1], rgba.shape[0])
        return cls(rgba)

    @property
    def width(self) -> int:
        return self.source.shape[1]

    @property
    def height(self) -> int:
        return self.source.shape[0]

    def reset(self):
        """Discard any sort result; destination becomes a copy of source."""
        self.destination = self.source.copy()

    def rotate(self):
        """Rotate the source 90 degrees counter-clockwise and reset."""
        self.source = np.ascontiguousarray(np.rot90(self.source))
        self.reset()

    def save(self, path: str):
        """Write the destination buffer. Alpha is dropped for JPEG output."""
        img = Image.fromarray(self.destination)
        if Path(path).suffix.lower() in JPEG_EXTENSIONS:
            img = img.convert("RGB")
        img.save(path)
        logger.info("Saved %dx%d image to %s", self.width, self.height, Path(path).name)
