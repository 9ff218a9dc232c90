"""Preview encoding for base64 transport over ZMQ."""

import io

import numpy as np
from PIL import Image

DEFAULT_PREVIEW_BYTES = 4 * 1024 * 1024  # 4MB
QUALITY_FALLBACK_CHAIN = (95, 85, 75, 65, 50)
PREVIEW_FORMATS = ("png", "jpeg")


def encode_png(frame: np.ndarray) -> bytes:
    """Lossless RGBA preview."""
    buf = io.BytesIO()
    Image.fromarray(frame).save(buf, format="PNG")
    return buf.getvalue()


def encode_jpeg(frame: np.ndarray, quality: int = 95) -> bytes:
    """Lossy preview. Drops alpha (JPEG is RGB only)."""
    buf = io.BytesIO()
    Image.fromarray(frame[:, :, :3]).save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def encode_jpeg_fit(
    frame: np.ndarray,
    max_bytes: int = DEFAULT_PREVIEW_BYTES,
    quality_chain: tuple[int, ...] = QUALITY_FALLBACK_CHAIN,
) -> tuple[bytes, int]:
    """Encode as JPEG, stepping quality down until it fits in max_bytes.

    Returns (jpeg_bytes, quality_used).
    Raises ValueError if the frame is still too large at the lowest quality.
    """
    if not quality_chain:
        raise ValueError("quality_chain must not be empty")
    data = b""
    for q in quality_chain:
        data = encode_jpeg(frame, quality=q)
        if len(data) <= max_bytes:
            return data, q
    raise ValueError(
        f"Preview ({len(data)} bytes) exceeds {max_bytes} bytes "
        f"even at quality {quality_chain[-1]}"
    )


def encode_preview(
    frame: np.ndarray, fmt: str = "jpeg", max_bytes: int = DEFAULT_PREVIEW_BYTES
) -> bytes:
    """Encode a destination buffer for the front-end in the requested format."""
    if fmt == "png":
        return encode_png(frame)
    if fmt == "jpeg":
        data, _ = encode_jpeg_fit(frame, max_bytes=max_bytes)
        return data
    raise ValueError(f"Unsupported preview format '{fmt}'. Allowed: {PREVIEW_FORMATS}")


def decode_preview(data: bytes) -> np.ndarray:
    """Decode preview bytes back to a numpy array (RGBA for PNG, RGB for JPEG)."""
    img = Image.open(io.BytesIO(data))
    return np.array(img)
