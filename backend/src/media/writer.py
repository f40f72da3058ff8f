"""Still-image encoding via Pillow."""

import io
import logging
from pathlib import Path

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

# Formats that cannot store an alpha channel
_NO_ALPHA = {"JPEG", "BMP"}


def _prepare(frame: np.ndarray, fmt: str) -> Image.Image:
    img = Image.fromarray(np.ascontiguousarray(frame))
    if fmt.upper() in _NO_ALPHA:
        return img.convert("RGB")  # RGBA → RGB
    return img


def format_for_path(path: str) -> str:
    """Pillow format name for a file extension. Raises ValueError if unknown."""
    ext = Path(path).suffix.lower()
    fmt = Image.registered_extensions().get(ext)
    if fmt is None:
        raise ValueError(f"Unknown image extension: {ext!r}")
    return fmt


def write_image(path: str, frame: np.ndarray) -> None:
    """Encode an RGBA frame to a file. Format comes from the extension."""
    fmt = format_for_path(path)
    logger.debug("Encoding %dx%d frame as %s", frame.shape[1], frame.shape[0], fmt)
    _prepare(frame, fmt).save(path, format=fmt)


def encode_image(frame: np.ndarray, fmt: str = "PNG") -> bytes:
    """Encode an RGBA frame to in-memory bytes."""
    buf = io.BytesIO()
    _prepare(frame, fmt).save(buf, format=fmt)
    return buf.getvalue()
