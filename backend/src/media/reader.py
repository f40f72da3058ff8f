"""Still-image decoding via Pillow."""

import io
import logging

import numpy as np
from PIL import Image

from security import MAX_IMAGE_PIXELS

logger = logging.getLogger(__name__)

# Pillow raises DecompressionBombError above 2x this value
Image.MAX_IMAGE_PIXELS = MAX_IMAGE_PIXELS


def _to_rgba(img: Image.Image) -> np.ndarray:
    if getattr(img, "n_frames", 1) > 1:
        logger.info("Image has %d frames; sorting the first only", img.n_frames)
        img.seek(0)
    return np.array(img.convert("RGBA"), dtype=np.uint8)


def read_image(path: str) -> np.ndarray:
    """Decode an image file to an RGBA uint8 array of shape (H, W, 4).

    Format is detected from content. Decode errors (OSError,
    PIL.UnidentifiedImageError) propagate to the caller.
    """
    with Image.open(path) as img:
        logger.debug("Decoding %s image %dx%d (%s)", img.format, *img.size, img.mode)
        return _to_rgba(img)


def read_image_bytes(data: bytes) -> np.ndarray:
    """Decode in-memory image bytes to an RGBA uint8 array."""
    with Image.open(io.BytesIO(data)) as img:
        return _to_rgba(img)
