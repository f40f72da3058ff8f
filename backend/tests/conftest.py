import numpy as np
import pytest
from PIL import Image


@pytest.fixture
def noise_frame():
    """Seeded random RGBA frame, 48 wide x 32 high."""
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, (32, 48, 4), dtype=np.uint8)


@pytest.fixture
def gradient_frame():
    """Opaque frame: red rises down the rows, green across the columns."""
    frame = np.zeros((24, 40, 4), dtype=np.uint8)
    frame[:, :, 0] = np.linspace(0, 255, 24, dtype=np.uint8)[:, np.newaxis]
    frame[:, :, 1] = np.linspace(0, 255, 40, dtype=np.uint8)[np.newaxis, :]
    frame[:, :, 3] = 255
    return frame


@pytest.fixture
def png_path(tmp_path, noise_frame):
    """Noise frame written as an opaque RGBA PNG."""
    frame = noise_frame.copy()
    frame[:, :, 3] = 255
    path = tmp_path / "input.png"
    Image.fromarray(frame).save(path)
    return path
