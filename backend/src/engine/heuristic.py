"""Sort heuristics — map RGBA pixels to 8-bit sort keys.

All heuristics are integer-exact so that scalar and vectorized results
agree bit-for-bit. Alpha is ignored here; transparency masking happens in
the sorter.
"""

from enum import Enum

import numpy as np

from engine.errors import InvalidHeuristic


class HeuristicKind(Enum):
    """Basis to use for sorting individual pixels."""

    LUMA = "luma"
    BRIGHTNESS = "brightness"
    MAX = "max"
    MIN = "min"
    CHROMA = "chroma"
    HUE = "hue"
    SATURATION = "saturation"
    VALUE = "value"
    RED = "red"
    BLUE = "blue"
    GREEN = "green"

    @classmethod
    def variants(cls) -> list[str]:
        """Accepted heuristic names, in declaration order."""
        return [kind.value for kind in cls]

    @classmethod
    def parse(cls, name: "str | HeuristicKind") -> "HeuristicKind":
        """Case-insensitive lookup. Raises InvalidHeuristic for unknown names."""
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise InvalidHeuristic(
                f"Unknown sort function {name!r}. Expected one of: "
                f"{', '.join(cls.variants())}"
            ) from None


def _hue(r: np.ndarray, g: np.ndarray, b: np.ndarray) -> np.ndarray:
    mx = np.maximum(np.maximum(r, g), b)
    chroma = mx - np.minimum(np.minimum(r, g), b)
    safe = np.maximum(chroma, 1)

    # argmax returns the first maximal channel: ties resolve R, then G, then B
    sector = np.argmax(np.stack([r, g, b], axis=-1), axis=-1)
    red = np.abs(g - b) // safe * 43
    green = np.abs(b - r) // safe * 43 + 85
    blue = np.abs(r - g) // safe * 43 + 171

    hue = np.select([sector == 0, sector == 1], [red, green], blue)
    return np.where(chroma == 0, 0, hue)


def key_values(kind: HeuristicKind, pixels: np.ndarray) -> np.ndarray:
    """Vectorized key extraction.

    Args:
        kind:   Heuristic to apply.
        pixels: Array whose last axis holds at least R, G, B channels,
                e.g. (N, 4) for a scan line or (H, W, 4) for a frame.

    Returns:
        uint8 array with the channel axis removed.
    """
    px = np.asarray(pixels)
    # Signed intermediates: differences below must not wrap around
    r = px[..., 0].astype(np.int32)
    g = px[..., 1].astype(np.int32)
    b = px[..., 2].astype(np.int32)

    if kind is HeuristicKind.RED:
        out = r
    elif kind is HeuristicKind.GREEN:
        out = g
    elif kind is HeuristicKind.BLUE:
        out = b
    elif kind is HeuristicKind.MAX or kind is HeuristicKind.VALUE:
        out = np.maximum(np.maximum(r, g), b)
    elif kind is HeuristicKind.MIN:
        out = np.minimum(np.minimum(r, g), b)
    elif kind is HeuristicKind.CHROMA:
        out = np.maximum(np.maximum(r, g), b) - np.minimum(np.minimum(r, g), b)
    elif kind is HeuristicKind.SATURATION:
        mx = np.maximum(np.maximum(r, g), b)
        chroma = mx - np.minimum(np.minimum(r, g), b)
        out = np.where(mx == 0, 0, chroma // np.maximum(mx, 1))
    elif kind is HeuristicKind.BRIGHTNESS:
        # Average without summing first
        out = r // 3 + g // 3 + b // 3 + (r % 3 + g % 3 + b % 3) // 3
    elif kind is HeuristicKind.LUMA:
        out = (2 * r + g + 4 * b) >> 3
    elif kind is HeuristicKind.HUE:
        out = _hue(r, g, b)
    else:
        raise InvalidHeuristic(f"Unsupported heuristic: {kind!r}")

    return out.astype(np.uint8)


def extract(kind: HeuristicKind, pixel) -> int:
    """Key for a single pixel given as an (R, G, B[, A]) sequence."""
    px = np.asarray(pixel, dtype=np.uint8).reshape(1, -1)
    return int(key_values(kind, px)[0])
