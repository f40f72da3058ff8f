"""Sort configuration — immutable parameters of one sort pass."""

import math
import numbers
from dataclasses import asdict, dataclass, field

from engine.errors import ConfigError, InvalidAngle
from engine.heuristic import HeuristicKind
from engine.shapes import (
    EllipseShape,
    LinearShape,
    ShapeDescriptor,
    SineShape,
    format_shape,
    parse_shape,
)

DEFAULTS: dict = {
    "minimum": 0,
    "maximum": 255,
    "function": HeuristicKind.LUMA.value,
    "reverse": False,
    "invert": False,
    "vertical": False,
    "mask_alpha": False,
    "angle": 0.0,
    "path": "linear",
}

# Short spellings used by the CLI flags
_ALIASES = {"min": "minimum", "max": "maximum"}

_BOOL_FIELDS = ("reverse", "invert", "vertical", "mask_alpha")


def validate_angle(angle) -> float:
    """Return angle as float. Raises InvalidAngle unless -90 < angle < 90."""
    try:
        value = float(angle)
    except (TypeError, ValueError):
        raise InvalidAngle(f"Could not parse {angle!r} as a number") from None
    if not math.isfinite(value) or value <= -90.0 or value >= 90.0:
        raise InvalidAngle("Rotation angle must be between -90 and +90 degrees")
    return value


def _validate_byte(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, (numbers.Real, str)):
        raise ConfigError(f"'{name}' must be an integer in 0-255, got {value!r}")
    try:
        as_int = int(value)
    except (OverflowError, ValueError):
        raise ConfigError(f"'{name}' must be an integer in 0-255, got {value!r}") from None
    if as_int != float(value) or not 0 <= as_int <= 255:
        raise ConfigError(f"'{name}' must be an integer in 0-255, got {value!r}")
    return as_int


@dataclass(frozen=True)
class SortConfig:
    """Sorting configuration.

    Includes how to traverse the pixel grid, which regions of the image to
    skip, and what metric to sort by. ``function`` and ``path`` may be
    given as strings; they are parsed on construction.
    """

    minimum: int = 0
    maximum: int = 255
    function: HeuristicKind = HeuristicKind.LUMA
    reverse: bool = False
    invert: bool = False
    vertical: bool = False
    mask_alpha: bool = False
    angle: float = 0.0
    path: ShapeDescriptor = field(default_factory=LinearShape)

    def __post_init__(self):
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "minimum", _validate_byte("minimum", self.minimum))
        object.__setattr__(self, "maximum", _validate_byte("maximum", self.maximum))
        object.__setattr__(self, "function", HeuristicKind.parse(self.function))
        object.__setattr__(self, "angle", validate_angle(self.angle))
        if isinstance(self.path, str):
            object.__setattr__(self, "path", parse_shape(self.path))
        elif not isinstance(self.path, (LinearShape, SineShape, EllipseShape)):
            raise ConfigError(f"'path' must be a shape or shape string, got {self.path!r}")
        for name in _BOOL_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ConfigError(f"'{name}' must be a boolean, got {value!r}")

    @classmethod
    def from_dict(cls, params: dict) -> "SortConfig":
        """Build a config from a plain mapping (CLI, form fields, presets).

        Missing keys take their defaults. Unknown keys raise ConfigError.
        """
        merged = dict(DEFAULTS)
        for key, value in params.items():
            key = _ALIASES.get(key, key)
            if key not in DEFAULTS:
                raise ConfigError(f"Unknown config key: {key!r}")
            if value is None:
                continue
            merged[key] = value
        return cls(**merged)

    def to_dict(self) -> dict:
        """JSON-safe mapping accepted back by from_dict."""
        data = asdict(self)
        data["function"] = self.function.value
        data["path"] = format_shape(self.path)
        return data
