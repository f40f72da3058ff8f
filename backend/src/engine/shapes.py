"""Path shapes and the textual shape grammar.

Grammar (whitespace allowed between tokens, names case-insensitive)::

    shape  := name [ open [ number { "," number } ] close ]
    name   := line | linear | sine | circle | ellipse
    open/close := () | [] | {} | <>      (must be a matching pair)

Examples: ``sine``, ``sine(10, 40)``, ``ellipse[0.5]``,
``ellipse<0.3, 0.25, 0.75>``, ``circle(0.2, 0.8)``.
"""

import numbers
import re
from dataclasses import dataclass
from typing import Union

from engine.errors import ConfigError, InvalidShapeSyntax

DEFAULT_AMPLITUDE = 25.0
DEFAULT_WAVELENGTH = 50.0
DEFAULT_OFFSET = 0.0
DEFAULT_ECCENTRICITY = 0.0
DEFAULT_CENTER = (0.5, 0.5)


def _real(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigError(f"'{name}' must be a number, got {value!r}")
    return float(value)


@dataclass(frozen=True)
class LinearShape:
    """Straight rows, optionally slanted by the config angle."""


@dataclass(frozen=True)
class SineShape:
    amplitude: float = DEFAULT_AMPLITUDE
    wavelength: float = DEFAULT_WAVELENGTH
    offset: float = DEFAULT_OFFSET

    def __post_init__(self):
        for name in ("amplitude", "wavelength", "offset"):
            object.__setattr__(self, name, _real(name, getattr(self, name)))


@dataclass(frozen=True)
class EllipseShape:
    """Concentric ellipses around a fractional (0-1) image-relative center."""

    eccentricity: float = DEFAULT_ECCENTRICITY
    center: tuple[float, float] = DEFAULT_CENTER

    def __post_init__(self):
        object.__setattr__(self, "eccentricity", _real("eccentricity", self.eccentricity))
        try:
            cx, cy = self.center
        except (TypeError, ValueError):
            raise ConfigError(f"'center' must be an (x, y) pair, got {self.center!r}") from None
        object.__setattr__(self, "center", (_real("center", cx), _real("center", cy)))


ShapeDescriptor = Union[LinearShape, SineShape, EllipseShape]

_BRACKETS = {"(": ")", "[": "]", "{": "}", "<": ">"}
_NAME_RE = re.compile(r"[A-Za-z_]+")
_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

# name -> allowed argument counts
_ARITY = {
    "line": (0,),
    "linear": (0,),
    "sine": (0, 1, 2, 3),
    "circle": (0, 2),
    "ellipse": (0, 1, 2, 3),
}


class _ShapeParser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def error(self, reason: str, position: int | None = None) -> InvalidShapeSyntax:
        return InvalidShapeSyntax(
            self.text, reason, self.pos if position is None else position
        )

    def skip_ws(self):
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def parse(self) -> ShapeDescriptor:
        self.skip_ws()
        if self.pos == len(self.text):
            return LinearShape()

        start = self.pos
        name = self.name()
        if name not in _ARITY:
            raise self.error(f"unknown shape {name!r}", start)

        self.skip_ws()
        args: list[float] = []
        if self.peek():
            args = self.arguments()
        self.skip_ws()
        if self.pos != len(self.text):
            raise self.error(f"unexpected trailing {self.text[self.pos:]!r}")

        if len(args) not in _ARITY[name]:
            allowed = ", ".join(str(n) for n in _ARITY[name])
            raise self.error(
                f"{name} takes {allowed} arguments, got {len(args)}", start
            )
        return _build(name, args)

    def name(self) -> str:
        match = _NAME_RE.match(self.text, self.pos)
        if match is None:
            raise self.error("expected a shape name")
        self.pos = match.end()
        return match.group().lower()

    def arguments(self) -> list[float]:
        opener = self.peek()
        if opener not in _BRACKETS:
            raise self.error(f"expected an opening bracket, found {opener!r}")
        closer = _BRACKETS[opener]
        self.pos += 1

        args: list[float] = []
        self.skip_ws()
        if self.peek() == closer:
            self.pos += 1
            return args

        while True:
            self.skip_ws()
            args.append(self.number())
            self.skip_ws()
            ch = self.peek()
            if ch == ",":
                self.pos += 1
            elif ch == closer:
                self.pos += 1
                return args
            elif ch == "":
                raise self.error(f"missing closing {closer!r}")
            else:
                raise self.error(f"expected ',' or {closer!r}, found {ch!r}")

    def number(self) -> float:
        match = _NUMBER_RE.match(self.text, self.pos)
        if match is None:
            end = self.pos
            while end < len(self.text) and self.text[end] not in ",)]}> \t":
                end += 1
            raise self.error(f"{self.text[self.pos:end]!r} is not a number")
        self.pos = match.end()
        return float(match.group())


def _build(name: str, args: list[float]) -> ShapeDescriptor:
    if name in ("line", "linear"):
        return LinearShape()
    if name == "sine":
        return SineShape(*args)
    if name == "circle":
        if args:
            return EllipseShape(0.0, (args[0], args[1]))
        return EllipseShape()
    # ellipse
    if len(args) == 1:
        return EllipseShape(args[0])
    if len(args) == 2:
        return EllipseShape(0.0, (args[0], args[1]))
    if len(args) == 3:
        return EllipseShape(args[0], (args[1], args[2]))
    return EllipseShape()


def parse_shape(text: str) -> ShapeDescriptor:
    """Parse a shape string. Raises InvalidShapeSyntax on malformed input."""
    if not isinstance(text, str):
        raise InvalidShapeSyntax(repr(text), "shape must be a string")
    return _ShapeParser(text).parse()


def format_shape(shape: ShapeDescriptor) -> str:
    """Canonical text form; parse_shape(format_shape(s)) == s."""
    if isinstance(shape, SineShape):
        return f"sine({shape.amplitude!r}, {shape.wavelength!r}, {shape.offset!r})"
    if isinstance(shape, EllipseShape):
        cx, cy = shape.center
        return f"ellipse({shape.eccentricity!r}, {cx!r}, {cy!r})"
    return "linear"
