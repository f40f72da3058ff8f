"""Configuration errors. The sort engine itself never raises on valid input."""


class ConfigError(ValueError):
    """Invalid sort configuration."""


class InvalidAngle(ConfigError):
    """Rotation angle outside the open interval (-90, 90)."""


class InvalidHeuristic(ConfigError):
    """Unknown sort function name."""


class InvalidShapeSyntax(ConfigError):
    """Malformed path shape string.

    Attributes:
        literal:  The full text that failed to parse.
        reason:   What was wrong.
        position: Character offset of the problem within ``literal``.
    """

    def __init__(self, literal: str, reason: str, position: int = 0):
        self.literal = literal
        self.reason = reason
        self.position = position
        super().__init__(
            f"Could not parse `{literal}` as a valid path shape: "
            f"{reason} (at position {position})"
        )
