"""Preset files — serialize/deserialize sort configurations as JSON."""

import json
import time
import uuid
from pathlib import Path

from engine.config import SortConfig
from engine.errors import ConfigError

CURRENT_VERSION = "1.0.0"

REQUIRED_KEYS = {"version", "id", "created", "modified", "config"}


def new_preset(config: SortConfig | None = None, name: str = "") -> dict:
    """Create a preset document for a config (defaults if None)."""
    now = time.time()
    return {
        "version": CURRENT_VERSION,
        "id": str(uuid.uuid4()),
        "name": name,
        "created": now,
        "modified": now,
        "config": (config or SortConfig()).to_dict(),
    }


def validate(preset: dict) -> list[str]:
    """Validate a preset dict. Returns list of error strings (empty = valid)."""
    errors = []

    if not isinstance(preset, dict):
        return ["Preset must be a JSON object"]

    missing = REQUIRED_KEYS - set(preset.keys())
    if missing:
        errors.append(f"Missing top-level keys: {sorted(missing)}")
        return errors  # Can't validate further

    if not isinstance(preset["version"], str):
        errors.append("'version' must be a string")

    if not isinstance(preset["id"], str):
        errors.append("'id' must be a string")

    config = preset["config"]
    if not isinstance(config, dict):
        errors.append("'config' must be a dict")
    else:
        try:
            SortConfig.from_dict(config)
        except ConfigError as e:
            errors.append(f"Invalid config: {e}")

    return errors


def serialize(preset: dict) -> str:
    """Serialize preset to JSON string."""
    preset["modified"] = time.time()
    return json.dumps(preset, indent=2)


def deserialize(data: str) -> dict:
    """Deserialize JSON string to preset dict. Raises ValueError on invalid JSON or schema."""
    try:
        preset = json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e

    errors = validate(preset)
    if errors:
        raise ValueError(f"Invalid preset: {'; '.join(errors)}")

    return preset


def load_config(preset: dict) -> SortConfig:
    """SortConfig stored in an already-validated preset."""
    return SortConfig.from_dict(preset["config"])


def save(path: str, config: SortConfig, name: str = "") -> None:
    """Write a config to a preset file."""
    Path(path).write_text(serialize(new_preset(config, name)))


def load(path: str) -> SortConfig:
    """Read a preset file. Raises ValueError on invalid content, OSError on I/O."""
    return load_config(deserialize(Path(path).read_text()))
