"""TOML configuration loader.

Loads generator, source, stream and server settings from defaults.toml
(shipped with the package) or a user-supplied file.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError

from diffdigest.schemas.config import AppConfig

# Default config directory relative to the diffdigest package
_CONFIG_DIR = Path(__file__).parent / "config"

_SECTIONS = ("generator", "source", "stream", "server")


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load application configuration from a TOML file.

    Args:
        config_path: Path to a TOML file. Defaults to diffdigest/config/defaults.toml.

    Returns:
        AppConfig with values from the file; missing sections keep defaults.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML is malformed or a value is invalid.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    sections = {name: raw[name] for name in _SECTIONS if name in raw}
    for name, section in sections.items():
        if not isinstance(section, dict):
            raise ValueError(f"[{name}] in {path} must be a table")

    try:
        return AppConfig(**sections)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {path}: {e}") from e
