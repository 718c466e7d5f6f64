"""API key loading for Diff Digest.

Provider keys are read from the environment. Missing ones are filled in,
without overwriting anything already set, from:
  1. ~/.diffdigest/keys.env
  2. .env in the current directory
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

# Directory for user-level configuration
DIGEST_HOME = Path.home() / ".diffdigest"
KEYS_FILE = DIGEST_HOME / "keys.env"


def load_keys_env() -> None:
    """Load API keys from ~/.diffdigest/keys.env and .env into os.environ.

    Existing environment variables are never overwritten.
    """
    files = [KEYS_FILE, Path.cwd() / ".env"]
    for env_file in files:
        if env_file.is_file():
            _load_env_file(env_file)


def _load_env_file(path: Path) -> None:
    """Parse a simple KEY=VALUE .env file and set vars that aren't already set."""
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and not os.environ.get(key):
                os.environ[key] = value
                logger.debug("Loaded %s from %s", key, path)
    except OSError:
        logger.debug("Could not read %s", path)


def has_key(env_var: str) -> bool:
    """Check whether a provider key is configured anywhere."""
    load_keys_env()
    return bool(os.environ.get(env_var))
