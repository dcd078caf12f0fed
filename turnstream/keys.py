"""Provider key loading for turnstream.

Keys are resolved with this priority:
  1. Environment variables (highest, already set in shell)
  2. ~/.turnstream/keys.env
  3. .env in current directory (project-level)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

# Directory for user-level turnstream configuration
TURNSTREAM_HOME = Path.home() / ".turnstream"
KEYS_FILE = TURNSTREAM_HOME / "keys.env"


def load_keys_env() -> None:
    """Load provider keys from ~/.turnstream/keys.env and .env into os.environ.

    Existing env vars are NOT overwritten, and earlier files win over
    later ones.
    """
    for env_file in (KEYS_FILE, Path.cwd() / ".env"):
        if env_file.is_file():
            _load_env_file(env_file)


def _load_env_file(path: Path) -> None:
    """Parse a simple KEY=VALUE .env file and set vars that aren't already set."""
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and not os.environ.get(key):
                os.environ[key] = value
                logger.debug("Loaded %s from %s", key, path)
    except OSError:
        logger.debug("Could not read %s", path)


def key_status(env_vars: list[str]) -> dict[str, bool]:
    """Return whether each env var holds a non-empty key."""
    return {env_var: bool(os.environ.get(env_var)) for env_var in env_vars}
