"""
Juggernaut Platform Paths
-------------------------
Data directory resolution shared by the desktop app and the MCP server.

The desktop app writes its SQLite mirror and plugin registry under
``<data_dir>/data/``. Both processes must agree on that directory, so the
``JUGGERNAUT_DATA_DIR`` override set by the app always wins over the
platformdirs default.
"""

import os
import logging
from pathlib import Path

import platformdirs

logger = logging.getLogger("Juggernaut.Platform")

_APP_NAME = "juggernaut"
_APP_AUTHOR = "Juggernaut"

DATABASE_FILENAME = "juggernaut.db"
REGISTRY_FILENAME = "plugin-registry.json"


def get_data_dir() -> Path:
    """
    Get the Juggernaut data directory.

    Priority: JUGGERNAUT_DATA_DIR env var > platformdirs user data dir.
    """
    env_val = os.environ.get("JUGGERNAUT_DATA_DIR")
    if env_val:
        logger.debug("Using JUGGERNAUT_DATA_DIR override: %s", env_val)
        return Path(env_val)
    return Path(platformdirs.user_data_dir(_APP_NAME, _APP_AUTHOR))


def get_database_path(data_dir: Path | None = None) -> Path:
    """Resolve the shared store file. DATABASE_PATH overrides the default."""
    env_val = os.environ.get("DATABASE_PATH")
    if env_val:
        return Path(env_val)
    base = data_dir if data_dir is not None else get_data_dir()
    return base / "data" / DATABASE_FILENAME


def get_registry_path(data_dir: Path | None = None) -> Path:
    base = data_dir if data_dir is not None else get_data_dir()
    return base / "data" / REGISTRY_FILENAME
