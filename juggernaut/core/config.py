"""
Juggernaut Configuration
------------------------
Centralized configuration for the MCP tool server.
Loads from environment variables; the desktop app sets them when it
registers the server with an MCP client.
"""

import os
import logging
from typing import Optional
from pydantic import BaseModel, Field

from juggernaut.platform import get_data_dir, get_database_path, get_registry_path

logger = logging.getLogger("Juggernaut.Config")

DEFAULT_LOCK_TIMEOUT_MS = 5000


def _parse_positive_int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
        if value <= 0:
            raise ValueError
        return value
    except ValueError:
        logger.warning(
            "Invalid %s value '%s'; expected positive integer. Using %d.",
            name,
            raw,
            default,
        )
        return default


class StoreConfig(BaseModel):
    """SQLite mirror configuration."""
    path: str
    # How long a write waits on a lock held by the app's sync process.
    lock_timeout_ms: int = Field(default=DEFAULT_LOCK_TIMEOUT_MS, gt=0)


class ServerConfig(BaseModel):
    """MCP stdio server configuration."""
    log_level: str = "INFO"
    log_file: Optional[str] = None
    read_chunk_size: int = Field(default=65536, gt=0)


class JuggernautConfig(BaseModel):
    """Root configuration object."""
    data_dir: str
    registry_path: str
    store: StoreConfig
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def from_env(cls) -> "JuggernautConfig":
        data_dir = get_data_dir()
        store = StoreConfig(
            path=str(get_database_path(data_dir)),
            lock_timeout_ms=_parse_positive_int_env(
                "JUGGERNAUT_MCP_LOCK_TIMEOUT_MS", DEFAULT_LOCK_TIMEOUT_MS
            ),
        )
        server = ServerConfig(
            log_level=os.environ.get("JUGGERNAUT_MCP_LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_file=os.environ.get("JUGGERNAUT_MCP_LOG_FILE") or None,
        )
        return cls(
            data_dir=str(data_dir),
            registry_path=str(get_registry_path(data_dir)),
            store=store,
            server=server,
        )
