"""
Juggernaut Feature Flags
------------------------
Startup gate for the MCP tool server.

The desktop app keeps plugin enable/disable state in
``<data_dir>/data/plugin-registry.json``. The MCP server is spawned by
external MCP clients rather than by the app, so it reads that registry on
startup and refuses to run unless the ``mcp-server`` plugin is explicitly
enabled. A missing or unreadable registry means disabled.

``JUGGERNAUT_MCP_SERVER=1|0`` overrides the registry when set, for
deployments that run the server without the desktop app.
"""

import os
import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Any, Optional

from juggernaut.core.errors import FeatureDisabledError

logger = logging.getLogger("Juggernaut.Flags")

MCP_PLUGIN_ID = "mcp-server"

_ENV_OVERRIDES = {
    "mcp_server": "JUGGERNAUT_MCP_SERVER",
}


def _env_override(key: str) -> Optional[bool]:
    """Read a tri-state override: unset → None, '1'/'true'/'yes'/'on' → True."""
    raw = os.environ.get(key)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _read_registry_enabled(registry_path: Path, plugin_id: str) -> bool:
    try:
        registry = json.loads(Path(registry_path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.debug("Plugin registry not found at %s", registry_path)
        return False
    except (OSError, ValueError) as exc:
        logger.warning("Unreadable plugin registry at %s: %s", registry_path, exc)
        return False

    plugins = registry.get("plugins") if isinstance(registry, dict) else None
    if not isinstance(plugins, dict):
        return False
    entry = plugins.get(plugin_id)
    if not isinstance(entry, dict):
        return False
    return entry.get("enabled") is True


@dataclass(frozen=True)
class FeatureFlags:
    """
    Immutable flag container, resolved once at construction time.

    mcp_server: the tool server may start and serve requests.
    """

    mcp_server: bool = False

    @classmethod
    def from_registry(cls, registry_path: Path) -> "FeatureFlags":
        override = _env_override(_ENV_OVERRIDES["mcp_server"])
        if override is not None:
            enabled = override
            logger.info("mcp_server flag set by %s", _ENV_OVERRIDES["mcp_server"])
        else:
            enabled = _read_registry_enabled(registry_path, MCP_PLUGIN_ID)
        return cls(mcp_server=enabled)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def is_enabled(self, flag_name: str) -> bool:
        if not hasattr(self, flag_name):
            raise AttributeError(
                f"Unknown feature flag: '{flag_name}'. "
                f"Valid flags: {list(self.to_dict().keys())}"
            )
        return getattr(self, flag_name)

    def require(self, flag_name: str) -> None:
        """
        Assert that a flag is enabled. Use at feature entry points.

        Raises:
            FeatureDisabledError: If the flag is disabled.
        """
        if not self.is_enabled(flag_name):
            raise FeatureDisabledError(
                "MCP Server plugin is disabled. Enable it in Juggernaut "
                "Settings > Plugins, then restart your MCP client."
                if flag_name == "mcp_server"
                else f"Feature '{flag_name}' is disabled."
            )


_global_flags: FeatureFlags | None = None


def get_flags(registry_path: Path | None = None) -> FeatureFlags:
    """Get the process-wide FeatureFlags, reading the registry on first call."""
    global _global_flags
    if _global_flags is None:
        if registry_path is None:
            from juggernaut.platform import get_registry_path
            registry_path = get_registry_path()
        _global_flags = FeatureFlags.from_registry(registry_path)
    return _global_flags


def reset_flags() -> None:
    """Reset the global singleton. Used in testing."""
    global _global_flags
    _global_flags = None
