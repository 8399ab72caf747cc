"""
Juggernaut: MCP tool server over the local CMS mirror
"""

from juggernaut.version import __version__

__all__ = ["__version__"]
