"""
Juggernaut MCP Protocol Constants
"""

SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")
DEFAULT_PROTOCOL_VERSION = "2024-11-05"
JSON_SCHEMA_2020_12 = "https://json-schema.org/draft/2020-12/schema"

SERVER_NAME = "juggernaut"

# Standard JSON-RPC error codes
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def negotiate_protocol_version(version: str | None) -> str:
    """Echo a supported client version; otherwise offer the server default."""
    if version in SUPPORTED_PROTOCOL_VERSIONS:
        return version
    return DEFAULT_PROTOCOL_VERSION
