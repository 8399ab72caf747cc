"""
Juggernaut MCP method handlers: initialize, tools/list and tools/call.
"""

import json
import logging
from typing import Any, Dict

from juggernaut.version import __version__ as _JUGGERNAUT_VERSION
from juggernaut.core.errors import ToolError, UnknownToolError
from juggernaut.mcp.arguments import parse_arguments
from juggernaut.mcp.definitions import (
    DESTRUCTIVE_TOOLS,
    READ_ONLY_TOOLS,
    TOOLS_SCHEMAS,
    ToolName,
)
from juggernaut.mcp.protocol import (
    JSON_SCHEMA_2020_12,
    SERVER_NAME,
    negotiate_protocol_version,
)
from juggernaut.mcp.tools import TOOL_HANDLERS
from juggernaut.store.sqlite_mirror import SQLiteMirrorStore

logger = logging.getLogger("Juggernaut.mcp.handlers")

INSTRUCTIONS = (
    "Juggernaut MCP server. Reads and edits the local WordPress mirror. "
    "Edits mark posts dirty and are logged; push them from the Juggernaut app."
)


def handle_initialize(params: Dict[str, Any]) -> Dict[str, Any]:
    """Static server metadata for the handshake."""
    requested = params.get("protocolVersion") if isinstance(params, dict) else None
    return {
        "protocolVersion": negotiate_protocol_version(requested),
        "capabilities": {"tools": {"listChanged": False}},
        "serverInfo": {"name": SERVER_NAME, "version": _JUGGERNAUT_VERSION},
        "instructions": INSTRUCTIONS,
    }


def handle_list_tools() -> Dict[str, Any]:
    """List available tools with schemas and hints."""
    tools_list = []
    for schema_def in TOOLS_SCHEMAS:
        tool = ToolName(schema_def["name"])
        input_schema = dict(schema_def["inputSchema"])
        input_schema.setdefault("$schema", JSON_SCHEMA_2020_12)
        read_only = tool in READ_ONLY_TOOLS
        tools_list.append({
            "name": tool.value,
            "description": schema_def["description"],
            "inputSchema": input_schema,
            "annotations": {
                "readOnlyHint": read_only,
                "destructiveHint": tool in DESTRUCTIVE_TOOLS,
                "idempotentHint": read_only,
                "openWorldHint": False,
            },
        })
    return {"tools": tools_list}


def tool_result(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": json.dumps(payload, indent=2, ensure_ascii=False)}]}


def tool_error_result(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "content": [{"type": "text", "text": json.dumps(payload, ensure_ascii=False)}],
        "isError": True,
    }


def call_tool(store: SQLiteMirrorStore, name: Any, arguments: Any) -> Dict[str, Any]:
    """
    Resolve, validate and run one tool call.

    Always returns a tool result envelope. Rejections and failures come back
    with ``isError: true`` so a caller can tell "input rejected" apart from a
    broken protocol exchange.
    """
    try:
        try:
            tool = ToolName(name)
        except (ValueError, TypeError):
            raise UnknownToolError(name) from None
        args = parse_arguments(tool, arguments)
        result = TOOL_HANDLERS[tool](store, args)
    except ToolError as exc:
        logger.warning("Tool %s rejected: %s", name, exc.message)
        return tool_error_result(exc.to_payload())
    except Exception as exc:
        logger.exception("Tool %s failed", name)
        return tool_error_result({"error": f"Internal error in tool '{name}': {exc}"})
    return tool_result(result)
