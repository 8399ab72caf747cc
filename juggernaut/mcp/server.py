import logging
from typing import Any, BinaryIO, Dict, Optional

from juggernaut.mcp.framing import FrameDecoder, encode_frame
from juggernaut.mcp.handlers import call_tool, handle_initialize, handle_list_tools
from juggernaut.mcp.protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
)
from juggernaut.store.sqlite_mirror import SQLiteMirrorStore

logger = logging.getLogger("Juggernaut.mcp.server")


class ShutdownRequested(Exception):
    """Raised from a signal handler to stop the read loop."""


class McpServer:
    """
    Handles JSON-RPC communication over a byte stream.

    Messages are processed one at a time in the order their frames complete;
    a tool call runs to completion (transaction included) before the next
    buffered message is looked at.
    """

    def __init__(
        self,
        store: SQLiteMirrorStore,
        output: BinaryIO,
        read_chunk_size: int = 65536,
    ):
        self.store = store
        self.output = output
        self.read_chunk_size = read_chunk_size
        self.decoder = FrameDecoder()
        self.transport_closed = False
        self.dispatching = False
        self.shutdown_reason: Optional[str] = None

    def request_shutdown(self, reason: str) -> None:
        """Stop after the message currently being dispatched."""
        self.shutdown_reason = reason

    def send(self, message: Dict[str, Any]) -> None:
        """Frame and write one JSON-RPC message."""
        if self.transport_closed:
            return
        frame = encode_frame(message)
        try:
            self.output.write(frame)
            self.output.flush()
        except (BrokenPipeError, OSError) as exc:
            self.transport_closed = True
            logger.warning("MCP stdio transport closed while sending: %s", exc)

    @staticmethod
    def _result(msg_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
        return {"jsonrpc": "2.0", "id": msg_id, "result": result}

    @staticmethod
    def _error(msg_id: Any, code: int, message: str) -> Dict[str, Any]:
        return {"jsonrpc": "2.0", "id": msg_id, "error": {"code": code, "message": message}}

    def handle_message(self, msg: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the reply for one request, or None for a notification."""
        msg_id = msg.get("id")
        method = msg.get("method")
        if msg_id is None:
            logger.debug("Notification received: %s", method)
            return None
        if msg.get("jsonrpc") != "2.0" or not isinstance(method, str):
            return self._error(msg_id, INVALID_REQUEST, "Invalid JSON-RPC 2.0 request")

        params = msg.get("params")
        if method == "initialize":
            return self._result(msg_id, handle_initialize(params or {}))
        if method == "ping":
            return self._result(msg_id, {})
        if method == "tools/list":
            return self._result(msg_id, handle_list_tools())
        if method == "tools/call":
            if params is None:
                params = {}
            if not isinstance(params, dict):
                return self._error(msg_id, INVALID_PARAMS, "tools/call params must be an object")
            return self._result(
                msg_id, call_tool(self.store, params.get("name"), params.get("arguments"))
            )
        return self._error(msg_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    def dispatch(self, msg: Dict[str, Any]) -> None:
        try:
            response = self.handle_message(msg)
        except Exception:
            logger.exception("Unexpected error during RPC dispatch")
            msg_id = msg.get("id")
            if msg_id is None:
                return
            response = self._error(msg_id, INTERNAL_ERROR, "Internal error during request dispatch.")
        if response is not None:
            self.send(response)

    def feed(self, chunk: bytes) -> int:
        """Consume a chunk of input; returns how many messages it completed."""
        messages = self.decoder.feed(chunk)
        handled = 0
        self.dispatching = True
        try:
            for msg in messages:
                if self.shutdown_reason is not None:
                    break
                self.dispatch(msg)
                handled += 1
        finally:
            self.dispatching = False
        return handled

    def serve(self, stream: BinaryIO) -> None:
        """Read chunks until EOF, transport failure or ShutdownRequested."""
        read = getattr(stream, "read1", stream.read)
        try:
            while not self.transport_closed and self.shutdown_reason is None:
                chunk = read(self.read_chunk_size)
                if not chunk:
                    logger.info("stdin closed, shutting down")
                    break
                self.feed(chunk)
        finally:
            if self.decoder.pending_bytes:
                logger.warning(
                    "Discarding %d bytes of incomplete frame at shutdown",
                    self.decoder.pending_bytes,
                )
                self.decoder.reset()
