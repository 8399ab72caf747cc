import io
import json

import pytest

from juggernaut.mcp.definitions import ToolName
from juggernaut.mcp.framing import FrameDecoder, encode_frame
from juggernaut.mcp.protocol import (
    DEFAULT_PROTOCOL_VERSION,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSON_SCHEMA_2020_12,
    METHOD_NOT_FOUND,
    negotiate_protocol_version,
)
from juggernaut.mcp.server import McpServer
from juggernaut.version import __version__


def _request(msg_id, method, params=None):
    msg = {"jsonrpc": "2.0", "id": msg_id, "method": method}
    if params is not None:
        msg["params"] = params
    return msg


def _replies(output: io.BytesIO):
    return FrameDecoder().feed(output.getvalue())


@pytest.fixture
def output():
    return io.BytesIO()


@pytest.fixture
def server(store, output):
    return McpServer(store, output)


def _roundtrip(server, output, *messages):
    server.feed(b"".join(encode_frame(m) for m in messages))
    return _replies(output)


def _tool_payload(reply):
    return json.loads(reply["result"]["content"][0]["text"])


def test_negotiate_protocol_version():
    assert negotiate_protocol_version("2025-06-18") == "2025-06-18"
    assert negotiate_protocol_version("2024-11-05") == "2024-11-05"
    assert negotiate_protocol_version("1999-01-01") == DEFAULT_PROTOCOL_VERSION
    assert negotiate_protocol_version(None) == DEFAULT_PROTOCOL_VERSION


def test_initialize(server, output):
    (reply,) = _roundtrip(server, output, _request(1, "initialize", {"protocolVersion": "2025-03-26"}))
    assert reply["id"] == 1
    result = reply["result"]
    assert result["protocolVersion"] == "2025-03-26"
    assert result["capabilities"] == {"tools": {"listChanged": False}}
    assert result["serverInfo"] == {"name": "juggernaut", "version": __version__}


def test_initialize_with_unknown_version_offers_default(server, output):
    (reply,) = _roundtrip(server, output, _request(1, "initialize", {"protocolVersion": "1999-01-01"}))
    assert reply["result"]["protocolVersion"] == DEFAULT_PROTOCOL_VERSION


def test_ping(server, output):
    (reply,) = _roundtrip(server, output, _request("abc", "ping"))
    assert reply == {"jsonrpc": "2.0", "id": "abc", "result": {}}


def test_tools_list(server, output):
    (reply,) = _roundtrip(server, output, _request(2, "tools/list"))
    tools = {tool["name"]: tool for tool in reply["result"]["tools"]}
    assert set(tools) == {name.value for name in ToolName}

    for tool in tools.values():
        assert tool["description"]
        assert tool["inputSchema"]["type"] == "object"
        assert tool["inputSchema"]["$schema"] == JSON_SCHEMA_2020_12

    assert tools["list_posts"]["annotations"]["readOnlyHint"] is True
    assert tools["update_post"]["annotations"]["readOnlyHint"] is False
    assert tools["update_post_terms"]["annotations"]["destructiveHint"] is True
    assert tools["get_post"]["inputSchema"]["required"] == ["id"]
    assert set(tools["update_post_terms"]["inputSchema"]["required"]) == {"post_id", "taxonomy", "term_ids"}


def test_notifications_get_no_reply(server, output):
    replies = _roundtrip(
        server,
        output,
        {"jsonrpc": "2.0", "method": "notifications/initialized"},
        {"jsonrpc": "2.0", "id": None, "method": "ping"},
    )
    assert replies == []


def test_unknown_method(server, output):
    (reply,) = _roundtrip(server, output, _request(3, "resources/list"))
    assert reply["error"] == {"code": METHOD_NOT_FOUND, "message": "Method not found: resources/list"}


def test_wrong_jsonrpc_version(server, output):
    (reply,) = _roundtrip(server, output, {"jsonrpc": "1.0", "id": 4, "method": "ping"})
    assert reply["error"]["code"] == INVALID_REQUEST


def test_tools_call_params_must_be_object(server, output):
    (reply,) = _roundtrip(server, output, _request(5, "tools/call", ["list_posts"]))
    assert reply["error"]["code"] == INVALID_PARAMS


def test_tools_call_success(server, output):
    (reply,) = _roundtrip(server, output, _request(6, "tools/call", {"name": "list_posts", "arguments": {}}))
    assert "isError" not in reply["result"]
    assert _tool_payload(reply)["total"] == 3


def test_tools_call_errors_are_results_not_protocol_errors(server, output):
    replies = _roundtrip(
        server,
        output,
        _request(7, "tools/call", {"name": "no_such_tool", "arguments": {}}),
        _request(8, "tools/call", {"name": "get_post", "arguments": {"id": 999}}),
    )
    assert [r["id"] for r in replies] == [7, 8]
    for reply in replies:
        assert "error" not in reply
        assert reply["result"]["isError"] is True
    assert _tool_payload(replies[0]) == {"error": "Unknown tool: no_such_tool"}
    assert _tool_payload(replies[1]) == {"error": "Post 999 not found"}


def test_replies_follow_frame_order(server, output):
    replies = _roundtrip(server, output, _request(1, "ping"), _request(2, "tools/list"), _request(3, "ping"))
    assert [r["id"] for r in replies] == [1, 2, 3]


def test_split_request_matches_unsplit(store):
    requests = [
        _request(1, "initialize", {"protocolVersion": "2024-11-05"}),
        _request(2, "tools/call", {"name": "get_post", "arguments": {"id": 100}}),
        _request(3, "tools/call", {"name": "list_terms", "arguments": {"taxonomy": "category"}}),
    ]
    stream = b"".join(encode_frame(m) for m in requests)

    whole_out = io.BytesIO()
    McpServer(store, whole_out).feed(stream)
    expected = whole_out.getvalue()

    for offset in range(1, len(stream)):
        out = io.BytesIO()
        split_server = McpServer(store, out)
        split_server.feed(stream[:offset])
        split_server.feed(stream[offset:])
        assert out.getvalue() == expected, f"split at byte {offset}"


def test_dispatch_crash_becomes_internal_error(server, output, monkeypatch):
    def boom(msg):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(server, "handle_message", boom)
    (reply,) = _roundtrip(server, output, _request(9, "ping"))
    assert reply["error"]["code"] == INTERNAL_ERROR


def test_serve_reads_until_eof(server, output):
    stream = io.BytesIO(encode_frame(_request(1, "ping")) + encode_frame(_request(2, "ping")))
    server.serve(stream)
    assert [r["id"] for r in _replies(output)] == [1, 2]


def test_serve_discards_partial_frame_at_eof(server, output, caplog):
    data = encode_frame(_request(1, "ping")) + b"Content-Length: 50\r\n\r\n{\"jsonrpc\""
    with caplog.at_level("WARNING", logger="Juggernaut.mcp.server"):
        server.serve(io.BytesIO(data))
    assert [r["id"] for r in _replies(output)] == [1]
    assert server.decoder.pending_bytes == 0
    assert "incomplete frame" in caplog.text


class _BrokenPipe(io.BytesIO):
    def write(self, data):
        raise BrokenPipeError("stdout closed")


def test_broken_output_stops_the_loop(store):
    server = McpServer(store, _BrokenPipe())
    stream = io.BytesIO(b"".join(encode_frame(_request(i, "ping")) for i in range(3)))
    server.serve(stream)
    assert server.transport_closed is True


def test_shutdown_request_stops_after_current_message(server, output, monkeypatch):
    original = server.handle_message

    def handle_then_shutdown(msg):
        server.request_shutdown("SIGTERM")
        return original(msg)

    monkeypatch.setattr(server, "handle_message", handle_then_shutdown)
    stream = io.BytesIO(b"".join(encode_frame(_request(i, "ping")) for i in (1, 2, 3)))
    server.serve(stream)
    assert [r["id"] for r in _replies(output)] == [1]
    assert server.shutdown_reason == "SIGTERM"
