"""
Tests for the per-session JSON-RPC transport.
"""

import asyncio

import pytest

from toolgate.exceptions import (
    BAD_SESSION,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    BadSessionError,
)
from toolgate.server.transport import (
    MCP_PROTOCOL_VERSION,
    SERVER_INFO,
    SessionTransport,
    decode_envelope,
)
from toolgate.tools import RemoteToolService, ToolDef, random_int_tool


@pytest.fixture
def transport():
    return SessionTransport("s-1", RemoteToolService([random_int_tool(lambda n: n - 1)]))


def call(method, params=None, id=1):
    body = {"jsonrpc": "2.0", "method": method, "id": id}
    if params is not None:
        body["params"] = params
    return body


class TestDecodeEnvelope:
    def test_valid_request(self):
        envelope = decode_envelope(call("ping"))
        assert envelope.method == "ping"
        assert envelope.id == 1
        assert not envelope.is_notification

    def test_notification_has_no_id(self):
        envelope = decode_envelope({"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert envelope.is_notification

    def test_explicit_null_id_is_not_a_notification(self):
        envelope = decode_envelope({"jsonrpc": "2.0", "method": "ping", "id": None})
        assert not envelope.is_notification

    @pytest.mark.parametrize(
        "body",
        [
            {"jsonrpc": "1.0", "method": "ping", "id": 1},
            {"jsonrpc": "2.0", "id": 1},
            {"jsonrpc": "2.0", "method": 5, "id": 1},
            {"jsonrpc": "2.0", "method": "ping", "id": 1.5},
            {"jsonrpc": "2.0", "method": "ping", "params": [1], "id": 1},
            "ping",
            42,
        ],
    )
    def test_invalid_request(self, body):
        from toolgate.exceptions import InvalidRequestError

        with pytest.raises(InvalidRequestError):
            decode_envelope(body)

    def test_batch_rejected(self):
        from toolgate.exceptions import InvalidRequestError

        with pytest.raises(InvalidRequestError, match="Batch"):
            decode_envelope([call("ping")])


class TestSessionTransport:
    @pytest.mark.asyncio
    async def test_initialize(self, transport):
        reply = await transport.handle_message(
            call("initialize", {"protocolVersion": "2024-11-05", "capabilities": {}})
        )
        assert reply["id"] == 1
        result = reply["result"]
        assert result["protocolVersion"] == "2024-11-05"
        assert result["serverInfo"] == SERVER_INFO
        assert result["capabilities"]["tools"] == {"listChanged": False}
        assert transport.initialized

    @pytest.mark.asyncio
    async def test_initialize_default_version(self, transport):
        reply = await transport.handle_message(call("initialize"))
        assert reply["result"]["protocolVersion"] == MCP_PROTOCOL_VERSION

    @pytest.mark.asyncio
    async def test_initialized_notification_gets_no_reply(self, transport):
        reply = await transport.handle_message(
            {"jsonrpc": "2.0", "method": "notifications/initialized"}
        )
        assert reply is None

    @pytest.mark.asyncio
    async def test_ping(self, transport):
        reply = await transport.handle_message(call("ping", id="abc"))
        assert reply == {"jsonrpc": "2.0", "result": {}, "id": "abc"}

    @pytest.mark.asyncio
    async def test_tools_list(self, transport):
        reply = await transport.handle_message(call("tools/list"))
        tools = reply["result"]["tools"]
        assert [t["name"] for t in tools] == ["randomInt"]
        assert tools[0]["inputSchema"]["properties"]["max"]["type"] == "integer"

    @pytest.mark.asyncio
    async def test_tools_call(self, transport):
        reply = await transport.handle_message(
            call("tools/call", {"name": "randomInt", "arguments": {"max": 10}}, id=7)
        )
        assert reply["id"] == 7
        assert reply["result"] == {
            "content": [{"type": "text", "text": "9"}],
            "isError": False,
        }

    @pytest.mark.asyncio
    async def test_tools_call_without_initialize(self, transport):
        reply = await transport.handle_message(call("tools/call", {"name": "randomInt"}))
        assert reply["result"]["content"][0]["text"] == "99"
        assert not transport.initialized

    @pytest.mark.asyncio
    async def test_unknown_tool_is_error_result(self, transport):
        reply = await transport.handle_message(
            call("tools/call", {"name": "nope", "arguments": {}})
        )
        result = reply["result"]
        assert result["isError"] is True
        assert result["structuredContent"] == {"error": "unknown_tool"}
        assert "nope" in result["content"][0]["text"]
        assert "error" not in reply

    @pytest.mark.asyncio
    async def test_invalid_argument_is_error_result(self, transport):
        reply = await transport.handle_message(
            call("tools/call", {"name": "randomInt", "arguments": {"max": 0}})
        )
        assert reply["result"]["isError"] is True
        assert reply["result"]["structuredContent"] == {"error": "invalid_argument"}

    @pytest.mark.asyncio
    async def test_invalid_params(self, transport):
        reply = await transport.handle_message(call("tools/call", {"arguments": {}}))
        assert reply["error"]["code"] == INVALID_PARAMS
        assert reply["id"] == 1

    @pytest.mark.asyncio
    async def test_method_not_found(self, transport):
        reply = await transport.handle_message(call("resources/list", id=3))
        assert reply["error"]["code"] == METHOD_NOT_FOUND
        assert reply["id"] == 3

    @pytest.mark.asyncio
    async def test_invalid_envelope_keeps_id(self, transport):
        reply = await transport.handle_message({"jsonrpc": "1.0", "method": "ping", "id": 9})
        assert reply["error"]["code"] == INVALID_REQUEST
        assert reply["id"] == 9

    @pytest.mark.asyncio
    async def test_unknown_method_notification_is_silent(self, transport):
        reply = await transport.handle_message({"jsonrpc": "2.0", "method": "notifications/cancelled"})
        assert reply is None

    @pytest.mark.asyncio
    async def test_handler_crash_is_internal_error(self):
        def boom(args):
            raise RuntimeError("kaboom")

        service = RemoteToolService([ToolDef(name="boom", description="", handler=boom)])
        transport = SessionTransport("s-2", service)
        reply = await transport.handle_message(call("tools/call", {"name": "boom"}))
        assert reply["error"] == {"code": INTERNAL_ERROR, "message": "Internal error"}

    @pytest.mark.asyncio
    async def test_tool_calls_queue_notifications(self, transport):
        await transport.handle_message(call("tools/call", {"name": "randomInt"}))
        await transport.handle_message(call("tools/call", {"name": "missing"}))

        pending = await transport.poll()
        assert [n["method"] for n in pending] == ["notifications/message"] * 2
        assert pending[0]["params"]["data"] == {"tool": "randomInt", "result": "99"}
        assert pending[1]["params"]["level"] == "warning"
        assert await transport.poll() == []

    @pytest.mark.asyncio
    async def test_closed_transport_rejects(self, transport):
        transport.close()
        with pytest.raises(BadSessionError) as exc_info:
            await transport.handle_message(call("ping"))
        assert exc_info.value.code == BAD_SESSION
        with pytest.raises(BadSessionError):
            await transport.poll()

    @pytest.mark.asyncio
    async def test_activity_tracking(self):
        now = [100.0]
        transport = SessionTransport("s-3", RemoteToolService(), clock=lambda: now[0])
        now[0] = 150.0
        assert transport.idle_for() == 50.0
        await transport.handle_message(call("ping"))
        assert transport.last_activity == 150.0
        assert transport.request_count == 1
        assert transport.idle_for(now=160.0) == 10.0

    @pytest.mark.asyncio
    async def test_requests_are_serialized(self):
        order = []
        gate = asyncio.Event()

        async def slow(args):
            order.append("slow-start")
            await gate.wait()
            order.append("slow-end")
            return "slow"

        async def fast(args):
            order.append("fast")
            return "fast"

        service = RemoteToolService(
            [
                ToolDef(name="slow", description="", handler=slow),
                ToolDef(name="fast", description="", handler=fast),
            ]
        )
        transport = SessionTransport("s-4", service)

        first = asyncio.create_task(transport.handle_message(call("tools/call", {"name": "slow"}, id=1)))
        await asyncio.sleep(0)
        assert transport.busy
        second = asyncio.create_task(transport.handle_message(call("tools/call", {"name": "fast"}, id=2)))
        await asyncio.sleep(0.01)
        assert order == ["slow-start"]

        gate.set()
        replies = await asyncio.gather(first, second)
        assert order == ["slow-start", "slow-end", "fast"]
        assert [r["id"] for r in replies] == [1, 2]
        assert not transport.busy
