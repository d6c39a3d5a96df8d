# Tests for the stdio transport loop

import io
import json

import anyio
from fastapi.testclient import TestClient

from gdocs_mcp.config import NOT_AUTHENTICATED_MESSAGE
from gdocs_mcp.dispatcher import RequestDispatcher
from gdocs_mcp.main import create_app
from gdocs_mcp.stdio import serve_lines, serve_stdio


def lines(*items) -> str:
    return "".join((item if isinstance(item, str) else json.dumps(item)) + "\n" for item in items)


async def exchange(session, *items) -> list[dict]:
    """Feed ``items`` as stdin lines and return the responses written to stdout."""
    stdout = io.StringIO()

    await serve_lines(
        RequestDispatcher(session),
        anyio.wrap_file(io.StringIO(lines(*items))),
        anyio.wrap_file(stdout),
    )

    return [json.loads(line) for line in stdout.getvalue().splitlines()]


class TestServeLines:
    async def test_requests_are_answered(self, session):
        responses = await exchange(
            session,
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}},
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "id": 2, "method": "tools/list"},
        )

        assert sorted(r["id"] for r in responses) == [1, 2]

    async def test_unauthenticated_call(self, session, google):
        responses = await exchange(
            session,
            {
                "jsonrpc": "2.0",
                "id": "call-1",
                "method": "tools/call",
                "params": {"name": "list_documents", "arguments": {}},
            },
        )

        assert responses == [{
            "jsonrpc": "2.0",
            "result": {
                "content": [{"type": "text", "text": NOT_AUTHENTICATED_MESSAGE}],
                "isError": True,
            },
            "id": "call-1",
        }]
        assert google.requests == []

    async def test_wrong_version_is_answered(self, session, authenticated, google):
        responses = await exchange(
            session,
            {"jsonrpc": "1.0", "id": 1, "method": "tools/call", "params": {"name": "list_documents"}},
        )

        assert responses == [{
            "jsonrpc": "2.0",
            "error": {"code": -32600, "message": "Invalid JSON-RPC version"},
            "id": 1,
        }]
        assert google.requests == []

    async def test_unparsable_line(self, session):
        responses = await exchange(session, "{not json", {"jsonrpc": "2.0", "id": 3, "method": "ping"})

        by_id = {r["id"]: r for r in responses}
        assert by_id[None]["error"]["code"] == -32700
        assert by_id[3] == {"jsonrpc": "2.0", "result": {}, "id": 3}

    async def test_blank_lines_are_ignored(self, session):
        responses = await exchange(session, "", "   ", {"jsonrpc": "2.0", "id": 5, "method": "ping"})

        assert responses == [{"jsonrpc": "2.0", "result": {}, "id": 5}]

    async def test_unknown_method_error(self, session):
        responses = await exchange(session, {"jsonrpc": "2.0", "id": 4, "method": "prompts/list"})

        assert responses[0]["error"]["code"] == -32601

    async def test_tools_list_matches_http(self, session):
        request = {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}

        [over_stdio] = await exchange(session, request)
        with TestClient(create_app(session)) as client:
            over_http = client.post("/rpc", json=request).json()

        assert over_stdio == over_http


class TestServeStdio:
    async def test_closes_session_at_eof(self, session):
        stdout = io.StringIO()

        await serve_stdio(
            session,
            stdin=anyio.wrap_file(io.StringIO(lines({"jsonrpc": "2.0", "id": 1, "method": "ping"}))),
            stdout=anyio.wrap_file(stdout),
        )

        assert json.loads(stdout.getvalue()) == {"jsonrpc": "2.0", "result": {}, "id": 1}
        assert session._http_client.is_closed
