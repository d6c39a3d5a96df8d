# Tests for the HTTP transport

import pytest
from fastapi.testclient import TestClient

from gdocs_mcp.config import NOT_AUTHENTICATED_MESSAGE, get_port
from gdocs_mcp.main import create_app, parse_args
from gdocs_mcp.registry import list_tools


@pytest.fixture
def client(session):
    with TestClient(create_app(session)) as client:
        yield client


class TestEndpoints:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_info(self, client):
        assert client.get("/").json() == {
            "name": "google-docs-mcp",
            "version": "1.0.0",
            "transport": "http",
            "endpoints": {"rpc": "/rpc", "health": "/health"},
        }


class TestRpc:
    def test_malformed_body(self, client):
        response = client.post("/rpc", content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"]["code"] == -32700
        assert body["id"] is None

    def test_tools_list(self, client):
        response = client.post("/rpc", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"})

        assert response.status_code == 200
        assert response.json() == {"jsonrpc": "2.0", "result": {"tools": list_tools()}, "id": 1}

    def test_unauthenticated_tool_call(self, client, google):
        response = client.post("/rpc", json={
            "jsonrpc": "2.0",
            "id": 1,
            "method": "tools/call",
            "params": {"name": "get_sheet_data", "arguments": {"spreadsheetId": "abc", "range": "A1:B2"}},
        })

        assert response.status_code == 200
        assert response.json() == {
            "jsonrpc": "2.0",
            "result": {
                "content": [{"type": "text", "text": NOT_AUTHENTICATED_MESSAGE}],
                "isError": True,
            },
            "id": 1,
        }
        assert google.requests == []

    def test_protocol_error_is_http_200(self, client):
        response = client.post("/rpc", json={"jsonrpc": "1.0", "id": 7, "method": "tools/list"})

        assert response.status_code == 200
        assert response.json()["error"]["code"] == -32600

    def test_non_object_body(self, client):
        response = client.post("/rpc", json=[1, 2])

        assert response.status_code == 200
        assert response.json()["error"]["code"] == -32600

    def test_notification_accepted(self, client):
        response = client.post("/rpc", json={"jsonrpc": "2.0", "method": "notifications/initialized"})

        assert response.status_code == 202
        assert response.content == b""


class TestPortSelection:
    @pytest.fixture(autouse=True)
    def clear_ports(self, monkeypatch):
        monkeypatch.delenv("MCP_PORT", raising=False)
        monkeypatch.delenv("PORT", raising=False)
        return monkeypatch

    def test_default(self):
        assert get_port() == 12333

    def test_mcp_port_wins(self, clear_ports):
        clear_ports.setenv("MCP_PORT", "8080")
        clear_ports.setenv("PORT", "9090")

        assert get_port() == 8080

    def test_port_fallback(self, clear_ports):
        clear_ports.setenv("PORT", "9090")

        assert get_port() == 9090

    def test_invalid_value(self, clear_ports):
        clear_ports.setenv("MCP_PORT", "not-a-port")
        clear_ports.setenv("PORT", "9090")

        assert get_port() == 12333

    def test_args(self):
        assert parse_args([]).transport == "http"
        assert parse_args(["--stdio"]).transport == "stdio"
        assert parse_args(["--http", "--port", "5000"]).port == 5000
