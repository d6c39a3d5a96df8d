# Tests for the tool catalog, result formatting and tool execution

import httpx
from mcp.types import CallToolResult, Tool

from gdocs_mcp.api_client import APIError
from gdocs_mcp.models import (
    DocumentContent,
    DocumentInfo,
    SheetData,
    SheetInfo,
    SpreadsheetInfo,
    text_result,
    to_wire,
)
from gdocs_mcp.oauth import AuthRefreshError
from gdocs_mcp.registry import TOOL_CATALOG, ToolName, list_tools, lookup
from gdocs_mcp.tools import (
    TOOL_HANDLERS,
    format_document,
    format_file_list,
    format_sheet_data,
    format_spreadsheet,
    handle_error,
    run_tool,
)


class TestRegistry:
    def test_names_in_order(self):
        assert [tool["name"] for tool in list_tools()] == [
            "get_document",
            "list_documents",
            "get_spreadsheet",
            "get_sheet_data",
            "list_spreadsheets",
        ]

    def test_every_tool_has_a_handler(self):
        assert set(TOOL_HANDLERS) == set(ToolName)
        assert len(TOOL_CATALOG) == len(ToolName)

    def test_get_sheet_data_schema(self):
        tool = next(t for t in list_tools() if t["name"] == "get_sheet_data")
        schema = tool["inputSchema"]

        assert schema["type"] == "object"
        assert set(schema["properties"]) == {"spreadsheetId", "range"}
        assert sorted(schema["required"]) == ["range", "spreadsheetId"]
        assert "title" not in schema

    def test_list_schema_has_no_required(self):
        tool = next(t for t in list_tools() if t["name"] == "list_documents")
        schema = tool["inputSchema"]

        assert set(schema["properties"]) == {"limit", "query"}
        assert schema["properties"]["limit"]["default"] == 10
        assert "required" not in schema

    def test_list_is_stable(self):
        assert list_tools() == list_tools()

    def test_catalog_holds_mcp_tools(self):
        assert all(isinstance(tool, Tool) for tool in TOOL_CATALOG)

    def test_lookup(self):
        assert lookup("get_document") is ToolName.GET_DOCUMENT
        assert lookup("delete_document") is None


class TestFormatting:
    def test_document(self):
        doc = DocumentContent(id="d", title="Plan", body="Body text")
        assert format_document(doc) == "# Plan\n\nBody text"

    def test_empty_file_list(self):
        assert format_file_list([], "document") == "No documents found."
        assert format_file_list([], "spreadsheet") == "No spreadsheets found."

    def test_file_list(self):
        files = [
            DocumentInfo(id="a", name="Alpha", modified_time="2024-01-01", web_view_link="https://x/a"),
            DocumentInfo(id="b", name="Beta"),
        ]

        assert format_file_list(files, "document") == (
            "Found 2 document(s):\n\n"
            "- **Alpha**\n  ID: a\n  Modified: 2024-01-01\n  URL: https://x/a\n\n"
            "- **Beta**\n  ID: b\n  Modified: Unknown\n  URL: N/A"
        )

    def test_spreadsheet(self):
        info = SpreadsheetInfo(
            id="s1",
            name="Budget",
            web_view_link="https://x/s1",
            sheets=[SheetInfo(title="Q1", row_count=10, column_count=3), SheetInfo(title="Q2")],
        )

        assert format_spreadsheet(info) == (
            "# Budget\n\nID: s1\nURL: https://x/s1\n\n"
            "## Sheets:\n  - Q1 (10 rows x 3 cols)\n  - Q2 (? rows x ? cols)"
        )

    def test_sheet_data(self):
        data = SheetData(spreadsheet_id="s1", range="Sheet1!A1:B2", values=[["a", "b"], ["1", "2"]])
        assert format_sheet_data(data) == "Data from Sheet1!A1:B2:\n\na\tb\n1\t2"

    def test_sheet_data_empty(self):
        data = SheetData(spreadsheet_id="s1", range="A1:B2")
        assert format_sheet_data(data) == "No data found in the specified range."

    def test_handle_error_hints(self):
        assert "check that the document or spreadsheet ID" in handle_error(APIError("Not found (404): x", 404))
        assert "gdocs-mcp-auth" in handle_error(AuthRefreshError("revoked"))
        assert handle_error(APIError("boom", 500)) == "Error: boom"

    def test_transient_refresh_failure_has_no_reauth_hint(self):
        message = handle_error(AuthRefreshError("Token refresh failed: 503. Please try again later.", revoked=False))

        assert message == "Error: Token refresh failed: 503. Please try again later."
        assert "gdocs-mcp-auth" not in message


class TestResultWire:
    def test_success_omits_is_error(self):
        result = text_result("hello")

        assert isinstance(result, CallToolResult)
        assert to_wire(result) == {"content": [{"type": "text", "text": "hello"}]}

    def test_error_flag(self):
        assert to_wire(text_result("nope", is_error=True)) == {
            "content": [{"type": "text", "text": "nope"}],
            "isError": True,
        }


class TestRunTool:
    async def test_invalid_arguments(self, session, authenticated, google):
        session.load_tokens()

        result = await run_tool(ToolName.GET_SHEET_DATA, {"spreadsheetId": "s1"}, session)

        wire = to_wire(result)
        assert wire["isError"] is True
        assert "Invalid arguments for get_sheet_data" in wire["content"][0]["text"]
        assert "range" in wire["content"][0]["text"]
        assert google.requests == []

    async def test_unknown_argument_rejected(self, session, authenticated):
        session.load_tokens()

        result = await run_tool(ToolName.LIST_DOCUMENTS, {"limit": 5, "colour": "red"}, session)

        assert to_wire(result)["isError"] is True

    async def test_limit_out_of_range(self, session, authenticated):
        session.load_tokens()

        result = await run_tool(ToolName.LIST_SPREADSHEETS, {"limit": 5000}, session)

        assert to_wire(result)["isError"] is True

    async def test_large_limit_accepted(self, session, authenticated, google):
        google.route("https://www.googleapis.com/drive/", lambda request: httpx.Response(200, json={"files": []}))
        session.load_tokens()

        result = await run_tool(ToolName.LIST_DOCUMENTS, {"limit": 500}, session)

        assert to_wire(result) == {"content": [{"type": "text", "text": "No documents found."}]}
        assert google.requests[-1].url.params["pageSize"] == "500"

    async def test_success(self, session, authenticated, google):
        google.route(
            "https://sheets.googleapis.com/",
            lambda request: httpx.Response(200, json={"range": "Sheet1!A1:B1", "values": [["x", "y"]]}),
        )
        session.load_tokens()

        result = await run_tool(
            ToolName.GET_SHEET_DATA, {"spreadsheetId": "s1", "range": "Sheet1!A1:B1"}, session
        )

        assert to_wire(result) == {
            "content": [{"type": "text", "text": "Data from Sheet1!A1:B1:\n\nx\ty"}]
        }

    async def test_api_failure_becomes_error_result(self, session, authenticated):
        session.load_tokens()

        result = await run_tool(ToolName.GET_DOCUMENT, {"documentId": "nope"}, session)

        wire = to_wire(result)
        assert wire["isError"] is True
        assert wire["content"][0]["text"].startswith("Error: Not found (404)")

    async def test_refresh_failure_becomes_error_result(self, session, google, token_store, valid_tokens):
        token_store.save(valid_tokens.model_copy(update={"expiry_date": 0}))
        session.load_tokens()
        google.token_status = 400
        google.token_payload = {"error": "invalid_grant"}

        result = await run_tool(ToolName.LIST_DOCUMENTS, {}, session)

        wire = to_wire(result)
        assert wire["isError"] is True
        assert "gdocs-mcp-auth" in wire["content"][0]["text"]
        assert not session.is_authenticated()
