"""Tool handlers for the Google Docs MCP Server.

Each tool:
- Validates its arguments with the pydantic input model from the registry
- Obtains a fresh API client from the OAuth session
- Calls Google and renders the result as a single text block

Failures never escape ``run_tool``; they become a result with ``isError``.
"""
import logging
from typing import Any, Awaitable, Callable

from mcp.types import CallToolResult
from pydantic import BaseModel, ValidationError

from .api_client import APIError
from .models import (
    DocumentContent,
    DocumentInfo,
    GetDocumentInput,
    GetSheetDataInput,
    GetSpreadsheetInput,
    ListDocumentsInput,
    ListSpreadsheetsInput,
    SheetData,
    SpreadsheetInfo,
    text_result,
)
from .oauth import AuthenticationError, AuthRefreshError, OAuthSession
from .registry import TOOL_INPUT_MODELS, ToolName

logger = logging.getLogger(__name__)


# ==============================================================================
# Response Formatting Helpers
# ==============================================================================

def format_document(doc: DocumentContent) -> str:
    return f"# {doc.title}\n\n{doc.body}"


def format_file_list(files: list[DocumentInfo], noun: str) -> str:
    """Format Drive files as a markdown bullet list."""
    if not files:
        return f"No {noun}s found."

    entries = [
        f"- **{f.name}**\n"
        f"  ID: {f.id}\n"
        f"  Modified: {f.modified_time or 'Unknown'}\n"
        f"  URL: {f.web_view_link or 'N/A'}"
        for f in files
    ]
    return f"Found {len(files)} {noun}(s):\n\n" + "\n\n".join(entries)


def format_spreadsheet(spreadsheet: SpreadsheetInfo) -> str:
    """Format spreadsheet metadata with one line per sheet."""
    sheets = "\n".join(
        f"  - {sheet.title} ({sheet.row_count or '?'} rows x {sheet.column_count or '?'} cols)"
        for sheet in spreadsheet.sheets
    )
    return (
        f"# {spreadsheet.name}\n\n"
        f"ID: {spreadsheet.id}\n"
        f"URL: {spreadsheet.web_view_link or 'N/A'}\n\n"
        f"## Sheets:\n{sheets}"
    )


def format_sheet_data(data: SheetData) -> str:
    """Format range values as tab-separated rows."""
    if not data.values:
        return "No data found in the specified range."

    table = "\n".join("\t".join(row) for row in data.values)
    return f"Data from {data.range}:\n\n{table}"


def format_validation_error(tool: ToolName, e: ValidationError) -> str:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'arguments'}: {err['msg']}"
        for err in e.errors()
    )
    return f"Error: Invalid arguments for {tool.value}: {problems}"


def handle_error(e: Exception) -> str:
    """Format an error as a helpful message."""
    if isinstance(e, AuthRefreshError) and not e.revoked:
        return f"Error: {e}"
    elif isinstance(e, AuthenticationError):
        return (
            f"Error: {e}\n\n"
            'The stored Google authorization is no longer valid. Please run "gdocs-mcp-auth" again.'
        )
    elif isinstance(e, APIError) and e.status_code == 404:
        return f"Error: {e}\n\nPlease check that the document or spreadsheet ID is correct."
    else:
        return f"Error: {e}"


# ==============================================================================
# Tool Functions
# ==============================================================================

async def get_document_tool(params: GetDocumentInput, session: OAuthSession) -> str:
    """Fetch a Google Doc and return its title and plain-text body."""
    client = await session.docs_client()
    return format_document(await client.get_document(params.document_id))


async def list_documents_tool(params: ListDocumentsInput, session: OAuthSession) -> str:
    """List Google Docs, most recently modified first."""
    client = await session.drive_client()
    files = await client.list_documents(params.limit, params.query or None)
    return format_file_list(files, "document")


async def get_spreadsheet_tool(params: GetSpreadsheetInput, session: OAuthSession) -> str:
    """Fetch spreadsheet metadata including the list of sheets."""
    client = await session.sheets_client()
    return format_spreadsheet(await client.get_spreadsheet(params.spreadsheet_id))


async def get_sheet_data_tool(params: GetSheetDataInput, session: OAuthSession) -> str:
    """Read the formatted values of a range."""
    client = await session.sheets_client()
    return format_sheet_data(await client.get_sheet_data(params.spreadsheet_id, params.range))


async def list_spreadsheets_tool(params: ListSpreadsheetsInput, session: OAuthSession) -> str:
    """List Google Sheets, most recently modified first."""
    client = await session.drive_client()
    files = await client.list_spreadsheets(params.limit, params.query or None)
    return format_file_list(files, "spreadsheet")


ToolHandler = Callable[[Any, OAuthSession], Awaitable[str]]

TOOL_HANDLERS: dict[ToolName, ToolHandler] = {
    ToolName.GET_DOCUMENT: get_document_tool,
    ToolName.LIST_DOCUMENTS: list_documents_tool,
    ToolName.GET_SPREADSHEET: get_spreadsheet_tool,
    ToolName.GET_SHEET_DATA: get_sheet_data_tool,
    ToolName.LIST_SPREADSHEETS: list_spreadsheets_tool,
}

_missing = set(ToolName) - set(TOOL_HANDLERS)
if _missing:
    raise RuntimeError(f"Tools without a handler: {sorted(t.value for t in _missing)}")


async def run_tool(tool: ToolName, arguments: dict[str, Any], session: OAuthSession) -> CallToolResult:
    """Validate ``arguments`` and run ``tool``, converting any failure to an error result."""
    model: type[BaseModel] = TOOL_INPUT_MODELS[tool]
    try:
        params = model.model_validate(arguments)
    except ValidationError as e:
        logger.info(f"[Tools] {tool.value} rejected arguments: {e.error_count()} error(s)")
        return text_result(format_validation_error(tool, e), is_error=True)

    try:
        text = await TOOL_HANDLERS[tool](params, session)
    except Exception as e:
        logger.error(f"[Tools] {tool.value} failed: {e}")
        return text_result(handle_error(e), is_error=True)

    return text_result(text)
