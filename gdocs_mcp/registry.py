"""Static tool catalog shared by the stdio and HTTP transports.

The catalog is built once at import time from the per-tool pydantic input
models, so the advertised schema and the argument validation can never drift
apart.
"""
from enum import Enum
from typing import Any, Optional

from mcp.types import Tool
from pydantic import BaseModel

from .models import (
    GetDocumentInput,
    GetSheetDataInput,
    GetSpreadsheetInput,
    ListDocumentsInput,
    ListSpreadsheetsInput,
    to_wire,
    tool_descriptor,
)


class ToolName(str, Enum):
    """The fixed set of tools this server exposes."""
    GET_DOCUMENT = "get_document"
    LIST_DOCUMENTS = "list_documents"
    GET_SPREADSHEET = "get_spreadsheet"
    GET_SHEET_DATA = "get_sheet_data"
    LIST_SPREADSHEETS = "list_spreadsheets"


TOOL_INPUT_MODELS: dict[ToolName, type[BaseModel]] = {
    ToolName.GET_DOCUMENT: GetDocumentInput,
    ToolName.LIST_DOCUMENTS: ListDocumentsInput,
    ToolName.GET_SPREADSHEET: GetSpreadsheetInput,
    ToolName.GET_SHEET_DATA: GetSheetDataInput,
    ToolName.LIST_SPREADSHEETS: ListSpreadsheetsInput,
}

TOOL_DESCRIPTIONS: dict[ToolName, str] = {
    ToolName.GET_DOCUMENT: "Get the full content of a Google Doc by its ID or URL",
    ToolName.LIST_DOCUMENTS: "List Google Docs accessible to the user, optionally filtered by search query",
    ToolName.GET_SPREADSHEET: "Get metadata about a Google Spreadsheet including its sheets",
    ToolName.GET_SHEET_DATA: "Read data from a specific range in a Google Spreadsheet",
    ToolName.LIST_SPREADSHEETS: "List Google Spreadsheets accessible to the user, optionally filtered by search query",
}


def _clean_schema(schema: Any) -> Any:
    """Drop pydantic's generated "title" keys and null defaults from a JSON schema.

    Null values do not survive the stdio framing, so they are never advertised.
    """
    if isinstance(schema, dict):
        return {
            key: _clean_schema(value)
            for key, value in schema.items()
            if not (key == "title" and isinstance(value, str))
            and not (key == "default" and value is None)
        }
    if isinstance(schema, list):
        return [_clean_schema(item) for item in schema]
    return schema


def input_schema(model: type[BaseModel]) -> dict[str, Any]:
    """JSON schema advertised for a tool's arguments (camelCase names)."""
    return _clean_schema(model.model_json_schema(by_alias=True))


TOOL_CATALOG: tuple[Tool, ...] = tuple(
    tool_descriptor(
        name=name.value,
        description=TOOL_DESCRIPTIONS[name],
        input_schema=input_schema(TOOL_INPUT_MODELS[name]),
    )
    for name in ToolName
)


def list_tools() -> list[dict[str, Any]]:
    """The catalog in wire form, in declaration order."""
    return [to_wire(tool) for tool in TOOL_CATALOG]


def lookup(name: Any) -> Optional[ToolName]:
    """Return the ToolName for ``name``, or None if it is not in the catalog."""
    try:
        return ToolName(name)
    except ValueError:
        return None
