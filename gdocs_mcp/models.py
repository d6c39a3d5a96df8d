"""Pydantic models for the Google Docs MCP Server"""
import time
from typing import Any, Optional

from mcp.types import CallToolResult, Tool
from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    """Current time as epoch milliseconds (the expiry_date unit on disk)."""
    return int(time.time() * 1000)


# ==============================================================================
# Credential Models
# ==============================================================================

class CredentialConfig(BaseModel):
    """OAuth client configuration resolved once at startup."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    client_id: str = Field(..., min_length=1, description="OAuth client ID")
    client_secret: str = Field(..., min_length=1, description="OAuth client secret")
    redirect_uri: str = Field(..., description="Redirect URI registered for the client")


class ClientSecretEntry(BaseModel):
    """One credential block of a Google Cloud Console client_secret.json."""
    model_config = ConfigDict(extra="ignore")

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uris: list[str] = Field(default_factory=list)
    project_id: Optional[str] = None
    auth_uri: Optional[str] = None
    token_uri: Optional[str] = None


class ClientSecretFile(BaseModel):
    """client_secret.json layout: desktop ("installed") or web credentials."""
    model_config = ConfigDict(extra="ignore")

    installed: Optional[ClientSecretEntry] = None
    web: Optional[ClientSecretEntry] = None

    @property
    def entry(self) -> Optional[ClientSecretEntry]:
        return self.installed or self.web


class TokenSet(BaseModel):
    """Persisted OAuth tokens.

    Field names follow the google-auth-library token file so existing
    .credentials/tokens.json files keep working. ``expiry_date`` is epoch
    milliseconds.
    """
    model_config = ConfigDict(extra="ignore")

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expiry_date: Optional[int] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token)

    def expires_within(self, seconds: float) -> bool:
        """True if there is no usable access token for the next ``seconds``."""
        if not self.access_token or self.expiry_date is None:
            return True
        return self.expiry_date - now_ms() <= seconds * 1000

    @classmethod
    def from_token_response(cls, data: dict[str, Any], previous: Optional["TokenSet"] = None) -> "TokenSet":
        """Build a token set from a Google token endpoint response.

        Refresh responses omit ``refresh_token``; the previous one is kept.
        """
        expires_in = data.get("expires_in")
        refresh_token = data.get("refresh_token") or (previous.refresh_token if previous else None)
        return cls(
            access_token=data.get("access_token"),
            refresh_token=refresh_token,
            expiry_date=now_ms() + int(expires_in) * 1000 if expires_in is not None else None,
            token_type=data.get("token_type") or (previous.token_type if previous else None),
            scope=data.get("scope") or (previous.scope if previous else None),
        )


# ==============================================================================
# Capability Result Models
# ==============================================================================

class DocumentContent(BaseModel):
    """Plain-text rendition of a Google Doc."""
    id: str
    title: str
    body: str


class DocumentInfo(BaseModel):
    """A Drive file entry (document or spreadsheet)."""
    id: str
    name: str
    mime_type: str = ""
    modified_time: Optional[str] = None
    web_view_link: Optional[str] = None


class SheetInfo(BaseModel):
    """One tab of a spreadsheet."""
    sheet_id: int = 0
    title: str = "Untitled"
    index: int = 0
    row_count: Optional[int] = None
    column_count: Optional[int] = None


class SpreadsheetInfo(BaseModel):
    """Spreadsheet metadata including its sheets."""
    id: str
    name: str
    sheets: list[SheetInfo] = Field(default_factory=list)
    web_view_link: Optional[str] = None


class SheetData(BaseModel):
    """Formatted cell values of a range."""
    spreadsheet_id: str
    range: str
    values: list[list[str]] = Field(default_factory=list)


# ==============================================================================
# Tool Input Models
# ==============================================================================

class _ToolInput(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="forbid",
    )


class GetDocumentInput(_ToolInput):
    """Input parameters for the get_document tool."""
    document_id: str = Field(
        ...,
        alias="documentId",
        description="The document ID or full Google Docs URL",
        min_length=1,
    )


class ListFilesInput(_ToolInput):
    """Input parameters shared by the list_documents / list_spreadsheets tools."""
    limit: int = Field(
        default=10,
        description="Maximum number of results to return (default: 10)",
        ge=1,
        le=1000,
    )
    query: Optional[str] = Field(
        default=None,
        description="Optional search query to filter results",
    )


class ListDocumentsInput(ListFilesInput):
    """Input parameters for the list_documents tool."""


class ListSpreadsheetsInput(ListFilesInput):
    """Input parameters for the list_spreadsheets tool."""


class GetSpreadsheetInput(_ToolInput):
    """Input parameters for the get_spreadsheet tool."""
    spreadsheet_id: str = Field(
        ...,
        alias="spreadsheetId",
        description="The spreadsheet ID or full Google Sheets URL",
        min_length=1,
    )


class GetSheetDataInput(_ToolInput):
    """Input parameters for the get_sheet_data tool."""
    spreadsheet_id: str = Field(
        ...,
        alias="spreadsheetId",
        description="The spreadsheet ID or full Google Sheets URL",
        min_length=1,
    )
    range: str = Field(
        ...,
        description="The A1 notation range to read (e.g., 'Sheet1!A1:D10' or 'A1:D10')",
        min_length=1,
    )


# ==============================================================================
# Tool Catalog / RPC Models
# ==============================================================================

def tool_descriptor(name: str, description: str, input_schema: dict[str, Any]) -> Tool:
    """A tool as advertised by tools/list."""
    return Tool.model_validate({"name": name, "description": description, "inputSchema": input_schema})


def text_result(text: str, is_error: bool = False) -> CallToolResult:
    """A tools/call result holding a single text block."""
    return CallToolResult.model_validate({
        "content": [{"type": "text", "text": text}],
        "isError": is_error,
    })


def to_wire(model: BaseModel) -> dict[str, Any]:
    """JSON form of an mcp type as sent on both transports.

    Unset optional members are omitted, and so is ``isError`` when false.
    """
    data = model.model_dump(by_alias=True, mode="json", exclude_none=True)
    if data.get("isError") is False:
        del data["isError"]
    return data
