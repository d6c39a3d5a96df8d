"""API clients for Google Docs, Sheets and Drive.

Each client is bound to a single access token for the lifetime of one tool
call; the OAuthSession hands out a fresh one per request so token rotation
between requests is always picked up.
"""
import logging
import re
from typing import Any, Optional
from urllib.parse import quote

import httpx

from .config import (
    API_HTTP_TIMEOUT,
    GOOGLE_DOCS_API_BASE,
    GOOGLE_DRIVE_API_BASE,
    GOOGLE_SHEETS_API_BASE,
)
from .models import (
    DocumentContent,
    DocumentInfo,
    SheetData,
    SheetInfo,
    SpreadsheetInfo,
)

logger = logging.getLogger(__name__)

DOCUMENT_MIME_TYPE = "application/vnd.google-apps.document"
SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"

_DOCUMENT_URL_PATTERN = re.compile(r"/document/d/([a-zA-Z0-9_-]+)")
_SPREADSHEET_URL_PATTERN = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)")

SPREADSHEET_FIELDS = (
    "spreadsheetId,properties.title,spreadsheetUrl,"
    "sheets(properties(sheetId,title,index,gridProperties(rowCount,columnCount)))"
)
DRIVE_FILE_FIELDS = "files(id, name, mimeType, modifiedTime, webViewLink)"


class ToolExecutionError(Exception):
    """Raised when a capability call fails."""
    pass


class APIError(ToolExecutionError):
    """Raised when a Google API request fails."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# ==============================================================================
# Identifier / Content Helpers
# ==============================================================================

def extract_document_id(id_or_url: str) -> str:
    """Extract a document ID from a Docs URL, or return the input unchanged."""
    if "docs.google.com" in id_or_url:
        match = _DOCUMENT_URL_PATTERN.search(id_or_url)
        if match:
            return match.group(1)
    return id_or_url


def extract_spreadsheet_id(id_or_url: str) -> str:
    """Extract a spreadsheet ID from a Sheets URL, or return the input unchanged."""
    if "docs.google.com/spreadsheets" in id_or_url:
        match = _SPREADSHEET_URL_PATTERN.search(id_or_url)
        if match:
            return match.group(1)
    return id_or_url


def extract_text(elements: Optional[list[dict[str, Any]]]) -> str:
    """Flatten Docs structural elements to plain text.

    Table cells are followed by a tab, table rows by a newline, and section
    breaks become a ``---`` line.
    """
    if not elements:
        return ""

    parts: list[str] = []
    for element in elements:
        if "paragraph" in element:
            for run in element["paragraph"].get("elements", []):
                content = (run.get("textRun") or {}).get("content")
                if content:
                    parts.append(content)
        elif "table" in element:
            for row in element["table"].get("tableRows", []):
                for cell in row.get("tableCells", []):
                    parts.append(extract_text(cell.get("content")))
                    parts.append("\t")
                parts.append("\n")
        elif "sectionBreak" in element:
            parts.append("\n---\n")
    return "".join(parts)


def build_drive_query(mime_type: str, query: Optional[str] = None) -> str:
    """Drive search expression for non-trashed files of one type."""
    q = f"mimeType='{mime_type}' and trashed=false"
    if query:
        escaped = query.replace("'", "\\'")
        q += f" and fullText contains '{escaped}'"
    return q


# ==============================================================================
# Clients
# ==============================================================================

class _GoogleAPIClient:
    """Shared request handling for the Google REST clients."""

    base_url = ""

    def __init__(self, access_token: str, http_client: httpx.AsyncClient):
        self._token = access_token
        self._http_client = http_client

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """GET ``path`` and return the decoded JSON body.

        Raises:
            APIError: If the request fails or Google returns an error status
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"[APIClient] GET {url}")

        try:
            response = await self._http_client.get(
                url,
                params=params,
                headers=self._headers,
                timeout=API_HTTP_TIMEOUT,
            )
        except httpx.RequestError as e:
            logger.error(f"[APIClient] Network error: {e}")
            raise APIError(f"Network error: {e}") from e

        if response.status_code >= 400:
            raise APIError(self._error_message(response), status_code=response.status_code)
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            detail = response.json().get("error", {}).get("message") or response.text
        except (ValueError, AttributeError):
            detail = response.text
        if response.status_code == 401:
            return f"Google rejected the access token (401): {detail}"
        if response.status_code == 403:
            return f"Permission denied (403): {detail}"
        if response.status_code == 404:
            return f"Not found (404): {detail}"
        return f"Google API error (HTTP {response.status_code}): {detail}"


class GoogleDocsClient(_GoogleAPIClient):
    """Google Docs API v1."""

    base_url = GOOGLE_DOCS_API_BASE

    async def get_document(self, document_id: str) -> DocumentContent:
        """Fetch a document and render its body as plain text."""
        doc_id = extract_document_id(document_id)
        data = await self._get(f"/documents/{doc_id}")

        return DocumentContent(
            id=data.get("documentId") or doc_id,
            title=data.get("title") or "Untitled",
            body=extract_text((data.get("body") or {}).get("content")).strip(),
        )


class GoogleSheetsClient(_GoogleAPIClient):
    """Google Sheets API v4."""

    base_url = GOOGLE_SHEETS_API_BASE

    async def get_spreadsheet(self, spreadsheet_id: str) -> SpreadsheetInfo:
        """Fetch spreadsheet metadata including each sheet's grid size."""
        sheet_id = extract_spreadsheet_id(spreadsheet_id)
        data = await self._get(f"/spreadsheets/{sheet_id}", params={"fields": SPREADSHEET_FIELDS})

        sheets = []
        for sheet in data.get("sheets", []):
            props = sheet.get("properties", {})
            grid = props.get("gridProperties", {})
            sheets.append(
                SheetInfo(
                    sheet_id=props.get("sheetId") or 0,
                    title=props.get("title") or "Untitled",
                    index=props.get("index") or 0,
                    row_count=grid.get("rowCount"),
                    column_count=grid.get("columnCount"),
                )
            )

        return SpreadsheetInfo(
            id=data.get("spreadsheetId") or sheet_id,
            name=(data.get("properties") or {}).get("title") or "Untitled",
            sheets=sheets,
            web_view_link=data.get("spreadsheetUrl"),
        )

    async def get_sheet_data(self, spreadsheet_id: str, range_: str) -> SheetData:
        """Fetch the formatted values of an A1 range."""
        sheet_id = extract_spreadsheet_id(spreadsheet_id)
        data = await self._get(
            f"/spreadsheets/{sheet_id}/values/{quote(range_, safe='')}",
            params={"valueRenderOption": "FORMATTED_VALUE"},
        )

        return SheetData(
            spreadsheet_id=sheet_id,
            range=data.get("range") or range_,
            values=[[str(cell) for cell in row] for row in data.get("values", [])],
        )


class GoogleDriveClient(_GoogleAPIClient):
    """Google Drive API v3 (file listing only)."""

    base_url = GOOGLE_DRIVE_API_BASE

    async def list_files(self, mime_type: str, limit: int = 10, query: Optional[str] = None) -> list[DocumentInfo]:
        """List non-trashed files of ``mime_type``, most recently modified first."""
        data = await self._get(
            "/files",
            params={
                "q": build_drive_query(mime_type, query),
                "pageSize": limit,
                "fields": DRIVE_FILE_FIELDS,
                "orderBy": "modifiedTime desc",
            },
        )

        return [
            DocumentInfo(
                id=f.get("id") or "",
                name=f.get("name") or "Untitled",
                mime_type=f.get("mimeType") or "",
                modified_time=f.get("modifiedTime"),
                web_view_link=f.get("webViewLink"),
            )
            for f in data.get("files", [])
        ]

    async def list_documents(self, limit: int = 10, query: Optional[str] = None) -> list[DocumentInfo]:
        return await self.list_files(DOCUMENT_MIME_TYPE, limit, query)

    async def list_spreadsheets(self, limit: int = 10, query: Optional[str] = None) -> list[DocumentInfo]:
        return await self.list_files(SPREADSHEET_MIME_TYPE, limit, query)
