"""Configuration for the Google Docs MCP Server"""
import os
from pathlib import Path
from typing import Optional

SERVER_NAME = "google-docs-mcp"
SERVER_VERSION = "1.0.0"
PROTOCOL_VERSION = "2024-11-05"
JSONRPC_VERSION = "2.0"

# HTTP transport
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 12333
PORT_ENV_VARS = ("MCP_PORT", "PORT")

# Google OAuth endpoints
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Google API endpoints
GOOGLE_DOCS_API_BASE = "https://docs.googleapis.com/v1"
GOOGLE_SHEETS_API_BASE = "https://sheets.googleapis.com/v4"
GOOGLE_DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"

# Read-only scopes requested during authorization
SCOPES = [
    "https://www.googleapis.com/auth/documents.readonly",
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
]

# Credential files, relative to the credentials base directory
CREDENTIALS_PATH_ENV = "GOOGLE_CREDENTIALS_PATH"
CREDENTIALS_DIR = ".credentials"
TOKENS_FILE = "tokens.json"
CLIENT_SECRET_FILE = "client_secret.json"

CLIENT_ID_ENV = "GOOGLE_CLIENT_ID"
CLIENT_SECRET_ENV = "GOOGLE_CLIENT_SECRET"

# Interactive authorization callback
CALLBACK_HOST = "localhost"
CALLBACK_PORT = 3000
CALLBACK_PATH = "/oauth2callback"
DEFAULT_REDIRECT_URI = f"http://{CALLBACK_HOST}:{CALLBACK_PORT}{CALLBACK_PATH}"

# Refresh the access token if it expires within this many seconds
TOKEN_REFRESH_BUFFER_SECONDS = 60

# Timeouts (seconds) for outbound calls
OAUTH_HTTP_TIMEOUT = 30.0
API_HTTP_TIMEOUT = 60.0

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_TOKEN_EVENTS = os.getenv("LOG_TOKEN_EVENTS", "true").lower() == "true"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

NOT_AUTHENTICATED_MESSAGE = (
    'Not authenticated. Please run "gdocs-mcp-auth" to authenticate with Google first.'
)


def get_base_dir() -> Path:
    """Directory holding client_secret.json and the .credentials folder."""
    return Path(os.getenv(CREDENTIALS_PATH_ENV) or os.getcwd())


def get_tokens_path(base_dir: Optional[Path] = None) -> Path:
    """Location of the persisted token file."""
    return (base_dir or get_base_dir()) / CREDENTIALS_DIR / TOKENS_FILE


def get_port() -> int:
    """HTTP port from the first non-empty of MCP_PORT / PORT.

    An unparsable or non-positive value falls back to DEFAULT_PORT rather than
    trying the next variable.
    """
    value = next(
        (os.getenv(name, "").strip() for name in PORT_ENV_VARS if os.getenv(name, "").strip()),
        "",
    )
    try:
        port = int(value)
    except ValueError:
        return DEFAULT_PORT
    return port if port > 0 else DEFAULT_PORT
