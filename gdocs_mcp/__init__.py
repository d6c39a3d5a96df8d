"""Google Docs MCP Server.

Read-only Google Docs and Google Sheets access for an agent over the Model
Context Protocol.

Architecture:
- OAuthSession owns the client configuration and tokens (one per process)
- RequestDispatcher routes JSON-RPC envelopes and gates tool calls on auth
- The same dispatcher is served over stdio and over HTTP (POST /rpc)
- gdocs-mcp-auth runs the one-time interactive authorization

Run with:
    gdocs-mcp-auth
    gdocs-mcp --stdio
"""
from .main import create_app, create_session, main
from .credentials import ConfigurationError, TokenStore, resolve_credentials
from .oauth import OAuthSession, AuthenticationError, AuthExchangeError, AuthRefreshError
from .api_client import APIError, ToolExecutionError, extract_document_id, extract_spreadsheet_id
from .dispatcher import (
    RequestDispatcher,
    RpcError,
    ParseError,
    ProtocolError,
    MethodNotFoundError,
    InvalidParamsError,
    InternalError,
)
from .registry import TOOL_CATALOG, ToolName, list_tools
from .models import CredentialConfig, TokenSet

__all__ = [
    # Application
    "create_app",
    "create_session",
    "main",
    # Credentials
    "ConfigurationError",
    "TokenStore",
    "resolve_credentials",
    # OAuth
    "OAuthSession",
    "AuthenticationError",
    "AuthExchangeError",
    "AuthRefreshError",
    # API client
    "APIError",
    "ToolExecutionError",
    "extract_document_id",
    "extract_spreadsheet_id",
    # Dispatcher
    "RequestDispatcher",
    "RpcError",
    "ParseError",
    "ProtocolError",
    "MethodNotFoundError",
    "InvalidParamsError",
    "InternalError",
    # Registry
    "TOOL_CATALOG",
    "ToolName",
    "list_tools",
    # Models
    "CredentialConfig",
    "TokenSet",
]
