"""JSON-RPC request dispatcher shared by the stdio and HTTP transports.

Transport-level errors are reserved for malformed envelopes, unknown methods
or tools, and internal faults. Everything that goes wrong while running a
tool, including a missing login, is returned as an ordinary tool result with
``isError`` set so the calling agent can show it to the user.
"""
import logging
from typing import Any, Optional

import anyio.to_thread
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    ErrorData,
)

from .config import (
    JSONRPC_VERSION,
    NOT_AUTHENTICATED_MESSAGE,
    PROTOCOL_VERSION,
    SERVER_NAME,
    SERVER_VERSION,
)
from .models import text_result, to_wire
from .oauth import OAuthSession
from .registry import list_tools, lookup
from .tools import run_tool

logger = logging.getLogger(__name__)


# ==============================================================================
# Errors
# ==============================================================================

class RpcError(Exception):
    """An error reported in the JSON-RPC ``error`` member."""
    code = INTERNAL_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return ErrorData(code=self.code, message=self.message).model_dump(exclude_none=True)


class ParseError(RpcError):
    """The request body is not valid JSON."""
    code = PARSE_ERROR


class ProtocolError(RpcError):
    """The envelope is not a valid JSON-RPC 2.0 request."""
    code = INVALID_REQUEST


class MethodNotFoundError(RpcError):
    """Unknown method, or unknown tool name in tools/call."""
    code = METHOD_NOT_FOUND


class InvalidParamsError(RpcError):
    """The params member does not have the required shape."""
    code = INVALID_PARAMS


class InternalError(RpcError):
    """Unexpected fault inside the dispatcher."""
    code = INTERNAL_ERROR


def success_response(result: Any, request_id: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "result": result, "id": request_id}


def error_response(error: RpcError, request_id: Any = None) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "error": error.to_dict(), "id": request_id}


# ==============================================================================
# Dispatcher
# ==============================================================================

class RequestDispatcher:
    """Routes envelopes to initialize / tools/list / tools/call."""

    def __init__(self, session: OAuthSession):
        self.session = session

    @staticmethod
    def server_info() -> dict[str, Any]:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        }

    async def handle(self, envelope: Any) -> Optional[dict[str, Any]]:
        """Handle one envelope.

        Returns:
            The response envelope, or None for notifications
        """
        if not isinstance(envelope, dict):
            return error_response(ProtocolError("Request must be a JSON object"))

        request_id = envelope.get("id")

        if envelope.get("jsonrpc") != JSONRPC_VERSION:
            return error_response(ProtocolError("Invalid JSON-RPC version"), request_id)

        method = envelope.get("method")
        if not isinstance(method, str) or not method:
            return error_response(ProtocolError("Missing method"), request_id)

        if "id" not in envelope and method.startswith("notifications/"):
            logger.debug(f"[Dispatcher] Notification received: {method}")
            return None

        try:
            result = await self._route(method, envelope.get("params"))
        except RpcError as e:
            logger.info(f"[Dispatcher] {method} -> error {e.code}: {e.message}")
            return error_response(e, request_id)
        except Exception as e:
            logger.error(f"[Dispatcher] Internal error handling {method}: {e}", exc_info=True)
            return error_response(InternalError(str(e)), request_id)

        return success_response(result, request_id)

    async def _route(self, method: str, params: Any) -> Any:
        if method == "initialize":
            return self.server_info()
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": list_tools()}
        if method == "tools/call":
            return await self._call_tool(params)
        raise MethodNotFoundError(f"Method not found: {method}")

    async def _call_tool(self, params: Any) -> dict[str, Any]:
        if not isinstance(params, dict) or not isinstance(params.get("name"), str):
            raise InvalidParamsError("tools/call requires params.name")

        name = params["name"]
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise InvalidParamsError("tools/call params.arguments must be an object")

        # Re-checked on every call; tokens may appear or be revoked at any time.
        # The check reads the token file, so it runs in a worker thread.
        if not await anyio.to_thread.run_sync(self.session.check_auth):
            logger.info(f"[Dispatcher] {name} called while not authenticated")
            return to_wire(text_result(NOT_AUTHENTICATED_MESSAGE, is_error=True))

        tool = lookup(name)
        if tool is None:
            raise MethodNotFoundError(f"Unknown tool: {name}")

        logger.info(f"[Dispatcher] Calling tool {tool.value}")
        result = await run_tool(tool, arguments, self.session)
        return to_wire(result)
