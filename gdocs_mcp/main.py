"""Google Docs MCP Server.

Read-only Google Docs / Sheets / Drive tools for an agent, served over the
Model Context Protocol (JSON-RPC 2.0):
- stdio transport for local MCP clients (one persistent connection)
- HTTP transport: POST /rpc for envelopes, GET /health, GET / for server info

A single OAuthSession is created at startup and shared by every request.
Authenticate once with ``gdocs-mcp-auth`` before calling tools.

Run with:
    gdocs-mcp --http --port 12333
    gdocs-mcp --stdio
"""
import argparse
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .config import (
    DEFAULT_HOST,
    LOG_FORMAT,
    LOG_LEVEL,
    SERVER_NAME,
    SERVER_VERSION,
    get_port,
)
from .credentials import ConfigurationError, TokenStore, resolve_credentials
from .dispatcher import ParseError, RequestDispatcher, error_response
from .oauth import OAuthSession

logger = logging.getLogger(__name__)


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Log to stderr; stdout is reserved for the stdio transport."""
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def create_session() -> OAuthSession:
    """Resolve credentials and build the process-wide OAuth session.

    Raises:
        ConfigurationError: If no client credentials are configured
    """
    session = OAuthSession(resolve_credentials(), TokenStore())
    if session.load_tokens():
        logger.info("[Server] Loaded stored Google tokens")
    else:
        logger.warning('[Server] Not authenticated yet; run "gdocs-mcp-auth" to authorize')
    return session


# ==============================================================================
# HTTP Application
# ==============================================================================

def create_app(session: OAuthSession) -> FastAPI:
    """Build the HTTP transport around an existing session."""
    dispatcher = RequestDispatcher(session)

    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        logger.info("[Server] Starting Google Docs MCP Server (http)")
        yield
        logger.info("[Server] Shutting down...")
        await session.close()

    app = FastAPI(
        title="Google Docs MCP Server",
        description=(
            "Read-only Google Docs and Sheets tools over JSON-RPC.\n\n"
            "- **RPC**: `POST /rpc` - MCP envelopes\n"
            "- **Health**: `GET /health`"
        ),
        version=SERVER_VERSION,
        lifespan=app_lifespan,
    )
    app.state.session = session
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/")
    async def info():
        """Static server metadata."""
        return {
            "name": SERVER_NAME,
            "version": SERVER_VERSION,
            "transport": "http",
            "endpoints": {"rpc": "/rpc", "health": "/health"},
        }

    @app.post("/rpc")
    async def rpc(request: Request):
        """JSON-RPC endpoint: one envelope in, one envelope out."""
        body = await request.body()
        try:
            envelope = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            logger.info(f"[Server] Rejected malformed request body: {e}")
            return JSONResponse(error_response(ParseError(f"Parse error: {e}")), status_code=400)

        response = await dispatcher.handle(envelope)
        if response is None:
            return Response(status_code=202)
        return response

    return app


# ==============================================================================
# Entry Point
# ==============================================================================

def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Google Docs MCP Server")
    transport = parser.add_mutually_exclusive_group()
    transport.add_argument(
        "--stdio",
        dest="transport",
        action="store_const",
        const="stdio",
        help="Serve MCP over stdin/stdout",
    )
    transport.add_argument(
        "--http",
        dest="transport",
        action="store_const",
        const="http",
        help="Serve MCP over HTTP (default)",
    )
    parser.set_defaults(transport="http")
    parser.add_argument(
        "--host",
        type=str,
        default=DEFAULT_HOST,
        help=f"Host to bind to (default: {DEFAULT_HOST})"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: $MCP_PORT, $PORT or 12333)"
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None):
    """Run the server on the selected transport."""
    import uvicorn

    from .stdio import serve_stdio

    args = parse_args(argv)
    configure_logging()

    try:
        session = create_session()
    except ConfigurationError as e:
        logger.error(f"[Server] {e}")
        sys.exit(1)

    if args.transport == "stdio":
        asyncio.run(serve_stdio(session))
        return

    port = args.port or get_port()
    logger.info(f"[Server] Listening on http://{args.host}:{port}")
    logger.info(f"[Server] RPC endpoint: POST http://{args.host}:{port}/rpc")
    logger.info(f"[Server] Health check: GET http://{args.host}:{port}/health")

    uvicorn.run(create_app(session), host=args.host, port=port)


if __name__ == "__main__":
    main()
