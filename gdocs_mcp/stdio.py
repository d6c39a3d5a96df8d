"""Stdio transport for MCP.

Newline-delimited JSON-RPC over stdin/stdout, framed the same way as
``mcp.server.stdio``. Each raw line goes through the same RequestDispatcher as
the HTTP transport, once per line, for the lifetime of the process. Framing
is done here rather than by the mcp reader so that every line gets an answer
(a bad ``jsonrpc`` tag included) with the request id it carried.
"""
import json
import logging
import sys
from io import TextIOWrapper
from typing import Any, Optional

import anyio
from anyio import AsyncFile

from .dispatcher import ParseError, RequestDispatcher, error_response
from .oauth import OAuthSession

logger = logging.getLogger(__name__)


def encode(response: dict[str, Any]) -> str:
    """One response envelope as a single output line."""
    return json.dumps(response, ensure_ascii=False) + "\n"


async def handle_line(dispatcher: RequestDispatcher, line: str) -> Optional[dict[str, Any]]:
    """Decode one input line and dispatch it.

    Returns:
        The response envelope, or None for notifications
    """
    try:
        envelope = json.loads(line)
    except ValueError as e:
        logger.info(f"[Stdio] Rejected unparsable line: {e}")
        return error_response(ParseError(f"Parse error: {e}"))
    return await dispatcher.handle(envelope)


async def serve_lines(dispatcher: RequestDispatcher, stdin: AsyncFile, stdout: AsyncFile) -> None:
    """Dispatch every line of ``stdin`` until EOF, writing responses to ``stdout``.

    Requests run concurrently; writes are serialized so lines never interleave.
    """
    write_lock = anyio.Lock()

    async def respond(line: str) -> None:
        response = await handle_line(dispatcher, line)
        if response is None:
            return
        async with write_lock:
            await stdout.write(encode(response))
            await stdout.flush()

    async with anyio.create_task_group() as tg:
        async for line in stdin:
            if not line.strip():
                continue
            tg.start_soon(respond, line)


async def serve_stdio(
    session: OAuthSession,
    stdin: Optional[AsyncFile] = None,
    stdout: Optional[AsyncFile] = None,
) -> None:
    """Serve MCP on stdin/stdout until the client disconnects."""
    if stdin is None:
        stdin = anyio.wrap_file(TextIOWrapper(sys.stdin.buffer, encoding="utf-8"))
    if stdout is None:
        stdout = anyio.wrap_file(TextIOWrapper(sys.stdout.buffer, encoding="utf-8"))

    dispatcher = RequestDispatcher(session)
    logger.info("[Server] Google Docs MCP server started (stdio)")

    try:
        await serve_lines(dispatcher, stdin, stdout)
    finally:
        await session.close()
        logger.info("[Server] Stdio transport closed")
