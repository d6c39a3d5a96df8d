"""Single-use local listener for the interactive OAuth redirect.

Google redirects the browser to http://localhost:3000/oauth2callback with
either ``code`` or ``error``. The handler exchanges the code through the
OAuthSession and resolves a one-shot completion future once the response has
been sent; ``run_callback_server`` awaits that future and then shuts the
uvicorn server down cleanly.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import HTMLResponse, PlainTextResponse
from starlette.background import BackgroundTask

from .config import CALLBACK_HOST, CALLBACK_PATH, CALLBACK_PORT
from .oauth import AuthExchangeError, OAuthSession

logger = logging.getLogger(__name__)


SUCCESS_PAGE = """<!DOCTYPE html>
<html>
  <head>
    <title>Authentication Successful</title>
    <style>
      body {
        font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
        display: flex;
        justify-content: center;
        align-items: center;
        height: 100vh;
        margin: 0;
        background: #f5f5f5;
      }
      .container {
        text-align: center;
        padding: 2rem;
        background: white;
        border-radius: 8px;
        box-shadow: 0 2px 4px rgba(0,0,0,0.1);
      }
      h1 { color: #22c55e; }
      p { color: #666; }
    </style>
  </head>
  <body>
    <div class="container">
      <h1>Authentication Successful!</h1>
      <p>You can close this window and return to the terminal.</p>
    </div>
  </body>
</html>
"""

FAILURE_PAGE = """<!DOCTYPE html>
<html>
  <head><title>Authentication Failed</title></head>
  <body>
    <h1>Authentication Failed</h1>
    <p>Check the terminal for details.</p>
  </body>
</html>
"""


@dataclass
class CallbackOutcome:
    """Result of one authorization attempt."""
    success: bool
    error: Optional[str] = None


def create_callback_app(session: OAuthSession, done: "asyncio.Future[CallbackOutcome]") -> FastAPI:
    """Build the callback app. ``done`` is resolved exactly once."""

    def finish(outcome: CallbackOutcome) -> None:
        if not done.done():
            done.set_result(outcome)

    app = FastAPI(title="Google OAuth Callback", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get(CALLBACK_PATH)
    async def oauth2callback(code: Optional[str] = None, error: Optional[str] = None):
        if error:
            logger.error(f"[Callback] Authentication error: {error}")
            finish(CallbackOutcome(success=False, error=error))
            return PlainTextResponse(f"Authentication error: {error}", status_code=400)

        if not code:
            return PlainTextResponse("No authorization code received", status_code=400)

        try:
            await session.exchange_code(code)
        except AuthExchangeError as e:
            logger.error(f"[Callback] Failed to exchange code for tokens: {e}")
            return HTMLResponse(
                FAILURE_PAGE,
                status_code=500,
                background=BackgroundTask(finish, CallbackOutcome(success=False, error=str(e))),
            )

        logger.info("[Callback] Authorization code exchanged")
        return HTMLResponse(
            SUCCESS_PAGE,
            background=BackgroundTask(finish, CallbackOutcome(success=True)),
        )

    return app


async def run_callback_server(
    session: OAuthSession,
    host: str = CALLBACK_HOST,
    port: int = CALLBACK_PORT,
) -> CallbackOutcome:
    """Serve until one authorization attempt completes, then shut down."""
    done: asyncio.Future[CallbackOutcome] = asyncio.get_running_loop().create_future()
    app = create_callback_app(session, done)
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="warning"))

    serve_task = asyncio.create_task(server.serve())
    logger.info(f"[Callback] Waiting for authentication callback on http://{host}:{port}{CALLBACK_PATH}")

    try:
        await asyncio.wait({done, serve_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        server.should_exit = True
        await serve_task

    if not done.done():
        # Interrupted before the browser came back
        return CallbackOutcome(success=False, error="Callback server stopped before authorization completed")
    return done.result()
