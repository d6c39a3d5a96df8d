"""Interactive Google authorization for the MCP server.

Opens the consent page in a browser, receives the redirect on a local
callback server and stores the resulting tokens in .credentials/tokens.json.

Run with:
    gdocs-mcp-auth
    gdocs-mcp-auth --no-browser
"""
import argparse
import asyncio
import logging
import sys
import webbrowser
from typing import Optional

from .callback_server import run_callback_server
from .config import CALLBACK_HOST, CALLBACK_PATH, CALLBACK_PORT
from .credentials import ConfigurationError, TokenStore, resolve_credentials
from .main import configure_logging
from .oauth import OAuthSession

logger = logging.getLogger(__name__)

SETUP_HELP = """
To set up credentials:
  1. Go to https://console.cloud.google.com/
  2. Create OAuth 2.0 credentials (Desktop application)
  3. Download and save as 'client_secret.json' in the project root
"""


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Authorize the Google Docs MCP Server")
    parser.add_argument(
        "--port",
        type=int,
        default=CALLBACK_PORT,
        help=f"Local callback port (default: {CALLBACK_PORT})"
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Print the authorization URL without opening a browser"
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete stored tokens and authorize again"
    )
    return parser.parse_args(argv)


async def authorize(session: OAuthSession, port: int, open_browser: bool = True) -> bool:
    """Run one interactive authorization. Returns True on success."""
    auth_url = session.get_auth_url()

    print("Opening browser for authentication...\n")
    print("If the browser doesn't open, visit this URL manually:")
    print(f"\n{auth_url}\n")

    if open_browser:
        try:
            webbrowser.open(auth_url)
        except webbrowser.Error as e:
            logger.warning(f"[Auth] Could not open a browser: {e}")

    try:
        outcome = await run_callback_server(session, host=CALLBACK_HOST, port=port)
    finally:
        await session.close()

    if not outcome.success:
        print(f"\nAuthentication failed: {outcome.error}", file=sys.stderr)
        return False

    print("\nAuthentication successful!")
    print(f"Tokens saved to {session.store.path}")
    print("You can now use the MCP server.")
    return True


def main(argv: Optional[list[str]] = None):
    """Entry point for gdocs-mcp-auth."""
    args = parse_args(argv)
    configure_logging()

    print("Google OAuth2 Authentication\n")

    redirect_uri = f"http://{CALLBACK_HOST}:{args.port}{CALLBACK_PATH}"
    try:
        config = resolve_credentials({"redirect_uri": redirect_uri})
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(SETUP_HELP, file=sys.stderr)
        sys.exit(1)

    store = TokenStore()
    if args.reset:
        store.delete()

    session = OAuthSession(config, store)
    if session.load_tokens():
        print("Already authenticated!")
        print("To re-authenticate, run again with --reset.")
        sys.exit(0)

    ok = asyncio.run(authorize(session, args.port, open_browser=not args.no_browser))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
