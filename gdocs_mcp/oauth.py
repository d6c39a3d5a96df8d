"""OAuth session for the Google Docs MCP Server.

This module handles:
- Building the Google authorization URL (offline access, forced consent)
- Exchanging an authorization code for tokens
- Loading persisted tokens and refreshing the access token
- Handing out API clients bound to the current access token

One OAuthSession is created at startup and shared by every transport. Token
mutations (exchange-then-save, refresh-then-save) are serialized by a single
asyncio lock so a stale refresh never overwrites a fresher token.
"""
import asyncio
import logging
import urllib.parse
from typing import Optional

import httpx

from .api_client import GoogleDocsClient, GoogleDriveClient, GoogleSheetsClient
from .config import (
    GOOGLE_AUTH_URL,
    GOOGLE_TOKEN_URL,
    LOG_TOKEN_EVENTS,
    OAUTH_HTTP_TIMEOUT,
    SCOPES,
    TOKEN_REFRESH_BUFFER_SECONDS,
)
from .credentials import TokenStore
from .models import CredentialConfig, TokenSet

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when the session has no usable tokens."""
    pass


class AuthExchangeError(AuthenticationError):
    """Raised when Google rejects an authorization code or the exchange fails."""
    pass


class AuthRefreshError(AuthenticationError):
    """Raised when the refresh token is revoked/expired or the refresh fails.

    ``revoked`` is False for transient failures (network, 5xx, 429).
    """
    def __init__(self, message: str, revoked: bool = True):
        super().__init__(message)
        self.revoked = revoked


# Token endpoint statuses that mean the grant itself was refused (invalid_grant,
# invalid_client). Anything else is treated as transient.
GRANT_REJECTED_STATUSES = (400, 401)


def _token_payload(response: httpx.Response) -> dict:
    """Decode a token endpoint body. Raises ValueError if it is not a JSON object."""
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        return data.get("error_description") or data.get("error") or response.text
    return response.text


class OAuthSession:
    """Owns the client configuration and the current tokens.

    Key features:
    - Deterministic authorization URL for the read-only scopes
    - Write-through persistence on exchange and refresh
    - "Authenticated" means a refresh token is present, nothing more
    - Access tokens are refreshed eagerly when close to expiry
    """

    def __init__(
        self,
        config: CredentialConfig,
        store: Optional[TokenStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.store = store or TokenStore()
        self._tokens: Optional[TokenSet] = None
        # Refresh token Google rejected; not reloaded from the store again
        self._rejected_refresh_token: Optional[str] = None
        self._lock = asyncio.Lock()
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=OAUTH_HTTP_TIMEOUT)
        return self._http_client

    async def close(self):
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    @property
    def tokens(self) -> Optional[TokenSet]:
        """The in-memory token set, if any."""
        return self._tokens

    # ==========================================================================
    # Authorization
    # ==========================================================================

    def get_auth_url(self) -> str:
        """Build the URL the user visits to grant read-only access."""
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{GOOGLE_AUTH_URL}?{urllib.parse.urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenSet:
        """Exchange an authorization code for tokens and persist them.

        Raises:
            AuthExchangeError: If Google rejects the code or the request fails
        """
        client = await self._get_http_client()

        async with self._lock:
            try:
                response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.config.client_id,
                        "client_secret": self.config.client_secret,
                        "redirect_uri": self.config.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
            except httpx.RequestError as e:
                logger.error(f"[OAuthSession] Network error during code exchange: {e}")
                raise AuthExchangeError(f"Code exchange failed due to network error: {e}") from e

            if response.status_code != 200:
                detail = _error_detail(response)
                logger.error(f"[OAuthSession] Code exchange rejected: {response.status_code} - {detail}")
                raise AuthExchangeError(f"Code exchange failed: {response.status_code} {detail}")

            try:
                payload = _token_payload(response)
            except ValueError as e:
                logger.error(f"[OAuthSession] Unreadable code exchange response: {e}")
                raise AuthExchangeError(f"Code exchange failed: unreadable token response ({e})") from e

            tokens = TokenSet.from_token_response(payload)
            self._tokens = tokens
            self._rejected_refresh_token = None
            self.store.save(tokens)

        if LOG_TOKEN_EVENTS:
            logger.info(
                f"[OAuthSession] Authorization code exchanged "
                f"(refresh_token={'yes' if tokens.has_refresh_token else 'no'})"
            )
        return tokens

    # ==========================================================================
    # Token State
    # ==========================================================================

    def load_tokens(self) -> bool:
        """Install persisted tokens if they include a refresh token.

        A refresh token that Google has already rejected is not loaded again.

        Returns:
            True if tokens were loaded, False if absent or lacking a refresh token
        """
        tokens = self.store.load()
        if tokens is None or not tokens.has_refresh_token:
            return False
        if tokens.refresh_token == self._rejected_refresh_token:
            return False

        self._tokens = tokens
        return True

    def is_authenticated(self) -> bool:
        """In-memory check: True iff a non-empty refresh token is held."""
        return self._tokens is not None and self._tokens.has_refresh_token

    def check_auth(self) -> bool:
        """Auth gate for tool calls: reload from the store, then check state."""
        self.load_tokens()
        return self.is_authenticated()

    async def refresh(self) -> TokenSet:
        """Mint a new access token from the refresh token and persist it.

        Raises:
            AuthRefreshError: If the refresh token is missing, revoked or
                expired, or the request fails. The session becomes
                unauthenticated.
        """
        async with self._lock:
            return await self._refresh_locked()

    async def _refresh_locked(self) -> TokenSet:
        current = self._tokens
        if current is None or not current.has_refresh_token:
            raise AuthRefreshError("No refresh token available. Please re-authenticate.")

        client = await self._get_http_client()
        try:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": current.refresh_token,
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                },
            )
        except httpx.RequestError as e:
            self._tokens = None
            logger.error(f"[OAuthSession] Network error during refresh: {e}")
            raise AuthRefreshError(f"Token refresh failed due to network error: {e}", revoked=False) from e

        if response.status_code != 200:
            self._tokens = None
            detail = _error_detail(response)
            logger.error(f"[OAuthSession] Refresh failed: {response.status_code} - {detail}")
            if response.status_code in GRANT_REJECTED_STATUSES:
                self._rejected_refresh_token = current.refresh_token
                raise AuthRefreshError(
                    f"Token refresh failed: {response.status_code} {detail}. "
                    f"Please re-authenticate."
                )
            raise AuthRefreshError(
                f"Token refresh failed: {response.status_code} {detail}. "
                f"Please try again later.",
                revoked=False,
            )

        try:
            payload = _token_payload(response)
        except ValueError as e:
            self._tokens = None
            logger.error(f"[OAuthSession] Unreadable refresh response: {e}")
            raise AuthRefreshError(f"Token refresh failed: unreadable token response ({e})", revoked=False) from e

        tokens = TokenSet.from_token_response(payload, previous=current)
        self._tokens = tokens
        self.store.save(tokens)

        if LOG_TOKEN_EVENTS:
            logger.info("[OAuthSession] Access token refreshed")
        return tokens

    async def ensure_valid_token(self) -> str:
        """Return an access token, refreshing first if it is missing or about to expire.

        Raises:
            AuthenticationError: If the session is not authenticated
            AuthRefreshError: If a needed refresh fails
        """
        tokens = self._tokens
        if tokens is None or not tokens.has_refresh_token:
            raise AuthenticationError("Not authenticated.")

        if not tokens.expires_within(TOKEN_REFRESH_BUFFER_SECONDS):
            return tokens.access_token

        async with self._lock:
            # Another request may have refreshed while we waited
            tokens = self._tokens
            if tokens is not None and not tokens.expires_within(TOKEN_REFRESH_BUFFER_SECONDS):
                return tokens.access_token
            tokens = await self._refresh_locked()
        return tokens.access_token

    # ==========================================================================
    # Capability Clients
    # ==========================================================================

    async def docs_client(self) -> GoogleDocsClient:
        """Google Docs client bound to the current access token."""
        token = await self.ensure_valid_token()
        return GoogleDocsClient(token, await self._get_http_client())

    async def sheets_client(self) -> GoogleSheetsClient:
        """Google Sheets client bound to the current access token."""
        token = await self.ensure_valid_token()
        return GoogleSheetsClient(token, await self._get_http_client())

    async def drive_client(self) -> GoogleDriveClient:
        """Google Drive client bound to the current access token."""
        token = await self.ensure_valid_token()
        return GoogleDriveClient(token, await self._get_http_client())