"""Shared fixtures: a throwaway token store and a session whose HTTP traffic
goes to an in-process fake of the Google endpoints."""
from typing import Callable, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from gdocs_mcp.config import GOOGLE_TOKEN_URL
from gdocs_mcp.credentials import TokenStore
from gdocs_mcp.models import CredentialConfig, TokenSet, now_ms
from gdocs_mcp.oauth import OAuthSession


class FakeGoogle:
    """Records requests and answers them from per-path handlers."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.token_status = 200
        self.token_body: Optional[bytes] = None
        self.token_payload = {
            "access_token": "fresh-access",
            "expires_in": 3599,
            "token_type": "Bearer",
            "scope": "https://www.googleapis.com/auth/documents.readonly",
        }

    def route(self, url_prefix: str, handler):
        self.routes[url_prefix] = handler

    def token_calls(self) -> list[dict[str, list[str]]]:
        return [
            parse_qs(r.content.decode())
            for r in self.requests
            if str(r.url) == GOOGLE_TOKEN_URL
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url == GOOGLE_TOKEN_URL:
            if self.token_body is not None:
                return httpx.Response(self.token_status, content=self.token_body)
            return httpx.Response(self.token_status, json=self.token_payload)
        for prefix, handler in self.routes.items():
            if url.startswith(prefix):
                return handler(request)
        return httpx.Response(404, json={"error": {"message": f"no route for {url}"}})


@pytest.fixture
def credential_config():
    return CredentialConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:3000/oauth2callback",
    )


@pytest.fixture
def token_store(tmp_path):
    return TokenStore(tmp_path / ".credentials" / "tokens.json")


@pytest.fixture
def google():
    return FakeGoogle()


@pytest.fixture
def session(credential_config, token_store, google):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(google))
    return OAuthSession(credential_config, token_store, http_client=http_client)


@pytest.fixture
def valid_tokens():
    return TokenSet(
        access_token="stored-access",
        refresh_token="stored-refresh",
        expiry_date=now_ms() + 3600 * 1000,
        token_type="Bearer",
        scope="https://www.googleapis.com/auth/drive.readonly",
    )


@pytest.fixture
def authenticated(token_store, valid_tokens):
    """Persist valid tokens so the auth gate passes."""
    token_store.save(valid_tokens)
    return valid_tokens