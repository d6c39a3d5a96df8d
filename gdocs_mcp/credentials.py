"""Credential resolution and token persistence.

This module handles:
- Resolving the OAuth client configuration from an explicit override, a
  local client_secret.json, or environment variables (in that priority)
- Loading and saving the token file under the credentials directory
"""
import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Optional

from .config import (
    CLIENT_ID_ENV,
    CLIENT_SECRET_ENV,
    CLIENT_SECRET_FILE,
    CREDENTIALS_DIR,
    DEFAULT_REDIRECT_URI,
    LOG_TOKEN_EVENTS,
    get_base_dir,
    get_tokens_path,
)
from .models import ClientSecretFile, CredentialConfig, TokenSet

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when no usable OAuth client credentials can be found."""
    pass


SETUP_INSTRUCTIONS = (
    "Google credentials not found. Please either:\n"
    f"  1. Place {CLIENT_SECRET_FILE} in the project root, or\n"
    f"  2. Set {CLIENT_ID_ENV} and {CLIENT_SECRET_ENV} environment variables"
)


# ==============================================================================
# Credential Resolver
# ==============================================================================

def client_secret_candidates(base_dir: Path) -> list[Path]:
    """Locations probed for client_secret.json, in order."""
    return [
        base_dir / CLIENT_SECRET_FILE,
        base_dir / CREDENTIALS_DIR / CLIENT_SECRET_FILE,
    ]


def load_client_secret(candidates: Iterable[Path]) -> Optional[dict[str, str]]:
    """Return the first existing, parseable client secret file as a partial config.

    Unreadable or malformed candidates are skipped.
    """
    for path in candidates:
        if not path.is_file():
            continue
        try:
            secret = ClientSecretFile.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.debug(f"[Credentials] Skipping unreadable secret file {path}: {e}")
            continue

        entry = secret.entry
        if entry is None:
            logger.debug(f"[Credentials] {path} has neither 'installed' nor 'web' credentials")
            continue

        logger.info(f"[Credentials] Loaded client secret from {path}")
        # Fields missing here are filled from later sources
        partial = {
            "client_id": entry.client_id,
            "client_secret": entry.client_secret,
            "redirect_uri": entry.redirect_uris[0] if entry.redirect_uris else DEFAULT_REDIRECT_URI,
        }
        return {key: value for key, value in partial.items() if value}
    return None


def _env_source() -> dict[str, str]:
    source = {}
    if os.getenv(CLIENT_ID_ENV):
        source["client_id"] = os.environ[CLIENT_ID_ENV]
    if os.getenv(CLIENT_SECRET_ENV):
        source["client_secret"] = os.environ[CLIENT_SECRET_ENV]
    return source


def _first(sources: list[dict[str, str]], field: str) -> Optional[str]:
    for source in sources:
        value = source.get(field)
        if value:
            return value
    return None


def resolve_credentials(
    explicit: Optional[dict[str, str]] = None,
    base_dir: Optional[Path] = None,
) -> CredentialConfig:
    """Merge explicit, file-based and environment configuration.

    Args:
        explicit: Optional overrides with any of client_id, client_secret,
            redirect_uri
        base_dir: Directory to probe for client_secret.json (defaults to
            GOOGLE_CREDENTIALS_PATH or the working directory)

    Returns:
        The resolved CredentialConfig

    Raises:
        ConfigurationError: If no client id or secret is found in any source
    """
    base_dir = base_dir or get_base_dir()

    probes: list[Callable[[], Optional[dict[str, str]]]] = [
        lambda: explicit,
        lambda: load_client_secret(client_secret_candidates(base_dir)),
        _env_source,
    ]
    sources = [source for source in (probe() for probe in probes) if source]

    client_id = _first(sources, "client_id")
    client_secret = _first(sources, "client_secret")
    if not client_id or not client_secret:
        raise ConfigurationError(SETUP_INSTRUCTIONS)

    return CredentialConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=_first(sources, "redirect_uri") or DEFAULT_REDIRECT_URI,
    )


# ==============================================================================
# Credential Store
# ==============================================================================

class TokenStore:
    """File-based token store at <base>/.credentials/tokens.json.

    Writes replace the whole file atomically and are chmod 0600.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_tokens_path()

    def load(self) -> Optional[TokenSet]:
        """Load tokens. Returns None if missing, unreadable or unparsable."""
        if not self.path.exists():
            return None

        try:
            return TokenSet.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"[TokenStore] Failed to load tokens from {self.path}: {e}")
            return None

    def save(self, tokens: TokenSet) -> None:
        """Overwrite the token file with ``tokens``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(tokens.model_dump(exclude_none=True), indent=2)

        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".tokens-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.chmod(tmp_name, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        if LOG_TOKEN_EVENTS:
            logger.info(f"[TokenStore] Saved tokens to {self.path}")

    def delete(self) -> bool:
        """Remove the token file. Returns True if a file was deleted."""
        if self.path.exists():
            self.path.unlink()
            if LOG_TOKEN_EVENTS:
                logger.info(f"[TokenStore] Deleted tokens at {self.path}")
            return True
        return False
