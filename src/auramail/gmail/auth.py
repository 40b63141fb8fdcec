"""Gmail OAuth token handling.

Tokens are stored per user in the repository. An expired access token is
refreshed with the stored refresh token before each sync; any failure to do
so is an AuthenticationError so callers can ask the user to reconnect.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import structlog

from auramail.config import Settings
from auramail.exceptions import AuthenticationError, ConfigurationError, ValidationError
from auramail.extraction.dates import as_naive
from auramail.models import GmailToken

if TYPE_CHECKING:
    from auramail.storage.repository import PlacementRepository

logger = structlog.get_logger()

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


def load_client_config(path: Path | str) -> dict[str, str]:
    """Read the OAuth client id, secret and token URI from a credentials file.

    Accepts both "installed" and "web" client files as downloaded from the
    Google Cloud console.

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed.
    """
    credentials_path = Path(path)
    try:
        data = json.loads(credentials_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Gmail credentials file not found: {credentials_path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Gmail credentials file unreadable: {credentials_path}: {e}") from e

    section = (data.get("installed") or data.get("web")) if isinstance(data, dict) else None
    if not isinstance(section, dict):
        raise ConfigurationError("Gmail credentials file has no 'installed' or 'web' client")

    client_id = section.get("client_id")
    client_secret = section.get("client_secret")
    if not client_id or not client_secret:
        raise ConfigurationError("Gmail credentials file is missing client_id or client_secret")

    return {
        "client_id": client_id,
        "client_secret": client_secret,
        "token_uri": section.get("token_uri") or DEFAULT_TOKEN_URI,
    }


def _to_local_naive(expiry: datetime | None) -> datetime | None:
    # google-auth reports expiry as naive UTC.
    if expiry is None:
        return None
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return as_naive(expiry)


def run_installed_app_flow(settings: Settings, user_id: str) -> GmailToken:
    """Run the local browser OAuth flow and return the granted tokens."""
    # Imported lazily; only the CLI bootstrap needs the interactive flow.
    from google_auth_oauthlib.flow import InstalledAppFlow

    credentials_path = Path(settings.gmail_credentials_path)
    load_client_config(credentials_path)

    flow = InstalledAppFlow.from_client_secrets_file(
        str(credentials_path), scopes=[settings.gmail_scope]
    )
    creds = flow.run_local_server(port=0)
    return GmailToken(
        user_id=user_id,
        access_token=creds.token,
        refresh_token=creds.refresh_token,
        expiry_date=_to_local_naive(creds.expiry),
    )


Refresher = Callable[[GmailToken], GmailToken]


class GmailTokenProvider:
    """Hands out valid access tokens, refreshing and persisting as needed."""

    def __init__(
        self,
        repository: PlacementRepository,
        settings: Optional[Settings] = None,
        *,
        refresher: Optional[Refresher] = None,
    ) -> None:
        from auramail.config import get_settings

        self.repository = repository
        self.settings = settings or get_settings()
        self._refresher = refresher or self._refresh_with_google
        self._client_config: dict[str, str] | None = None

    def store_tokens(
        self,
        user_id: str,
        access_token: str,
        refresh_token: str | None = None,
        expiry_date: datetime | None = None,
    ) -> GmailToken:
        """Insert or replace the stored tokens for a user.

        A missing refresh token keeps the previously stored one.
        """
        if not user_id or not access_token:
            raise ValidationError("user_id and access_token are required")

        if refresh_token is None:
            existing = self.repository.get_gmail_token(user_id)
            refresh_token = existing.refresh_token if existing else None

        token = GmailToken(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expiry_date=expiry_date,
        )
        self.repository.upsert_gmail_token(token)
        logger.info("gmail_token_stored", user_id=user_id, has_refresh_token=bool(refresh_token))
        return token

    def get_valid_access_token(self, user_id: str, *, now: datetime | None = None) -> str:
        """Return a usable access token for ``user_id``.

        Raises:
            AuthenticationError: If no token is stored, the token is expired
                without a refresh token, or the refresh fails.
        """
        token = self.repository.get_gmail_token(user_id)
        if token is None:
            raise AuthenticationError(f"Gmail is not connected for user {user_id}")

        now = as_naive(now) if now is not None else datetime.now()
        if token.expiry_date is None or token.expiry_date >= now:
            return token.access_token

        logger.info("gmail_token_expired", user_id=user_id)
        if not token.refresh_token:
            raise AuthenticationError(f"No refresh token available for user {user_id}")

        try:
            refreshed = self._refresher(token)
        except (AuthenticationError, ConfigurationError):
            raise
        except Exception as e:
            logger.error("gmail_token_refresh_failed", user_id=user_id, error=str(e))
            raise AuthenticationError(f"Gmail token refresh failed for user {user_id}") from e

        self.repository.upsert_gmail_token(refreshed)
        logger.info("gmail_token_refreshed", user_id=user_id)
        return refreshed.access_token

    def _refresh_with_google(self, token: GmailToken) -> GmailToken:
        if self._client_config is None:
            self._client_config = load_client_config(self.settings.gmail_credentials_path)

        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials

        creds = Credentials(
            token=None,
            refresh_token=token.refresh_token,
            scopes=[self.settings.gmail_scope],
            **self._client_config,
        )
        creds.refresh(Request())
        return GmailToken(
            user_id=token.user_id,
            access_token=creds.token,
            refresh_token=creds.refresh_token or token.refresh_token,
            expiry_date=_to_local_naive(creds.expiry),
        )

