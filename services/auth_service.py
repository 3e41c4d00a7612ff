from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from utils.config import ConfigError, GoogleConfig

LOGGER = logging.getLogger(__name__)
SCOPES: Iterable[str] = (
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/tasks",
)
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
# Failures of a Google API call itself. httplib2 raises its own types for DNS
# and connection errors, which are not OSErrors.
PROVIDER_ERRORS = (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError)


@dataclass(slots=True)
class GoogleSession:
    """Authenticated credentials shared by every Google API client in a run."""

    credentials: Credentials

    def build(self, api: str, version: str) -> Any:
        return build(api, version, credentials=self.credentials, cache_discovery=False)


class AuthService:
    """Handle the OAuth2 credential lifecycle for the configured Google account."""

    def __init__(self, config: GoogleConfig):
        self._config = config
        self._pending_flow: Optional[Flow] = None

    def _client_config(self) -> Dict[str, Dict[str, Any]]:
        return {
            "web": {
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self._config.redirect_uri],
            }
        }

    def _new_flow(self) -> Flow:
        missing = self._config.missing_client_settings()
        if missing:
            raise ConfigError(f"Missing Google OAuth client settings: {', '.join(missing)}")
        return Flow.from_client_config(
            self._client_config(),
            scopes=list(SCOPES),
            redirect_uri=self._config.redirect_uri,
        )

    def authorization_url(self) -> str:
        """Start the one-time consent flow and return the URL the operator must open."""

        flow = self._new_flow()
        url, _state = flow.authorization_url(access_type="offline", prompt="consent")
        self._pending_flow = flow
        return url

    def exchange_code(self, code: str) -> Credentials:
        """Trade the pasted authorization code for credentials carrying a refresh token."""

        flow = self._pending_flow or self._new_flow()
        LOGGER.info("Exchanging authorization code for tokens")
        flow.fetch_token(code=code.strip())
        creds = flow.credentials
        if not creds.refresh_token:
            raise ConfigError(
                "Google did not return a refresh token; revoke the app's access and authorize again"
            )
        return creds

    def authenticate(self) -> Credentials:
        if not self._config.refresh_token:
            raise ConfigError("Missing GOOGLE_REFRESH_TOKEN. Run the 'authorize' command first.")
        creds = Credentials(
            token=None,
            refresh_token=self._config.refresh_token,
            token_uri=TOKEN_URI,
            client_id=self._config.client_id,
            client_secret=self._config.client_secret,
            scopes=list(SCOPES),
        )
        LOGGER.info("Refreshing Google access token")
        creds.refresh(Request())
        return creds

    def open_session(self) -> GoogleSession:
        return GoogleSession(credentials=self.authenticate())
