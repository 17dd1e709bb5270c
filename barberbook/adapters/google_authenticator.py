"""
Google OAuth 2.0 authentication using a long-lived refresh token.
"""

from __future__ import annotations

import logging
from typing import Optional

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]


class _TimeoutRequest(Request):
    """Transport that applies a default timeout to token requests."""

    def __init__(self, timeout: float):
        super().__init__()
        self._timeout = timeout

    def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):
        return super().__call__(
            url,
            method=method,
            body=body,
            headers=headers,
            timeout=timeout or self._timeout,
            **kwargs
        )


class GoogleAuthenticator:
    """
    Exchanges a refresh token for short-lived access tokens.

    The refresh token is issued once, offline, for the shop's Google account
    and handed to the backend through configuration. google-auth keeps the
    access token and renews it shortly before it expires.
    """

    TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        timeout: float = 30
    ):
        """
        Initialize the authenticator.

        Args:
            client_id: OAuth client ID of the Google Cloud project
            client_secret: OAuth client secret
            refresh_token: Refresh token granted for the calendar scope
            timeout: Timeout in seconds for the token request
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.timeout = timeout

        self._credentials: Optional[Credentials] = None

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, using the cached one or requesting a new one.

        Args:
            force_refresh: Ignore the cached token

        Returns:
            Access token string

        Raises:
            AuthenticationError: If the token exchange fails
        """
        credentials = self._get_credentials()

        if force_refresh or not credentials.valid:
            self._refresh(credentials)

        if not credentials.token:
            raise AuthenticationError("Token endpoint response has no access_token")

        return credentials.token

    def _get_credentials(self) -> Credentials:
        if not (self.client_id and self.client_secret and self.refresh_token):
            raise AuthenticationError(
                "Missing Google credentials (client_id, client_secret, refresh_token)."
            )

        if self._credentials is None:
            self._credentials = Credentials(
                token=None,
                refresh_token=self.refresh_token,
                token_uri=self.TOKEN_ENDPOINT,
                client_id=self.client_id,
                client_secret=self.client_secret,
                scopes=CALENDAR_SCOPES,
            )
        return self._credentials

    def _refresh(self, credentials: Credentials) -> None:
        logger.debug("Requesting new Google access token")

        try:
            credentials.refresh(_TimeoutRequest(self.timeout))
        except RefreshError as exc:
            raise AuthenticationError(f"Token request rejected: {exc}") from exc
        except TransportError as exc:
            raise AuthenticationError(f"Token request failed: {exc}") from exc

    def clear_cache(self) -> None:
        """Forget the cached access token (the next call exchanges the refresh token again)."""
        self._credentials = None
