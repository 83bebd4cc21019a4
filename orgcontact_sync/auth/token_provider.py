"""
OAuth2 token acquisition for the Microsoft Graph API.

Provides application (client credentials) authentication with support for:
- Acquiring an access token for the tenant
- Caching the token for the duration of a run
- Refreshing the token before its stated expiry
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import requests

# Identity platform authority
DEFAULT_AUTHORITY_URL = "https://login.microsoftonline.com"

# Application permission scope for Graph
GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Default timeout for token requests (in seconds)
DEFAULT_AUTH_TIMEOUT = 30

# Refresh once the token has lived this fraction of its stated lifetime
REFRESH_RATIO = 5 / 6

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when authentication fails or credentials are invalid."""

    pass


class TokenAcquisitionError(AuthenticationError):
    """Raised when no access token can be obtained. Fatal for a run."""

    pass


class TokenProvider(Protocol):
    """Anything able to hand out a fresh access token."""

    def acquire(self) -> tuple[str, int]:
        """Return (access_token, expires_in_seconds)."""
        ...


class ClientCredentialsTokenProvider:
    """
    Client credentials grant against the Microsoft identity platform.

    Usage:
        provider = ClientCredentialsTokenProvider(tenant_id, client_id, secret)
        token, expires_in = provider.acquire()
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        authority_url: str = DEFAULT_AUTHORITY_URL,
        scope: str = GRAPH_SCOPE,
        timeout: float = DEFAULT_AUTH_TIMEOUT,
    ):
        if not tenant_id or not client_id or not client_secret:
            raise ValueError("tenant_id, client_id and client_secret are required")

        self.tenant_id = tenant_id
        self.client_id = client_id
        self._client_secret = client_secret
        self.authority_url = authority_url.rstrip("/")
        self.scope = scope
        self.timeout = timeout

    @property
    def token_url(self) -> str:
        """Token endpoint for the configured tenant."""
        return f"{self.authority_url}/{self.tenant_id}/oauth2/v2.0/token"

    def acquire(self) -> tuple[str, int]:
        """
        Request a new access token.

        Returns:
            Tuple of (access token, lifetime in seconds)

        Raises:
            TokenAcquisitionError: If the identity platform rejects the request
                or cannot be reached
        """
        logger.debug(f"Requesting access token for tenant {self.tenant_id}")

        try:
            response = requests.post(
                self.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self._client_secret,
                    "scope": self.scope,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TokenAcquisitionError(f"Token endpoint unreachable: {e}") from e

        if response.status_code != 200:
            try:
                payload = response.json()
                detail = payload.get("error_description") or payload.get("error")
            except ValueError:
                detail = response.text
            raise TokenAcquisitionError(
                f"Token request failed with status {response.status_code}: {detail}"
            )

        try:
            payload = response.json()
            token = payload["access_token"]
            expires_in = int(payload.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as e:
            raise TokenAcquisitionError(f"Malformed token response: {e}") from e

        logger.info(f"Acquired access token (expires in {expires_in}s)")
        return token, expires_in


@dataclass
class _HeldToken:
    value: str
    expires_in: int
    acquired_at: float


class TokenCache:
    """
    Holds the current token for a run and refreshes it before expiry.

    A token is reused until its age exceeds REFRESH_RATIO of the lifetime
    reported by the provider.
    """

    def __init__(
        self,
        provider: TokenProvider,
        refresh_ratio: float = REFRESH_RATIO,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.refresh_ratio = refresh_ratio
        self._clock = clock
        self._held: _HeldToken | None = None

    @property
    def acquired_at(self) -> float | None:
        """Clock reading when the held token was acquired, if any."""
        return self._held.acquired_at if self._held else None

    def needs_refresh(self) -> bool:
        """Check whether a new token must be acquired before the next call."""
        if self._held is None:
            return True
        age = self._clock() - self._held.acquired_at
        return age > self._held.expires_in * self.refresh_ratio

    def get_token(self) -> str:
        """
        Return a valid access token, acquiring or refreshing as needed.

        Raises:
            TokenAcquisitionError: If the provider fails
        """
        held = self._held
        if held is None or self.needs_refresh():
            if held is not None:
                logger.debug("Access token nearing expiry, refreshing")
            token, expires_in = self.provider.acquire()
            held = _HeldToken(token, expires_in, self._clock())
            self._held = held
        return held.value
