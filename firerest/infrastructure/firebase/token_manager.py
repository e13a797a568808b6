"""Service-account access tokens for the Firestore and Identity Toolkit REST APIs.

Uses google-auth for the OAuth2 JWT-bearer grant. The grant itself is a
blocking call, so it runs in a worker thread; the cached-token path is O(1)
and never touches the network.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from google.auth.exceptions import RefreshError

from firerest.application.dtos.credential import CachedAccessToken, ServiceAccountCredential
from firerest.domain.exceptions import AuthenticationException, CredentialUnavailableException
from firerest.shared.utils.datetime import to_epoch_millis

logger = logging.getLogger(__name__)

FIREBASE_SCOPES = (
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/datastore",
    "https://www.googleapis.com/auth/firebase",
    "https://www.googleapis.com/auth/identitytoolkit",
)

REFRESH_SKEW_MILLIS = 60_000
DEFAULT_TOKEN_TTL_MILLIS = 60 * 60 * 1000

# Firebase emulators accept this fixed bearer token as an admin identity.
EMULATOR_TOKEN = "owner"


class AccessTokenProvider(Protocol):
    """Anything that can hand out a bearer token for service-identity calls."""

    async def get_access_token(self) -> str:
        """Return a valid bearer token."""
        ...


def _now_millis() -> int:
    return int(time.time() * 1000)


def _get_credentials(credential: ServiceAccountCredential):
    """Return google.oauth2.service_account.Credentials for the Firebase scopes."""
    from google.oauth2 import service_account

    return service_account.Credentials.from_service_account_info(
        credential.to_service_account_info(), scopes=list(FIREBASE_SCOPES)
    )


def _refresh_blocking(signer: Any) -> None:
    from google.auth.transport.requests import Request

    signer.refresh(Request())


class CredentialManager:
    """Holds the service-account identity and the single cached access token.

    The cached token is replaced as a whole, never mutated. Refreshes are
    serialized by an asyncio.Lock so concurrent callers share one grant.
    """

    def __init__(
        self,
        credential: ServiceAccountCredential | None,
        *,
        signer: Any | None = None,
        clock: Callable[[], int] = _now_millis,
    ) -> None:
        self._credential = credential
        self._signer = signer
        self._clock = clock
        self._cached: CachedAccessToken | None = None
        self._lock = asyncio.Lock()

    @property
    def credential(self) -> ServiceAccountCredential | None:
        return self._credential

    @property
    def cached_token(self) -> CachedAccessToken | None:
        return self._cached

    def _fresh_token(self) -> str | None:
        cached = self._cached
        if cached is not None and cached.is_fresh(self._clock(), REFRESH_SKEW_MILLIS):
            return cached.token
        return None

    async def get_access_token(self) -> str:
        """Return the cached token while fresh; otherwise run the JWT-bearer grant.

        Raises:
            CredentialUnavailableException: No service account was configured.
            AuthenticationException: The token endpoint rejected the grant.
        """
        if self._credential is None:
            raise CredentialUnavailableException()
        token = self._fresh_token()
        if token is not None:
            return token
        async with self._lock:
            token = self._fresh_token()
            if token is not None:
                return token
            self._cached = await self._refresh()
            return self._cached.token

    async def _refresh(self) -> CachedAccessToken:
        if self._signer is None:
            self._signer = _get_credentials(self._credential)
        try:
            await asyncio.to_thread(_refresh_blocking, self._signer)
        except RefreshError as e:
            logger.warning(
                "Access token grant rejected for %s: %s", self._credential.client_email, e
            )
            raise AuthenticationException(f"Service account token grant rejected: {e}") from e
        token = self._signer.token
        if not token:
            raise AuthenticationException("Service account token grant returned no token")
        expiry = getattr(self._signer, "expiry", None)
        if expiry is not None:
            expires_at = to_epoch_millis(expiry)
        else:
            expires_at = self._clock() + DEFAULT_TOKEN_TTL_MILLIS
        logger.info(
            "Service account access token refreshed (valid for %ds)",
            max(0, (expires_at - self._clock()) // 1000),
        )
        return CachedAccessToken(token=token, expires_at_epoch_millis=expires_at)


class StaticTokenProvider:
    """Fixed bearer token (emulator mode)."""

    def __init__(self, token: str = EMULATOR_TOKEN) -> None:
        self._token = token

    async def get_access_token(self) -> str:
        return self._token
