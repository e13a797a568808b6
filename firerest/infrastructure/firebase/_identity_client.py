"""Identity Toolkit REST client (Firebase Auth user directory, no firebase-admin).

Every call is a POST to projects/{project}/accounts:* authorized with the
service-account token and carrying targetProjectId. Provider error codes
that have a domain meaning are mapped; the rest stay TransportException.
Session-token lookup may instead use the project's web API key
(accounts:lookup?key=...) when no service account is configured.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from firerest.application.dtos.identity import IdentityUser, UserCreate, UserUpdate
from firerest.domain.exceptions import (
    AuthenticationException,
    CredentialUnavailableException,
    TransportException,
    UserAlreadyExistsException,
    ValidationException,
)
from firerest.infrastructure.firebase._transport import RestTransport
from firerest.infrastructure.firebase.token_manager import AccessTokenProvider

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_BASE_URL = "https://identitytoolkit.googleapis.com/v1"
MAX_LIST_PAGE_SIZE = 1000

_SESSION_TOKEN_ERRORS = ("INVALID_ID_TOKEN", "TOKEN_EXPIRED", "USER_NOT_FOUND", "USER_DISABLED")


def _error_code(provider_message: str) -> str:
    """'WEAK_PASSWORD : Password should be at least 6 characters' -> 'WEAK_PASSWORD'."""
    return provider_message.split(":", 1)[0].strip()


def _to_user(data: dict[str, Any]) -> IdentityUser:
    return IdentityUser(
        local_id=data["localId"],
        email=data.get("email"),
        display_name=data.get("displayName"),
        created_at_utc=data.get("createdAt") or data.get("createdAtUtc"),
        disabled=bool(data.get("disabled", False)),
    )


class IdentityToolkitClient:
    """User directory over the Identity Toolkit v1 REST API."""

    def __init__(
        self,
        project_id: str,
        tokens: AccessTokenProvider,
        *,
        transport: RestTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = IDENTITY_TOOLKIT_BASE_URL,
        page_size: int = MAX_LIST_PAGE_SIZE,
        timeout: float = 30.0,
        api_key: str | None = None,
    ) -> None:
        self._project_id = project_id
        self._tokens = tokens
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._page_size = min(page_size, MAX_LIST_PAGE_SIZE)
        self._transport = transport or RestTransport(http_client, timeout=timeout)
        self._owns_transport = transport is None

    async def aclose(self) -> None:
        """Close the transport only if we created it."""
        if self._owns_transport:
            await self._transport.aclose()

    async def _post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        if not self._project_id:
            raise CredentialUnavailableException("Firebase project id is not configured")
        payload = {k: v for k, v in body.items() if v is not None}
        payload.setdefault("targetProjectId", self._project_id)
        out = await self._transport.request(
            "POST",
            f"{self._base_url}/projects/{self._project_id}/{endpoint}",
            token=await self._tokens.get_access_token(),
            body=payload,
        )
        return out if isinstance(out, dict) else {}

    async def _mutate(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST a create/update call, mapping provider validation codes."""
        try:
            return await self._post(endpoint, body)
        except TransportException as e:
            code = _error_code(e.provider_message)
            if code == "EMAIL_EXISTS":
                raise UserAlreadyExistsException(body.get("email")) from e
            if code in ("WEAK_PASSWORD", "INVALID_PASSWORD"):
                raise ValidationException(
                    "Password must be at least 6 characters", "password"
                ) from e
            if code in ("INVALID_EMAIL", "MISSING_EMAIL"):
                raise ValidationException("Invalid email address", "email") from e
            raise

    async def _lookup_with_api_key(self, id_token: str) -> dict[str, Any]:
        """accounts:lookup authorized by the web API key; no service token needed."""
        out = await self._transport.request(
            "POST",
            f"{self._base_url}/accounts:lookup",
            token=None,
            body={"idToken": id_token},
            params={"key": self._api_key},
        )
        return out if isinstance(out, dict) else {}

    async def lookup_by_session_token(self, id_token: str) -> IdentityUser:
        """Resolve the user behind an end-user ID token.

        With an API key configured the lookup needs neither a service
        account nor a project id.

        Raises:
            AuthenticationException: Token malformed, expired or rejected.
        """
        if not id_token:
            raise AuthenticationException("Missing session token")
        try:
            if self._api_key:
                data = await self._lookup_with_api_key(id_token)
            else:
                data = await self._post("accounts:lookup", {"idToken": id_token})
        except TransportException as e:
            if e.status_code in (400, 401, 403) or _error_code(e.provider_message) in _SESSION_TOKEN_ERRORS:
                raise AuthenticationException("Invalid or expired session token") from e
            raise
        users = data.get("users") or []
        if not users or not users[0].get("localId"):
            raise AuthenticationException("Invalid or expired session token")
        return _to_user(users[0])

    async def get_user(self, local_id: str) -> IdentityUser | None:
        """Return user by local ID, or None when the provider has no such user."""
        data = await self._post("accounts:lookup", {"localId": [local_id]})
        users = data.get("users") or []
        return _to_user(users[0]) if users else None

    async def list_all_users(self) -> list[IdentityUser]:
        """Return every user, following nextPageToken until the provider omits it."""
        users: list[IdentityUser] = []
        page_token: str | None = None
        seen_tokens: set[str] = set()
        while True:
            data = await self._post(
                "accounts:query",
                {
                    "returnUserInfo": True,
                    "maxResults": self._page_size,
                    "nextPageToken": page_token,
                },
            )
            users.extend(_to_user(u) for u in data.get("userInfo") or [])
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            if page_token in seen_tokens:
                raise TransportException(200, f"accounts:query repeated page token {page_token!r}")
            seen_tokens.add(page_token)
        logger.debug("accounts:query returned %d users", len(users))
        return users

    async def create_user(self, data: UserCreate) -> str:
        """Create a user and return the provider-assigned local ID."""
        out = await self._mutate(
            "accounts:signUp",
            {
                "email": data.email,
                "password": data.password,
                "displayName": data.display_name,
            },
        )
        local_id = out.get("localId")
        if not local_id:
            raise TransportException(200, "accounts:signUp response had no localId")
        logger.info("Created identity user %s", local_id)
        return local_id

    async def update_user(self, data: UserUpdate) -> None:
        """Send only the fields that were supplied."""
        await self._mutate(
            "accounts:update",
            {
                "localId": data.local_id,
                "email": data.email,
                "password": data.password,
                "displayName": data.display_name,
            },
        )

    async def delete_user(self, local_id: str) -> None:
        await self._post("accounts:delete", {"localId": local_id})
        logger.info("Deleted identity user %s", local_id)
