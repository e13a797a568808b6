"""Tests for GET /api/v1/auth/me (session token resolution through the identity directory)."""

from httpx import AsyncClient

from firerest.application.dtos.identity import IdentityUser
from firerest.domain.exceptions import CredentialUnavailableException
from tests.conftest import FakeIdentityDirectory


async def test_me_without_bearer_returns_401(client: AsyncClient) -> None:
    """Missing Authorization header is rejected before the directory is asked."""
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.headers.get("www-authenticate") == "Bearer"


async def test_me_with_unknown_token_returns_401(client: AsyncClient) -> None:
    """AuthenticationException from the directory maps to 401 with the domain body."""
    response = await client.get(
        "/api/v1/auth/me", headers={"Authorization": "Bearer not-a-session"}
    )
    assert response.status_code == 401
    assert response.json()["error"] == "AUTHENTICATION_ERROR"


async def test_me_returns_user_for_valid_token(
    client: AsyncClient, identity_directory: FakeIdentityDirectory
) -> None:
    identity_directory.sessions["id-token-1"] = IdentityUser(
        local_id="uid-1",
        email="ada@example.com",
        display_name="Ada",
        created_at_utc="1700000000000",
    )
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer id-token-1"})
    assert response.status_code == 200
    assert response.json() == {
        "local_id": "uid-1",
        "email": "ada@example.com",
        "display_name": "Ada",
        "created_at_utc": "1700000000000",
        "disabled": False,
    }


async def test_me_when_unconfigured_returns_503(
    client: AsyncClient, identity_directory: FakeIdentityDirectory, monkeypatch
) -> None:
    """An unconfigured backend surfaces CredentialUnavailableException as 503."""

    async def _unavailable(id_token: str) -> IdentityUser:
        raise CredentialUnavailableException()

    monkeypatch.setattr(identity_directory, "lookup_by_session_token", _unavailable)
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer x"})
    assert response.status_code == 503
    assert response.json()["error"] == "CREDENTIAL_UNAVAILABLE"
