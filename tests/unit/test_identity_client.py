"""Tests for IdentityToolkitClient against a mocked Identity Toolkit v1 endpoint."""

import json

import httpx
import pytest

from firerest.application.dtos.identity import UserCreate, UserUpdate
from firerest.domain.exceptions import (
    AuthenticationException,
    CredentialUnavailableException,
    TransportException,
    UserAlreadyExistsException,
    ValidationException,
)
from firerest.infrastructure.firebase._identity_client import IdentityToolkitClient


def _error(status: int, message: str) -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": status, "message": message}})


@pytest.fixture
def make_client(mock_transport, tokens):
    def _make(responder, page_size: int = 1000):
        transport, handler = mock_transport(responder)
        return IdentityToolkitClient("demo", tokens, transport=transport, page_size=page_size), handler

    return _make


async def test_lookup_by_session_token(make_client) -> None:
    client, handler = make_client(
        lambda r: httpx.Response(
            200,
            json={
                "users": [
                    {
                        "localId": "uid-1",
                        "email": "ada@example.com",
                        "displayName": "Ada",
                        "createdAt": "1700000000000",
                    }
                ]
            },
        )
    )
    user = await client.lookup_by_session_token("id-token")

    assert user.local_id == "uid-1"
    assert user.email == "ada@example.com"
    assert user.created_at_utc == "1700000000000"
    request = handler.requests[0]
    assert request.url.path == "/v1/projects/demo/accounts:lookup"
    assert request.headers["authorization"] == "Bearer service-token"
    assert json.loads(request.content) == {"idToken": "id-token", "targetProjectId": "demo"}


@pytest.mark.parametrize(
    "response",
    [
        _error(400, "INVALID_ID_TOKEN"),
        _error(400, "TOKEN_EXPIRED"),
        httpx.Response(200, json={}),
        httpx.Response(200, json={"users": []}),
    ],
)
async def test_lookup_by_session_token_rejections(make_client, response) -> None:
    client, _ = make_client(lambda r: response)
    with pytest.raises(AuthenticationException):
        await client.lookup_by_session_token("bad-token")


async def test_lookup_with_empty_token_sends_nothing(make_client) -> None:
    client, handler = make_client(lambda r: httpx.Response(200, json={}))
    with pytest.raises(AuthenticationException):
        await client.lookup_by_session_token("")
    assert handler.requests == []


async def test_lookup_with_api_key_skips_service_token(mock_transport, tokens) -> None:
    transport, handler = mock_transport(
        lambda r: httpx.Response(200, json={"users": [{"localId": "uid-1"}]})
    )
    client = IdentityToolkitClient("", tokens, transport=transport, api_key="web-key")

    user = await client.lookup_by_session_token("id-token")

    assert user.local_id == "uid-1"
    request = handler.requests[0]
    assert request.url.path == "/v1/accounts:lookup"
    assert request.url.params["key"] == "web-key"
    assert "authorization" not in request.headers
    assert json.loads(request.content) == {"idToken": "id-token"}
    assert tokens.calls == 0


async def test_lookup_with_api_key_rejection(mock_transport, tokens) -> None:
    transport, _ = mock_transport(lambda r: _error(400, "INVALID_ID_TOKEN"))
    client = IdentityToolkitClient("", tokens, transport=transport, api_key="web-key")
    with pytest.raises(AuthenticationException):
        await client.lookup_by_session_token("bad-token")


async def test_missing_project_id_fails_before_request(mock_transport, tokens) -> None:
    transport, handler = mock_transport(lambda r: httpx.Response(200, json={}))
    client = IdentityToolkitClient("", tokens, transport=transport)
    with pytest.raises(CredentialUnavailableException):
        await client.lookup_by_session_token("id-token")
    with pytest.raises(CredentialUnavailableException):
        await client.get_user("uid-1")
    assert handler.requests == []
    assert tokens.calls == 0


async def test_lookup_server_error_stays_transport_error(make_client) -> None:
    client, _ = make_client(lambda r: _error(500, "INTERNAL_ERROR"))
    with pytest.raises(TransportException):
        await client.lookup_by_session_token("id-token")


async def test_get_user_missing_returns_none(make_client) -> None:
    client, handler = make_client(lambda r: httpx.Response(200, json={"kind": "lookup"}))
    assert await client.get_user("nobody") is None
    assert json.loads(handler.requests[0].content)["localId"] == ["nobody"]


async def test_list_all_users_unions_pages_in_order(make_client) -> None:
    pages = [
        {"userInfo": [{"localId": "a"}, {"localId": "b"}], "nextPageToken": "p2"},
        {"userInfo": [{"localId": "c"}], "nextPageToken": "p3"},
        {"userInfo": [{"localId": "d"}], "recordsCount": "1"},
    ]
    client, handler = make_client(lambda r: httpx.Response(200, json=pages[len(handler.requests) - 1]))

    users = await client.list_all_users()

    assert [u.local_id for u in users] == ["a", "b", "c", "d"]
    bodies = handler.json_bodies()
    assert [b.get("nextPageToken") for b in bodies] == [None, "p2", "p3"]
    assert all(b["maxResults"] == 1000 and b["returnUserInfo"] is True for b in bodies)
    assert all(r.url.path == "/v1/projects/demo/accounts:query" for r in handler.requests)


async def test_list_all_users_repeated_page_token_raises(make_client) -> None:
    client, _ = make_client(
        lambda r: httpx.Response(200, json={"userInfo": [{"localId": "a"}], "nextPageToken": "same"})
    )
    with pytest.raises(TransportException, match="repeated page token"):
        await client.list_all_users()


async def test_create_user_returns_local_id(make_client) -> None:
    client, handler = make_client(lambda r: httpx.Response(200, json={"localId": "new-uid"}))

    local_id = await client.create_user(UserCreate(email="ada@example.com", password="secret1"))

    assert local_id == "new-uid"
    assert handler.requests[0].url.path == "/v1/projects/demo/accounts:signUp"
    assert json.loads(handler.requests[0].content) == {
        "email": "ada@example.com",
        "password": "secret1",
        "targetProjectId": "demo",
    }


async def test_create_user_email_exists(make_client) -> None:
    client, _ = make_client(lambda r: _error(400, "EMAIL_EXISTS"))
    with pytest.raises(UserAlreadyExistsException) as exc_info:
        await client.create_user(UserCreate(email="ada@example.com", password="secret1"))
    assert exc_info.value.details == {"email": "ada@example.com"}


async def test_create_user_weak_password(make_client) -> None:
    client, _ = make_client(
        lambda r: _error(400, "WEAK_PASSWORD : Password should be at least 6 characters")
    )
    with pytest.raises(ValidationException) as exc_info:
        await client.create_user(UserCreate(email="ada@example.com", password="123"))
    assert exc_info.value.details == {"field": "password"}


async def test_create_user_invalid_email(make_client) -> None:
    client, _ = make_client(lambda r: _error(400, "INVALID_EMAIL"))
    with pytest.raises(ValidationException) as exc_info:
        await client.create_user(UserCreate(email="nope", password="secret1"))
    assert exc_info.value.details == {"field": "email"}


async def test_create_user_without_local_id_raises(make_client) -> None:
    client, _ = make_client(lambda r: httpx.Response(200, json={}))
    with pytest.raises(TransportException):
        await client.create_user(UserCreate(email="ada@example.com", password="secret1"))


async def test_update_user_sends_only_supplied_fields(make_client) -> None:
    client, handler = make_client(lambda r: httpx.Response(200, json={"localId": "uid-1"}))
    await client.update_user(UserUpdate(local_id="uid-1", display_name="Ada L."))
    assert handler.requests[0].url.path == "/v1/projects/demo/accounts:update"
    assert json.loads(handler.requests[0].content) == {
        "localId": "uid-1",
        "displayName": "Ada L.",
        "targetProjectId": "demo",
    }


async def test_delete_user(make_client) -> None:
    client, handler = make_client(lambda r: httpx.Response(200, json={}))
    await client.delete_user("uid-1")
    assert handler.requests[0].url.path == "/v1/projects/demo/accounts:delete"
    assert json.loads(handler.requests[0].content) == {"localId": "uid-1", "targetProjectId": "demo"}


async def test_page_size_capped_at_provider_maximum(make_client) -> None:
    client, handler = make_client(lambda r: httpx.Response(200, json={}), page_size=5000)
    assert await client.list_all_users() == []
    assert handler.json_bodies()[0]["maxResults"] == 1000
