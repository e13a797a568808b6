"""Tests for select_backend (native / REST / unconfigured decision at startup)."""

import httpx
import pytest

from firerest.application.dtos.document import WriteBatch
from firerest.domain.exceptions import CredentialUnavailableException
from firerest.infrastructure.firebase._identity_client import IdentityToolkitClient
from firerest.infrastructure.firebase._rest_client import FirestoreRESTClient
from firerest.infrastructure.firebase.client import BackendMode, FirebaseBackend, select_backend


def _fixed(credential):
    return (lambda settings: credential,)


async def test_credential_selects_rest(make_settings, credential) -> None:
    backend = select_backend(make_settings(), resolvers=_fixed(credential))
    try:
        assert backend.mode is BackendMode.REST
        assert backend.project_id == "demo"
        assert isinstance(backend.documents, FirestoreRESTClient)
        assert isinstance(backend.identity, IdentityToolkitClient)
    finally:
        await backend.aclose()


async def test_no_credential_is_unconfigured_and_fails_fast(make_settings) -> None:
    requests: list[httpx.Request] = []
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda r: requests.append(r) or httpx.Response(200, json={}))
    )
    backend = select_backend(make_settings(), http_client=http, resolvers=())

    assert backend.mode is BackendMode.UNCONFIGURED
    assert backend.project_id is None
    with pytest.raises(CredentialUnavailableException):
        await backend.documents.get_document("users/u1")
    with pytest.raises(CredentialUnavailableException):
        await backend.identity.list_all_users()
    assert requests == []

    await backend.aclose()
    assert not http.is_closed
    await http.aclose()


async def test_unconfigured_rejects_caller_token_without_request(make_settings) -> None:
    """A caller-supplied id_token does not bypass the unconfigured state."""
    requests: list[httpx.Request] = []
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda r: requests.append(r) or httpx.Response(200, json={}))
    )
    backend = select_backend(make_settings(), http_client=http, resolvers=())

    with pytest.raises(CredentialUnavailableException):
        await backend.documents.get_document("users/u1", id_token="user-token")
    with pytest.raises(CredentialUnavailableException):
        await backend.documents.commit_writes(
            WriteBatch().set("users/u1", {"a": 1}), id_token="user-token"
        )
    with pytest.raises(CredentialUnavailableException):
        await backend.identity.lookup_by_session_token("user-token")
    assert requests == []
    await http.aclose()


async def test_emulator_without_project_id_fails_fast(make_settings) -> None:
    requests: list[httpx.Request] = []
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda r: requests.append(r) or httpx.Response(200, json={}))
    )
    settings = make_settings(
        firestore_emulator_host="localhost:8080", firebase_auth_emulator_host="localhost:9099"
    )
    backend = select_backend(settings, http_client=http, resolvers=())

    assert backend.mode is BackendMode.UNCONFIGURED
    with pytest.raises(CredentialUnavailableException):
        await backend.documents.get_document("users/u1")
    with pytest.raises(CredentialUnavailableException):
        await backend.identity.list_all_users()
    assert requests == []
    await http.aclose()


async def test_api_key_verifies_session_without_service_account(make_settings) -> None:
    requests: list[httpx.Request] = []

    def responder(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"users": [{"localId": "uid-1", "email": "ada@example.com"}]})

    http = httpx.AsyncClient(transport=httpx.MockTransport(responder))
    backend = select_backend(
        make_settings(firebase_api_key="web-key"), http_client=http, resolvers=()
    )

    assert backend.mode is BackendMode.UNCONFIGURED
    user = await backend.identity.lookup_by_session_token("id-token")
    assert user.local_id == "uid-1"
    (request,) = requests
    assert request.url.path == "/v1/accounts:lookup"
    assert request.url.params["key"] == "web-key"
    assert "authorization" not in request.headers
    with pytest.raises(CredentialUnavailableException):
        await backend.identity.list_all_users()
    await http.aclose()


async def test_malformed_credential_is_logged_and_unconfigured(make_settings, caplog) -> None:
    def broken(settings):
        raise CredentialUnavailableException("FIREBASE_SERVICE_ACCOUNT_KEY is not valid JSON")

    backend = select_backend(make_settings(), resolvers=(broken,))
    assert backend.mode is BackendMode.UNCONFIGURED
    assert "configured but unusable" in caplog.text
    await backend.aclose()


async def test_emulator_uses_static_token_and_local_urls(make_settings) -> None:
    requests: list[httpx.Request] = []

    def responder(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if "accounts:query" in request.url.path:
            return httpx.Response(200, json={"userInfo": [{"localId": "emu-user"}]})
        return httpx.Response(404, json={"error": {"message": "not found"}})

    http = httpx.AsyncClient(transport=httpx.MockTransport(responder))
    settings = make_settings(
        firebase_project_id="demo-emu",
        firestore_emulator_host="localhost:8080",
        firebase_auth_emulator_host="localhost:9099",
    )
    backend = select_backend(settings, http_client=http, resolvers=())

    assert backend.mode is BackendMode.REST
    assert await backend.documents.get_document("users/u1") is None
    users = await backend.identity.list_all_users()
    assert [u.local_id for u in users] == ["emu-user"]

    firestore_request, identity_request = requests
    assert firestore_request.url.host == "localhost"
    assert firestore_request.url.port == 8080
    assert firestore_request.url.path.startswith("/v1/projects/demo-emu/")
    assert firestore_request.headers["authorization"] == "Bearer owner"
    assert identity_request.url.port == 9099
    assert identity_request.url.path == (
        "/identitytoolkit.googleapis.com/v1/projects/demo-emu/accounts:query"
    )
    assert identity_request.headers["authorization"] == "Bearer owner"
    await http.aclose()


async def test_native_factory_success_is_used(make_settings, credential) -> None:
    native = FirebaseBackend(
        mode=BackendMode.NATIVE, documents=object(), identity=object(), project_id="demo"
    )
    received = []

    def factory(settings, cred):
        received.append(cred)
        return native

    backend = select_backend(make_settings(), native_factory=factory, resolvers=_fixed(credential))
    assert backend is native
    assert received == [credential]


async def test_native_factory_failure_falls_back_to_rest(make_settings, credential, caplog) -> None:
    def factory(settings, cred):
        raise ValueError("The default Firebase app already exists.")

    backend = select_backend(make_settings(), native_factory=factory, resolvers=_fixed(credential))
    assert backend.mode is BackendMode.REST
    assert "using REST fallback" in caplog.text
    await backend.aclose()


async def test_native_factory_without_credential_falls_back(make_settings) -> None:
    def factory(settings, cred):
        raise CredentialUnavailableException(source="firebase-admin")

    backend = select_backend(make_settings(), native_factory=factory, resolvers=())
    assert backend.mode is BackendMode.UNCONFIGURED
    await backend.aclose()


async def test_backend_aclose_runs_closers_once(make_settings) -> None:
    closed = []

    async def closer() -> None:
        closed.append(True)

    backend = FirebaseBackend(
        mode=BackendMode.REST, documents=object(), identity=object(), closers=[closer]
    )
    await backend.aclose()
    await backend.aclose()
    assert closed == [True]
