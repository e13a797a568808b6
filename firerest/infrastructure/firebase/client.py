"""Backend selection: native Admin SDK, REST fallback, or unconfigured.

select_backend() is called once by the application lifespan. Its result is
stored on app.state and handed to consumers through dependencies; it is never
re-evaluated per request.

Credentials come from the resolver chain in credentials.py. With
FIREBASE_BACKEND=native the firebase-admin adapter is tried first and the
REST clients take over when it cannot be constructed. With no usable
credentials the REST clients are still wired, but their token provider
raises CredentialUnavailableException before any request is sent. A client
with no project id refuses every call the same way. The one exception is
session-token lookup, which can use the web API key (FIREBASE_API_KEY).
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

import httpx
from pydantic import SecretStr

from firerest.application.dtos.credential import ServiceAccountCredential
from firerest.application.interfaces.stores import DocumentStore, IdentityDirectory
from firerest.core.config import Settings
from firerest.domain.exceptions import CredentialUnavailableException
from firerest.infrastructure.firebase._identity_client import (
    IDENTITY_TOOLKIT_BASE_URL,
    IdentityToolkitClient,
)
from firerest.infrastructure.firebase._rest_client import FIRESTORE_BASE_URL, FirestoreRESTClient
from firerest.infrastructure.firebase._transport import RestTransport
from firerest.infrastructure.firebase.credentials import (
    DEFAULT_RESOLVERS,
    CredentialResolver,
    resolve_service_account,
)
from firerest.infrastructure.firebase.token_manager import (
    AccessTokenProvider,
    CredentialManager,
    StaticTokenProvider,
)

logger = logging.getLogger(__name__)


class BackendMode(str, enum.Enum):
    NATIVE = "native"
    REST = "rest"
    UNCONFIGURED = "unconfigured"


@dataclass
class FirebaseBackend:
    """The store and directory chosen at startup, plus what must be closed at shutdown."""

    mode: BackendMode
    documents: DocumentStore
    identity: IdentityDirectory
    project_id: str | None = None
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def aclose(self) -> None:
        for close in self.closers:
            await close()
        self.closers.clear()


NativeFactory = Callable[[Settings, "ServiceAccountCredential | None"], FirebaseBackend]


def _secret(value: SecretStr | None) -> str | None:
    if value is None:
        return None
    return value.get_secret_value().strip() or None


def _emulator_url(host: str, path: str) -> str:
    return f"http://{host.removeprefix('http://').rstrip('/')}{path}"


def _build_rest_backend(
    settings: Settings,
    credential: ServiceAccountCredential | None,
    http_client: httpx.AsyncClient | None,
) -> FirebaseBackend:
    project_id = credential.project_id if credential else (settings.project_id or "")
    manager = CredentialManager(credential)
    emulator_tokens = StaticTokenProvider()

    firestore_url = FIRESTORE_BASE_URL
    firestore_tokens: AccessTokenProvider = manager
    if settings.firestore_emulator_host:
        firestore_url = _emulator_url(settings.firestore_emulator_host, "/v1")
        firestore_tokens = emulator_tokens
    identity_url = IDENTITY_TOOLKIT_BASE_URL
    identity_tokens: AccessTokenProvider = manager
    if settings.firebase_auth_emulator_host:
        identity_url = _emulator_url(
            settings.firebase_auth_emulator_host, "/identitytoolkit.googleapis.com/v1"
        )
        identity_tokens = emulator_tokens

    # Without a service account the web API key can still verify session tokens.
    api_key = None
    if credential is None and not settings.firebase_auth_emulator_host:
        api_key = _secret(settings.firebase_api_key)

    if credential is not None:
        mode = BackendMode.REST
    elif settings.emulator_mode and project_id:
        mode = BackendMode.REST
    else:
        mode = BackendMode.UNCONFIGURED

    transport = RestTransport(http_client, timeout=settings.firebase_request_timeout_seconds)
    documents = FirestoreRESTClient(
        project_id,
        firestore_tokens,
        transport=transport,
        base_url=firestore_url,
        page_size=settings.firebase_query_page_size,
    )
    identity = IdentityToolkitClient(
        project_id,
        identity_tokens,
        transport=transport,
        base_url=identity_url,
        page_size=settings.firebase_list_users_page_size,
        api_key=api_key,
    )
    return FirebaseBackend(
        mode=mode,
        documents=documents,
        identity=identity,
        project_id=project_id or None,
        closers=[transport.aclose],
    )


def select_backend(
    settings: Settings,
    *,
    native_factory: NativeFactory | None = None,
    http_client: httpx.AsyncClient | None = None,
    resolvers: Sequence[CredentialResolver] = DEFAULT_RESOLVERS,
) -> FirebaseBackend:
    """Decide once which implementation backs the document store and identity directory.

    Args:
        settings: Loaded settings.
        native_factory: Builds the native backend; defaults to the firebase-admin
            adapter when settings.firebase_backend is "native".
        http_client: Optional shared httpx client for the REST clients (not closed here).
        resolvers: Credential resolver chain, in precedence order.

    Returns:
        FirebaseBackend in NATIVE, REST or UNCONFIGURED mode.
    """
    try:
        credential = resolve_service_account(settings, resolvers)
    except CredentialUnavailableException:
        logger.exception("Firebase service account is configured but unusable")
        credential = None

    if native_factory is None and settings.firebase_backend == "native":
        from firerest.infrastructure.firebase.native import create_native_backend

        native_factory = create_native_backend

    if native_factory is not None:
        try:
            backend = native_factory(settings, credential)
        except (CredentialUnavailableException, ValueError) as e:
            logger.warning("Native Firebase client unavailable, using REST fallback: %s", e)
        else:
            logger.info("Firebase backend: native (project %s)", backend.project_id)
            return backend

    backend = _build_rest_backend(settings, credential, http_client)
    if backend.mode is BackendMode.UNCONFIGURED:
        logger.warning(
            "No Firebase service account configured; document and identity operations will fail"
        )
        if settings.firebase_api_key and not settings.firebase_auth_emulator_host:
            logger.info("Session tokens will be verified with the Firebase web API key")
    else:
        logger.info("Firebase backend: REST (project %s)", backend.project_id)
    return backend
