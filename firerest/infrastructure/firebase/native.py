"""firebase-admin backed DocumentStore and IdentityDirectory.

Selected with FIREBASE_BACKEND=native. The Admin SDK is synchronous, so every
call runs in a worker thread. Values read back are normalized to what the
REST decoder returns (integers and timestamps as strings) and values written
are narrowed the way the REST encoder narrows them, so consumers see the same
data whichever backend is active. id_token arguments are accepted for
interface parity and ignored: the Admin SDK always acts as the service
identity.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials, firestore
from google.api_core.exceptions import AlreadyExists
from google.cloud.firestore_v1.base_query import FieldFilter as NativeFieldFilter
from google.cloud.firestore_v1.field_path import FieldPath

from firerest.application.dtos.credential import ServiceAccountCredential
from firerest.application.dtos.document import (
    Document,
    OrderBy,
    StructuredQuery,
    WriteBatch,
    WriteResult,
)
from firerest.application.dtos.identity import IdentityUser, UserCreate, UserUpdate
from firerest.core.config import Settings
from firerest.domain.exceptions import (
    AuthenticationException,
    CredentialUnavailableException,
    DocumentExistsException,
    UserAlreadyExistsException,
    ValidationException,
)
from firerest.infrastructure.firebase.client import BackendMode, FirebaseBackend
from firerest.shared.utils.datetime import from_timestamp_ms_utc, to_rfc3339

logger = logging.getLogger(__name__)

_NATIVE_OPS = {
    "EQUAL": "==",
    "NOT_EQUAL": "!=",
    "LESS_THAN": "<",
    "LESS_THAN_OR_EQUAL": "<=",
    "GREATER_THAN": ">",
    "GREATER_THAN_OR_EQUAL": ">=",
    "IN": "in",
    "NOT_IN": "not-in",
    "ARRAY_CONTAINS": "array_contains",
    "ARRAY-CONTAINS": "array_contains",
}


def _normalize(value: Any) -> Any:
    """Shape a value read via the Admin SDK like the REST decoder would."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, datetime):
        return to_rfc3339(value)
    if isinstance(value, Mapping):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize(v) for v in value]
    return value


def _narrow(value: Any) -> Any:
    """Apply the REST encoder's narrowing before writing through the Admin SDK."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)) and math.isfinite(value):
        return math.trunc(value)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return {str(k): _narrow(v) for k, v in value.items()}
    return str(value)


def _narrow_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {k: _narrow(v) for k, v in fields.items()}


def _write_result(result: Any, name: str | None = None) -> WriteResult:
    update_time = getattr(result, "update_time", None)
    return WriteResult(
        update_time=to_rfc3339(update_time) if update_time is not None else None,
        name=name,
    )


class NativeDocumentStore:
    """DocumentStore over google-cloud-firestore via firebase-admin."""

    def __init__(self, app: firebase_admin.App, project_id: str) -> None:
        self._db = firestore.client(app)
        self._prefix = f"projects/{project_id}/databases/(default)/documents"

    def _to_document(self, snapshot: Any) -> Document:
        return Document(
            name=f"{self._prefix}/{snapshot.reference.path}",
            fields=_normalize(snapshot.to_dict() or {}),
            create_time=to_rfc3339(snapshot.create_time) if snapshot.create_time else None,
            update_time=to_rfc3339(snapshot.update_time) if snapshot.update_time else None,
        )

    async def get_document(self, path: str, *, id_token: str | None = None) -> Document | None:
        snapshot = await asyncio.to_thread(self._db.document(path).get)
        if not snapshot.exists:
            return None
        return self._to_document(snapshot)

    async def list_collection(
        self,
        collection_id: str,
        order_by: list[OrderBy] | None = None,
        *,
        id_token: str | None = None,
    ) -> list[Document]:
        query = StructuredQuery(collection_id=collection_id, order_by=tuple(order_by or ()))
        return await self.run_query(query)

    async def run_query(
        self, query: StructuredQuery, *, id_token: str | None = None
    ) -> list[Document]:
        q = self._db.collection(query.collection_id)
        for f in query.filters:
            op = _NATIVE_OPS.get(f.op.upper(), f.op)
            q = q.where(filter=NativeFieldFilter(f.field_path, op, f.value))
        for o in query.order_by:
            direction = (
                firestore.Query.DESCENDING
                if o.direction.upper() == "DESCENDING"
                else firestore.Query.ASCENDING
            )
            q = q.order_by(o.field_path, direction=direction)
        if query.limit is not None:
            q = q.limit(query.limit)
        snapshots = await asyncio.to_thread(lambda: list(q.stream()))
        return [self._to_document(s) for s in snapshots]

    async def create_document(
        self,
        collection_id: str,
        fields: dict[str, Any],
        document_id: str | None = None,
        *,
        id_token: str | None = None,
    ) -> WriteResult:
        collection = self._db.collection(collection_id)
        data = _narrow_fields(fields)
        if document_id is None:
            update_time, ref = await asyncio.to_thread(collection.add, data)
            return WriteResult(update_time=to_rfc3339(update_time), name=f"{self._prefix}/{ref.path}")
        ref = collection.document(document_id)
        try:
            result = await asyncio.to_thread(ref.create, data)
        except AlreadyExists as e:
            raise DocumentExistsException(f"{collection_id}/{document_id}") from e
        return _write_result(result, f"{self._prefix}/{ref.path}")

    async def update_document(
        self, path: str, fields: dict[str, Any], *, id_token: str | None = None
    ) -> WriteResult:
        if not fields:
            raise ValidationException("update_document requires at least one field", "fields")
        merge = [FieldPath(key).to_api_repr() for key in fields]
        ref = self._db.document(path)
        result = await asyncio.to_thread(ref.set, _narrow_fields(fields), merge=merge)
        return _write_result(result)

    async def delete_document(self, path: str, *, id_token: str | None = None) -> None:
        await asyncio.to_thread(self._db.document(path).delete)

    async def commit_writes(
        self, batch: WriteBatch, *, id_token: str | None = None
    ) -> list[WriteResult]:
        if not batch.writes:
            return []
        native_batch = self._db.batch()
        for w in batch.writes:
            native_batch.set(self._db.document(w.target), _narrow_fields(w.fields))
        results = await asyncio.to_thread(native_batch.commit)
        return [_write_result(r) for r in results]


def _to_user(record: Any) -> IdentityUser:
    created_ms = getattr(record.user_metadata, "creation_timestamp", None)
    return IdentityUser(
        local_id=record.uid,
        email=record.email,
        display_name=record.display_name,
        created_at_utc=to_rfc3339(from_timestamp_ms_utc(created_ms)) if created_ms else None,
        disabled=bool(record.disabled),
    )


class NativeIdentityDirectory:
    """IdentityDirectory over firebase_admin.auth."""

    def __init__(self, app: firebase_admin.App) -> None:
        self._app = app

    async def lookup_by_session_token(self, id_token: str) -> IdentityUser:
        if not id_token:
            raise AuthenticationException("Missing session token")
        try:
            decoded = await asyncio.to_thread(auth.verify_id_token, id_token, self._app)
        except (auth.InvalidIdTokenError, auth.UserDisabledError, ValueError) as e:
            raise AuthenticationException("Invalid or expired session token") from e
        return IdentityUser(
            local_id=decoded["uid"],
            email=decoded.get("email"),
            display_name=decoded.get("name"),
        )

    async def get_user(self, local_id: str) -> IdentityUser | None:
        try:
            record = await asyncio.to_thread(auth.get_user, local_id, self._app)
        except auth.UserNotFoundError:
            return None
        return _to_user(record)

    async def list_all_users(self) -> list[IdentityUser]:
        def _list() -> list[IdentityUser]:
            page = auth.list_users(app=self._app)
            return [_to_user(u) for u in page.iterate_all()]

        return await asyncio.to_thread(_list)

    async def create_user(self, data: UserCreate) -> str:
        kwargs: dict[str, Any] = {"email": data.email, "password": data.password}
        if data.display_name:
            kwargs["display_name"] = data.display_name
        try:
            record = await asyncio.to_thread(lambda: auth.create_user(app=self._app, **kwargs))
        except auth.EmailAlreadyExistsError as e:
            raise UserAlreadyExistsException(data.email) from e
        except ValueError as e:
            raise ValidationException(str(e)) from e
        return record.uid

    async def update_user(self, data: UserUpdate) -> None:
        kwargs: dict[str, Any] = {}
        if data.email is not None:
            kwargs["email"] = data.email
        if data.password is not None:
            kwargs["password"] = data.password
        if data.display_name is not None:
            kwargs["display_name"] = data.display_name
        try:
            await asyncio.to_thread(lambda: auth.update_user(data.local_id, app=self._app, **kwargs))
        except auth.EmailAlreadyExistsError as e:
            raise UserAlreadyExistsException(data.email) from e
        except ValueError as e:
            raise ValidationException(str(e)) from e

    async def delete_user(self, local_id: str) -> None:
        await asyncio.to_thread(auth.delete_user, local_id, self._app)


def _initialize_app(
    settings: Settings, credential: ServiceAccountCredential | None
) -> firebase_admin.App:
    """Initialize (or reuse) a named Admin SDK app for this project.

    Emulator mode allows a project id with no signing key.
    """
    if credential is not None:
        project_id = credential.project_id
        cert = credentials.Certificate(credential.to_service_account_info())
        options = {"projectId": project_id, "storageBucket": credential.bucket}
    elif settings.emulator_mode and settings.project_id:
        project_id = settings.project_id
        cert = None
        options = {"projectId": project_id}
    else:
        raise CredentialUnavailableException(source="firebase-admin")
    name = f"firerest-{project_id}"
    try:
        return firebase_admin.get_app(name)
    except ValueError:
        return firebase_admin.initialize_app(cert, options, name=name)


def create_native_backend(
    settings: Settings, credential: ServiceAccountCredential | None
) -> FirebaseBackend:
    """Build the native backend; raises ValueError/CredentialUnavailableException when it cannot."""
    app = _initialize_app(settings, credential)
    project_id = app.project_id

    async def _close() -> None:
        firebase_admin.delete_app(app)

    logger.info("Firebase Admin SDK initialized for project %s", project_id)
    return FirebaseBackend(
        mode=BackendMode.NATIVE,
        documents=NativeDocumentStore(app, project_id),
        identity=NativeIdentityDirectory(app),
        project_id=project_id,
        closers=[_close],
    )
