"""Thin Firestore REST API client (no firebase-admin).

Uses a CredentialManager (google-auth) for service account tokens and
Firestore REST v1. Every operation also accepts a caller-supplied id_token
so end-user-context calls run under that user's security rules instead of
the service identity.
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from dataclasses import replace
from typing import Any
from urllib.parse import quote

import httpx

from firerest.application.dtos.document import (
    Document,
    FieldFilter,
    OrderBy,
    StructuredQuery,
    WriteBatch,
    WriteResult,
)
from firerest.domain.exceptions import (
    CredentialUnavailableException,
    DocumentExistsException,
    TransportException,
    ValidationException,
)
from firerest.infrastructure.firebase._rest_encoding import (
    decode_fields,
    encode_document,
    encode_fields,
    encode_value,
)
from firerest.infrastructure.firebase._transport import RestTransport
from firerest.infrastructure.firebase.token_manager import AccessTokenProvider

logger = logging.getLogger(__name__)

FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"
DEFAULT_PAGE_SIZE = 300

_OP_MAP: dict[str, str] = {
    "==": "EQUAL",
    "!=": "NOT_EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "in": "IN",
    "not-in": "NOT_IN",
    "array_contains": "ARRAY_CONTAINS",
    "array-contains": "ARRAY_CONTAINS",
}

_INEQUALITY_OPS = frozenset(
    {
        "NOT_EQUAL",
        "LESS_THAN",
        "LESS_THAN_OR_EQUAL",
        "GREATER_THAN",
        "GREATER_THAN_OR_EQUAL",
        "NOT_IN",
    }
)

_SIMPLE_FIELD = re.compile(r"^[A-Za-z_][A-Za-z_0-9]*$")


def _field_path(key: str) -> str:
    """Quote a top-level field name for update masks when it is not a plain identifier."""
    if _SIMPLE_FIELD.match(key):
        return key
    return "`" + key.replace("\\", "\\\\").replace("`", "\\`") + "`"


def _wire_op(op: str) -> str:
    return _OP_MAP.get(op, op.upper())


def _to_document(doc: dict[str, Any]) -> Document:
    return Document(
        name=doc.get("name", ""),
        fields=decode_fields(doc.get("fields")),
        create_time=doc.get("createTime"),
        update_time=doc.get("updateTime"),
    )


def _to_write_result(out: Any) -> WriteResult:
    if not isinstance(out, dict):
        return WriteResult()
    return WriteResult(update_time=out.get("updateTime"), name=out.get("name"))


def _filter_to_wire(f: FieldFilter) -> dict[str, Any]:
    op = _wire_op(f.op)
    field = {"fieldPath": f.field_path}
    if f.value is None and op in ("EQUAL", "NOT_EQUAL"):
        unary = "IS_NULL" if op == "EQUAL" else "IS_NOT_NULL"
        return {"unaryFilter": {"field": field, "op": unary}}
    if op in ("IN", "NOT_IN"):
        value = {"arrayValue": {"values": [encode_value(v) for v in f.value]}}
    else:
        value = encode_value(f.value)
    return {"fieldFilter": {"field": field, "op": op, "value": value}}


def _effective_order(query: StructuredQuery) -> list[OrderBy]:
    """Ordering actually sent: inequality field first if unordered, __name__ last for cursors."""
    order = list(query.order_by)
    if not order:
        for f in query.filters:
            if _wire_op(f.op) in _INEQUALITY_OPS:
                order.append(OrderBy(f.field_path))
                break
    if not any(o.field_path == "__name__" for o in order):
        order.append(OrderBy("__name__", order[-1].direction if order else "ASCENDING"))
    return order


def _build_structured_query(query: StructuredQuery, order: list[OrderBy]) -> dict[str, Any]:
    structured: dict[str, Any] = {"from": [{"collectionId": query.collection_id}]}
    if len(query.filters) == 1:
        structured["where"] = _filter_to_wire(query.filters[0])
    elif query.filters:
        structured["where"] = {
            "compositeFilter": {
                "op": "AND",
                "filters": [_filter_to_wire(f) for f in query.filters],
            }
        }
    structured["orderBy"] = [
        {"field": {"fieldPath": o.field_path}, "direction": o.direction.upper()}
        for o in order
    ]
    return structured


def _raw_field(doc: dict[str, Any], field_path: str) -> dict[str, Any]:
    """Return the wire value at a (dotted) field path, or nullValue when absent."""
    fields = doc.get("fields") or {}
    parts = field_path.split(".")
    for part in parts[:-1]:
        fields = ((fields.get(part) or {}).get("mapValue") or {}).get("fields") or {}
    return fields.get(parts[-1]) or {"nullValue": None}


def _cursor_after(doc: dict[str, Any], order: list[OrderBy]) -> dict[str, Any]:
    values = [
        {"referenceValue": doc.get("name", "")}
        if o.field_path == "__name__"
        else _raw_field(doc, o.field_path)
        for o in order
    ]
    return {"values": values, "before": False}


class DocumentReference:
    """Reference to a single document; matches firestore API style."""

    def __init__(self, client: FirestoreRESTClient, path: str):
        self._client = client
        self._path = path

    @property
    def id(self) -> str:
        return self._path.rsplit("/", 1)[-1]

    @property
    def path(self) -> str:
        return self._path

    async def get(self) -> Document | None:
        """Fetch the document; returns None if not found."""
        return await self._client.get_document(self._path)

    async def set(self, data: dict[str, Any]) -> WriteResult:
        """Create or overwrite the document (PATCH without a field mask)."""
        return await self._client.set_document(self._path, data)

    async def update(self, data: dict[str, Any]) -> WriteResult:
        """Update only the given fields."""
        return await self._client.update_document(self._path, data)

    async def delete(self) -> None:
        """Delete the document."""
        await self._client.delete_document(self._path)


class _Query:
    """Fluent query builder for a collection; runs via runQuery with full pagination."""

    def __init__(self, client: FirestoreRESTClient, query: StructuredQuery):
        self._client = client
        self._query = query

    def where(self, field: str, op: str, value: Any) -> _Query:
        filters = (*self._query.filters, FieldFilter(field, op, value))
        return _Query(self._client, replace(self._query, filters=filters))

    def order_by(self, field: str, direction: str = "ASCENDING") -> _Query:
        order_by = (*self._query.order_by, OrderBy(field, direction))
        return _Query(self._client, replace(self._query, order_by=order_by))

    def limit(self, n: int) -> _Query:
        return _Query(self._client, replace(self._query, limit=n))

    async def get(self) -> list[Document]:
        return await self._client.run_query(self._query)

    async def stream(self) -> AsyncIterator[Document]:
        """Execute the query and yield documents."""
        for doc in await self._client.run_query(self._query):
            yield doc


class CollectionReference(_Query):
    """Reference to a collection; matches firestore API style."""

    def __init__(self, client: FirestoreRESTClient, collection_id: str):
        super().__init__(client, StructuredQuery(collection_id=collection_id))
        self._collection_id = collection_id

    def document(self, document_id: str) -> DocumentReference:
        return DocumentReference(self._client, f"{self._collection_id}/{document_id}")

    async def create(self, document_id: str | None, data: dict[str, Any]) -> WriteResult:
        """Create a document (DocumentExistsException if the ID is taken)."""
        return await self._client.create_document(self._collection_id, data, document_id)


class FirestoreRESTClient:
    """Lightweight Firestore client using the REST API (no firebase-admin)."""

    def __init__(
        self,
        project_id: str,
        tokens: AccessTokenProvider,
        *,
        transport: RestTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = FIRESTORE_BASE_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = 30.0,
    ) -> None:
        self._project_id = project_id
        self._tokens = tokens
        self._database = f"projects/{project_id}/databases/(default)"
        self._prefix = f"{self._database}/documents"
        self._base_url = base_url.rstrip("/")
        self._page_size = page_size
        self._transport = transport or RestTransport(http_client, timeout=timeout)
        self._owns_transport = transport is None

    @property
    def project_id(self) -> str:
        return self._project_id

    async def aclose(self) -> None:
        """Close the transport only if we created it."""
        if self._owns_transport:
            await self._transport.aclose()

    async def _token(self, id_token: str | None) -> str:
        if not self._project_id:
            raise CredentialUnavailableException("Firebase project id is not configured")
        return id_token or await self._tokens.get_access_token()

    def _document_url(self, path: str) -> str:
        return f"{self._base_url}/{self._prefix}/{quote(path.strip('/'), safe='/')}"

    def document_name(self, path: str) -> str:
        """Fully-qualified resource name for a path relative to documents/."""
        return f"{self._prefix}/{path.strip('/')}"

    def collection(self, collection_id: str) -> CollectionReference:
        return CollectionReference(self, collection_id)

    async def get_document(self, path: str, *, id_token: str | None = None) -> Document | None:
        """Fetch one document. A 404 is not an error: it returns None."""
        try:
            out = await self._transport.request(
                "GET", self._document_url(path), token=await self._token(id_token)
            )
        except TransportException as e:
            if e.status_code == 404:
                return None
            raise
        return _to_document(out)

    async def list_collection(
        self,
        collection_id: str,
        order_by: list[OrderBy] | None = None,
        *,
        id_token: str | None = None,
    ) -> list[Document]:
        """Return every document in the collection, across all pages."""
        query = StructuredQuery(collection_id=collection_id, order_by=tuple(order_by or ()))
        return await self.run_query(query, id_token=id_token)

    async def run_query(
        self, query: StructuredQuery, *, id_token: str | None = None
    ) -> list[Document]:
        """Run a structured query, following cursors until a short page.

        Each page is one runQuery request; the next page starts after the
        last document of the previous one. Results keep server order.
        """
        order = _effective_order(query)
        structured = _build_structured_query(query, order)
        url = f"{self._base_url}/{self._prefix}:runQuery"
        results: list[Document] = []
        cursor: dict[str, Any] | None = None
        while True:
            page_limit = self._page_size
            if query.limit is not None:
                page_limit = min(page_limit, query.limit - len(results))
            body_query = dict(structured, limit=page_limit)
            if cursor is not None:
                body_query["startAt"] = cursor
            resp = await self._transport.request(
                "POST",
                url,
                token=await self._token(id_token),
                body={"structuredQuery": body_query},
            )
            entries = resp if isinstance(resp, list) else ([resp] if resp else [])
            page = [e["document"] for e in entries if isinstance(e, dict) and "document" in e]
            results.extend(_to_document(doc) for doc in page)
            if len(page) < page_limit:
                break
            if query.limit is not None and len(results) >= query.limit:
                break
            cursor = _cursor_after(page[-1], order)
        logger.debug(
            "runQuery on %s returned %d documents", query.collection_id, len(results)
        )
        return results

    async def create_document(
        self,
        collection_id: str,
        fields: dict[str, Any],
        document_id: str | None = None,
        *,
        id_token: str | None = None,
    ) -> WriteResult:
        """Create a document; the server assigns an ID when document_id is None."""
        params = {"documentId": document_id} if document_id else None
        try:
            out = await self._transport.request(
                "POST",
                self._document_url(collection_id),
                token=await self._token(id_token),
                body=encode_document(fields),
                params=params,
            )
        except TransportException as e:
            if e.status_code == 409:
                raise DocumentExistsException(f"{collection_id}/{document_id}") from e
            raise
        return _to_write_result(out)

    async def update_document(
        self, path: str, fields: dict[str, Any], *, id_token: str | None = None
    ) -> WriteResult:
        """Update exactly the keys in fields (one updateMask.fieldPaths per key).

        Without a mask the PATCH would replace the whole document, so an
        empty update is rejected instead of sent.
        """
        if not fields:
            raise ValidationException("update_document requires at least one field", "fields")
        params = [("updateMask.fieldPaths", _field_path(key)) for key in fields]
        out = await self._transport.request(
            "PATCH",
            self._document_url(path),
            token=await self._token(id_token),
            body=encode_document(fields),
            params=params,
        )
        return _to_write_result(out)

    async def set_document(
        self, path: str, fields: dict[str, Any], *, id_token: str | None = None
    ) -> WriteResult:
        """Create or fully overwrite a document (PATCH without a mask)."""
        out = await self._transport.request(
            "PATCH",
            self._document_url(path),
            token=await self._token(id_token),
            body=encode_document(fields),
        )
        return _to_write_result(out)

    async def delete_document(self, path: str, *, id_token: str | None = None) -> None:
        """Delete the document. The server tolerates missing documents."""
        await self._transport.request(
            "DELETE", self._document_url(path), token=await self._token(id_token)
        )

    async def commit_writes(
        self, batch: WriteBatch, *, id_token: str | None = None
    ) -> list[WriteResult]:
        """Submit every write as an upsert in a single documents:commit request.

        The server applies all writes or none; the request is never split or
        retried here.
        """
        if not batch.writes:
            return []
        writes = [
            {
                "update": {
                    "name": self.document_name(w.target),
                    "fields": encode_fields(w.fields),
                }
            }
            for w in batch.writes
        ]
        out = await self._transport.request(
            "POST",
            f"{self._base_url}/{self._prefix}:commit",
            token=await self._token(id_token),
            body={"writes": writes},
        )
        results = out.get("writeResults", []) if isinstance(out, dict) else []
        logger.info("Committed %d writes", len(writes))
        return [_to_write_result(r) for r in results]
