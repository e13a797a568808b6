"""Document store and identity directory interfaces (ports).

Implemented by the REST clients in firerest.infrastructure.firebase and by the
firebase-admin adapter in firerest.infrastructure.firebase.native. Consumers
depend on these protocols only; which implementation backs them is decided
once at startup (see firerest.infrastructure.firebase.client).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from firerest.application.dtos.document import (
        Document,
        OrderBy,
        StructuredQuery,
        WriteBatch,
        WriteResult,
    )
    from firerest.application.dtos.identity import IdentityUser, UserCreate, UserUpdate


class DocumentStore(Protocol):
    """Protocol for single-document CRUD, queries and atomic batches."""

    async def get_document(self, path: str, *, id_token: str | None = None) -> Document | None:
        """Return the document at path, or None when it does not exist."""

    async def list_collection(
        self,
        collection_id: str,
        order_by: list[OrderBy] | None = None,
        *,
        id_token: str | None = None,
    ) -> list[Document]:
        """Return every document in the collection (all pages, in order)."""

    async def run_query(
        self, query: StructuredQuery, *, id_token: str | None = None
    ) -> list[Document]:
        """Run a structured query and return all matching documents."""

    async def create_document(
        self,
        collection_id: str,
        fields: dict[str, Any],
        document_id: str | None = None,
        *,
        id_token: str | None = None,
    ) -> WriteResult:
        """Create a document; the server assigns an ID when document_id is None."""

    async def update_document(
        self, path: str, fields: dict[str, Any], *, id_token: str | None = None
    ) -> WriteResult:
        """Update only the given fields; other fields are left untouched."""

    async def delete_document(self, path: str, *, id_token: str | None = None) -> None:
        """Delete the document at path."""

    async def commit_writes(
        self, batch: WriteBatch, *, id_token: str | None = None
    ) -> list[WriteResult]:
        """Apply every write in the batch atomically (upsert semantics)."""


class IdentityDirectory(Protocol):
    """Protocol for the user directory (lookup, listing, mutations)."""

    async def lookup_by_session_token(self, id_token: str) -> IdentityUser:
        """Resolve the calling user from their session (ID) token."""

    async def get_user(self, local_id: str) -> IdentityUser | None:
        """Return user by local ID, or None."""

    async def list_all_users(self) -> list[IdentityUser]:
        """Return every user across all provider pages."""

    async def create_user(self, data: UserCreate) -> str:
        """Create a user; return the new local ID."""

    async def update_user(self, data: UserUpdate) -> None:
        """Update only the supplied fields of a user."""

    async def delete_user(self, local_id: str) -> None:
        """Delete a user by local ID."""
