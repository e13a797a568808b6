"""Application DTOs: plain dataclasses passed between clients and consumers."""

from firerest.application.dtos.credential import CachedAccessToken, ServiceAccountCredential
from firerest.application.dtos.document import (
    Document,
    FieldFilter,
    OrderBy,
    StructuredQuery,
    WriteBatch,
    WriteOperation,
    WriteResult,
)
from firerest.application.dtos.identity import IdentityUser, UserCreate, UserUpdate

__all__ = [
    "CachedAccessToken",
    "Document",
    "FieldFilter",
    "IdentityUser",
    "OrderBy",
    "ServiceAccountCredential",
    "StructuredQuery",
    "UserCreate",
    "UserUpdate",
    "WriteBatch",
    "WriteOperation",
    "WriteResult",
]
