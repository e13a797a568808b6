"""DTOs for document store operations (no dependency on the wire format)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Document:
    """Decoded document: fully-qualified name plus plain field values."""

    name: str
    fields: dict[str, Any]
    create_time: str | None = None
    update_time: str | None = None

    @property
    def id(self) -> str:
        return self.name.rsplit("/", 1)[-1] if self.name else ""

    def to_dict(self) -> dict[str, Any]:
        return dict(self.fields)


@dataclass(frozen=True)
class WriteResult:
    """Server acknowledgement of a single write."""

    update_time: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class FieldFilter:
    """Single field comparison; op is symbolic ('==') or wire form ('EQUAL')."""

    field_path: str
    op: str
    value: Any


@dataclass(frozen=True)
class OrderBy:
    field_path: str
    direction: str = "ASCENDING"


@dataclass(frozen=True)
class StructuredQuery:
    """Collection scan with AND-ed filters and ordering. Used only to build runQuery."""

    collection_id: str
    filters: tuple[FieldFilter, ...] = ()
    order_by: tuple[OrderBy, ...] = ()
    limit: int | None = None


@dataclass(frozen=True)
class WriteOperation:
    """Upsert of fields into the document at target (path relative to documents/)."""

    target: str
    fields: dict[str, Any]


@dataclass
class WriteBatch:
    """Ordered writes submitted as one atomic commit."""

    writes: list[WriteOperation] = field(default_factory=list)

    def set(self, target: str, fields: dict[str, Any]) -> WriteBatch:
        self.writes.append(WriteOperation(target=target, fields=fields))
        return self

    def __len__(self) -> int:
        return len(self.writes)
