"""Common type definitions for reactive-db.

Defines the document, query and change types used across all components.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Core primitive types
DocumentId = str
Document = dict[str, Any]
Query = Mapping[str, Any]
Projection = Mapping[str, Any]
SortSpec = Mapping[str, int] | Sequence[tuple[str, int]]


class OperationType(Enum):
    """Kind of mutation a change describes."""

    INSERT = "insert"
    UPDATE = "update"
    REMOVE = "remove"


@dataclass(frozen=True)
class Change:
    """One document's insert/update/remove within a notification cycle.

    ``full_document`` is set for inserts and updates and is None for
    removals (or when the document could not be found).
    """

    collection: str
    document_id: DocumentId
    operation_type: OperationType
    full_document: Document | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the change-stream shape of this change."""
        out: dict[str, Any] = {
            "collection": self.collection,
            "_id": self.document_id,
            "operationType": self.operation_type.value,
        }
        if self.full_document is not None:
            out["fullDocument"] = self.full_document
        return out


@dataclass
class InsertResult:
    """Outcome of an insert call."""

    inserted_ids: list[DocumentId] = field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return len(self.inserted_ids)


@dataclass
class UpdateResult:
    """Outcome of an update call."""

    matched_count: int
    modified_count: int
    upserted_id: DocumentId | None = None


@dataclass
class DeleteResult:
    """Outcome of a remove call."""

    deleted_count: int
