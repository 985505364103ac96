"""Protocol definition for the document store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from ..core.types import Document, DocumentId


@runtime_checkable
class DocumentStore(Protocol):
    """Ordered, id-unique sequence of documents."""

    def next_id(self) -> DocumentId:
        """Return the next default ``_id`` and advance the counter."""
        ...

    def insert(self, documents: Sequence[Document]) -> list[DocumentId]:
        """Append a batch atomically; assign missing ids; reject duplicates."""
        ...

    def remove_by_id(self, document_id: DocumentId) -> bool:
        """Remove the document with this id; return whether it existed."""
        ...

    def replace_content(self, document: Document, replacement: Mapping) -> None:
        """Overwrite a stored document in place, keeping its ``_id``."""
        ...

    def get(self, document_id: DocumentId) -> Document | None:
        """Return the stored document with this id, or None."""
        ...

    def __iter__(self) -> Iterator[Document]:
        """Iterate documents in store order."""
        ...

    def __len__(self) -> int:
        """Return the number of stored documents."""
        ...
