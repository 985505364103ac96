"""In-memory document store.

Uses sortedcontainers.SortedDict keyed by insertion sequence so documents
are always iterated in store order.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING

from sortedcontainers import SortedDict

from ..core.errors import DuplicateIdError, InvalidArgumentError

if TYPE_CHECKING:
    from ..core.types import Document, DocumentId

logger = logging.getLogger(__name__)


class SimpleDocumentStore:
    """Ordered sequence of documents with unique ``_id`` values.

    Args:
        first_id: First value of the default-id counter

    Invariants:
        - Iteration order is insertion order; removal never reorders
        - Every stored document has an ``_id`` unique within the store
        - The id counter only moves forward, even after removals
        - A failed batch insert leaves the store untouched
    """

    def __init__(self, first_id: int = 0):
        """Initialize empty store."""
        self._documents: SortedDict = SortedDict()
        self._positions: dict[DocumentId, int] = {}
        self._sequence: int = 0
        self._last_id: int = first_id

    def next_id(self) -> DocumentId:
        """Return the decimal string of the id counter, then advance it."""
        document_id = str(self._last_id)
        self._last_id += 1
        return document_id

    def insert(self, documents: Sequence[Document]) -> list[DocumentId]:
        """Append a batch of documents, assigning ``_id`` where missing.

        The batch is validated in full before anything is written.
        Documents are stored as given (not copied), so a generated
        ``_id`` is visible on the caller's object.

        Returns:
            The ``_id`` of every document, in batch order

        Raises:
            InvalidArgumentError: If an element is not a mapping, carries
                an unhashable ``_id`` or appears twice in the batch
            DuplicateIdError: If an explicit ``_id`` is already stored or
                repeated within the batch
        """
        explicit: set[DocumentId] = set()
        seen: set[int] = set()
        for document in documents:
            if not isinstance(document, Mapping):
                raise InvalidArgumentError(f"documents must be mappings, got {type(document).__name__}")
            if id(document) in seen:
                raise InvalidArgumentError("the same document object appears more than once in the batch")
            seen.add(id(document))
            if "_id" not in document:
                continue
            document_id = document["_id"]
            if document_id is None or not isinstance(document_id, Hashable):
                raise InvalidArgumentError(f"_id must be a hashable value, got {document_id!r}")
            if document_id in self._positions or document_id in explicit:
                raise DuplicateIdError(document_id)
            explicit.add(document_id)

        ids: list[DocumentId] = []
        for document in documents:
            if "_id" not in document:
                document_id = self.next_id()
                while document_id in self._positions or document_id in explicit:
                    document_id = self.next_id()
                document["_id"] = document_id
            self._append(document)
            ids.append(document["_id"])

        logger.debug(f"Inserted {len(ids)} documents")
        return ids

    def _append(self, document: Document) -> None:
        self._sequence += 1
        self._documents[self._sequence] = document
        self._positions[document["_id"]] = self._sequence

    def remove_by_id(self, document_id: DocumentId) -> bool:
        """Remove the document with ``document_id``; return whether it existed."""
        try:
            sequence = self._positions.pop(document_id)
        except (KeyError, TypeError):
            return False
        del self._documents[sequence]
        return True

    def replace_content(self, document: Document, replacement: Mapping) -> None:
        """Overwrite ``document`` in place with ``replacement``, keeping ``_id``.

        Every field but ``_id`` is cleared, then every field of the
        replacement but ``_id`` is set. Aliases of ``document`` observe
        the new content.
        """
        for key in [key for key in document if key != "_id"]:
            del document[key]
        for key, value in replacement.items():
            if key != "_id":
                document[key] = value

    def get(self, document_id: DocumentId) -> Document | None:
        """Return the stored document with ``document_id`` or None."""
        try:
            sequence = self._positions.get(document_id)
        except TypeError:
            return None
        if sequence is None:
            return None
        return self._documents[sequence]

    def clear(self) -> None:
        """Drop every document; the id counter is kept."""
        self._documents.clear()
        self._positions.clear()

    def __contains__(self, document_id: object) -> bool:
        try:
            return document_id in self._positions
        except TypeError:
            return False

    def __iter__(self) -> Iterator[Document]:
        return iter(list(self._documents.values()))

    def __len__(self) -> int:
        return len(self._documents)
