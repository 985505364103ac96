"""Reactive collection - main public API.

Orchestrates the document store, query matcher, sort comparator, patch
application and change notifier.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .config import ReactiveConfig
from .errors import InvalidArgumentError
from .types import (
    DeleteResult,
    Document,
    InsertResult,
    OperationType,
    Projection,
    Query,
    SortSpec,
    UpdateResult,
)
from ..components.comparator import sort_documents
from ..components.document_store import SimpleDocumentStore
from ..components.matcher import compile_query
from ..components.notifier import ChangeNotifier, NotifierState
from ..components.patch import apply_patch, is_modifier_patch, upsert_base
from ..components.projection import project, validate_projection

if TYPE_CHECKING:
    from ..components.notifier import ChangeCallback
    from ..interfaces.document_store import DocumentStore
    from ..interfaces.notifier import Notifier

logger = logging.getLogger(__name__)


class ReactiveCollection:
    """In-memory document collection that notifies subscribers of changes.

    Args:
        name: Collection name, reported in every change
        config: Shared configuration (defaults to ``ReactiveConfig()``)

    Public API:
        - subscribe(watcher, callback) / unsubscribe(watcher)
        - count(query=None)
        - insert(data), insert_one(doc), insert_many(docs)
        - find(query, projection, sort=, skip=, limit=), find_one(...)
        - update(query, patch, sort=, skip=, limit=, upsert=),
          update_one(...), update_many(...)
        - remove(query, just_one=, sort=), remove_one(query)

    Query and mutation methods are coroutines. Their work is done
    synchronously before the first suspension point, so calls awaited
    in sequence observe each other in call order.

    Invariants:
        - ``_id`` never changes once assigned
        - A failed operation leaves the store unchanged
        - Documents returned without a projection are the stored objects
    """

    def __init__(self, name: str, config: ReactiveConfig | None = None):
        self._name = name
        self.config = config or ReactiveConfig()
        self._store: DocumentStore = SimpleDocumentStore(first_id=self.config.first_id)
        self._notifier: Notifier = ChangeNotifier(
            name,
            self._store.get,
            delay_seconds=self.config.notify_delay_seconds,
            snapshot=self.config.snapshot_documents,
        )
        logger.debug(f"Created collection {name!r}")

    @property
    def name(self) -> str:
        return self._name

    @property
    def notification_state(self) -> NotifierState:
        return self._notifier.state

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r}, documents={len(self._store)})"

    # -- Subscriptions --

    def subscribe(self, watcher: object, callback: ChangeCallback) -> None:
        """Call ``callback(changes)`` after each debounce window with changes.

        A watcher holds one subscription per collection; subscribing
        again replaces its callback. ``changes`` is a list of ``Change``
        objects, one per affected document, in the order they happened.
        """
        self._notifier.subscribe(watcher, callback)

    def unsubscribe(self, watcher: object) -> None:
        """Remove ``watcher`` from the collection's subscribers."""
        self._notifier.unsubscribe(watcher)

    def is_subscribed(self, watcher: object) -> bool:
        return self._notifier.is_subscribed(watcher)

    def flush_notifications(self) -> None:
        """Deliver pending changes immediately."""
        self._notifier.flush()

    def close(self) -> None:
        """Cancel pending notifications."""
        self._notifier.close()

    # -- Read operations --

    async def count(self, query: Query | None = None) -> int:
        """Return the number of documents matching ``query`` (all by default)."""
        if query is None:
            return len(self._store)
        compiled = compile_query(query)
        return sum(1 for document in self._store if compiled.matches(document))

    async def find(
        self,
        query: Query | None = None,
        projection: Projection | None = None,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Document]:
        """Return every document matching ``query``.

        Matches are sorted by ``sort``, then the first ``skip`` are
        dropped, then the rest is cut to ``limit`` (0 means no limit),
        then ``projection`` is applied.

        Raises:
            InvalidArgumentError: On a malformed query, projection, sort,
                skip or limit
        """
        return self._find(query, projection, sort=sort, skip=skip, limit=limit)

    async def find_one(
        self,
        query: Query | None = None,
        projection: Projection | None = None,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
    ) -> Document | None:
        """Same as ``find`` limited to one result; None when nothing matches."""
        results = self._find(query, projection, sort=sort, skip=skip, limit=1)
        return results[0] if results else None

    def _find(
        self,
        query: Any,
        projection: Any,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Document]:
        compiled = compile_query({} if query is None else query)
        validate_projection(projection)
        _check_count("skip", skip)
        _check_count("limit", limit)

        results = sort_documents([doc for doc in self._store if compiled.matches(doc)], sort)
        if skip > 0:
            results = results[skip:]
        if limit > 0:
            results = results[:limit]

        if projection is not None:
            return [project(doc, projection) for doc in results]
        return results

    # -- Write operations --

    async def insert(self, data: Mapping | list[Mapping]) -> InsertResult:
        """Insert one document or a list of documents.

        Documents without ``_id`` get the next id of the collection,
        written onto the given object.

        Raises:
            InvalidArgumentError: If ``data`` is neither a mapping nor a list
            DuplicateIdError: If an ``_id`` already exists; nothing is inserted
        """
        if isinstance(data, Mapping):
            return self._insert([data])
        if isinstance(data, (list, tuple)):
            return self._insert(list(data))
        raise InvalidArgumentError(f'"data" must be a mapping or a list, got {type(data).__name__}')

    async def insert_one(self, data: Mapping) -> InsertResult:
        """Insert a single document."""
        if isinstance(data, (list, tuple)):
            raise InvalidArgumentError('"data" can\'t be a list')
        if not isinstance(data, Mapping):
            raise InvalidArgumentError(f'"data" must be a mapping, got {type(data).__name__}')
        return self._insert([data])

    async def insert_many(self, data: list[Mapping]) -> InsertResult:
        """Insert a list of documents as one batch."""
        if not isinstance(data, (list, tuple)):
            raise InvalidArgumentError(f'"data" must be a list, got {type(data).__name__}')
        return self._insert(list(data))

    def _insert(self, documents: list[Any]) -> InsertResult:
        batch = []
        for document in documents:
            if not isinstance(document, Mapping):
                raise InvalidArgumentError(f"documents must be mappings, got {type(document).__name__}")
            batch.append(document if isinstance(document, dict) else dict(document))

        ids = self._store.insert(batch)
        self._notifier.notify(ids, OperationType.INSERT)
        logger.debug(f"Inserted {len(ids)} documents into {self._name!r}")
        return InsertResult(ids)

    async def update(
        self,
        query: Query,
        patch: Mapping,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
        upsert: bool = False,
    ) -> UpdateResult:
        """Apply ``patch`` to every document matching ``query``.

        ``patch`` is either a replacement document or a mapping of
        modifier operators (``$set``, ``$inc``, ``$push``...). ``sort``,
        ``skip`` and ``limit`` select which matches are updated. With
        ``upsert``, a query that matches nothing inserts a document built
        from the query's equality fields with the patch applied.

        Raises:
            InvalidArgumentError: On a malformed query or patch
        """
        return self._update(query, patch, sort=sort, skip=skip, limit=limit, upsert=upsert)

    async def update_one(
        self,
        query: Query,
        patch: Mapping,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        upsert: bool = False,
    ) -> UpdateResult:
        """Same as ``update`` but only the first match is modified."""
        return self._update(query, patch, sort=sort, skip=skip, limit=1, upsert=upsert)

    async def update_many(
        self,
        query: Query,
        patch: Mapping,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
        upsert: bool = False,
    ) -> UpdateResult:
        """Same as ``update``."""
        return self._update(query, patch, sort=sort, skip=skip, limit=limit, upsert=upsert)

    def _update(
        self,
        query: Any,
        patch: Any,
        *,
        sort: SortSpec | None,
        skip: int,
        limit: int,
        upsert: bool,
    ) -> UpdateResult:
        if not isinstance(patch, Mapping):
            raise InvalidArgumentError(f'"patch" must be a mapping, got {type(patch).__name__}')
        is_modifier_patch(patch)

        targets = self._find(query, None, sort=sort, skip=skip, limit=limit)

        if not targets:
            if not upsert:
                self._notifier.notify([], OperationType.UPDATE)
                return UpdateResult(matched_count=0, modified_count=0)
            document = apply_patch(upsert_base(query), patch, is_upsert=True)
            ids = self._store.insert([document])
            self._notifier.notify(ids, OperationType.INSERT)
            logger.debug(f"Upserted document {ids[0]!r} into {self._name!r}")
            return UpdateResult(matched_count=0, modified_count=0, upserted_id=ids[0])

        # Patch every target before writing any, so a bad patch changes nothing
        patched = [apply_patch(document, patch) for document in targets]

        modified = 0
        for document, replacement in zip(targets, patched):
            if _content(document) != _content(replacement):
                modified += 1
            self._store.replace_content(document, replacement)

        self._notifier.notify([document["_id"] for document in targets], OperationType.UPDATE)
        logger.debug(f"Updated {len(targets)} documents in {self._name!r} ({modified} modified)")
        return UpdateResult(matched_count=len(targets), modified_count=modified)

    async def remove(
        self,
        query: Query | None = None,
        *,
        just_one: bool = False,
        sort: SortSpec | None = None,
    ) -> DeleteResult:
        """Remove every document matching ``query``.

        With ``just_one`` only the first match is removed; ``sort`` then
        decides which document comes first.
        """
        targets = self._find(query, None, sort=sort, limit=1 if just_one else 0)

        removed = [document["_id"] for document in targets if self._store.remove_by_id(document["_id"])]

        self._notifier.notify(removed, OperationType.REMOVE)
        logger.debug(f"Removed {len(removed)} documents from {self._name!r}")
        return DeleteResult(deleted_count=len(removed))

    async def remove_one(self, query: Query | None = None, *, sort: SortSpec | None = None) -> DeleteResult:
        """Remove the first document matching ``query``."""
        return await self.remove(query, just_one=True, sort=sort)


def _check_count(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an int, got {value!r}")
    if value < 0:
        logger.warning(f"Ignoring negative {name}={value}")


def _content(document: Mapping) -> dict:
    return {key: value for key, value in document.items() if key != "_id"}
