"""Protocol definition for a reactive collection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from ..core.types import (
        Change,
        DeleteResult,
        Document,
        InsertResult,
        Projection,
        Query,
        SortSpec,
        UpdateResult,
    )


@runtime_checkable
class Collection(Protocol):
    """Public API of a reactive collection."""

    def subscribe(self, watcher: object, callback: Callable[[list[Change]], Any]) -> None:
        """Receive batched changes after each quiet debounce window."""
        ...

    def unsubscribe(self, watcher: object) -> None:
        """Stop receiving changes."""
        ...

    async def count(self, query: Query | None = None) -> int:
        """Number of matching documents."""
        ...

    async def insert(self, data: Mapping | list[Mapping]) -> InsertResult:
        """Insert one document or a list of documents."""
        ...

    async def insert_one(self, data: Mapping) -> InsertResult:
        """Insert a single document."""
        ...

    async def insert_many(self, data: list[Mapping]) -> InsertResult:
        """Insert a list of documents."""
        ...

    async def find(
        self,
        query: Query | None = None,
        projection: Projection | None = None,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Document]:
        """Matching documents, sorted, skipped, limited and projected."""
        ...

    async def find_one(
        self,
        query: Query | None = None,
        projection: Projection | None = None,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
    ) -> Document | None:
        """First matching document or None."""
        ...

    async def update(self, query: Query, patch: Mapping, **options: Any) -> UpdateResult:
        """Patch every matching document, optionally upserting."""
        ...

    async def update_one(self, query: Query, patch: Mapping, **options: Any) -> UpdateResult:
        """Patch the first matching document."""
        ...

    async def update_many(self, query: Query, patch: Mapping, **options: Any) -> UpdateResult:
        """Patch every matching document."""
        ...

    async def remove(self, query: Query | None = None, **options: Any) -> DeleteResult:
        """Remove matching documents."""
        ...
