"""Reactive database - registry of named collections.

Data is held in process memory only and is lost on restart. Nothing is
indexed; every query scans its collection.
"""

from __future__ import annotations

import logging

from .collection import ReactiveCollection
from .config import ReactiveConfig
from .errors import InvalidArgumentError

logger = logging.getLogger(__name__)


class ReactiveDatabase:
    """Lazily creates and caches one collection per name.

    Args:
        config: Configuration handed to every collection created here
    """

    def __init__(self, config: ReactiveConfig | None = None):
        self.config = config or ReactiveConfig()
        self.collections: dict[str, ReactiveCollection] = {}

    async def connect(self) -> None:
        """Compatibility with MongoDB clients; does nothing."""
        logger.info("connect() called on in-memory database")

    def show_collections(self) -> list[str]:
        """Return every known collection name in creation order."""
        return list(self.collections)

    def get_collection(self, name: str) -> ReactiveCollection:
        """Return the collection called ``name``, creating it on first use."""
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError(f"collection name must be a non-empty string, got {name!r}")
        if name not in self.collections:
            self.collections[name] = ReactiveCollection(name, self.config)
            logger.info(f"Created collection {name!r}")
        return self.collections[name]

    def __getitem__(self, name: str) -> ReactiveCollection:
        return self.get_collection(name)

    def __contains__(self, name: object) -> bool:
        return name in self.collections

    def close(self) -> None:
        """Cancel pending notifications of every collection."""
        logger.info(f"Closing database ({len(self.collections)} collections)")
        for collection in self.collections.values():
            collection.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
