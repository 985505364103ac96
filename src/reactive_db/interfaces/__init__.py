"""Protocols implemented by reactive-db components."""

from .collection import Collection
from .document_store import DocumentStore
from .notifier import Notifier

__all__ = ["Collection", "DocumentStore", "Notifier"]
