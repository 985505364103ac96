"""Reactive DB - in-memory reactive document store with MongoDB-like queries."""

from .core.collection import ReactiveCollection
from .core.config import ReactiveConfig
from .core.database import ReactiveDatabase
from .core.errors import (
    DuplicateIdError,
    InvalidArgumentError,
    InvalidPatchError,
    ReactiveDBError,
    SubscriptionError,
)
from .core.types import (
    Change,
    DeleteResult,
    Document,
    DocumentId,
    InsertResult,
    OperationType,
    UpdateResult,
)

__all__ = [
    "ReactiveConfig",
    "ReactiveDBError",
    "InvalidArgumentError",
    "InvalidPatchError",
    "DuplicateIdError",
    "SubscriptionError",
    "ReactiveCollection",
    "ReactiveDatabase",
    "Change",
    "DeleteResult",
    "Document",
    "DocumentId",
    "InsertResult",
    "OperationType",
    "UpdateResult",
]
