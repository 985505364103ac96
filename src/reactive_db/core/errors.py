"""Exception hierarchy for reactive-db.

Defines all custom exceptions raised by collections and the database.
"""

from __future__ import annotations


class ReactiveDBError(Exception):
    """Base exception for all reactive-db errors."""
    pass


class InvalidArgumentError(ReactiveDBError, ValueError):
    """Raised when a document, query, patch or option has the wrong shape."""
    pass


class InvalidPatchError(InvalidArgumentError):
    """Raised when an update document cannot be applied."""
    pass


class DuplicateIdError(ReactiveDBError):
    """Raised when an insert batch collides with an existing ``_id``.

    Attributes:
        document_id: The offending ``_id``.
    """

    def __init__(self, document_id: object) -> None:
        self.document_id = document_id
        super().__init__(f"A document with _id {document_id!r} already exists in this collection")


class SubscriptionError(ReactiveDBError):
    """Raised on subscribe/unsubscribe misuse."""
    pass
