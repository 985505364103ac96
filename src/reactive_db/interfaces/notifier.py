"""Protocol definition for change notification."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from ..core.types import Change, DocumentId, OperationType


@runtime_checkable
class Notifier(Protocol):
    """Subscriber registry with a debounced change buffer."""

    @property
    def state(self) -> Any:
        """Current timer state (idle, pending or flushing)."""
        ...

    def subscribe(self, watcher: object, callback: Callable[[list[Change]], Any]) -> None:
        """Register or replace the callback of a watcher."""
        ...

    def unsubscribe(self, watcher: object) -> None:
        """Remove a subscribed watcher."""
        ...

    def is_subscribed(self, watcher: object) -> bool:
        """Return whether the watcher is subscribed."""
        ...

    def notify(self, ids: Iterable[DocumentId], operation_type: OperationType) -> None:
        """Record changes for ids and restart the debounce timer."""
        ...

    def flush(self) -> None:
        """Deliver pending changes now."""
        ...

    def close(self) -> None:
        """Cancel the timer and drop pending changes."""
        ...
