"""Debounced change notification.

Collects per-document changes and delivers them to subscribers once the
collection has been quiet for the debounce window.
"""

from __future__ import annotations

import asyncio
import copy
import dataclasses
import inspect
import logging
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any

from ..core.errors import SubscriptionError
from ..core.types import Change, Document, DocumentId, OperationType

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[list[Change]], Any]


class NotifierState(Enum):
    """Lifecycle of the debounce timer."""

    IDLE = "idle"
    PENDING = "pending"
    FLUSHING = "flushing"


class ChangeNotifier:
    """Per-collection subscriber registry and coalescing change buffer.

    Args:
        collection: Name reported in every change
        lookup: Returns the current document for an id, or None
        delay_seconds: Debounce window
        snapshot: Deep-copy documents into changes when they are recorded

    Invariants:
        - The buffer holds at most one change per document id, the latest
        - Every notify() restarts the timer; only a quiet window flushes
        - Subscribers are called in registration order
        - Watchers are keyed by identity, never by equality
    """

    def __init__(
        self,
        collection: str,
        lookup: Callable[[DocumentId], Document | None],
        delay_seconds: float = 0.2,
        snapshot: bool = True,
    ):
        self._collection = collection
        self._lookup = lookup
        self._delay = delay_seconds
        self._snapshot = snapshot

        self._watchers: dict[int, tuple[object, ChangeCallback]] = {}
        self._pending: dict[DocumentId, Change] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._flushing: bool = False
        self._tasks: set[asyncio.Future] = set()

    @property
    def state(self) -> NotifierState:
        if self._flushing:
            return NotifierState.FLUSHING
        if self._timer is not None:
            return NotifierState.PENDING
        return NotifierState.IDLE

    @property
    def pending(self) -> list[Change]:
        """Changes waiting for the next flush, in delivery order."""
        return list(self._pending.values())

    @property
    def subscriber_count(self) -> int:
        return len(self._watchers)

    # -- Subscriptions --

    def subscribe(self, watcher: object, callback: ChangeCallback) -> None:
        """Register ``callback`` for ``watcher``, replacing any previous one.

        Raises:
            SubscriptionError: If watcher or callback is missing, or the
                callback is not callable
        """
        if watcher is None or callback is None:
            raise SubscriptionError("No watcher or callback has been specified")
        if not callable(callback):
            raise SubscriptionError(f"callback must be callable, got {type(callback).__name__}")

        key = id(watcher)
        if key in self._watchers:
            logger.debug(f"Replacing callback of watcher {watcher!r} on {self._collection}")
        self._watchers[key] = (watcher, callback)

    def unsubscribe(self, watcher: object) -> None:
        """Remove ``watcher``.

        Raises:
            SubscriptionError: If the watcher is not subscribed
        """
        if not self.is_subscribed(watcher):
            raise SubscriptionError(f"Watcher {watcher!r} is not subscribed to {self._collection}")
        del self._watchers[id(watcher)]

    def is_subscribed(self, watcher: object) -> bool:
        entry = self._watchers.get(id(watcher))
        return entry is not None and entry[0] is watcher

    # -- Change recording --

    def notify(self, ids: Iterable[DocumentId], operation_type: OperationType) -> None:
        """Record a change for each id and restart the debounce timer.

        With no ids nothing is recorded, but a pending timer is still
        restarted. Must be called from a running event loop.
        """
        changes = [self._build_change(document_id, operation_type) for document_id in ids]
        if not changes:
            # Nothing to record; a pending window is still pushed back
            if self._timer is not None:
                self._arm()
            return

        for change in changes:
            self._pending.pop(change.document_id, None)
        for change in changes:
            self._pending[change.document_id] = change

        self._arm()

    def _build_change(self, document_id: DocumentId, operation_type: OperationType) -> Change:
        document = self._lookup(document_id)
        if document is not None and self._snapshot:
            document = copy.deepcopy(document)
        return Change(
            collection=self._collection,
            document_id=document_id,
            operation_type=operation_type,
            full_document=document,
        )

    def _arm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._delay, self._on_timer)
        logger.debug(f"Armed notification timer for {self._collection} ({len(self._pending)} pending)")

    # -- Delivery --

    def _on_timer(self) -> None:
        self._timer = None
        self._deliver_pending()

    def flush(self) -> None:
        """Deliver pending changes now instead of waiting for the timer.

        Plain callbacks run even outside an event loop. Coroutine
        callbacks need a running loop to be scheduled on; without one
        they are logged and dropped.
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._deliver_pending()

    def _deliver_pending(self) -> None:
        if not self._pending:
            return

        # Detach first: callbacks that mutate the collection open a new window
        changes = list(self._pending.values())
        self._pending = {}

        logger.debug(
            f"Delivering {len(changes)} changes on {self._collection} "
            f"to {len(self._watchers)} subscribers"
        )

        self._flushing = True
        try:
            for watcher, callback in list(self._watchers.values()):
                name = getattr(callback, "__name__", callback)
                try:
                    result = callback(self._copies(changes))
                    if inspect.isawaitable(result):
                        self._schedule(result, name)
                except Exception:
                    logger.exception(f"Subscriber {name} failed for changes on {self._collection}")
        finally:
            self._flushing = False

    def _copies(self, changes: list[Change]) -> list[Change]:
        # Each subscriber owns its snapshots; live documents stay shared
        if not self._snapshot:
            return list(changes)
        return [
            dataclasses.replace(change, full_document=copy.deepcopy(change.full_document))
            if change.full_document is not None
            else change
            for change in changes
        ]

    def _schedule(self, awaitable: Any, name: object) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error(
                f"Async subscriber {name} dropped changes on {self._collection}: "
                f"no running event loop"
            )
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        self._track(asyncio.ensure_future(awaitable, loop=loop))

    def _track(self, task: asyncio.Future) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"Async subscriber failed for changes on {self._collection}",
                exc_info=task.exception(),
            )

    def close(self) -> None:
        """Cancel the timer and drop undelivered changes."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._pending:
            logger.debug(f"Dropping {len(self._pending)} undelivered changes on {self._collection}")
        self._pending = {}
