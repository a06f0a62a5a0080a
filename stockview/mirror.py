"""
Live collection mirror.

Holds the last known remote state of one collection. Every snapshot from the
store replaces the mirror wholesale; nothing else writes to it.
"""

import asyncio
import logging
from typing import Callable, Optional

from pydantic import ValidationError as SchemaError

from .errors import SubscriptionError
from .schemas import Record
from .store import DocumentSnapshot, DocumentStore, Unsubscribe

logger = logging.getLogger(__name__)

Listener = Callable[["LiveCollectionMirror"], None]


class LiveCollectionMirror:
    def __init__(self, store: DocumentStore, collection: str):
        self._store = store
        self.collection = collection
        self._records: tuple[Record, ...] = ()
        self._unsubscribe: Optional[Unsubscribe] = None
        self._listeners: list[Listener] = []
        self._waiters: list[tuple[Callable[[tuple[Record, ...]], bool], asyncio.Future]] = []
        self.loading = True
        self.error: Optional[SubscriptionError] = None
        self.version = 0

    @property
    def records(self) -> tuple[Record, ...]:
        return self._records

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    # --- Subscription lifecycle ---

    def start(self) -> None:
        """Acquires the single live subscription. Must be paired with stop()."""
        if self._unsubscribe is not None:
            raise RuntimeError(f"Mirror of '{self.collection}' is already subscribed.")
        logger.info(f"Subscribing to '{self.collection}'.")
        self.loading = True
        self._unsubscribe = self._store.subscribe(
            self.collection, self._on_snapshot, self._on_error
        )

    def stop(self) -> None:
        """Releases the subscription. Safe to call more than once."""
        if self._unsubscribe is None:
            return
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        unsubscribe()
        logger.info(f"Unsubscribed from '{self.collection}'.")
        for _, future in self._waiters:
            if not future.done():
                future.cancel()
        self._waiters.clear()

    def __enter__(self) -> "LiveCollectionMirror":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    async def __aenter__(self) -> "LiveCollectionMirror":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.stop()

    # --- Inbound channel ---

    def _on_snapshot(self, documents: list[DocumentSnapshot]) -> None:
        if self._unsubscribe is None:
            return
        records = []
        for document in documents:
            try:
                records.append(Record.from_document(document.id, document.data))
            except SchemaError as e:
                logger.warning(f"Skipping malformed document '{document.id}': {e}")
        self._records = tuple(records)
        self.version += 1
        self.loading = False
        self.error = None
        logger.debug(f"Snapshot #{self.version} of '{self.collection}': {len(records)} records")
        self._resolve_waiters()
        self._notify()

    def _on_error(self, error: Exception) -> None:
        if self._unsubscribe is None:
            return
        logger.error(f"Live channel for '{self.collection}' failed: {error}")
        self.error = SubscriptionError(str(error))
        self.loading = False
        self._notify()

    # --- Observers ---

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    async def wait_for_snapshot(
        self,
        predicate: Optional[Callable[[tuple[Record, ...]], bool]] = None,
        timeout: Optional[float] = None,
    ) -> tuple[Record, ...]:
        """
        Waits until the mirror holds records satisfying `predicate` and returns them.
        Without a predicate, waits for the next snapshot.
        """
        if not self.active:
            raise RuntimeError(f"Mirror of '{self.collection}' is not subscribed.")
        if predicate is not None and self.version > 0 and predicate(self._records):
            return self._records
        future = asyncio.get_running_loop().create_future()
        self._waiters.append((predicate or (lambda records: True), future))
        return await asyncio.wait_for(future, timeout)

    def _resolve_waiters(self) -> None:
        pending = []
        for predicate, future in self._waiters:
            if future.done():
                continue
            if predicate(self._records):
                future.set_result(self._records)
            else:
                pending.append((predicate, future))
        self._waiters = pending
