import asyncio
import copy
import logging
from collections import Counter, defaultdict, deque
from typing import Any, Callable, Optional

from stockview.store import (
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentSnapshot,
    DocumentStore,
    ErrorHandler,
    SnapshotHandler,
    StoreError,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


class _Subscription:
    """One live listener. Deliveries are scheduled on the loop and coalesced."""

    def __init__(
        self,
        collection: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
        loop: asyncio.AbstractEventLoop,
    ):
        self.collection = collection
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.loop = loop
        self.active = True
        self._pending = False

    def schedule(self, build: Callable[[str], list[DocumentSnapshot]]) -> None:
        # A delivery already queued will read the latest state, so one is enough.
        if not self.active or self._pending:
            return
        self._pending = True
        self.loop.call_soon(self._deliver, build)

    def _deliver(self, build: Callable[[str], list[DocumentSnapshot]]) -> None:
        self._pending = False
        if self.active:
            self.on_snapshot(build(self.collection))

    def fail(self, error: Exception) -> None:
        if self.active:
            self.loop.call_soon(self._fail, error)

    def _fail(self, error: Exception) -> None:
        if self.active:
            self.on_error(error)


class InMemoryDocumentStore(DocumentStore):
    """
    In-process document store with asynchronous snapshot delivery.
    Used for tests and offline demos; counts every call and can inject failures.
    """

    def __init__(
        self,
        documents: Optional[dict[str, dict[str, dict[str, Any]]]] = None,
        latency: float = 0.0,
    ):
        self._collections: defaultdict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        for collection, docs in (documents or {}).items():
            for doc_id, data in docs.items():
                self._collections[collection][doc_id] = copy.deepcopy(data)
        self._subscriptions: defaultdict[str, list[_Subscription]] = defaultdict(list)
        self._failures: defaultdict[str, deque[Exception]] = defaultdict(deque)
        self.latency = latency
        self.calls: Counter[str] = Counter()

    # --- Live subscription ---

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> Unsubscribe:
        self.calls["subscribe"] += 1
        subscription = _Subscription(collection, on_snapshot, on_error, asyncio.get_running_loop())
        self._subscriptions[collection].append(subscription)
        subscription.schedule(self._snapshot)

        def unsubscribe() -> None:
            if not subscription.active:
                return
            subscription.active = False
            self._subscriptions[collection].remove(subscription)
            self.calls["unsubscribe"] += 1

        return unsubscribe

    def active_subscriptions(self, collection: str) -> int:
        return len(self._subscriptions.get(collection, []))

    def emit_error(self, collection: str, error: Optional[Exception] = None) -> None:
        """Pushes a channel failure to every listener of the collection."""
        error = error or StoreError("Simulated channel failure.")
        for subscription in list(self._subscriptions.get(collection, [])):
            subscription.fail(error)

    def _snapshot(self, collection: str) -> list[DocumentSnapshot]:
        docs = self._collections.get(collection, {})
        return [
            DocumentSnapshot(id=doc_id, data=copy.deepcopy(docs[doc_id]))
            for doc_id in sorted(docs)
        ]

    def _notify(self, collection: str) -> None:
        for subscription in list(self._subscriptions.get(collection, [])):
            subscription.schedule(self._snapshot)

    # --- Writes ---

    def fail_next(self, operation: str, error: Optional[Exception] = None) -> None:
        """Makes the next call of `operation` ("create", "update", "delete") raise."""
        self._failures[operation].append(error or StoreError(f"Injected {operation} failure."))

    async def _round_trip(self, operation: str) -> None:
        self.calls[operation] += 1
        await asyncio.sleep(self.latency)
        if self._failures[operation]:
            raise self._failures[operation].popleft()

    async def create(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        await self._round_trip("create")
        docs = self._collections[collection]
        if doc_id in docs:
            raise DocumentExistsError(f"Document '{collection}/{doc_id}' already exists.")
        docs[doc_id] = copy.deepcopy(fields)
        logger.debug(f"Created {collection}/{doc_id}")
        self._notify(collection)

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        await self._round_trip("update")
        docs = self._collections[collection]
        if doc_id not in docs:
            raise DocumentNotFoundError(f"Document '{collection}/{doc_id}' does not exist.")
        docs[doc_id].update(copy.deepcopy(fields))
        logger.debug(f"Updated {collection}/{doc_id}")
        self._notify(collection)

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._round_trip("delete")
        docs = self._collections[collection]
        if doc_id not in docs:
            raise DocumentNotFoundError(f"Document '{collection}/{doc_id}' does not exist.")
        del docs[doc_id]
        logger.debug(f"Deleted {collection}/{doc_id}")
        self._notify(collection)

    def documents(self, collection: str) -> dict[str, dict[str, Any]]:
        """A copy of the stored documents, for inspection."""
        return copy.deepcopy(dict(self._collections.get(collection, {})))

    @property
    def write_calls(self) -> int:
        return self.calls["create"] + self.calls["update"] + self.calls["delete"]
