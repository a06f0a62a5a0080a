import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from . import settings

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Any failure reported by a document store (transport, permission, bad response)."""


class DocumentExistsError(StoreError):
    """create() addressed a key that is already taken."""


class DocumentNotFoundError(StoreError):
    """update() or delete() addressed a key that does not exist."""


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    data: dict[str, Any] = field(default_factory=dict)


SnapshotHandler = Callable[[list[DocumentSnapshot]], None]
ErrorHandler = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class DocumentStore(ABC):
    """
    Abstract base class for remote document collections keyed by a unique id string.
    Adapters (in-memory, Firestore REST, ...) implement the live subscription plus
    document-level create/update/delete.
    """

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> Unsubscribe:
        """
        Starts a live subscription. The full current collection is delivered
        asynchronously right after subscribing, then again after every change.
        Errors go to on_error and do not end the subscription.
        Returns an idempotent unsubscribe callable.
        """

    @abstractmethod
    async def create(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Creates a document. Raises DocumentExistsError if the key is taken."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Overwrites the given fields. Raises DocumentNotFoundError if the key is absent."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Deletes a document. Raises DocumentNotFoundError if the key is absent."""


def build_store(seed: Optional[dict[str, dict[str, dict[str, Any]]]] = None) -> DocumentStore:
    """
    Builds the store configured in settings (STORE_BACKEND).
    `seed` ({collection: {doc_id: fields}}) only applies to the in-memory backend.
    """
    backend = settings.STORE_BACKEND.lower()
    logger.info(f"Using '{backend}' document store.")
    if backend == "memory":
        from .stores.memory import InMemoryDocumentStore

        return InMemoryDocumentStore(seed)
    if backend == "firestore":
        from .stores.firestore import FirestoreRestStore

        if not settings.FIRESTORE_PROJECT_ID:
            raise ValueError("FIRESTORE_PROJECT_ID must be set for the firestore backend.")
        return FirestoreRestStore(
            project_id=settings.FIRESTORE_PROJECT_ID,
            database=settings.FIRESTORE_DATABASE,
            api_key=settings.FIRESTORE_API_KEY,
            base_url=settings.FIRESTORE_BASE_URL,
            poll_interval=settings.POLL_INTERVAL_SECONDS,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
        )
    raise ValueError(f"Unknown STORE_BACKEND '{settings.STORE_BACKEND}'.")
