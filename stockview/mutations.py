"""
Mutation coordinator.

Validates add/update/delete requests and sends them to the store. It holds no
reference to the mirror: a successful write becomes visible only when the
live subscription delivers the next snapshot.
"""

import logging
import weakref
from typing import Union

from . import utils
from .errors import (
    ConfirmationRequiredError,
    DuplicateIdError,
    MutationOutcome,
    RemoteWriteError,
    ValidationError,
)
from .schemas import EditDraft, NewItemDraft, Record
from .store import DocumentExistsError, DocumentStore, StoreError

logger = logging.getLogger(__name__)


class DeleteConfirmation:
    """
    Single-use token for the two-step delete. The presentation layer shows
    `message`, then calls accept() or decline().
    """

    def __init__(self, record: Record):
        self.record = record
        self.accepted = False
        self.declined = False
        self.used = False

    @property
    def message(self) -> str:
        return f'Are you sure you want to delete "{self.record.name}"?'

    def accept(self) -> None:
        if self.declined:
            raise ConfirmationRequiredError("This confirmation was already declined.")
        self.accepted = True

    def decline(self) -> None:
        self.accepted = False
        self.declined = True


def _document_body(name: str, brand: str, count, bought_price, sold_price) -> dict:
    # Numeric input that does not parse is written as 0.
    return {
        "name": name,
        "brand": brand,
        "count": utils.parse_count(count),
        "boughtPrice": utils.parse_price(bought_price),
        "soldPrice": utils.parse_price(sold_price),
    }


class MutationCoordinator:
    def __init__(self, store: DocumentStore, collection: str):
        self._store = store
        self.collection = collection
        # Confirmations handed out by request_delete() and not yet used.
        self._issued: "weakref.WeakSet[DeleteConfirmation]" = weakref.WeakSet()

    async def add(self, draft: NewItemDraft) -> MutationOutcome:
        doc_id = draft.id.strip()
        name = draft.name.strip()
        brand = draft.brand.strip()
        if not doc_id or not name or not brand:
            logger.warning("Add rejected: id, name and brand are required.")
            return MutationOutcome.failure(ValidationError())

        body = _document_body(name, brand, draft.count, draft.bought_price, draft.sold_price)
        try:
            await self._store.create(self.collection, doc_id, body)
        except DocumentExistsError as e:
            logger.warning(f"Add of '{doc_id}' rejected: {e}")
            return MutationOutcome.failure(DuplicateIdError())
        except StoreError as e:
            logger.error(f"Add of '{doc_id}' failed: {e}")
            return MutationOutcome.failure(RemoteWriteError(f"The item could not be added: {e}"))

        logger.info(f"Added '{doc_id}' to '{self.collection}'.")
        return MutationOutcome.success()

    async def update(self, item: Union[Record, EditDraft]) -> MutationOutcome:
        """Overwrites every mutable field of the item; the id is only the address."""
        body = _document_body(
            item.name.strip(),
            item.brand.strip(),
            item.count,
            item.bought_price,
            item.sold_price,
        )
        try:
            await self._store.update(self.collection, item.id, body)
        except StoreError as e:
            logger.error(f"Update of '{item.id}' failed: {e}")
            return MutationOutcome.failure(RemoteWriteError(f"The item could not be updated: {e}"))

        logger.info(f"Updated '{item.id}'.")
        return MutationOutcome.success()

    def request_delete(self, record: Record) -> DeleteConfirmation:
        """First step of a delete: returns the confirmation the user has to accept."""
        confirmation = DeleteConfirmation(record)
        self._issued.add(confirmation)
        return confirmation

    async def delete(self, confirmation: DeleteConfirmation) -> MutationOutcome:
        if not isinstance(confirmation, DeleteConfirmation):
            raise ConfirmationRequiredError("Delete needs a confirmation issued by request_delete().")
        if confirmation.used:
            raise ConfirmationRequiredError("This confirmation was already used.")
        if confirmation not in self._issued:
            raise ConfirmationRequiredError("Delete needs a confirmation issued by request_delete().")
        if not confirmation.accepted:
            raise ConfirmationRequiredError("Delete was not confirmed.")
        self._issued.discard(confirmation)
        confirmation.used = True

        doc_id = confirmation.record.id
        try:
            await self._store.delete(self.collection, doc_id)
        except StoreError as e:
            logger.error(f"Delete of '{doc_id}' failed: {e}")
            return MutationOutcome.failure(RemoteWriteError(f"The item could not be deleted: {e}"))

        logger.info(f"Deleted '{doc_id}'.")
        return MutationOutcome.success()
