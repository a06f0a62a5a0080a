"""
Error taxonomy of the inventory view engine.

Mutation failures are never raised to the presentation layer; the coordinator
converts them into a MutationOutcome. Only contract violations are raised.
"""

from dataclasses import dataclass
from typing import Optional


class InventoryError(Exception):
    """Base class for every error raised by the engine."""


class SubscriptionError(InventoryError):
    """The live channel failed to deliver a snapshot. The last good mirror is kept."""


class MutationError(InventoryError):
    """Base class for failures of add/update/delete."""

    default_reason = "The operation failed."

    def __init__(self, reason: Optional[str] = None) -> None:
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class ValidationError(MutationError):
    """A required field is empty; nothing was sent to the store."""

    default_reason = "Please fill in the id, name and brand fields."


class DuplicateIdError(MutationError):
    """The create was rejected because a document already exists under that key."""

    default_reason = "The item could not be added. The identifier may already exist."


class RemoteWriteError(MutationError):
    """The store rejected or failed the write (network, permission, missing document)."""

    default_reason = "The change could not be saved to the store."


class ConfirmationRequiredError(InventoryError):
    """delete() was called without an accepted, unused confirmation from this coordinator."""


@dataclass(frozen=True)
class MutationOutcome:
    ok: bool
    error: Optional[MutationError] = None

    @classmethod
    def success(cls) -> "MutationOutcome":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: MutationError) -> "MutationOutcome":
        return cls(ok=False, error=error)

    @property
    def reason(self) -> Optional[str]:
        return self.error.reason if self.error else None
