"""Store interfaces (repository pattern).

Stores must be swappable and return domain models.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import datetime

from registrations.domain import (
    Attendee,
    Event,
    EventId,
    IdempotencyKey,
    PaymentIntentReference,
    Registration,
    RegistrationId,
    RegistrationStatus,
)


class EventStore(ABC):
    """Read-only access to events owned by the content side."""

    @abstractmethod
    def get_event(self, event_id: EventId) -> Event | None:
        """Return an event by ID, or None if not found."""
        ...


class CapacityLedger(ABC):
    """Per-event slot bookkeeping.

    Every mutation is a single atomic conditional update evaluated by the
    storage layer.
    """

    @abstractmethod
    def try_reserve(self, event: Event) -> bool:
        """Take one slot if the event has one left. Unlimited events always grant."""
        ...

    @abstractmethod
    def release(self, registration_id: RegistrationId) -> bool:
        """Give back the slot owned by a registration.

        Returns False (and changes nothing) when the registration no longer
        owns a slot, so repeated calls never over-release.
        """
        ...

    @abstractmethod
    def held_count(self, event_id: EventId) -> int:
        """Number of slots currently held for an event."""
        ...


class RegistrationStore(ABC):
    """Interface for registration persistence operations."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Unit of work: everything inside commits or rolls back together."""
        ...

    @abstractmethod
    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once the current unit of work has committed."""
        ...

    @abstractmethod
    def get(self, registration_id: RegistrationId) -> Registration | None:
        """Return a registration by ID, or None if not found."""
        ...

    @abstractmethod
    def find_by_idempotency_key(self, user_id: str, key: IdempotencyKey) -> Registration | None:
        """Return the registration created for this user's idempotency key."""
        ...

    @abstractmethod
    def find_live(self, event_id: EventId, user_id: str) -> Registration | None:
        """Return the user's pending, awaiting_payment or confirmed registration."""
        ...

    @abstractmethod
    def find_latest(self, event_id: EventId, user_id: str) -> Registration | None:
        """Return the user's most recently created registration for an event."""
        ...

    @abstractmethod
    def find_by_intent(self, intent_id: str, for_update: bool = False) -> Registration | None:
        """Return the registration linked to a provider payment intent."""
        ...

    @abstractmethod
    def list_for_user(self, user_id: str) -> list[Registration]:
        """Return all registrations of a user ordered by created_at descending."""
        ...

    @abstractmethod
    def list_stale(self, awaiting_before: datetime, pending_before: datetime) -> list[Registration]:
        """Return awaiting_payment registrations expired at ``awaiting_before``
        and pending registrations created before ``pending_before``."""
        ...

    @abstractmethod
    def create_with_reservation(
        self,
        event: Event,
        user_id: str,
        key: IdempotencyKey,
        attendee: Attendee,
        status: RegistrationStatus,
        now: datetime,
    ) -> Registration:
        """Reserve a capacity slot and insert the registration in one transaction.

        Raises:
            CapacityExceededError: If the ledger denied the slot.
            DuplicateRegistrationError: If a live registration or the same
                idempotency key already exists.
        """
        ...

    @abstractmethod
    def attach_payment_intent(
        self,
        registration_id: RegistrationId,
        expected_version: int,
        intent: PaymentIntentReference,
        expires_at: datetime,
        now: datetime,
    ) -> Registration | None:
        """Move pending -> awaiting_payment and store the intent.

        Returns None if the registration changed since ``expected_version``.
        """
        ...

    @abstractmethod
    def transition(
        self,
        registration_id: RegistrationId,
        expected_version: int,
        target: RegistrationStatus,
        now: datetime,
        intent_status: str | None = None,
    ) -> Registration | None:
        """Apply a state transition guarded by version and the transition table.

        Releases the capacity slot in the same transaction when the target is
        a releasing state. Returns None when the guard did not match.
        """
        ...

    @abstractmethod
    def mark_webhook_processed(self, provider_event_id: str, event_type: str) -> bool:
        """Record a provider event id. Returns False if it was already recorded."""
        ...
