"""Read-only registration queries for the UI.

Reads are eventually consistent with writes and only used for display.
"""

from dataclasses import dataclass

from registrations.domain import EventId, Registration
from registrations.domain.errors import EventNotFoundError, InvalidEventIdError
from registrations.stores.interfaces import CapacityLedger, EventStore, RegistrationStore


@dataclass(frozen=True)
class CapacitySummary:
    """Capacity and remaining slots; None means unlimited."""

    capacity: int | None
    remaining: int | None


class RegistrationQueryService:
    """Service for registration read operations."""

    def __init__(self, events: EventStore, registrations: RegistrationStore, ledger: CapacityLedger) -> None:
        self._events = events
        self._registrations = registrations
        self._ledger = ledger

    def is_registered(self, event_id: str, user_id: str) -> bool:
        """True while the user holds a pending, awaiting_payment or confirmed registration."""
        return self._registrations.find_live(self._parse_event_id(event_id), user_id) is not None

    def registration_for(self, event_id: str, user_id: str) -> Registration | None:
        """The user's live registration for an event, else their most recent one."""
        parsed = self._parse_event_id(event_id)
        live = self._registrations.find_live(parsed, user_id)
        if live is not None:
            return live
        return self._registrations.find_latest(parsed, user_id)

    def remaining_capacity(self, event_id: str) -> int | None:
        """Slots left for an event, or None if unlimited. Never negative.

        Raises:
            InvalidEventIdError: If the event_id is not a valid UUID.
            EventNotFoundError: If the event does not exist.
        """
        return self.capacity_summary(event_id).remaining

    def capacity_summary(self, event_id: str) -> CapacitySummary:
        parsed = self._parse_event_id(event_id)
        event = self._events.get_event(parsed)
        if event is None:
            raise EventNotFoundError(event_id)
        if event.capacity is None:
            return CapacitySummary(capacity=None, remaining=None)
        held = self._ledger.held_count(event.id)
        return CapacitySummary(capacity=event.capacity.value, remaining=max(event.capacity.value - held, 0))

    def list_for_user(self, user_id: str) -> list[Registration]:
        return self._registrations.list_for_user(user_id)

    def _parse_event_id(self, event_id: str) -> EventId:
        try:
            return EventId.from_string(event_id)
        except ValueError as exc:
            raise InvalidEventIdError() from exc
