from registrations.domain.models import (
    Attendee,
    Event,
    EventStatus,
    PaymentIntentReference,
    Registration,
    RegistrationStatus,
)
from registrations.domain.value_objects import Capacity, EventId, IdempotencyKey, Money, RegistrationId

__all__ = [
    "Attendee",
    "Event",
    "EventStatus",
    "PaymentIntentReference",
    "Registration",
    "RegistrationStatus",
    "EventId",
    "RegistrationId",
    "IdempotencyKey",
    "Money",
    "Capacity",
]
