"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in registrations/models.py (persistence layer).
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from registrations.domain.value_objects import Capacity, EventId, IdempotencyKey, Money, RegistrationId


class EventStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ENDED = "ended"


class RegistrationStatus(str, Enum):
    """Lifecycle states of a registration."""

    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    CONFIRMED = "confirmed"
    PAYMENT_FAILED = "payment_failed"
    EXPIRED = "expired"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_live(self) -> bool:
        """True while the registration holds (or has consumed) a capacity slot."""
        return self in LIVE_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        RegistrationStatus.CONFIRMED,
        RegistrationStatus.PAYMENT_FAILED,
        RegistrationStatus.EXPIRED,
        RegistrationStatus.CANCELED,
    }
)

LIVE_STATUSES = frozenset(
    {
        RegistrationStatus.PENDING,
        RegistrationStatus.AWAITING_PAYMENT,
        RegistrationStatus.CONFIRMED,
    }
)


@dataclass(frozen=True)
class Event:
    """The slice of an Event the registration core reads.

    Owned by the content side; capacity ``None`` means unlimited and a
    ``None`` or zero price means the event is free.
    """

    id: EventId
    name: str
    status: EventStatus
    capacity: Capacity | None
    price: Money | None
    starts_at: datetime | None = None

    @property
    def is_free(self) -> bool:
        return self.price is None or self.price.is_zero

    def is_open_for_registration(self, now: datetime) -> bool:
        if self.status is not EventStatus.PUBLISHED:
            return False
        return self.starts_at is None or self.starts_at > now


@dataclass(frozen=True)
class Attendee:
    """Contact details captured with a registration."""

    name: str = ""
    email: str = ""
    phone: str = ""


@dataclass(frozen=True)
class PaymentIntentReference:
    """The provider's payment intent as last reported to us."""

    intent_id: str
    status: str
    amount: Decimal
    currency: str
    client_secret: str = field(default="", repr=False)


@dataclass(frozen=True)
class Registration:
    """Domain representation of a Registration."""

    id: RegistrationId
    event_id: EventId
    user_id: str
    status: RegistrationStatus
    idempotency_key: IdempotencyKey
    holds_slot: bool
    version: int
    created_at: datetime
    updated_at: datetime
    attendee: Attendee = Attendee()
    payment_intent: PaymentIntentReference | None = None
    expires_at: datetime | None = None
    confirmed_at: datetime | None = None

    @property
    def client_secret(self) -> str | None:
        """Secret the browser needs to finish checkout, only while payment is open."""
        if self.status is not RegistrationStatus.AWAITING_PAYMENT or self.payment_intent is None:
            return None
        return self.payment_intent.client_secret or None
