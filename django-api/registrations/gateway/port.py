"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakePaymentGateway (dev/test) and
StripePaymentGateway (production) without changing any service code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from registrations.domain import Money


@dataclass(frozen=True)
class CreatedIntent:
    """Result of creating a payment intent."""

    intent_id: str
    client_secret: str = field(repr=False)
    status: str


class NotificationKind(Enum):
    """Internal vocabulary for provider payment notifications."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    EXPIRED = "expired"
    IGNORED = "ignored"


@dataclass(frozen=True)
class PaymentNotification:
    """A provider webhook normalized at the boundary."""

    kind: NotificationKind
    intent_id: str | None = None
    provider_status: str = ""
    failure_reason: str | None = None


@dataclass(frozen=True)
class WebhookEnvelope:
    """A verified webhook delivery."""

    event_id: str
    event_type: str
    payload: dict[str, Any]


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_intent(self, amount: Money, metadata: dict[str, str], idempotency_key: str) -> CreatedIntent:
        """Create a payment intent.

        Raises:
            PaymentGatewayTransientError: Timeouts, connection errors, 5xx.
            PaymentGatewayPermanentError: Anything a retry cannot fix.
            PaymentNotConfiguredError: No provider credentials.
        """
        ...

    @abstractmethod
    def cancel_intent(self, intent_id: str) -> None:
        """Cancel an open payment intent so it can no longer be confirmed."""
        ...

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEnvelope:
        """Authenticate a webhook delivery and unwrap it.

        Raises:
            WebhookSignatureError: If the payload was not signed by the provider.
        """
        ...

    @abstractmethod
    def normalize_event(self, event_type: str, payload: dict[str, Any]) -> PaymentNotification:
        """Translate a provider event into a PaymentNotification.

        Raises:
            InvalidWebhookPayloadError: If a relevant event lacks its intent id.
        """
        ...

    @abstractmethod
    def check_connection(self) -> dict[str, Any]:
        """Return provider account details, raising on connectivity problems."""
        ...
