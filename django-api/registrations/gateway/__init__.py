import structlog
from django.conf import settings

from registrations.conf import registration_settings
from registrations.gateway.fake_adapter import FakePaymentGateway
from registrations.gateway.port import (
    CreatedIntent,
    NotificationKind,
    PaymentGateway,
    PaymentNotification,
    WebhookEnvelope,
)
from registrations.gateway.retry import RetryingPaymentGateway, RetryPolicy
from registrations.gateway.stripe_adapter import StripePaymentGateway

__all__ = [
    "CreatedIntent",
    "FakePaymentGateway",
    "NotificationKind",
    "PaymentGateway",
    "PaymentNotification",
    "RetryPolicy",
    "RetryingPaymentGateway",
    "StripePaymentGateway",
    "WebhookEnvelope",
    "build_payment_gateway",
]

logger = structlog.get_logger(__name__)

# Shared so intents created by one request are visible to later webhooks.
_fake_gateway: FakePaymentGateway | None = None


def build_payment_gateway() -> PaymentGateway:
    """Build the configured gateway wrapped in the retry policy."""
    global _fake_gateway

    backend = registration_settings.PAYMENT_GATEWAY
    if backend == "stripe":
        inner: PaymentGateway = StripePaymentGateway(
            api_key=registration_settings.STRIPE_SECRET_KEY,
            webhook_secret=registration_settings.STRIPE_WEBHOOK_SECRET,
        )
    elif backend == "fake":
        # Accepts a public signature; never point a provider at it.
        if not settings.DEBUG:
            logger.warning("gateway.fake_in_use")
        if _fake_gateway is None:
            _fake_gateway = FakePaymentGateway()
        inner = _fake_gateway
    else:
        raise ValueError(f"Unknown payment gateway backend: {backend}")

    policy = RetryPolicy(
        max_attempts=registration_settings.GATEWAY_MAX_ATTEMPTS,
        base_delay=registration_settings.GATEWAY_BACKOFF_SECONDS,
        max_delay=registration_settings.GATEWAY_MAX_BACKOFF_SECONDS,
    )
    return RetryingPaymentGateway(inner, policy)
