"""Stripe payment gateway adapter.

Uses stripe-python to create and cancel PaymentIntents and to verify
webhook signatures. Stripe errors are classified into transient and
permanent gateway errors; retries happen in RetryingPaymentGateway.
"""

import json
from typing import Any

import stripe
import structlog

from registrations.domain import Money
from registrations.domain.errors import (
    InvalidWebhookPayloadError,
    PaymentGatewayPermanentError,
    PaymentGatewayTransientError,
    PaymentNotConfiguredError,
    WebhookSignatureError,
)
from registrations.gateway.port import (
    CreatedIntent,
    NotificationKind,
    PaymentGateway,
    PaymentNotification,
    WebhookEnvelope,
)

logger = structlog.get_logger(__name__)

INTENT_EVENT_KINDS = {
    "payment_intent.succeeded": NotificationKind.SUCCEEDED,
    "payment_intent.payment_failed": NotificationKind.FAILED,
    "payment_intent.canceled": NotificationKind.FAILED,
}

SESSION_EVENT_KINDS = {
    "checkout.session.expired": NotificationKind.EXPIRED,
}


def normalize_stripe_event(event_type: str, payload: dict[str, Any]) -> PaymentNotification:
    """Map a Stripe event's ``data.object`` onto a PaymentNotification."""
    if event_type in INTENT_EVENT_KINDS:
        intent_id = payload.get("id")
        kind = INTENT_EVENT_KINDS[event_type]
    elif event_type in SESSION_EVENT_KINDS:
        intent_id = payload.get("payment_intent")
        kind = SESSION_EVENT_KINDS[event_type]
    else:
        return PaymentNotification(kind=NotificationKind.IGNORED)

    if not isinstance(intent_id, str) or not intent_id:
        raise InvalidWebhookPayloadError(event_type)

    error = payload.get("last_payment_error") or {}
    return PaymentNotification(
        kind=kind,
        intent_id=intent_id,
        provider_status=str(payload.get("status") or ""),
        failure_reason=error.get("message") if isinstance(error, dict) else None,
    )


def classify_stripe_error(exc: stripe.StripeError) -> PaymentGatewayTransientError | PaymentGatewayPermanentError:
    """Connection problems, rate limits and 5xx are retryable, the rest is not."""
    detail = f"{type(exc).__name__}: {exc.user_message or exc}"
    if isinstance(exc, (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)):
        return PaymentGatewayTransientError(detail)
    if (exc.http_status or 0) >= 500:
        return PaymentGatewayTransientError(detail)
    return PaymentGatewayPermanentError(detail)


class StripePaymentGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def _require_key(self) -> None:
        if not self.api_key:
            raise PaymentNotConfiguredError()

    def create_intent(self, amount: Money, metadata: dict[str, str], idempotency_key: str) -> CreatedIntent:
        self._require_key()
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                idempotency_key=idempotency_key,
                amount=amount.minor_units,
                currency=amount.currency,
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            raise classify_stripe_error(exc) from exc
        return CreatedIntent(intent_id=intent.id, client_secret=intent.client_secret, status=intent.status)

    def cancel_intent(self, intent_id: str) -> None:
        self._require_key()
        try:
            stripe.PaymentIntent.cancel(intent_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            raise classify_stripe_error(exc) from exc

    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEnvelope:
        if not self.api_key or not self.webhook_secret:
            raise PaymentNotConfiguredError()
        if not signature:
            raise WebhookSignatureError()
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as exc:
            logger.warning("webhook.signature_invalid", error=str(exc))
            raise WebhookSignatureError() from exc

        body = json.loads(payload)
        return WebhookEnvelope(
            event_id=body["id"],
            event_type=body["type"],
            payload=body.get("data", {}).get("object", {}),
        )

    def normalize_event(self, event_type: str, payload: dict[str, Any]) -> PaymentNotification:
        return normalize_stripe_event(event_type, payload)

    def check_connection(self) -> dict[str, Any]:
        self._require_key()
        try:
            account = stripe.Account.retrieve(api_key=self.api_key)
        except stripe.StripeError as exc:
            raise classify_stripe_error(exc) from exc
        return {"account_id": account.id, "webhook_configured": bool(self.webhook_secret)}
