"""Configurable fake payment gateway for development and testing.

This adapter simulates Stripe without any external calls. It speaks
Stripe's webhook wire format so the same normalization runs in tests,
and it can be told to fail so retry and compensation paths are reachable:
- Automated tests with predictable outcomes
- Development without real gateway credentials
"""

import json
from typing import Any
from uuid import uuid4

from registrations.domain import Money
from registrations.domain.errors import WebhookSignatureError
from registrations.gateway.port import CreatedIntent, PaymentGateway, PaymentNotification, WebhookEnvelope
from registrations.gateway.stripe_adapter import normalize_stripe_event

FAKE_SIGNATURE = "fake-signature"


class FakePaymentGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.intents: dict[str, dict[str, Any]] = {}
        self._failures: list[Exception] = []

    def fail_next(self, *errors: Exception) -> None:
        """Queue errors raised by the next create_intent calls, in order."""
        self._failures.extend(errors)

    def create_intent(self, amount: Money, metadata: dict[str, str], idempotency_key: str) -> CreatedIntent:
        self.calls.append(
            {
                "method": "create_intent",
                "amount": amount.minor_units,
                "currency": amount.currency,
                "metadata": dict(metadata),
                "idempotency_key": idempotency_key,
            }
        )
        if self._failures:
            raise self._failures.pop(0)

        for intent in self.intents.values():
            if intent["idempotency_key"] == idempotency_key:
                return CreatedIntent(intent["id"], intent["client_secret"], intent["status"])

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        intent = {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret_{uuid4().hex[:12]}",
            "status": "requires_payment_method",
            "amount": amount.minor_units,
            "currency": amount.currency,
            "metadata": dict(metadata),
            "idempotency_key": idempotency_key,
        }
        self.intents[intent_id] = intent
        return CreatedIntent(intent_id, intent["client_secret"], intent["status"])

    def cancel_intent(self, intent_id: str) -> None:
        self.calls.append({"method": "cancel_intent", "intent_id": intent_id})
        if intent_id in self.intents:
            self.intents[intent_id]["status"] = "canceled"

    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEnvelope:
        if signature != FAKE_SIGNATURE:
            raise WebhookSignatureError()
        body = json.loads(payload)
        return WebhookEnvelope(
            event_id=body["id"],
            event_type=body["type"],
            payload=body.get("data", {}).get("object", {}),
        )

    def normalize_event(self, event_type: str, payload: dict[str, Any]) -> PaymentNotification:
        return normalize_stripe_event(event_type, payload)

    def check_connection(self) -> dict[str, Any]:
        return {"account_id": "acct_fake", "webhook_configured": True}

    def webhook_event(self, event_type: str, intent_id: str, event_id: str | None = None, **fields: Any) -> dict[str, Any]:
        """Build a Stripe-shaped webhook body for an intent."""
        if event_type.startswith("checkout.session."):
            obj = {"id": f"cs_fake_{uuid4().hex[:12]}", "object": "checkout.session", "payment_intent": intent_id}
        else:
            obj = {"id": intent_id, "object": "payment_intent", "status": event_type.rsplit(".", 1)[-1]}
        obj.update(fields)
        return {
            "id": event_id or f"evt_fake_{uuid4().hex[:16]}",
            "type": event_type,
            "data": {"object": obj},
        }
