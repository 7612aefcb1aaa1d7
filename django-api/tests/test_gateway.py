"""Tests for payment gateway adapters and the retry wrapper.

No network calls: stripe-python entry points are monkeypatched.
Run with: pytest tests/test_gateway.py -v
"""

import json
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from registrations.domain import Money
from registrations.domain.errors import (
    InvalidWebhookPayloadError,
    PaymentGatewayPermanentError,
    PaymentGatewayTransientError,
    PaymentNotConfiguredError,
    WebhookSignatureError,
)
from registrations.gateway import (
    FakePaymentGateway,
    NotificationKind,
    RetryingPaymentGateway,
    RetryPolicy,
    StripePaymentGateway,
    build_payment_gateway,
)
from registrations.gateway.fake_adapter import FAKE_SIGNATURE
from registrations.gateway.stripe_adapter import classify_stripe_error, normalize_stripe_event

AMOUNT = Money(Decimal("25.00"), "usd")


class TestRetryPolicy:
    def test_delay_doubles_up_to_the_cap(self):
        policy = RetryPolicy(max_attempts=5, base_delay=0.5, max_delay=1.5)

        assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [0.5, 1.0, 1.5, 1.5]

    def test_at_least_one_attempt(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestRetryingPaymentGateway:
    def make(self, inner, max_attempts=3):
        sleeps = []
        gateway = RetryingPaymentGateway(inner, RetryPolicy(max_attempts=max_attempts), sleep=sleeps.append)
        return gateway, sleeps

    def test_retries_transient_errors_with_backoff(self):
        inner = FakePaymentGateway()
        inner.fail_next(PaymentGatewayTransientError("timeout"), PaymentGatewayTransientError("timeout"))
        gateway, sleeps = self.make(inner)

        intent = gateway.create_intent(AMOUNT, {}, "registration-1")

        assert intent.intent_id.startswith("pi_fake_")
        assert sleeps == [0.5, 1.0]
        assert len(inner.calls) == 3

    def test_gives_up_after_max_attempts(self):
        inner = FakePaymentGateway()
        inner.fail_next(*[PaymentGatewayTransientError("timeout") for _ in range(3)])
        gateway, sleeps = self.make(inner)

        with pytest.raises(PaymentGatewayTransientError):
            gateway.create_intent(AMOUNT, {}, "registration-1")

        assert len(inner.calls) == 3
        assert len(sleeps) == 2

    def test_permanent_errors_are_not_retried(self):
        inner = FakePaymentGateway()
        inner.fail_next(PaymentGatewayPermanentError("invalid currency"))
        gateway, sleeps = self.make(inner)

        with pytest.raises(PaymentGatewayPermanentError):
            gateway.create_intent(AMOUNT, {}, "registration-1")

        assert len(inner.calls) == 1
        assert sleeps == []


class TestFakePaymentGateway:
    def test_same_idempotency_key_returns_same_intent(self):
        gateway = FakePaymentGateway()

        first = gateway.create_intent(AMOUNT, {}, "registration-1")
        second = gateway.create_intent(AMOUNT, {}, "registration-1")

        assert first == second
        assert len(gateway.intents) == 1

    def test_verify_webhook_requires_signature(self):
        gateway = FakePaymentGateway()
        body = json.dumps(gateway.webhook_event("payment_intent.succeeded", "pi_1")).encode()

        with pytest.raises(WebhookSignatureError):
            gateway.verify_webhook(body, "forged")

        envelope = gateway.verify_webhook(body, FAKE_SIGNATURE)
        assert envelope.event_type == "payment_intent.succeeded"
        assert envelope.payload["id"] == "pi_1"


class TestNormalizeStripeEvent:
    def test_succeeded(self):
        notification = normalize_stripe_event(
            "payment_intent.succeeded", {"id": "pi_1", "status": "succeeded"}
        )

        assert notification.kind is NotificationKind.SUCCEEDED
        assert notification.intent_id == "pi_1"
        assert notification.provider_status == "succeeded"

    def test_failure_carries_reason(self):
        notification = normalize_stripe_event(
            "payment_intent.payment_failed",
            {"id": "pi_1", "status": "requires_payment_method", "last_payment_error": {"message": "Card declined"}},
        )

        assert notification.kind is NotificationKind.FAILED
        assert notification.failure_reason == "Card declined"

    def test_checkout_session_uses_payment_intent_field(self):
        notification = normalize_stripe_event(
            "checkout.session.expired", {"id": "cs_1", "payment_intent": "pi_1"}
        )

        assert notification.kind is NotificationKind.EXPIRED
        assert notification.intent_id == "pi_1"

    def test_unhandled_types_are_ignored(self):
        assert normalize_stripe_event("charge.refunded", {}).kind is NotificationKind.IGNORED

    def test_missing_intent_id_is_invalid(self):
        with pytest.raises(InvalidWebhookPayloadError):
            normalize_stripe_event("payment_intent.succeeded", {"object": "payment_intent"})


class TestClassifyStripeError:
    @pytest.mark.parametrize(
        "exc",
        [
            stripe.APIConnectionError("connection reset"),
            stripe.RateLimitError("slow down", http_status=429),
            stripe.APIError("internal", http_status=500),
            stripe.InvalidRequestError("bad gateway", None, http_status=502),
        ],
    )
    def test_transient(self, exc):
        assert isinstance(classify_stripe_error(exc), PaymentGatewayTransientError)

    @pytest.mark.parametrize(
        "exc",
        [
            stripe.CardError("declined", None, "card_declined", http_status=402),
            stripe.InvalidRequestError("amount too small", "amount", http_status=400),
            stripe.AuthenticationError("bad key", http_status=401),
        ],
    )
    def test_permanent(self, exc):
        assert isinstance(classify_stripe_error(exc), PaymentGatewayPermanentError)


class TestStripePaymentGateway:
    def test_create_intent_sends_minor_units_and_idempotency_key(self, monkeypatch):
        captured = {}

        def create(**params):
            captured.update(params)
            return SimpleNamespace(id="pi_123", client_secret="pi_123_secret", status="requires_payment_method")

        monkeypatch.setattr(stripe.PaymentIntent, "create", create)
        gateway = StripePaymentGateway(api_key="sk_test_123", webhook_secret="whsec_123")

        intent = gateway.create_intent(AMOUNT, {"registration_id": "r1"}, "registration-r1")

        assert intent.intent_id == "pi_123"
        assert captured["amount"] == 2500
        assert captured["currency"] == "usd"
        assert captured["idempotency_key"] == "registration-r1"
        assert captured["metadata"] == {"registration_id": "r1"}

    def test_create_intent_classifies_errors(self, monkeypatch):
        def create(**params):
            raise stripe.APIConnectionError("timeout")

        monkeypatch.setattr(stripe.PaymentIntent, "create", create)
        gateway = StripePaymentGateway(api_key="sk_test_123", webhook_secret="whsec_123")

        with pytest.raises(PaymentGatewayTransientError):
            gateway.create_intent(AMOUNT, {}, "registration-r1")

    def test_missing_key_is_not_configured(self):
        gateway = StripePaymentGateway(api_key="", webhook_secret="")

        with pytest.raises(PaymentNotConfiguredError):
            gateway.create_intent(AMOUNT, {}, "registration-r1")

    def test_verify_webhook_unwraps_verified_payload(self, monkeypatch):
        monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig, secret: None)
        gateway = StripePaymentGateway(api_key="sk_test_123", webhook_secret="whsec_123")
        body = json.dumps(
            {"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}}
        ).encode()

        envelope = gateway.verify_webhook(body, "t=1,v1=abc")

        assert envelope.event_id == "evt_1"
        assert envelope.payload == {"id": "pi_1"}

    def test_verify_webhook_rejects_bad_signature(self, monkeypatch):
        def construct_event(payload, sig, secret):
            raise stripe.SignatureVerificationError("no match", sig)

        monkeypatch.setattr(stripe.Webhook, "construct_event", construct_event)
        gateway = StripePaymentGateway(api_key="sk_test_123", webhook_secret="whsec_123")

        with pytest.raises(WebhookSignatureError):
            gateway.verify_webhook(b"{}", "t=1,v1=abc")

    def test_check_connection(self, monkeypatch):
        monkeypatch.setattr(stripe.Account, "retrieve", lambda **kwargs: SimpleNamespace(id="acct_123"))
        gateway = StripePaymentGateway(api_key="sk_test_123", webhook_secret="")

        assert gateway.check_connection() == {"account_id": "acct_123", "webhook_configured": False}


class TestBuildPaymentGateway:
    def test_fake_backend_is_wrapped_in_retries(self, registration_settings):
        gateway = build_payment_gateway()

        assert isinstance(gateway, RetryingPaymentGateway)
        assert isinstance(gateway.inner, FakePaymentGateway)
        assert gateway.policy.max_attempts == 3

    def test_stripe_backend(self, settings):
        settings.REGISTRATIONS = {"PAYMENT_GATEWAY": "stripe", "STRIPE_SECRET_KEY": "sk_test_123"}

        gateway = build_payment_gateway()

        assert isinstance(gateway.inner, StripePaymentGateway)
        assert gateway.inner.api_key == "sk_test_123"

    def test_unknown_backend(self, settings):
        settings.REGISTRATIONS = {"PAYMENT_GATEWAY": "paypal"}

        with pytest.raises(ValueError):
            build_payment_gateway()

    def test_stripe_is_the_default_backend(self, settings):
        settings.REGISTRATIONS = {}

        gateway = build_payment_gateway()

        assert isinstance(gateway.inner, StripePaymentGateway)
