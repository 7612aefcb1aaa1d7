"""Pytest configuration and shared fixtures."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from registrations.gateway import FakePaymentGateway, RetryingPaymentGateway, RetryPolicy
from registrations.models import CapacityLedger, Event
from registrations.services import RegistrationService, WebhookReconciler
from registrations.stores.django_store import DjangoEventStore, DjangoRegistrationStore


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def registration_settings(settings):
    settings.REGISTRATIONS = {
        "PAYMENT_GATEWAY": "fake",
        "GATEWAY_MAX_ATTEMPTS": 3,
        "GATEWAY_BACKOFF_SECONDS": 0,
        "GATEWAY_MAX_BACKOFF_SECONDS": 0,
        "CAPACITY_CACHE_SECONDS": 0,
    }
    return settings.REGISTRATIONS


@pytest.fixture
def fake_gateway(monkeypatch) -> FakePaymentGateway:
    """A fresh fake provider, also used by the views through the gateway factory."""
    gateway = FakePaymentGateway()
    monkeypatch.setattr(
        "registrations.gateway.build_payment_gateway",
        lambda: RetryingPaymentGateway(gateway, RetryPolicy(base_delay=0, max_delay=0), sleep=lambda _: None),
    )
    return gateway


@pytest.fixture
def service(fake_gateway) -> RegistrationService:
    return RegistrationService(
        events=DjangoEventStore(),
        registrations=DjangoRegistrationStore(),
        gateway=RetryingPaymentGateway(fake_gateway, RetryPolicy(base_delay=0, max_delay=0), sleep=lambda _: None),
    )


@pytest.fixture
def reconciler(fake_gateway) -> WebhookReconciler:
    return WebhookReconciler(registrations=DjangoRegistrationStore(), gateway=fake_gateway)


@pytest.fixture
def make_event(db):
    def factory(**overrides) -> Event:
        fields = {
            "name": "Summer Solstice Retreat",
            "status": Event.Status.PUBLISHED,
            "starts_at": timezone.now() + timedelta(days=7),
            "capacity": 10,
            "price_amount": Decimal("0"),
            "currency": "usd",
        }
        fields.update(overrides)
        return Event.objects.create(**fields)

    return factory


@pytest.fixture
def free_event(make_event) -> Event:
    return make_event(name="Open Meditation", capacity=2)


@pytest.fixture
def paid_event(make_event) -> Event:
    return make_event(name="Breathwork Workshop", capacity=2, price_amount=Decimal("25.00"))


@pytest.fixture
def deliver(reconciler, fake_gateway):
    """Deliver a Stripe-shaped webhook for an intent straight to the reconciler."""

    def send(event_type: str, intent_id: str, event_id: str | None = None, **fields):
        body = fake_gateway.webhook_event(event_type, intent_id, event_id=event_id, **fields)
        return reconciler.handle_event(body["id"], body["type"], body["data"]["object"])

    return send


@pytest.fixture
def held_count(db):
    """Slots currently held for an event, read straight from the ledger."""

    def read(event: Event) -> int:
        return CapacityLedger.objects.get(event_id=event.pk).held_count

    return read
