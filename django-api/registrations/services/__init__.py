from datetime import timedelta

from registrations import gateway as payment_gateway
from registrations.conf import registration_settings
from registrations.services.query_service import CapacitySummary, RegistrationQueryService
from registrations.services.registration_service import RegistrationService
from registrations.services.webhook_reconciler import ReconcileOutcome, WebhookReconciler
from registrations.stores.django_store import DjangoCapacityLedger, DjangoEventStore, DjangoRegistrationStore

__all__ = [
    "CapacitySummary",
    "ReconcileOutcome",
    "RegistrationQueryService",
    "RegistrationService",
    "WebhookReconciler",
    "build_query_service",
    "build_registration_service",
    "build_webhook_reconciler",
]


def build_registration_service() -> RegistrationService:
    return RegistrationService(
        events=DjangoEventStore(),
        registrations=DjangoRegistrationStore(),
        gateway=payment_gateway.build_payment_gateway(),
        payment_window=timedelta(seconds=registration_settings.PAYMENT_WINDOW_SECONDS),
        pending_grace=timedelta(seconds=registration_settings.PENDING_GRACE_SECONDS),
    )


def build_webhook_reconciler() -> WebhookReconciler:
    return WebhookReconciler(
        registrations=DjangoRegistrationStore(),
        gateway=payment_gateway.build_payment_gateway(),
    )


def build_query_service() -> RegistrationQueryService:
    ledger = DjangoCapacityLedger()
    return RegistrationQueryService(
        events=DjangoEventStore(),
        registrations=DjangoRegistrationStore(ledger),
        ledger=ledger,
    )
