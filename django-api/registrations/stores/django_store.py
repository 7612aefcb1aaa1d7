"""Django ORM implementation of the registration stores.

All capacity and status changes are conditional UPDATEs evaluated by the
database, never read-then-write in Python.
"""

import functools
from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import datetime

import structlog
from django.db import IntegrityError, OperationalError, transaction
from django.db.models import F, Q
from django.utils import timezone

from registrations import models
from registrations.cache import invalidate_capacity_cache
from registrations.domain import (
    Attendee,
    Capacity,
    Event,
    EventId,
    EventStatus,
    IdempotencyKey,
    Money,
    PaymentIntentReference,
    Registration,
    RegistrationId,
    RegistrationStatus,
)
from registrations.domain.errors import (
    CapacityExceededError,
    DuplicateRegistrationError,
    TransientStoreError,
)
from registrations.domain.transitions import releases_slot, sources_for
from registrations.stores.interfaces import CapacityLedger, EventStore, RegistrationStore

logger = structlog.get_logger(__name__)


def translate_db_errors(method):
    """Surface database outages as TransientStoreError so callers can retry."""

    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except OperationalError as exc:
            logger.warning("store.transient_error", operation=method.__name__, error=str(exc))
            raise TransientStoreError() from exc

    return wrapper


def event_to_domain(row: models.Event) -> Event:
    return Event(
        id=EventId(row.id),
        name=row.name,
        status=EventStatus(row.status),
        capacity=Capacity(row.capacity) if row.capacity is not None else None,
        price=Money(row.price_amount, row.currency),
        starts_at=row.starts_at,
    )


def registration_to_domain(row: models.Registration) -> Registration:
    intent = None
    if hasattr(row, "payment_intent"):
        stored = row.payment_intent
        intent = PaymentIntentReference(
            intent_id=stored.provider_intent_id,
            status=stored.status,
            amount=stored.amount,
            currency=stored.currency,
            client_secret=stored.client_secret,
        )
    return Registration(
        id=RegistrationId(row.id),
        event_id=EventId(row.event_id),
        user_id=row.user_id,
        status=RegistrationStatus(row.status),
        idempotency_key=IdempotencyKey(row.idempotency_key),
        holds_slot=row.holds_slot,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
        attendee=Attendee(
            name=row.attendee_name,
            email=row.attendee_email,
            phone=row.attendee_phone,
        ),
        payment_intent=intent,
        expires_at=row.expires_at,
        confirmed_at=row.confirmed_at,
    )


class DjangoEventStore(EventStore):
    """Event reads backed by the Django ORM."""

    @translate_db_errors
    def get_event(self, event_id: EventId) -> Event | None:
        row = models.Event.objects.filter(pk=event_id.value).first()
        return event_to_domain(row) if row is not None else None


class DjangoCapacityLedger(CapacityLedger):
    """Capacity ledger backed by one CapacityLedger row per event."""

    def _ensure_entry(self, event: Event) -> None:
        models.CapacityLedger.objects.get_or_create(
            event_id=event.id.value,
            defaults={"capacity": event.capacity.value if event.capacity is not None else None},
        )

    @translate_db_errors
    def try_reserve(self, event: Event) -> bool:
        self._ensure_entry(event)
        granted = (
            models.CapacityLedger.objects.filter(event_id=event.id.value)
            .filter(Q(capacity__isnull=True) | Q(held_count__lt=F("capacity")))
            .update(held_count=F("held_count") + 1, updated_at=timezone.now())
        )
        if granted:
            invalidate_capacity_cache(event.id)
        return bool(granted)

    @translate_db_errors
    def release(self, registration_id: RegistrationId) -> bool:
        with transaction.atomic():
            owned = models.Registration.objects.filter(pk=registration_id.value, holds_slot=True).update(
                holds_slot=False
            )
            if not owned:
                return False
            event_id = (
                models.Registration.objects.filter(pk=registration_id.value)
                .values_list("event_id", flat=True)
                .get()
            )
            decremented = models.CapacityLedger.objects.filter(event_id=event_id, held_count__gt=0).update(
                held_count=F("held_count") - 1, updated_at=timezone.now()
            )
            if not decremented:
                logger.error(
                    "capacity.release_underflow",
                    registration_id=str(registration_id),
                    event_id=str(event_id),
                )
            invalidate_capacity_cache(EventId(event_id))
        return True

    @translate_db_errors
    def held_count(self, event_id: EventId) -> int:
        held = (
            models.CapacityLedger.objects.filter(event_id=event_id.value)
            .values_list("held_count", flat=True)
            .first()
        )
        return held or 0


class DjangoRegistrationStore(RegistrationStore):
    """Registration persistence backed by the Django ORM."""

    def __init__(self, ledger: CapacityLedger | None = None) -> None:
        self._ledger = ledger or DjangoCapacityLedger()

    def _rows(self):
        return models.Registration.objects.select_related("payment_intent")

    def atomic(self) -> AbstractContextManager[None]:
        return transaction.atomic()

    def on_commit(self, callback: Callable[[], None]) -> None:
        transaction.on_commit(callback)

    @translate_db_errors
    def get(self, registration_id: RegistrationId) -> Registration | None:
        row = self._rows().filter(pk=registration_id.value).first()
        return registration_to_domain(row) if row is not None else None

    @translate_db_errors
    def find_by_idempotency_key(self, user_id: str, key: IdempotencyKey) -> Registration | None:
        row = self._rows().filter(user_id=user_id, idempotency_key=key.value).first()
        return registration_to_domain(row) if row is not None else None

    @translate_db_errors
    def find_live(self, event_id: EventId, user_id: str) -> Registration | None:
        row = (
            self._rows()
            .filter(event_id=event_id.value, user_id=user_id, status__in=models.LIVE_STATUSES)
            .first()
        )
        return registration_to_domain(row) if row is not None else None

    @translate_db_errors
    def find_latest(self, event_id: EventId, user_id: str) -> Registration | None:
        row = self._rows().filter(event_id=event_id.value, user_id=user_id).order_by("-created_at").first()
        return registration_to_domain(row) if row is not None else None

    @translate_db_errors
    def find_by_intent(self, intent_id: str, for_update: bool = False) -> Registration | None:
        rows = models.Registration.objects.filter(payment_intent__provider_intent_id=intent_id)
        if for_update:
            rows = rows.select_for_update()
        pk = rows.values_list("pk", flat=True).first()
        if pk is None:
            return None
        return self.get(RegistrationId(pk))

    @translate_db_errors
    def list_for_user(self, user_id: str) -> list[Registration]:
        rows = self._rows().filter(user_id=user_id).order_by("-created_at")
        return [registration_to_domain(row) for row in rows]

    @translate_db_errors
    def list_stale(self, awaiting_before: datetime, pending_before: datetime) -> list[Registration]:
        rows = (
            self._rows()
            .filter(
                Q(status=models.Registration.Status.AWAITING_PAYMENT, expires_at__lte=awaiting_before)
                | Q(status=models.Registration.Status.PENDING, created_at__lte=pending_before)
            )
            .order_by("created_at")
        )
        return [registration_to_domain(row) for row in rows]

    @translate_db_errors
    def create_with_reservation(
        self,
        event: Event,
        user_id: str,
        key: IdempotencyKey,
        attendee: Attendee,
        status: RegistrationStatus,
        now: datetime,
    ) -> Registration:
        try:
            with transaction.atomic():
                if not self._ledger.try_reserve(event):
                    raise CapacityExceededError(str(event.id))
                row = models.Registration.objects.create(
                    event_id=event.id.value,
                    user_id=user_id,
                    status=status.value,
                    idempotency_key=key.value,
                    holds_slot=True,
                    attendee_name=attendee.name,
                    attendee_email=attendee.email,
                    attendee_phone=attendee.phone,
                    confirmed_at=now if status is RegistrationStatus.CONFIRMED else None,
                )
        except IntegrityError as exc:
            raise DuplicateRegistrationError() from exc
        return registration_to_domain(row)

    @translate_db_errors
    def attach_payment_intent(
        self,
        registration_id: RegistrationId,
        expected_version: int,
        intent: PaymentIntentReference,
        expires_at: datetime,
        now: datetime,
    ) -> Registration | None:
        with transaction.atomic():
            updated = models.Registration.objects.filter(
                pk=registration_id.value,
                version=expected_version,
                status=models.Registration.Status.PENDING,
            ).update(
                status=models.Registration.Status.AWAITING_PAYMENT,
                version=F("version") + 1,
                expires_at=expires_at,
                updated_at=now,
            )
            if not updated:
                return None
            models.PaymentIntent.objects.create(
                registration_id=registration_id.value,
                provider_intent_id=intent.intent_id,
                client_secret=intent.client_secret,
                status=intent.status,
                amount=intent.amount,
                currency=intent.currency,
            )
        return self.get(registration_id)

    @translate_db_errors
    def transition(
        self,
        registration_id: RegistrationId,
        expected_version: int,
        target: RegistrationStatus,
        now: datetime,
        intent_status: str | None = None,
    ) -> Registration | None:
        values = {"status": target.value, "version": F("version") + 1, "updated_at": now}
        if target is RegistrationStatus.CONFIRMED:
            values["confirmed_at"] = now
        with transaction.atomic():
            updated = models.Registration.objects.filter(
                pk=registration_id.value,
                version=expected_version,
                status__in=[status.value for status in sources_for(target)],
            ).update(**values)
            if not updated:
                return None
            if releases_slot(target) and not self._ledger.release(registration_id):
                logger.error(
                    "registration.release_failed",
                    registration_id=str(registration_id),
                    target=target.value,
                )
            if intent_status:
                models.PaymentIntent.objects.filter(registration_id=registration_id.value).update(
                    status=intent_status, updated_at=now
                )
        return self.get(registration_id)

    @translate_db_errors
    def mark_webhook_processed(self, provider_event_id: str, event_type: str) -> bool:
        try:
            with transaction.atomic():
                models.ProcessedWebhookEvent.objects.create(
                    provider_event_id=provider_event_id,
                    event_type=event_type,
                )
        except IntegrityError:
            return False
        return True
