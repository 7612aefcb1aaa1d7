"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
Registration, CapacityLedger, PaymentIntent and ProcessedWebhookEvent share
one database so webhook reconciliation can commit atomically.
"""

import uuid

from django.db import models
from django.db.models import Q

LIVE_STATUSES = ("pending", "awaiting_payment", "confirmed")


class Event(models.Model):
    """Persistence model for events (read by the registration core)."""

    class Status(models.TextChoices):
        DRAFT = "draft"
        PUBLISHED = "published"
        ENDED = "ended"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.DRAFT)
    starts_at = models.DateTimeField(blank=True, null=True)
    capacity = models.PositiveIntegerField(blank=True, null=True, help_text="Empty means unlimited")
    price_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    currency = models.CharField(max_length=3, default="usd")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["-created_at"]),
        ]

    def __str__(self) -> str:
        return self.name


class CapacityLedger(models.Model):
    """Per-event count of registrations holding a capacity slot.

    Only ever mutated with single conditional UPDATE statements.
    """

    event = models.OneToOneField(
        Event, on_delete=models.CASCADE, primary_key=True, related_name="ledger"
    )
    capacity = models.PositiveIntegerField(blank=True, null=True)
    held_count = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        limit = "unlimited" if self.capacity is None else self.capacity
        return f"{self.event_id}: {self.held_count}/{limit}"


class Registration(models.Model):
    """Persistence model for a user's registration to an event."""

    class Status(models.TextChoices):
        PENDING = "pending"
        AWAITING_PAYMENT = "awaiting_payment"
        CONFIRMED = "confirmed"
        PAYMENT_FAILED = "payment_failed"
        EXPIRED = "expired"
        CANCELED = "canceled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="registrations")
    user_id = models.CharField(max_length=64)
    status = models.CharField(max_length=32, choices=Status.choices, default=Status.PENDING)
    idempotency_key = models.CharField(max_length=255)
    holds_slot = models.BooleanField(default=False)
    version = models.PositiveIntegerField(default=1)
    attendee_name = models.CharField(max_length=100, blank=True)
    attendee_email = models.EmailField(blank=True)
    attendee_phone = models.CharField(max_length=20, blank=True)
    expires_at = models.DateTimeField(blank=True, null=True)
    confirmed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "idempotency_key"],
                name="registration_idempotency_key_uniq",
            ),
            models.UniqueConstraint(
                fields=["event", "user_id"],
                condition=Q(status__in=LIVE_STATUSES),
                name="registration_live_per_user_uniq",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "expires_at"]),
            models.Index(fields=["event", "user_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} @ {self.event_id} ({self.status})"


class PaymentIntent(models.Model):
    """The provider's payment intent attached to a registration."""

    registration = models.OneToOneField(
        Registration, on_delete=models.CASCADE, related_name="payment_intent"
    )
    provider_intent_id = models.CharField(max_length=255, unique=True)
    client_secret = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=64)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.provider_intent_id} ({self.status})"


class ProcessedWebhookEvent(models.Model):
    """Provider event ids that have already been applied."""

    provider_event_id = models.CharField(max_length=255, primary_key=True)
    event_type = models.CharField(max_length=255)
    processed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-processed_at"]

    def __str__(self) -> str:
        return f"{self.provider_event_id} ({self.event_type})"
