"""Webhook reconciler - the only writer of payment outcomes.

Each provider event is applied at most once: the processed-event record and
the state transition commit in the same transaction, so a redelivery after
success is a no-op and a failure before commit leaves nothing behind for the
provider's retry to trip over.
"""

from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any

import structlog
from django.utils import timezone

from registrations.domain import Registration, RegistrationStatus
from registrations.domain.errors import (
    InvalidWebhookPayloadError,
    PaymentGatewayError,
    PaymentNotConfiguredError,
    TransientStoreError,
    UnknownWebhookTargetError,
)
from registrations.gateway.port import NotificationKind, PaymentGateway, PaymentNotification
from registrations.stores.interfaces import RegistrationStore

logger = structlog.get_logger(__name__)

TARGET_STATUS = {
    NotificationKind.SUCCEEDED: RegistrationStatus.CONFIRMED,
    NotificationKind.FAILED: RegistrationStatus.PAYMENT_FAILED,
    NotificationKind.EXPIRED: RegistrationStatus.PAYMENT_FAILED,
}

RELEASED_STATUSES = frozenset(
    {RegistrationStatus.PAYMENT_FAILED, RegistrationStatus.EXPIRED, RegistrationStatus.CANCELED}
)


class ReconcileOutcome(Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    UNKNOWN_TARGET = "unknown_target"
    INVALID_PAYLOAD = "invalid_payload"
    NO_OP = "no_op"


class WebhookReconciler:
    """Applies provider notifications to registrations."""

    def __init__(
        self,
        registrations: RegistrationStore,
        gateway: PaymentGateway,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._registrations = registrations
        self._gateway = gateway
        self._clock = clock

    def handle_event(self, provider_event_id: str, event_type: str, payload: dict[str, Any]) -> ReconcileOutcome:
        """Process one provider event.

        Unknown targets, malformed payloads and transitions out of terminal
        states are recorded and dropped so they are never redelivered forever.

        Raises:
            TransientStoreError: The database failed; nothing was recorded and
                the provider should redeliver.
        """
        log = logger.bind(provider_event_id=provider_event_id, event_type=event_type)

        with self._registrations.atomic():
            if not self._registrations.mark_webhook_processed(provider_event_id, event_type):
                log.info("webhook.duplicate")
                return ReconcileOutcome.DUPLICATE

            try:
                notification = self._gateway.normalize_event(event_type, payload)
            except InvalidWebhookPayloadError:
                log.error("webhook.invalid_payload")
                return ReconcileOutcome.INVALID_PAYLOAD

            if notification.kind is NotificationKind.IGNORED:
                log.info("webhook.ignored")
                return ReconcileOutcome.IGNORED

            try:
                registration = self._resolve(notification)
            except UnknownWebhookTargetError as exc:
                log.warning("webhook.unknown_target", intent_id=exc.intent_id)
                return ReconcileOutcome.UNKNOWN_TARGET

            return self._apply(registration, notification, log)

    def _resolve(self, notification: PaymentNotification) -> Registration:
        registration = self._registrations.find_by_intent(notification.intent_id, for_update=True)
        if registration is None:
            raise UnknownWebhookTargetError(notification.intent_id)
        return registration

    def _apply(self, registration: Registration, notification: PaymentNotification, log) -> ReconcileOutcome:
        target = TARGET_STATUS[notification.kind]
        log = log.bind(registration_id=str(registration.id), intent_id=notification.intent_id)

        if registration.status is not RegistrationStatus.AWAITING_PAYMENT:
            self._log_out_of_order(registration, notification, log)
            return ReconcileOutcome.NO_OP

        updated = self._registrations.transition(
            registration.id,
            registration.version,
            target,
            self._clock(),
            intent_status=notification.provider_status or None,
        )
        if updated is None:
            # Changed between the locked read and the update; let the provider retry.
            log.warning("webhook.transition_conflict", target=target.value)
            raise TransientStoreError()

        if target is RegistrationStatus.CONFIRMED:
            log.info("registration.confirmed", event_id=str(updated.event_id))
        else:
            log.info(
                "registration.payment_failed",
                event_id=str(updated.event_id),
                reason=notification.failure_reason,
            )
            if notification.provider_status != "canceled":
                # A failed intent can still be confirmed with another card; close it.
                intent_id = notification.intent_id
                self._registrations.on_commit(lambda: self._cancel_intent(intent_id, log))
        return ReconcileOutcome.APPLIED

    def _cancel_intent(self, intent_id: str, log) -> None:
        try:
            self._gateway.cancel_intent(intent_id)
        except (PaymentGatewayError, PaymentNotConfiguredError) as exc:
            log.warning("gateway.cancel_failed", code=exc.code.value)

    def _log_out_of_order(self, registration: Registration, notification: PaymentNotification, log) -> None:
        status = registration.status
        if notification.kind is NotificationKind.SUCCEEDED and status is RegistrationStatus.CONFIRMED:
            log.info("webhook.already_applied")
        elif notification.kind is NotificationKind.SUCCEEDED and status in RELEASED_STATUSES:
            # The user was charged but their slot is gone.
            log.critical("payment.captured_without_registration", status=status.value)
        else:
            log.warning(
                "registration.invalid_transition",
                current=status.value,
                target=TARGET_STATUS[notification.kind].value,
            )
