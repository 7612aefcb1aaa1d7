"""Registration service - the registration state machine.

Services:
- Depend only on interfaces (stores, payment gateway)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or domain errors

The capacity slot is reserved and committed before the payment provider is
called. A failed provider call is compensated by a second transaction that
fails the registration and releases the slot; no transaction is held open
across the network call.
"""

from collections.abc import Callable
from datetime import datetime, timedelta

import structlog
from django.utils import timezone

from registrations.domain import (
    Attendee,
    Event,
    EventId,
    IdempotencyKey,
    PaymentIntentReference,
    Registration,
    RegistrationId,
    RegistrationStatus,
)
from registrations.domain.errors import (
    AlreadyRegisteredError,
    DuplicateRegistrationError,
    EventNotFoundError,
    EventNotOpenError,
    IdempotencyKeyReusedError,
    InvalidEventIdError,
    InvalidIdempotencyKeyError,
    InvalidRegistrationIdError,
    InvalidStateTransitionError,
    PaymentGatewayError,
    PaymentNotConfiguredError,
    RegistrationFailedError,
    RegistrationNotFoundError,
)
from registrations.domain.transitions import ensure_transition
from registrations.gateway.port import PaymentGateway
from registrations.stores.interfaces import EventStore, RegistrationStore

logger = structlog.get_logger(__name__)


class RegistrationService:
    """Creates, cancels and expires registrations."""

    def __init__(
        self,
        events: EventStore,
        registrations: RegistrationStore,
        gateway: PaymentGateway,
        payment_window: timedelta = timedelta(minutes=30),
        pending_grace: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._events = events
        self._registrations = registrations
        self._gateway = gateway
        self._payment_window = payment_window
        self._pending_grace = pending_grace
        self._clock = clock

    def register(
        self,
        event_id: str,
        user_id: str,
        idempotency_key: str,
        attendee: Attendee | None = None,
    ) -> Registration:
        """Register a user for an event.

        Free events are confirmed immediately. Priced events end in
        awaiting_payment with a client secret for the browser checkout.
        Replaying an idempotency key returns the registration it created.

        Raises:
            InvalidEventIdError: If the event_id is not a valid UUID.
            InvalidIdempotencyKeyError: If the key is blank or too long.
            IdempotencyKeyReusedError: If the key was used for another event.
            EventNotFoundError: If the event does not exist.
            EventNotOpenError: If the event is not accepting registrations.
            AlreadyRegisteredError: If the user is already confirmed.
            CapacityExceededError: If no slot is left.
            RegistrationFailedError: If the payment intent could not be created.
        """
        parsed_event_id = self._parse_event_id(event_id)
        key = self._parse_idempotency_key(idempotency_key)

        replayed = self._registrations.find_by_idempotency_key(user_id, key)
        if replayed is not None:
            if replayed.event_id != parsed_event_id:
                raise IdempotencyKeyReusedError()
            logger.info("registration.replayed", registration_id=str(replayed.id), status=replayed.status.value)
            return replayed

        event = self._events.get_event(parsed_event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        if not event.is_open_for_registration(self._clock()):
            raise EventNotOpenError(event_id)

        live = self._registrations.find_live(event.id, user_id)
        if live is not None:
            return self._resume(live)

        initial = RegistrationStatus.CONFIRMED if event.is_free else RegistrationStatus.PENDING
        try:
            registration = self._registrations.create_with_reservation(
                event, user_id, key, attendee or Attendee(), initial, self._clock()
            )
        except DuplicateRegistrationError:
            # A concurrent request with the same key or for the same user won.
            same_key = self._registrations.find_by_idempotency_key(user_id, key)
            if same_key is not None:
                if same_key.event_id != event.id:
                    raise IdempotencyKeyReusedError() from None
                return same_key
            live = self._registrations.find_live(event.id, user_id)
            if live is None:
                raise
            return self._resume(live)

        logger.info(
            "registration.created",
            registration_id=str(registration.id),
            event_id=str(event.id),
            status=registration.status.value,
        )
        if event.is_free:
            return registration
        return self._start_payment(event, registration)

    def cancel(self, registration_id: str, user_id: str) -> Registration:
        """Cancel a registration before it is confirmed.

        Raises:
            InvalidRegistrationIdError: If the id is not a valid UUID.
            RegistrationNotFoundError: If it does not exist or belongs to someone else.
            InvalidStateTransitionError: If the registration is already terminal.
        """
        registration = self._get_owned(registration_id, user_id)
        self._ensure_transition(registration, RegistrationStatus.CANCELED)

        canceled = self._registrations.transition(
            registration.id, registration.version, RegistrationStatus.CANCELED, self._clock()
        )
        if canceled is None:
            current = self._registrations.get(registration.id) or registration
            self._ensure_transition(current, RegistrationStatus.CANCELED)
            # Same state but a newer version: someone else is mid-update.
            raise InvalidStateTransitionError(
                str(current.id), current.status.value, RegistrationStatus.CANCELED.value
            )

        logger.info("registration.canceled", registration_id=str(canceled.id), event_id=str(canceled.event_id))
        if registration.payment_intent is not None:
            self._cancel_intent(registration.payment_intent.intent_id, registration.id)
        return canceled

    def expire_stale_registrations(self) -> int:
        """Expire checkouts whose payment window has passed.

        Also reclaims pending registrations that never reached the provider
        (e.g. the process died between reserving and creating the intent).
        Returns the number of registrations expired.
        """
        now = self._clock()
        stale = self._registrations.list_stale(awaiting_before=now, pending_before=now - self._pending_grace)
        expired = 0
        for registration in stale:
            if registration.status is RegistrationStatus.PENDING:
                logger.error(
                    "registration.stuck_pending",
                    registration_id=str(registration.id),
                    event_id=str(registration.event_id),
                    created_at=registration.created_at.isoformat(),
                )
            updated = self._registrations.transition(
                registration.id, registration.version, RegistrationStatus.EXPIRED, now
            )
            if updated is None:
                logger.info("registration.expiry_skipped", registration_id=str(registration.id))
                continue
            expired += 1
            logger.info("registration.expired", registration_id=str(registration.id), event_id=str(registration.event_id))
            if registration.payment_intent is not None:
                self._cancel_intent(registration.payment_intent.intent_id, registration.id)
        return expired

    def _start_payment(self, event: Event, registration: Registration) -> Registration:
        metadata = {
            "event_id": str(event.id),
            "registration_id": str(registration.id),
            "user_id": registration.user_id,
        }
        try:
            created = self._gateway.create_intent(event.price, metadata, idempotency_key=f"registration-{registration.id}")
        except (PaymentGatewayError, PaymentNotConfiguredError) as exc:
            logger.warning(
                "registration.intent_failed",
                registration_id=str(registration.id),
                code=exc.code.value,
            )
            self._compensate(registration)
            if isinstance(exc, PaymentNotConfiguredError):
                raise
            raise RegistrationFailedError(str(registration.id)) from exc

        now = self._clock()
        intent = PaymentIntentReference(
            intent_id=created.intent_id,
            status=created.status,
            amount=event.price.amount,
            currency=event.price.currency,
            client_secret=created.client_secret,
        )
        attached = self._registrations.attach_payment_intent(
            registration.id, registration.version, intent, now + self._payment_window, now
        )
        if attached is None:
            current = self._registrations.get(registration.id)
            logger.warning(
                "registration.changed_during_checkout",
                registration_id=str(registration.id),
                status=current.status.value if current else None,
            )
            self._cancel_intent(created.intent_id, registration.id)
            if current is None:
                raise RegistrationNotFoundError(str(registration.id))
            return current

        logger.info(
            "registration.awaiting_payment",
            registration_id=str(attached.id),
            intent_id=created.intent_id,
            expires_at=attached.expires_at.isoformat() if attached.expires_at else None,
        )
        return attached

    def _compensate(self, registration: Registration) -> None:
        failed = self._registrations.transition(
            registration.id, registration.version, RegistrationStatus.PAYMENT_FAILED, self._clock()
        )
        if failed is not None:
            return
        current = self._registrations.get(registration.id)
        if current is not None and current.status.is_terminal:
            # Someone else (usually the expiry sweep) already settled it.
            logger.info(
                "registration.compensation_skipped",
                registration_id=str(registration.id),
                status=current.status.value,
            )
            return
        # Still holding a slot; the expiry sweep will reclaim it.
        logger.critical("registration.compensation_failed", registration_id=str(registration.id))

    def _resume(self, live: Registration) -> Registration:
        if live.status is RegistrationStatus.CONFIRMED:
            raise AlreadyRegisteredError(str(live.id))
        logger.info("registration.resumed", registration_id=str(live.id), status=live.status.value)
        return live

    def _cancel_intent(self, intent_id: str, registration_id: RegistrationId) -> None:
        try:
            self._gateway.cancel_intent(intent_id)
        except (PaymentGatewayError, PaymentNotConfiguredError) as exc:
            logger.warning(
                "gateway.cancel_failed",
                intent_id=intent_id,
                registration_id=str(registration_id),
                code=exc.code.value,
            )

    def _ensure_transition(self, registration: Registration, target: RegistrationStatus) -> None:
        try:
            ensure_transition(str(registration.id), registration.status, target)
        except InvalidStateTransitionError:
            logger.warning(
                "registration.invalid_transition",
                registration_id=str(registration.id),
                current=registration.status.value,
                target=target.value,
            )
            raise

    def _get_owned(self, registration_id: str, user_id: str) -> Registration:
        try:
            parsed = RegistrationId.from_string(registration_id)
        except ValueError as exc:
            raise InvalidRegistrationIdError() from exc
        registration = self._registrations.get(parsed)
        if registration is None or registration.user_id != user_id:
            raise RegistrationNotFoundError(registration_id)
        return registration

    def _parse_event_id(self, event_id: str) -> EventId:
        try:
            return EventId.from_string(event_id)
        except ValueError as exc:
            raise InvalidEventIdError() from exc

    def _parse_idempotency_key(self, value: str) -> IdempotencyKey:
        try:
            return IdempotencyKey(value)
        except ValueError as exc:
            raise InvalidIdempotencyKeyError() from exc
