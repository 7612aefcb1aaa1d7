"""Domain error codes for the registrations module."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    INVALID_EVENT_ID = "INVALID_EVENT_ID"
    EVENT_NOT_OPEN = "EVENT_NOT_OPEN"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    DUPLICATE_REGISTRATION = "DUPLICATE_REGISTRATION"
    IDEMPOTENCY_KEY_REUSED = "IDEMPOTENCY_KEY_REUSED"
    INVALID_IDEMPOTENCY_KEY = "INVALID_IDEMPOTENCY_KEY"
    REGISTRATION_NOT_FOUND = "REGISTRATION_NOT_FOUND"
    INVALID_REGISTRATION_ID = "INVALID_REGISTRATION_ID"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    PAYMENT_GATEWAY_TRANSIENT = "PAYMENT_GATEWAY_TRANSIENT"
    PAYMENT_GATEWAY_PERMANENT = "PAYMENT_GATEWAY_PERMANENT"
    REGISTRATION_FAILED = "REGISTRATION_FAILED"
    UNKNOWN_WEBHOOK_TARGET = "UNKNOWN_WEBHOOK_TARGET"
    INVALID_WEBHOOK_PAYLOAD = "INVALID_WEBHOOK_PAYLOAD"
    WEBHOOK_SIGNATURE_INVALID = "WEBHOOK_SIGNATURE_INVALID"
    PAYMENT_NOT_CONFIGURED = "PAYMENT_NOT_CONFIGURED"
    TRANSIENT_STORE_ERROR = "TRANSIENT_STORE_ERROR"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class EventNotFoundError(DomainError):
    """Raised when an event is not found."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            code=ErrorCode.EVENT_NOT_FOUND,
            message="Event not found",
        )
        self.event_id = event_id


class InvalidEventIdError(DomainError):
    """Raised when an event ID is invalid."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_EVENT_ID,
            message="Invalid event ID format",
        )


class EventNotOpenError(DomainError):
    """Raised when an event is not accepting registrations (draft, ended or started)."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            code=ErrorCode.EVENT_NOT_OPEN,
            message="Registration unavailable",
        )
        self.event_id = event_id


class CapacityExceededError(DomainError):
    """Raised when no capacity slot could be reserved."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            code=ErrorCode.CAPACITY_EXCEEDED,
            message="Registration unavailable",
        )
        self.event_id = event_id


class AlreadyRegisteredError(DomainError):
    """Raised when the user already holds a confirmed registration for the event."""

    def __init__(self, registration_id: str) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_REGISTERED,
            message="You are already registered for this event",
        )
        self.registration_id = registration_id


class DuplicateRegistrationError(DomainError):
    """Raised by stores when a uniqueness guard rejects a new registration.

    Services resolve this to the registration that won; it never reaches callers.
    """

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.DUPLICATE_REGISTRATION,
            message="Registration already exists",
        )


class IdempotencyKeyReusedError(DomainError):
    """Raised when an idempotency key is replayed against a different event."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.IDEMPOTENCY_KEY_REUSED,
            message="Idempotency key was already used for another request",
        )


class InvalidIdempotencyKeyError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_IDEMPOTENCY_KEY,
            message="Invalid idempotency key",
        )


class RegistrationNotFoundError(DomainError):
    """Raised when a registration is not found (or not visible to the caller)."""

    def __init__(self, registration_id: str) -> None:
        super().__init__(
            code=ErrorCode.REGISTRATION_NOT_FOUND,
            message="Registration not found",
        )
        self.registration_id = registration_id


class InvalidRegistrationIdError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_REGISTRATION_ID,
            message="Invalid registration ID format",
        )


class InvalidStateTransitionError(DomainError):
    """Raised when a transition is attempted out of a terminal or unrelated state."""

    def __init__(self, registration_id: str, current: str, target: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_STATE_TRANSITION,
            message="Registration can no longer be changed",
        )
        self.registration_id = registration_id
        self.current = current
        self.target = target


class PaymentGatewayError(DomainError):
    """Base for failures reported by the payment gateway adapter."""


class PaymentGatewayTransientError(PaymentGatewayError):
    """Timeouts, connection failures, rate limits and provider 5xx."""

    def __init__(self, detail: str = "") -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_GATEWAY_TRANSIENT,
            message="Payment provider temporarily unavailable",
        )
        self.detail = detail


class PaymentGatewayPermanentError(PaymentGatewayError):
    """Invalid amounts, account restrictions and other non-retryable failures."""

    def __init__(self, detail: str = "") -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_GATEWAY_PERMANENT,
            message="Payment failed",
        )
        self.detail = detail


class PaymentNotConfiguredError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_NOT_CONFIGURED,
            message="Payment processing is not configured",
        )


class RegistrationFailedError(DomainError):
    """Raised when registration creation failed after the slot was released."""

    def __init__(self, registration_id: str) -> None:
        super().__init__(
            code=ErrorCode.REGISTRATION_FAILED,
            message="Payment failed",
        )
        self.registration_id = registration_id


class UnknownWebhookTargetError(DomainError):
    def __init__(self, intent_id: str) -> None:
        super().__init__(
            code=ErrorCode.UNKNOWN_WEBHOOK_TARGET,
            message="No registration matches this payment",
        )
        self.intent_id = intent_id


class InvalidWebhookPayloadError(DomainError):
    def __init__(self, event_type: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_WEBHOOK_PAYLOAD,
            message="Malformed webhook payload",
        )
        self.event_type = event_type


class WebhookSignatureError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.WEBHOOK_SIGNATURE_INVALID,
            message="Invalid signature",
        )


class TransientStoreError(DomainError):
    """Raised by stores when the database is temporarily unavailable."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.TRANSIENT_STORE_ERROR,
            message="Service temporarily unavailable",
        )
