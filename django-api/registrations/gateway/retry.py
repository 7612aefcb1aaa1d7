"""Bounded retry policy for payment intent creation."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from registrations.domain import Money
from registrations.domain.errors import PaymentGatewayTransientError
from registrations.gateway.port import CreatedIntent, PaymentGateway, PaymentNotification, WebhookEnvelope

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff capped at ``max_delay`` for ``max_attempts`` tries."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 4.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)


class RetryingPaymentGateway(PaymentGateway):
    """Wraps a gateway and retries transient intent-creation failures.

    The idempotency key is passed through unchanged so a retried request
    cannot create a second intent at the provider.
    """

    def __init__(
        self,
        inner: PaymentGateway,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.inner = inner
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def create_intent(self, amount: Money, metadata: dict[str, str], idempotency_key: str) -> CreatedIntent:
        attempt = 1
        while True:
            try:
                return self.inner.create_intent(amount, metadata, idempotency_key)
            except PaymentGatewayTransientError as exc:
                if attempt >= self.policy.max_attempts:
                    logger.error(
                        "gateway.retries_exhausted",
                        attempts=attempt,
                        idempotency_key=idempotency_key,
                        detail=exc.detail,
                    )
                    raise
                delay = self.policy.delay_for(attempt)
                logger.warning(
                    "gateway.transient_error",
                    attempt=attempt,
                    retry_in=delay,
                    idempotency_key=idempotency_key,
                    detail=exc.detail,
                )
                self._sleep(delay)
                attempt += 1

    def cancel_intent(self, intent_id: str) -> None:
        self.inner.cancel_intent(intent_id)

    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEnvelope:
        return self.inner.verify_webhook(payload, signature)

    def normalize_event(self, event_type: str, payload: dict[str, Any]) -> PaymentNotification:
        return self.inner.normalize_event(event_type, payload)

    def check_connection(self) -> dict[str, Any]:
        return self.inner.check_connection()
