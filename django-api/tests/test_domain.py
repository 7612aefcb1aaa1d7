"""Unit tests for domain primitives and the registration state table.

These test invariants that must hold at construction time.
Run with: pytest tests/test_domain.py -v
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from registrations.domain import (
    Capacity,
    Event,
    EventId,
    EventStatus,
    IdempotencyKey,
    Money,
    RegistrationStatus,
)
from registrations.domain.errors import InvalidStateTransitionError
from registrations.domain.transitions import can_transition, ensure_transition, releases_slot, sources_for

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestMoney:
    """Tests for Money value object."""

    def test_money_accepts_positive_amount(self):
        assert Money(Decimal("10.50")).amount == Decimal("10.50")

    def test_money_accepts_zero(self):
        assert Money(Decimal("0")).is_zero

    def test_money_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            Money(Decimal("-1"))

    def test_money_rejects_bad_currency(self):
        with pytest.raises(ValueError):
            Money(Decimal("1"), "dollars")

    def test_currency_is_lowercased(self):
        assert Money(Decimal("1"), "EUR").currency == "eur"

    def test_minor_units_rounds_half_up(self):
        assert Money(Decimal("25.00")).minor_units == 2500
        assert Money(Decimal("19.995")).minor_units == 2000

    def test_money_str_format(self):
        assert str(Money(Decimal("5"))) == "5.00 USD"


class TestCapacity:
    """Tests for Capacity value object."""

    def test_capacity_accepts_zero(self):
        assert Capacity(0).value == 0

    def test_capacity_rejects_negative_value(self):
        with pytest.raises(ValueError):
            Capacity(-1)


class TestIdentifiers:
    def test_from_string_valid_uuid(self):
        value = uuid4()
        assert EventId.from_string(str(value)).value == value

    def test_from_string_invalid_uuid(self):
        with pytest.raises(ValueError):
            EventId.from_string("not-a-uuid")

    def test_idempotency_key_is_stripped(self):
        assert IdempotencyKey("  abc ").value == "abc"

    @pytest.mark.parametrize("value", ["", "   ", "x" * 256])
    def test_idempotency_key_rejects_blank_or_long(self, value):
        with pytest.raises(ValueError):
            IdempotencyKey(value)


class TestEvent:
    def make(self, **overrides) -> Event:
        fields = {
            "id": EventId(uuid4()),
            "name": "Workshop",
            "status": EventStatus.PUBLISHED,
            "capacity": Capacity(5),
            "price": Money(Decimal("0")),
            "starts_at": NOW + timedelta(days=1),
        }
        fields.update(overrides)
        return Event(**fields)

    def test_zero_or_missing_price_is_free(self):
        assert self.make().is_free
        assert self.make(price=None).is_free
        assert not self.make(price=Money(Decimal("12"))).is_free

    def test_published_future_event_is_open(self):
        assert self.make().is_open_for_registration(NOW)

    def test_draft_event_is_closed(self):
        assert not self.make(status=EventStatus.DRAFT).is_open_for_registration(NOW)

    def test_started_event_is_closed(self):
        assert not self.make(starts_at=NOW - timedelta(minutes=1)).is_open_for_registration(NOW)


class TestTransitions:
    """Terminal states are sinks and failures give the slot back."""

    @pytest.mark.parametrize(
        "terminal",
        [
            RegistrationStatus.CONFIRMED,
            RegistrationStatus.PAYMENT_FAILED,
            RegistrationStatus.EXPIRED,
            RegistrationStatus.CANCELED,
        ],
    )
    def test_terminal_states_have_no_exits(self, terminal):
        assert terminal.is_terminal
        for target in RegistrationStatus:
            assert not can_transition(terminal, target)

    def test_confirmation_only_from_pending_or_awaiting_payment(self):
        assert sources_for(RegistrationStatus.CONFIRMED) == {
            RegistrationStatus.PENDING,
            RegistrationStatus.AWAITING_PAYMENT,
        }

    def test_ensure_transition_rejects_leaving_terminal_state(self):
        with pytest.raises(InvalidStateTransitionError) as excinfo:
            ensure_transition("r1", RegistrationStatus.CONFIRMED, RegistrationStatus.CANCELED)
        assert excinfo.value.current == "confirmed"

    def test_only_failure_states_release(self):
        assert releases_slot(RegistrationStatus.CANCELED)
        assert releases_slot(RegistrationStatus.EXPIRED)
        assert releases_slot(RegistrationStatus.PAYMENT_FAILED)
        assert not releases_slot(RegistrationStatus.CONFIRMED)

    def test_live_statuses(self):
        assert RegistrationStatus.AWAITING_PAYMENT.is_live
        assert RegistrationStatus.CONFIRMED.is_live
        assert not RegistrationStatus.CANCELED.is_live
