"""Registration state machine table.

Terminal states have no outgoing edges. Entering any of RELEASING_STATUSES
from a slot-holding state gives the capacity slot back.
"""

from registrations.domain.errors import InvalidStateTransitionError
from registrations.domain.models import RegistrationStatus

S = RegistrationStatus

ALLOWED_TRANSITIONS: dict[RegistrationStatus, frozenset[RegistrationStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.AWAITING_PAYMENT, S.PAYMENT_FAILED, S.EXPIRED, S.CANCELED}),
    S.AWAITING_PAYMENT: frozenset({S.CONFIRMED, S.PAYMENT_FAILED, S.EXPIRED, S.CANCELED}),
    S.CONFIRMED: frozenset(),
    S.PAYMENT_FAILED: frozenset(),
    S.EXPIRED: frozenset(),
    S.CANCELED: frozenset(),
}

RELEASING_STATUSES = frozenset({S.PAYMENT_FAILED, S.EXPIRED, S.CANCELED})


def can_transition(current: RegistrationStatus, target: RegistrationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def sources_for(target: RegistrationStatus) -> frozenset[RegistrationStatus]:
    """All states from which ``target`` may be entered."""
    return frozenset(state for state, targets in ALLOWED_TRANSITIONS.items() if target in targets)


def ensure_transition(registration_id: str, current: RegistrationStatus, target: RegistrationStatus) -> None:
    """Raise InvalidStateTransitionError unless current -> target is an edge."""
    if not can_transition(current, target):
        raise InvalidStateTransitionError(registration_id, current.value, target.value)


def releases_slot(target: RegistrationStatus) -> bool:
    return target in RELEASING_STATUSES
