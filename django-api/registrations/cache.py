"""Cache keys for display-only reads.

Cached values are never used for capacity decisions.
"""

from django.core.cache import cache
from django.db import transaction

from registrations.domain import EventId


def capacity_cache_key(event_id: EventId | str) -> str:
    return f"registrations:{event_id}:capacity"


def invalidate_capacity_cache(event_id: EventId | str) -> None:
    """Drop the cached capacity summary once the current transaction commits."""
    key = capacity_cache_key(event_id)
    transaction.on_commit(lambda: cache.delete(key))
