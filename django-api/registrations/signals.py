"""Django signals keeping the capacity ledger and display cache in step with events."""

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from registrations.cache import invalidate_capacity_cache
from registrations.models import CapacityLedger, Event


@receiver(post_save, sender=Event)
def sync_capacity_ledger(sender, instance, **kwargs):
    """Copy an event's capacity onto its ledger entry and invalidate the cache."""
    CapacityLedger.objects.update_or_create(event_id=instance.pk, defaults={"capacity": instance.capacity})
    invalidate_capacity_cache(instance.pk)


@receiver(post_delete, sender=Event)
def invalidate_event_capacity_cache(sender, instance, **kwargs):
    """Invalidate the capacity cache when an event is deleted."""
    invalidate_capacity_cache(instance.pk)
