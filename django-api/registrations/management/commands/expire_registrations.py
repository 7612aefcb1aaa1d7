"""Expire abandoned checkouts and give their capacity slots back.

Run periodically (cron, systemd timer, k8s CronJob), e.g. every minute.
"""

import structlog
from django.core.management.base import BaseCommand

from registrations.services import build_registration_service

logger = structlog.get_logger(__name__)


class Command(BaseCommand):
    help = "Expire registrations whose payment window has passed and release their slots."

    def handle(self, *args, **options):
        expired = build_registration_service().expire_stale_registrations()
        logger.info("registration.sweep_finished", expired=expired)
        self.stdout.write(f"Expired {expired} registration(s)")
