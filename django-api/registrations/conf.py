"""Namespaced settings for the registrations app.

Values come from ``settings.REGISTRATIONS`` and fall back to DEFAULTS.
"""

from typing import Any

from django.conf import settings

DEFAULTS: dict[str, Any] = {
    "PAYMENT_GATEWAY": "stripe",
    "STRIPE_SECRET_KEY": "",
    "STRIPE_WEBHOOK_SECRET": "",
    "PAYMENT_WINDOW_SECONDS": 30 * 60,
    "PENDING_GRACE_SECONDS": 5 * 60,
    "GATEWAY_MAX_ATTEMPTS": 3,
    "GATEWAY_BACKOFF_SECONDS": 0.5,
    "GATEWAY_MAX_BACKOFF_SECONDS": 4.0,
    "CAPACITY_CACHE_SECONDS": 5,
}


class RegistrationSettings:
    """Attribute access to REGISTRATIONS settings, read fresh on every lookup."""

    def __getattr__(self, name: str) -> Any:
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid registrations setting: {name}")
        overrides = getattr(settings, "REGISTRATIONS", {})
        return overrides.get(name, DEFAULTS[name])


registration_settings = RegistrationSettings()
