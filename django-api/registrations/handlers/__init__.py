from registrations.handlers.views import (
    EventCapacityView,
    EventRegistrationView,
    PaymentHealthView,
    PaymentWebhookView,
    RegistrationCancelView,
    RegistrationListView,
)

__all__ = [
    "EventCapacityView",
    "EventRegistrationView",
    "PaymentHealthView",
    "PaymentWebhookView",
    "RegistrationCancelView",
    "RegistrationListView",
]
