from django.urls import path

from registrations.handlers import (
    EventCapacityView,
    EventRegistrationView,
    PaymentHealthView,
    PaymentWebhookView,
    RegistrationCancelView,
    RegistrationListView,
)

urlpatterns = [
    path("registrations", RegistrationListView.as_view(), name="registration-list"),
    path(
        "registrations/<str:registration_id>/cancel",
        RegistrationCancelView.as_view(),
        name="registration-cancel",
    ),
    path(
        "events/<str:event_id>/registration",
        EventRegistrationView.as_view(),
        name="event-registration",
    ),
    path("events/<str:event_id>/capacity", EventCapacityView.as_view(), name="event-capacity"),
    path("payments/webhook", PaymentWebhookView.as_view(), name="payment-webhook"),
    path("payments/health", PaymentHealthView.as_view(), name="payment-health"),
]
