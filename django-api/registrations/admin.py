from django.contrib import admin

from registrations.models import CapacityLedger, Event, PaymentIntent, ProcessedWebhookEvent, Registration


class PaymentIntentInline(admin.StackedInline):
    model = PaymentIntent
    extra = 0
    can_delete = False
    readonly_fields = ["provider_intent_id", "status", "amount", "currency", "created_at", "updated_at"]
    exclude = ["client_secret"]


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["name", "status", "starts_at", "capacity", "price_amount", "currency"]
    list_filter = ["status"]
    search_fields = ["name"]


@admin.register(CapacityLedger)
class CapacityLedgerAdmin(admin.ModelAdmin):
    list_display = ["event", "held_count", "capacity", "updated_at"]
    readonly_fields = ["event", "held_count", "capacity", "updated_at"]


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = ["id", "event", "user_id", "status", "holds_slot", "created_at"]
    list_filter = ["status", "event"]
    search_fields = ["user_id", "attendee_email", "payment_intent__provider_intent_id"]
    readonly_fields = [
        "event",
        "user_id",
        "status",
        "idempotency_key",
        "holds_slot",
        "version",
        "expires_at",
        "confirmed_at",
        "created_at",
        "updated_at",
    ]
    inlines = [PaymentIntentInline]


@admin.register(ProcessedWebhookEvent)
class ProcessedWebhookEventAdmin(admin.ModelAdmin):
    list_display = ["provider_event_id", "event_type", "processed_at"]
    search_fields = ["provider_event_id"]
