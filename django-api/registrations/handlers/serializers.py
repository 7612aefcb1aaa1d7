"""Serializers for request parsing and domain model responses."""

from rest_framework import serializers


class RegisterRequestSerializer(serializers.Serializer):
    """Input for POST /api/registrations.

    The idempotency key may come from the body or the Idempotency-Key header.
    """

    event_id = serializers.CharField(max_length=64)
    idempotency_key = serializers.CharField(max_length=255, required=False)
    attendee_name = serializers.CharField(max_length=100, required=False, default="")
    attendee_email = serializers.EmailField(required=False, default="")
    attendee_phone = serializers.CharField(max_length=20, required=False, default="")


class RegistrationSerializer(serializers.Serializer):
    """Serializer for Registration domain model."""

    registration_id = serializers.CharField(source="id")
    event_id = serializers.CharField()
    status = serializers.CharField(source="status.value")
    client_secret = serializers.CharField(allow_null=True)
    created_at = serializers.DateTimeField()
    expires_at = serializers.DateTimeField(allow_null=True)
    confirmed_at = serializers.DateTimeField(allow_null=True)


class RegistrationStatusSerializer(serializers.Serializer):
    """Serializer for the current user's registration state for one event."""

    is_registered = serializers.BooleanField()
    status = serializers.CharField(allow_null=True)
    registration_id = serializers.CharField(allow_null=True)
    confirmed_at = serializers.DateTimeField(allow_null=True)


class CapacitySerializer(serializers.Serializer):
    """Serializer for CapacitySummary; null means unlimited."""

    capacity = serializers.IntegerField(allow_null=True)
    remaining = serializers.IntegerField(allow_null=True)
