"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

import structlog
from django.core.cache import cache
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from registrations import gateway as payment_gateway
from registrations import services
from registrations.cache import capacity_cache_key
from registrations.conf import registration_settings
from registrations.domain import Attendee, EventId
from registrations.domain.errors import DomainError, ErrorCode, InvalidEventIdError, TransientStoreError
from registrations.handlers.serializers import (
    CapacitySerializer,
    RegisterRequestSerializer,
    RegistrationSerializer,
    RegistrationStatusSerializer,
)

logger = structlog.get_logger(__name__)

ERROR_STATUS = {
    ErrorCode.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.REGISTRATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_EVENT_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_REGISTRATION_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_IDEMPOTENCY_KEY: status.HTTP_400_BAD_REQUEST,
    ErrorCode.WEBHOOK_SIGNATURE_INVALID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EVENT_NOT_OPEN: status.HTTP_409_CONFLICT,
    ErrorCode.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_REGISTERED: status.HTTP_409_CONFLICT,
    ErrorCode.IDEMPOTENCY_KEY_REUSED: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_STATE_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.REGISTRATION_FAILED: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.PAYMENT_GATEWAY_PERMANENT: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.PAYMENT_GATEWAY_TRANSIENT: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.PAYMENT_NOT_CONFIGURED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.TRANSIENT_STORE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(error: DomainError) -> Response:
    return Response(
        {"error": {"code": error.code.value, "message": error.message}},
        status=ERROR_STATUS.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
    )


def current_user_id(request: Request) -> str:
    return str(request.user.pk)


class RegistrationListView(APIView):
    """Handler for GET/POST /api/registrations"""

    def get(self, request: Request) -> Response:
        registrations = services.build_query_service().list_for_user(current_user_id(request))
        return Response({"results": RegistrationSerializer(registrations, many=True).data})

    def post(self, request: Request) -> Response:
        serializer = RegisterRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        idempotency_key = data.get("idempotency_key") or request.headers.get("Idempotency-Key", "")

        try:
            registration = services.build_registration_service().register(
                event_id=data["event_id"],
                user_id=current_user_id(request),
                idempotency_key=idempotency_key,
                attendee=Attendee(
                    name=data["attendee_name"],
                    email=data["attendee_email"],
                    phone=data["attendee_phone"],
                ),
            )
        except DomainError as error:
            return error_response(error)
        return Response(RegistrationSerializer(registration).data, status=status.HTTP_201_CREATED)


class RegistrationCancelView(APIView):
    """Handler for POST /api/registrations/{registration_id}/cancel"""

    def post(self, request: Request, registration_id: str) -> Response:
        try:
            registration = services.build_registration_service().cancel(registration_id, current_user_id(request))
        except DomainError as error:
            return error_response(error)
        return Response(RegistrationSerializer(registration).data)


class EventRegistrationView(APIView):
    """Handler for GET /api/events/{event_id}/registration"""

    def get(self, request: Request, event_id: str) -> Response:
        try:
            registration = services.build_query_service().registration_for(event_id, current_user_id(request))
        except DomainError as error:
            return error_response(error)

        payload = {
            "is_registered": registration is not None and registration.status.is_live,
            "status": registration.status.value if registration else None,
            "registration_id": str(registration.id) if registration else None,
            "confirmed_at": registration.confirmed_at if registration else None,
        }
        return Response(RegistrationStatusSerializer(payload).data)


class EventCapacityView(APIView):
    """Handler for GET /api/events/{event_id}/capacity"""

    permission_classes = [AllowAny]

    def get(self, request: Request, event_id: str) -> Response:
        try:
            key = capacity_cache_key(EventId.from_string(event_id))
        except ValueError:
            return error_response(InvalidEventIdError())
        data = cache.get(key)
        if data is None:
            try:
                summary = services.build_query_service().capacity_summary(event_id)
            except DomainError as error:
                return error_response(error)
            data = CapacitySerializer(summary).data
            cache.set(key, data, registration_settings.CAPACITY_CACHE_SECONDS)
        return Response(data)


class PaymentWebhookView(APIView):
    """Handler for POST /api/payments/webhook

    Responds 2xx only once the event is durably processed (or was a
    duplicate); 503 asks the provider to redeliver.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        gateway = payment_gateway.build_payment_gateway()
        try:
            envelope = gateway.verify_webhook(request.body, request.headers.get("Stripe-Signature", ""))
        except DomainError as error:
            return error_response(error)

        try:
            outcome = services.build_webhook_reconciler().handle_event(
                envelope.event_id, envelope.event_type, envelope.payload
            )
        except TransientStoreError as error:
            logger.warning("webhook.retry_requested", provider_event_id=envelope.event_id)
            return error_response(error)
        return Response({"received": True, "outcome": outcome.value})


class PaymentHealthView(APIView):
    """Handler for GET /api/payments/health"""

    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        try:
            details = payment_gateway.build_payment_gateway().check_connection()
        except DomainError as error:
            return error_response(error)
        return Response({"status": "connected", **details})
