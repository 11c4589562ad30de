"""API views for pre-registrations.

The operator ViewSet sits behind IsAdminUser. The two public views answer
every token failure with the same message so a guest cannot tell an unknown
token from a used or expired one; the specific reason goes to the log.
"""

from __future__ import annotations

import logging

from django.db import transaction  # type: ignore
from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.filters import OrderingFilter  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.throttling import ScopedRateThrottle  # type: ignore
from rest_framework.views import APIView  # type: ignore

from shared.domain.exceptions import AlreadyUsed, Conflict, Expired, NotFound

from . import services
from .filters import PreRegistrationFilterSet
from .models import PreRegistration
from .serializers import (
    PreRegistrationSerializer,
    PreRegistrationWriteSerializer,
    PublicPreRegistrationSerializer,
    RedeemedReservationSerializer,
    RedeemSerializer,
)
from .tasks import send_pre_registration_invite

logger = logging.getLogger(__name__)

TOKEN_ERRORS = (NotFound, Expired, AlreadyUsed)


def _generic_token_response() -> Response:
    return Response(
        {"code": "invalid_link", "detail": services.GUEST_FACING_ERROR},
        status=status.HTTP_404_NOT_FOUND,
    )


class PreRegistrationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Operator endpoints for issuing and managing invitations."""

    queryset = PreRegistration.objects.select_related("reservation").all()
    serializer_class = PreRegistrationSerializer
    permission_classes = [permissions.IsAdminUser]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = PreRegistrationFilterSet
    ordering_fields = ["created_at", "check_in_date", "expires_at"]

    def _read(self, pre_registration: PreRegistration, http_status=status.HTTP_200_OK) -> Response:
        serializer = PreRegistrationSerializer(pre_registration, context=self.get_serializer_context())
        return Response(serializer.data, status=http_status)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = PreRegistrationWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        pre_registration = services.issue_pre_registration(
            created_by=request.user,
            **serializer.validated_data,
        )
        if pre_registration.email:
            transaction.on_commit(lambda: send_pre_registration_invite.delay(pre_registration.pk))
        return self._read(pre_registration, status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):  # type: ignore
        pre_registration = self.get_object()
        serializer = PreRegistrationWriteSerializer(pre_registration, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        updated = services.update_pre_registration(pre_registration.pk, **serializer.validated_data)
        return self._read(updated)

    def destroy(self, request, pk=None):  # type: ignore
        pre_registration = self.get_object()
        services.delete_pre_registration(pre_registration.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="send-invite")
    def send_invite(self, request, pk=None):  # type: ignore
        pre_registration = self.get_object()
        if not pre_registration.email:
            return Response(
                {"code": "validation_error", "detail": "The invitation has no email address."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if pre_registration.effective_status() != PreRegistration.Status.PENDING:
            return Response(
                {"code": "validation_error", "detail": "Only pending invitations can be sent."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        send_pre_registration_invite.delay(pre_registration.pk)
        return Response({"queued": True}, status=status.HTTP_202_ACCEPTED)


class VerifyPreRegistrationView(APIView):
    """GET ?token=... for the guest form."""

    permission_classes = [permissions.AllowAny]
    authentication_classes: list = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "registration"

    def get(self, request):  # type: ignore
        token = request.query_params.get("token", "")
        try:
            pre_registration = services.verify_pre_registration(token)
        except TOKEN_ERRORS as exc:
            logger.info("Registration link rejected on verify: %s", exc.message)
            return _generic_token_response()
        return Response(PublicPreRegistrationSerializer(pre_registration).data)


class RedeemPreRegistrationView(APIView):
    """POST the guest details; the token is consumed at most once."""

    permission_classes = [permissions.AllowAny]
    authentication_classes: list = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "registration"

    def post(self, request):  # type: ignore
        serializer = RedeemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        details = dict(serializer.validated_data)
        token = details.pop("token")
        try:
            reservation = services.redeem_pre_registration(token, details)
        except TOKEN_ERRORS as exc:
            logger.info("Registration link rejected on redeem: %s", exc.message)
            return _generic_token_response()
        except Conflict as exc:
            logger.warning("Registration could not be completed: %s", exc.message)
            return Response(
                {
                    "code": "conflict",
                    "detail": "Your registration could not be completed. Please contact your host.",
                },
                status=status.HTTP_409_CONFLICT,
            )
        return Response(RedeemedReservationSerializer(reservation).data, status=status.HTTP_201_CREATED)
