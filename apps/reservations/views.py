"""API views for reservations and lifecycle queries."""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.filters import OrderingFilter  # type: ignore
from rest_framework.response import Response  # type: ignore

from . import services
from .filters import ReservationFilterSet
from .lifecycle import status_of
from .models import Reservation
from .serializers import (
    CancelReservationSerializer,
    GuestListsSerializer,
    ReservationSerializer,
    ReservationStatusSerializer,
    ReservationWriteSerializer,
)


class ReservationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Operator endpoints for the reservation store."""

    queryset = Reservation.objects.select_related("pre_registration").all()
    serializer_class = ReservationSerializer
    permission_classes = [permissions.IsAdminUser]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = ReservationFilterSet
    ordering_fields = ["check_in_date", "check_out_date", "created_at"]

    def _read(self, reservation: Reservation, http_status=status.HTTP_200_OK) -> Response:
        serializer = ReservationSerializer(reservation, context=self.get_serializer_context())
        return Response(serializer.data, status=http_status)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = ReservationWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reservation = services.create_reservation(
            created_by=request.user,
            **serializer.validated_data,
        )
        return self._read(reservation, status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):  # type: ignore
        reservation = self.get_object()
        serializer = ReservationWriteSerializer(reservation, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        updated = services.update_reservation(reservation.pk, **serializer.validated_data)
        return self._read(updated)

    def destroy(self, request, pk=None):  # type: ignore
        reservation = self.get_object()
        services.delete_reservation(reservation.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["get"])
    def current(self, request):  # type: ignore
        reservation = services.get_current_reservation()
        if reservation is None:
            return Response({"current": None})
        return Response({"current": self._read(reservation).data})

    @action(detail=False, methods=["get"], url_path="next")
    def next_reservation(self, request):  # type: ignore
        reservation = services.get_next_reservation()
        if reservation is None:
            return Response({"next": None})
        return Response({"next": self._read(reservation).data})

    @action(detail=True, methods=["get"], url_path="status")
    def lifecycle_status(self, request, pk=None):  # type: ignore
        reservation = self.get_object()
        payload = {"id": reservation.pk, "state": reservation.state, "status": status_of(reservation)}
        return Response(ReservationStatusSerializer(payload).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        reservation = self.get_object()
        serializer = CancelReservationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cancelled = services.cancel_reservation(reservation.pk, serializer.validated_data["reason"])
        return self._read(cancelled)

    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):  # type: ignore
        reservation = self.get_object()
        return self._read(services.confirm_reservation(reservation.pk))

    @action(detail=True, methods=["get", "put"])
    def guests(self, request, pk=None):  # type: ignore
        reservation = self.get_object()
        if request.method == "GET":
            return Response({"companions": reservation.companions, "vehicles": reservation.vehicles})
        serializer = GuestListsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = services.update_guest_lists(
            reservation.pk,
            companions=serializer.validated_data.get("companions"),
            vehicles=serializer.validated_data.get("vehicles"),
        )
        return Response({"companions": updated.companions, "vehicles": updated.vehicles})

    @action(detail=True, methods=["get"])
    def access(self, request, pk=None):  # type: ignore
        from apps.access.serializers import DisclosedGrantSerializer
        from apps.access.services import disclose

        reservation = self.get_object()
        grants = disclose(reservation, accessed_by=request.user, reason=request.query_params.get("reason", ""))
        return Response(
            {
                "reservation_id": reservation.pk,
                "status": status_of(reservation),
                "grants": DisclosedGrantSerializer(grants, many=True).data,
            }
        )
