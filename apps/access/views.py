"""API views for access grants."""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.reservations.services import get_reservation

from . import services
from .models import AccessGrant
from .serializers import AccessGrantCreateSerializer, AccessGrantSerializer, RevokeGrantSerializer


class AccessGrantViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Operator endpoints; plaintext is only available via reservations/{id}/access/."""

    queryset = AccessGrant.objects.select_related("reservation").all()
    serializer_class = AccessGrantSerializer
    permission_classes = [permissions.IsAdminUser]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["reservation"]

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = AccessGrantCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reservation = get_reservation(serializer.validated_data["reservation"])
        grant = services.grant_access(
            reservation,
            serializer.validated_data["location_label"],
            serializer.validated_data.get("credential") or None,
            created_by=request.user,
        )
        return Response(AccessGrantSerializer(grant).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def revoke(self, request, pk=None):  # type: ignore
        grant = self.get_object()
        serializer = RevokeGrantSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        revoked = services.revoke_grant(grant.pk, serializer.validated_data["reason"])
        return Response(AccessGrantSerializer(revoked).data)
