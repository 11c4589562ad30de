"""Operator API for the calendar feed."""

from __future__ import annotations

from django.utils import timezone  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.preregistrations.serializers import PreRegistrationSerializer
from shared.domain.value_objects import local_today

from . import services
from .importer import upcoming_events
from .serializers import (
    ExternalBookingEventSerializer,
    FeedSnapshotSerializer,
    ImportCandidateSerializer,
    ReconciliationResultSerializer,
)
from .tasks import refresh_calendar_feed


class CalendarViewSet(viewsets.ViewSet):
    """Reads the cached feed only; refreshing is queued to Celery."""

    permission_classes = [permissions.IsAdminUser]

    @action(detail=False, methods=["get"])
    def events(self, request):  # type: ignore
        now = timezone.now()
        snapshot = services.current_snapshot(now)
        events = upcoming_events(snapshot.events, local_today(now))
        return Response(
            {
                "feed": FeedSnapshotSerializer(snapshot).data,
                "total_events": len(events),
                "events": ExternalBookingEventSerializer(events, many=True).data,
            }
        )

    @action(detail=False, methods=["get"])
    def reconciliation(self, request):  # type: ignore
        now = timezone.now()
        snapshot = services.current_snapshot(now)
        result = services.reconcile_store(snapshot, now)
        return Response(
            {
                "feed": FeedSnapshotSerializer(snapshot).data,
                **ReconciliationResultSerializer(result).data,
            }
        )

    @action(detail=False, methods=["post"])
    def refresh(self, request):  # type: ignore
        refresh_calendar_feed.delay()
        return Response({"queued": True}, status=status.HTTP_202_ACCEPTED)

    @action(detail=False, methods=["post"], url_path="import", url_name="import")
    def import_candidate(self, request):  # type: ignore
        serializer = ImportCandidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        pre_registration = services.import_candidate(
            data.pop("uid"),
            name=data.pop("name"),
            phone=data.pop("phone"),
            created_by=request.user,
            **data,
        )
        return Response(
            PreRegistrationSerializer(pre_registration, context={"request": request}).data,
            status=status.HTTP_201_CREATED,
        )
