"""URL routing for the calendar feed."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import CalendarViewSet

router = DefaultRouter()
router.register(r"", CalendarViewSet, basename="calendar")

urlpatterns = [
    path("", include(router.urls)),
]
