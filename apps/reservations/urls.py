"""URL routing for the reservation store."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import ReservationViewSet

router = DefaultRouter()
router.register(r"", ReservationViewSet, basename="reservation")

urlpatterns = [
    path("", include(router.urls)),
]
