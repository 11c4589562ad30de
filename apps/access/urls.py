"""URL routing for access grants."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import AccessGrantViewSet

router = DefaultRouter()
router.register(r"", AccessGrantViewSet, basename="access-grant")

urlpatterns = [
    path("", include(router.urls)),
]
