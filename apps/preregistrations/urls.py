"""URL routing for pre-registrations."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import PreRegistrationViewSet, RedeemPreRegistrationView, VerifyPreRegistrationView

router = DefaultRouter()
router.register(r"", PreRegistrationViewSet, basename="pre-registration")

urlpatterns = [
    path("verify/", VerifyPreRegistrationView.as_view(), name="pre-registration-verify"),
    path("redeem/", RedeemPreRegistrationView.as_view(), name="pre-registration-redeem"),
    path("", include(router.urls)),
]
