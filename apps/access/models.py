"""Access credential models."""

from __future__ import annotations

from datetime import datetime

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.infrastructure.fields import EncryptedCharField


class AccessGrant(models.Model):
    """A door or key-box code valid for one reservation's stay."""

    reservation = models.ForeignKey(
        "reservations.Reservation",
        on_delete=models.CASCADE,
        related_name="access_grants",
    )
    location_label = models.CharField(
        max_length=100,
        help_text=_("Where the credential applies, e.g. 'Front door' or 'Garage'."),
    )
    credential = EncryptedCharField(max_length=64)
    valid_from = models.DateTimeField()
    valid_until = models.DateTimeField()
    revoked_at = models.DateTimeField(null=True, blank=True)
    revoke_reason = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="issued_access_grants",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Access grant")
        verbose_name_plural = _("Access grants")
        ordering = ["valid_from", "location_label"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(valid_until__gt=models.F("valid_from")),
                name="access_grant_valid_window",
            ),
        ]
        indexes = [
            models.Index(fields=["revoked_at", "valid_until"], name="access_grant_active_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.location_label} for reservation {self.reservation_id}"

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def in_window(self, now: datetime | None = None) -> bool:
        now = now or timezone.now()
        return self.valid_from <= now <= self.valid_until


class AccessDisclosureLog(models.Model):
    """One row each time a credential is shown to someone."""

    grant = models.ForeignKey(AccessGrant, on_delete=models.CASCADE, related_name="disclosures")
    accessed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="access_disclosures",
    )
    reason = models.CharField(max_length=255, blank=True)
    disclosed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = _("Access disclosure")
        verbose_name_plural = _("Access disclosures")
        ordering = ["-disclosed_at"]

    def __str__(self) -> str:
        return f"Grant {self.grant_id} disclosed at {self.disclosed_at:%Y-%m-%d %H:%M}"
