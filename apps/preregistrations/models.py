"""Pre-registration (guest invitation token) models."""

from __future__ import annotations

import secrets
from datetime import datetime

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

TOKEN_BYTES = 32

# Fields copied from a calendar event; frozen once dates_locked is set.
LOCKED_FIELDS = ("check_in_date", "check_out_date", "reservation_code")


class PreRegistration(models.Model):
    """Time-limited invitation letting a guest register before arrival.

    Its ``pending`` has nothing to do with a Reservation's ``pending``: here
    it means "link issued, not used yet".
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Waiting for the guest")
        REGISTERED = "registered", _("Registered")
        EXPIRED = "expired", _("Expired")

    token = models.CharField(max_length=64, unique=True, editable=False)
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=40)
    email = models.EmailField(blank=True)
    check_in_date = models.DateField()
    check_in_time = models.TimeField(null=True, blank=True)
    check_out_date = models.DateField()
    check_out_time = models.TimeField(null=True, blank=True)
    reservation_code = models.CharField(max_length=64, blank=True)
    source_event_uid = models.CharField(
        max_length=255,
        blank=True,
        help_text=_("UID of the calendar event this invitation was created from."),
    )
    dates_locked = models.BooleanField(
        default=False,
        help_text=_("Dates and code came from the external calendar and cannot be edited."),
    )
    adults_count = models.PositiveSmallIntegerField(default=1)
    children_count = models.PositiveSmallIntegerField(default=0)
    pets_count = models.PositiveSmallIntegerField(default=0)
    reservation_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    origin_country = models.CharField(max_length=80, blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    expires_at = models.DateTimeField()
    registered_at = models.DateTimeField(null=True, blank=True)
    reservation = models.OneToOneField(
        "reservations.Reservation",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pre_registration",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_pre_registrations",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Pre-registration")
        verbose_name_plural = _("Pre-registrations")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out_date__gt=models.F("check_in_date")),
                name="pre_registration_valid_dates",
            ),
            models.UniqueConstraint(
                fields=["reservation_code"],
                condition=~models.Q(reservation_code=""),
                name="pre_registration_unique_code",
            ),
        ]
        indexes = [
            models.Index(fields=["phone"], name="pre_registration_phone_idx"),
            models.Index(fields=["status", "expires_at"], name="pre_registration_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.check_in_date} - {self.check_out_date})"

    def save(self, *args, **kwargs):  # type: ignore
        if not self.token:
            self.token = self.generate_token()
        super().save(*args, **kwargs)

    @staticmethod
    def generate_token() -> str:
        return secrets.token_hex(TOKEN_BYTES)

    def effective_status(self, now: datetime | None = None) -> str:
        """Stored status with lazy expiry applied; no sweep required."""
        now = now or timezone.now()
        if self.status == self.Status.PENDING and now > self.expires_at:
            return self.Status.EXPIRED
        return self.status

    @property
    def current_status(self) -> str:
        return self.effective_status()

    def registration_link(self) -> str:
        base_url = getattr(settings, "REGISTRATION_BASE_URL", "http://localhost:3000").rstrip("/")
        return f"{base_url}/registration?token={self.token}"
