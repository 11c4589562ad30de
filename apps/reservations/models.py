"""Reservation store models."""

from __future__ import annotations

from datetime import date, datetime, time

from django.conf import settings  # type: ignore
from django.core.exceptions import ValidationError  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from .lifecycle import ReservationState, ReservationStatus, status_of

MAX_VEHICLES = 5


def _parse_time(value: str) -> time:
    return datetime.strptime(value, "%H:%M").time()


def default_check_in_time() -> time:
    return _parse_time(getattr(settings, "DEFAULT_CHECK_IN_TIME", "15:00"))


def default_check_out_time() -> time:
    return _parse_time(getattr(settings, "DEFAULT_CHECK_OUT_TIME", "11:00"))


class ReservationQuerySet(models.QuerySet):
    def active(self):
        return self.exclude(state=ReservationState.CANCELLED)

    def confirmed(self):
        return self.filter(state=ReservationState.CONFIRMED)

    def overlapping(self, check_in: date, check_out: date):
        return self.filter(check_in_date__lt=check_out, check_out_date__gt=check_in)

    def containing(self, day: date):
        return self.filter(check_in_date__lte=day, check_out_date__gt=day)

    def with_status(self, status: str, day: date):
        """Filter by the derived status as it reads on ``day``."""
        if status == ReservationStatus.CANCELLED:
            return self.filter(state=ReservationState.CANCELLED)
        if status == ReservationStatus.PENDING:
            return self.filter(state=ReservationState.PENDING)
        confirmed = self.confirmed()
        if status == ReservationStatus.UPCOMING:
            return confirmed.filter(check_in_date__gt=day)
        if status == ReservationStatus.CURRENT:
            return confirmed.containing(day)
        if status == ReservationStatus.COMPLETED:
            return confirmed.filter(check_out_date__lte=day)
        return self.none()


class Reservation(models.Model):
    """A stay at the property, entered by an operator or materialised from a pre-registration."""

    State = ReservationState

    class Source(models.TextChoices):
        DIRECT = "direct", _("Direct")
        AIRBNB = "airbnb", _("External channel")
        OTHER = "other", _("Other")

    guest_name = models.CharField(max_length=200)
    guest_phone = models.CharField(max_length=40)
    guest_email = models.EmailField(blank=True)
    guest_country = models.CharField(max_length=80, blank=True)
    check_in_date = models.DateField()
    check_in_time = models.TimeField(default=default_check_in_time)
    check_out_date = models.DateField()
    check_out_time = models.TimeField(default=default_check_out_time)
    number_of_guests = models.PositiveSmallIntegerField(default=1)
    source = models.CharField(max_length=20, choices=Source.choices, default=Source.DIRECT)
    reservation_code = models.CharField(
        max_length=64,
        blank=True,
        help_text=_("Confirmation code issued by the external channel."),
    )
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    is_paid = models.BooleanField(default=False)
    state = models.CharField(
        max_length=20,
        choices=ReservationState.choices,
        default=ReservationState.CONFIRMED,
    )
    companions = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Additional guests: name, age, document."),
    )
    vehicles = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Guest vehicles: brand, model, color, plate."),
    )
    notes = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_reservations",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ReservationQuerySet.as_manager()

    class Meta:
        verbose_name = _("Reservation")
        verbose_name_plural = _("Reservations")
        ordering = ["-check_in_date", "-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out_date__gt=models.F("check_in_date")),
                name="reservation_valid_dates",
            ),
            models.UniqueConstraint(
                fields=["reservation_code"],
                condition=~models.Q(reservation_code="") & ~models.Q(state="cancelled"),
                name="reservation_unique_active_code",
            ),
        ]
        indexes = [
            models.Index(fields=["check_in_date", "check_out_date"], name="reservation_dates_idx"),
            models.Index(fields=["state"], name="reservation_state_idx"),
            models.Index(fields=["reservation_code"], name="reservation_code_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.guest_name} ({self.check_in_date} - {self.check_out_date})"

    def clean(self) -> None:
        if self.check_in_date and self.check_out_date and self.check_out_date <= self.check_in_date:
            raise ValidationError(_("Check-out date must be after the check-in date."))
        if len(self.vehicles or []) > MAX_VEHICLES:
            raise ValidationError(_("At most %(max)d vehicles are allowed.") % {"max": MAX_VEHICLES})

    @property
    def status(self) -> ReservationStatus:
        return status_of(self)

    def status_at(self, now: datetime) -> ReservationStatus:
        return status_of(self, now)

    @property
    def is_cancelled(self) -> bool:
        return self.state == ReservationState.CANCELLED

    def check_in_at(self) -> datetime:
        """Aware datetime of arrival in the property time zone."""
        return timezone.make_aware(datetime.combine(self.check_in_date, self.check_in_time))

    def check_out_at(self) -> datetime:
        return timezone.make_aware(datetime.combine(self.check_out_date, self.check_out_time))
