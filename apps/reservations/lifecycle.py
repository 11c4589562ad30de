"""Reservation lifecycle resolution.

Two separate enums live here on purpose:

* ``ReservationState`` is what the operator stores: pending, confirmed or
  cancelled. Pending and cancelled are authoritative and never change by
  themselves.
* ``ReservationStatus`` is what consumers see. For a confirmed stay it is
  computed from the stay dates and the property-local day.

Nothing in this module touches the database, so it can be called from any
request or worker concurrently.
"""

from __future__ import annotations

from datetime import date, datetime

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.value_objects import local_today


class ReservationState(models.TextChoices):
    PENDING = "pending", _("Pending confirmation")
    CONFIRMED = "confirmed", _("Confirmed")
    CANCELLED = "cancelled", _("Cancelled")


class ReservationStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    UPCOMING = "upcoming", _("Upcoming")
    CURRENT = "current", _("Current")
    COMPLETED = "completed", _("Completed")
    CANCELLED = "cancelled", _("Cancelled")


TEMPORAL_STATUSES = (
    ReservationStatus.UPCOMING,
    ReservationStatus.CURRENT,
    ReservationStatus.COMPLETED,
)


def compute_temporal_status(check_in: date, check_out: date, today: date) -> ReservationStatus:
    """Upcoming, current or completed for a stay as seen on ``today``.

    The check-out day itself already counts as completed.
    """
    if today < check_in:
        return ReservationStatus.UPCOMING
    if today < check_out:
        return ReservationStatus.CURRENT
    return ReservationStatus.COMPLETED


def resolve_status(
    state: str,
    check_in: date,
    check_out: date,
    now: datetime | None = None,
) -> ReservationStatus:
    if state == ReservationState.CANCELLED:
        return ReservationStatus.CANCELLED
    if state == ReservationState.PENDING:
        return ReservationStatus.PENDING
    return compute_temporal_status(check_in, check_out, local_today(now))


def status_of(reservation, now: datetime | None = None) -> ReservationStatus:
    """Status of anything shaped like a Reservation (model or test double)."""
    return resolve_status(
        reservation.state,
        reservation.check_in_date,
        reservation.check_out_date,
        now,
    )
