"""Access provisioning: issuing, disclosing and revoking stay credentials."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta

from django.conf import settings  # type: ignore
from django.db import transaction  # type: ignore
from django.db.models import Q  # type: ignore
from django.utils import timezone  # type: ignore

from apps.reservations.lifecycle import ReservationStatus, status_of
from apps.reservations.models import Reservation
from shared.domain.exceptions import NotFound, ValidationError

from .models import AccessDisclosureLog, AccessGrant

logger = logging.getLogger(__name__)

CREDENTIAL_DIGITS = 6


def _grace_period() -> timedelta:
    return timedelta(hours=float(getattr(settings, "ACCESS_GRACE_PERIOD_HOURS", 2)))


def _pre_arrival_window() -> timedelta:
    return timedelta(hours=float(getattr(settings, "ACCESS_PRE_ARRIVAL_HOURS", 24)))


def generate_credential() -> str:
    return f"{secrets.randbelow(10 ** CREDENTIAL_DIGITS):0{CREDENTIAL_DIGITS}d}"


def access_window(reservation: Reservation) -> tuple[datetime, datetime]:
    """Arrival at check-in time until departure at check-out time plus grace."""
    return reservation.check_in_at(), reservation.check_out_at() + _grace_period()


def grant_access(
    reservation: Reservation,
    location_label: str,
    credential: str | None = None,
    *,
    created_by=None,
    now: datetime | None = None,
) -> AccessGrant:
    location_label = (location_label or "").strip()
    if not location_label:
        raise ValidationError("A location label is required.")

    with transaction.atomic():
        try:
            reservation = Reservation.objects.select_for_update().get(pk=reservation.pk)
        except Reservation.DoesNotExist:
            raise NotFound(f"Reservation {reservation.pk} not found.", reservation_id=reservation.pk)
        current_status = status_of(reservation, now)
        if current_status in (ReservationStatus.CANCELLED, ReservationStatus.COMPLETED):
            raise ValidationError(
                f"Cannot grant access to a {current_status} reservation.",
                reservation_id=reservation.pk,
                status=str(current_status),
            )
        valid_from, valid_until = access_window(reservation)
        grant = AccessGrant.objects.create(
            reservation=reservation,
            location_label=location_label,
            credential=credential or generate_credential(),
            valid_from=valid_from,
            valid_until=valid_until,
            created_by=created_by,
        )

    logger.info(
        "Access grant %s (%s) issued for reservation %s, valid %s to %s",
        grant.pk,
        location_label,
        reservation.pk,
        valid_from.isoformat(),
        valid_until.isoformat(),
    )
    return grant


def is_disclosable(grant: AccessGrant, now: datetime | None = None) -> bool:
    """Whether the credential may be shown right now.

    Evaluated on every call from the reservation row, so a cancellation or
    a checkout takes effect without waiting for the periodic withdrawal.
    """
    now = now or timezone.now()
    if grant.is_revoked:
        return False
    reservation = grant.reservation
    current_status = status_of(reservation, now)
    if current_status == ReservationStatus.CURRENT:
        return True
    if current_status == ReservationStatus.UPCOMING:
        return reservation.check_in_at() - now <= _pre_arrival_window()
    return False


def disclose(
    reservation: Reservation,
    *,
    accessed_by=None,
    reason: str = "",
    now: datetime | None = None,
) -> list[AccessGrant]:
    """Return the disclosable grants and log one disclosure per grant."""

    now = now or timezone.now()
    grants = [
        grant
        for grant in AccessGrant.objects.filter(reservation=reservation, revoked_at__isnull=True).select_related(
            "reservation"
        )
        if is_disclosable(grant, now)
    ]
    if grants:
        user = accessed_by if accessed_by is not None and accessed_by.is_authenticated else None
        AccessDisclosureLog.objects.bulk_create(
            [
                AccessDisclosureLog(grant=grant, accessed_by=user, reason=reason[:255], disclosed_at=now)
                for grant in grants
            ]
        )
        logger.info(
            "Disclosed %d access grant(s) for reservation %s to %s",
            len(grants),
            reservation.pk,
            getattr(user, "pk", "anonymous"),
        )
    return grants


def revoke_grant(grant_id: int, reason: str = "", now: datetime | None = None) -> AccessGrant:
    now = now or timezone.now()
    with transaction.atomic():
        try:
            grant = AccessGrant.objects.select_for_update().get(pk=grant_id)
        except AccessGrant.DoesNotExist:
            raise NotFound(f"Access grant {grant_id} not found.", grant_id=grant_id)
        if grant.is_revoked:
            return grant
        grant.revoked_at = now
        grant.revoke_reason = reason[:255]
        grant.save(update_fields=["revoked_at", "revoke_reason"])
    logger.info("Access grant %s revoked: %s", grant.pk, reason or "no reason given")
    return grant


def revoke_grants_for_reservation(reservation: Reservation, reason: str = "", now: datetime | None = None) -> int:
    """Revoke every live grant of a reservation; runs inside the caller's transaction."""

    now = now or timezone.now()
    return AccessGrant.objects.filter(reservation=reservation, revoked_at__isnull=True).update(
        revoked_at=now,
        revoke_reason=reason[:255],
    )


def realign_grants(reservation: Reservation) -> int:
    """Move the window of every live grant onto the reservation's current stay.

    Runs inside the caller's transaction whenever stay dates or times change,
    so an extended stay keeps its code until the new departure plus grace.
    """
    valid_from, valid_until = access_window(reservation)
    moved = AccessGrant.objects.filter(reservation=reservation, revoked_at__isnull=True).update(
        valid_from=valid_from,
        valid_until=valid_until,
    )
    if moved:
        logger.info(
            "Realigned %d access grant(s) of reservation %s to %s - %s",
            moved,
            reservation.pk,
            valid_from.isoformat(),
            valid_until.isoformat(),
        )
    return moved


def withdraw_stale_grants(now: datetime | None = None) -> int:
    """Periodic clean-up of grants that can no longer be used.

    Grants of cancelled reservations go at once. Completed stays keep their
    grant until valid_until, which already includes the departure grace.
    """
    now = now or timezone.now()
    stale = AccessGrant.objects.filter(revoked_at__isnull=True).filter(
        Q(reservation__state=Reservation.State.CANCELLED) | Q(valid_until__lt=now)
    )
    withdrawn = stale.update(revoked_at=now, revoke_reason="withdrawn: stay ended or cancelled")
    if withdrawn:
        logger.info("Withdrew %d stale access grant(s)", withdrawn)
    return withdrawn
