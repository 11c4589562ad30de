"""Domain services for the reservation store and lifecycle queries."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable

from django.conf import settings  # type: ignore
from django.core.cache import cache  # type: ignore
from django.db import IntegrityError, transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore

from shared.domain.exceptions import Conflict, NotFound, ValidationError
from shared.domain.value_objects import local_today

from .lifecycle import ReservationState, ReservationStatus, status_of
from .models import MAX_VEHICLES, Reservation

logger = logging.getLogger(__name__)

LIFECYCLE_VERSION_KEY = "reservations:lifecycle:version"
_NO_RESERVATION = 0

EDITABLE_FIELDS = frozenset(
    {
        "guest_name",
        "guest_phone",
        "guest_email",
        "guest_country",
        "check_in_date",
        "check_in_time",
        "check_out_date",
        "check_out_time",
        "number_of_guests",
        "source",
        "reservation_code",
        "total_amount",
        "is_paid",
        "notes",
    }
)

STAY_TIMING_FIELDS = frozenset({"check_in_date", "check_in_time", "check_out_date", "check_out_time"})


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def _locked_reservation(reservation_id: int) -> Reservation:
    try:
        return _lock_queryset_if_possible(Reservation.objects.filter(pk=reservation_id)).get()
    except Reservation.DoesNotExist:
        raise NotFound(f"Reservation {reservation_id} not found.", reservation_id=reservation_id)


def _validate_dates(check_in: date, check_out: date) -> None:
    if not check_in or not check_out:
        raise ValidationError("Check-in and check-out dates are required.")
    if check_out <= check_in:
        raise ValidationError(
            "Check-out date must be after the check-in date.",
            check_in=check_in.isoformat(),
            check_out=check_out.isoformat(),
        )


def ensure_dates_are_free(check_in: date, check_out: date, *, exclude_id: int | None = None) -> None:
    """Raise Conflict when a non-cancelled reservation overlaps the stay."""

    overlapping = Reservation.objects.active().overlapping(check_in, check_out)
    if exclude_id is not None:
        overlapping = overlapping.exclude(pk=exclude_id)
    overlapping = _lock_queryset_if_possible(overlapping)
    clashing = list(overlapping.values_list("pk", flat=True)[:5])
    if clashing:
        raise Conflict(
            "Another reservation already covers these dates.",
            reservation_ids=clashing,
        )


def ensure_code_is_free(code: str, *, exclude_id: int | None = None) -> None:
    if not code:
        return
    holders = Reservation.objects.active().filter(reservation_code=code)
    if exclude_id is not None:
        holders = holders.exclude(pk=exclude_id)
    if holders.exists():
        raise Conflict(
            f"Reservation code {code} is already linked to another reservation.",
            reservation_code=code,
        )


# ============================================================================
# LIFECYCLE CACHE
# ============================================================================

def _lifecycle_version() -> int:
    version = cache.get(LIFECYCLE_VERSION_KEY)
    if version is None:
        cache.add(LIFECYCLE_VERSION_KEY, 1, None)
        version = cache.get(LIFECYCLE_VERSION_KEY, 1)
    return version


def invalidate_lifecycle_cache() -> None:
    try:
        cache.incr(LIFECYCLE_VERSION_KEY)
    except ValueError:
        cache.set(LIFECYCLE_VERSION_KEY, 2, None)


def _schedule_invalidation() -> None:
    # Drop now so readers inside this request see fresh data, and again after
    # commit so no reader can re-cache the pre-commit rows.
    invalidate_lifecycle_cache()
    transaction.on_commit(invalidate_lifecycle_cache)


def _cache_key(kind: str, day: date) -> str:
    return f"reservations:{kind}:{_lifecycle_version()}:{day.isoformat()}"


def _cache_ttl() -> int:
    return int(getattr(settings, "LIFECYCLE_CACHE_TTL", 60))


def _cached_lookup(kind: str, day: date, expected: ReservationStatus, now: datetime | None, builder):
    key = _cache_key(kind, day)
    cached_id = cache.get(key)
    if cached_id == _NO_RESERVATION:
        return None
    if cached_id is not None:
        reservation = Reservation.objects.filter(pk=cached_id).first()
        # The row is re-read on every hit: a committed cancellation wins over the cache.
        if reservation is not None and status_of(reservation, now) == expected:
            return reservation
    reservation = builder()
    cache.set(key, reservation.pk if reservation else _NO_RESERVATION, _cache_ttl())
    return reservation


# ============================================================================
# QUERIES
# ============================================================================

def get_reservation(reservation_id: int) -> Reservation:
    try:
        return Reservation.objects.get(pk=reservation_id)
    except Reservation.DoesNotExist:
        raise NotFound(f"Reservation {reservation_id} not found.", reservation_id=reservation_id)


def get_reservation_status(reservation_id: int, now: datetime | None = None) -> ReservationStatus:
    return status_of(get_reservation(reservation_id), now)


def get_current_reservation(now: datetime | None = None) -> Reservation | None:
    """The confirmed reservation whose stay contains today.

    Two confirmed stays covering the same day is a data-integrity problem and
    raises Conflict instead of picking one.
    """
    today = local_today(now)

    def build():
        candidates = list(
            Reservation.objects.confirmed().containing(today).order_by("check_in_date", "created_at", "pk")
        )
        if len(candidates) > 1:
            raise Conflict(
                f"{len(candidates)} reservations cover {today.isoformat()}.",
                day=today.isoformat(),
                reservation_ids=[reservation.pk for reservation in candidates],
            )
        return candidates[0] if candidates else None

    return _cached_lookup("current", today, ReservationStatus.CURRENT, now, build)


def get_next_reservation(now: datetime | None = None) -> Reservation | None:
    """Earliest upcoming confirmed reservation; ties go to the oldest record."""
    today = local_today(now)

    def build():
        return (
            Reservation.objects.confirmed()
            .filter(check_in_date__gt=today)
            .order_by("check_in_date", "created_at", "pk")
            .first()
        )

    return _cached_lookup("next", today, ReservationStatus.UPCOMING, now, build)


# ============================================================================
# COMMANDS
# ============================================================================

def create_reservation(
    *,
    guest_name: str,
    guest_phone: str,
    check_in_date: date,
    check_out_date: date,
    created_by=None,
    state: str = ReservationState.CONFIRMED,
    **fields,
) -> Reservation:
    if not guest_name or not guest_phone:
        raise ValidationError("Guest name and phone are required.")
    _validate_dates(check_in_date, check_out_date)
    if state == ReservationState.CANCELLED:
        raise ValidationError("A reservation cannot be created already cancelled.")
    unknown = set(fields) - EDITABLE_FIELDS - {"companions", "vehicles"}
    if unknown:
        raise ValidationError(f"Unknown reservation fields: {', '.join(sorted(unknown))}.")

    code = (fields.pop("reservation_code", "") or "").strip().upper()

    with transaction.atomic():
        ensure_dates_are_free(check_in_date, check_out_date)
        ensure_code_is_free(code)
        try:
            with transaction.atomic():
                reservation = Reservation.objects.create(
                    guest_name=guest_name,
                    guest_phone=guest_phone,
                    check_in_date=check_in_date,
                    check_out_date=check_out_date,
                    reservation_code=code,
                    state=state,
                    created_by=created_by,
                    **fields,
                )
        except IntegrityError as exc:
            raise Conflict(f"Reservation could not be stored: {exc}", reservation_code=code)
        _schedule_invalidation()

    logger.info(
        "Reservation %s created for %s (%s - %s, state=%s)",
        reservation.pk,
        reservation.guest_name,
        check_in_date,
        check_out_date,
        state,
    )
    return reservation


def update_reservation(reservation_id: int, **changes) -> Reservation:
    """Operator edit. State transitions go through confirm/cancel instead."""

    from apps.access.services import realign_grants  # local import to avoid circular

    if "state" in changes:
        raise ValidationError("Use confirm or cancel to change a reservation state.")
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}.")

    with transaction.atomic():
        reservation = _locked_reservation(reservation_id)
        if reservation.is_cancelled:
            raise ValidationError("A cancelled reservation cannot be edited; create a new one.")

        if "reservation_code" in changes:
            changes["reservation_code"] = (changes["reservation_code"] or "").strip().upper()
        for field, value in changes.items():
            setattr(reservation, field, value)

        _validate_dates(reservation.check_in_date, reservation.check_out_date)
        if {"check_in_date", "check_out_date"} & set(changes):
            ensure_dates_are_free(
                reservation.check_in_date,
                reservation.check_out_date,
                exclude_id=reservation.pk,
            )
        if changes.get("reservation_code"):
            ensure_code_is_free(reservation.reservation_code, exclude_id=reservation.pk)

        reservation.save()
        if STAY_TIMING_FIELDS & set(changes):
            realign_grants(reservation)
        _schedule_invalidation()
    return reservation


def confirm_reservation(reservation_id: int) -> Reservation:
    """Promote pending to confirmed so the date rules start to apply."""

    with transaction.atomic():
        reservation = _locked_reservation(reservation_id)
        if reservation.state == ReservationState.CANCELLED:
            raise ValidationError("A cancelled reservation cannot be confirmed.")
        if reservation.state == ReservationState.CONFIRMED:
            return reservation
        ensure_dates_are_free(
            reservation.check_in_date,
            reservation.check_out_date,
            exclude_id=reservation.pk,
        )
        reservation.state = ReservationState.CONFIRMED
        reservation.save(update_fields=["state", "updated_at"])
        _schedule_invalidation()

    logger.info("Reservation %s confirmed", reservation.pk)
    return reservation


def cancel_reservation(reservation_id: int, reason: str = "", now: datetime | None = None) -> Reservation:
    """One-way cancellation; repeating it is a no-op."""

    from apps.access.services import revoke_grants_for_reservation  # local import to avoid circular

    now = now or timezone.now()
    with transaction.atomic():
        reservation = _locked_reservation(reservation_id)
        if reservation.is_cancelled:
            return reservation
        previous = status_of(reservation, now)
        reservation.state = ReservationState.CANCELLED
        reservation.cancelled_at = now
        reservation.cancellation_reason = reason[:255]
        reservation.save(update_fields=["state", "cancelled_at", "cancellation_reason", "updated_at"])
        revoked = revoke_grants_for_reservation(reservation, reason="reservation cancelled", now=now)
        _schedule_invalidation()

    logger.info(
        "Reservation %s cancelled (was %s, %d access grant(s) revoked)",
        reservation.pk,
        previous,
        revoked,
    )
    return reservation


def delete_reservation(reservation_id: int) -> None:
    with transaction.atomic():
        reservation = _locked_reservation(reservation_id)
        reservation.delete()
        _schedule_invalidation()
    logger.info("Reservation %s deleted by operator", reservation_id)


def _clean_entries(entries: Iterable[dict], allowed: tuple[str, ...], required: str) -> list[dict]:
    cleaned = []
    for entry in entries or []:
        if not isinstance(entry, dict):
            raise ValidationError("Each entry must be an object.")
        item = {key: entry[key] for key in allowed if entry.get(key) not in (None, "")}
        if required not in item:
            raise ValidationError(f"Each entry needs a {required}.")
        cleaned.append(item)
    return cleaned


def update_guest_lists(
    reservation_id: int,
    *,
    companions: Iterable[dict] | None = None,
    vehicles: Iterable[dict] | None = None,
) -> Reservation:
    """Guest self-service update of companions and vehicles."""

    with transaction.atomic():
        reservation = _locked_reservation(reservation_id)
        if reservation.is_cancelled:
            raise ValidationError("The reservation is cancelled.")
        update_fields = ["updated_at"]
        if companions is not None:
            reservation.companions = _clean_entries(companions, ("name", "age", "document"), "name")
            update_fields.append("companions")
        if vehicles is not None:
            cleaned = _clean_entries(vehicles, ("brand", "model", "color", "plate"), "plate")
            if len(cleaned) > MAX_VEHICLES:
                raise ValidationError(f"At most {MAX_VEHICLES} vehicles are allowed.")
            reservation.vehicles = cleaned
            update_fields.append("vehicles")
        reservation.save(update_fields=update_fields)
    return reservation
