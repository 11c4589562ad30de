"""Domain services for the pre-arrival registration workflow."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Mapping

from django.conf import settings  # type: ignore
from django.db import IntegrityError, OperationalError, transaction  # type: ignore
from django.utils import timezone  # type: ignore

from apps.reservations.models import Reservation
from shared.domain.exceptions import AlreadyUsed, Conflict, Expired, NotFound, ValidationError
from shared.domain.value_objects import local_today

from .models import LOCKED_FIELDS, PreRegistration

logger = logging.getLogger(__name__)

GUEST_FACING_ERROR = "This registration link is invalid or has expired."

OPTIONAL_FIELDS = frozenset(
    {
        "email",
        "check_in_time",
        "check_out_time",
        "notes",
        "adults_count",
        "children_count",
        "pets_count",
        "reservation_value",
        "origin_country",
    }
)
EDITABLE_FIELDS = OPTIONAL_FIELDS | {"name", "phone", *LOCKED_FIELDS}

GUEST_DETAIL_FIELDS = (
    "guest_name",
    "guest_email",
    "guest_phone",
    "guest_country",
    "number_of_guests",
    "companions",
    "vehicles",
    "notes",
)


def _default_expiration_days() -> int:
    return int(getattr(settings, "PRE_REGISTRATION_EXPIRATION_DAYS", 30))


def _validate_stay(check_in: date, check_out: date, today: date) -> None:
    if not check_in or not check_out:
        raise ValidationError("Check-in and check-out dates are required.")
    if check_out <= check_in:
        raise ValidationError(
            "Check-out date must be after the check-in date.",
            check_in=check_in.isoformat(),
            check_out=check_out.isoformat(),
        )
    if check_in < today:
        raise ValidationError("Check-in date cannot be in the past.", check_in=check_in.isoformat())


def _ensure_code_unused(code: str, *, exclude_id: int | None = None) -> None:
    if not code:
        return
    others = PreRegistration.objects.filter(reservation_code=code)
    if exclude_id is not None:
        others = others.exclude(pk=exclude_id)
    if others.exists():
        raise Conflict(f"Reservation code {code} already has a pre-registration.", reservation_code=code)
    if Reservation.objects.active().filter(reservation_code=code).exists():
        raise Conflict(f"Reservation code {code} is already linked to a reservation.", reservation_code=code)


def get_pre_registration(pre_registration_id: int) -> PreRegistration:
    try:
        return PreRegistration.objects.get(pk=pre_registration_id)
    except PreRegistration.DoesNotExist:
        raise NotFound(
            f"Pre-registration {pre_registration_id} not found.",
            pre_registration_id=pre_registration_id,
        )


def issue_pre_registration(
    *,
    name: str,
    phone: str,
    check_in_date: date,
    check_out_date: date,
    expiration_days: int | None = None,
    reservation_code: str = "",
    created_by=None,
    now: datetime | None = None,
    source_event_uid: str = "",
    dates_locked: bool = False,
    **fields: Any,
) -> PreRegistration:
    """Create an invitation with a fresh token; nothing is stored on failure."""

    now = now or timezone.now()
    today = local_today(now)
    name = (name or "").strip()
    phone = (phone or "").strip()
    if not name or not phone:
        raise ValidationError("Name and phone are required.")
    _validate_stay(check_in_date, check_out_date, today)

    expiration_days = _default_expiration_days() if expiration_days is None else int(expiration_days)
    if expiration_days < 1:
        raise ValidationError("Expiration must be at least one day.", expiration_days=expiration_days)

    unknown = set(fields) - OPTIONAL_FIELDS
    if unknown:
        raise ValidationError(f"Unknown pre-registration fields: {', '.join(sorted(unknown))}.")

    code = (reservation_code or "").strip().upper()

    with transaction.atomic():
        already_pending = PreRegistration.objects.filter(
            phone=phone,
            status=PreRegistration.Status.PENDING,
            expires_at__gte=now,
        ).exists()
        if already_pending:
            raise ValidationError("A pending pre-registration already exists for this phone.", phone=phone)
        _ensure_code_unused(code)

        try:
            with transaction.atomic():
                pre_registration = PreRegistration.objects.create(
                    name=name,
                    phone=phone,
                    check_in_date=check_in_date,
                    check_out_date=check_out_date,
                    reservation_code=code,
                    source_event_uid=source_event_uid,
                    dates_locked=dates_locked,
                    expires_at=now + timedelta(days=expiration_days),
                    created_by=created_by,
                    **fields,
                )
        except IntegrityError:
            # Lost a race with another import of the same channel booking.
            raise Conflict(f"Reservation code {code} already has a pre-registration.", reservation_code=code)

    logger.info(
        "Pre-registration %s issued for %s (%s - %s), expires %s",
        pre_registration.pk,
        pre_registration.name,
        check_in_date,
        check_out_date,
        pre_registration.expires_at.isoformat(),
    )
    return pre_registration


def issue_from_event(event, *, name: str, phone: str, **kwargs: Any) -> PreRegistration:
    """Invitation pre-filled from a calendar event; its dates and code are frozen."""

    for field in ("check_in_date", "check_out_date", "reservation_code", "source_event_uid", "dates_locked"):
        kwargs.pop(field, None)
    return issue_pre_registration(
        name=name,
        phone=phone,
        check_in_date=event.start,
        check_out_date=event.end,
        reservation_code=event.reservation_code or "",
        source_event_uid=event.uid,
        dates_locked=True,
        **kwargs,
    )


def update_pre_registration(pre_registration_id: int, now: datetime | None = None, **changes: Any) -> PreRegistration:
    now = now or timezone.now()
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}.")

    with transaction.atomic():
        try:
            pre_registration = PreRegistration.objects.select_for_update().get(pk=pre_registration_id)
        except PreRegistration.DoesNotExist:
            raise NotFound(
                f"Pre-registration {pre_registration_id} not found.",
                pre_registration_id=pre_registration_id,
            )
        if pre_registration.effective_status(now) != PreRegistration.Status.PENDING:
            raise ValidationError("Only pending pre-registrations can be edited.")

        if "reservation_code" in changes:
            changes["reservation_code"] = (changes["reservation_code"] or "").strip().upper()
        if pre_registration.dates_locked:
            touched = [
                field
                for field in LOCKED_FIELDS
                if field in changes and changes[field] != getattr(pre_registration, field)
            ]
            if touched:
                raise ValidationError(
                    "Dates and code imported from the external calendar cannot be changed.",
                    fields=touched,
                )

        for field, value in changes.items():
            setattr(pre_registration, field, value)
        if {"check_in_date", "check_out_date"} & set(changes):
            _validate_stay(pre_registration.check_in_date, pre_registration.check_out_date, local_today(now))
        if changes.get("reservation_code"):
            _ensure_code_unused(pre_registration.reservation_code, exclude_id=pre_registration.pk)
        pre_registration.save()
    return pre_registration


def delete_pre_registration(pre_registration_id: int) -> None:
    deleted, _ = PreRegistration.objects.filter(pk=pre_registration_id).delete()
    if not deleted:
        raise NotFound(
            f"Pre-registration {pre_registration_id} not found.",
            pre_registration_id=pre_registration_id,
        )
    logger.info("Pre-registration %s deleted by operator", pre_registration_id)


def _raise_unredeemable(token: str, now: datetime) -> None:
    pre_registration = PreRegistration.objects.filter(token=token).first()
    if pre_registration is None:
        raise NotFound("Unknown registration token.")
    if pre_registration.status == PreRegistration.Status.REGISTERED:
        raise AlreadyUsed(
            f"Pre-registration {pre_registration.pk} was already redeemed.",
            pre_registration_id=pre_registration.pk,
        )
    raise Expired(
        f"Pre-registration {pre_registration.pk} expired at {pre_registration.expires_at.isoformat()}.",
        pre_registration_id=pre_registration.pk,
    )


def verify_pre_registration(token: str, now: datetime | None = None) -> PreRegistration:
    """Read-only check used by the guest form before it shows the fields."""

    now = now or timezone.now()
    pre_registration = PreRegistration.objects.filter(token=token).first() if token else None
    if pre_registration is None or pre_registration.effective_status(now) != PreRegistration.Status.PENDING:
        _raise_unredeemable(token, now)
    return pre_registration


def _materialise_reservation(pre_registration: PreRegistration, details: Mapping[str, Any]) -> Reservation:
    from apps.reservations.services import create_reservation  # local import to avoid circular

    code = pre_registration.reservation_code
    if code:
        existing = Reservation.objects.active().filter(reservation_code=code).first()
        if existing is not None:
            if (existing.check_in_date, existing.check_out_date) != (
                pre_registration.check_in_date,
                pre_registration.check_out_date,
            ):
                raise Conflict(
                    f"Reservation {existing.pk} holds code {code} with different dates.",
                    reservation_id=existing.pk,
                    reservation_code=code,
                )
            return existing

    optional = {
        "guest_email": details.get("guest_email") or pre_registration.email,
        "guest_country": details.get("guest_country") or pre_registration.origin_country,
        "number_of_guests": details.get("number_of_guests")
        or pre_registration.adults_count + pre_registration.children_count,
        "companions": details.get("companions") or [],
        "vehicles": details.get("vehicles") or [],
        "notes": details.get("notes") or pre_registration.notes,
        "source": Reservation.Source.AIRBNB if code else Reservation.Source.DIRECT,
        "reservation_code": code,
        "total_amount": pre_registration.reservation_value,
    }
    if pre_registration.check_in_time:
        optional["check_in_time"] = pre_registration.check_in_time
    if pre_registration.check_out_time:
        optional["check_out_time"] = pre_registration.check_out_time

    return create_reservation(
        guest_name=details.get("guest_name") or pre_registration.name,
        guest_phone=details.get("guest_phone") or pre_registration.phone,
        check_in_date=pre_registration.check_in_date,
        check_out_date=pre_registration.check_out_date,
        created_by=pre_registration.created_by,
        **optional,
    )


def _claim(token: str, now: datetime) -> int:
    """pending -> registered for one token; the affected row count decides the winner."""
    try:
        return PreRegistration.objects.filter(
            token=token,
            status=PreRegistration.Status.PENDING,
            expires_at__gte=now,
        ).update(status=PreRegistration.Status.REGISTERED, registered_at=now, updated_at=now)
    except OperationalError as exc:
        # Lock wait gave up while another redemption held the row. Not retried.
        logger.warning("Redemption claim could not take the lock: %s", exc)
        raise Conflict("The registration is being processed; please try again shortly.")


def redeem_pre_registration(
    token: str,
    guest_details: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> Reservation:
    """Turn a pending token into a Reservation, at most once.

    The pending -> registered transition is a single conditional UPDATE, so
    of two concurrent callers only one sees a changed row. Everything after
    it runs in the same transaction: if the reservation cannot be created the
    token stays pending.
    """

    now = now or timezone.now()
    details = dict(guest_details or {})
    unknown = set(details) - set(GUEST_DETAIL_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown guest fields: {', '.join(sorted(unknown))}.")
    if not token:
        raise NotFound("Unknown registration token.")

    with transaction.atomic():
        if _claim(token, now) != 1:
            _raise_unredeemable(token, now)

        pre_registration = PreRegistration.objects.get(token=token)
        reservation = _materialise_reservation(pre_registration, details)
        pre_registration.reservation = reservation
        pre_registration.save(update_fields=["reservation", "updated_at"])

    logger.info(
        "Pre-registration %s redeemed into reservation %s",
        pre_registration.pk,
        reservation.pk,
    )
    return reservation


def sweep_expired_pre_registrations(now: datetime | None = None) -> int:
    """Advisory bookkeeping; expiry is already applied lazily on read."""

    now = now or timezone.now()
    expired = PreRegistration.objects.filter(
        status=PreRegistration.Status.PENDING,
        expires_at__lt=now,
    ).update(status=PreRegistration.Status.EXPIRED, updated_at=now)
    if expired:
        logger.info("Marked %d pre-registration(s) as expired", expired)
    return expired
