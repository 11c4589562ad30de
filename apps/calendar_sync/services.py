"""Store-aware wrappers around the importer and the reconciliation engine."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from django.db.models import Q  # type: ignore
from django.utils import timezone  # type: ignore

from apps.preregistrations.models import PreRegistration
from apps.preregistrations.services import issue_from_event
from apps.reservations.models import Reservation
from shared.domain.exceptions import Conflict, NotFound
from shared.domain.value_objects import local_today

from .importer import CalendarImporter, FeedSnapshot
from .reconciliation import ReconciliationResult, StoredRecord, reconcile

logger = logging.getLogger(__name__)


def current_snapshot(now: datetime | None = None) -> FeedSnapshot:
    return CalendarImporter().snapshot(now)


def _live_pre_registrations(now: datetime):
    return PreRegistration.objects.filter(
        Q(status=PreRegistration.Status.REGISTERED)
        | Q(status=PreRegistration.Status.PENDING, expires_at__gte=now)
    )


def reconcile_store(snapshot: FeedSnapshot | None = None, now: datetime | None = None) -> ReconciliationResult:
    """Reconcile the cached feed against every stored reservation and live invitation."""

    now = now or timezone.now()
    snapshot = snapshot or current_snapshot(now)
    reservations = [
        StoredRecord.from_reservation(reservation)
        for reservation in Reservation.objects.only(
            "id", "reservation_code", "check_in_date", "check_out_date", "state"
        )
    ]
    pre_registrations = [
        StoredRecord.from_pre_registration(pre_registration)
        for pre_registration in _live_pre_registrations(now).only(
            "id", "reservation_code", "check_in_date", "check_out_date"
        )
    ]
    result = reconcile(snapshot.events, reservations, pre_registrations, local_today(now))
    if result.conflicts:
        logger.warning(
            "Calendar reconciliation found %d conflict(s): %s",
            len(result.conflicts),
            ", ".join(sorted({conflict.reservation_code for conflict in result.conflicts})),
        )
    return result


def import_candidate(
    uid: str,
    *,
    name: str,
    phone: str,
    created_by=None,
    now: datetime | None = None,
    **fields: Any,
) -> PreRegistration:
    """Turn one new-booking candidate into a pre-registration with locked dates.

    The candidate is re-checked against the store first. Two concurrent
    imports of the same event still end with one record: the database
    rejects the second code and it surfaces as Conflict.
    """
    now = now or timezone.now()
    snapshot = current_snapshot(now)
    event = snapshot.find(uid)
    if event is None:
        raise NotFound(f"Event {uid} is not in the cached calendar feed.", uid=uid)

    result = reconcile_store(snapshot, now)
    if result.candidate(uid) is None:
        raise Conflict(
            f"Event {uid} is already linked, disputed or in the past.",
            uid=uid,
            reservation_code=event.reservation_code,
        )

    pre_registration = issue_from_event(
        event,
        name=name,
        phone=phone,
        created_by=created_by,
        now=now,
        **fields,
    )
    logger.info(
        "Imported calendar event %s (%s) as pre-registration %s",
        uid,
        event.reservation_code,
        pre_registration.pk,
    )
    return pre_registration
