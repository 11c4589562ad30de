"""Reconciliation of feed events against stored bookings.

:func:`reconcile` is pure: it takes plain values and returns plain values,
so running it twice over the same inputs gives the same answer. Matching is
by reservation code first, then by exact (check-in, check-out) pair against
records that have no code. Disagreements are reported as conflicts and
never resolved here.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from .importer import ExternalBookingEvent

RESERVATION = "reservation"
PRE_REGISTRATION = "pre_registration"

FEED_DISAGREES = "feed_disagrees"
EVENT_RECORD_MISMATCH = "event_record_mismatch"
RECORDS_DISAGREE = "records_disagree"


@dataclass(frozen=True)
class StoredRecord:
    kind: str
    id: int
    reservation_code: str
    check_in: date
    check_out: date
    cancelled: bool = False

    @property
    def dates(self) -> tuple[date, date]:
        return self.check_in, self.check_out

    @classmethod
    def from_reservation(cls, reservation) -> "StoredRecord":
        return cls(
            kind=RESERVATION,
            id=reservation.pk,
            reservation_code=reservation.reservation_code or "",
            check_in=reservation.check_in_date,
            check_out=reservation.check_out_date,
            cancelled=reservation.state == "cancelled",
        )

    @classmethod
    def from_pre_registration(cls, pre_registration) -> "StoredRecord":
        return cls(
            kind=PRE_REGISTRATION,
            id=pre_registration.pk,
            reservation_code=pre_registration.reservation_code or "",
            check_in=pre_registration.check_in_date,
            check_out=pre_registration.check_out_date,
        )


@dataclass(frozen=True)
class ReconciliationConflict:
    reason: str
    reservation_code: str
    event_uids: tuple[str, ...] = ()
    records: tuple[tuple[str, int], ...] = ()
    detail: str = ""


@dataclass(frozen=True)
class ReconciliationResult:
    new_candidates: tuple[ExternalBookingEvent, ...]
    matched_count: int
    conflicts: tuple[ReconciliationConflict, ...]

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def candidate(self, uid: str) -> ExternalBookingEvent | None:
        return next((event for event in self.new_candidates if event.uid == uid), None)


def _as_records(items: Iterable, factory) -> list[StoredRecord]:
    return [item if isinstance(item, StoredRecord) else factory(item) for item in items]


def _fmt(dates: tuple[date, date]) -> str:
    return f"{dates[0].isoformat()}..{dates[1].isoformat()}"


def reconcile(
    events: Sequence[ExternalBookingEvent],
    reservations: Iterable,
    pre_registrations: Iterable,
    today: date,
) -> ReconciliationResult:
    """Compare feed events with stored records.

    ``reservations`` should include cancelled ones; they still count as the
    record a code belongs to. ``pre_registrations`` should already exclude
    expired invitations.
    """
    records = _as_records(reservations, StoredRecord.from_reservation) + _as_records(
        pre_registrations, StoredRecord.from_pre_registration
    )
    by_code: dict[str, list[StoredRecord]] = defaultdict(list)
    uncoded_by_dates: dict[tuple[date, date], list[StoredRecord]] = defaultdict(list)
    for record in records:
        if record.reservation_code:
            by_code[record.reservation_code].append(record)
        else:
            uncoded_by_dates[record.dates].append(record)

    conflicts: list[ReconciliationConflict] = []

    for code, holders in by_code.items():
        live = [record for record in holders if not record.cancelled]
        if len({record.dates for record in live}) > 1:
            conflicts.append(
                ReconciliationConflict(
                    reason=RECORDS_DISAGREE,
                    reservation_code=code,
                    records=tuple(sorted((record.kind, record.id) for record in live)),
                    detail=", ".join(sorted({_fmt(record.dates) for record in live})),
                )
            )

    events_by_code: dict[str, list[ExternalBookingEvent]] = defaultdict(list)
    for event in events:
        if event.reservation_code:
            events_by_code[event.reservation_code].append(event)

    disputed_codes = set()
    for code, same_code in events_by_code.items():
        if len({(event.start, event.end) for event in same_code}) > 1:
            disputed_codes.add(code)
            conflicts.append(
                ReconciliationConflict(
                    reason=FEED_DISAGREES,
                    reservation_code=code,
                    event_uids=tuple(sorted(event.uid for event in same_code)),
                    detail=", ".join(sorted({_fmt((event.start, event.end)) for event in same_code})),
                )
            )

    matched = 0
    candidates: list[ExternalBookingEvent] = []
    offered_codes: set[str] = set()
    for event in events:
        code = event.reservation_code
        event_dates = (event.start, event.end)

        if code and code in by_code:
            holders = by_code[code]
            if any(record.dates == event_dates for record in holders):
                matched += 1
            else:
                conflicts.append(
                    ReconciliationConflict(
                        reason=EVENT_RECORD_MISMATCH,
                        reservation_code=code,
                        event_uids=(event.uid,),
                        records=tuple(sorted((record.kind, record.id) for record in holders)),
                        detail=f"feed {_fmt(event_dates)} vs stored "
                        + ", ".join(sorted({_fmt(record.dates) for record in holders})),
                    )
                )
            continue

        if event_dates in uncoded_by_dates:
            matched += 1
            continue

        if not code or code in disputed_codes or code in offered_codes:
            continue
        if event.start >= today:
            candidates.append(event)
            offered_codes.add(code)

    conflicts.sort(key=lambda conflict: (conflict.reservation_code, conflict.reason, conflict.event_uids))
    return ReconciliationResult(
        new_candidates=tuple(candidates),
        matched_count=matched,
        conflicts=tuple(conflicts),
    )
