"""
Common Value Objects

- local_today: the property-local calendar day for an instant
"""

from __future__ import annotations

from datetime import date, datetime

from django.utils import timezone


def local_today(now: datetime | None = None) -> date:
    """
    Calendar day of ``now`` in the property time zone.

    Every lifecycle comparison is made on this value, never on a raw
    instant, so a stay starting "today" does not flip a day early or late
    around midnight UTC.
    """
    if now is None:
        return timezone.localdate()
    if timezone.is_naive(now):
        now = timezone.make_aware(now)
    return timezone.localdate(now)
