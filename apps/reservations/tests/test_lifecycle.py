"""Tests for the derived reservation status."""

from __future__ import annotations

from datetime import date, datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from apps.reservations.lifecycle import (
    ReservationState,
    ReservationStatus,
    compute_temporal_status,
    resolve_status,
    status_of,
)

CHECK_IN = date(2025, 6, 10)
CHECK_OUT = date(2025, 6, 15)


@pytest.mark.parametrize(
    "today, expected",
    [
        (date(2025, 6, 9), ReservationStatus.UPCOMING),
        (date(2025, 6, 10), ReservationStatus.CURRENT),
        (date(2025, 6, 12), ReservationStatus.CURRENT),
        (date(2025, 6, 14), ReservationStatus.CURRENT),
        (date(2025, 6, 15), ReservationStatus.COMPLETED),
        (date(2025, 6, 16), ReservationStatus.COMPLETED),
    ],
)
def test_confirmed_stay_follows_the_calendar(today, expected):
    assert compute_temporal_status(CHECK_IN, CHECK_OUT, today) == expected


@pytest.mark.parametrize("state", [ReservationState.CANCELLED, ReservationState.PENDING])
def test_stored_state_overrides_dates(state):
    during_stay = datetime(2025, 6, 12, 12, tzinfo=ZoneInfo("America/Sao_Paulo"))

    assert resolve_status(state, CHECK_IN, CHECK_OUT, during_stay) == state


def test_status_uses_property_local_day(settings):
    settings.TIME_ZONE = "America/Sao_Paulo"
    # 01:30 UTC on the 10th is still the evening of the 9th at the property.
    late_evening = datetime(2025, 6, 10, 1, 30, tzinfo=ZoneInfo("UTC"))
    stay = SimpleNamespace(state=ReservationState.CONFIRMED, check_in_date=CHECK_IN, check_out_date=CHECK_OUT)

    assert status_of(stay, late_evening) == ReservationStatus.UPCOMING
