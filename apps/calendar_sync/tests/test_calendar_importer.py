"""Tests for feed parsing and the cached importer."""

from __future__ import annotations

from datetime import date, timedelta
from unittest import mock

import pytest
import requests
from django.utils import timezone

from apps.calendar_sync.importer import (
    CalendarImporter,
    extract_reservation_code,
    parse_feed,
    public_feed_url,
)
from shared.domain.exceptions import FetchError, ParseError

FEED = b"""BEGIN:VCALENDAR\r
VERSION:2.0\r
PRODID:-//Channel Inc//Hosting Calendar 1.0//EN\r
BEGIN:VEVENT\r
DTSTART;VALUE=DATE:20250610\r
DTEND;VALUE=DATE:20250615\r
UID:HMABCDE123@airbnb.com\r
SUMMARY:Reserved\r
DESCRIPTION:Reservation URL: https://www.airbnb.com/hosting/reservations/details/HMABCDE123\\nPhone Number (Last 4 Digits): 1234\r
END:VEVENT\r
BEGIN:VEVENT\r
DTSTART;VALUE=DATE:20250601\r
DTEND;VALUE=DATE:20250603\r
UID:1418fb94e984-9b6c1d3bd1fa@airbnb.com\r
SUMMARY:Airbnb (Not available)\r
END:VEVENT\r
BEGIN:VEVENT\r
DTSTART:20250701T020000Z\r
DTEND:20250704T020000Z\r
UID:utc-event@example.com\r
SUMMARY:Reserved HMUTCEVT01\r
END:VEVENT\r
BEGIN:VEVENT\r
DTSTART;VALUE=DATE:20250801\r
DURATION:P3D\r
UID:duration@example.com\r
END:VEVENT\r
END:VCALENDAR\r
"""


def _session(content: bytes = FEED, *, error: Exception | None = None) -> mock.Mock:
    session = mock.Mock()
    if error is not None:
        session.get.side_effect = error
    else:
        response = mock.Mock(content=content)
        response.raise_for_status.return_value = None
        session.get.return_value = response
    return session


@pytest.fixture(autouse=True)
def property_time_zone(settings):
    settings.TIME_ZONE = "America/Sao_Paulo"


def test_parse_feed_orders_events_and_extracts_codes():
    events = parse_feed(FEED)

    assert [event.uid for event in events] == [
        "1418fb94e984-9b6c1d3bd1fa@airbnb.com",
        "HMABCDE123@airbnb.com",
        "utc-event@example.com",
        "duration@example.com",
    ]
    assert events[0].reservation_code is None
    assert events[1].reservation_code == "HMABCDE123"
    assert (events[1].start, events[1].end) == (date(2025, 6, 10), date(2025, 6, 15))
    assert events[2].reservation_code == "HMUTCEVT01"


def test_datetimes_are_normalised_to_property_local_date():
    utc_event = next(event for event in parse_feed(FEED) if event.uid == "utc-event@example.com")

    # 02:00 UTC is 23:00 the previous evening in Sao Paulo.
    assert utc_event.start == date(2025, 6, 30)
    assert utc_event.end == date(2025, 7, 3)


def test_missing_dtend_falls_back_to_duration():
    event = next(event for event in parse_feed(FEED) if event.uid == "duration@example.com")

    assert event.end - event.start == timedelta(days=3)
    assert event.summary == "Reserved"


def test_garbage_is_a_parse_error():
    with pytest.raises(ParseError):
        parse_feed(b"<html><body>Service unavailable</body></html>")


@pytest.mark.parametrize(
    "uid, summary, description, expected",
    [
        ("HMXYZ98765@airbnb.com", "", "", "HMXYZ98765"),
        ("abc@airbnb.com", "", "see reservations/details/HM XYZ-98765", "HMXYZ98765"),
        ("abc@airbnb.com", "Blocked", "", None),
        ("abc123@example.com", "Blocked for Brahmaputra family", "", None),
        ("abc123@example.com", "BLOCKED FOR BRAHMAPUTRA", "", None),
        ("abc123@example.com", "hmmmmmmmmm", "painting the ohmmeter room", None),
        ("xHMABCDEFG@airbnb.com", "", "", None),
        ("abc@airbnb.com", "Reserved HMUTCEVT01", "", "HMUTCEVT01"),
    ],
)
def test_extract_reservation_code(uid, summary, description, expected):
    assert extract_reservation_code(uid, summary, description) == expected


def test_public_feed_url_hides_secret():
    assert (
        public_feed_url("https://www.airbnb.com/calendar/ical/123.ics?s=secret-token")
        == "https://www.airbnb.com/calendar/ical/123.ics"
    )


def test_fetch_wraps_network_errors():
    importer = CalendarImporter("https://feed.example.com/cal.ics?s=1", session=_session(error=requests.ConnectionError()))

    with pytest.raises(FetchError) as excinfo:
        importer.fetch()

    assert excinfo.value.details["feed_url"] == "https://feed.example.com/cal.ics"


def test_fetch_without_url_is_a_fetch_error():
    with pytest.raises(FetchError):
        CalendarImporter("", session=_session()).fetch()


def test_refresh_caches_and_snapshot_reads_without_network(settings):
    settings.CALENDAR_STALE_AFTER = 3600
    session = _session()
    now = timezone.now()

    refreshed = CalendarImporter("https://feed.example.com/cal.ics", session=session).refresh(now)
    snapshot = CalendarImporter("https://feed.example.com/cal.ics", session=_session()).snapshot(now)

    assert len(refreshed.events) == 4
    assert snapshot.events == refreshed.events
    assert snapshot.fetched_at == now
    assert not snapshot.is_stale
    assert session.get.call_count == 1


def test_failed_refresh_keeps_previous_events_and_escalates_once(settings, caplog):
    settings.CALENDAR_STALE_AFTER = 3600
    url = "https://feed.example.com/cal.ics"
    start = timezone.now()
    CalendarImporter(url, session=_session()).refresh(start)
    failing = CalendarImporter(url, session=_session(error=requests.Timeout()))

    early = failing.refresh(start + timedelta(minutes=10))
    assert len(early.events) == 4
    assert not early.is_stale
    assert early.last_error

    with caplog.at_level("WARNING", logger="apps.calendar_sync.importer"):
        late = failing.refresh(start + timedelta(hours=2))
        failing.refresh(start + timedelta(hours=3))

    assert late.is_stale
    assert len(late.events) == 4
    escalations = [record for record in caplog.records if record.levelname == "ERROR"]
    assert len(escalations) == 1


def test_snapshot_before_first_fetch_is_empty_and_stale():
    snapshot = CalendarImporter("https://feed.example.com/cal.ics", session=_session()).snapshot()

    assert snapshot.events == ()
    assert snapshot.fetched_at is None
    assert snapshot.is_stale
