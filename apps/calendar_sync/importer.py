"""Calendar feed importer.

Downloads the channel's iCalendar export, turns every VEVENT into an
:class:`ExternalBookingEvent` with plain ``date`` bounds and keeps the last
successful result in the Django cache. Request handlers only ever read
:meth:`CalendarImporter.snapshot`; the network is touched from the Celery
task alone.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable
from urllib.parse import urlsplit, urlunsplit

import icalendar  # type: ignore
import requests  # type: ignore
from django.conf import settings  # type: ignore
from django.core.cache import cache  # type: ignore
from django.utils import timezone  # type: ignore
from requests.adapters import HTTPAdapter  # type: ignore
from urllib3.util.retry import Retry  # type: ignore

from shared.domain.exceptions import FetchError, ParseError

logger = logging.getLogger(__name__)

FEED_CACHE_KEY = "calendar_sync:feed"
DEFAULT_SUMMARY = "Reserved"

CODE_PATTERN = re.compile(r"HM[A-Z0-9]{6,}")
UID_CODE_PATTERN = re.compile(r"^(HM[A-Z0-9]{6,})@")
TEXT_CODE_PATTERN = re.compile(r"(?<![A-Za-z0-9])HM[A-Z0-9]{6,}(?![A-Za-z0-9])")
DETAILS_LINK_PATTERN = re.compile(r"reservations/details/(HM[ A-Z0-9-]+)", re.IGNORECASE)


@dataclass(frozen=True)
class ExternalBookingEvent:
    """One blocked range from the feed. Never persisted."""

    uid: str
    summary: str
    start: date
    end: date
    description: str = ""
    status: str = "blocked"
    reservation_code: str | None = None

    @property
    def nights(self) -> int:
        return (self.end - self.start).days


@dataclass(frozen=True)
class FeedSnapshot:
    events: tuple[ExternalBookingEvent, ...] = ()
    fetched_at: datetime | None = None
    last_error: str = ""
    is_stale: bool = True
    feed_url: str = ""
    failed_at: datetime | None = field(default=None, compare=False)

    def find(self, uid: str) -> ExternalBookingEvent | None:
        return next((event for event in self.events if event.uid == uid), None)


def public_feed_url(url: str) -> str:
    """Feed URL without its query string, which carries the export secret."""
    if not url:
        return ""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def extract_reservation_code(uid: str, summary: str = "", description: str = "") -> str | None:
    details = DETAILS_LINK_PATTERN.search(description or "")
    if details:
        code = re.sub(r"[^A-Z0-9]", "", details.group(1).upper())
        if CODE_PATTERN.fullmatch(code):
            return code
    # Codes are stand-alone upper-case tokens, never part of a longer word.
    match = UID_CODE_PATTERN.match((uid or "").strip())
    if match:
        return match.group(1)
    for text in (summary, description):
        match = TEXT_CODE_PATTERN.search(text or "")
        if match:
            return match.group(0)
    return None


def _to_local_date(value) -> date:
    # Datetimes are moved to the property time zone before truncation so an
    # arrival at 01:00 UTC does not land on the previous local day.
    if isinstance(value, datetime):
        if timezone.is_naive(value):
            value = timezone.make_aware(value)
        return timezone.localtime(value).date()
    if isinstance(value, date):
        return value
    raise ParseError(f"Unsupported date value: {value!r}")


def _event_bounds(component) -> tuple[date, date]:
    # Properties icalendar could not decode come back without a ``dt``.
    start_value = getattr(component.get("DTSTART"), "dt", None)
    if start_value is None:
        raise ParseError("VEVENT without a readable DTSTART.", uid=str(component.get("UID", "")))
    start = _to_local_date(start_value)

    end_value = getattr(component.get("DTEND"), "dt", None)
    duration = getattr(component.get("DURATION"), "dt", None)
    if end_value is not None:
        end = _to_local_date(end_value)
    elif isinstance(duration, timedelta):
        end = _to_local_date(start_value + duration)
    else:
        end = start + timedelta(days=1)
    if end <= start:
        end = start + timedelta(days=1)
    return start, end


def parse_feed(payload: bytes | str) -> list[ExternalBookingEvent]:
    """Parse an iCalendar document, ordered by (start, end, uid)."""

    try:
        calendar = icalendar.Calendar.from_ical(payload)
    except (ValueError, IndexError, KeyError) as exc:
        raise ParseError(f"Calendar feed is not valid iCalendar: {exc}")
    if getattr(calendar, "name", "") != "VCALENDAR":
        raise ParseError("Calendar feed has no VCALENDAR component.")

    events = []
    for component in calendar.walk("VEVENT"):
        if str(component.get("STATUS", "")).upper() == "CANCELLED":
            continue
        start, end = _event_bounds(component)
        summary = str(component.get("SUMMARY", "") or DEFAULT_SUMMARY)
        description = str(component.get("DESCRIPTION", "") or "")
        uid = str(component.get("UID", "") or f"{start.isoformat()}-{end.isoformat()}-{summary}")
        events.append(
            ExternalBookingEvent(
                uid=uid,
                summary=summary,
                start=start,
                end=end,
                description=description,
                reservation_code=extract_reservation_code(uid, summary, description),
            )
        )
    events.sort(key=lambda event: (event.start, event.end, event.uid))
    return events


def build_session(retries: int | None = None, backoff: float | None = None) -> requests.Session:
    """Session that retries GETs with exponential backoff. Nothing else is retried."""

    retries = int(getattr(settings, "CALENDAR_FETCH_RETRIES", 3)) if retries is None else retries
    backoff = float(getattr(settings, "CALENDAR_FETCH_BACKOFF", 1.0)) if backoff is None else backoff
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=backoff,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers["User-Agent"] = "stayhost-calendar-sync/1.0"
    return session


class CalendarImporter:
    """Fetches the feed and serves the last good copy."""

    def __init__(self, feed_url: str | None = None, *, session: requests.Session | None = None) -> None:
        self.feed_url = getattr(settings, "CALENDAR_FEED_URL", "") if feed_url is None else feed_url
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = build_session()
        return self._session

    @staticmethod
    def stale_after() -> timedelta:
        return timedelta(seconds=int(getattr(settings, "CALENDAR_STALE_AFTER", 3 * 3600)))

    def fetch(self) -> list[ExternalBookingEvent]:
        if not self.feed_url:
            raise FetchError("No calendar feed URL is configured.")
        timeout = float(getattr(settings, "CALENDAR_FETCH_TIMEOUT", 10))
        try:
            response = self.session.get(self.feed_url, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(
                f"Calendar feed request failed: {exc.__class__.__name__}",
                feed_url=public_feed_url(self.feed_url),
            )
        return parse_feed(response.content)

    def _load_state(self) -> dict:
        return cache.get(FEED_CACHE_KEY) or {"events": (), "fetched_at": None}

    def _snapshot_from(self, state: dict, now: datetime) -> FeedSnapshot:
        fetched_at = state.get("fetched_at")
        is_stale = fetched_at is None or now - fetched_at > self.stale_after()
        return FeedSnapshot(
            events=tuple(state.get("events", ())),
            fetched_at=fetched_at,
            last_error=state.get("last_error", ""),
            is_stale=is_stale,
            feed_url=state.get("feed_url") or public_feed_url(self.feed_url),
            failed_at=state.get("failed_at"),
        )

    def snapshot(self, now: datetime | None = None) -> FeedSnapshot:
        """Cached events; never touches the network."""
        return self._snapshot_from(self._load_state(), now or timezone.now())

    def refresh(self, now: datetime | None = None) -> FeedSnapshot:
        now = now or timezone.now()
        previous = self._load_state()
        try:
            events = self.fetch()
        except (FetchError, ParseError) as exc:
            return self._record_failure(previous, exc, now)

        state = {
            "events": tuple(events),
            "fetched_at": now,
            "last_error": "",
            "feed_url": public_feed_url(self.feed_url),
        }
        cache.set(FEED_CACHE_KEY, state, None)
        if previous.get("escalated"):
            logger.info("Calendar feed recovered after %s", previous.get("last_error"))
        logger.info("Calendar feed refreshed: %d event(s)", len(events))
        return self._snapshot_from(state, now)

    def _record_failure(self, previous: dict, exc: Exception, now: datetime) -> FeedSnapshot:
        message = getattr(exc, "message", str(exc))
        state = dict(previous, last_error=message, failed_at=now)
        snapshot = self._snapshot_from(state, now)
        logger.warning(
            "Calendar refresh failed, serving %d cached event(s): %s",
            len(snapshot.events),
            message,
        )
        if snapshot.is_stale and not previous.get("escalated"):
            logger.error(
                "Calendar feed stale since %s: %s",
                snapshot.fetched_at.isoformat() if snapshot.fetched_at else "never",
                message,
            )
            state["escalated"] = True
        cache.set(FEED_CACHE_KEY, state, None)
        return snapshot


def upcoming_events(events: Iterable[ExternalBookingEvent], today: date) -> list[ExternalBookingEvent]:
    """Events not yet over on ``today``, for the operator calendar view."""
    return [event for event in events if event.end >= today]
