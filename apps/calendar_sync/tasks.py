"""Celery tasks for the calendar feed."""

from __future__ import annotations

from celery import shared_task  # type: ignore

from .importer import CalendarImporter


@shared_task(name="calendar_sync.refresh_feed")
def refresh_calendar_feed() -> dict:
    """Poll the feed; failures keep the previous copy and are logged by the importer."""

    snapshot = CalendarImporter().refresh()
    return {
        "events": len(snapshot.events),
        "is_stale": snapshot.is_stale,
        "last_error": snapshot.last_error,
    }
