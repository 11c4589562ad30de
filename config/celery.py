import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("stayhost")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Poll the channel calendar export
    "refresh-calendar-feed": {
        "task": "calendar_sync.refresh_feed",
        "schedule": float(os.environ.get("CALENDAR_POLL_INTERVAL", 900)),
        "options": {"expires": 600},
    },
    # Persist the expired status of unredeemed invitations
    "sweep-expired-pre-registrations": {
        "task": "preregistrations.sweep_expired",
        "schedule": crontab(minute=5),
    },
    # Revoke codes of cancelled stays and of windows that have closed
    "withdraw-stale-access-grants": {
        "task": "access.withdraw_stale_grants",
        "schedule": crontab(minute="*/15"),
    },
}

app.conf.timezone = os.environ.get("TIME_ZONE", "America/Sao_Paulo")
