"""Celery tasks for access provisioning."""

from __future__ import annotations

from celery import shared_task  # type: ignore

from .services import withdraw_stale_grants


@shared_task(name="access.withdraw_stale_grants")
def withdraw_stale_access_grants() -> dict[str, int]:
    return {"withdrawn": withdraw_stale_grants()}
