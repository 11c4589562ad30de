"""Celery tasks for pre-registrations."""

from __future__ import annotations

from celery import shared_task  # type: ignore

from .models import PreRegistration
from .notifications import send_invitation_email
from .services import sweep_expired_pre_registrations


@shared_task
def send_pre_registration_invite(pre_registration_id: int) -> bool:
    try:
        pre_registration = PreRegistration.objects.get(pk=pre_registration_id)
    except PreRegistration.DoesNotExist:
        return False
    if pre_registration.effective_status() != PreRegistration.Status.PENDING:
        return False
    return send_invitation_email(pre_registration)


# ============================================================================
# PERIODIC TASKS (run by Celery Beat)
# ============================================================================

@shared_task(name="preregistrations.sweep_expired")
def sweep_expired() -> dict[str, int]:
    """Mark pending invitations past their expiry as expired.

    Reads already apply expiry lazily, so a missed run changes nothing a
    guest or operator can observe.
    """
    expired = sweep_expired_pre_registrations()
    return {"expired": expired}
