"""Invitation emails for pre-registrations."""

from __future__ import annotations

import logging

from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.html import format_html, strip_tags  # type: ignore

from .models import PreRegistration

logger = logging.getLogger(__name__)


def send_invitation_email(pre_registration: PreRegistration) -> bool:
    """Mail the registration link to the guest.

    Returns False when the invitation has no address or the backend fails;
    the link stays valid and can be shared by hand.
    """
    if not pre_registration.email:
        return False

    link = pre_registration.registration_link()
    expires_on = timezone.localtime(pre_registration.expires_at).date()
    html_message = format_html(
        """
    <html>
    <body>
        <p>Hello {},</p>
        <p>Please complete your registration before arriving on {}.</p>
        <p><a href="{}">{}</a></p>
        <p>This link expires on {}.</p>
    </body>
    </html>
    """,
        pre_registration.name,
        pre_registration.check_in_date.strftime("%d/%m/%Y"),
        link,
        link,
        expires_on.strftime("%d/%m/%Y"),
    )
    try:
        send_mail(
            subject="Complete your registration",
            message=strip_tags(html_message),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[pre_registration.email],
            html_message=html_message,
            fail_silently=False,
        )
    except Exception as exc:
        logger.error(
            "Failed to send invitation for pre-registration %s: %s",
            pre_registration.pk,
            exc,
            exc_info=True,
        )
        return False

    logger.info("Invitation sent for pre-registration %s", pre_registration.pk)
    return True
