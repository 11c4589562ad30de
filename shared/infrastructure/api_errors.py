"""
DRF exception handler for domain errors.

Operator-facing endpoints get the full message and context. Guest-facing
views catch the token errors themselves and answer with a generic message.
"""

from __future__ import annotations

import logging

from rest_framework import status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler as drf_exception_handler  # type: ignore

from shared.domain import exceptions as domain

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    domain.ValidationError: status.HTTP_400_BAD_REQUEST,
    domain.NotFound: status.HTTP_404_NOT_FOUND,
    domain.Expired: status.HTTP_410_GONE,
    domain.AlreadyUsed: status.HTTP_409_CONFLICT,
    domain.Conflict: status.HTTP_409_CONFLICT,
    domain.FetchError: status.HTTP_502_BAD_GATEWAY,
    domain.ParseError: status.HTTP_502_BAD_GATEWAY,
}


def status_for(exc: domain.DomainError) -> int:
    for error_class in type(exc).__mro__:
        if error_class in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_class]
    return status.HTTP_400_BAD_REQUEST


def exception_handler(exc, context):
    if isinstance(exc, domain.DomainError):
        http_status = status_for(exc)
        if isinstance(exc, domain.Conflict):
            logger.warning("Conflict requires operator decision: %s", exc.message)
        return Response(exc.to_dict(), status=http_status)
    return drf_exception_handler(exc, context)
