"""
Domain error taxonomy

Every service in the project raises one of these instead of Django or DRF
exceptions, so the same rule can be enforced from a view, a Celery task or
the shell. The HTTP mapping lives in ``shared.infrastructure.api_errors``.

- ValidationError: malformed input dates or fields (user-correctable)
- NotFound: unknown reservation id or registration token
- Expired: stale registration token
- AlreadyUsed: second redemption of a single-use token
- Conflict: ambiguous or double-booked dates, never auto-resolved
- FetchError / ParseError: calendar feed unavailable or malformed
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for errors raised by the stay-management services."""

    code = "domain_error"

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or str(self.args[0])
        self.details = details

    def to_dict(self) -> dict:
        payload = {"code": self.code, "detail": self.message}
        if self.details:
            payload["context"] = self.details
        return payload


class ValidationError(DomainError):
    """Input dates or fields are invalid."""

    code = "validation_error"


class NotFound(DomainError):
    """The requested record does not exist."""

    code = "not_found"


class Expired(DomainError):
    """The token or data is past its validity."""

    code = "expired"


class AlreadyUsed(DomainError):
    """The single-use token has already been redeemed."""

    code = "already_used"


class Conflict(DomainError):
    """Dates or codes disagree and need a human decision."""

    code = "conflict"


class FetchError(DomainError):
    """The calendar feed could not be downloaded."""

    code = "feed_unavailable"


class ParseError(DomainError):
    """The calendar feed could not be parsed."""

    code = "feed_malformed"
