"""Domain failure taxonomy.

Every failure a caller is expected to handle derives from ``DomainError``. Each carries a stable
machine-readable ``code``, the HTTP status it maps to and a translated message. The API layer turns
them into ``{"code": ..., "detail": ...}`` responses, so services raise them freely and controllers
never catch them.
"""

import typing as t
from enum import StrEnum

from django.utils.translation import gettext_lazy as _


class FailureKind(StrEnum):
    """Stable identifiers for domain failures."""

    DUPLICATE_REGISTRATION = "duplicate_registration"
    REGISTRATION_CLOSED = "registration_closed"
    EVENT_FULL = "event_full"
    PAYMENT_SETUP_FAILED = "payment_setup_failed"
    GATEWAY_ERROR = "gateway_error"
    NOT_PAYABLE = "not_payable"
    INVALID_CREDENTIAL = "invalid_credential"
    WRONG_EVENT = "wrong_event"
    ALREADY_CHECKED_IN = "already_checked_in"
    DUPLICATE_SCAN = "duplicate_scan"
    NOT_AUTHORIZED = "not_authorized"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"


class DomainError(Exception):
    """Base class for expected, recoverable failures."""

    code: t.ClassVar[FailureKind]
    status_code: t.ClassVar[int] = 400
    default_message: t.ClassVar[t.Any] = _("The request could not be completed.")

    def __init__(self, message: t.Any = None, **extra: t.Any) -> None:
        """Initialize with an optional override message and extra response fields."""
        self.message = message if message is not None else self.default_message
        self.extra = extra
        super().__init__(str(self.message))

    def as_dict(self) -> dict[str, t.Any]:
        """Serializable representation used in API responses."""
        return {"code": str(self.code), "detail": str(self.message), **self.extra}


class NotAuthorized(DomainError):
    code = FailureKind.NOT_AUTHORIZED
    status_code = 403
    default_message = _("You are not allowed to perform this action.")


class NotFound(DomainError):
    code = FailureKind.NOT_FOUND
    status_code = 404
    default_message = _("The requested resource was not found.")


class InvalidInput(DomainError):
    """Input rejected by a business rule (missing reason, malformed capacity, ...).

    Named apart from Django's own ``ValidationError``, which model ``full_clean`` raises and which the API
    reports field by field.
    """

    code = FailureKind.VALIDATION_ERROR
    status_code = 400
    default_message = _("The submitted data is not valid.")
