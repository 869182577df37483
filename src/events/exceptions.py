import datetime
import typing as t

from django.utils.translation import gettext_lazy as _

from common.exceptions import DomainError, FailureKind, NotFound


class InvalidRegistrationTransition(Exception):
    """Raised when a registration is moved to a state it cannot reach from its current one."""


# --- Registration ---


class DuplicateRegistration(DomainError):
    code = FailureKind.DUPLICATE_REGISTRATION
    status_code = 409
    default_message = _("You are already registered for this event.")


class RegistrationClosed(DomainError):
    code = FailureKind.REGISTRATION_CLOSED
    status_code = 400
    default_message = _("Registration for this event is closed.")


class EventFull(DomainError):
    code = FailureKind.EVENT_FULL
    status_code = 409
    default_message = _("This event has reached capacity.")


class EventNotFound(NotFound):
    default_message = _("Event not found.")


class RegistrationNotFound(NotFound):
    default_message = _("You are not registered for this event.")


# --- Payments ---


class PaymentSetupFailed(DomainError):
    code = FailureKind.PAYMENT_SETUP_FAILED
    status_code = 502
    default_message = _("We could not start the payment. Please try again.")


class GatewayError(DomainError):
    code = FailureKind.GATEWAY_ERROR
    status_code = 502
    default_message = _("The payment provider is unavailable.")


class NotPayable(DomainError):
    code = FailureKind.NOT_PAYABLE
    status_code = 400
    default_message = _("This event does not require payment.")


class PaymentNotFound(NotFound):
    default_message = _("Payment not found.")


# --- Attendance ---


class InvalidCredential(DomainError):
    code = FailureKind.INVALID_CREDENTIAL
    status_code = 404
    default_message = _("This code is not a valid registration.")


class WrongEvent(DomainError):
    code = FailureKind.WRONG_EVENT
    status_code = 400
    default_message = _("This registration is for a different event.")


class AlreadyCheckedIn(DomainError):
    code = FailureKind.ALREADY_CHECKED_IN
    status_code = 409
    default_message = _("This attendee has already been checked in.")

    def __init__(self, checked_in_at: datetime.datetime | None = None, **extra: t.Any) -> None:
        """Carry the original check-in time so the scanner can show it."""
        if checked_in_at is not None:
            extra["checked_in_at"] = checked_in_at.isoformat()
        super().__init__(**extra)
        self.checked_in_at = checked_in_at


class DuplicateScan(DomainError):
    code = FailureKind.DUPLICATE_SCAN
    status_code = 429
    default_message = _("This code was just scanned.")
