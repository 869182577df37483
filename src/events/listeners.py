"""Reactions to registration changes."""

import structlog

from events.service.notifier import ChangeKind, RegistrationChange, registration_notifier

logger = structlog.get_logger(__name__)


def queue_confirmation_email(change: RegistrationChange) -> None:
    """Send the attendee their QR code once the registration is confirmed."""
    if change.kind != ChangeKind.CONFIRMED:
        return
    from events.tasks import send_registration_confirmation

    send_registration_confirmation.delay(str(change.registration_id))
    logger.debug("registration_confirmation_queued", registration_id=str(change.registration_id))


def connect() -> None:
    """Subscribe the listeners above. Safe to call more than once."""
    registration_notifier.subscribe(queue_confirmation_email)
