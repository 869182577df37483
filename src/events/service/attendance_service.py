"""Door check-in.

Scanners submit the decoded payload of an attendee's QR code. A payload is checked in at most once; the
unique constraint on ``Attendance.registration`` is the guarantee, the debouncer only keeps a camera that
sees the same code on consecutive frames from producing a stream of 409s.
"""

import hashlib
from datetime import datetime
from uuid import UUID

import structlog
from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils.translation import gettext_lazy as _
from pydantic import BaseModel

from accounts.models import ConveneUser
from common.exceptions import NotAuthorized
from common.utils import is_unique_violation
from events.exceptions import AlreadyCheckedIn, EventNotFound, InvalidCredential, WrongEvent
from events.models import Attendance, Credential, Event
from events.service import credentials

logger = structlog.get_logger(__name__)


class AttendanceResult(BaseModel):
    registration_id: UUID
    attendee_name: str
    checked_in_at: datetime


def _get_event_for_staff(event_id: UUID, staff: ConveneUser) -> Event:
    event = Event.objects.filter(pk=event_id).first()
    if event is None:
        raise EventNotFound()
    # Role is re-read so a demotion takes effect on the next scan.
    role = ConveneUser.objects.filter(pk=staff.pk).values_list("role", flat=True).first()
    if role != ConveneUser.Role.ADMIN and event.organizer_id != staff.pk:
        raise NotAuthorized(_("Only the organizer or an admin can check attendees in."))
    return event


def check_in(event_id: UUID, payload: str, staff: ConveneUser) -> AttendanceResult:
    """Record that the holder of ``payload`` entered the event.

    Raises:
        EventNotFound: No such event.
        NotAuthorized: ``staff`` is neither the organizer nor an admin.
        InvalidCredential: The payload was not issued here or matches no registration.
        WrongEvent: The credential belongs to a different event.
        AlreadyCheckedIn: The registration was checked in before; carries the original time.
    """
    event = _get_event_for_staff(event_id, staff)
    payload = payload.strip()
    log = logger.bind(event_id=str(event.pk), staff_id=str(staff.pk))

    if not credentials.is_well_formed(payload):
        log.info("check_in_rejected", reason="malformed")
        raise InvalidCredential()
    credential = (
        Credential.objects.select_related("registration", "registration__user").filter(payload=payload).first()
    )
    if credential is None:
        log.info("check_in_rejected", reason="unknown")
        raise InvalidCredential()

    registration = credential.registration
    if registration.event_id != event.pk:
        log.info("check_in_rejected", reason="wrong_event", registration_id=str(registration.pk))
        raise WrongEvent()

    existing = Attendance.objects.filter(registration=registration).first()
    if existing is not None:
        raise AlreadyCheckedIn(checked_in_at=existing.checked_in_at)

    try:
        with transaction.atomic():
            attendance = Attendance.objects.create(registration=registration, checked_in_by=staff)
    except (IntegrityError, DjangoValidationError) as e:
        if not is_unique_violation(e):
            raise
        existing = Attendance.objects.filter(registration=registration).first()
        raise AlreadyCheckedIn(checked_in_at=existing.checked_in_at if existing else None) from e

    log.info("attendee_checked_in", registration_id=str(registration.pk))
    return AttendanceResult(
        registration_id=registration.pk,
        attendee_name=registration.user.get_display_name(),
        checked_in_at=attendance.checked_in_at,
    )


def check_in_image(event_id: UUID, image_bytes: bytes, staff: ConveneUser) -> AttendanceResult:
    """Check in the attendee whose QR code is visible in an uploaded frame."""
    _get_event_for_staff(event_id, staff)
    payload = credentials.decode(image_bytes)
    if payload is None:
        raise InvalidCredential(_("No QR code could be read from the image."))
    return check_in(event_id, payload, staff)


def list_attendance(event_id: UUID, staff: ConveneUser) -> QuerySet[Attendance]:
    """Checked-in attendees of an event, most recent first."""
    event = _get_event_for_staff(event_id, staff)
    return Attendance.objects.select_related("registration__user", "checked_in_by").filter(
        registration__event=event
    )


class ScanDebouncer:
    """Drops repeats of the same scan from the same scanner within a short window.

    State lives in the Django cache so every worker sees it.
    """

    def __init__(self, window_seconds: int | None = None) -> None:
        """Use ``SCAN_DEBOUNCE_SECONDS`` unless a window is given."""
        self.window_seconds = settings.SCAN_DEBOUNCE_SECONDS if window_seconds is None else window_seconds

    @staticmethod
    def _key(staff_id: UUID, event_id: UUID, payload: str) -> str:
        digest = hashlib.sha256(f"{staff_id}:{event_id}:{payload.strip()}".encode()).hexdigest()
        return f"scan-debounce:{digest}"

    def should_process(self, staff_id: UUID, event_id: UUID, payload: str) -> bool:
        """True for the first sighting of a scan in the window, False for its repeats."""
        if self.window_seconds <= 0:
            return True
        return bool(cache.add(self._key(staff_id, event_id, payload), 1, timeout=self.window_seconds))
