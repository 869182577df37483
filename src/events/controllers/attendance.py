from uuid import UUID

import structlog
from django.db.models import QuerySet
from django.utils.translation import gettext_lazy as _
from ninja import File
from ninja.files import UploadedFile
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate

from common.authentication import ConveneJWTAuth
from common.controllers import UserAwareController
from common.exceptions import InvalidInput
from common.throttling import ScanThrottle
from events import models, schema
from events.exceptions import DuplicateScan
from events.service import attendance_service

logger = structlog.get_logger(__name__)

MAX_SCAN_IMAGE_BYTES = 5 * 1024 * 1024


@api_controller("/events", auth=ConveneJWTAuth(), tags=["Attendance"])
class AttendanceController(UserAwareController):
    """Door check-in for organizers and admins."""

    @route.post(
        "/{uuid:event_id}/check-in",
        url_name="check_in",
        response=schema.AttendanceResultSchema,
        throttle=ScanThrottle(),
    )
    def check_in(self, event_id: UUID, payload: schema.CheckInSchema) -> attendance_service.AttendanceResult:
        """Check an attendee in from the payload decoded off their QR code.

        A repeat of the same scan from the same scanner within a few seconds returns 429 duplicate_scan;
        a genuine second check-in returns 409 already_checked_in with the original time.
        """
        staff = self.user()
        if not attendance_service.ScanDebouncer().should_process(staff.pk, event_id, payload.payload):
            logger.debug("scan_debounced", event_id=str(event_id), staff_id=str(staff.pk))
            raise DuplicateScan()
        return attendance_service.check_in(event_id, payload.payload, staff)

    @route.post(
        "/{uuid:event_id}/check-in/image",
        url_name="check_in_image",
        response=schema.AttendanceResultSchema,
        throttle=ScanThrottle(),
    )
    def check_in_image(self, event_id: UUID, image: File[UploadedFile]) -> attendance_service.AttendanceResult:
        """Check an attendee in from an uploaded camera frame showing their QR code."""
        if image.size and image.size > MAX_SCAN_IMAGE_BYTES:
            raise InvalidInput(_("The image is too large."))
        return attendance_service.check_in_image(event_id, image.read(), self.user())

    @route.get(
        "/{uuid:event_id}/attendance",
        url_name="list_attendance",
        response=PaginatedResponseSchema[schema.AttendanceSchema],
    )
    @paginate(PageNumberPaginationExtra, page_size=50)
    def list_attendance(self, event_id: UUID) -> QuerySet[models.Attendance]:
        """Attendees checked in so far, most recent first."""
        return attendance_service.list_attendance(event_id, self.user())
