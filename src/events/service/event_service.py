from uuid import UUID

import structlog
from django.db import transaction
from django.db.models import QuerySet
from django.utils.translation import gettext_lazy as _

from accounts.models import ConveneUser
from common.exceptions import InvalidInput, NotAuthorized
from events.exceptions import EventNotFound
from events.models import Event, Registration
from events.schema import EventCreateSchema, EventEditSchema
from moderation.models import Block

logger = structlog.get_logger(__name__)


def get_event(event_id: UUID) -> Event:
    """Fetch an event with everything the API renders."""
    event = Event.objects.full().filter(pk=event_id).first()
    if event is None:
        raise EventNotFound()
    return event


def can_edit(event: Event, user: ConveneUser) -> bool:
    """Organizers edit their own events; admins edit any. The role is read from the database."""
    if event.organizer_id == user.pk:
        return True
    return ConveneUser.objects.admins().filter(pk=user.pk).exists()


@transaction.atomic
def create_event(organizer: ConveneUser, payload: EventCreateSchema) -> Event:
    """Create an event owned by ``organizer``.

    Raises:
        NotAuthorized: The organizer is blocked.
        ValidationError: The model rejected the data.
    """
    if Block.objects.is_blocked(organizer):
        raise NotAuthorized(_("Your account is blocked."))
    data = payload.model_dump(exclude={"tags"}, exclude_none=True)
    event = Event.objects.create(organizer=organizer, **data)
    if payload.tags:
        event.add_tags(*payload.tags)
    logger.info("event_created", event_id=str(event.pk), organizer_id=str(organizer.pk))
    return event


@transaction.atomic
def update_event(editor: ConveneUser, event_id: UUID, payload: EventEditSchema) -> Event:
    """Apply a partial update.

    Capacity may not drop below the number of spots already taken.

    Raises:
        EventNotFound: No such event.
        NotAuthorized: ``editor`` is neither the organizer nor an admin.
        InvalidInput: The new capacity is lower than the attendee count.
    """
    event = Event.objects.select_for_update().filter(pk=event_id).first()
    if event is None:
        raise EventNotFound()
    if not can_edit(event, editor):
        raise NotAuthorized()

    fields_set = payload.model_fields_set
    if "capacity" in fields_set and payload.capacity is not None and payload.capacity < event.attendee_count:
        raise InvalidInput(
            _("Capacity cannot be lower than the number of registered attendees."),
            attendee_count=event.attendee_count,
        )

    for field, value in payload.model_dump(exclude_unset=True, exclude={"tags"}).items():
        setattr(event, field, value)
    event.save()
    if payload.tags is not None:
        event.set_tags(*payload.tags)
    logger.info("event_updated", event_id=str(event.pk), editor_id=str(editor.pk), fields=sorted(fields_set))
    return event


def list_my_registrations(user: ConveneUser) -> QuerySet[Registration]:
    """The user's registrations, soonest event first."""
    return (
        Registration.objects.select_related("event", "credential", "attendance")
        .filter(user=user)
        .order_by("event__start")
    )
