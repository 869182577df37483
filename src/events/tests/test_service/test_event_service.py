"""Tests for event catalogue management."""

import typing as t
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from accounts.models import ConveneUser
from common.exceptions import InvalidInput, NotAuthorized
from events.exceptions import EventNotFound
from events.models import Event, Registration
from events.schema import EventCreateSchema, EventEditSchema
from events.service import event_service, registration_service
from moderation.models import Block

pytestmark = pytest.mark.django_db


class TestCreateEvent:
    def test_creates_event_with_tags(self, organizer: ConveneUser, next_week: datetime) -> None:
        # Arrange
        payload = EventCreateSchema(
            title="Django Sprint",
            category=Event.Category.HACKATHON,
            start=next_week,
            location="Lab 3",
            capacity=30,
            tags=["python", "django"],
        )

        # Act
        event = event_service.create_event(organizer, payload)

        # Assert
        assert event.organizer == organizer
        assert event.end == next_week + timedelta(hours=2)
        assert event.is_free is True
        assert event.price is None
        assert event.tag_names() == ["django", "python"]

    def test_paid_event_keeps_price(self, organizer: ConveneUser, next_week: datetime) -> None:
        payload = EventCreateSchema(
            title="Paid Workshop",
            category=Event.Category.WEBINAR,
            start=next_week,
            is_online=True,
            is_free=False,
            price=Decimal("12.50"),
            currency="usd",
        )

        event = event_service.create_event(organizer, payload)

        assert event.price == Decimal("12.50")
        assert event.currency == "USD"

    def test_in_person_event_needs_location(self, organizer: ConveneUser, next_week: datetime) -> None:
        payload = EventCreateSchema(title="Nowhere", category=Event.Category.MEETUP, start=next_week)

        with pytest.raises(ValidationError) as exc_info:
            event_service.create_event(organizer, payload)

        assert "location" in exc_info.value.message_dict
        assert not Event.objects.filter(title="Nowhere").exists()

    def test_blocked_organizer(
        self, organizer: ConveneUser, platform_admin: ConveneUser, next_week: datetime
    ) -> None:
        Block.objects.create(user=organizer, blocked_by=platform_admin, reason="fake events")
        payload = EventCreateSchema(title="Spam", category=Event.Category.MEETUP, start=next_week, is_online=True)

        with pytest.raises(NotAuthorized):
            event_service.create_event(organizer, payload)

    def test_paid_without_price_is_rejected_by_schema(self, next_week: datetime) -> None:
        with pytest.raises(ValueError):
            EventCreateSchema(title="Paid", category=Event.Category.MEETUP, start=next_week, is_free=False)


class TestUpdateEvent:
    def test_organizer_updates_fields(self, free_event: Event, organizer: ConveneUser) -> None:
        event = event_service.update_event(
            organizer, free_event.pk, EventEditSchema(title="Python Meetup #2", capacity=80)
        )

        assert event.title == "Python Meetup #2"
        assert event.capacity == 80
        assert event.location == "Community Hall"

    def test_admin_may_update_any_event(self, free_event: Event, platform_admin: ConveneUser) -> None:
        event = event_service.update_event(platform_admin, free_event.pk, EventEditSchema(registration_enabled=False))

        assert event.registration_enabled is False

    def test_other_user_may_not(self, free_event: Event, attendee: ConveneUser) -> None:
        with pytest.raises(NotAuthorized):
            event_service.update_event(attendee, free_event.pk, EventEditSchema(title="Hijacked"))

    def test_unknown_event(self, organizer: ConveneUser) -> None:
        with pytest.raises(EventNotFound):
            event_service.update_event(organizer, uuid.uuid4(), EventEditSchema(title="x"))

    def test_capacity_below_attendee_count(
        self, free_event: Event, organizer: ConveneUser, attendee: ConveneUser, other_attendee: ConveneUser
    ) -> None:
        # Arrange
        registration_service.register(free_event.pk, attendee)
        registration_service.register(free_event.pk, other_attendee)

        # Act & Assert
        with pytest.raises(InvalidInput) as exc_info:
            event_service.update_event(organizer, free_event.pk, EventEditSchema(capacity=1))

        assert exc_info.value.as_dict()["attendee_count"] == 2
        free_event.refresh_from_db()
        assert free_event.capacity == 50

    def test_capacity_equal_to_attendee_count(
        self, free_event: Event, organizer: ConveneUser, attendee: ConveneUser
    ) -> None:
        registration_service.register(free_event.pk, attendee)

        event = event_service.update_event(organizer, free_event.pk, EventEditSchema(capacity=1))

        assert event.capacity == 1
        assert event.attendee_count == 1

    def test_replaces_tags(self, free_event: Event, organizer: ConveneUser) -> None:
        free_event.add_tags("python", "pizza")

        event_service.update_event(organizer, free_event.pk, EventEditSchema(tags=["python", "talks"]))

        assert free_event.tag_names() == ["python", "talks"]

    def test_omitted_tags_are_kept(self, free_event: Event, organizer: ConveneUser) -> None:
        free_event.add_tags("python")

        event_service.update_event(organizer, free_event.pk, EventEditSchema(description="More pizza"))

        assert free_event.tag_names() == ["python"]


class TestListMyRegistrations:
    def test_soonest_first(
        self, free_event: Event, paid_event: Event, attendee: ConveneUser, next_week: t.Any
    ) -> None:
        # Arrange
        Event.objects.filter(pk=paid_event.pk).update(start=next_week + timedelta(days=3))
        Registration.objects.create(event=paid_event, user=attendee)
        registration_service.register(free_event.pk, attendee)

        # Act
        registrations = list(event_service.list_my_registrations(attendee))

        # Assert
        assert [r.event_id for r in registrations] == [free_event.pk, paid_event.pk]
