import pytest

from events.models import Event
from events.service.capacity import can_register

pytestmark = pytest.mark.django_db


@pytest.mark.parametrize(
    "current,capacity,expected",
    [
        (0, None, True),
        (10_000, None, True),
        (0, 1, True),
        (4, 5, True),
        (5, 5, False),
        (6, 5, False),
    ],
)
def test_can_register(current: int, capacity: int | None, expected: bool) -> None:
    assert can_register(current, capacity) is expected


def test_event_capacity_helpers_agree_with_policy(free_event: Event) -> None:
    free_event.capacity = 2
    free_event.save()
    Event.objects.filter(pk=free_event.pk).update(attendee_count=2)
    free_event.refresh_from_db()

    assert free_event.has_capacity() is False
    assert free_event.spots_left == 0


def test_unlimited_event_has_no_spots_left_count(unlimited_event: Event) -> None:
    assert unlimited_event.spots_left is None
    assert unlimited_event.has_capacity() is True
