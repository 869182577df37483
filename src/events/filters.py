import typing as t
from datetime import datetime, timedelta
from uuid import UUID

from django.db.models import Q
from django.utils import timezone
from ninja import Field, FilterSchema

from events.models import Event, Registration

DateWindow = t.Literal["all", "today", "tomorrow", "this-week", "this-month", "upcoming"]


def date_window_bounds(window: DateWindow, now: datetime | None = None) -> tuple[datetime | None, datetime | None]:
    """Start-time bounds ``[lower, upper)`` for a named date window, in the current timezone.

    Weeks start on Monday. ``all`` is unbounded; ``upcoming`` only has a lower bound.
    """
    now = timezone.localtime(now or timezone.now())
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    match window:
        case "today":
            return today, today + timedelta(days=1)
        case "tomorrow":
            return today + timedelta(days=1), today + timedelta(days=2)
        case "this-week":
            week_start = today - timedelta(days=today.weekday())
            return week_start, week_start + timedelta(weeks=1)
        case "this-month":
            month_start = today.replace(day=1)
            next_month = (month_start + timedelta(days=32)).replace(day=1)
            return month_start, next_month
        case "upcoming":
            return now, None
    return None, None


class EventFilterSchema(FilterSchema):
    category: Event.Category | None = None
    is_free: bool | None = None
    organizer: UUID | None = Field(None, q="organizer_id")  # type: ignore[call-overload]
    date: DateWindow = "all"
    tags: list[str] | None = None

    def filter_date(self, date: DateWindow) -> Q:
        """Restrict to events starting inside the window."""
        lower, upper = date_window_bounds(date)
        q = Q()
        if lower is not None:
            q &= Q(start__gte=lower)
        if upper is not None:
            q &= Q(start__lt=upper)
        return q

    def filter_tags(self, tags: list[str] | None) -> Q:
        """Helper to find tags only."""
        if not tags:
            return Q()
        return Q(tags__tag__name__in=tags)


class RegistrationFilterSchema(FilterSchema):
    """Filter schema for the caller's registrations."""

    status: Registration.Status | None = None
    include_past: bool = False

    def filter_include_past(self, include_past: bool) -> Q:
        """Only registrations for events that have not ended, unless asked otherwise."""
        if not include_past:
            return Q(event__end__gt=timezone.now())
        return Q()
