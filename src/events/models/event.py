import typing as t
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Prefetch, Q
from django.utils import timezone

from common.models import TagAssignment, TaggableMixin, TimeStampedModel
from events.service.capacity import can_register


class EventQuerySet(models.QuerySet["Event"]):
    def with_tags(self) -> t.Self:
        """Prefetch tag assignments together with their tags."""
        return self.prefetch_related(
            Prefetch(
                "tags",
                queryset=TagAssignment.objects.select_related("tag"),
            )
        )

    def with_organizer(self) -> t.Self:
        """Select the organizer as well."""
        return self.select_related("organizer")

    def full(self) -> t.Self:
        """Everything the API needs to render events."""
        return self.with_organizer().with_tags()

    def upcoming(self) -> t.Self:
        """Events that have not started yet."""
        return self.filter(start__gte=timezone.now())

    def open_for_registration(self) -> t.Self:
        """Events accepting registrations right now, regardless of capacity."""
        return self.upcoming().filter(registration_enabled=True)

    def with_free_spots(self) -> t.Self:
        """Events with unlimited capacity or at least one spot left."""
        return self.filter(Q(capacity__isnull=True) | Q(attendee_count__lt=F("capacity")))


class EventManager(models.Manager["Event"]):
    def get_queryset(self) -> EventQuerySet:
        """Get the event queryset."""
        return EventQuerySet(self.model, using=self._db)

    def full(self) -> EventQuerySet:
        """Returns a queryset prefetching everything the API renders."""
        return self.get_queryset().full()


class Event(TimeStampedModel, TaggableMixin):
    class Category(models.TextChoices):
        HACKATHON = "hackathon", "Hackathon"
        MEETUP = "meetup", "Meetup"
        WEBINAR = "webinar", "Webinar"

    organizer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="organized_events")
    title = models.CharField(max_length=255, db_index=True)
    description = models.TextField(blank=True, default="")
    category = models.CharField(choices=Category.choices, max_length=20, db_index=True)
    start = models.DateTimeField(db_index=True)
    end = models.DateTimeField(db_index=True)
    location = models.CharField(max_length=255, blank=True, default="")
    is_online = models.BooleanField(default=False)
    capacity = models.PositiveIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1)], help_text="Maximum attendees. Empty = unlimited."
    )
    is_free = models.BooleanField(default=True)
    price = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(Decimal("0.01"))]
    )
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY, help_text="ISO 4217 currency code")
    registration_enabled = models.BooleanField(default=True)

    # Only ever changed through conditional UPDATEs in the registration service.
    attendee_count = models.PositiveIntegerField(default=0, editable=False)

    objects = EventManager()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(capacity__isnull=True) | Q(attendee_count__lte=F("capacity")),
                name="attendee_count_within_capacity",
            ),
            models.CheckConstraint(
                condition=Q(is_free=True) | Q(price__gt=0),
                name="paid_event_has_price",
            ),
        ]
        indexes = [
            models.Index(fields=["category", "start"], name="idx_event_category_start"),
        ]
        ordering = ["start"]

    def __str__(self) -> str:
        return self.title

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Default the end to two hours after the start, and normalize pricing."""
        if self.start and not self.end:
            self.end = self.start + timedelta(hours=2)
        if self.is_free:
            self.price = None
        self.currency = (self.currency or settings.DEFAULT_CURRENCY).upper()
        super().save(*args, **kwargs)

    def clean(self) -> None:
        """Validate time window and pricing."""
        super().clean()
        errors: dict[str, str] = {}
        if self.start and self.end and self.end < self.start:
            errors["end"] = "End date must be after start date."
        if not self.is_free and (self.price is None or self.price <= 0):
            errors["price"] = "Paid events need a positive price."
        if not self.is_online and not self.location:
            errors["location"] = "In-person events need a location."
        if errors:
            raise DjangoValidationError(errors)

    @property
    def spots_left(self) -> int | None:
        """Remaining spots, or None when capacity is unlimited."""
        if self.capacity is None:
            return None
        return max(self.capacity - self.attendee_count, 0)

    def has_started(self) -> bool:
        """Whether the event start is in the past."""
        return self.start <= timezone.now()

    def is_registration_open(self) -> bool:
        """Registrations are accepted while enabled and before the start."""
        return self.registration_enabled and not self.has_started()

    def has_capacity(self) -> bool:
        """Advisory capacity check on the loaded row; the increment re-checks atomically."""
        return can_register(self.attendee_count, self.capacity)

