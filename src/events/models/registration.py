from django.conf import settings
from django.db import models
from django.utils import timezone

from common.models import TimeStampedModel
from events.exceptions import InvalidRegistrationTransition

from .event import Event


class RegistrationQuerySet(models.QuerySet["Registration"]):
    def confirmed(self) -> "RegistrationQuerySet":
        """Registrations that hold a spot."""
        return self.filter(status=Registration.Status.CONFIRMED)

    def pending(self) -> "RegistrationQuerySet":
        """Registrations waiting for payment."""
        return self.filter(status=Registration.Status.PENDING_PAYMENT)


class Registration(TimeStampedModel):
    """A user's place at an event.

    Lifecycle: PENDING_PAYMENT -> CONFIRMED. Free registrations pass through PENDING_PAYMENT only inside the
    transaction that creates them. A pending registration is deleted (never "cancelled") when its payment cannot
    be set up or expires.
    """

    class Status(models.TextChoices):
        PENDING_PAYMENT = "pending_payment", "Pending payment"
        CONFIRMED = "confirmed", "Confirmed"

    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="registrations")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="registrations")
    status = models.CharField(
        choices=Status.choices, max_length=20, default=Status.PENDING_PAYMENT, db_index=True, editable=False
    )
    confirmed_at = models.DateTimeField(null=True, blank=True, editable=False)

    objects = RegistrationQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["event", "user"], name="unique_registration_per_event_user"),
        ]
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.user_id} @ {self.event_id} ({self.status})"

    @property
    def is_confirmed(self) -> bool:
        """Whether the registration holds a spot."""
        return self.status == self.Status.CONFIRMED

    def mark_confirmed(self) -> None:
        """Transition PENDING_PAYMENT -> CONFIRMED."""
        if self.status != self.Status.PENDING_PAYMENT:
            raise InvalidRegistrationTransition(f"Cannot confirm a registration in status {self.status}.")
        self.status = self.Status.CONFIRMED
        self.confirmed_at = timezone.now()
        self.save(update_fields=["status", "confirmed_at", "updated_at"])


class Credential(TimeStampedModel):
    """Opaque scan payload issued once per confirmed registration."""

    registration = models.OneToOneField(Registration, on_delete=models.CASCADE, related_name="credential")
    payload = models.CharField(max_length=128, unique=True, editable=False)

    def __str__(self) -> str:
        return f"Credential for {self.registration_id}"


class Attendance(TimeStampedModel):
    """Proof that a registration was checked in at the door."""

    registration = models.OneToOneField(Registration, on_delete=models.CASCADE, related_name="attendance")
    checked_in_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="checked_in_attendees"
    )
    checked_in_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-checked_in_at"]

    def __str__(self) -> str:
        return f"Attendance for {self.registration_id}"
