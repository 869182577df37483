"""Event, registration and attendance schemas."""

import typing as t
from decimal import Decimal
from uuid import UUID

from ninja import Schema
from pydantic import AwareDatetime, Field, StringConstraints, model_validator

from accounts.schema import MinimalUserSchema
from common.schema import OneToSixtyFourString, OneToTwoHundredFiftyFiveString, StrippedString
from events.models import Attendance, Event, Registration

CurrencyString = t.Annotated[str, StringConstraints(min_length=3, max_length=3, pattern=r"^[A-Za-z]{3}$")]


class TaggableSchemaMixin(Schema):
    tags: list[str] = Field(default_factory=list)

    @staticmethod
    def resolve_tags(obj: Event) -> list[str]:
        """Flattify tags."""
        return [ta.tag.name for ta in obj.tags.all()]


# --- Events ---


class EventEditSchema(Schema):
    title: OneToTwoHundredFiftyFiveString | None = None
    description: StrippedString | None = None
    category: Event.Category | None = None
    start: AwareDatetime | None = None
    end: AwareDatetime | None = None
    location: StrippedString | None = None
    is_online: bool | None = None
    capacity: int | None = Field(None, ge=1, description="Maximum attendees (null = unlimited)")
    is_free: bool | None = None
    price: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    currency: CurrencyString | None = None
    registration_enabled: bool | None = None
    tags: list[OneToSixtyFourString] | None = None


class EventCreateSchema(EventEditSchema):
    title: OneToTwoHundredFiftyFiveString
    category: Event.Category
    start: AwareDatetime
    is_free: bool = True

    @model_validator(mode="after")
    def check_pricing(self) -> t.Self:
        """Paid events need a price."""
        if not self.is_free and self.price is None:
            raise ValueError("Paid events need a price.")
        return self


class EventInListSchema(TaggableSchemaMixin):
    id: UUID
    title: str
    category: Event.Category
    organizer: MinimalUserSchema
    start: AwareDatetime
    end: AwareDatetime
    location: str
    is_online: bool
    capacity: int | None = None
    attendee_count: int
    spots_left: int | None = None
    is_free: bool
    price: Decimal | None = None
    currency: str
    registration_enabled: bool


class EventDetailSchema(EventInListSchema):
    description: str
    created_at: AwareDatetime
    updated_at: AwareDatetime


class MinimalEventSchema(Schema):
    id: UUID
    title: str
    start: AwareDatetime
    end: AwareDatetime
    location: str
    is_online: bool


# --- Registrations ---


class RegistrationResultSchema(Schema):
    outcome: str = Field(..., description="confirmed or pending_payment")
    registration_id: UUID
    event_id: UUID
    credential_payload: str | None = None
    checkout_url: str | None = None
    session_id: str | None = None


class RegistrationSchema(Schema):
    id: UUID
    event: MinimalEventSchema
    status: Registration.Status
    confirmed_at: AwareDatetime | None = None
    created_at: AwareDatetime
    checked_in: bool = False

    @staticmethod
    def resolve_checked_in(obj: Registration) -> bool:
        """Whether the registration has an attendance record."""
        return hasattr(obj, "attendance")


class CredentialSchema(Schema):
    registration_id: UUID
    event_id: UUID
    payload: str
    qr_code_url: str

    @staticmethod
    def resolve_event_id(obj: t.Any) -> UUID:
        """Event of the underlying registration."""
        return t.cast(UUID, obj.registration.event_id)

    @staticmethod
    def resolve_qr_code_url(obj: t.Any, context: t.Any) -> str:
        """Relative URL of the PNG rendering."""
        return f"/api/events/{obj.registration.event_id}/my-credential/qr"


# --- Payments ---


class PaymentVerifySchema(Schema):
    session_id: str = Field(..., min_length=1, max_length=255)


class PaymentStatusSchema(Schema):
    session_id: str = Field(..., alias="stripe_session_id")
    status: str
    amount: Decimal
    currency: str
    registration_id: UUID | None = None


# --- Attendance ---


class CheckInSchema(Schema):
    payload: str = Field(..., min_length=1, max_length=512)


class AttendanceResultSchema(Schema):
    registration_id: UUID
    attendee_name: str
    checked_in_at: AwareDatetime


class AttendanceSchema(Schema):
    registration_id: UUID
    attendee: MinimalUserSchema
    checked_in_at: AwareDatetime
    checked_in_by: MinimalUserSchema | None = None

    @staticmethod
    def resolve_attendee(obj: Attendance) -> t.Any:
        """The user who holds the registration."""
        return obj.registration.user
