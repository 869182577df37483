"""Moderation schemas."""

from uuid import UUID

from ninja import ModelSchema, Schema
from pydantic import AwareDatetime, Field

from accounts.models import ConveneUser
from accounts.schema import MinimalUserSchema
from events.schema import EventDetailSchema

from .models import AdminAction, Block


class ReasonSchema(Schema):
    reason: str = Field(..., max_length=2000, description="Why this action is taken. Must not be blank.")


class ModerationResultSchema(Schema):
    warnings: list[str] = Field(default_factory=list)
    deleted: dict[str, int] = Field(default_factory=dict)


class DashboardStatsSchema(Schema):
    total_events: int
    total_users: int
    total_registrations: int
    confirmed_registrations: int
    blocked_users: int


class BlockSchema(ModelSchema):
    user: MinimalUserSchema
    blocked_by: MinimalUserSchema | None = None

    class Meta:
        model = Block
        fields = ["id", "reason", "created_at"]


class AdminUserSchema(ModelSchema):
    display_name: str
    is_blocked: bool = False
    registration_count: int = 0

    class Meta:
        model = ConveneUser
        fields = ["id", "username", "email", "role", "is_active", "date_joined"]


class AdminActionSchema(ModelSchema):
    admin: MinimalUserSchema | None = None
    target_user: MinimalUserSchema | None = None

    class Meta:
        model = AdminAction
        fields = ["id", "action_type", "target_event_id", "target_event_title", "reason", "created_at"]


class AdminRegistrationSchema(Schema):
    id: UUID
    user: MinimalUserSchema
    status: str
    checked_in: bool
    created_at: AwareDatetime


class AdminEventDetailSchema(Schema):
    event: EventDetailSchema
    registrations: list[AdminRegistrationSchema]
