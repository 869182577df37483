from uuid import UUID

from django.db.models import QuerySet
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate

from accounts.models import ConveneUser
from common.authentication import ConveneJWTAuth
from common.controllers import UserAwareController
from common.throttling import WriteThrottle
from events.schema import EventDetailSchema

from . import schema, service
from .models import AdminAction, Block


@api_controller("/moderation", auth=ConveneJWTAuth(), tags=["Moderation"])
class ModerationController(UserAwareController):
    """Platform moderation. Every endpoint requires the admin role."""

    @route.get("/stats", url_name="moderation_stats", response=schema.DashboardStatsSchema)
    def stats(self) -> service.DashboardStats:
        """Platform totals: events, users, registrations and blocked users."""
        return service.dashboard_stats(self.user())

    @route.get("/users", url_name="moderation_users", response=PaginatedResponseSchema[schema.AdminUserSchema])
    @paginate(PageNumberPaginationExtra, page_size=50)
    def list_users(self, search: str | None = None) -> QuerySet[ConveneUser]:
        """Users with their block state. 'search' matches username, email and names."""
        return service.list_users(self.user(), search)

    @route.get(
        "/users/blocked",
        url_name="moderation_blocked_users",
        response=PaginatedResponseSchema[schema.BlockSchema],
    )
    @paginate(PageNumberPaginationExtra, page_size=50)
    def list_blocked_users(self) -> QuerySet[Block]:
        """Currently blocked users, newest block first."""
        return service.list_blocked_users(self.user())

    @route.post(
        "/users/{uuid:user_id}/block",
        url_name="block_user",
        response=schema.ModerationResultSchema,
        throttle=WriteThrottle(),
    )
    def block_user(self, user_id: UUID, payload: schema.ReasonSchema) -> service.ModerationResult:
        """Block a user from registering for or creating events. A reason is required."""
        return service.block_user(self.user(), user_id, payload.reason)

    @route.post(
        "/users/{uuid:user_id}/unblock",
        url_name="unblock_user",
        response=schema.ModerationResultSchema,
        throttle=WriteThrottle(),
    )
    def unblock_user(self, user_id: UUID) -> service.ModerationResult:
        """Lift a user's block."""
        return service.unblock_user(self.user(), user_id)

    @route.get("/events/{uuid:event_id}", url_name="moderation_event_details", response=schema.AdminEventDetailSchema)
    def event_details(self, event_id: UUID) -> schema.AdminEventDetailSchema:
        """An event with all of its registrations and their check-in state."""
        event, registrations = service.event_details(self.user(), event_id)
        return schema.AdminEventDetailSchema(
            event=EventDetailSchema.from_orm(event),
            registrations=[schema.AdminRegistrationSchema.from_orm(r) for r in registrations],
        )

    @route.delete(
        "/events/{uuid:event_id}",
        url_name="moderation_delete_event",
        response=schema.ModerationResultSchema,
        throttle=WriteThrottle(),
    )
    def delete_event(self, event_id: UUID, payload: schema.ReasonSchema) -> service.ModerationResult:
        """Delete an event with its registrations, credentials, attendance and payments. A reason is required.

        If the action cannot be written to the audit log the deletion still happens and the response lists
        a warning.
        """
        return service.delete_event(self.user(), event_id, payload.reason)

    @route.get("/actions", url_name="moderation_actions", response=PaginatedResponseSchema[schema.AdminActionSchema])
    @paginate(PageNumberPaginationExtra, page_size=50)
    def list_actions(self) -> QuerySet[AdminAction]:
        """Recent moderation actions."""
        return service.list_actions(self.user())
