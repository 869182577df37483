"""Platform moderation for admins.

Every operation re-reads the caller's role from the database instead of trusting the instance it was
handed, so a demoted admin loses access on their next request.
"""

from uuid import UUID

import structlog
from django.db import transaction
from django.db.models import Count, Exists, OuterRef, Q, QuerySet
from django.utils.translation import gettext_lazy as _
from pydantic import BaseModel, Field

from accounts.models import ConveneUser
from common.exceptions import InvalidInput, NotAuthorized, NotFound
from common.models import TagAssignment
from events.exceptions import EventNotFound
from events.models import Attendance, Credential, Event, Payment, Registration

from .audit import AuditLog
from .models import AdminAction, Block

logger = structlog.get_logger(__name__)


class ModerationResult(BaseModel):
    """Outcome of a moderation change. ``warnings`` lists non-fatal problems, e.g. a failed audit write."""

    warnings: list[str] = Field(default_factory=list)
    deleted: dict[str, int] = Field(default_factory=dict)


class DashboardStats(BaseModel):
    total_events: int
    total_users: int
    total_registrations: int
    confirmed_registrations: int
    blocked_users: int


def _require_admin(user: ConveneUser) -> None:
    if not ConveneUser.objects.admins().filter(pk=user.pk, is_active=True).exists():
        raise NotAuthorized(_("Admin privileges are required."))


def _require_reason(reason: str | None) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise InvalidInput(_("A reason is required."))
    return reason


def _warnings(*results: str | None) -> list[str]:
    return [w for w in results if w]


@transaction.atomic
def block_user(admin: ConveneUser, target_user_id: UUID, reason: str) -> ModerationResult:
    """Block a user from registering for and creating events.

    Raises:
        NotAuthorized: Caller is not an admin.
        InvalidInput: Blank reason, self-block, or the user is already blocked.
        NotFound: No such user.
    """
    _require_admin(admin)
    reason = _require_reason(reason)
    target = ConveneUser.objects.filter(pk=target_user_id).first()
    if target is None:
        raise NotFound(_("User not found."))
    if target.pk == admin.pk:
        raise InvalidInput(_("You cannot block yourself."))
    if Block.objects.filter(user=target).exists():
        raise InvalidInput(_("This user is already blocked."))

    Block.objects.create(user=target, blocked_by=admin, reason=reason)
    logger.info("user_blocked", admin_id=str(admin.pk), target_user_id=str(target.pk))
    warning = AuditLog(
        admin_id=admin.pk,
        action_type=AdminAction.ActionType.BLOCK_USER,
        reason=reason,
        target_user_id=target.pk,
    ).or_else_warn()
    return ModerationResult(warnings=_warnings(warning))


@transaction.atomic
def unblock_user(admin: ConveneUser, target_user_id: UUID) -> ModerationResult:
    """Lift a user's block.

    Raises:
        NotAuthorized: Caller is not an admin.
        NotFound: The user is not blocked.
    """
    _require_admin(admin)
    deleted, _counts = Block.objects.filter(user_id=target_user_id).delete()
    if not deleted:
        raise NotFound(_("This user is not blocked."))
    logger.info("user_unblocked", admin_id=str(admin.pk), target_user_id=str(target_user_id))
    warning = AuditLog(
        admin_id=admin.pk,
        action_type=AdminAction.ActionType.UNBLOCK_USER,
        target_user_id=target_user_id,
    ).or_else_warn()
    return ModerationResult(warnings=_warnings(warning))


@transaction.atomic
def delete_event(admin: ConveneUser, event_id: UUID, reason: str) -> ModerationResult:
    """Delete an event and everything that hangs off it.

    Dependents go first, in order: credentials and attendance, payments, registrations, tag
    assignments, then the event. Registrations and payments reference the event with PROTECT, so
    the event row cannot be removed while any of them remain.

    Raises:
        NotAuthorized: Caller is not an admin.
        InvalidInput: Blank reason.
        EventNotFound: No such event.
    """
    _require_admin(admin)
    reason = _require_reason(reason)
    event = Event.objects.select_for_update().filter(pk=event_id).first()
    if event is None:
        raise EventNotFound()
    title = event.title

    registrations = Registration.objects.filter(event=event)
    deleted = {
        "credentials": Credential.objects.filter(registration__in=registrations).delete()[0],
        "attendance": Attendance.objects.filter(registration__in=registrations).delete()[0],
        "payments": Payment.objects.filter(event=event).delete()[0],
        "registrations": registrations.delete()[0],
        "tag_assignments": event.tags.all().delete()[0],
    }
    event.delete()
    logger.info("event_deleted_by_admin", admin_id=str(admin.pk), event_id=str(event_id), **deleted)

    warning = AuditLog(
        admin_id=admin.pk,
        action_type=AdminAction.ActionType.DELETE_EVENT,
        reason=reason,
        target_event_id=event_id,
        target_event_title=title,
    ).or_else_warn()
    return ModerationResult(warnings=_warnings(warning), deleted=deleted)


def dashboard_stats(admin: ConveneUser) -> DashboardStats:
    """Platform totals for the admin dashboard."""
    _require_admin(admin)
    registrations = Registration.objects.aggregate(
        total=Count("id"), confirmed=Count("id", filter=Q(status=Registration.Status.CONFIRMED))
    )
    return DashboardStats(
        total_events=Event.objects.count(),
        total_users=ConveneUser.objects.count(),
        total_registrations=registrations["total"],
        confirmed_registrations=registrations["confirmed"],
        blocked_users=Block.objects.count(),
    )


def event_details(admin: ConveneUser, event_id: UUID) -> tuple[Event, QuerySet[Registration]]:
    """An event together with all of its registrations and their check-in state."""
    _require_admin(admin)
    event = Event.objects.full().filter(pk=event_id).first()
    if event is None:
        raise EventNotFound()
    registrations = (
        Registration.objects.select_related("user")
        .filter(event=event)
        .annotate(checked_in=Exists(Attendance.objects.filter(registration=OuterRef("pk"))))
        .order_by("created_at")
    )
    return event, registrations


def list_blocked_users(admin: ConveneUser) -> QuerySet[Block]:
    """Active blocks, newest first."""
    _require_admin(admin)
    return Block.objects.with_users().order_by("-created_at")


def list_users(admin: ConveneUser, search: str | None = None) -> QuerySet[ConveneUser]:
    """Users with their block state and registration count."""
    _require_admin(admin)
    qs = ConveneUser.objects.annotate(
        is_blocked=Exists(Block.objects.filter(user=OuterRef("pk"))),
        registration_count=Count("registrations", distinct=True),
    )
    if search:
        qs = qs.filter(
            Q(username__icontains=search)
            | Q(email__icontains=search)
            | Q(first_name__icontains=search)
            | Q(last_name__icontains=search)
            | Q(preferred_name__icontains=search)
        )
    return qs.order_by("username")


def list_actions(admin: ConveneUser) -> QuerySet[AdminAction]:
    """Recent moderation actions."""
    _require_admin(admin)
    return AdminAction.objects.select_related("admin", "target_user").order_by("-created_at")
