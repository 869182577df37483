"""Best-effort audit trail for moderation actions.

A moderation change must not be undone because its audit row could not be written. Writes go
through :meth:`AuditLog.or_else_warn`, which isolates the insert in a savepoint and reports a
failure as a warning string instead of raising.
"""

import typing as t
from dataclasses import dataclass
from uuid import UUID

import structlog
from django.db import DatabaseError, transaction

from .models import AdminAction

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AuditLog:
    admin_id: UUID
    action_type: AdminAction.ActionType
    reason: str = ""
    target_user_id: UUID | None = None
    target_event_id: UUID | None = None
    target_event_title: str = ""

    def write(self) -> AdminAction:
        """Insert the audit row. Raises on database failure."""
        return AdminAction.objects.create(
            admin_id=self.admin_id,
            action_type=self.action_type,
            reason=self.reason,
            target_user_id=self.target_user_id,
            target_event_id=self.target_event_id,
            target_event_title=self.target_event_title,
        )

    def or_else_warn(self) -> str | None:
        """Write the audit row; on failure log it and return a warning for the caller to surface."""
        try:
            with transaction.atomic():
                self.write()
        except DatabaseError:
            logger.exception("moderation_audit_write_failed", **self._log_context())
            return f"The {self.action_type.label.lower()} action succeeded but could not be recorded in the audit log."
        return None

    def _log_context(self) -> dict[str, t.Any]:
        return {
            "admin_id": str(self.admin_id),
            "action_type": str(self.action_type),
            "target_user_id": str(self.target_user_id) if self.target_user_id else None,
            "target_event_id": str(self.target_event_id) if self.target_event_id else None,
        }
