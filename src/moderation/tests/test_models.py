import typing as t
from unittest.mock import patch

import pytest
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.db import DatabaseError

from accounts.models import ConveneUser
from moderation.audit import AuditLog
from moderation.models import AdminAction, Block

pytestmark = pytest.mark.django_db


class TestBlock:
    @pytest.mark.parametrize("reason", ["", "   "])
    def test_reason_is_required(self, attendee: ConveneUser, platform_admin: ConveneUser, reason: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            Block.objects.create(user=attendee, blocked_by=platform_admin, reason=reason)

        assert "reason" in exc_info.value.message_dict

    def test_one_block_per_user(self, attendee: ConveneUser, platform_admin: ConveneUser) -> None:
        Block.objects.create(user=attendee, blocked_by=platform_admin, reason="first")

        with pytest.raises(ValidationError):
            Block.objects.create(user=attendee, blocked_by=platform_admin, reason="second")

    def test_is_blocked(self, attendee: ConveneUser, other_attendee: ConveneUser, platform_admin: ConveneUser) -> None:
        Block.objects.create(user=attendee, blocked_by=platform_admin, reason="spam")

        assert Block.objects.is_blocked(attendee) is True
        assert Block.objects.is_blocked(other_attendee) is False
        assert Block.objects.is_blocked(AnonymousUser()) is False


class TestAuditLog:
    def _log(self, admin: ConveneUser, target: ConveneUser) -> AuditLog:
        return AuditLog(
            admin_id=admin.pk,
            action_type=AdminAction.ActionType.BLOCK_USER,
            reason="spam",
            target_user_id=target.pk,
        )

    def test_write(self, platform_admin: ConveneUser, attendee: ConveneUser) -> None:
        action = self._log(platform_admin, attendee).write()

        assert action.admin == platform_admin
        assert action.target_user == attendee
        assert action.target_event_id is None

    def test_or_else_warn_returns_nothing_on_success(self, platform_admin: ConveneUser, attendee: ConveneUser) -> None:
        assert self._log(platform_admin, attendee).or_else_warn() is None
        assert AdminAction.objects.count() == 1

    def test_or_else_warn_swallows_database_errors(
        self, platform_admin: ConveneUser, attendee: ConveneUser
    ) -> None:
        with patch.object(AdminAction.objects, "create", side_effect=DatabaseError("disk full")):
            warning = self._log(platform_admin, attendee).or_else_warn()

        assert warning == "The block user action succeeded but could not be recorded in the audit log."
        assert not AdminAction.objects.exists()

    def test_other_errors_propagate(self, platform_admin: ConveneUser, attendee: ConveneUser) -> None:
        log: t.Any = self._log(platform_admin, attendee)

        with patch.object(AdminAction.objects, "create", side_effect=RuntimeError("bug")):
            with pytest.raises(RuntimeError):
                log.or_else_warn()
