import typing as t

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models

from common.models import TimeStampedModel


class BlockQuerySet(models.QuerySet["Block"]):
    def with_users(self) -> t.Self:
        """Select the blocked user and the admin who blocked them."""
        return self.select_related("user", "blocked_by")


class BlockManager(models.Manager["Block"]):
    def get_queryset(self) -> BlockQuerySet:
        """Return custom queryset."""
        return BlockQuerySet(self.model, using=self._db)

    def with_users(self) -> BlockQuerySet:
        """Select the blocked user and the admin who blocked them."""
        return self.get_queryset().with_users()

    def is_blocked(self, user: t.Any) -> bool:
        """Whether ``user`` currently has an active block."""
        if not getattr(user, "is_authenticated", False):
            return False
        return self.get_queryset().filter(user_id=user.pk).exists()


class Block(TimeStampedModel):
    """A platform-wide block. A user has at most one."""

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="block")
    blocked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="+",
    )
    reason = models.TextField()

    objects = BlockManager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Block on {self.user_id}"

    def clean(self) -> None:
        """A block always states its reason."""
        super().clean()
        self.reason = (self.reason or "").strip()
        if not self.reason:
            raise DjangoValidationError({"reason": "A reason is required."})


class AdminAction(TimeStampedModel):
    """Audit trail of moderation actions."""

    class ActionType(models.TextChoices):
        BLOCK_USER = "block_user", "Block user"
        UNBLOCK_USER = "unblock_user", "Unblock user"
        DELETE_EVENT = "delete_event", "Delete event"

    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="admin_actions"
    )
    action_type = models.CharField(max_length=20, choices=ActionType.choices, db_index=True)
    target_user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    # Plain UUID: the row outlives the event it describes.
    target_event_id = models.UUIDField(null=True, blank=True, db_index=True)
    target_event_title = models.CharField(max_length=255, blank=True, default="")
    reason = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.action_type} by {self.admin_id}"
