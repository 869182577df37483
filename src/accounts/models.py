import re
import uuid

from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models


class ConveneUserQueryset(models.QuerySet["ConveneUser"]):
    """Queryset for ConveneUser."""

    def admins(self) -> "ConveneUserQueryset":
        """Users holding the persisted admin role."""
        return self.filter(role=ConveneUser.Role.ADMIN)


class ConveneUserManager(UserManager["ConveneUser"]):
    def get_queryset(self) -> ConveneUserQueryset:
        """Get queryset for ConveneUser."""
        return ConveneUserQueryset(self.model, using=self._db)

    def admins(self) -> ConveneUserQueryset:
        """Users holding the persisted admin role."""
        return self.get_queryset().admins()

    def create_superuser(self, username, email=None, password=None, **extra_fields):  # type: ignore[no-untyped-def]
        """Superusers moderate the platform, so they carry the admin role."""
        extra_fields.setdefault("role", ConveneUser.Role.ADMIN)
        return super().create_superuser(username, email, password, **extra_fields)


class ConveneUser(AbstractUser):
    class Role(models.TextChoices):
        USER = "user", "User"
        ADMIN = "admin", "Admin"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    preferred_name = models.CharField(db_index=True, max_length=255, blank=True, help_text="Preferred name")
    role = models.CharField(choices=Role.choices, max_length=10, default=Role.USER, db_index=True)

    objects = ConveneUserManager()  # type: ignore[misc]

    class Meta:
        ordering = ["username"]

    @property
    def display_name(self) -> str:
        """Display name."""
        return self.get_display_name()

    @property
    def is_admin(self) -> bool:
        """Role as loaded on this instance; authorization checks re-read it from the database."""
        return self.role == self.Role.ADMIN

    def get_display_name(self) -> str:
        """Returns the user's preferred name, or their full name as a fallback."""
        return (
            self.preferred_name or self.get_full_name() or re.sub(r"(\W|_)+", " ", self.username.split("@")[0]).title()
        )
