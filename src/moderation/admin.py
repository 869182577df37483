from django.contrib import admin

from . import models


@admin.register(models.Block)
class BlockAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["user", "blocked_by", "reason", "created_at"]
    search_fields = ["user__username", "user__email", "reason"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["user", "blocked_by"]


@admin.register(models.AdminAction)
class AdminActionAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["action_type", "admin", "target_user", "target_event_title", "created_at"]
    list_filter = ["action_type"]
    search_fields = ["admin__username", "target_user__username", "target_event_title", "reason"]
    date_hierarchy = "created_at"

    def has_change_permission(self, request, obj=None) -> bool:  # type: ignore[no-untyped-def]
        """The audit trail is append-only."""
        return False
