from django.contrib import admin

from . import models


class TagAssignmentInline(admin.TabularInline):  # type: ignore[type-arg]
    model = models.TagAssignment
    extra = 0
    readonly_fields = ["content_type", "object_id", "created_at"]


@admin.register(models.Tag)
class TagAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["name", "color", "created_at"]
    search_fields = ["name", "description"]
    inlines = [TagAssignmentInline]
