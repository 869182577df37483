from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from accounts.models import ConveneUser


@admin.register(ConveneUser)
class ConveneUserAdmin(UserAdmin):  # type: ignore[type-arg]
    list_display = ["username", "email", "display_name", "role", "is_active", "date_joined"]
    list_filter = ["role", "is_active", "is_staff"]
    search_fields = ["username", "email", "first_name", "last_name", "preferred_name"]
    fieldsets = (
        *UserAdmin.fieldsets,  # type: ignore[misc]
        ("Convene", {"fields": ("preferred_name", "role")}),
    )
