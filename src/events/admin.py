from django.contrib import admin

from . import models


class CredentialInline(admin.StackedInline):  # type: ignore[type-arg]
    model = models.Credential
    extra = 0
    can_delete = False
    readonly_fields = ["payload", "created_at"]


class AttendanceInline(admin.StackedInline):  # type: ignore[type-arg]
    model = models.Attendance
    extra = 0
    readonly_fields = ["checked_in_at", "checked_in_by"]


@admin.register(models.Event)
class EventAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["title", "category", "organizer", "start", "attendee_count", "capacity", "is_free", "price"]
    list_filter = ["category", "is_free", "is_online", "registration_enabled"]
    search_fields = ["title", "description", "organizer__username", "organizer__email"]
    readonly_fields = ["attendee_count", "created_at", "updated_at"]
    date_hierarchy = "start"
    raw_id_fields = ["organizer"]


@admin.register(models.Registration)
class RegistrationAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["__str__", "event", "user", "status", "confirmed_at", "created_at"]
    list_filter = ["status"]
    search_fields = ["event__title", "user__username", "user__email"]
    readonly_fields = ["status", "confirmed_at", "created_at", "updated_at"]
    raw_id_fields = ["event", "user"]
    inlines = [CredentialInline, AttendanceInline]

    def has_add_permission(self, request) -> bool:  # type: ignore[no-untyped-def]
        """Registrations go through the registration flow so the attendee counter stays exact."""
        return False

    def has_delete_permission(self, request, obj=None) -> bool:  # type: ignore[no-untyped-def]
        """Deleting here would skip the counter update."""
        return False


@admin.register(models.Payment)
class PaymentAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["stripe_session_id", "event", "user", "status", "amount", "currency", "expires_at"]
    list_filter = ["status", "currency"]
    search_fields = ["stripe_session_id", "stripe_payment_intent_id", "user__email", "event__title"]
    readonly_fields = [
        "stripe_session_id",
        "stripe_payment_intent_id",
        "amount",
        "currency",
        "raw_response",
        "expires_at",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["event", "registration", "user"]
