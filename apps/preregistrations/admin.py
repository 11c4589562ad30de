"""Admin registration for pre-registrations."""

from __future__ import annotations

from django.contrib import admin

from .models import PreRegistration


@admin.register(PreRegistration)
class PreRegistrationAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "phone",
        "check_in_date",
        "check_out_date",
        "status",
        "effective",
        "expires_at",
        "reservation_code",
        "created_at",
    )
    list_filter = ("status", "dates_locked", "check_in_date")
    search_fields = ("name", "phone", "email", "reservation_code")
    readonly_fields = ("token", "status", "registered_at", "reservation", "created_at", "updated_at")

    @admin.display(description="Effective status")
    def effective(self, obj: PreRegistration) -> str:
        return obj.effective_status()
