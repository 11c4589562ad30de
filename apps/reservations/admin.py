"""Admin registration for reservations."""

from __future__ import annotations

from django.contrib import admin

from .lifecycle import status_of
from .models import Reservation


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = (
        "guest_name",
        "check_in_date",
        "check_out_date",
        "state",
        "lifecycle_status",
        "source",
        "reservation_code",
        "is_paid",
        "created_at",
    )
    list_filter = ("state", "source", "is_paid", "check_in_date")
    search_fields = ("guest_name", "guest_phone", "guest_email", "reservation_code")
    # Stay timing and channel codes go through the API so overlap checks and grant windows follow.
    readonly_fields = (
        "check_in_date",
        "check_in_time",
        "check_out_date",
        "check_out_time",
        "reservation_code",
        "state",
        "cancelled_at",
        "cancellation_reason",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request) -> bool:
        return False

    @admin.display(description="Status")
    def lifecycle_status(self, obj: Reservation) -> str:
        return status_of(obj).label
