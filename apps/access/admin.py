"""Admin registration for access grants; credentials are not shown."""

from __future__ import annotations

from django.contrib import admin

from .models import AccessDisclosureLog, AccessGrant


@admin.register(AccessGrant)
class AccessGrantAdmin(admin.ModelAdmin):
    list_display = ("reservation", "location_label", "valid_from", "valid_until", "revoked_at")
    list_filter = ("location_label", "revoked_at")
    exclude = ("credential",)
    readonly_fields = ("reservation", "valid_from", "valid_until", "revoked_at", "revoke_reason", "created_at")


@admin.register(AccessDisclosureLog)
class AccessDisclosureLogAdmin(admin.ModelAdmin):
    list_display = ("grant", "accessed_by", "reason", "disclosed_at")
    readonly_fields = ("grant", "accessed_by", "reason", "disclosed_at")
