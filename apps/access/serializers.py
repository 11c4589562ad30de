"""Serializers for access grants."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import AccessGrant

MASK = "******"


class AccessGrantSerializer(serializers.ModelSerializer):
    """Operator listing; the credential itself is never echoed here."""

    credential = serializers.SerializerMethodField()
    is_revoked = serializers.BooleanField(read_only=True)

    class Meta:
        model = AccessGrant
        fields = [
            "id",
            "reservation",
            "location_label",
            "credential",
            "valid_from",
            "valid_until",
            "is_revoked",
            "revoked_at",
            "revoke_reason",
            "created_at",
        ]
        read_only_fields = fields

    def get_credential(self, obj: AccessGrant) -> str:
        return MASK


class AccessGrantCreateSerializer(serializers.Serializer):
    reservation = serializers.IntegerField(min_value=1)
    location_label = serializers.CharField(max_length=100)
    credential = serializers.RegexField(r"^[0-9A-Za-z#*]{4,64}$", required=False, allow_blank=True)


class RevokeGrantSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class DisclosedGrantSerializer(serializers.ModelSerializer):
    """Plaintext credential, only produced by the disclosure service."""

    class Meta:
        model = AccessGrant
        fields = ["id", "location_label", "credential", "valid_from", "valid_until"]
        read_only_fields = fields
