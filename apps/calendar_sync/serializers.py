"""Serializers for the calendar feed and reconciliation output."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore


class ExternalBookingEventSerializer(serializers.Serializer):
    uid = serializers.CharField()
    summary = serializers.CharField()
    start = serializers.DateField()
    end = serializers.DateField()
    nights = serializers.IntegerField()
    status = serializers.CharField()
    reservation_code = serializers.CharField(allow_null=True)


class FeedSnapshotSerializer(serializers.Serializer):
    feed_url = serializers.CharField()
    fetched_at = serializers.DateTimeField(allow_null=True)
    is_stale = serializers.BooleanField()
    last_error = serializers.CharField(allow_blank=True)


class ConflictSerializer(serializers.Serializer):
    reason = serializers.CharField()
    reservation_code = serializers.CharField()
    event_uids = serializers.ListField(child=serializers.CharField())
    records = serializers.SerializerMethodField()
    detail = serializers.CharField(allow_blank=True)

    def get_records(self, obj) -> list[dict]:
        return [{"kind": kind, "id": record_id} for kind, record_id in obj.records]


class ReconciliationResultSerializer(serializers.Serializer):
    new_candidates = ExternalBookingEventSerializer(many=True)
    matched_count = serializers.IntegerField()
    conflicts = ConflictSerializer(many=True)


class ImportCandidateSerializer(serializers.Serializer):
    uid = serializers.CharField(max_length=255)
    name = serializers.CharField(max_length=200)
    phone = serializers.CharField(max_length=40)
    email = serializers.EmailField(required=False, allow_blank=True)
    expiration_days = serializers.IntegerField(min_value=1, max_value=365, required=False)
    adults_count = serializers.IntegerField(min_value=1, max_value=50, required=False)
    children_count = serializers.IntegerField(min_value=0, max_value=50, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
