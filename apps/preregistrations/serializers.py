"""Serializers for pre-registrations."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.reservations.serializers import GuestListsSerializer

from .models import PreRegistration


class PreRegistrationSerializer(serializers.ModelSerializer):
    """Operator view; ``status`` has lazy expiry applied."""

    status = serializers.SerializerMethodField()
    registration_link = serializers.SerializerMethodField()

    class Meta:
        model = PreRegistration
        fields = [
            "id",
            "token",
            "registration_link",
            "name",
            "phone",
            "email",
            "check_in_date",
            "check_in_time",
            "check_out_date",
            "check_out_time",
            "reservation_code",
            "source_event_uid",
            "dates_locked",
            "adults_count",
            "children_count",
            "pets_count",
            "reservation_value",
            "origin_country",
            "notes",
            "status",
            "expires_at",
            "registered_at",
            "reservation",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_status(self, obj: PreRegistration) -> str:
        return obj.effective_status(self.context.get("now"))

    def get_registration_link(self, obj: PreRegistration) -> str:
        return obj.registration_link()


class PreRegistrationWriteSerializer(serializers.ModelSerializer):
    expiration_days = serializers.IntegerField(min_value=1, max_value=365, required=False)

    class Meta:
        model = PreRegistration
        fields = [
            "name",
            "phone",
            "email",
            "check_in_date",
            "check_in_time",
            "check_out_date",
            "check_out_time",
            "reservation_code",
            "adults_count",
            "children_count",
            "pets_count",
            "reservation_value",
            "origin_country",
            "notes",
            "expiration_days",
        ]
        extra_kwargs = {
            "email": {"required": False, "allow_blank": True},
            "reservation_code": {"required": False, "allow_blank": True, "validators": []},
            "notes": {"required": False, "allow_blank": True},
        }
        validators = []

    def validate(self, attrs):  # type: ignore
        check_in = attrs.get("check_in_date", getattr(self.instance, "check_in_date", None))
        check_out = attrs.get("check_out_date", getattr(self.instance, "check_out_date", None))
        if check_in and check_out and check_out <= check_in:
            raise serializers.ValidationError("Check-out date must be after the check-in date.")
        if self.instance is not None and "expiration_days" in attrs:
            raise serializers.ValidationError({"expiration_days": "Expiry is fixed once the link is issued."})
        return attrs


class PublicPreRegistrationSerializer(serializers.ModelSerializer):
    """What the guest form may see before submitting."""

    class Meta:
        model = PreRegistration
        fields = [
            "name",
            "phone",
            "email",
            "check_in_date",
            "check_in_time",
            "check_out_date",
            "check_out_time",
            "adults_count",
            "children_count",
            "dates_locked",
            "expires_at",
        ]
        read_only_fields = fields


class RedeemSerializer(GuestListsSerializer):
    token = serializers.CharField(max_length=128)
    guest_name = serializers.CharField(max_length=200, required=False)
    guest_email = serializers.EmailField(required=False, allow_blank=True)
    guest_phone = serializers.CharField(max_length=40, required=False)
    guest_country = serializers.CharField(max_length=80, required=False, allow_blank=True)
    number_of_guests = serializers.IntegerField(min_value=1, max_value=50, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class RedeemedReservationSerializer(serializers.Serializer):
    reservation_id = serializers.IntegerField(source="pk")
    guest_name = serializers.CharField()
    check_in_date = serializers.DateField()
    check_out_date = serializers.DateField()
    check_in_time = serializers.TimeField()
    check_out_time = serializers.TimeField()
