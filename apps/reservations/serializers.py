"""Serializers for the reservation store."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .lifecycle import ReservationStatus, status_of
from .models import MAX_VEHICLES, Reservation


class ReservationSerializer(serializers.ModelSerializer):
    """Read representation; ``status`` is derived on every request."""

    status = serializers.SerializerMethodField()
    pre_registration_id = serializers.SerializerMethodField()

    class Meta:
        model = Reservation
        fields = [
            "id",
            "guest_name",
            "guest_phone",
            "guest_email",
            "guest_country",
            "check_in_date",
            "check_in_time",
            "check_out_date",
            "check_out_time",
            "number_of_guests",
            "source",
            "reservation_code",
            "total_amount",
            "is_paid",
            "state",
            "status",
            "companions",
            "vehicles",
            "notes",
            "pre_registration_id",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_status(self, obj: Reservation) -> str:
        return status_of(obj, self.context.get("now"))

    def get_pre_registration_id(self, obj: Reservation) -> int | None:
        pre_registration = getattr(obj, "pre_registration", None)
        return pre_registration.pk if pre_registration else None


class ReservationWriteSerializer(serializers.ModelSerializer):
    """Operator input for create and update; persistence goes through services."""

    state = serializers.ChoiceField(
        choices=[Reservation.State.PENDING, Reservation.State.CONFIRMED],
        required=False,
    )

    class Meta:
        model = Reservation
        fields = [
            "guest_name",
            "guest_phone",
            "guest_email",
            "guest_country",
            "check_in_date",
            "check_in_time",
            "check_out_date",
            "check_out_time",
            "number_of_guests",
            "source",
            "reservation_code",
            "total_amount",
            "is_paid",
            "notes",
            "state",
        ]
        extra_kwargs = {
            "guest_email": {"required": False, "allow_blank": True},
            "reservation_code": {"required": False, "allow_blank": True, "validators": []},
            "notes": {"required": False, "allow_blank": True},
        }
        # Code uniqueness and overlaps are enforced by the services under lock.
        validators = []

    def validate(self, attrs):  # type: ignore
        check_in = attrs.get("check_in_date", getattr(self.instance, "check_in_date", None))
        check_out = attrs.get("check_out_date", getattr(self.instance, "check_out_date", None))
        if check_in and check_out and check_out <= check_in:
            raise serializers.ValidationError("Check-out date must be after the check-in date.")
        return attrs


class CancelReservationSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class CompanionSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    age = serializers.IntegerField(min_value=0, max_value=130, required=False)
    document = serializers.CharField(max_length=60, required=False, allow_blank=True)


class VehicleSerializer(serializers.Serializer):
    brand = serializers.CharField(max_length=60, required=False, allow_blank=True)
    model = serializers.CharField(max_length=60, required=False, allow_blank=True)
    color = serializers.CharField(max_length=30, required=False, allow_blank=True)
    plate = serializers.CharField(max_length=20)


class GuestListsSerializer(serializers.Serializer):
    companions = CompanionSerializer(many=True, required=False)
    vehicles = VehicleSerializer(many=True, required=False)

    def validate_vehicles(self, value):  # type: ignore
        if len(value) > MAX_VEHICLES:
            raise serializers.ValidationError(f"At most {MAX_VEHICLES} vehicles are allowed.")
        return value


class ReservationStatusSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    state = serializers.CharField()
    status = serializers.ChoiceField(choices=ReservationStatus.choices)
