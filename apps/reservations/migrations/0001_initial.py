import apps.reservations.models
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Reservation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("guest_name", models.CharField(max_length=200)),
                ("guest_phone", models.CharField(max_length=40)),
                ("guest_email", models.EmailField(blank=True, max_length=254)),
                ("guest_country", models.CharField(blank=True, max_length=80)),
                ("check_in_date", models.DateField()),
                ("check_in_time", models.TimeField(default=apps.reservations.models.default_check_in_time)),
                ("check_out_date", models.DateField()),
                ("check_out_time", models.TimeField(default=apps.reservations.models.default_check_out_time)),
                ("number_of_guests", models.PositiveSmallIntegerField(default=1)),
                (
                    "source",
                    models.CharField(
                        choices=[("direct", "Direct"), ("airbnb", "External channel"), ("other", "Other")],
                        default="direct",
                        max_length=20,
                    ),
                ),
                (
                    "reservation_code",
                    models.CharField(
                        blank=True,
                        help_text="Confirmation code issued by the external channel.",
                        max_length=64,
                    ),
                ),
                ("total_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("is_paid", models.BooleanField(default=False)),
                (
                    "state",
                    models.CharField(
                        choices=[
                            ("pending", "Pending confirmation"),
                            ("confirmed", "Confirmed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="confirmed",
                        max_length=20,
                    ),
                ),
                (
                    "companions",
                    models.JSONField(blank=True, default=list, help_text="Additional guests: name, age, document."),
                ),
                (
                    "vehicles",
                    models.JSONField(blank=True, default=list, help_text="Guest vehicles: brand, model, color, plate."),
                ),
                ("notes", models.TextField(blank=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.CharField(blank=True, max_length=255)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_reservations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Reservation",
                "verbose_name_plural": "Reservations",
                "ordering": ["-check_in_date", "-created_at"],
                "indexes": [
                    models.Index(fields=["check_in_date", "check_out_date"], name="reservation_dates_idx"),
                    models.Index(fields=["state"], name="reservation_state_idx"),
                    models.Index(fields=["reservation_code"], name="reservation_code_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("check_out_date__gt", models.F("check_in_date"))),
                        name="reservation_valid_dates",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(
                            models.Q(("reservation_code", ""), _negated=True),
                            models.Q(("state", "cancelled"), _negated=True),
                        ),
                        fields=("reservation_code",),
                        name="reservation_unique_active_code",
                    ),
                ],
            },
        ),
    ]
