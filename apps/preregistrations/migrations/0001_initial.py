from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("reservations", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PreRegistration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("token", models.CharField(editable=False, max_length=64, unique=True)),
                ("name", models.CharField(max_length=200)),
                ("phone", models.CharField(max_length=40)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("check_in_date", models.DateField()),
                ("check_in_time", models.TimeField(blank=True, null=True)),
                ("check_out_date", models.DateField()),
                ("check_out_time", models.TimeField(blank=True, null=True)),
                ("reservation_code", models.CharField(blank=True, max_length=64)),
                (
                    "source_event_uid",
                    models.CharField(
                        blank=True,
                        help_text="UID of the calendar event this invitation was created from.",
                        max_length=255,
                    ),
                ),
                (
                    "dates_locked",
                    models.BooleanField(
                        default=False,
                        help_text="Dates and code came from the external calendar and cannot be edited.",
                    ),
                ),
                ("adults_count", models.PositiveSmallIntegerField(default=1)),
                ("children_count", models.PositiveSmallIntegerField(default=0)),
                ("pets_count", models.PositiveSmallIntegerField(default=0)),
                ("reservation_value", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("origin_country", models.CharField(blank=True, max_length=80)),
                ("notes", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Waiting for the guest"),
                            ("registered", "Registered"),
                            ("expired", "Expired"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("expires_at", models.DateTimeField()),
                ("registered_at", models.DateTimeField(blank=True, null=True)),
                (
                    "reservation",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pre_registration",
                        to="reservations.reservation",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_pre_registrations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Pre-registration",
                "verbose_name_plural": "Pre-registrations",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["phone"], name="pre_registration_phone_idx"),
                    models.Index(fields=["status", "expires_at"], name="pre_registration_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("check_out_date__gt", models.F("check_in_date"))),
                        name="pre_registration_valid_dates",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("reservation_code", ""), _negated=True),
                        fields=("reservation_code",),
                        name="pre_registration_unique_code",
                    ),
                ],
            },
        ),
    ]
