from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
import shared.infrastructure.fields


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("reservations", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AccessGrant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "location_label",
                    models.CharField(
                        help_text="Where the credential applies, e.g. 'Front door' or 'Garage'.",
                        max_length=100,
                    ),
                ),
                ("credential", shared.infrastructure.fields.EncryptedCharField(max_length=64)),
                ("valid_from", models.DateTimeField()),
                ("valid_until", models.DateTimeField()),
                ("revoked_at", models.DateTimeField(blank=True, null=True)),
                ("revoke_reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="issued_access_grants",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "reservation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="access_grants",
                        to="reservations.reservation",
                    ),
                ),
            ],
            options={
                "verbose_name": "Access grant",
                "verbose_name_plural": "Access grants",
                "ordering": ["valid_from", "location_label"],
                "indexes": [
                    models.Index(fields=["revoked_at", "valid_until"], name="access_grant_active_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("valid_until__gt", models.F("valid_from"))),
                        name="access_grant_valid_window",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AccessDisclosureLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reason", models.CharField(blank=True, max_length=255)),
                ("disclosed_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "accessed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="access_disclosures",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "grant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="disclosures",
                        to="access.accessgrant",
                    ),
                ),
            ],
            options={
                "verbose_name": "Access disclosure",
                "verbose_name_plural": "Access disclosures",
                "ordering": ["-disclosed_at"],
            },
        ),
    ]
