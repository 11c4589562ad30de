"""Tests for access grants and the disclosure rules."""

from __future__ import annotations

from datetime import timedelta

from django.db import connection
from django.test import TestCase, override_settings
from django.utils import timezone

from apps.access import services
from apps.access.models import AccessDisclosureLog, AccessGrant
from apps.reservations.services import cancel_reservation, create_reservation, update_reservation
from shared.domain.exceptions import ValidationError


@override_settings(ACCESS_GRACE_PERIOD_HOURS=2, ACCESS_PRE_ARRIVAL_HOURS=24)
class AccessGrantTests(TestCase):
    def setUp(self) -> None:
        self.today = timezone.localdate()
        self.reservation = create_reservation(
            guest_name="Julia Melo",
            guest_phone="+5511933330000",
            check_in_date=self.today + timedelta(days=3),
            check_out_date=self.today + timedelta(days=6),
        )

    def test_grant_window_follows_stay_plus_grace(self) -> None:
        grant = services.grant_access(self.reservation, "Front door")

        self.assertEqual(grant.valid_from, self.reservation.check_in_at())
        self.assertEqual(grant.valid_until, self.reservation.check_out_at() + timedelta(hours=2))
        self.assertRegex(grant.credential, r"^\d{6}$")

    def test_credential_is_encrypted_at_rest(self) -> None:
        grant = services.grant_access(self.reservation, "Key box", "4321")

        with connection.cursor() as cursor:
            cursor.execute("SELECT credential FROM access_accessgrant WHERE id = %s", [grant.pk])
            stored = cursor.fetchone()[0]

        self.assertNotEqual(stored, "4321")
        self.assertEqual(AccessGrant.objects.get(pk=grant.pk).credential, "4321")

    def test_grant_refused_for_cancelled_reservation(self) -> None:
        cancel_reservation(self.reservation.pk, "guest cancelled")

        with self.assertRaises(ValidationError):
            services.grant_access(self.reservation, "Front door")
        self.assertEqual(AccessGrant.objects.count(), 0)

    def test_grant_refused_for_completed_reservation(self) -> None:
        past = create_reservation(
            guest_name="Past Guest",
            guest_phone="+5511922220000",
            check_in_date=self.today - timedelta(days=10),
            check_out_date=self.today - timedelta(days=7),
        )
        with self.assertRaises(ValidationError):
            services.grant_access(past, "Front door")

    def test_disclosure_window(self) -> None:
        grant = services.grant_access(self.reservation, "Front door")
        arrival = self.reservation.check_in_at()

        self.assertFalse(services.is_disclosable(grant, arrival - timedelta(hours=30)))
        self.assertTrue(services.is_disclosable(grant, arrival - timedelta(hours=2)))
        self.assertTrue(services.is_disclosable(grant, arrival + timedelta(hours=1)))
        self.assertFalse(services.is_disclosable(grant, self.reservation.check_out_at() + timedelta(days=1)))

    def test_cancellation_revokes_and_hides_grants(self) -> None:
        grant = services.grant_access(self.reservation, "Front door")
        arrival = self.reservation.check_in_at()

        cancel_reservation(self.reservation.pk, "double booked")

        grant.refresh_from_db()
        self.assertTrue(grant.is_revoked)
        self.assertFalse(services.is_disclosable(grant, arrival + timedelta(hours=1)))

    def test_disclose_logs_each_grant(self) -> None:
        services.grant_access(self.reservation, "Front door")
        services.grant_access(self.reservation, "Garage")
        now = self.reservation.check_in_at() + timedelta(hours=1)

        disclosed = services.disclose(self.reservation, reason="guest called", now=now)

        self.assertEqual({grant.location_label for grant in disclosed}, {"Front door", "Garage"})
        self.assertEqual(AccessDisclosureLog.objects.filter(reason="guest called").count(), 2)

    def test_disclose_outside_window_returns_nothing(self) -> None:
        services.grant_access(self.reservation, "Front door")

        disclosed = services.disclose(self.reservation, now=timezone.now() - timedelta(days=1))

        self.assertEqual(disclosed, [])
        self.assertEqual(AccessDisclosureLog.objects.count(), 0)

    def test_extended_stay_keeps_its_grant_through_the_sweep(self) -> None:
        stay = create_reservation(
            guest_name="Extended Stay",
            guest_phone="+5511944440000",
            check_in_date=self.today - timedelta(days=1),
            check_out_date=self.today + timedelta(days=1),
        )
        grant = services.grant_access(stay, "Front door")
        old_departure = stay.check_out_at()

        extended = update_reservation(stay.pk, check_out_date=self.today + timedelta(days=3))
        later = old_departure + timedelta(hours=4)

        self.assertEqual(services.withdraw_stale_grants(now=later), 0)
        grant.refresh_from_db()
        self.assertFalse(grant.is_revoked)
        self.assertEqual(grant.valid_until, extended.check_out_at() + timedelta(hours=2))
        self.assertTrue(services.is_disclosable(grant, later))

    def test_shortened_stay_is_withdrawn_at_new_departure(self) -> None:
        grant = services.grant_access(self.reservation, "Front door")

        shortened = update_reservation(self.reservation.pk, check_out_date=self.today + timedelta(days=4))

        grant.refresh_from_db()
        self.assertEqual(grant.valid_until, shortened.check_out_at() + timedelta(hours=2))
        self.assertEqual(services.withdraw_stale_grants(now=grant.valid_until + timedelta(minutes=1)), 1)

    def test_withdraw_stale_grants(self) -> None:
        live = services.grant_access(self.reservation, "Front door")
        ended = services.grant_access(self.reservation, "Pool gate")
        AccessGrant.objects.filter(pk=ended.pk).update(
            valid_from=timezone.now() - timedelta(days=5),
            valid_until=timezone.now() - timedelta(hours=1),
        )

        withdrawn = services.withdraw_stale_grants()

        self.assertEqual(withdrawn, 1)
        live.refresh_from_db()
        ended.refresh_from_db()
        self.assertFalse(live.is_revoked)
        self.assertTrue(ended.is_revoked)
