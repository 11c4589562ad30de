"""Service-level tests for issuing and redeeming pre-registrations."""

from __future__ import annotations

import threading
from datetime import timedelta
from unittest import mock

from django.db import OperationalError, connection
from django.db.models.query import QuerySet
from django.test import TestCase, TransactionTestCase
from django.utils import timezone

from apps.preregistrations import services
from apps.preregistrations.models import PreRegistration
from apps.reservations.models import Reservation
from apps.reservations.services import create_reservation
from shared.domain.exceptions import AlreadyUsed, Conflict, Expired, NotFound, ValidationError


class IssuePreRegistrationTests(TestCase):
    def setUp(self) -> None:
        self.now = timezone.now()
        self.today = timezone.localdate(self.now)
        self.check_in = self.today + timedelta(days=10)
        self.check_out = self.check_in + timedelta(days=4)

    def _issue(self, **overrides):
        payload = {
            "name": "Ana Souza",
            "phone": "+5511999990000",
            "check_in_date": self.check_in,
            "check_out_date": self.check_out,
            "now": self.now,
        }
        payload.update(overrides)
        return services.issue_pre_registration(**payload)

    def test_issue_generates_token_and_expiry(self) -> None:
        pre_registration = self._issue(expiration_days=7)

        self.assertEqual(len(pre_registration.token), 64)
        self.assertEqual(pre_registration.status, PreRegistration.Status.PENDING)
        self.assertEqual(pre_registration.expires_at, self.now + timedelta(days=7))
        self.assertIn(pre_registration.token, pre_registration.registration_link())

    def test_tokens_are_unique(self) -> None:
        first = self._issue()
        second = self._issue(phone="+5511888880000")
        self.assertNotEqual(first.token, second.token)

    def test_invalid_input_stores_nothing(self) -> None:
        invalid_payloads = [
            {"name": ""},
            {"phone": "   "},
            {"check_out_date": self.check_in},
            {"check_in_date": self.today - timedelta(days=1)},
            {"expiration_days": 0},
        ]
        for overrides in invalid_payloads:
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValidationError):
                    self._issue(**overrides)
        self.assertEqual(PreRegistration.objects.count(), 0)

    def test_second_pending_invitation_for_same_phone_is_rejected(self) -> None:
        self._issue()
        with self.assertRaises(ValidationError):
            self._issue(check_in_date=self.check_in + timedelta(days=30), check_out_date=self.check_out + timedelta(days=30))
        self.assertEqual(PreRegistration.objects.count(), 1)

    def test_expired_invitation_does_not_block_the_phone(self) -> None:
        self._issue(expiration_days=1, now=self.now - timedelta(days=3))
        fresh = self._issue()
        self.assertEqual(PreRegistration.objects.filter(phone=fresh.phone).count(), 2)

    def test_duplicate_code_is_a_conflict(self) -> None:
        self._issue(reservation_code="hmabc12345")
        with self.assertRaises(Conflict):
            self._issue(phone="+5511777770000", reservation_code="HMABC12345")


class ExpiryTests(TestCase):
    def setUp(self) -> None:
        self.issued_at = timezone.now()
        check_in = timezone.localdate(self.issued_at) + timedelta(days=40)
        self.pre_registration = services.issue_pre_registration(
            name="Bruno Lima",
            phone="+5521999990000",
            check_in_date=check_in,
            check_out_date=check_in + timedelta(days=2),
            expiration_days=30,
            now=self.issued_at,
        )

    def test_status_expires_lazily_without_sweep(self) -> None:
        later = self.issued_at + timedelta(days=30, seconds=1)

        self.assertEqual(self.pre_registration.effective_status(self.issued_at), PreRegistration.Status.PENDING)
        self.assertEqual(self.pre_registration.effective_status(later), PreRegistration.Status.EXPIRED)
        self.pre_registration.refresh_from_db()
        self.assertEqual(self.pre_registration.status, PreRegistration.Status.PENDING)

    def test_verify_and_redeem_reject_expired_token(self) -> None:
        later = self.issued_at + timedelta(days=31)

        with self.assertRaises(Expired):
            services.verify_pre_registration(self.pre_registration.token, now=later)
        with self.assertRaises(Expired):
            services.redeem_pre_registration(self.pre_registration.token, {}, now=later)
        self.assertEqual(Reservation.objects.count(), 0)

    def test_sweep_marks_only_past_due(self) -> None:
        self.assertEqual(services.sweep_expired_pre_registrations(now=self.issued_at), 0)

        swept = services.sweep_expired_pre_registrations(now=self.issued_at + timedelta(days=31))

        self.assertEqual(swept, 1)
        self.pre_registration.refresh_from_db()
        self.assertEqual(self.pre_registration.status, PreRegistration.Status.EXPIRED)


class RedeemPreRegistrationTests(TestCase):
    def setUp(self) -> None:
        self.today = timezone.localdate()
        self.check_in = self.today + timedelta(days=20)
        self.check_out = self.check_in + timedelta(days=3)
        self.pre_registration = services.issue_pre_registration(
            name="Carla Dias",
            phone="+5531999990000",
            email="carla@example.com",
            check_in_date=self.check_in,
            check_out_date=self.check_out,
            adults_count=2,
            children_count=1,
        )

    def test_redeem_creates_reservation_with_invitation_dates(self) -> None:
        reservation = services.redeem_pre_registration(
            self.pre_registration.token,
            {"guest_country": "Brazil", "vehicles": [{"plate": "ABC1D23"}]},
        )

        self.assertEqual(reservation.check_in_date, self.check_in)
        self.assertEqual(reservation.check_out_date, self.check_out)
        self.assertEqual(reservation.guest_name, "Carla Dias")
        self.assertEqual(reservation.number_of_guests, 3)
        self.assertEqual(reservation.vehicles, [{"plate": "ABC1D23"}])
        self.pre_registration.refresh_from_db()
        self.assertEqual(self.pre_registration.status, PreRegistration.Status.REGISTERED)
        self.assertEqual(self.pre_registration.reservation, reservation)
        self.assertIsNotNone(self.pre_registration.registered_at)

    def test_second_redeem_is_already_used(self) -> None:
        services.redeem_pre_registration(self.pre_registration.token, {})

        with self.assertRaises(AlreadyUsed):
            services.redeem_pre_registration(self.pre_registration.token, {})
        self.assertEqual(Reservation.objects.count(), 1)

    def test_unknown_token_is_not_found(self) -> None:
        with self.assertRaises(NotFound):
            services.redeem_pre_registration("0" * 64, {})
        with self.assertRaises(NotFound):
            services.verify_pre_registration("")

    def test_failed_reservation_keeps_token_pending(self) -> None:
        create_reservation(
            guest_name="Someone Else",
            guest_phone="+5511000000000",
            check_in_date=self.check_in + timedelta(days=1),
            check_out_date=self.check_out + timedelta(days=2),
        )

        with self.assertRaises(Conflict):
            services.redeem_pre_registration(self.pre_registration.token, {})

        self.pre_registration.refresh_from_db()
        self.assertEqual(self.pre_registration.status, PreRegistration.Status.PENDING)
        self.assertIsNone(self.pre_registration.registered_at)

    def test_redeem_links_reservation_with_same_code(self) -> None:
        coded = services.issue_pre_registration(
            name="Diego Ramos",
            phone="+5541999990000",
            check_in_date=self.check_in + timedelta(days=10),
            check_out_date=self.check_in + timedelta(days=12),
            reservation_code="",
        )
        existing = create_reservation(
            guest_name="Diego Ramos",
            guest_phone="+5541999990000",
            check_in_date=coded.check_in_date,
            check_out_date=coded.check_out_date,
        )
        # The code is attached afterwards, as the operator would after an import.
        Reservation.objects.filter(pk=existing.pk).update(reservation_code="HMLINK0001")
        PreRegistration.objects.filter(pk=coded.pk).update(reservation_code="HMLINK0001")

        reservation = services.redeem_pre_registration(coded.token, {})

        self.assertEqual(reservation.pk, existing.pk)
        self.assertEqual(Reservation.objects.count(), 1)

    def test_unknown_guest_field_is_rejected_before_claiming(self) -> None:
        with self.assertRaises(ValidationError):
            services.redeem_pre_registration(self.pre_registration.token, {"state": "cancelled"})
        self.pre_registration.refresh_from_db()
        self.assertEqual(self.pre_registration.status, PreRegistration.Status.PENDING)


class LockedFieldsTests(TestCase):
    def setUp(self) -> None:
        check_in = timezone.localdate() + timedelta(days=15)
        self.pre_registration = services.issue_pre_registration(
            name="Eva Costa",
            phone="+5551999990000",
            check_in_date=check_in,
            check_out_date=check_in + timedelta(days=5),
            reservation_code="HMLOCKED01",
            source_event_uid="HMLOCKED01@airbnb.com",
            dates_locked=True,
        )

    def test_locked_dates_cannot_change(self) -> None:
        with self.assertRaises(ValidationError):
            services.update_pre_registration(
                self.pre_registration.pk,
                check_out_date=self.pre_registration.check_out_date + timedelta(days=1),
            )

    def test_other_fields_remain_editable(self) -> None:
        updated = services.update_pre_registration(self.pre_registration.pk, email="eva@example.com", notes="Late")
        self.assertEqual(updated.email, "eva@example.com")
        self.assertEqual(updated.check_in_date, self.pre_registration.check_in_date)


class ConcurrentRedeemTests(TransactionTestCase):
    def test_only_one_of_two_concurrent_redeems_succeeds(self) -> None:
        check_in = timezone.localdate() + timedelta(days=25)
        pre_registration = services.issue_pre_registration(
            name="Fabio Reis",
            phone="+5561999990000",
            check_in_date=check_in,
            check_out_date=check_in + timedelta(days=2),
        )
        barrier = threading.Barrier(2)
        outcomes: list[str] = []

        def redeem() -> None:
            barrier.wait()
            try:
                services.redeem_pre_registration(pre_registration.token, {})
                outcomes.append("ok")
            except AlreadyUsed:
                outcomes.append("used")
            except Conflict:
                outcomes.append("busy")
            finally:
                connection.close()

        threads = [threading.Thread(target=redeem) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(outcomes), ["ok", "used"])
        self.assertEqual(Reservation.objects.count(), 1)


class ClaimLockTimeoutTests(TestCase):
    def test_lock_timeout_is_a_conflict_and_keeps_token_pending(self) -> None:
        check_in = timezone.localdate() + timedelta(days=30)
        pre_registration = services.issue_pre_registration(
            name="Gil Matos",
            phone="+5571999990000",
            check_in_date=check_in,
            check_out_date=check_in + timedelta(days=2),
        )

        with mock.patch.object(QuerySet, "update", side_effect=OperationalError("database is locked")):
            with self.assertRaises(Conflict):
                services.redeem_pre_registration(pre_registration.token, {})

        pre_registration.refresh_from_db()
        self.assertEqual(pre_registration.status, PreRegistration.Status.PENDING)
        self.assertEqual(Reservation.objects.count(), 0)
