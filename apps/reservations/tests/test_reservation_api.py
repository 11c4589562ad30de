"""Integration tests for the operator reservation endpoints."""

from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.reservations.models import Reservation
from apps.reservations.services import create_reservation


class ReservationAPITests(APITestCase):
    def setUp(self) -> None:
        self.operator = get_user_model().objects.create_user(
            username="operator",
            password="OperatorPass123",
            is_staff=True,
        )
        self.client.force_authenticate(self.operator)
        self.today = timezone.localdate()
        self.list_url = reverse("reservation-list")

    def _payload(self, start: int, end: int, **extra) -> dict:
        return {
            "guest_name": "Pedro Lima",
            "guest_phone": "+5511955550000",
            "check_in_date": str(self.today + timedelta(days=start)),
            "check_out_date": str(self.today + timedelta(days=end)),
            **extra,
        }

    def test_operator_creates_reservation_with_derived_status(self) -> None:
        response = self.client.post(self.list_url, self._payload(2, 5), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["state"], "confirmed")
        self.assertEqual(response.data["status"], "upcoming")
        self.assertEqual(Reservation.objects.get().created_by, self.operator)

    def test_overlap_returns_conflict(self) -> None:
        self.client.post(self.list_url, self._payload(2, 5), format="json")

        response = self.client.post(self.list_url, self._payload(4, 8), format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "conflict")

    def test_reversed_dates_are_rejected(self) -> None:
        response = self.client.post(self.list_url, self._payload(5, 2), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters_by_derived_status(self) -> None:
        create_reservation(
            guest_name="Now",
            guest_phone="1",
            check_in_date=self.today - timedelta(days=1),
            check_out_date=self.today + timedelta(days=2),
        )
        create_reservation(
            guest_name="Later",
            guest_phone="2",
            check_in_date=self.today + timedelta(days=10),
            check_out_date=self.today + timedelta(days=12),
        )

        response = self.client.get(self.list_url, {"status": "current"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["guest_name"] for row in response.data["results"]], ["Now"])

    def test_current_next_and_cancel(self) -> None:
        current = create_reservation(
            guest_name="Now",
            guest_phone="1",
            check_in_date=self.today,
            check_out_date=self.today + timedelta(days=2),
        )

        self.assertEqual(self.client.get(reverse("reservation-current")).data["current"]["id"], current.pk)
        self.assertIsNone(self.client.get(reverse("reservation-next-reservation")).data["next"])

        cancel = self.client.post(
            reverse("reservation-cancel", args=[current.pk]),
            {"reason": "guest request"},
            format="json",
        )
        self.assertEqual(cancel.data["status"], "cancelled")
        self.assertIsNone(self.client.get(reverse("reservation-current")).data["current"])
        lifecycle = self.client.get(reverse("reservation-lifecycle-status", args=[current.pk]))
        self.assertEqual(lifecycle.data["status"], "cancelled")

    def test_guest_lists_limit_vehicles(self) -> None:
        reservation = create_reservation(
            guest_name="Cars",
            guest_phone="1",
            check_in_date=self.today + timedelta(days=1),
            check_out_date=self.today + timedelta(days=3),
        )
        url = reverse("reservation-guests", args=[reservation.pk])

        too_many = self.client.put(url, {"vehicles": [{"plate": f"AAA{n}"} for n in range(6)]}, format="json")
        accepted = self.client.put(url, {"vehicles": [{"plate": "AAA1"}]}, format="json")

        self.assertEqual(too_many.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(accepted.status_code, status.HTTP_200_OK)
        self.assertEqual(accepted.data["vehicles"], [{"plate": "AAA1"}])

    def test_non_staff_user_is_forbidden(self) -> None:
        guest = get_user_model().objects.create_user(username="guest", password="GuestPass123")
        self.client.force_authenticate(guest)

        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
