"""Integration tests for the calendar endpoints and candidate import."""

from __future__ import annotations

from datetime import date, timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.calendar_sync import services
from apps.calendar_sync.importer import CalendarImporter
from apps.preregistrations.models import PreRegistration
from apps.reservations.services import create_reservation
from shared.domain.exceptions import Conflict


def _ics_date(day: date) -> str:
    return day.strftime("%Y%m%d")


def _feed(*events: tuple[str, date, date]) -> bytes:
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//Test//EN"]
    for uid, start, end in events:
        lines += [
            "BEGIN:VEVENT",
            f"DTSTART;VALUE=DATE:{_ics_date(start)}",
            f"DTEND;VALUE=DATE:{_ics_date(end)}",
            f"UID:{uid}",
            "SUMMARY:Reserved",
            "END:VEVENT",
        ]
    lines.append("END:VCALENDAR")
    return ("\r\n".join(lines) + "\r\n").encode()


def _load_feed(payload: bytes) -> None:
    session = mock.Mock()
    session.get.return_value = mock.Mock(content=payload)
    CalendarImporter("https://feed.example.com/cal.ics?s=secret", session=session).refresh()


class CalendarAPITests(APITestCase):
    def setUp(self) -> None:
        self.operator = get_user_model().objects.create_user(
            username="calendar-operator",
            password="OperatorPass123",
            is_staff=True,
        )
        self.client.force_authenticate(self.operator)
        today = timezone.localdate()
        self.first = (today + timedelta(days=5), today + timedelta(days=8))
        self.second = (today + timedelta(days=12), today + timedelta(days=14))
        _load_feed(
            _feed(
                ("HMFIRST001@airbnb.com", *self.first),
                ("HMSECOND01@airbnb.com", *self.second),
                ("past-block@airbnb.com", today - timedelta(days=10), today - timedelta(days=7)),
            )
        )

    def test_events_lists_cached_feed_without_secret(self) -> None:
        response = self.client.get(reverse("calendar-events"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total_events"], 2)
        self.assertEqual(response.data["feed"]["feed_url"], "https://feed.example.com/cal.ics")
        self.assertFalse(response.data["feed"]["is_stale"])

    def test_reconciliation_lists_candidates_and_matches(self) -> None:
        create_reservation(
            guest_name="Manual Entry",
            guest_phone="+5511900001111",
            check_in_date=self.first[0],
            check_out_date=self.first[1],
        )

        response = self.client.get(reverse("calendar-reconciliation"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["matched_count"], 1)
        self.assertEqual(
            [event["reservation_code"] for event in response.data["new_candidates"]],
            ["HMSECOND01"],
        )

    def test_import_creates_locked_pre_registration_once(self) -> None:
        payload = {"uid": "HMSECOND01@airbnb.com", "name": "Nina Alves", "phone": "+5511977770000"}

        first = self.client.post(reverse("calendar-import"), payload, format="json")
        second = self.client.post(
            reverse("calendar-import"),
            {**payload, "phone": "+5511977779999"},
            format="json",
        )

        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)
        self.assertTrue(first.data["dates_locked"])
        self.assertEqual(first.data["reservation_code"], "HMSECOND01")
        self.assertEqual(first.data["check_in_date"], str(self.second[0]))
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(PreRegistration.objects.count(), 1)

        candidates = services.reconcile_store().new_candidates
        self.assertEqual([event.reservation_code for event in candidates], ["HMFIRST001"])

    def test_import_unknown_uid_is_not_found(self) -> None:
        response = self.client.post(
            reverse("calendar-import"),
            {"uid": "nope@airbnb.com", "name": "X", "phone": "1"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_refresh_is_queued(self) -> None:
        with mock.patch("apps.calendar_sync.views.refresh_calendar_feed.delay") as delay:
            response = self.client.post(reverse("calendar-refresh"))

        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED)
        delay.assert_called_once_with()

    def test_past_candidate_cannot_be_imported(self) -> None:
        with self.assertRaises(Conflict):
            services.import_candidate("past-block@airbnb.com", name="Old", phone="+5511900002222")
