"""FilterSet for the operator reservation list."""

from __future__ import annotations

import django_filters  # type: ignore

from shared.domain.value_objects import local_today

from .lifecycle import ReservationStatus
from .models import Reservation


class ReservationFilterSet(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=ReservationStatus.choices, method="filter_status")
    source = django_filters.ChoiceFilter(choices=Reservation.Source.choices)
    check_in_from = django_filters.DateFilter(field_name="check_in_date", lookup_expr="gte")
    check_in_to = django_filters.DateFilter(field_name="check_in_date", lookup_expr="lte")
    guest = django_filters.CharFilter(field_name="guest_name", lookup_expr="icontains")
    code = django_filters.CharFilter(field_name="reservation_code", lookup_expr="iexact")

    class Meta:
        model = Reservation
        fields = ["status", "source", "state", "is_paid"]

    def filter_status(self, queryset, name, value):  # type: ignore
        # Derived status depends on today, so it cannot be a plain field lookup.
        return queryset.with_status(value, local_today())
