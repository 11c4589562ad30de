"""FilterSet for the operator pre-registration list."""

from __future__ import annotations

import django_filters  # type: ignore
from django.db.models import Q  # type: ignore
from django.utils import timezone  # type: ignore

from .models import PreRegistration


class PreRegistrationFilterSet(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=PreRegistration.Status.choices, method="filter_status")
    phone = django_filters.CharFilter(field_name="phone", lookup_expr="icontains")
    name = django_filters.CharFilter(field_name="name", lookup_expr="icontains")
    code = django_filters.CharFilter(field_name="reservation_code", lookup_expr="iexact")

    class Meta:
        model = PreRegistration
        fields = ["status", "dates_locked"]

    def filter_status(self, queryset, name, value):  # type: ignore
        now = timezone.now()
        pending = Q(status=PreRegistration.Status.PENDING)
        if value == PreRegistration.Status.PENDING:
            return queryset.filter(pending, expires_at__gte=now)
        if value == PreRegistration.Status.EXPIRED:
            return queryset.filter(Q(status=PreRegistration.Status.EXPIRED) | (pending & Q(expires_at__lt=now)))
        return queryset.filter(status=value)
