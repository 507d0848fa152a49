from django.db.models import Q
from django_filters import rest_framework as filters

from .models import Application, ApplicationStatus


class ApplicationFilter(filters.FilterSet):
    search = filters.CharFilter(method="filter_search", label="Name, email, number or parent")
    status = filters.ChoiceFilter(choices=ApplicationStatus.choices)
    class_name = filters.CharFilter(field_name="class_name")
    date_from = filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    date_to = filters.DateFilter(field_name="created_at", lookup_expr="date__lte")

    class Meta:
        model = Application
        fields = ["search", "status", "class_name", "date_from", "date_to"]

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(student_name__icontains=value)
            | Q(email__icontains=value)
            | Q(application_number__icontains=value)
            | Q(father_name__icontains=value)
            | Q(mother_name__icontains=value)
        )
