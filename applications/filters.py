import django_filters
from django.db.models import Q

from applications.models import Application, Country


class ApplicationFilter(django_filters.FilterSet):
    """
    ?status=shortlisted&status=scoring_phase&country=kenya&is_eligible=true&search=solar
    """
    status = django_filters.MultipleChoiceFilter(choices=Application.Status.choices)
    country = django_filters.MultipleChoiceFilter(field_name="business__country", choices=Country.choices)
    is_eligible = django_filters.BooleanFilter(field_name="eligibility__is_eligible")
    submitted_after = django_filters.DateFilter(field_name="submitted_at", lookup_expr="date__gte")
    submitted_before = django_filters.DateFilter(field_name="submitted_at", lookup_expr="date__lte")
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = Application
        fields = ["status", "country", "is_eligible", "submitted_after", "submitted_before"]

    def filter_search(self, queryset, name, value):
        value = (value or "").strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(business__name__icontains=value)
            | Q(business__applicant__first_name__icontains=value)
            | Q(business__applicant__last_name__icontains=value)
            | Q(business__applicant__email__icontains=value)
        )
