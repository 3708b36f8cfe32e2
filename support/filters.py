import django_filters
from django.db.models import Q

from support.models import SupportTicket


class SupportTicketFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=SupportTicket.Status.choices)
    category = django_filters.ChoiceFilter(choices=SupportTicket.Category.choices)
    priority = django_filters.ChoiceFilter(choices=SupportTicket.Priority.choices)
    unassigned = django_filters.BooleanFilter(field_name="assigned_to", lookup_expr="isnull")
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = SupportTicket
        fields = ["status", "category", "priority", "assigned_to", "unassigned"]

    def filter_search(self, queryset, name, value):
        value = (value or "").strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(subject__icontains=value)
            | Q(description__icontains=value)
            | Q(ticket_number__icontains=value)
            | Q(email__icontains=value)
        )
