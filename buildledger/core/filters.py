import django_filters
from django.db.models import Q
from .models import AuditLog


class AuditLogFilter(django_filters.FilterSet):
    """Filter audit logs by action, entity, user and date"""
    action = django_filters.CharFilter(field_name='action', lookup_expr='iexact')
    entity_type = django_filters.CharFilter(field_name='entity_type', lookup_expr='iexact')
    entity_id = django_filters.NumberFilter(field_name='entity_id')
    user = django_filters.CharFilter(field_name='user__email', lookup_expr='icontains')
    start = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    end = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = AuditLog
        fields = ['action', 'entity_type', 'entity_id', 'user', 'start', 'end', 'search']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(description__icontains=value) | Q(action__icontains=value) | Q(user__email__icontains=value)
        )
