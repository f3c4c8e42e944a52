import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildledger.core.permissions import ManagerOrAdmin, require_permission
from buildledger.core.utils import create_audit_log, end_of_day, parse_bool, parse_date, parse_int, start_of_day
from .models import DebrisEntry
from .serializers import DebrisEntrySerializer
from .services import (
    create_debris_entry, update_debris_entry, delete_debris_entry, mark_removal_paid, mark_removal_unpaid,
)

logger = logging.getLogger(__name__)

DEBRIS_PERMISSIONS = [
    IsAuthenticated,
    ManagerOrAdmin,
    require_permission('debris:manage'),
    require_permission('debris:edit', ['PUT', 'DELETE']),
]
DEBRIS_EDIT_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin, require_permission('debris:manage'),
                           require_permission('debris:edit')]


def _debris_queryset():
    return DebrisEntry.objects.select_related('customer', 'supplier', 'removal_payment')


def _debris_data(entry):
    return DebrisEntrySerializer(_debris_queryset().get(pk=entry.pk)).data


# Debris views
@api_view(['GET', 'POST'])
@permission_classes(DEBRIS_PERMISSIONS)
def debris_list_create(request):
    """
    List debris entries (newest first) or log a drop-off.

    Query params: status, customer_id, supplier_id, paid, start_date, end_date.
    """
    if request.method == 'POST':
        entry = create_debris_entry(request.data, user=request.user)
        create_audit_log(
            request, 'DEBRIS_ENTRY_CREATED', 'DEBRIS_ENTRY', entry.id,
            f"Debris entry of {entry.volume} m3 logged",
            metadata={'customer_id': entry.customer_id, 'supplier_id': entry.supplier_id, 'volume': entry.volume},
        )
        return Response(_debris_data(entry), status=status.HTTP_201_CREATED)

    params = request.query_params
    entries = _debris_queryset().order_by('-date', '-id')

    entry_status = (params.get('status') or '').upper()
    if entry_status:
        if entry_status not in (DebrisEntry.STATUS_PENDING, DebrisEntry.STATUS_REMOVED):
            return Response({'error': 'Invalid status filter'}, status=status.HTTP_400_BAD_REQUEST)
        entries = entries.filter(status=entry_status)

    for name in ('customer_id', 'supplier_id'):
        try:
            value = parse_int(params.get(name))
        except ValueError:
            return Response({'error': f'Invalid {name}'}, status=status.HTTP_400_BAD_REQUEST)
        if value:
            entries = entries.filter(**{name: value})

    if 'paid' in params:
        paid = parse_bool(params.get('paid'))
        if paid is None:
            return Response({'error': 'Invalid paid filter'}, status=status.HTTP_400_BAD_REQUEST)
        entries = entries.filter(removal_payment__isnull=not paid)

    try:
        start = parse_date(params.get('start_date'))
        end = parse_date(params.get('end_date'))
    except ValueError:
        return Response({'error': 'Invalid date range'}, status=status.HTTP_400_BAD_REQUEST)
    if start:
        entries = entries.filter(date__gte=start_of_day(start))
    if end:
        entries = entries.filter(date__lte=end_of_day(end))

    return Response(DebrisEntrySerializer(entries, many=True).data)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(DEBRIS_PERMISSIONS)
def debris_detail(request, pk):
    entry = get_object_or_404(_debris_queryset(), pk=pk)
    if request.method == 'GET':
        return Response(DebrisEntrySerializer(entry).data)

    if request.method == 'PUT':
        update_debris_entry(entry, request.data)
        create_audit_log(request, 'DEBRIS_ENTRY_UPDATED', 'DEBRIS_ENTRY', entry.id, f"Debris entry {entry.id} updated")
        return Response(_debris_data(entry))

    delete_debris_entry(entry)
    create_audit_log(request, 'DEBRIS_ENTRY_DELETED', 'DEBRIS_ENTRY', pk, f"Debris entry {pk} deleted")
    return Response({'message': 'Debris entry deleted'})


@api_view(['POST'])
@permission_classes(DEBRIS_PERMISSIONS)
def debris_mark_paid(request, pk):
    entry = get_object_or_404(_debris_queryset(), pk=pk)
    mark_removal_paid(entry, request.data, user=request.user)
    create_audit_log(
        request, 'DEBRIS_REMOVAL_PAID', 'DEBRIS_ENTRY', entry.id,
        f"Debris entry {entry.id} removal paid ({entry.removal_cost})",
        metadata={'payment_id': entry.removal_payment_id, 'amount': entry.removal_cost},
    )
    return Response(_debris_data(entry))


@api_view(['POST'])
@permission_classes(DEBRIS_EDIT_PERMISSIONS)
def debris_mark_unpaid(request, pk):
    entry = get_object_or_404(_debris_queryset(), pk=pk)
    mark_removal_unpaid(entry)
    create_audit_log(
        request, 'DEBRIS_REMOVAL_UNPAID', 'DEBRIS_ENTRY', entry.id, f"Debris entry {entry.id} removal marked unpaid"
    )
    return Response(_debris_data(entry))
