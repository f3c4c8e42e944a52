import logging
import math
from datetime import timedelta

from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildledger.core.permissions import ManagerOrAdmin, require_permission
from buildledger.core.utils import ZERO, create_audit_log, end_of_day, parse_bool, parse_date, parse_int, start_of_day
from buildledger.payroll.models import Employee
from buildledger.payroll.serializers import EmployeeSerializer, ManufacturingPieceRateSerializer
from .models import InventoryEntry
from .serializers import InventoryEntrySerializer, InventoryEntryDetailSerializer
from .services import (
    NUMBER_PREFIXES, next_inventory_number, labor_total, weekly_labor_summary,
    create_inventory_entry, update_inventory_entry, delete_inventory_entry,
    purchase_payables, mark_entry_paid, production_payables, mark_labor_paid,
)

logger = logging.getLogger(__name__)

INVENTORY_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin, require_permission('inventory:manage')]

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 200
SORT_FIELDS = {
    'entry_date': 'entry_date',
    'created_at': 'created_at',
    'quantity': 'quantity',
    'product_name': 'product__name',
}


def _entry_queryset():
    return InventoryEntry.objects.select_related(
        'supplier', 'product', 'powder_product', 'cement_product', 'worker_employee', 'helper_employee'
    )


def _page_params(params):
    try:
        page = parse_int(params.get('page')) or 1
    except ValueError:
        page = 1
    try:
        page_size = min(parse_int(params.get('page_size')) or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)
    except ValueError:
        page_size = DEFAULT_PAGE_SIZE
    return page, page_size


def _paginate(entries, page, page_size):
    total = entries.count()
    offset = (page - 1) * page_size
    return {
        'entries': InventoryEntrySerializer(entries[offset:offset + page_size], many=True).data,
        'total': total,
        'page': page,
        'page_size': page_size,
        'total_pages': max(1, math.ceil(total / page_size)),
    }


# Inventory entry views
@api_view(['GET', 'POST'])
@permission_classes(INVENTORY_PERMISSIONS)
def inventory_list_create(request):
    """
    Paged inventory entries or create a purchase / production run.

    Query params: page, page_size, type, supplier_id, product_id, start_date,
    end_date, is_paid, sort_by (entry_date|created_at|quantity|product_name), order.
    """
    if request.method == 'POST':
        entry = create_inventory_entry(request.data, request.user)
        create_audit_log(
            request, 'INVENTORY_ENTRY_CREATED', 'INVENTORY_ENTRY', entry.id,
            f"{entry.type.title()} entry {entry.inventory_no} created",
            metadata={
                'product_id': entry.product_id,
                'quantity': entry.quantity,
                'total_cost': entry.total_cost,
                'labor_total': labor_total(entry) if entry.type == InventoryEntry.TYPE_PRODUCTION else None,
            },
        )
        return Response(InventoryEntrySerializer(_entry_queryset().get(pk=entry.pk)).data,
                        status=status.HTTP_201_CREATED)

    params = request.query_params
    entries = _entry_queryset()

    entry_type = (params.get('type') or '').upper()
    if entry_type:
        if entry_type not in NUMBER_PREFIXES:
            return Response({'error': 'Invalid type filter'}, status=status.HTTP_400_BAD_REQUEST)
        entries = entries.filter(type=entry_type)

    for name in ('supplier_id', 'product_id'):
        try:
            value = parse_int(params.get(name))
        except ValueError:
            return Response({'error': f'Invalid {name} filter'}, status=status.HTTP_400_BAD_REQUEST)
        if value:
            entries = entries.filter(**{name: value})

    try:
        start = parse_date(params.get('start_date'))
        end = parse_date(params.get('end_date'))
    except ValueError:
        return Response({'error': 'Invalid date range'}, status=status.HTTP_400_BAD_REQUEST)
    if start:
        entries = entries.filter(entry_date__gte=start_of_day(start))
    if end:
        entries = entries.filter(entry_date__lte=end_of_day(end))

    if 'is_paid' in params:
        is_paid = parse_bool(params.get('is_paid'))
        if is_paid is None:
            return Response({'error': 'Invalid is_paid filter'}, status=status.HTTP_400_BAD_REQUEST)
        entries = entries.filter(is_paid=is_paid)

    sort_by = params.get('sort_by') if params.get('sort_by') in SORT_FIELDS else 'entry_date'
    order = 'asc' if (params.get('order') or '').lower() == 'asc' else 'desc'
    prefix = '' if order == 'asc' else '-'
    ordering = [f'{prefix}{SORT_FIELDS[sort_by]}']
    if sort_by == 'product_name':
        ordering.append(f'{prefix}entry_date')
    entries = entries.order_by(*ordering, f'{prefix}id')

    page, page_size = _page_params(params)
    data = _paginate(entries, page, page_size)
    data.update({'sort_by': sort_by, 'order': order})
    return Response(data)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(INVENTORY_PERMISSIONS)
def inventory_detail(request, pk):
    """Retrieve with stock movements, edit a production run, or delete and revert stock"""
    entry = get_object_or_404(_entry_queryset(), pk=pk)

    if request.method == 'GET':
        entry = _entry_queryset().prefetch_related('stock_movements__product').get(pk=pk)
        return Response(InventoryEntryDetailSerializer(entry).data)

    if request.method == 'PUT':
        update_inventory_entry(entry, request.data, request.user)
        create_audit_log(
            request, 'INVENTORY_ENTRY_UPDATED', 'INVENTORY_ENTRY', entry.id,
            f"Production entry {entry.inventory_no} updated",
            metadata={'quantity': entry.quantity, 'labor_total': labor_total(entry)},
        )
        return Response(InventoryEntrySerializer(_entry_queryset().get(pk=entry.pk)).data)

    inventory_no = entry.inventory_no
    delete_inventory_entry(entry)
    create_audit_log(
        request, 'INVENTORY_ENTRY_DELETED', 'INVENTORY_ENTRY', pk, f"Inventory entry {inventory_no} deleted"
    )
    return Response({'message': 'Inventory entry deleted'})


@api_view(['GET'])
@permission_classes(INVENTORY_PERMISSIONS)
def production_history(request):
    params = request.query_params
    entries = _entry_queryset().filter(type=InventoryEntry.TYPE_PRODUCTION)
    try:
        product_id = parse_int(params.get('product_id'))
    except ValueError:
        return Response({'error': 'Invalid product_id filter'}, status=status.HTTP_400_BAD_REQUEST)
    if product_id:
        entries = entries.filter(product_id=product_id)

    order = 'asc' if (params.get('order') or '').lower() == 'asc' else 'desc'
    prefix = '' if order == 'asc' else '-'
    entries = entries.order_by(f'{prefix}entry_date', f'{prefix}created_at', f'{prefix}id')

    page, page_size = _page_params(params)
    data = _paginate(entries, page, page_size)
    data['order'] = order
    return Response(data)


@api_view(['GET'])
@permission_classes(INVENTORY_PERMISSIONS)
def inventory_next_number(request):
    return Response({
        'purchase': next_inventory_number(InventoryEntry.TYPE_PURCHASE),
        'production': next_inventory_number(InventoryEntry.TYPE_PRODUCTION),
    })


@api_view(['GET'])
@permission_classes(INVENTORY_PERMISSIONS)
def production_workers(request):
    """Active manufacturing staff with their piece rates"""
    workers = Employee.objects.filter(
        active=True, role=Employee.ROLE_MANUFACTURING
    ).prefetch_related('piece_rates__product').order_by('name')
    data = []
    for worker in workers:
        item = EmployeeSerializer(worker).data
        item['piece_rates'] = ManufacturingPieceRateSerializer(worker.piece_rates.all(), many=True).data
        data.append(item)
    return Response(data)


# Payables views
@api_view(['GET'])
@permission_classes(INVENTORY_PERMISSIONS)
def inventory_payables(request):
    total_due, entries = purchase_payables()
    return Response({
        'total_due': total_due,
        'entries': InventoryEntrySerializer(entries, many=True).data,
    })


@api_view(['POST'])
@permission_classes(INVENTORY_PERMISSIONS)
def inventory_mark_paid(request, pk):
    entry = get_object_or_404(_entry_queryset(), pk=pk)
    mark_entry_paid(entry, user=request.user)
    create_audit_log(
        request, 'INVENTORY_ENTRY_MARKED_PAID', 'INVENTORY_ENTRY', entry.id,
        f"Inventory entry {entry.inventory_no} marked as paid",
        metadata={'supplier_id': entry.supplier_id, 'product_id': entry.product_id, 'total_cost': entry.total_cost},
    )
    return Response(InventoryEntrySerializer(_entry_queryset().get(pk=entry.pk)).data)


@api_view(['GET'])
@permission_classes(INVENTORY_PERMISSIONS)
def inventory_production_payables(request):
    entries = list(production_payables())
    total_due = sum((labor_total(entry) for entry in entries), ZERO)
    return Response({
        'total_due': total_due,
        'entries': InventoryEntrySerializer(entries, many=True).data,
    })


@api_view(['GET'])
@permission_classes(INVENTORY_PERMISSIONS)
def production_payables_weekly_summary(request):
    """Unpaid production labor per worker and helper, current week (Mon-Sun) by default"""
    try:
        start = parse_date(request.query_params.get('start'))
        end = parse_date(request.query_params.get('end'))
    except ValueError:
        return Response({'error': 'Invalid date range'}, status=status.HTTP_400_BAD_REQUEST)
    if start is None:
        today = timezone.localtime()
        start = start_of_day(today - timedelta(days=today.weekday()))
    if end is None:
        end = start_of_day(start) + timedelta(days=7) - timedelta(microseconds=1)

    entries = production_payables(start, end)
    return Response({
        'start': start,
        'end': end,
        'workers': weekly_labor_summary(entries),
    })


@api_view(['POST'])
@permission_classes(INVENTORY_PERMISSIONS)
def inventory_mark_labor_paid(request, pk):
    try:
        paid_at = parse_date(request.data.get('paid_at'))
    except ValueError:
        return Response({'error': 'Invalid paid_at date'}, status=status.HTTP_400_BAD_REQUEST)

    entry = mark_labor_paid(pk, paid_at=paid_at, user=request.user)
    create_audit_log(
        request, 'PRODUCTION_LABOR_MARKED_PAID', 'INVENTORY_ENTRY', entry.id,
        f"Production entry {entry.inventory_no} labor marked as paid",
        metadata={
            'paid_at': entry.labor_paid_at,
            'labor_amount': entry.labor_amount,
            'helper_labor_amount': entry.helper_labor_amount,
        },
    )
    return Response(InventoryEntrySerializer(_entry_queryset().get(pk=entry.pk)).data)
