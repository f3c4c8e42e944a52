import logging
import math

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildledger.core.permissions import IsAdminRole, ManagerOrAdmin, require_permission
from buildledger.core.utils import create_audit_log, end_of_day, parse_bool, parse_date, parse_int
from buildledger.parties.models import Customer
from buildledger.parties.serializers import CustomerSerializer, JobSiteSerializer
from buildledger.parties.services import customer_outstanding_map
from .models import Receipt
from .serializers import ReceiptSerializer, FlaggedReceiptSerializer
from .services import (
    FLAG_TYPES, receipt_queryset, next_receipt_number,
    create_receipt, update_receipt, delete_receipt, change_receipt_number,
    record_flag_payment, bulk_flag_payment, flags_summary, weekly_flag_summary,
    default_week_range, invoice_preview,
)

logger = logging.getLogger(__name__)

RECEIPT_PERMISSIONS = [
    IsAuthenticated,
    ManagerOrAdmin,
    require_permission('receipts:view', ['GET', 'HEAD', 'OPTIONS']),
    require_permission('receipts:create', ['POST']),
    require_permission('receipts:update', ['PUT', 'PATCH']),
    require_permission('receipts:delete', ['DELETE']),
]
RECEIPT_VIEW_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin, require_permission('receipts:view')]
RECEIPT_UPDATE_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin, require_permission('receipts:update')]
WORKER_PERMISSIONS = [IsAuthenticated, require_permission('receipts:print')]

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500
SORT_FIELDS = {'date': 'date', 'receipt_no': 'receipt_no', 'total': 'total', 'amount_paid': 'amount_paid'}


def _receipt_data(receipt):
    return ReceiptSerializer(receipt_queryset().get(pk=receipt.pk)).data


def _int_filter(params, name):
    value = params.get(name)
    if value in (None, ''):
        return None
    try:
        return parse_int(value)
    except ValueError:
        return False


def _bool_filter(params, name):
    """None when absent, False/True when given, 'invalid' otherwise"""
    if name not in params:
        return None
    value = parse_bool(params.get(name))
    return 'invalid' if value is None else value


# Receipt views
@api_view(['GET', 'POST'])
@permission_classes(RECEIPT_PERMISSIONS)
def receipt_list_create(request):
    """List every receipt (newest first) or create a numbered receipt"""
    if request.method == 'GET':
        receipts = receipt_queryset().order_by('-date', '-id')
        return Response(ReceiptSerializer(receipts, many=True).data)

    receipt = create_receipt(request.data, user=request.user)
    create_audit_log(
        request, 'RECEIPT_CREATED', 'RECEIPT', receipt.id,
        f"Receipt {receipt.receipt_no} created for customer {receipt.customer_id or 'walk-in'}",
        metadata={'total': receipt.total, 'is_paid': receipt.is_paid},
    )
    return Response(_receipt_data(receipt), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes(RECEIPT_PERMISSIONS)
def receipt_paginated(request):
    """
    Filtered, sorted page of receipts.

    Query params: page, limit, type, customer_id, driver_id, truck_id, is_paid,
    start_date, end_date, tehmil, tenzil, flagged, search, product_id,
    sort_field (date|receipt_no|total|amount_paid), sort_order (asc|desc).
    """
    params = request.query_params
    try:
        limit = min(parse_int(params.get('limit')) or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)
    except ValueError:
        limit = DEFAULT_PAGE_SIZE
    try:
        page = parse_int(params.get('page')) or 1
    except ValueError:
        page = 1

    receipts = receipt_queryset()

    receipt_type = params.get('type')
    if receipt_type:
        if receipt_type.upper() not in (Receipt.TYPE_NORMAL, Receipt.TYPE_TVA):
            return Response({'error': 'Invalid type filter'}, status=status.HTTP_400_BAD_REQUEST)
        receipts = receipts.filter(type=receipt_type.upper())

    for name in ('customer_id', 'driver_id', 'truck_id'):
        value = _int_filter(params, name)
        if value is False:
            return Response({'error': f'Invalid {name}'}, status=status.HTTP_400_BAD_REQUEST)
        if value:
            receipts = receipts.filter(**{name: value})

    for name in ('is_paid', 'tehmil', 'tenzil'):
        value = _bool_filter(params, name)
        if value == 'invalid':
            label = 'is_paid value' if name == 'is_paid' else f'{name} filter'
            return Response({'error': f'Invalid {label}'}, status=status.HTTP_400_BAD_REQUEST)
        if value is not None:
            receipts = receipts.filter(**{name: value})

    flagged = _bool_filter(params, 'flagged')
    if flagged == 'invalid':
        return Response({'error': 'Invalid flagged filter'}, status=status.HTTP_400_BAD_REQUEST)
    if flagged is True:
        receipts = receipts.filter(Q(tehmil=True) | Q(tenzil=True))
    elif flagged is False:
        receipts = receipts.filter(tehmil=False, tenzil=False)

    try:
        start = parse_date(params.get('start_date'))
    except ValueError:
        return Response({'error': 'Invalid start_date value'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        end = parse_date(params.get('end_date'))
    except ValueError:
        return Response({'error': 'Invalid end_date value'}, status=status.HTTP_400_BAD_REQUEST)
    if start:
        receipts = receipts.filter(date__gte=start)
    if end:
        receipts = receipts.filter(date__lte=end_of_day(end))

    search = (params.get('search') or '').strip()
    if search:
        receipts = receipts.filter(
            Q(receipt_no__icontains=search)
            | Q(walk_in_name__icontains=search)
            | Q(customer__name__icontains=search)
            | Q(driver__name__icontains=search)
            | Q(truck__plate_no__icontains=search)
        )

    product_id = _int_filter(params, 'product_id')
    if product_id is False:
        return Response({'error': 'Invalid product_id'}, status=status.HTTP_400_BAD_REQUEST)
    if product_id:
        receipts = receipts.filter(items__product_id=product_id).distinct()

    total_items = receipts.count()
    total_pages = max(math.ceil(total_items / limit), 1)
    page = min(page, total_pages)

    descending = (params.get('sort_order') or '').lower() != 'asc'
    sort_field = SORT_FIELDS.get(params.get('sort_field'))
    if sort_field:
        prefix = '-' if descending else ''
        receipts = receipts.order_by(f'{prefix}{sort_field}', f'{prefix}id')
    else:
        receipts = receipts.order_by('-date', '-id')

    offset = (page - 1) * limit
    return Response({
        'items': ReceiptSerializer(receipts[offset:offset + limit], many=True).data,
        'page': page,
        'page_size': limit,
        'total_items': total_items,
        'total_pages': total_pages,
        'has_next': page < total_pages,
    })


@api_view(['GET'])
@permission_classes(RECEIPT_PERMISSIONS)
def receipt_next_number(request):
    return Response({
        'normal': next_receipt_number(Receipt.TYPE_NORMAL),
        'tva': next_receipt_number(Receipt.TYPE_TVA),
    })


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(RECEIPT_PERMISSIONS)
def receipt_detail(request, pk):
    """Retrieve, edit (header and items) or delete a receipt"""
    receipt = get_object_or_404(receipt_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(ReceiptSerializer(receipt).data)

    if request.method == 'PUT':
        receipt = update_receipt(receipt, request.data)
        create_audit_log(
            request, 'RECEIPT_UPDATED', 'RECEIPT', receipt.id, f"Receipt {receipt.receipt_no} updated",
            metadata={'total': receipt.total, 'amount_paid': receipt.amount_paid, 'is_paid': receipt.is_paid},
        )
        return Response(_receipt_data(receipt))

    receipt_no, total, customer_id = receipt.receipt_no, receipt.total, receipt.customer_id
    delete_receipt(receipt)
    create_audit_log(
        request, 'RECEIPT_DELETED', 'RECEIPT', pk, f"Receipt {receipt_no} deleted",
        metadata={'total': total, 'customer_id': customer_id},
    )
    return Response({'message': 'Receipt deleted'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def receipt_number_override(request, pk):
    receipt = get_object_or_404(Receipt, pk=pk)
    change_receipt_number(receipt, request.data.get('receipt_no'))
    create_audit_log(
        request, 'RECEIPT_NUMBER_OVERRIDE', 'RECEIPT', receipt.id,
        f"Receipt number changed to {receipt.receipt_no}", metadata={'receipt_no': receipt.receipt_no},
    )
    return Response(_receipt_data(receipt))


# Loading / unloading fee views
def _flag_payment(request, pk, flag_type):
    receipt = get_object_or_404(Receipt, pk=pk)
    result = record_flag_payment(receipt, flag_type, request.data)
    create_audit_log(
        request, f'{flag_type}_PAYMENT_RECORDED', 'RECEIPT', receipt.id,
        f"{flag_type.title()} payment recorded for receipt {receipt.receipt_no}",
        metadata={'amount': result['amount'], 'date': result['paid_at'], 'quantity': result['quantity']},
    )
    return Response(result)


@api_view(['POST'])
@permission_classes(RECEIPT_UPDATE_PERMISSIONS)
def receipt_tehmil_payment(request, pk):
    return _flag_payment(request, pk, 'TEHMIL')


@api_view(['POST'])
@permission_classes(RECEIPT_UPDATE_PERMISSIONS)
def receipt_tenzil_payment(request, pk):
    return _flag_payment(request, pk, 'TENZIL')


@api_view(['POST'])
@permission_classes(RECEIPT_UPDATE_PERMISSIONS)
def receipt_flags_bulk_payment(request):
    result = bulk_flag_payment(request.data)
    create_audit_log(
        request, f"{result['type']}_BULK_PAYMENT", 'RECEIPT', None,
        f"{result['type']} bulk payment recorded for {result['receipt_count']} receipts",
        metadata={
            'start': result['start'], 'end': result['end'], 'payment_date': result['payment_date'],
            'total_outstanding': result['total_outstanding'], 'receipt_ids': result['receipt_ids'],
        },
    )
    return Response({
        'receipt_count': result['receipt_count'],
        'total_outstanding': result['total_outstanding'],
        'overpayment': result['overpayment'],
        'payment_date': result['payment_date'],
    })


@api_view(['GET'])
@permission_classes(RECEIPT_VIEW_PERMISSIONS)
def receipt_flags_summary(request):
    try:
        limit = min(parse_int(request.query_params.get('limit')) or 100, 1000)
    except ValueError:
        limit = 100
    try:
        start = parse_date(request.query_params.get('start_date'))
        end = parse_date(request.query_params.get('end_date'))
    except ValueError:
        start = end = None

    summary, result = flags_summary(start, end, limit)
    payload = {'summary': summary}
    for flag_type in FLAG_TYPES:
        key = flag_type.lower()
        receipts, fees = result[key]
        payload[f'{key}_due'] = FlaggedReceiptSerializer(receipts, many=True, context={'fees': fees}).data
    return Response(payload)


@api_view(['GET'])
@permission_classes(RECEIPT_VIEW_PERMISSIONS)
def receipt_flags_weekly_summary(request):
    default_start, default_end = default_week_range()
    try:
        start = parse_date(request.query_params.get('start')) or default_start
        end = parse_date(request.query_params.get('end')) or default_end
    except ValueError:
        return Response({'error': 'Invalid date range'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(weekly_flag_summary(start, end))


@api_view(['POST'])
@permission_classes(RECEIPT_VIEW_PERMISSIONS)
def customer_invoice_preview(request, customer_id):
    """Preview an invoice for a customer's receipts, optionally repricing lines first"""
    customer = get_object_or_404(Customer, pk=customer_id)
    preview, repriced = invoice_preview(customer, request.data)
    for receipt in repriced:
        create_audit_log(
            request, 'RECEIPT_PRICING_UPDATED', 'RECEIPT', receipt.id,
            f"Receipt {receipt.receipt_no} pricing updated via invoice builder",
            metadata={'total': receipt.total},
        )
    totals = preview['totals']
    return Response({
        'generated_at': preview['generated_at'],
        'customer': CustomerSerializer(customer, context={'balances': customer_outstanding_map()}).data,
        'job_site': JobSiteSerializer(preview['job_site']).data if preview['job_site'] else None,
        'invoice': {
            'receipt_count': len(preview['receipts']),
            'receipts': ReceiptSerializer(preview['receipts'], many=True).data,
            **totals,
            'old_balance': preview['old_balance'],
        },
    })


# Worker views
@api_view(['GET'])
@permission_classes(WORKER_PERMISSIONS)
def worker_receipt_print(request, pk):
    receipt = get_object_or_404(receipt_queryset(), pk=pk)
    return Response(ReceiptSerializer(receipt).data)


@api_view(['POST'])
@permission_classes(WORKER_PERMISSIONS)
def worker_receipt_print_log(request, pk):
    receipt = get_object_or_404(Receipt, pk=pk)
    create_audit_log(
        request, 'RECEIPT_PRINTED', 'RECEIPT', receipt.id, f"Receipt {receipt.receipt_no} printed",
        metadata={'receipt_no': receipt.receipt_no},
    )
    return Response({'message': 'Print logged'})


@api_view(['GET'])
@permission_classes(WORKER_PERMISSIONS)
def worker_receipt_by_number(request, receipt_no):
    receipt = receipt_queryset().filter(receipt_no__iexact=receipt_no.strip()).first()
    if receipt is None:
        return Response({'error': 'Receipt not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response(ReceiptSerializer(receipt).data)
