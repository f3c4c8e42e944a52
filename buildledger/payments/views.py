import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildledger.core.permissions import ManagerOrAdmin, require_permission
from buildledger.core.utils import create_audit_log, parse_int
from .models import Payment
from .serializers import PaymentSerializer
from .services import apply_payment, clean_payment_input, delete_payment, record_payment, revert_payment

logger = logging.getLogger(__name__)

PAYMENT_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin, require_permission('payments:manage')]


def _payment_queryset():
    return Payment.objects.select_related(
        'customer', 'supplier', 'receipt', 'created_by', 'payroll_entry__employee', 'removed_debris'
    ).prefetch_related('receipt_links__receipt', 'inventory_links__entry')


# Payment views
@api_view(['GET', 'POST'])
@permission_classes(PAYMENT_PERMISSIONS)
def payment_list_create(request):
    """
    List payments (newest first) or record one.

    Query params: type, supplier_id, customer_id, receipt_id, employee_id, description.
    """
    if request.method == 'POST':
        fields, options = clean_payment_input(request.data)
        payment = record_payment(fields.pop('type'), fields.pop('amount'), created_by=request.user,
                                 **options, **fields)
        create_audit_log(
            request, 'PAYMENT_CREATED', 'PAYMENT', payment.id,
            f"{payment.type} payment of {payment.amount} recorded",
            metadata={'type': payment.type, 'amount': payment.amount},
        )
        return Response(PaymentSerializer(_payment_queryset().get(pk=payment.pk)).data,
                        status=status.HTTP_201_CREATED)

    params = request.query_params
    payments = _payment_queryset().order_by('-date', '-id')

    payment_type = (params.get('type') or '').upper()
    if payment_type:
        if payment_type not in Payment.TYPES:
            return Response({'error': 'Invalid payment type filter'}, status=status.HTTP_400_BAD_REQUEST)
        payments = payments.filter(type=payment_type)

    filters = {
        'supplier_id': 'supplier_id',
        'customer_id': 'customer_id',
        'receipt_id': 'receipt_id',
        'employee_id': 'payroll_entry__employee_id',
    }
    for param, lookup in filters.items():
        try:
            value = parse_int(params.get(param))
        except ValueError:
            return Response({'error': f'Invalid {param}'}, status=status.HTTP_400_BAD_REQUEST)
        if value:
            payments = payments.filter(**{lookup: value})

    description = (params.get('description') or '').strip()
    if description:
        payments = payments.filter(description__icontains=description)

    return Response(PaymentSerializer(payments, many=True).data)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(PAYMENT_PERMISSIONS)
def payment_detail(request, pk):
    """Retrieve, re-apply with new values, or delete a payment and undo its effects"""
    payment = get_object_or_404(Payment, pk=pk)

    if request.method == 'GET':
        return Response(PaymentSerializer(_payment_queryset().get(pk=pk)).data)

    if request.method == 'PUT':
        fields, options = clean_payment_input(request.data, existing=payment)
        with transaction.atomic():
            revert_payment(payment)
            for field, value in fields.items():
                setattr(payment, field, value)
            payment.save()
            apply_payment(payment, **options)
        create_audit_log(
            request, 'PAYMENT_UPDATED', 'PAYMENT', payment.id,
            f"Payment {payment.id} updated",
            metadata={'type': payment.type, 'amount': payment.amount},
        )
        return Response(PaymentSerializer(_payment_queryset().get(pk=pk)).data)

    amount, payment_type = payment.amount, payment.type
    delete_payment(payment)
    create_audit_log(
        request, 'PAYMENT_DELETED', 'PAYMENT', pk, f"{payment_type} payment {pk} deleted",
        metadata={'type': payment_type, 'amount': amount},
    )
    return Response(status=status.HTTP_204_NO_CONTENT)
