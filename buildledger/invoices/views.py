import logging

from django.db.models import Count
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildledger.core.permissions import view_or_manage
from buildledger.core.utils import create_audit_log, parse_int
from buildledger.receipts.services import customer_old_balance
from .models import Invoice
from .serializers import InvoiceSerializer, InvoiceDetailSerializer
from .services import create_invoice, delete_invoice, invoice_receipts, mark_invoice_paid, refresh_invoice_balance

logger = logging.getLogger(__name__)

INVOICE_PERMISSIONS = [IsAuthenticated, *view_or_manage('invoices:view', 'invoices:manage')]


def _invoice_data(invoice):
    invoice = Invoice.objects.select_related('customer', 'job_site').get(pk=invoice.pk)
    receipts = invoice_receipts(invoice)
    data = InvoiceDetailSerializer(invoice, context={'receipts': receipts}).data
    data['old_balance'] = customer_old_balance(invoice.customer_id, [receipt.id for receipt in receipts])
    return data


# Invoice views
@api_view(['GET', 'POST'])
@permission_classes(INVOICE_PERMISSIONS)
def invoice_list_create(request):
    if request.method == 'POST':
        invoice = create_invoice(request.data, user=request.user)
        create_audit_log(
            request, 'INVOICE_CREATED', 'INVOICE', invoice.id,
            f"Invoice {invoice.invoice_no} created for customer {invoice.customer_id}",
            metadata={'total': invoice.total, 'receipt_type': invoice.receipt_type},
        )
        return Response(_invoice_data(invoice), status=status.HTTP_201_CREATED)

    invoices = Invoice.objects.select_related('customer', 'job_site').annotate(
        receipt_count=Count('invoice_receipts')
    ).order_by('-issued_at', '-id')
    try:
        customer_id = parse_int(request.query_params.get('customer_id'))
    except ValueError:
        return Response({'error': 'Invalid customer_id'}, status=status.HTTP_400_BAD_REQUEST)
    if customer_id:
        invoices = invoices.filter(customer_id=customer_id)
    invoice_status = (request.query_params.get('status') or '').upper()
    if invoice_status:
        if invoice_status not in Invoice.STATUSES:
            return Response({'error': 'Invalid status filter'}, status=status.HTTP_400_BAD_REQUEST)
        invoices = invoices.filter(status=invoice_status)
    return Response(InvoiceSerializer(invoices, many=True).data)


@api_view(['GET', 'DELETE'])
@permission_classes(INVOICE_PERMISSIONS)
def invoice_detail(request, pk):
    invoice = get_object_or_404(Invoice, pk=pk)
    if request.method == 'GET':
        refresh_invoice_balance(invoice)
        return Response(_invoice_data(invoice))

    if request.user.role != 'ADMIN':
        return Response({'error': 'Insufficient permissions'}, status=status.HTTP_403_FORBIDDEN)
    invoice_no = invoice.invoice_no
    delete_invoice(invoice)
    create_audit_log(request, 'INVOICE_DELETED', 'INVOICE', pk, f"Invoice {invoice_no} deleted")
    return Response({'message': 'Invoice deleted'})


@api_view(['POST'])
@permission_classes(INVOICE_PERMISSIONS)
def invoice_mark_paid(request, pk):
    invoice = get_object_or_404(Invoice.objects.select_related('customer'), pk=pk)
    invoice, payment = mark_invoice_paid(invoice, request.data, user=request.user)
    create_audit_log(
        request, 'INVOICE_MARKED_PAID', 'INVOICE', invoice.id,
        f"Invoice {invoice.invoice_no} marked as paid",
        metadata={'payment_id': payment.id if payment else None, 'total': invoice.total},
    )
    return Response(_invoice_data(invoice))
