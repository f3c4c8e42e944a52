"""Building invoices from outstanding receipts and settling them"""
import logging
import uuid

from django.db import transaction
from django.utils import timezone
from rest_framework import status

from buildledger.core.exceptions import ServiceError
from buildledger.core.utils import ZERO, clean_text, is_blank, money, parse_date, parse_decimal, parse_int
from buildledger.parties.models import Customer, JobSite
from buildledger.payments.models import Payment
from buildledger.payments.services import allocate_to_receipts, record_payment
from buildledger.receipts.models import Receipt
from buildledger.receipts.services import invoice_totals, receipt_queryset
from .models import Invoice, InvoiceReceipt

logger = logging.getLogger(__name__)


def invoice_number(invoice_id):
    return f"INV-{invoice_id:06d}"


def _receipt_ids(raw):
    if raw in (None, ''):
        return None
    if not isinstance(raw, list):
        raise ServiceError('receipt_ids must be a list')
    ids = []
    for value in raw:
        try:
            parsed = parse_int(value)
        except ValueError:
            raise ServiceError('receipt_ids must contain valid receipt ids')
        if parsed:
            ids.append(parsed)
    return ids


def invoice_candidates(customer, receipt_type, job_site=None, receipt_ids=None, amount=None):
    """
    Outstanding receipts of the customer not yet on any invoice, oldest first:
    the given ids, just enough receipts to reach `amount`, or all of one type.
    """
    receipts = receipt_queryset().filter(customer=customer, is_paid=False).order_by('date', 'id')
    if job_site is not None:
        receipts = receipts.filter(job_site=job_site)

    if receipt_ids:
        receipts = receipts.filter(pk__in=receipt_ids)
        if receipts.filter(invoice_link__isnull=False).exists():
            raise ServiceError('One or more receipts have already been invoiced.')
        if not receipts.exists():
            raise ServiceError('No matching receipts found for this customer')
        if len(set(receipts.values_list('type', flat=True))) > 1:
            raise ServiceError(
                'Invoices cannot mix NORMAL and TVA receipts. Please create separate invoices per type.'
            )
        return [receipt for receipt in receipts if receipt.total > receipt.amount_paid]

    receipts = [
        receipt for receipt in receipts.filter(type=receipt_type, invoice_link__isnull=True)
        if receipt.total > receipt.amount_paid
    ]
    if amount is None:
        return receipts
    selected = []
    running = ZERO
    for receipt in receipts:
        selected.append(receipt)
        running += receipt.total - receipt.amount_paid
        if running >= amount:
            break
    if not selected:
        raise ServiceError('No receipts available to meet the requested amount')
    return selected


def create_invoice(data, user=None):
    try:
        customer_id = parse_int(data.get('customer_id'))
    except ValueError:
        customer_id = None
    if customer_id is None:
        raise ServiceError('customer_id is required')
    customer = Customer.objects.filter(pk=customer_id).first()
    if customer is None:
        raise ServiceError('Customer not found', status.HTTP_404_NOT_FOUND)

    job_site = None
    try:
        job_site_id = parse_int(data.get('job_site_id'))
    except ValueError:
        raise ServiceError('Invalid job site')
    if job_site_id is not None:
        job_site = JobSite.objects.filter(pk=job_site_id, customer=customer).first()
        if job_site is None:
            raise ServiceError('Selected job site does not belong to this customer')

    receipt_type = (clean_text(data.get('receipt_type')) or customer.receipt_type).upper()
    if receipt_type not in (Receipt.TYPE_NORMAL, Receipt.TYPE_TVA):
        raise ServiceError('receipt_type must be NORMAL or TVA')

    receipt_ids = _receipt_ids(data.get('receipt_ids'))
    amount = None
    if not receipt_ids and not is_blank(data.get('amount')):
        try:
            amount = parse_decimal(data.get('amount'))
        except ValueError:
            amount = None
        if amount is None or amount <= 0:
            raise ServiceError('amount must be a positive number')

    with transaction.atomic():
        receipts = invoice_candidates(customer, receipt_type, job_site, receipt_ids, amount)
        if not receipts:
            raise ServiceError('No outstanding receipts to invoice for this customer')
        totals = invoice_totals(receipts)
        invoice = Invoice.objects.create(
            invoice_no=f"TMP-{uuid.uuid4().hex[:12]}",
            customer=customer,
            job_site=job_site,
            receipt_type=totals['receipt_type'],
            subtotal=totals['subtotal'],
            vat_rate=totals['vat_rate'],
            vat_amount=totals['vat_amount'],
            total=totals['total'],
            amount_paid=totals['amount_paid'],
            outstanding=totals['outstanding'],
            notes=clean_text(data.get('notes')),
            issued_at=timezone.now(),
            created_by=user,
        )
        invoice.invoice_no = invoice_number(invoice.id)
        invoice.save(update_fields=['invoice_no'])
        InvoiceReceipt.objects.bulk_create([
            InvoiceReceipt(invoice=invoice, receipt=receipt) for receipt in receipts
        ])
    logger.info(f"Invoice {invoice.invoice_no} created for customer {customer.id} ({len(receipts)} receipts)")
    return invoice


def invoice_receipts(invoice):
    return list(
        receipt_queryset().filter(invoice_link__invoice=invoice).order_by('date', 'id')
    )


def refresh_invoice_balance(invoice):
    """Pull paid and outstanding amounts from the invoice receipts"""
    if invoice.status == Invoice.STATUS_CANCELLED:
        return invoice
    receipts = invoice_receipts(invoice)
    amount_paid = sum((receipt.amount_paid for receipt in receipts), ZERO)
    outstanding = sum((max(receipt.total - receipt.amount_paid, ZERO) for receipt in receipts), ZERO)
    if money(amount_paid) != invoice.amount_paid or money(outstanding) != invoice.outstanding:
        invoice.amount_paid = money(amount_paid)
        invoice.outstanding = money(outstanding)
        invoice.save(update_fields=['amount_paid', 'outstanding', 'updated_at'])
    return invoice


def mark_invoice_paid(invoice, data=None, user=None):
    """Settle whatever the invoice receipts still owe with one customer payment"""
    data = data or {}
    if invoice.status == Invoice.STATUS_PAID:
        raise ServiceError('Invoice already marked as paid')
    if invoice.status == Invoice.STATUS_CANCELLED:
        raise ServiceError('Cancelled invoices cannot be paid')
    try:
        paid_at = parse_date(data.get('paid_at')) or timezone.now()
    except ValueError:
        raise ServiceError('Invalid paid_at date')

    with transaction.atomic():
        receipts = list(
            Receipt.objects.select_for_update().filter(invoice_link__invoice=invoice).order_by('date', 'id')
        )
        outstanding = money(sum((max(r.total - r.amount_paid, ZERO) for r in receipts), ZERO))
        payment = None
        if outstanding > 0:
            payment = record_payment(
                Payment.TYPE_CUSTOMER_PAYMENT, outstanding,
                created_by=user,
                apply_to_receipts=False,
                customer=invoice.customer,
                date=paid_at,
                description=clean_text(data.get('description')) or f"Payment for invoice {invoice.invoice_no}",
                reference=invoice.invoice_no,
            )
            allocate_to_receipts(payment, receipts, outstanding)
        invoice.status = Invoice.STATUS_PAID
        invoice.paid_at = paid_at
        invoice.amount_paid = invoice.total
        invoice.outstanding = ZERO
        invoice.save(update_fields=['status', 'paid_at', 'amount_paid', 'outstanding', 'updated_at'])
    return invoice, payment


def delete_invoice(invoice):
    if invoice.status == Invoice.STATUS_PAID:
        raise ServiceError('Paid invoices cannot be deleted')
    invoice.delete()
