"""Customer and supplier balances, account merges and paired settlements"""
import logging

from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone
from rest_framework import status

from buildledger.core.exceptions import ServiceError
from buildledger.core.utils import ZERO, money, parse_int
from buildledger.debris.models import DebrisEntry
from buildledger.fleet.models import TruckRepair
from buildledger.inventory.models import InventoryEntry
from buildledger.invoices.models import Invoice
from buildledger.payments.models import Payment
from buildledger.payments.services import customer_receivable, entry_amount, record_payment, supplier_payable
from buildledger.receipts.models import Receipt
from .models import Customer, Supplier, JobSite, CustomerSupplierLink

logger = logging.getLogger(__name__)


def customer_outstanding_map():
    """{customer_id: Σ max(total - amount_paid, 0)} over every receipt"""
    rows = Receipt.objects.filter(
        customer_id__isnull=False, total__gt=F('amount_paid')
    ).values('customer_id').annotate(outstanding=Sum(F('total') - F('amount_paid')))
    return {row['customer_id']: money(row['outstanding']) for row in rows}


def supplier_payable_map():
    """{supplier_id: unpaid purchase cost}"""
    balances = {}
    entries = InventoryEntry.objects.filter(
        supplier_id__isnull=False, type=InventoryEntry.TYPE_PURCHASE, is_paid=False
    ).only('supplier_id', 'total_cost', 'unit_cost', 'quantity', 'amount_paid')
    for entry in entries:
        outstanding = max(entry_amount(entry) - entry.amount_paid, ZERO)
        balances[entry.supplier_id] = balances.get(entry.supplier_id, ZERO) + outstanding
    return balances


def set_manual_balance(account, amount, note, user):
    """Store or clear (amount None) a manual balance override on a customer or supplier"""
    account.manual_balance_override = amount
    account.manual_balance_note = note if amount is not None else None
    account.manual_balance_updated_at = timezone.now() if amount is not None else None
    account.manual_balance_updated_by = user if amount is not None else None
    account.save(update_fields=[
        'manual_balance_override', 'manual_balance_note',
        'manual_balance_updated_at', 'manual_balance_updated_by', 'updated_at',
    ])
    return account


def parse_merge_ids(data):
    try:
        source = parse_int(data.get('source_id'))
        target = parse_int(data.get('target_id'))
    except ValueError:
        source = target = None
    if source is None or target is None:
        raise ServiceError('Both source_id and target_id must be valid numbers')
    if source == target:
        raise ServiceError('source_id and target_id must be different')
    return source, target


def _combine_overrides(source, target):
    if source.manual_balance_override is None and not source.manual_balance_note:
        return
    target.manual_balance_override = (target.manual_balance_override or ZERO) + (source.manual_balance_override or ZERO)
    target.manual_balance_note = source.manual_balance_note or target.manual_balance_note
    target.manual_balance_updated_at = timezone.now()
    target.save(update_fields=[
        'manual_balance_override', 'manual_balance_note', 'manual_balance_updated_at', 'updated_at'
    ])


def merge_customers(source_id, target_id):
    """Move everything owned by the source customer onto the target and delete the source"""
    with transaction.atomic():
        customers = {c.id: c for c in Customer.objects.select_for_update().filter(id__in=[source_id, target_id])}
        if len(customers) != 2:
            raise ServiceError('One or both customer IDs do not exist')
        source, target = customers[source_id], customers[target_id]

        Receipt.objects.filter(customer_id=source_id).update(customer_id=target_id)
        Payment.objects.filter(customer_id=source_id).update(customer_id=target_id)
        JobSite.objects.filter(customer_id=source_id).update(customer_id=target_id)
        Invoice.objects.filter(customer_id=source_id).update(customer_id=target_id)
        DebrisEntry.objects.filter(customer_id=source_id).update(customer_id=target_id)
        CustomerSupplierLink.objects.filter(customer_id=source_id).delete()

        _combine_overrides(source, target)
        source.delete()
    logger.info(f"Merged customer {source_id} into {target_id}")
    return source, target


def merge_suppliers(source_id, target_id):
    with transaction.atomic():
        suppliers = {s.id: s for s in Supplier.objects.select_for_update().filter(id__in=[source_id, target_id])}
        if len(suppliers) != 2:
            raise ServiceError('One or both supplier IDs do not exist')
        source, target = suppliers[source_id], suppliers[target_id]

        InventoryEntry.objects.filter(supplier_id=source_id).update(supplier_id=target_id)
        Payment.objects.filter(supplier_id=source_id).update(supplier_id=target_id)
        TruckRepair.objects.filter(supplier_id=source_id).update(supplier_id=target_id)
        DebrisEntry.objects.filter(supplier_id=source_id).update(supplier_id=target_id)
        CustomerSupplierLink.objects.filter(supplier_id=source_id).delete()

        _combine_overrides(source, target)
        source.delete()
    logger.info(f"Merged supplier {source_id} into {target_id}")
    return source, target


def pair_customer_supplier(customer, supplier):
    """Link a customer and supplier 1:1, dropping any earlier pairing of either"""
    with transaction.atomic():
        CustomerSupplierLink.objects.filter(customer=customer).delete()
        CustomerSupplierLink.objects.filter(supplier=supplier).delete()
        return CustomerSupplierLink.objects.create(customer=customer, supplier=supplier)


def settle_pair(link, user=None):
    """
    Offset what the paired customer owes against what we owe the paired
    supplier. Records one CUSTOMER_PAYMENT and one SUPPLIER payment for the
    smaller of the two balances, each applied oldest-first.
    """
    receivable = customer_receivable(link.customer_id)
    payable = supplier_payable(link.supplier_id)
    amount = money(min(receivable, payable))
    result = {
        'customer_id': link.customer_id,
        'supplier_id': link.supplier_id,
        'receivable': receivable,
        'payable': payable,
        'settled_amount': ZERO,
        'customer_payment_id': None,
        'supplier_payment_id': None,
    }
    if amount <= 0:
        return result

    now = timezone.now()
    with transaction.atomic():
        customer_payment = record_payment(
            Payment.TYPE_CUSTOMER_PAYMENT, amount, created_by=user,
            customer_id=link.customer_id, date=now,
            description=f'Offset against supplier {link.supplier.name}',
            reference=f'pair-settle-{link.id}',
        )
        supplier_payment = record_payment(
            Payment.TYPE_SUPPLIER, amount, created_by=user,
            supplier_id=link.supplier_id, date=now,
            description=f'Offset against customer {link.customer.name}',
            reference=f'pair-settle-{link.id}',
        )
    result.update({
        'settled_amount': amount,
        'customer_payment_id': customer_payment.id,
        'supplier_payment_id': supplier_payment.id,
    })
    logger.info(f"Settled pair {link.customer_id}/{link.supplier_id} for {amount}")
    return result


def get_link_or_error(link_id=None, customer_id=None):
    queryset = CustomerSupplierLink.objects.select_related('customer', 'supplier')
    link = None
    if link_id is not None:
        link = queryset.filter(pk=link_id).first()
    elif customer_id is not None:
        link = queryset.filter(customer_id=customer_id).first()
    if link is None:
        raise ServiceError('Customer/supplier pair not found', status.HTTP_404_NOT_FOUND)
    return link
