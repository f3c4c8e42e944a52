"""
Payment application: validating payment payloads, allocating payments to
receipts and purchases, and undoing those effects again.
"""
import logging

from django.db import transaction
from django.utils import timezone
from rest_framework import status

from buildledger.catalog.utils import DEBRIS_NAME, adjust_stock, find_product_by_name
from buildledger.core.exceptions import ServiceError
from buildledger.core.utils import ZERO, clean_text, money, parse_bool, parse_date, parse_decimal, parse_int
from buildledger.inventory.models import InventoryEntry, StockMovement
from buildledger.parties.models import Customer, Supplier
from buildledger.payroll.models import PayrollEntry
from buildledger.receipts.models import Receipt
from .models import Payment, ReceiptPayment, InventoryPayment

logger = logging.getLogger(__name__)


def entry_amount(entry):
    """Cost of an inventory entry: stored total, else unit cost x quantity"""
    if entry.total_cost is not None:
        return money(entry.total_cost)
    if entry.unit_cost is not None:
        return money(entry.unit_cost * entry.quantity)
    return ZERO


def add_receipt_paid(receipt, delta):
    receipt.amount_paid = max(money(receipt.amount_paid + delta), ZERO)
    receipt.is_paid = receipt.total > 0 and receipt.amount_paid >= receipt.total
    receipt.save(update_fields=['amount_paid', 'is_paid', 'updated_at'])


def add_entry_paid(entry, delta):
    entry.amount_paid = max(money(entry.amount_paid + delta), ZERO)
    entry.is_paid = entry.amount_paid >= entry_amount(entry)
    entry.save(update_fields=['amount_paid', 'is_paid', 'updated_at'])


def linked_receipt_total(receipt):
    return sum((link.amount for link in receipt.payment_links.all()), ZERO)


def allocate_to_receipts(payment, receipts, amount):
    """Spread `amount` over receipts in the given order; returns what is left"""
    remaining = money(amount)
    for receipt in receipts:
        if remaining <= 0:
            break
        outstanding = receipt.total - receipt.amount_paid
        if outstanding <= 0:
            continue
        applied = min(outstanding, remaining)
        ReceiptPayment.objects.create(payment=payment, receipt=receipt, amount=applied)
        add_receipt_paid(receipt, applied)
        remaining -= applied
    return remaining


def allocate_to_entries(payment, entries, amount):
    remaining = money(amount)
    for entry in entries:
        if remaining <= 0:
            break
        outstanding = entry_amount(entry) - entry.amount_paid
        if outstanding <= 0:
            continue
        applied = min(outstanding, remaining)
        InventoryPayment.objects.create(payment=payment, entry=entry, amount=applied)
        add_entry_paid(entry, applied)
        remaining -= applied
    return remaining


def debris_product():
    product = find_product_by_name(DEBRIS_NAME)
    if product is None:
        raise ServiceError('Debris product is missing from the catalog.')
    return product


def move_debris_stock(volume, movement_type, date):
    product = debris_product()
    adjust_stock(product, volume)
    StockMovement.objects.create(product=product, date=date, type=movement_type, quantity=volume)


def apply_payment(payment, apply_to_receipts=True, apply_to_purchases=True,
                  payroll_entry=None, debris_entry=None):
    """Apply the effects of a saved payment. Call inside a transaction."""
    if payment.type == Payment.TYPE_RECEIPT and payment.receipt_id:
        receipt = Receipt.objects.select_for_update().get(pk=payment.receipt_id)
        allocate_to_receipts(payment, [receipt], payment.amount)

    elif payment.type == Payment.TYPE_CUSTOMER_PAYMENT and apply_to_receipts and payment.customer_id:
        receipts = Receipt.objects.select_for_update().filter(
            customer_id=payment.customer_id, is_paid=False
        ).order_by('date', 'id')
        allocate_to_receipts(payment, receipts, payment.amount)

    elif payment.type == Payment.TYPE_SUPPLIER and apply_to_purchases and payment.supplier_id:
        entries = InventoryEntry.objects.select_for_update().filter(
            supplier_id=payment.supplier_id, type=InventoryEntry.TYPE_PURCHASE, is_paid=False
        ).order_by('entry_date', 'id')
        allocate_to_entries(payment, entries, payment.amount)

    if payroll_entry is not None:
        if payroll_entry.payment_id and payroll_entry.payment_id != payment.id:
            raise ServiceError('Payroll entry already linked to a payment')
        payroll_entry.payment = payment
        payroll_entry.save(update_fields=['payment'])

    if debris_entry is not None:
        if debris_entry.removal_payment_id and debris_entry.removal_payment_id != payment.id:
            raise ServiceError('Debris entry already marked as removed')
        product = debris_product()
        product.refresh_from_db(fields=['stock_qty'])
        if product.stock_qty < debris_entry.volume:
            raise ServiceError('Not enough debris stock to remove the requested volume')
        debris_entry.status = debris_entry.STATUS_REMOVED
        debris_entry.removal_cost = payment.amount
        debris_entry.removal_date = payment.date
        debris_entry.removal_payment = payment
        debris_entry.save(update_fields=['status', 'removal_cost', 'removal_date', 'removal_payment', 'updated_at'])
        move_debris_stock(-debris_entry.volume, StockMovement.TYPE_SALE, payment.date)


def revert_payment(payment):
    """Undo everything apply_payment did for this payment"""
    for link in payment.receipt_links.select_related('receipt'):
        add_receipt_paid(link.receipt, -link.amount)
    payment.receipt_links.all().delete()

    for link in payment.inventory_links.select_related('entry'):
        add_entry_paid(link.entry, -link.amount)
    payment.inventory_links.all().delete()

    PayrollEntry.objects.filter(payment=payment).update(payment=None)

    from buildledger.debris.models import DebrisEntry
    for debris_entry in DebrisEntry.objects.filter(removal_payment=payment):
        debris_entry.status = DebrisEntry.STATUS_PENDING
        debris_entry.removal_date = None
        debris_entry.removal_payment = None
        debris_entry.save(update_fields=['status', 'removal_date', 'removal_payment', 'updated_at'])
        move_debris_stock(debris_entry.volume, StockMovement.TYPE_PURCHASE, timezone.now())


def record_payment(payment_type, amount, created_by=None, apply_to_receipts=True, apply_to_purchases=True,
                   payroll_entry=None, debris_entry=None, **fields):
    """Create a payment and apply it in one transaction"""
    if fields.get('date') is None:
        fields['date'] = timezone.now()
    with transaction.atomic():
        payment = Payment.objects.create(type=payment_type, amount=money(amount), created_by=created_by, **fields)
        apply_payment(
            payment,
            apply_to_receipts=apply_to_receipts,
            apply_to_purchases=apply_to_purchases,
            payroll_entry=payroll_entry,
            debris_entry=debris_entry,
        )
    logger.info(f"Payment {payment.id} recorded: {payment.type} {payment.amount}")
    return payment


def delete_payment(payment):
    with transaction.atomic():
        revert_payment(payment)
        payment.delete()


def _optional_id(data, field):
    try:
        return parse_int(data.get(field))
    except ValueError:
        raise ServiceError(f'Invalid {field}')


def clean_payment_input(data, existing=None):
    """
    Validate a payments API payload.
    Returns (fields, options) where `fields` are Payment column values and
    `options` are the keyword arguments for apply_payment.
    """
    try:
        amount = parse_decimal(data.get('amount'))
    except ValueError:
        amount = None
    if amount is None or amount <= 0:
        raise ServiceError('amount must be a positive number')

    payment_type = str(data.get('type') or '').strip().upper()
    if payment_type not in Payment.TYPES:
        raise ServiceError('Invalid payment type')

    try:
        date = parse_date(data.get('date'))
    except ValueError:
        raise ServiceError('Invalid payment date')

    supplier_id = _optional_id(data, 'supplier_id')
    customer_id = _optional_id(data, 'customer_id')
    receipt_id = _optional_id(data, 'receipt_id')
    payroll_entry_id = _optional_id(data, 'payroll_entry_id')
    debris_entry_id = _optional_id(data, 'debris_entry_id')

    if payment_type == Payment.TYPE_SUPPLIER and supplier_id is None:
        raise ServiceError('supplier_id is required for supplier payments')
    if payment_type == Payment.TYPE_RECEIPT and receipt_id is None:
        raise ServiceError('receipt_id is required for receipt payments')
    if payment_type in Payment.PAYROLL_TYPES and payroll_entry_id is None:
        raise ServiceError('payroll_entry_id is required for payroll payments')
    if payment_type == Payment.TYPE_DEBRIS_REMOVAL and debris_entry_id is None:
        raise ServiceError('debris_entry_id is required for debris removal payments')
    if payment_type == Payment.TYPE_CUSTOMER_PAYMENT and customer_id is None:
        raise ServiceError('customer_id is required for customer payments')

    supplier = customer = receipt = payroll_entry = debris_entry = None
    if supplier_id is not None:
        supplier = Supplier.objects.filter(pk=supplier_id).first()
        if supplier is None:
            raise ServiceError('Supplier not found', status.HTTP_404_NOT_FOUND)
    if customer_id is not None:
        customer = Customer.objects.filter(pk=customer_id).first()
        if customer is None:
            raise ServiceError('Customer not found', status.HTTP_404_NOT_FOUND)
    if receipt_id is not None:
        receipt = Receipt.objects.filter(pk=receipt_id).select_related('customer').first()
        if receipt is None:
            raise ServiceError('Receipt not found', status.HTTP_404_NOT_FOUND)
        if receipt.customer_id is None:
            raise ServiceError('customer_id is required for customer payments')
        if payment_type == Payment.TYPE_RECEIPT:
            customer = receipt.customer
    if payroll_entry_id is not None:
        payroll_entry = PayrollEntry.objects.filter(pk=payroll_entry_id).first()
        if payroll_entry is None:
            raise ServiceError('Payroll entry not found', status.HTTP_404_NOT_FOUND)
        if payroll_entry.payment_id and (existing is None or payroll_entry.payment_id != existing.id):
            raise ServiceError('Payroll entry already linked to a payment')
    if debris_entry_id is not None:
        from buildledger.debris.models import DebrisEntry
        debris_entry = DebrisEntry.objects.filter(pk=debris_entry_id).first()
        if debris_entry is None:
            raise ServiceError('Debris entry not found', status.HTTP_404_NOT_FOUND)
        if debris_entry.removal_payment_id and (existing is None or debris_entry.removal_payment_id != existing.id):
            raise ServiceError('Debris entry already marked as removed')

    is_customer_payment = payment_type == Payment.TYPE_CUSTOMER_PAYMENT
    fields = {
        'amount': money(amount),
        'type': payment_type,
        'description': clean_text(data.get('description')),
        'category': clean_text(data.get('category')),
        'reference': clean_text(data.get('reference')),
        'supplier': supplier if payment_type == Payment.TYPE_SUPPLIER else None,
        'customer': customer if payment_type in Payment.INFLOW_TYPES else None,
        'receipt': receipt if payment_type == Payment.TYPE_RECEIPT else None,
    }
    if date is not None:
        fields['date'] = date
    options = {
        'apply_to_receipts': parse_bool(data.get('apply_to_receipts'), True) if is_customer_payment else True,
        'apply_to_purchases': parse_bool(data.get('apply_to_purchases'), True),
        'payroll_entry': payroll_entry if payment_type in Payment.PAYROLL_TYPES else None,
        'debris_entry': debris_entry if payment_type == Payment.TYPE_DEBRIS_REMOVAL else None,
    }
    return fields, options


def repair_receipt_balance(receipt, dry_run=False):
    """
    Recompute a receipt's paid amount from its payment links, keeping any
    larger stored figure (cash taken when the receipt was written).
    Returns (old_paid, new_paid, changed).
    """
    old_paid = receipt.amount_paid
    linked = linked_receipt_total(receipt)
    new_paid = min(max(linked, old_paid), receipt.total)
    new_paid = max(money(new_paid), ZERO)
    new_is_paid = receipt.total > 0 and new_paid >= receipt.total
    changed = new_paid != old_paid or new_is_paid != receipt.is_paid
    if changed and not dry_run:
        receipt.amount_paid = new_paid
        receipt.is_paid = new_is_paid
        receipt.save(update_fields=['amount_paid', 'is_paid', 'updated_at'])
    return old_paid, new_paid, changed


def customer_receivable(customer_id):
    total = ZERO
    for receipt in Receipt.objects.filter(customer_id=customer_id).only('total', 'amount_paid'):
        total += max(receipt.total - receipt.amount_paid, ZERO)
    return total


def supplier_payable(supplier_id):
    total = ZERO
    entries = InventoryEntry.objects.filter(
        supplier_id=supplier_id, type=InventoryEntry.TYPE_PURCHASE, is_paid=False
    )
    for entry in entries:
        total += max(entry_amount(entry) - entry.amount_paid, ZERO)
    return total
