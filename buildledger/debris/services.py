"""Debris intake at the yard and paid removals"""
import logging

from django.db import transaction
from django.utils import timezone

from buildledger.core.exceptions import ServiceError
from buildledger.core.utils import clean_text, is_blank, money, parse_date, parse_decimal, parse_int, qty
from buildledger.inventory.models import StockMovement
from buildledger.parties.models import Customer, Supplier
from buildledger.payments.models import Payment
from buildledger.payments.services import debris_product, delete_payment, move_debris_stock, record_payment
from .models import DebrisEntry

logger = logging.getLogger(__name__)


def _party(model, data, field, label):
    try:
        party_id = parse_int(data.get(field))
    except ValueError:
        raise ServiceError(f'Invalid {field}')
    if party_id is None:
        return None
    party = model.objects.filter(pk=party_id).first()
    if party is None:
        raise ServiceError(f'{label} not found')
    return party


def clean_debris_input(data, existing=None):
    """Validated DebrisEntry field values; on update only the fields present in `data`"""
    fields = {}
    partial = existing is not None

    if not partial or 'date' in data:
        try:
            date = parse_date(data.get('date'))
        except ValueError:
            raise ServiceError('Invalid date value')
        if date is not None or not partial:
            fields['date'] = date or timezone.now()

    if not partial or 'customer_id' in data:
        fields['customer'] = _party(Customer, data, 'customer_id', 'Customer')
    if not partial or 'supplier_id' in data:
        fields['supplier'] = _party(Supplier, data, 'supplier_id', 'Supplier')
    if not partial or 'walk_in_name' in data:
        fields['walk_in_name'] = clean_text(data.get('walk_in_name'))

    if not partial or 'volume' in data:
        try:
            volume = parse_decimal(data.get('volume'))
        except ValueError:
            volume = None
        if volume is None or volume <= 0:
            raise ServiceError('volume must be greater than zero')
        fields['volume'] = qty(volume)

    for field, message in (('dumping_fee', 'dumping_fee must be zero or a positive number'),
                           ('removal_cost', 'Enter a valid removal cost')):
        if partial and field not in data:
            continue
        try:
            value = parse_decimal(data.get(field))
        except ValueError:
            raise ServiceError(message)
        if value is not None and value < 0:
            raise ServiceError(message)
        fields[field] = money(value) if value is not None else None

    if not partial or 'notes' in data:
        fields['notes'] = clean_text(data.get('notes'))

    if partial and not fields:
        raise ServiceError('Provide at least one field to update')

    customer = fields.get('customer', existing.customer if partial else None)
    supplier = fields.get('supplier', existing.supplier if partial else None)
    walk_in_name = fields.get('walk_in_name', existing.walk_in_name if partial else None)
    if customer is None and supplier is None and not walk_in_name:
        raise ServiceError('Provide a customer, supplier or walk-in name for the debris entry')
    return fields


def create_debris_entry(data, user=None):
    fields = clean_debris_input(data)
    with transaction.atomic():
        entry = DebrisEntry.objects.create(created_by=user, **fields)
        move_debris_stock(entry.volume, StockMovement.TYPE_PURCHASE, entry.date)
    logger.info(f"Debris entry {entry.id} logged: {entry.volume} m3")
    return entry


def update_debris_entry(entry, data):
    if entry.removal_payment_id:
        raise ServiceError('Paid removals cannot be edited. Mark it unpaid first.')
    fields = clean_debris_input(data, existing=entry)
    with transaction.atomic():
        delta = fields.get('volume', entry.volume) - entry.volume
        if delta < 0:
            product = debris_product()
            if product.stock_qty + delta < 0:
                raise ServiceError('Not enough debris stock for this edit')
        for field, value in fields.items():
            setattr(entry, field, value)
        entry.save()
        if delta:
            move_debris_stock(delta, StockMovement.TYPE_PURCHASE, entry.date)
    return entry


def delete_debris_entry(entry):
    """Undo the removal payment (if any) and take the intake volume back out of stock"""
    with transaction.atomic():
        if entry.removal_payment_id:
            delete_payment(entry.removal_payment)
            entry.refresh_from_db()
        move_debris_stock(-entry.volume, StockMovement.TYPE_SALE, timezone.now())
        entry.delete()


def mark_removal_paid(entry, data, user=None):
    if entry.removal_payment_id:
        raise ServiceError('Removal already paid')

    supplier = entry.supplier
    if supplier is None:
        if is_blank(data.get('supplier_id')):
            raise ServiceError('supplier_id is required to mark removal as paid')
        supplier = _party(Supplier, data, 'supplier_id', 'Supplier')

    try:
        amount = parse_decimal(data.get('amount'))
    except ValueError:
        amount = None
    if amount is None and is_blank(data.get('amount')):
        amount = entry.removal_cost
    if amount is None or amount <= 0:
        raise ServiceError('Set a valid removal cost before marking as paid')

    try:
        date = parse_date(data.get('date')) or timezone.now()
    except ValueError:
        raise ServiceError('Invalid payment date')

    with transaction.atomic():
        if entry.supplier_id != supplier.id:
            entry.supplier = supplier
            entry.save(update_fields=['supplier', 'updated_at'])
        payment = record_payment(
            Payment.TYPE_DEBRIS_REMOVAL, amount,
            created_by=user,
            debris_entry=entry,
            supplier=supplier,
            date=date,
            description=clean_text(data.get('description')),
            category=clean_text(data.get('category')),
            reference=clean_text(data.get('reference')),
        )
    logger.info(f"Debris entry {entry.id} removal paid with payment {payment.id}")
    return entry


def mark_removal_unpaid(entry):
    if not entry.removal_payment_id:
        raise ServiceError('Removal is not marked as paid')
    delete_payment(entry.removal_payment)
    entry.refresh_from_db()
    return entry
