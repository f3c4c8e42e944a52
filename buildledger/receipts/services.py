"""Receipt numbering, line items, stock effects and loading fee totals"""
import logging
import re
from datetime import timedelta
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import status

from buildledger.catalog.models import Product
from buildledger.catalog.utils import DEBRIS_NAME, adjust_stock
from buildledger.core.exceptions import ServiceError
from buildledger.core.utils import (
    ZERO, apply_tax, clean_text, money, parse_bool, parse_date, parse_decimal, parse_int, qty, tva_rate,
)
from buildledger.fleet.models import Driver, Truck
from buildledger.inventory.models import StockMovement
from buildledger.invoices.models import Invoice
from buildledger.parties.models import Customer, JobSite
from buildledger.payments.models import Payment, ReceiptPayment
from buildledger.payments.services import linked_receipt_total
from .models import Receipt, ReceiptItem, ReceiptItemComponent

logger = logging.getLogger(__name__)

RECEIPT_NUMBER_PATTERN = re.compile(r'^(\D*?)(\d+)(.*)$')
FLAG_TYPES = ('TEHMIL', 'TENZIL')


def is_debris_product(product):
    return product is not None and (product.name or '').strip().lower() == DEBRIS_NAME


def increment_receipt_number(value, fallback):
    """
    Next number after `value`, keeping any prefix, suffix and zero padding.
    '41' -> '42', '007' -> '008', 'T99' -> 'T100'.
    """
    text = (value or '').strip()
    if not text:
        return fallback
    if text.isdigit():
        if len(text) > 1 and text.startswith('0'):
            return str(int(text) + 1).zfill(len(text))
        return str(int(text) + 1)
    match = RECEIPT_NUMBER_PATTERN.match(text)
    if not match:
        return fallback
    prefix, digits, suffix = match.groups()
    return f"{prefix}{str(int(digits) + 1).zfill(len(digits))}{suffix}"


def next_receipt_number(receipt_type):
    if receipt_type == Receipt.TYPE_TVA:
        latest = Receipt.objects.filter(type=Receipt.TYPE_TVA).order_by('-id').first() \
            or Receipt.objects.filter(receipt_no__istartswith='T').order_by('-id').first()
        next_no = increment_receipt_number(latest.receipt_no if latest else None, 'T1')
        return next_no if next_no.upper().startswith('T') else f"T{next_no}"
    latest = Receipt.objects.filter(type=Receipt.TYPE_NORMAL).exclude(
        receipt_no__istartswith='T'
    ).order_by('-id').first()
    return increment_receipt_number(latest.receipt_no if latest else None, '1')


def require_next_receipt_number(receipt_type, provided):
    """A supplied receipt number must be exactly the next one in its sequence"""
    expected = next_receipt_number(receipt_type)
    if not provided:
        return expected
    if receipt_type == Receipt.TYPE_TVA and not provided.upper().startswith('T'):
        raise ServiceError(
            f'TVA receipts must start with "T". Next expected number is {expected}.',
            extra={'expected_next': expected},
        )
    if provided != expected:
        raise ServiceError(
            f'Receipt number out of sequence. Next {receipt_type} receipt should be {expected}.',
            status.HTTP_409_CONFLICT,
            extra={'expected_next': expected},
        )
    return provided


def parse_receipt_items(raw_items):
    """Validate the line items of a receipt payload"""
    if not isinstance(raw_items, list) or not raw_items:
        raise ServiceError('At least one line item is required')

    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ServiceError('Each item requires a product_id and valid quantity')
        try:
            product_id = parse_int(raw.get('product_id'))
            quantity = parse_decimal(raw.get('quantity'))
        except ValueError:
            product_id = quantity = None
        if not product_id or quantity is None or quantity <= 0:
            raise ServiceError('Each item requires a product_id and valid quantity')
        try:
            display_quantity = parse_decimal(raw.get('display_quantity'))
        except ValueError:
            raise ServiceError('display_quantity must be numeric when provided')
        try:
            unit_price = parse_decimal(raw.get('unit_price'))
        except ValueError:
            raise ServiceError('unit_price must be numeric when provided')
        if unit_price is not None and unit_price < 0:
            raise ServiceError('unit_price cannot be negative')
        items.append({
            'product_id': product_id,
            'quantity': qty(quantity),
            'unit_price': money(unit_price) if unit_price is not None else None,
            'subtotal': money(quantity * unit_price) if unit_price is not None else None,
            'display_quantity': display_quantity if display_quantity and display_quantity > 0 else None,
            'display_unit': clean_text(raw.get('display_unit')),
        })

    product_ids = {item['product_id'] for item in items}
    found = set(Product.objects.filter(id__in=product_ids).values_list('id', flat=True))
    missing = product_ids - found
    if missing:
        raise ServiceError(f'Product {sorted(missing)[0]} not found', status.HTTP_404_NOT_FOUND)
    return items


def receipt_base_total(items):
    """(has_priced_items, base total) for parsed items or ReceiptItem rows"""
    subtotals = [item['subtotal'] if isinstance(item, dict) else item.subtotal for item in items]
    priced = [value for value in subtotals if value is not None]
    return bool(priced), money(sum(priced, ZERO))


def receipt_total(items, receipt_type):
    has_priced, base = receipt_base_total(items)
    return has_priced, (apply_tax(base, receipt_type) if has_priced else ZERO)


def _move(product, quantity, receipt, date):
    """Sell `quantity` of a product; debris brought in by a truck adds stock instead"""
    delta = quantity if is_debris_product(product) else -quantity
    adjust_stock(product, delta)
    StockMovement.objects.create(
        product=product,
        date=date,
        type=StockMovement.TYPE_PURCHASE if delta > 0 else StockMovement.TYPE_SALE,
        quantity=delta,
        receipt=receipt,
    )


def create_receipt_items(receipt, items):
    """Create line items and move stock; composite mixes move their components"""
    products = {
        product.id: product
        for product in Product.objects.filter(
            id__in={item['product_id'] for item in items}
        ).prefetch_related('components__component')
    }
    created = []
    for item in items:
        product = products[item['product_id']]
        receipt_item = ReceiptItem.objects.create(receipt=receipt, product=product, **{
            key: item[key] for key in ('quantity', 'unit_price', 'subtotal', 'display_quantity', 'display_unit')
        })
        components = list(product.components.all()) if product.is_composite else []
        if components:
            for component in components:
                amount = qty(component.quantity * item['quantity'])
                if amount <= 0:
                    continue
                ReceiptItemComponent.objects.create(
                    receipt_item=receipt_item, product=component.component, quantity=amount
                )
                _move(component.component, amount, receipt, receipt.date)
        else:
            _move(product, item['quantity'], receipt, receipt.date)
        created.append(receipt_item)
    return created


def revert_receipt_stock(receipt):
    """Undo every stock movement of a receipt and drop its line items"""
    movements = list(receipt.stock_movements.all())
    for movement in movements:
        adjust_stock(movement.product_id, -movement.quantity)
    receipt.stock_movements.all().delete()
    ReceiptItemComponent.objects.filter(receipt_item__receipt=receipt).delete()
    receipt.items.all().delete()
    logger.debug(f"Reverted {len(movements)} stock movements for receipt {receipt.receipt_no}")


def flag_fee_totals(receipt):
    """Loading and unloading fees due on a receipt: fee per unit x quantity"""
    tehmil_total = tenzil_total = ZERO
    for item in receipt.items.all():
        if receipt.tehmil:
            tehmil_total += (item.product.tehmil_fee or ZERO) * item.quantity
        if receipt.tenzil:
            tenzil_total += (item.product.tenzil_fee or ZERO) * item.quantity
    return money(tehmil_total), money(tenzil_total)


def flagged_receipts(flag_type, start=None, end=None):
    """Receipts flagged for loading/unloading whose fee is not yet paid"""
    if flag_type == 'TEHMIL':
        queryset = Receipt.objects.filter(tehmil=True, tehmil_paid_at__isnull=True)
    else:
        queryset = Receipt.objects.filter(tenzil=True, tenzil_paid_at__isnull=True)
    if start:
        queryset = queryset.filter(date__gte=start)
    if end:
        queryset = queryset.filter(date__lte=end)
    return queryset.select_related('customer').prefetch_related('items__product').order_by('date', 'id')


def flag_outstanding(receipt, flag_type):
    tehmil_total, tenzil_total = flag_fee_totals(receipt)
    return tehmil_total if flag_type == 'TEHMIL' else tenzil_total


def customer_old_balance(customer_id, exclude_ids=()):
    """Unpaid balance of a customer's receipts outside the given selection"""
    receipts = Receipt.objects.filter(customer_id=customer_id, is_paid=False).exclude(id__in=list(exclude_ids))
    return money(sum((max(r.total - r.amount_paid, ZERO) for r in receipts), ZERO))


def recompute_receipt_totals(receipt):
    """Refresh total and paid flag after line prices changed; the paid amount is kept"""
    has_priced, total = receipt_total(list(receipt.items.all()), receipt.type)
    receipt.total = total
    receipt.is_paid = has_priced and total > 0 and receipt.amount_paid >= total
    receipt.save(update_fields=['total', 'is_paid', 'updated_at'])
    return receipt


def default_week_range(now=None):
    """Monday 00:00 to Sunday 23:59:59.999999 of the current week"""
    now = timezone.localtime(now or timezone.now())
    monday = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    return monday, monday + timedelta(days=7) - timedelta(microseconds=1)


def positive_or_none(value):
    return value if value is not None and value > Decimal('0') else None


def receipt_queryset():
    return Receipt.objects.select_related(
        'customer', 'job_site', 'driver', 'truck', 'created_by'
    ).prefetch_related('items__product', 'items__components__product')


# --- Receipt writes ---

def _optional_fk(data, field):
    """(present, id) for a nullable foreign key in a payload"""
    if field not in data:
        return False, None
    raw = data.get(field)
    if raw in (None, ''):
        return True, None
    try:
        return True, parse_int(raw)
    except ValueError:
        raise ServiceError(f'Invalid {field}')


def _check_fleet(driver_id, truck_id):
    if driver_id and not Driver.objects.filter(pk=driver_id).exists():
        raise ServiceError('Driver not found', status.HTTP_404_NOT_FOUND)
    if truck_id and not Truck.objects.filter(pk=truck_id).exists():
        raise ServiceError('Truck not found', status.HTTP_404_NOT_FOUND)


def _check_job_site(job_site_id, customer_id):
    if not job_site_id:
        return
    if not customer_id:
        raise ServiceError('A job site must be associated with a customer')
    if not JobSite.objects.filter(pk=job_site_id, customer_id=customer_id).exists():
        raise ServiceError('Selected job site does not belong to the chosen customer')


def _receipt_type(data, customer, receipt_no):
    """
    Resolve the receipt type. A customer's configured type wins, otherwise
    a T-prefixed number means TVA, otherwise the requested type.
    """
    requested = str(data.get('type') or Receipt.TYPE_NORMAL).strip().upper()
    if requested not in (Receipt.TYPE_NORMAL, Receipt.TYPE_TVA):
        raise ServiceError('type must be NORMAL or TVA')
    inferred = Receipt.TYPE_TVA if receipt_no and receipt_no.upper().startswith('T') else None

    receipt_type = requested
    if customer is not None:
        receipt_type = customer.receipt_type
        if inferred and inferred != customer.receipt_type:
            raise ServiceError(
                f'Customer is locked to {customer.receipt_type} receipts. Receipt number prefix does not match.'
            )
    elif inferred:
        receipt_type = inferred

    if receipt_no:
        if receipt_type == Receipt.TYPE_TVA and not receipt_no.upper().startswith('T'):
            raise ServiceError('TVA receipts must start with "T"')
        if receipt_type == Receipt.TYPE_NORMAL and receipt_no.upper().startswith('T'):
            raise ServiceError('This customer is set to NORMAL receipts. Remove the T prefix.')
    return receipt_type


def create_receipt(data, user=None, max_attempts=5):
    """
    Validate and save a receipt with its items and stock movements.
    Numbers are assigned in sequence; an automatic number that races with
    another writer is retried.
    """
    items = parse_receipt_items(data.get('items'))
    _, customer_id = _optional_fk(data, 'customer_id')
    _, job_site_id = _optional_fk(data, 'job_site_id')
    _, driver_id = _optional_fk(data, 'driver_id')
    _, truck_id = _optional_fk(data, 'truck_id')
    walk_in_name = clean_text(data.get('walk_in_name'))

    if job_site_id and not customer_id:
        raise ServiceError('A job site must be associated with a customer')
    if not customer_id and not walk_in_name:
        raise ServiceError('Provide either a customer_id or a walk_in_name for the receipt')

    customer = None
    if customer_id:
        customer = Customer.objects.filter(pk=customer_id).first()
        if customer is None:
            raise ServiceError('Customer not found', status.HTTP_404_NOT_FOUND)
    _check_job_site(job_site_id, customer_id)
    _check_fleet(driver_id, truck_id)

    try:
        date = parse_date(data.get('date')) or timezone.now()
    except ValueError:
        raise ServiceError('Invalid date')

    receipt_no = clean_text(data.get('receipt_no'))
    receipt_type = _receipt_type(data, customer, receipt_no)
    has_priced, total = receipt_total(items, receipt_type)
    is_paid = has_priced and parse_bool(data.get('is_paid'), False)
    if not is_paid and customer is None:
        raise ServiceError('Unpaid receipts must be linked to a customer account.')

    for _ in range(max_attempts):
        try:
            with transaction.atomic():
                number = require_next_receipt_number(receipt_type, receipt_no)
                receipt = Receipt.objects.create(
                    receipt_no=number,
                    date=date,
                    type=receipt_type,
                    customer=customer,
                    job_site_id=job_site_id,
                    walk_in_name=None if customer else walk_in_name,
                    driver_id=driver_id,
                    truck_id=truck_id,
                    tehmil=parse_bool(data.get('tehmil'), False),
                    tenzil=parse_bool(data.get('tenzil'), False),
                    total=total,
                    is_paid=is_paid,
                    amount_paid=total if is_paid else ZERO,
                    created_by=user,
                )
                create_receipt_items(receipt, items)
        except IntegrityError:
            if receipt_no:
                raise ServiceError('Receipt number already exists. Choose another value.', status.HTTP_409_CONFLICT)
            logger.warning(f"Receipt number collision for {receipt_type}, retrying")
            continue
        logger.info(f"Receipt {receipt.receipt_no} created: total {receipt.total}, paid {receipt.is_paid}")
        return receipt

    raise ServiceError('Unable to generate a unique receipt number. Please try again.',
                       status.HTTP_503_SERVICE_UNAVAILABLE)


def update_receipt(receipt, data):
    """
    Edit the header and optionally replace all items. Stock of the old items
    is reverted before the new ones are applied. The paid amount never drops
    below what payments already allocated.
    """
    fields = {}
    next_customer_id = receipt.customer_id
    walk_in_name = clean_text(data.get('walk_in_name'))

    present, customer_id = _optional_fk(data, 'customer_id')
    if present:
        if customer_id is None:
            next_customer_id = None
            fields.update(customer=None, walk_in_name=walk_in_name, job_site=None)
        else:
            customer = Customer.objects.filter(pk=customer_id).first()
            if customer is None:
                raise ServiceError('Customer not found', status.HTTP_404_NOT_FOUND)
            next_customer_id = customer.id
            fields.update(customer=customer, walk_in_name=None)
    elif 'walk_in_name' in data:
        fields['walk_in_name'] = walk_in_name

    present, job_site_id = _optional_fk(data, 'job_site_id')
    if present:
        if job_site_id is not None:
            if not next_customer_id:
                raise ServiceError('A job site must belong to a customer account')
            _check_job_site(job_site_id, next_customer_id)
        fields['job_site_id'] = job_site_id

    for field in ('driver_id', 'truck_id'):
        present, value = _optional_fk(data, field)
        if present:
            fields[field] = value
    _check_fleet(fields.get('driver_id'), fields.get('truck_id'))

    for flag in ('tehmil', 'tenzil'):
        if flag in data:
            fields[flag] = parse_bool(data.get(flag), False)

    if 'type' in data:
        receipt_type = str(data.get('type') or '').strip().upper()
        if receipt_type not in (Receipt.TYPE_NORMAL, Receipt.TYPE_TVA):
            raise ServiceError('type must be NORMAL or TVA')
        fields['type'] = receipt_type

    if data.get('date'):
        try:
            fields['date'] = parse_date(data.get('date'))
        except ValueError:
            raise ServiceError('Invalid date')

    requested_paid = data.get('is_paid') if isinstance(data.get('is_paid'), bool) else None
    amount_paid = None
    if 'amount_paid' in data:
        try:
            amount_paid = parse_decimal(data.get('amount_paid'))
        except ValueError:
            amount_paid = None
        if amount_paid is None or amount_paid < 0:
            raise ServiceError('amount_paid must be zero or a positive number')

    items = parse_receipt_items(data.get('items')) if 'items' in data else None

    with transaction.atomic():
        receipt = Receipt.objects.select_for_update().get(pk=receipt.pk)
        for field, value in fields.items():
            setattr(receipt, field, value)

        if items is not None:
            revert_receipt_stock(receipt)
            create_receipt_items(receipt, items)

        has_priced, total = receipt_total(list(receipt.items.all()), receipt.type)
        allocated = linked_receipt_total(receipt)
        if amount_paid is not None and amount_paid < allocated:
            raise ServiceError('amount_paid cannot be less than existing allocated payments')

        paid = amount_paid if amount_paid is not None else max(receipt.amount_paid, allocated)
        paid = min(paid, total) if has_priced else ZERO
        if requested_paid is False and amount_paid is None:
            paid = min(allocated, total)

        is_paid = has_priced and paid >= total
        if requested_paid is not None:
            is_paid = is_paid and requested_paid

        receipt.total = total
        receipt.amount_paid = money(max(paid, ZERO))
        receipt.is_paid = is_paid
        receipt.save()

    logger.info(f"Receipt {receipt.receipt_no} updated: total {receipt.total}, paid {receipt.amount_paid}")
    return receipt


def delete_receipt(receipt):
    """
    Revert stock, drop payment allocations and detach direct payments, then
    delete. An invoice left without receipts goes with it.
    """
    with transaction.atomic():
        revert_receipt_stock(receipt)
        ReceiptPayment.objects.filter(receipt=receipt).delete()
        Payment.objects.filter(receipt=receipt).update(receipt=None)
        invoice_ids = list(Invoice.objects.filter(invoice_receipts__receipt=receipt).values_list('id', flat=True))
        receipt.delete()
        emptied = Invoice.objects.filter(id__in=invoice_ids, invoice_receipts__isnull=True)
        for invoice in emptied:
            logger.info(f"Invoice {invoice.invoice_no} removed with its last receipt")
        emptied.delete()


def change_receipt_number(receipt, receipt_no):
    receipt_no = clean_text(receipt_no)
    if not receipt_no:
        raise ServiceError('receipt_no is required')
    if Receipt.objects.filter(receipt_no=receipt_no).exclude(pk=receipt.pk).exists():
        raise ServiceError('That receipt number already exists', status.HTTP_409_CONFLICT)
    receipt.receipt_no = receipt_no
    receipt.save(update_fields=['receipt_no', 'updated_at'])
    return receipt


# --- Loading / unloading fees ---

def _non_negative(value, message):
    try:
        parsed = parse_decimal(value)
    except ValueError:
        raise ServiceError(message)
    if parsed is not None and parsed < 0:
        raise ServiceError(message)
    return parsed


def _payment_date(value):
    try:
        return parse_date(value) or timezone.now()
    except ValueError:
        raise ServiceError('Invalid payment date')


def record_flag_payment(receipt, flag_type, data):
    """Mark the tehmil or tenzil fee of one receipt as paid"""
    label = flag_type.title()
    prefix = flag_type.lower()
    if not getattr(receipt, prefix):
        raise ServiceError(f'This receipt is not flagged for {label}')
    if getattr(receipt, f'{prefix}_paid_at'):
        raise ServiceError(f'{label} payment already recorded for this receipt')

    amount = _non_negative(data.get('amount'), 'amount must be zero or a positive number')
    quantity = _non_negative(data.get('quantity'), 'quantity must be zero or a positive number')
    paid_at = _payment_date(data.get('date'))

    note = clean_text(data.get('note'))
    if quantity is not None:
        note = f"Quantity: {quantity} | {note}" if note else f"Quantity: {quantity}"

    setattr(receipt, f'{prefix}_paid_at', paid_at)
    setattr(receipt, f'{prefix}_payment_amount', money(amount) if amount is not None else None)
    setattr(receipt, f'{prefix}_payment_note', note)
    receipt.save(update_fields=[f'{prefix}_paid_at', f'{prefix}_payment_amount', f'{prefix}_payment_note', 'updated_at'])
    return {
        'id': receipt.id,
        'paid_at': paid_at,
        'amount': amount,
        'quantity': quantity,
        'note': note,
    }


def bulk_flag_payment(data):
    """
    Settle every unpaid tehmil (or tenzil) fee in a date range at once. The
    amount has to cover the fees due; each receipt records its own fee.
    """
    flag_type = str(data.get('type') or '').strip().upper()
    if flag_type not in FLAG_TYPES:
        raise ServiceError('type must be TEHMIL or TENZIL')
    if not clean_text(data.get('start_date')):
        raise ServiceError('start_date is required')
    if not clean_text(data.get('end_date')):
        raise ServiceError('end_date is required')
    try:
        start = parse_date(data.get('start_date'))
        end = parse_date(data.get('end_date'))
    except ValueError:
        raise ServiceError('Invalid start_date or end_date')
    if start > end:
        raise ServiceError('start_date must be before end_date')

    try:
        amount = parse_decimal(data.get('amount'))
    except ValueError:
        amount = None
    if amount is None or amount <= 0:
        raise ServiceError('amount must be a positive number')
    paid_at = _payment_date(data.get('date'))

    receipts = list(flagged_receipts(flag_type, start, end))
    if not receipts:
        raise ServiceError('No flagged receipts found in the selected date range.')
    due = [(receipt, flag_outstanding(receipt, flag_type)) for receipt in receipts]
    total_outstanding = money(sum((fee for _, fee in due), ZERO))
    if total_outstanding <= 0:
        raise ServiceError('Selected receipts have no outstanding balance.')
    if amount < total_outstanding:
        raise ServiceError(f'Amount must be at least {total_outstanding:.2f} to cover all selected receipts.')

    start_label, end_label = f'{start:%Y-%m-%d}', f'{end:%Y-%m-%d}'
    range_label = start_label if start_label == end_label else f'{start_label} - {end_label}'
    note = clean_text(data.get('note'))
    note = f"{note} ({range_label})" if note else f"Bulk payment ({range_label})"

    prefix = flag_type.lower()
    with transaction.atomic():
        for receipt, fee in due:
            setattr(receipt, f'{prefix}_paid_at', paid_at)
            setattr(receipt, f'{prefix}_payment_amount', fee)
            setattr(receipt, f'{prefix}_payment_note', note)
            receipt.save(update_fields=[f'{prefix}_paid_at', f'{prefix}_payment_amount',
                                        f'{prefix}_payment_note', 'updated_at'])

    return {
        'type': flag_type,
        'start': start,
        'end': end,
        'receipt_count': len(due),
        'receipt_ids': [receipt.id for receipt, _ in due],
        'total_outstanding': total_outstanding,
        'overpayment': max(money(amount - total_outstanding), ZERO),
        'payment_date': paid_at,
    }


def flags_summary(start=None, end=None, limit=100):
    """Unpaid tehmil and tenzil fees with counts and totals"""
    result = {}
    summary = {}
    for flag_type in FLAG_TYPES:
        key = flag_type.lower()
        receipts = list(flagged_receipts(flag_type, start, end)[:limit])
        fees = {receipt.id: flag_outstanding(receipt, flag_type) for receipt in receipts}
        summary[f'{key}_due_count'] = len(receipts)
        summary[f'{key}_due_total'] = money(sum(fees.values(), ZERO))
        result[key] = (receipts, fees)
    return summary, result


def weekly_flag_summary(start, end):
    receipts = Receipt.objects.filter(date__gte=start, date__lte=end).filter(
        Q(tehmil=True, tehmil_paid_at__isnull=True) | Q(tenzil=True, tenzil_paid_at__isnull=True)
    ).select_related('customer').prefetch_related('items__product').order_by('date', 'id')

    rows = []
    for receipt in receipts:
        tehmil_total, tenzil_total = flag_fee_totals(receipt)
        if receipt.tehmil_paid_at:
            tehmil_total = ZERO
        if receipt.tenzil_paid_at:
            tenzil_total = ZERO
        total = tehmil_total + tenzil_total
        if total <= 0:
            continue
        rows.append({
            'id': receipt.id,
            'date': receipt.date,
            'receipt_no': receipt.receipt_no,
            'customer': receipt.customer.name if receipt.customer_id else (receipt.walk_in_name or 'Walk-in'),
            'tehmil_total': tehmil_total,
            'tenzil_total': tenzil_total,
            'total': total,
        })
    return {
        'start': start,
        'end': end,
        'total': money(sum((row['total'] for row in rows), ZERO)),
        'receipts': rows,
    }


# --- Invoice preview ---

def apply_price_overrides(customer, raw_overrides):
    """
    Reprice receipt lines from the invoice builder. Entries for receipts of
    other customers, unknown lines and negative prices are ignored.
    Returns the repriced receipts.
    """
    if not isinstance(raw_overrides, list):
        return []
    repriced = []
    with transaction.atomic():
        for override in raw_overrides:
            if not isinstance(override, dict):
                continue
            try:
                receipt_id = parse_int(override.get('receipt_id'))
            except ValueError:
                continue
            prices = {}
            for entry in override.get('items') or []:
                if not isinstance(entry, dict):
                    continue
                try:
                    item_id = parse_int(entry.get('item_id'))
                    price = parse_decimal(entry.get('unit_price'))
                except ValueError:
                    continue
                if item_id and price is not None and price >= 0:
                    prices[item_id] = money(price)
            if not receipt_id or not prices:
                continue
            receipt = Receipt.objects.filter(pk=receipt_id, customer=customer).first()
            if receipt is None:
                continue
            items = [item for item in receipt.items.all() if item.id in prices]
            if not items:
                continue
            for item in items:
                item.unit_price = prices[item.id]
                item.subtotal = money(item.quantity * item.unit_price)
                item.save(update_fields=['unit_price', 'subtotal'])
            repriced.append(recompute_receipt_totals(receipt))
    return repriced


def invoice_totals(receipts):
    """
    Totals of a set of receipts of one type. Receipt totals already carry
    the VAT, so the VAT amount is the difference to the priced base.
    """
    receipt_type = receipts[0].type if receipts else Receipt.TYPE_NORMAL
    subtotal = ZERO
    total = ZERO
    amount_paid = ZERO
    for receipt in receipts:
        _, base = receipt_base_total(list(receipt.items.all()))
        subtotal += base
        total += receipt.total
        amount_paid += receipt.amount_paid
    is_tva = receipt_type == Receipt.TYPE_TVA
    vat_amount = money(total - subtotal) if is_tva else ZERO
    if not is_tva:
        subtotal = total
    return {
        'receipt_type': receipt_type,
        'subtotal': money(subtotal),
        'vat_rate': tva_rate() if is_tva else Decimal('0'),
        'vat_amount': vat_amount,
        'total': money(total),
        'amount_paid': money(amount_paid),
        'outstanding': max(money(total - amount_paid), ZERO),
    }


def select_invoice_receipts(customer, receipt_ids=None, amount=None, include_paid=False, job_site=None):
    """
    Candidate receipts of a customer, oldest first. Either the given ids, or
    just enough receipts to reach `amount`.
    """
    receipts = receipt_queryset().filter(customer=customer).order_by('date', 'id')
    if not include_paid:
        receipts = receipts.filter(is_paid=False)
    if job_site is not None:
        receipts = receipts.filter(job_site=job_site)
    receipts = list(receipts)

    if receipt_ids:
        wanted = set(receipt_ids)
        receipts = [receipt for receipt in receipts if receipt.id in wanted]
        if not receipts:
            raise ServiceError('No matching receipts found for this customer')
    elif amount is not None:
        selected = []
        running = ZERO
        for receipt in receipts:
            selected.append(receipt)
            running += receipt.total
            if running >= amount:
                break
        if not selected:
            raise ServiceError('No receipts available to meet the requested amount')
        receipts = selected

    if len({receipt.type for receipt in receipts}) > 1:
        raise ServiceError('Invoices cannot mix NORMAL and TVA receipts. Please create separate invoices per type.')
    return receipts


def invoice_preview(customer, data):
    """Returns (preview dict, repriced receipts)"""
    receipt_ids = data.get('receipt_ids')
    has_ids = isinstance(receipt_ids, list) and len(receipt_ids) > 0
    if not has_ids and data.get('amount') in (None, ''):
        raise ServiceError('Provide receipt_ids or an amount to invoice')

    job_site = None
    if data.get('job_site_id') not in (None, ''):
        try:
            job_site_id = parse_int(data.get('job_site_id'))
        except ValueError:
            raise ServiceError('Invalid job site')
        job_site = JobSite.objects.filter(pk=job_site_id, customer=customer).first()
        if job_site is None:
            raise ServiceError('Selected job site does not belong to this customer')

    amount = None
    if not has_ids:
        try:
            amount = parse_decimal(data.get('amount'))
        except ValueError:
            amount = None
        if amount is None or amount <= 0:
            raise ServiceError('amount must be a positive number')

    ids = []
    if has_ids:
        for value in receipt_ids:
            try:
                parsed = parse_int(value)
            except ValueError:
                continue
            if parsed:
                ids.append(parsed)

    repriced = apply_price_overrides(customer, data.get('price_overrides'))
    receipts = select_invoice_receipts(
        customer,
        receipt_ids=ids if has_ids else None,
        amount=amount,
        include_paid=parse_bool(data.get('include_paid'), False),
        job_site=job_site,
    )
    totals = invoice_totals(receipts)
    preview = {
        'generated_at': timezone.now(),
        'customer': customer,
        'job_site': job_site,
        'receipts': receipts,
        'totals': totals,
        'old_balance': customer_old_balance(customer.id, [receipt.id for receipt in receipts]),
    }
    return preview, repriced
