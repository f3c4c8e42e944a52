"""Inventory numbering, production recipes, labor payouts and stock effects"""
import logging
import re

from django.db import transaction
from django.utils import timezone
from rest_framework import status

from buildledger.catalog.models import Product
from buildledger.catalog.utils import adjust_stock
from buildledger.core.exceptions import ServiceError
from buildledger.core.utils import ZERO, clean_text, money, parse_date, parse_decimal, parse_int, qty
from buildledger.parties.models import Supplier
from buildledger.payments.models import Payment
from buildledger.payments.services import allocate_to_entries, entry_amount, record_payment
from buildledger.payroll.models import Employee, ManufacturingPieceRate
from .models import InventoryEntry, StockMovement

logger = logging.getLogger(__name__)

INVENTORY_NUMBER_PATTERN = re.compile(r'^(\D*?)(\d+)(.*)$')
NUMBER_PREFIXES = {
    InventoryEntry.TYPE_PURCHASE: 'P',
    InventoryEntry.TYPE_PRODUCTION: 'M',
}


def increment_inventory_number(value, fallback):
    text = (value or '').strip()
    if not text:
        return fallback
    if text.isdigit():
        if len(text) > 1 and text.startswith('0'):
            return str(int(text) + 1).zfill(len(text))
        return str(int(text) + 1)
    match = INVENTORY_NUMBER_PATTERN.match(text)
    if not match:
        return fallback
    prefix, digits, suffix = match.groups()
    return f"{prefix}{str(int(digits) + 1).zfill(len(digits))}{suffix}"


def next_inventory_number(entry_type):
    """Purchases count P1, P2, ... and production runs M1, M2, ..."""
    prefix = NUMBER_PREFIXES[entry_type]
    latest = InventoryEntry.objects.filter(
        type=entry_type, inventory_no__istartswith=prefix
    ).order_by('-id').first()
    return increment_inventory_number(latest.inventory_no if latest else None, f'{prefix}1')


def require_next_inventory_number(entry_type, provided):
    expected = next_inventory_number(entry_type)
    if not provided:
        return expected
    prefix = NUMBER_PREFIXES[entry_type]
    if not provided.upper().startswith(prefix):
        raise ServiceError(
            f'{entry_type} entries must start with "{prefix}". Next expected is {expected}.',
            extra={'expected_next': expected},
        )
    if provided != expected:
        raise ServiceError(
            f'Inventory entry out of sequence. Next {entry_type} entry should be {expected}.',
            status.HTTP_409_CONFLICT,
            extra={'expected_next': expected},
        )
    return provided


def _optional_number(data, field, message, minimum=None):
    try:
        value = parse_decimal(data.get(field))
    except ValueError:
        raise ServiceError(message)
    if value is not None and minimum is not None and value < minimum:
        raise ServiceError(message)
    return value


def _employee(data, field, label):
    """Employee referenced by `field`; None when blank"""
    try:
        employee_id = parse_int(data.get(field))
    except ValueError:
        raise ServiceError(f'Invalid {field}')
    if employee_id is None:
        return None
    employee = Employee.objects.filter(pk=employee_id).first()
    if employee is None:
        raise ServiceError(f'{label} employee not found')
    return employee


def active_piece_rate(employee, product):
    if employee is None or product is None:
        return None
    return ManufacturingPieceRate.objects.filter(employee=employee, product=product, is_active=True).first()


def production_labor(product, quantity, worker=None, helper=None, labor_amount=None, helper_amount=None):
    """
    Worker and helper payouts for a production run. Explicit amounts win;
    otherwise the employee's active piece rate, then the product's rate.
    """
    if labor_amount is None:
        rate = active_piece_rate(worker, product)
        if rate is not None:
            labor_amount = rate.rate * quantity
        elif product.piecework_rate is not None:
            labor_amount = product.piecework_rate * quantity
    if helper_amount is None:
        rate = active_piece_rate(helper, product)
        helper_rate = None
        if rate is not None:
            helper_rate = rate.helper_rate if rate.helper_rate is not None else rate.rate
        if helper_rate is not None:
            helper_amount = helper_rate * quantity
        elif product.helper_piecework_rate is not None:
            helper_amount = product.helper_piecework_rate * quantity
    return (
        money(labor_amount) if labor_amount is not None else None,
        money(helper_amount) if helper_amount is not None else None,
    )


def production_materials(product, quantity, data, is_admin):
    """
    Powder and cement consumed by a production run: the product recipe times
    the quantity. Admins may override either product or quantity.
    """
    has_recipe = all([
        product.powder_product_id, product.powder_per_unit is not None,
        product.cement_product_id, product.cement_per_unit is not None,
    ])
    if not has_recipe and not is_admin:
        raise ServiceError('Manufactured product is missing default component configuration')

    materials = {}
    for material in ('powder', 'cement'):
        override_product = None
        override_used = None
        if is_admin:
            try:
                override_id = parse_int(data.get(f'{material}_product_id'))
            except ValueError:
                raise ServiceError(f'Invalid {material}_product_id')
            if override_id is not None:
                override_product = Product.objects.filter(pk=override_id).first()
                if override_product is None:
                    raise ServiceError(f'{material.capitalize()} product not found')
            override_used = _optional_number(
                data, f'{material}_used', f'{material}_used must be zero or a positive number', minimum=ZERO
            )
        per_unit = getattr(product, f'{material}_per_unit')
        materials[f'{material}_product'] = override_product or getattr(product, f'{material}_product')
        if override_used is not None:
            materials[f'{material}_used'] = qty(override_used)
        elif per_unit is not None:
            materials[f'{material}_used'] = qty(per_unit * quantity)
        else:
            materials[f'{material}_used'] = None
    return materials


def clean_inventory_input(data, user, existing=None):
    """
    Validate an inventory payload. Returns the InventoryEntry field values;
    the inventory number is assigned separately.
    """
    is_admin = getattr(user, 'role', None) == 'ADMIN'
    if existing is None:
        entry_type = str(data.get('type') or '').strip().upper()
        if entry_type not in NUMBER_PREFIXES:
            raise ServiceError('type must be PURCHASE or PRODUCTION')
    else:
        entry_type = existing.type

    raw_product = data.get('product_id', existing.product_id if existing else None)
    try:
        product_id = parse_int(raw_product)
    except ValueError:
        product_id = None
    if product_id is None:
        raise ServiceError('product_id is required')
    raw_quantity = data.get('quantity', existing.quantity if existing else None)
    try:
        quantity = parse_decimal(raw_quantity)
    except ValueError:
        quantity = None
    if quantity is None or quantity <= 0:
        raise ServiceError('quantity must be greater than zero')
    quantity = qty(quantity)

    product = Product.objects.select_related('powder_product', 'cement_product').filter(pk=product_id).first()
    if product is None:
        raise ServiceError('Product not found')

    try:
        entry_date = parse_date(data.get('date'))
    except ValueError:
        raise ServiceError('Invalid date')
    if entry_date is None:
        entry_date = existing.entry_date if existing else None

    fields = {
        'type': entry_type,
        'product': product,
        'quantity': quantity,
        'notes': (str(data['notes']).strip() or None) if data.get('notes') else None,
    }
    if entry_date is not None:
        fields['entry_date'] = entry_date

    if entry_type == InventoryEntry.TYPE_PURCHASE:
        try:
            supplier_id = parse_int(data.get('supplier_id'))
        except ValueError:
            supplier_id = None
        if supplier_id is None:
            raise ServiceError('supplier_id is required for purchases')
        supplier = Supplier.objects.filter(pk=supplier_id).first()
        if supplier is None:
            raise ServiceError('Supplier not found', status.HTTP_404_NOT_FOUND)
        unit_cost = _optional_number(data, 'unit_cost', 'unit_cost must be greater than zero for purchases')
        if unit_cost is None or unit_cost <= 0:
            raise ServiceError('unit_cost must be greater than zero for purchases')
        is_paid = data.get('is_paid')
        fields.update({
            'supplier': supplier,
            'unit_cost': unit_cost,
            'total_cost': money(unit_cost * quantity),
            'is_paid': is_paid if isinstance(is_paid, bool) else True,
            'tva_eligible': bool(data.get('tva_eligible')),
            'labor_paid': True,
        })
        return fields

    if not product.is_manufactured:
        raise ServiceError('Only manufactured products are supported for production entries')
    fields.update(production_materials(product, quantity, data, is_admin))

    labor_amount = _optional_number(data, 'labor_amount', 'Worker payout must be a positive number', minimum=ZERO)
    helper_amount = _optional_number(
        data, 'helper_labor_amount', 'Helper payout must be a positive number', minimum=ZERO
    )
    if existing is not None:
        if labor_amount is None and 'labor_amount' not in data:
            labor_amount = existing.labor_amount
        if helper_amount is None and 'helper_labor_amount' not in data:
            helper_amount = existing.helper_labor_amount

    if existing is not None and 'worker_employee_id' not in data:
        worker = existing.worker_employee
    else:
        worker = _employee(data, 'worker_employee_id', 'Worker')
    if existing is not None and 'helper_employee_id' not in data:
        helper = existing.helper_employee
    else:
        helper = _employee(data, 'helper_employee_id', 'Helper')

    labor_amount, helper_amount = production_labor(
        product, quantity, worker, helper, labor_amount, helper_amount
    )
    labor_total = (labor_amount or ZERO) + (helper_amount or ZERO)
    labor_paid = data.get('labor_paid')
    if not isinstance(labor_paid, bool):
        if labor_total <= 0:
            labor_paid = True
        else:
            labor_paid = existing.labor_paid if existing is not None else False

    fields.update({
        'supplier': None,
        'unit_cost': None,
        'total_cost': None,
        'is_paid': True,
        'tva_eligible': False,
        'labor_amount': labor_amount,
        'helper_labor_amount': helper_amount,
        'labor_paid': labor_paid,
        'worker_employee': worker,
        'helper_employee': helper,
    })
    if existing is None or 'production_site' in data:
        fields['production_site'] = clean_text(data.get('production_site'))
    return fields


def _record_movement(entry, product, quantity, movement_type):
    adjust_stock(product, quantity)
    StockMovement.objects.create(
        product=product,
        date=entry.entry_date,
        type=movement_type,
        quantity=quantity,
        inventory_entry=entry,
    )


def apply_entry_stock(entry):
    """Add the entry's output and consume production materials"""
    output_type = (
        StockMovement.TYPE_PURCHASE if entry.type == InventoryEntry.TYPE_PURCHASE
        else StockMovement.TYPE_PRODUCTION_OUTPUT
    )
    _record_movement(entry, entry.product, entry.quantity, output_type)
    if entry.type != InventoryEntry.TYPE_PRODUCTION:
        return
    if entry.powder_product_id and entry.powder_used:
        _record_movement(entry, entry.powder_product, -entry.powder_used, StockMovement.TYPE_PRODUCTION_CONSUMPTION)
    if entry.cement_product_id and entry.cement_used:
        _record_movement(entry, entry.cement_product, -entry.cement_used, StockMovement.TYPE_PRODUCTION_CONSUMPTION)


def revert_entry_stock(entry):
    movements = list(entry.stock_movements.all())
    for movement in movements:
        adjust_stock(movement.product_id, -movement.quantity)
    entry.stock_movements.all().delete()
    logger.debug(f"Reverted {len(movements)} stock movements for inventory entry {entry.inventory_no}")


def labor_total(entry):
    return money((entry.labor_amount or ZERO) + (entry.helper_labor_amount or ZERO))


def weekly_labor_summary(entries):
    """Group unpaid production payouts per worker and helper, largest first"""
    totals = {}
    for entry in entries:
        for role, amount, employee in (
            ('worker', entry.labor_amount, entry.worker_employee),
            ('helper', entry.helper_labor_amount, entry.helper_employee),
        ):
            if not amount or amount <= 0:
                continue
            key = f"{role[0]}-{employee.id if employee else 'unknown'}"
            bucket = totals.setdefault(key, {
                'id': employee.id if employee else None,
                'name': employee.name if employee else role.capitalize(),
                'amount': ZERO,
                'entries': [],
            })
            bucket['amount'] += amount
            bucket['entries'].append({
                'entry_id': entry.id,
                'role': role,
                'amount': amount,
                'date': entry.entry_date,
                'product_id': entry.product_id,
            })
    return sorted(totals.values(), key=lambda bucket: bucket['amount'], reverse=True)


def create_inventory_entry(data, user):
    fields = clean_inventory_input(data, user)
    provided = clean_text(data.get('inventory_no'))
    with transaction.atomic():
        inventory_no = require_next_inventory_number(fields['type'], provided)
        fields.setdefault('entry_date', timezone.now())
        entry = InventoryEntry.objects.create(inventory_no=inventory_no, **fields)
        apply_entry_stock(entry)
    logger.info(f"Inventory entry {entry.inventory_no} created ({entry.type} {entry.quantity} x {entry.product_id})")
    return entry


def update_inventory_entry(entry, data, user):
    """Production runs only: revert the old stock effects and apply the new ones"""
    if entry.type != InventoryEntry.TYPE_PRODUCTION:
        raise ServiceError('Only production entries can be modified')
    fields = clean_inventory_input(data, user, existing=entry)
    with transaction.atomic():
        revert_entry_stock(entry)
        for field, value in fields.items():
            setattr(entry, field, value)
        entry.save()
        apply_entry_stock(entry)
    return entry


def delete_inventory_entry(entry):
    with transaction.atomic():
        revert_entry_stock(entry)
        entry.delete()


def purchase_payables():
    """Unpaid purchases with something still owed, newest first"""
    entries = InventoryEntry.objects.select_related('supplier', 'product').filter(
        type=InventoryEntry.TYPE_PURCHASE, is_paid=False
    ).order_by('-entry_date', '-id')
    payables = [entry for entry in entries if entry_amount(entry) - entry.amount_paid > 0]
    total_due = sum((entry_amount(entry) - entry.amount_paid for entry in payables), ZERO)
    return money(total_due), payables


def mark_entry_paid(entry, user=None):
    """Settle an unpaid purchase with a supplier payment covering what is left"""
    if entry.type != InventoryEntry.TYPE_PURCHASE:
        raise ServiceError('Only purchase entries can be marked as paid')
    if entry.is_paid:
        raise ServiceError('Entry is already marked as paid')
    outstanding = money(entry_amount(entry) - entry.amount_paid)
    with transaction.atomic():
        if outstanding > 0:
            payment = record_payment(
                Payment.TYPE_SUPPLIER, outstanding,
                created_by=user,
                apply_to_purchases=False,
                supplier=entry.supplier,
                description=f"Payment for purchase {entry.inventory_no}",
                reference=f"inventory-{entry.id}",
            )
            allocate_to_entries(payment, [entry], outstanding)
        entry.refresh_from_db()
        if not entry.is_paid:
            entry.is_paid = True
            entry.save(update_fields=['is_paid', 'updated_at'])
    return entry


def production_payables(start=None, end=None):
    entries = InventoryEntry.objects.select_related(
        'product', 'worker_employee', 'helper_employee', 'powder_product', 'cement_product', 'supplier'
    ).filter(type=InventoryEntry.TYPE_PRODUCTION, labor_paid=False).exclude(
        labor_amount__isnull=True, helper_labor_amount__isnull=True
    )
    if start is not None:
        entries = entries.filter(entry_date__gte=start)
    if end is not None:
        entries = entries.filter(entry_date__lte=end)
    return entries.order_by('entry_date', 'id')


def mark_labor_paid(entry_id, paid_at=None, user=None):
    """Pay a production run's worker and helper as one piecework payment"""
    with transaction.atomic():
        entry = InventoryEntry.objects.select_for_update().filter(pk=entry_id).first()
        if entry is None:
            raise ServiceError('Inventory entry not found', status.HTTP_404_NOT_FOUND)
        if entry.type != InventoryEntry.TYPE_PRODUCTION:
            raise ServiceError('Entry is not a production run')
        if entry.labor_paid:
            raise ServiceError('Labor already marked as paid')
        payout = labor_total(entry)
        if payout <= 0:
            raise ServiceError('No outstanding labor for this entry')

        paid_at = paid_at or timezone.now()
        entry.labor_paid = True
        entry.labor_paid_at = paid_at
        entry.save(update_fields=['labor_paid', 'labor_paid_at', 'updated_at'])
        record_payment(
            Payment.TYPE_PAYROLL_PIECEWORK, payout,
            created_by=user,
            date=paid_at,
            description=f"Manufacturing payout for entry {entry.id}",
            reference=f"manufacturing-{entry.id}",
        )
    logger.info(f"Production labor for entry {entry.inventory_no} paid: {payout}")
    return entry
