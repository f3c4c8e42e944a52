"""Employee validation, payroll entry amounts and payroll run lifecycle"""
import logging
from collections import OrderedDict
from decimal import Decimal

from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import status

from buildledger.cash.models import CashCustodyEntry
from buildledger.catalog.models import Product
from buildledger.core.exceptions import ServiceError
from buildledger.core.utils import ZERO, clean_text, money, parse_bool, parse_date, parse_decimal, parse_int, qty
from buildledger.inventory.models import InventoryEntry
from buildledger.inventory.services import active_piece_rate
from buildledger.payments.models import Payment
from buildledger.payments.services import record_payment
from .models import Employee, ManufacturingPieceRate, PayrollRun, PayrollEntry

logger = logging.getLogger(__name__)

ROLES = [value for value, _ in Employee.ROLE_CHOICES]
PAY_TYPES = [value for value, _ in Employee.PAY_TYPE_CHOICES]
FREQUENCIES = [value for value, _ in Employee.FREQUENCY_CHOICES]
RUN_STATUSES = [value for value, _ in PayrollRun.STATUS_CHOICES]


def _choice(value, choices, message):
    normalized = str(value or '').strip().upper()
    if normalized not in choices:
        raise ServiceError(message)
    return normalized


def _positive(value, message):
    try:
        parsed = parse_decimal(value)
    except ValueError:
        raise ServiceError(message)
    if parsed is None or parsed <= 0:
        raise ServiceError(message)
    return parsed


def clean_employee_input(data, partial=False):
    """Validated Employee field values from a create (partial=False) or update payload"""
    fields = {}

    if not partial or 'name' in data:
        name = clean_text(data.get('name'))
        if not name:
            raise ServiceError('name cannot be empty' if partial else 'name is required')
        fields['name'] = name

    if not partial or 'role' in data:
        fields['role'] = _choice(data.get('role'), ROLES, 'Invalid role')

    if not partial or 'pay_type' in data:
        fields['pay_type'] = _choice(data.get('pay_type'), PAY_TYPES, 'Invalid pay_type')

    if not partial:
        if fields['pay_type'] == Employee.PAY_SALARY:
            if data.get('salary_amount') in (None, ''):
                raise ServiceError('salary_amount is required for salary employees')
            fields['salary_amount'] = money(_positive(data.get('salary_amount'), 'salary_amount must be a positive number'))
            fields['salary_frequency'] = _choice(
                data.get('salary_frequency'), FREQUENCIES, 'salary_frequency must be WEEKLY or MONTHLY'
            )
        else:
            fields['salary_amount'] = None
            fields['salary_frequency'] = None
    else:
        if 'salary_amount' in data:
            fields['salary_amount'] = money(_positive(data.get('salary_amount'), 'salary_amount must be positive'))
        if 'salary_frequency' in data:
            fields['salary_frequency'] = _choice(data.get('salary_frequency'), FREQUENCIES, 'Invalid salary_frequency')

    for field in ('phone', 'notes'):
        if not partial or field in data:
            fields[field] = clean_text(data.get(field))

    if not partial or 'active' in data:
        fields['active'] = parse_bool(data.get('active'), True)

    if partial and not fields:
        raise ServiceError('No fields provided to update')
    return fields


def employee_has_history(employee):
    return (
        PayrollEntry.objects.filter(Q(employee=employee) | Q(helper_employee=employee)).exists()
        or InventoryEntry.objects.filter(Q(worker_employee=employee) | Q(helper_employee=employee)).exists()
        or CashCustodyEntry.objects.filter(Q(from_employee=employee) | Q(to_employee=employee)).exists()
    )


# --- Piece rates ---

def create_piece_rate(employee, data):
    if employee.role != Employee.ROLE_MANUFACTURING:
        raise ServiceError('Piece rates can only be added for manufacturing staff')

    try:
        product_id = parse_int(data.get('product_id'))
    except ValueError:
        product_id = None
    if not product_id:
        raise ServiceError('product_id is required')
    product = Product.objects.filter(pk=product_id, is_manufactured=True).first()
    if product is None:
        raise ServiceError('Select a valid manufactured product')

    rate = _positive(data.get('rate'), 'rate must be a positive number')
    helper_rate = None
    if data.get('helper_rate') not in (None, ''):
        helper_rate = _positive(data.get('helper_rate'), 'helper_rate must be a positive number when provided')

    if ManufacturingPieceRate.objects.filter(employee=employee, product=product).exists():
        raise ServiceError('This product already has a rate for the employee')

    return ManufacturingPieceRate.objects.create(
        employee=employee, product=product, rate=rate, helper_rate=helper_rate
    )


def update_piece_rate(piece_rate, data):
    update_fields = []
    if 'rate' in data:
        piece_rate.rate = _positive(data.get('rate'), 'rate must be a positive number')
        update_fields.append('rate')
    if 'helper_rate' in data:
        if data.get('helper_rate') in (None, ''):
            piece_rate.helper_rate = None
        else:
            piece_rate.helper_rate = _positive(data.get('helper_rate'), 'helper_rate must be a positive number')
        update_fields.append('helper_rate')
    if 'is_active' in data:
        piece_rate.is_active = parse_bool(data.get('is_active'), piece_rate.is_active)
        update_fields.append('is_active')
    if not update_fields:
        raise ServiceError('No fields provided to update')
    piece_rate.save(update_fields=update_fields + ['updated_at'])
    return piece_rate


# --- Payroll entries ---

def _optional_employee(data, field, message, not_found):
    raw = data.get(field)
    if raw in (None, ''):
        return None
    try:
        employee_id = parse_int(raw)
    except ValueError:
        raise ServiceError(message)
    employee = Employee.objects.filter(pk=employee_id).first()
    if employee is None:
        raise ServiceError(not_found)
    return employee


def _open_run(data):
    raw = data.get('payroll_run_id')
    if raw in (None, ''):
        return None
    try:
        run_id = parse_int(raw)
    except ValueError:
        raise ServiceError('payroll_run_id must be a valid number')
    run = PayrollRun.objects.filter(pk=run_id).first()
    if run is None:
        raise ServiceError('Payroll run not found')
    if run.status in (PayrollRun.STATUS_PAID, PayrollRun.STATUS_CANCELLED):
        raise ServiceError('Cannot attach entries to a paid or cancelled run')
    return run


def _stone_product(data):
    raw = data.get('stone_product_id')
    if raw in (None, ''):
        return None
    try:
        product_id = parse_int(raw)
    except ValueError:
        raise ServiceError('stone_product_id must be a valid number')
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise ServiceError('Stone product not found')
    if not product.is_manufactured:
        raise ServiceError('Stone product must be a manufactured product')
    return product


def helper_unit_rate(helper, product):
    """Helper pay per unit: the helper's active rate for the product, else the product's helper rate"""
    rate = active_piece_rate(helper, product)
    if rate is not None:
        return rate.helper_rate or rate.rate
    if product.helper_piecework_rate and product.helper_piecework_rate > 0:
        return product.helper_piecework_rate
    return None


def create_payroll_entry(data, user=None):
    """
    Log a payroll entry. Salary entries default to the employee's salary;
    piecework entries multiply the quantity by the active piece rate. A helper
    gets a separate piecework entry priced with the helper rate.
    Returns the primary entry.
    """
    try:
        employee_id = parse_int(data.get('employee_id'))
    except ValueError:
        employee_id = None
    if not employee_id:
        raise ServiceError('employee_id is required')

    try:
        period_start = parse_date(data.get('period_start')) or timezone.now()
    except ValueError:
        raise ServiceError('Invalid period_start value')
    try:
        period_end = parse_date(data.get('period_end')) or period_start
    except ValueError:
        raise ServiceError('Invalid period_end value')

    employee = Employee.objects.filter(pk=employee_id).first()
    if employee is None:
        raise ServiceError('Employee not found')

    run = _open_run(data)

    entry_type = _choice(data.get('type') or employee.pay_type, PAY_TYPES, 'Invalid payroll type')
    if entry_type != employee.pay_type:
        raise ServiceError("Payroll type must match the employee's pay type")

    stone_product = _stone_product(data)
    helper = _optional_employee(
        data, 'helper_employee_id', 'helper_employee_id must be a valid number', 'Helper employee not found'
    )
    if helper is not None and helper.id == employee.id:
        raise ServiceError('Helper cannot be the same as the primary employee')

    quantity = None
    helper_rate = None
    amount_given = data.get('amount') not in (None, '')

    if entry_type == PayrollEntry.TYPE_SALARY:
        if amount_given:
            amount = _positive(data.get('amount'), 'Amount must be a positive number')
        elif employee.salary_amount:
            amount = employee.salary_amount
        else:
            raise ServiceError('Provide amount or set a salary amount for this employee')
    else:
        try:
            quantity = parse_decimal(data.get('quantity'))
        except ValueError:
            quantity = None
        if quantity is None or quantity <= 0:
            raise ServiceError('quantity is required for piecework payroll')

        if helper is not None:
            if stone_product is None:
                raise ServiceError('Select the stone product so helper payouts can be calculated.')
            helper_rate = helper_unit_rate(helper, stone_product)
            if helper_rate is None:
                raise ServiceError(
                    f"Configure a helper rate for {stone_product.name} in Products or on the selected "
                    f"employee before logging payroll."
                )

        base_rate = None
        if stone_product is not None:
            piece_rate = active_piece_rate(employee, stone_product)
            base_rate = piece_rate.rate if piece_rate else stone_product.piecework_rate
        if not base_rate:
            raise ServiceError('Set a piece rate on the employee or the selected stone product')

        if amount_given:
            amount = _positive(data.get('amount'), 'Amount must be a positive number')
        else:
            amount = quantity * base_rate

    amount = money(amount)
    if amount <= 0:
        raise ServiceError('Unable to determine payroll amount')

    create_payment = parse_bool(data.get('create_payment'), False)
    payment_date = None
    if create_payment:
        try:
            payment_date = parse_date(data.get('payment_date')) or period_end
        except ValueError:
            raise ServiceError('Invalid payment_date value')
    payment_fields = {
        'description': clean_text(data.get('payment_description')),
        'reference': clean_text(data.get('payment_reference')),
        'category': clean_text(data.get('payment_category')),
    }
    payment_type = Payment.TYPE_PAYROLL_SALARY if entry_type == PayrollEntry.TYPE_SALARY else Payment.TYPE_PAYROLL_PIECEWORK

    with transaction.atomic():
        entry = PayrollEntry.objects.create(
            employee=employee,
            period_start=period_start,
            period_end=period_end,
            type=entry_type,
            quantity=qty(quantity) if quantity is not None else None,
            amount=amount,
            notes=clean_text(data.get('notes')),
            stone_product=stone_product,
            helper_employee=helper,
            payroll_run=run,
        )
        if create_payment:
            record_payment(
                payment_type, amount,
                created_by=user,
                payroll_entry=entry,
                date=payment_date,
                description=payment_fields['description'] or f"Payroll for {employee.name}",
                reference=payment_fields['reference'],
                category=payment_fields['category'],
            )

        if helper is not None:
            helper_amount = money(helper_rate * quantity)
            helper_entry = PayrollEntry.objects.create(
                employee=helper,
                period_start=period_start,
                period_end=period_end,
                type=PayrollEntry.TYPE_PIECEWORK,
                quantity=qty(quantity),
                amount=helper_amount,
                notes=f"Helper payout for {employee.name} ({stone_product.name})",
                stone_product=stone_product,
                payroll_run=run,
            )
            if create_payment:
                record_payment(
                    Payment.TYPE_PAYROLL_PIECEWORK, helper_amount,
                    created_by=user,
                    payroll_entry=helper_entry,
                    date=payment_date,
                    description=payment_fields['description'] or f"Helper payout ({stone_product.name})",
                    reference=payment_fields['reference'],
                    category=payment_fields['category'],
                )

        if run is not None:
            refresh_run_totals(run)

    logger.info(f"Payroll entry {entry.id} created for employee {employee.id}: {entry.type} {entry.amount}")
    return entry


# --- Payroll runs ---

def refresh_run_totals(run):
    gross = sum((entry.amount for entry in run.entries.all()), ZERO)
    run.total_gross = money(gross)
    run.total_net = money(gross)
    run.total_deductions = ZERO
    run.save(update_fields=['total_gross', 'total_net', 'total_deductions', 'updated_at'])
    return run


def overlapping_run(frequency, period_start, period_end, exclude_id=None):
    runs = PayrollRun.objects.filter(
        frequency=frequency,
        period_start__lte=period_end,
        period_end__gte=period_start,
    ).exclude(status=PayrollRun.STATUS_CANCELLED)
    if exclude_id:
        runs = runs.exclude(pk=exclude_id)
    return runs.order_by('period_start').first()


def _production_piecework(period_start, period_end):
    """Worker and helper payouts from production runs in the window, per employee"""
    totals = OrderedDict()
    entries = InventoryEntry.objects.filter(
        type=InventoryEntry.TYPE_PRODUCTION,
        entry_date__gte=period_start,
        entry_date__lte=period_end,
    ).filter(Q(worker_employee__isnull=False) | Q(helper_employee__isnull=False)).order_by('entry_date', 'id')
    for entry in entries:
        for employee_id, amount in (
            (entry.worker_employee_id, entry.labor_amount),
            (entry.helper_employee_id, entry.helper_labor_amount),
        ):
            if not employee_id:
                continue
            summary = totals.setdefault(employee_id, {'quantity': Decimal('0'), 'amount': ZERO})
            summary['quantity'] += entry.quantity or Decimal('0')
            summary['amount'] += amount or ZERO
    return totals


def create_payroll_run(data, user=None):
    """
    Create a DRAFT run for a frequency and period. With auto_generate the
    entries are built from active salaried employees of that frequency plus
    production piecework in the window; otherwise unassigned entries inside
    the period (optionally only entry_ids) are attached.
    """
    frequency = _choice(data.get('frequency'), FREQUENCIES, 'frequency must be WEEKLY or MONTHLY')
    try:
        period_start = parse_date(data.get('period_start'))
    except ValueError:
        period_start = None
    if period_start is None:
        raise ServiceError('period_start is required')
    try:
        period_end = parse_date(data.get('period_end'))
    except ValueError:
        period_end = None
    if period_end is None:
        raise ServiceError('period_end is required')
    if period_end < period_start:
        raise ServiceError('period_end must be after period_start')
    try:
        debit_at = parse_date(data.get('debit_at'))
    except ValueError:
        raise ServiceError('Invalid debit_at value')

    clash = overlapping_run(frequency, period_start, period_end)
    if clash is not None:
        raise ServiceError(
            'A payroll run already covers part of this period',
            status.HTTP_409_CONFLICT,
            extra={'conflicting_run_id': clash.id},
        )

    entry_ids = None
    if isinstance(data.get('entry_ids'), list):
        entry_ids = []
        for value in data.get('entry_ids'):
            try:
                parsed = parse_int(value)
            except ValueError:
                continue
            if parsed:
                entry_ids.append(parsed)

    auto_generate = parse_bool(data.get('auto_generate'), False)
    label = frequency.lower()

    with transaction.atomic():
        run = PayrollRun.objects.create(
            frequency=frequency,
            period_start=period_start,
            period_end=period_end,
            debit_at=debit_at,
            notes=clean_text(data.get('notes')),
            created_by=user,
        )

        if auto_generate and entry_ids is None:
            new_entries = []
            salaried = Employee.objects.filter(
                active=True, pay_type=Employee.PAY_SALARY, salary_frequency=frequency, salary_amount__isnull=False
            ).order_by('name')
            for employee in salaried:
                new_entries.append(PayrollEntry(
                    employee=employee, period_start=period_start, period_end=period_end,
                    type=PayrollEntry.TYPE_SALARY, amount=money(employee.salary_amount),
                    notes=f"Auto {label} salary", payroll_run=run,
                ))
            for employee_id, summary in _production_piecework(period_start, period_end).items():
                if summary['amount'] <= 0:
                    continue
                new_entries.append(PayrollEntry(
                    employee_id=employee_id, period_start=period_start, period_end=period_end,
                    type=PayrollEntry.TYPE_PIECEWORK, amount=money(summary['amount']),
                    quantity=qty(summary['quantity']), notes=f"Auto piecework {label}", payroll_run=run,
                ))
            if new_entries:
                PayrollEntry.objects.bulk_create(new_entries)
        else:
            existing = PayrollEntry.objects.filter(
                period_start__gte=period_start, period_end__lte=period_end, payroll_run__isnull=True
            )
            if entry_ids is not None:
                existing = existing.filter(pk__in=entry_ids)
            existing.update(payroll_run=run)

        if not run.entries.exists():
            # Rolls back the run created above
            raise ServiceError('No payroll entries found for the selected period')
        refresh_run_totals(run)

    logger.info(f"Payroll run {run.id} created ({frequency} {period_start:%Y-%m-%d} - {period_end:%Y-%m-%d})")
    return run


def finalize_run(run, data):
    if run.status not in (PayrollRun.STATUS_DRAFT, PayrollRun.STATUS_FINALIZED):
        raise ServiceError('Only draft runs can be finalized')
    try:
        debit_at = parse_date(data.get('debit_at'))
    except ValueError:
        raise ServiceError('Invalid debit_at value')
    run.status = PayrollRun.STATUS_FINALIZED
    if debit_at is not None:
        run.debit_at = debit_at
    notes = clean_text(data.get('notes'))
    if notes:
        run.notes = notes
    run.save(update_fields=['status', 'debit_at', 'notes', 'updated_at'])
    return run


def debit_run(run, user=None):
    """
    Pay a draft or finalized run: one payroll payment per unpaid entry,
    production labor in the window is marked paid and the run becomes PAID.
    """
    if run.status not in (PayrollRun.STATUS_DRAFT, PayrollRun.STATUS_FINALIZED):
        if run.status == PayrollRun.STATUS_PAID:
            raise ServiceError('Run already debited')
        raise ServiceError('Only draft or finalized runs can be debited')

    now = timezone.now()
    paid_date = run.debit_at or now
    label = run.frequency.lower()
    with transaction.atomic():
        entries = list(run.entries.select_related('employee').filter(payment__isnull=True))
        for entry in entries:
            payment_type = (
                Payment.TYPE_PAYROLL_SALARY if entry.type == PayrollEntry.TYPE_SALARY
                else Payment.TYPE_PAYROLL_PIECEWORK
            )
            record_payment(
                payment_type, entry.amount,
                created_by=user,
                payroll_entry=entry,
                payroll_run=run,
                date=paid_date,
                description=f"Payroll run {run.id} ({label}): {entry.employee.name}",
                reference=f"payroll-run-{run.id}",
            )

        InventoryEntry.objects.filter(
            type=InventoryEntry.TYPE_PRODUCTION,
            labor_paid=False,
            entry_date__gte=run.period_start,
            entry_date__lte=run.period_end,
        ).filter(Q(worker_employee__isnull=False) | Q(helper_employee__isnull=False)).update(
            labor_paid=True, labor_paid_at=paid_date
        )

        refresh_run_totals(run)
        run.status = PayrollRun.STATUS_PAID
        run.paid_at = now
        run.save(update_fields=['status', 'paid_at', 'updated_at'])

    logger.info(f"Payroll run {run.id} debited: {run.total_net}")
    return run
