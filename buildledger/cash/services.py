"""Cash box: on-hand summary, manual entries, owner draws and custody handoffs"""
import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Q, Sum

from buildledger.core.exceptions import ServiceError
from buildledger.core.utils import ZERO, clean_text, money, parse_decimal, parse_int
from buildledger.inventory.models import InventoryEntry
from buildledger.payments.cash_flows import fetch_cash_flows
from buildledger.payments.models import Payment
from buildledger.payments.services import entry_amount, record_payment
from buildledger.payroll.models import Employee
from buildledger.receipts.models import Receipt
from .models import CashEntry, CashCustodyEntry

logger = logging.getLogger(__name__)

OWNER_DRAW_CATEGORY = 'Owner Draw'


def _normalize(name):
    return (name or '').strip().lower()


def is_owner(employee):
    return _normalize(employee.name) == _normalize(settings.CASH_OWNER_NAME)


def manual_cash_total():
    """Deposits minus withdrawals; owner draws are counted through their payment"""
    total = CashEntry.objects.exclude(type=CashEntry.TYPE_OWNER_DRAW).aggregate(total=Sum('amount'))['total']
    return money(total or ZERO)


def cash_summary():
    flows = fetch_cash_flows()
    manual = manual_cash_total()
    receivables = ZERO
    for receipt in Receipt.objects.filter(is_paid=False).only('total', 'amount_paid'):
        receivables += max(receipt.total - receipt.amount_paid, ZERO)
    payables = ZERO
    for entry in InventoryEntry.objects.filter(type=InventoryEntry.TYPE_PURCHASE, is_paid=False):
        payables += max(entry_amount(entry) - entry.amount_paid, ZERO)
    return {
        'cash_on_hand': money(flows['cash_on_hand'] + manual),
        'paid_in': flows['inflow_total'],
        'paid_out': flows['outflow_total'],
        'manual_adjustments': manual,
        'receivables': money(receivables),
        'payables': money(payables),
    }


def _positive_amount(value):
    try:
        amount = parse_decimal(value)
    except ValueError:
        amount = None
    if amount is None or amount <= 0:
        raise ServiceError('Amount must be a positive number')
    return money(amount)


def create_cash_entry(data, user=None):
    """Withdrawals and owner draws are stored negative; owner draws also book a payment"""
    amount = _positive_amount(data.get('amount'))
    entry_type = str(data.get('type') or '').strip().upper()
    if entry_type not in (CashEntry.TYPE_DEPOSIT, CashEntry.TYPE_WITHDRAW, CashEntry.TYPE_OWNER_DRAW):
        raise ServiceError('Invalid entry type')
    description = clean_text(data.get('description'))
    signed = amount if entry_type == CashEntry.TYPE_DEPOSIT else -amount

    with transaction.atomic():
        entry = CashEntry.objects.create(type=entry_type, amount=signed, description=description, created_by=user)
        if entry_type == CashEntry.TYPE_OWNER_DRAW:
            record_payment(
                Payment.TYPE_OWNER_DRAW, amount,
                created_by=user,
                description=description or 'Owner draw',
                category=OWNER_DRAW_CATEGORY,
                reference=f"cash-entry-{entry.id}",
            )
    logger.info(f"Cash entry {entry.id} recorded: {entry.type} {entry.amount}")
    return entry


def ensure_custody_holders():
    """{normalized name: Employee} for every configured holder, creating missing ones"""
    holders = {}
    for name in settings.CASH_CUSTODY_HOLDERS:
        key = _normalize(name)
        employee = Employee.objects.filter(name__iexact=key).first()
        if employee is None:
            employee = Employee.objects.create(
                name=' '.join(part.capitalize() for part in key.split()),
                role=Employee.ROLE_MANUFACTURING,
                pay_type=Employee.PAY_SALARY,
                salary_amount=ZERO,
                salary_frequency=Employee.FREQUENCY_MONTHLY,
                notes='Auto-created for cash custody tracking',
            )
            logger.info(f"Created custody holder employee {employee.name}")
        holders[key] = employee
    return holders


def custody_balances():
    """{employee_id: cash currently carried}"""
    balances = {}
    for entry in CashCustodyEntry.objects.only('amount', 'from_employee_id', 'to_employee_id'):
        balances[entry.from_employee_id] = balances.get(entry.from_employee_id, ZERO) - entry.amount
        balances[entry.to_employee_id] = balances.get(entry.to_employee_id, ZERO) + entry.amount
    return balances


def custody_overview():
    holders = ensure_custody_holders()
    holder_ids = {employee.id for employee in holders.values()}
    balances = custody_balances()
    outstanding = [
        {'employee': {'id': employee.id, 'name': employee.name}, 'amount': money(balances.get(employee.id, ZERO))}
        for employee in holders.values()
        if balances.get(employee.id, ZERO) != 0
    ]
    outstanding.sort(key=lambda item: abs(item['amount']), reverse=True)
    entries = CashCustodyEntry.objects.select_related('from_employee', 'to_employee', 'created_by').filter(
        Q(from_employee_id__in=holder_ids) | Q(to_employee_id__in=holder_ids)
    )
    return {
        'entries': entries.order_by('-created_at', '-id')[:100],
        'outstanding': outstanding,
        'employees': [{'id': employee.id, 'name': employee.name} for employee in holders.values()],
    }


def record_custody(data, user=None):
    """
    Hand cash from one holder to another. Holders other than the owner can
    only pass on what they carry. Cash reaching the owner is an owner draw;
    cash leaving the owner goes back into the box as a deposit.
    """
    holders = ensure_custody_holders()
    amount = _positive_amount(data.get('amount'))
    try:
        from_id = parse_int(data.get('from_employee_id'))
        to_id = parse_int(data.get('to_employee_id'))
    except ValueError:
        from_id = to_id = None
    if from_id is None or to_id is None:
        raise ServiceError('Both employees must be selected')
    if from_id == to_id:
        raise ServiceError('From and to employees must be different')

    by_id = {employee.id: employee for employee in holders.values()}
    sender = by_id.get(from_id)
    receiver = by_id.get(to_id)
    if sender is None or receiver is None:
        names = ', '.join(employee.name for employee in holders.values())
        raise ServiceError(f'Only {names} can be selected for custody logs')

    description = clean_text(data.get('description'))
    with transaction.atomic():
        if not is_owner(sender):
            carried = custody_balances().get(sender.id, ZERO)
            if carried < amount:
                raise ServiceError(f'{sender.name} only holds {money(carried)}')
        entry = CashCustodyEntry.objects.create(
            type=CashCustodyEntry.TYPE_RETURN if is_owner(receiver) else CashCustodyEntry.TYPE_HANDOFF,
            amount=amount,
            from_employee=sender,
            to_employee=receiver,
            description=description,
            created_by=user,
        )
        if is_owner(receiver):
            record_payment(
                Payment.TYPE_OWNER_DRAW, amount,
                created_by=user,
                description=description or f"Owner draw via custody #{entry.id} to {receiver.name}",
                category=OWNER_DRAW_CATEGORY,
                reference=f"custody-{entry.id}",
            )
        if is_owner(sender):
            CashEntry.objects.create(
                type=CashEntry.TYPE_DEPOSIT,
                amount=amount,
                description=description or f"Cash returned by {sender.name} (custody #{entry.id})",
                created_by=user,
            )
    return entry
