"""Finance overview, TVA reporting and receivable integrity checks"""
import logging
from decimal import Decimal

from django.db import transaction

from buildledger.catalog.models import Product
from buildledger.core.models import AdminOverride, DisplaySettings
from buildledger.core.utils import ZERO, money, tva_rate
from buildledger.inventory.models import InventoryEntry
from buildledger.parties.models import Customer, Supplier
from buildledger.payments.cash_flows import fetch_cash_flows
from buildledger.payments.models import Payment
from buildledger.payments.services import entry_amount, linked_receipt_total, repair_receipt_balance
from buildledger.payroll.models import PayrollEntry
from buildledger.receipts.models import Receipt
from .services import labor_payables, outstanding, period_key

logger = logging.getLogger(__name__)

PAYROLL_PAYMENT_TYPES = {Payment.TYPE_PAYROLL_SALARY, Payment.TYPE_PAYROLL_PIECEWORK, Payment.TYPE_PAYROLL_RUN}
EXPENSE_PAYMENT_TYPES = {Payment.TYPE_GENERAL_EXPENSE, Payment.TYPE_OWNER_DRAW}


def _overrides():
    return {row.category: row.value for row in AdminOverride.objects.all()}


def _visible_outflow(row, flags):
    if not flags['include_debris'] and row['type'] == Payment.TYPE_DEBRIS_REMOVAL:
        return False
    if not flags['include_general_expenses'] and row['type'] in EXPENSE_PAYMENT_TYPES:
        return False
    if not flags['include_payroll'] and row['type'] in PAYROLL_PAYMENT_TYPES:
        return False
    if not flags['include_supplier_purchases'] and row['type'] == Payment.TYPE_SUPPLIER:
        return False
    return True


def finance_overview(start=None, end=None, customer_id=None, supplier_id=None, product_id=None):
    """
    Cash, receivables, payables and inventory value. Manual account
    overrides replace the computed balance of that account, admin
    overrides replace the headline totals and display settings hide sections.
    """
    flags = DisplaySettings.load().as_flags()
    overrides = _overrides()

    flows = fetch_cash_flows(start, end, customer_id=customer_id, supplier_id=supplier_id, product_id=product_id)
    inflows = flows['inflows'] if flags['include_receipts'] else []
    outflows = [row for row in flows['outflows'] if _visible_outflow(row, flags)]
    inflow_total = sum((row['amount'] for row in inflows), ZERO)
    outflow_total = sum((row['amount'] for row in outflows), ZERO)

    # Receivables
    manual_customers = Customer.objects.filter(manual_balance_override__isnull=False)
    manual_suppliers = Supplier.objects.filter(manual_balance_override__isnull=False)
    if customer_id:
        manual_customers = manual_customers.filter(id=customer_id)
    elif product_id:
        manual_customers = manual_customers.none()
    if supplier_id:
        manual_suppliers = manual_suppliers.filter(id=supplier_id)
    elif product_id:
        manual_suppliers = manual_suppliers.none()
    manual_customers = list(manual_customers)
    manual_suppliers = list(manual_suppliers)

    receivables = []
    if not (supplier_id and not customer_id):
        receipts = Receipt.objects.filter(customer_id__isnull=False, is_paid=False).exclude(
            customer_id__in=[c.id for c in manual_customers]
        ).select_related('customer').order_by('date', 'id')
        if customer_id:
            receipts = receipts.filter(customer_id=customer_id)
        if product_id:
            receipts = receipts.filter(items__product_id=product_id).distinct()
        if start:
            receipts = receipts.filter(date__gte=start)
        if end:
            receipts = receipts.filter(date__lte=end)
        for receipt in receipts:
            due = outstanding(receipt)
            if due <= 0:
                continue
            receivables.append({
                'id': receipt.id,
                'receipt_no': receipt.receipt_no,
                'customer': receipt.customer.name,
                'customer_id': receipt.customer_id,
                'date': receipt.date,
                'total': receipt.total,
                'outstanding': due,
                'is_manual': False,
                'note': None,
            })
        receivables.extend({
            'id': -customer.id,
            'receipt_no': 'Manual override',
            'customer': customer.name,
            'customer_id': customer.id,
            'date': customer.manual_balance_updated_at,
            'total': customer.manual_balance_override,
            'outstanding': customer.manual_balance_override,
            'is_manual': True,
            'note': customer.manual_balance_note,
        } for customer in manual_customers)
    computed_receivables = money(sum((row['outstanding'] for row in receivables), ZERO))

    # Payables
    purchases = []
    if not (customer_id and not supplier_id):
        entries = InventoryEntry.objects.filter(type=InventoryEntry.TYPE_PURCHASE, is_paid=False).exclude(
            supplier_id__in=[s.id for s in manual_suppliers]
        ).select_related('supplier', 'product').order_by('entry_date', 'id')
        if supplier_id:
            entries = entries.filter(supplier_id=supplier_id)
        if product_id:
            entries = entries.filter(product_id=product_id)
        for entry in entries:
            due = money(entry_amount(entry) - entry.amount_paid)
            if due <= 0:
                continue
            purchases.append({
                'id': entry.id,
                'inventory_no': entry.inventory_no,
                'supplier': entry.supplier.name if entry.supplier else 'Unknown supplier',
                'supplier_id': entry.supplier_id,
                'product': entry.product.name,
                'date': entry.entry_date,
                'amount': due,
                'is_manual': False,
                'note': None,
            })
        purchases.extend({
            'id': -supplier.id,
            'inventory_no': None,
            'supplier': supplier.name,
            'supplier_id': supplier.id,
            'product': 'Manual override',
            'date': supplier.manual_balance_updated_at,
            'amount': supplier.manual_balance_override,
            'is_manual': True,
            'note': supplier.manual_balance_note,
        } for supplier in manual_suppliers)
    purchase_total = money(sum((row['amount'] for row in purchases), ZERO))

    labor = []
    payroll = []
    if not (customer_id or supplier_id):
        _, labor_entries = labor_payables()
        labor = [
            {
                'id': entry.id,
                'inventory_no': entry.inventory_no,
                'product': entry.product.name,
                'date': entry.entry_date,
                'quantity': entry.quantity,
                'worker_due': entry.labor_amount or ZERO,
                'helper_due': entry.helper_labor_amount or ZERO,
                'total': (entry.labor_amount or ZERO) + (entry.helper_labor_amount or ZERO),
                'worker_name': entry.worker_employee.name if entry.worker_employee else None,
                'helper_name': entry.helper_employee.name if entry.helper_employee else None,
                'production_site': entry.production_site,
            }
            for entry in labor_entries
        ]
        payroll = [
            {
                'id': entry.id,
                'employee': entry.employee.name,
                'amount': entry.amount,
                'period_start': entry.period_start,
                'period_end': entry.period_end,
                'product': entry.stone_product.name if entry.stone_product else None,
            }
            for entry in PayrollEntry.objects.filter(payment__isnull=True).select_related(
                'employee', 'stone_product'
            ).order_by('created_at', 'id')
        ]
    labor_total = money(sum((row['total'] for row in labor), ZERO))
    payroll_total = money(sum((row['amount'] for row in payroll), ZERO))

    computed_inventory = money(sum(
        (p.stock_qty * (p.unit_price or ZERO) for p in Product.objects.only('stock_qty', 'unit_price')), ZERO
    ))

    inventory_override = overrides.get(AdminOverride.CATEGORY_INVENTORY_VALUE)
    receivables_override = None if product_id else overrides.get(AdminOverride.CATEGORY_RECEIVABLES_TOTAL)
    payables_override = None if product_id else overrides.get(AdminOverride.CATEGORY_PAYABLES_TOTAL)

    show_cash = flags['display_cash']
    show_receivables = flags['display_receivables'] and flags['include_receipts']
    show_payables = flags['display_payables']
    show_purchases = show_payables and flags['include_supplier_purchases']
    show_labor = show_payables and flags['include_manufacturing']
    show_payroll = show_payables and flags['include_payroll']
    show_inventory = flags['include_inventory_value']

    computed_payables = (
        (purchase_total if show_purchases else ZERO)
        + (labor_total if show_labor else ZERO)
        + (payroll_total if show_payroll else ZERO)
    )

    return {
        'cash': {
            'on_hand': money(inflow_total - outflow_total) if show_cash else ZERO,
            'inflow_total': money(inflow_total) if show_cash else ZERO,
            'outflow_total': money(outflow_total) if show_cash else ZERO,
            'inflows': inflows if show_cash else [],
            'outflows': outflows if show_cash else [],
        },
        'receivables': {
            'total': (receivables_override if receivables_override is not None else computed_receivables)
            if show_receivables else ZERO,
            'computed_total': computed_receivables if show_receivables else ZERO,
            'override_value': receivables_override if show_receivables else None,
            'receipts': receivables if show_receivables else [],
        },
        'payables': {
            'total': (payables_override if payables_override is not None else computed_payables)
            if show_payables else ZERO,
            'computed_total': computed_payables if show_payables else ZERO,
            'override_value': payables_override if show_payables else None,
            'purchase_total': purchase_total if show_purchases else ZERO,
            'labor_total': labor_total if show_labor else ZERO,
            'payroll_total': payroll_total if show_payroll else ZERO,
            'purchases': purchases if show_purchases else [],
            'labor': labor if show_labor else [],
            'payroll': payroll if show_payroll else [],
        },
        'inventory': {
            'total': (inventory_override if inventory_override is not None else computed_inventory)
            if show_inventory else ZERO,
            'computed_total': computed_inventory if show_inventory else ZERO,
            'override_value': inventory_override if show_inventory else None,
        },
        'details': {
            'customer_receipts': _customer_detail(customer_id, product_id, start, end) if customer_id else [],
            'supplier_purchases': _supplier_detail(supplier_id, product_id, start, end) if supplier_id else [],
        },
        'display_flags': flags,
    }


def _customer_detail(customer_id, product_id, start, end):
    receipts = Receipt.objects.filter(customer_id=customer_id).order_by('-date', '-id')
    if product_id:
        receipts = receipts.filter(items__product_id=product_id).distinct()
    if start:
        receipts = receipts.filter(date__gte=start)
    if end:
        receipts = receipts.filter(date__lte=end)
    return [
        {
            'id': r.id, 'receipt_no': r.receipt_no, 'date': r.date, 'type': r.type, 'total': r.total,
            'paid': r.amount_paid, 'outstanding': outstanding(r), 'is_paid': r.is_paid,
        }
        for r in receipts
    ]


def _supplier_detail(supplier_id, product_id, start, end):
    entries = InventoryEntry.objects.filter(
        type=InventoryEntry.TYPE_PURCHASE, supplier_id=supplier_id
    ).select_related('product').order_by('-entry_date', '-id')
    if product_id:
        entries = entries.filter(product_id=product_id)
    if start:
        entries = entries.filter(entry_date__gte=start)
    if end:
        entries = entries.filter(entry_date__lte=end)
    rows = []
    for entry in entries:
        total = entry_amount(entry)
        rows.append({
            'id': entry.id, 'inventory_no': entry.inventory_no, 'product': entry.product.name,
            'date': entry.entry_date, 'total': total, 'paid': entry.amount_paid,
            'outstanding': max(total - entry.amount_paid, ZERO), 'is_paid': entry.is_paid,
        })
    return rows


# Period summary
def period_summary(start, end):
    """Money in and out over a range, by payment type, for the printable summary"""
    flows = cash_ledger(start, end)
    sales = Receipt.objects.filter(date__gte=start, date__lte=end)
    purchases = InventoryEntry.objects.filter(
        type=InventoryEntry.TYPE_PURCHASE, entry_date__gte=start, entry_date__lte=end
    )
    return {
        'start': start,
        'end': end,
        'sales_total': money(sum((r.total for r in sales), ZERO)),
        'receipts_count': sales.count(),
        'purchases_total': money(sum((entry_amount(e) for e in purchases), ZERO)),
        'inflow_total': flows['inflow_total'],
        'outflow_total': flows['outflow_total'],
        'net_cash': flows['cash_on_hand'],
        'inflow_by_type': flows['inflow_by_type'],
        'outflow_by_type': flows['outflow_by_type'],
    }


# Tax reports
def included_tva(amount):
    """VAT part of a VAT-inclusive amount"""
    rate = tva_rate()
    return money(amount - amount / (Decimal('1') + rate))


def tax_period_key(value, period):
    if period == 'quarter':
        month_key = period_key(value, 'month')
        year, month = month_key.split('-')
        return f"{year}-Q{(int(month) - 1) // 3 + 1}"
    return period_key(value, 'month')


def tax_report(start=None, end=None, period='month', customer_id=None, supplier_id=None):
    """
    TVA collected on TVA receipts against TVA paid on TVA-eligible purchases,
    bucketed per month or quarter. Purchase costs are taken as VAT inclusive.
    """
    sales = Receipt.objects.filter(type=Receipt.TYPE_TVA).select_related('customer').order_by('date', 'id')
    purchases = InventoryEntry.objects.filter(
        type=InventoryEntry.TYPE_PURCHASE, tva_eligible=True
    ).select_related('supplier', 'product').order_by('entry_date', 'id')
    if start:
        sales = sales.filter(date__gte=start)
        purchases = purchases.filter(entry_date__gte=start)
    if end:
        sales = sales.filter(date__lte=end)
        purchases = purchases.filter(entry_date__lte=end)
    if customer_id:
        sales = sales.filter(customer_id=customer_id)
    if supplier_id:
        purchases = purchases.filter(supplier_id=supplier_id)

    periods = {}

    def bucket(key):
        return periods.setdefault(key, {
            'period': key, 'sales_total': ZERO, 'tva_collected': ZERO,
            'purchases_total': ZERO, 'tva_paid': ZERO,
        })

    sale_rows = []
    statement = {}
    for receipt in sales:
        tva = included_tva(receipt.total)
        row = bucket(tax_period_key(receipt.date, period))
        row['sales_total'] += receipt.total
        row['tva_collected'] += tva
        name = receipt.customer.name if receipt.customer else (receipt.walk_in_name or 'Walk-in')
        account = statement.setdefault(name.lower(), {'name': name, 'total': ZERO, 'paid': ZERO, 'outstanding': ZERO})
        account['total'] += receipt.total
        account['paid'] += receipt.amount_paid
        account['outstanding'] += outstanding(receipt)
        sale_rows.append({
            'id': receipt.id, 'receipt_no': receipt.receipt_no, 'date': receipt.date,
            'customer_name': name, 'total': receipt.total, 'tva': tva,
            'amount_paid': receipt.amount_paid, 'outstanding': outstanding(receipt), 'is_paid': receipt.is_paid,
        })

    purchase_rows = []
    for entry in purchases:
        amount = entry_amount(entry)
        tva = included_tva(amount)
        row = bucket(tax_period_key(entry.entry_date, period))
        row['purchases_total'] += amount
        row['tva_paid'] += tva
        purchase_rows.append({
            'id': entry.id, 'inventory_no': entry.inventory_no, 'date': entry.entry_date,
            'supplier_name': entry.supplier.name if entry.supplier else None, 'product_name': entry.product.name,
            'quantity': entry.quantity, 'total_cost': amount, 'tva': tva, 'is_paid': entry.is_paid,
        })

    rows = sorted(periods.values(), key=lambda row: row['period'])
    for row in rows:
        row['net_tva'] = row['tva_collected'] - row['tva_paid']
    collected = sum((row['tva_collected'] for row in rows), ZERO)
    paid = sum((row['tva_paid'] for row in rows), ZERO)
    return {
        'filters': {
            'start': start, 'end': end, 'period': period,
            'customer_id': customer_id, 'supplier_id': supplier_id,
        },
        'tva_rate': tva_rate(),
        'periods': rows,
        'totals': {
            'sales_total': sum((row['sales_total'] for row in rows), ZERO),
            'purchases_total': sum((row['purchases_total'] for row in rows), ZERO),
            'tva_collected': collected,
            'tva_paid': paid,
            'net_tva': collected - paid,
        },
        'sales': sale_rows,
        'purchases': purchase_rows,
        'statement_of_account': sorted(statement.values(), key=lambda row: row['name'].lower()),
    }


# Receivable integrity checks
def receivables_health():
    """Receipts whose stored paid amount disagrees with their payment links, plus suspicious payments"""
    mismatched = []
    outstanding_by_customer = {}
    for receipt in Receipt.objects.prefetch_related('payment_links'):
        linked = linked_receipt_total(receipt)
        old_paid, new_paid, changed = repair_receipt_balance(receipt, dry_run=True)
        if changed:
            mismatched.append({
                'id': receipt.id,
                'receipt_no': receipt.receipt_no,
                'customer_id': receipt.customer_id,
                'total': receipt.total,
                'stored_paid': old_paid,
                'linked_paid': linked,
                'expected_paid': new_paid,
                'stored_is_paid': receipt.is_paid,
            })
        if receipt.customer_id:
            due = max(receipt.total - max(linked, receipt.amount_paid), ZERO)
            outstanding_by_customer[receipt.customer_id] = outstanding_by_customer.get(receipt.customer_id, ZERO) + due

    invalid_payments = [
        {'id': p.id, 'type': p.type, 'amount': p.amount, 'customer_id': p.customer_id, 'receipt_id': p.receipt_id}
        for p in Payment.objects.filter(type__in=Payment.INFLOW_TYPES)
        if (p.type == Payment.TYPE_RECEIPT and p.receipt_id is None)
        or (p.type == Payment.TYPE_CUSTOMER_PAYMENT and p.customer_id is None)
    ]
    top = sorted(
        ({'customer_id': cid, 'outstanding': money(amount)} for cid, amount in outstanding_by_customer.items()),
        key=lambda row: row['outstanding'], reverse=True,
    )[:20]
    return {
        'mismatched_receipts': mismatched,
        'invalid_payments': invalid_payments,
        'top_outstanding': top,
    }


def recompute_receipt_balances(receipt_id=None, customer_id=None):
    receipts = Receipt.objects.prefetch_related('payment_links')
    if receipt_id:
        receipts = receipts.filter(id=receipt_id)
    if customer_id:
        receipts = receipts.filter(customer_id=customer_id)
    updated = 0
    total = 0
    with transaction.atomic():
        for receipt in receipts:
            total += 1
            _, _, changed = repair_receipt_balance(receipt)
            if changed:
                updated += 1
    logger.info(f"Recomputed receipt balances: {updated} updated out of {total}")
    return {'updated': updated, 'skipped': total - updated}


def repair_mismatched_receipts():
    repaired = []
    with transaction.atomic():
        for receipt in Receipt.objects.prefetch_related('payment_links'):
            _, new_paid, changed = repair_receipt_balance(receipt)
            if changed:
                repaired.append({'id': receipt.id, 'new_paid': new_paid})
    logger.info(f"Repaired {len(repaired)} receipt balances")
    return {'repaired': repaired, 'count': len(repaired)}


def cash_ledger(start=None, end=None):
    ledger = fetch_cash_flows(start, end)
    inflow_by_type = {}
    for row in ledger['inflows']:
        inflow_by_type[row['type']] = inflow_by_type.get(row['type'], ZERO) + row['amount']
    outflow_by_type = {}
    for row in ledger['outflows']:
        outflow_by_type[row['type']] = outflow_by_type.get(row['type'], ZERO) + row['amount']
    return {**ledger, 'inflow_by_type': inflow_by_type, 'outflow_by_type': outflow_by_type}
