"""Dashboard figures and period reports built from receipts, payments and inventory"""
import logging
from datetime import date, timedelta
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncDay, TruncMonth, TruncWeek
from django.utils import timezone

from buildledger.cash.services import cash_summary
from buildledger.catalog.models import Product
from buildledger.catalog.utils import DEBRIS_NAME, find_product_by_name
from buildledger.core.cache_utils import DASHBOARD_CACHE_TTL, cached_query
from buildledger.core.models import AdminOverride
from buildledger.core.utils import ZERO, end_of_day, money, qty, start_of_day
from buildledger.debris.models import DebrisEntry
from buildledger.fleet.models import DieselLog
from buildledger.inventory.models import InventoryEntry
from buildledger.inventory.services import labor_total, production_payables, purchase_payables
from buildledger.parties.models import Customer
from buildledger.payments.models import Payment
from buildledger.payments.services import entry_amount
from buildledger.payroll.models import PayrollEntry
from buildledger.receipts.models import Receipt, ReceiptItem

logger = logging.getLogger(__name__)

GROUP_BY_CHOICES = ('day', 'week', 'month')
TRUNCATE = {'day': TruncDay, 'week': TruncWeek, 'month': TruncMonth}
OVERDUE_DAYS = 30


def outstanding(receipt):
    return max(receipt.total - receipt.amount_paid, ZERO)


def override_value(category):
    row = AdminOverride.objects.filter(category=category).first()
    return row.value if row else None


def period_key(value, group_by):
    """Bucket label for a datetime: 2024-05-03, week start 2024-04-29, or 2024-05"""
    local = timezone.localtime(value) if timezone.is_aware(value) else value
    if group_by == 'month':
        return local.strftime('%Y-%m')
    if group_by == 'week':
        return (local.date() - timedelta(days=local.weekday())).isoformat()
    return local.date().isoformat()


def adjusted_receivables(customer_ids=None):
    """
    Unpaid receipts, with customers carrying a manual balance override
    counted at the override instead. Returns (total, open receipt count).
    """
    overrides = Customer.objects.filter(manual_balance_override__isnull=False)
    if customer_ids:
        overrides = overrides.filter(id__in=customer_ids)
    override_map = {c.id: c.manual_balance_override for c in overrides}

    receipts = Receipt.objects.filter(is_paid=False).exclude(customer_id__in=list(override_map))
    if customer_ids:
        receipts = receipts.filter(customer_id__in=customer_ids)
    total = ZERO
    count = 0
    for receipt in receipts.only('total', 'amount_paid'):
        due = outstanding(receipt)
        if due > 0:
            total += due
            count += 1
    return money(total + sum(override_map.values(), ZERO)), count


def labor_payables():
    """(total, entries) of production runs whose labor is still unpaid"""
    entries = list(production_payables())
    return money(sum((labor_total(entry) for entry in entries), ZERO)), entries


def debris_on_hand():
    product = find_product_by_name(DEBRIS_NAME)
    return qty(product.stock_qty) if product else qty(0)


def low_stock_products(limit=10):
    threshold = Decimal(str(settings.LOW_STOCK_THRESHOLD))
    products = Product.objects.filter(
        stock_qty__lt=threshold, is_composite=False
    ).exclude(name__iexact=DEBRIS_NAME).order_by('stock_qty', 'name')[:limit]
    return threshold, [
        {'id': p.id, 'name': p.name, 'unit': p.unit, 'stock_qty': p.stock_qty}
        for p in products
    ]


# Dashboard
@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix='dashboard')
def build_dashboard(day):
    """Headline figures for the given local date (ISO string, also the cache key)"""
    today = date.fromisoformat(day)
    day_start, day_end = start_of_day(today), end_of_day(today)
    month_start = start_of_day(today.replace(day=1))

    todays = Receipt.objects.filter(date__gte=day_start, date__lte=day_end).aggregate(
        total=Sum('total'), paid=Sum('amount_paid'), count=Count('id')
    )
    month_total = Receipt.objects.filter(date__gte=month_start, date__lte=day_end).aggregate(
        total=Sum('total')
    )['total']

    computed_receivables, open_receipts = adjusted_receivables()
    receivables_override = override_value(AdminOverride.CATEGORY_RECEIVABLES_TOTAL)
    purchase_due, _ = purchase_payables()
    labor_due, labor_entries = labor_payables()
    payables_override = override_value(AdminOverride.CATEGORY_PAYABLES_TOTAL)

    month_outflows = Payment.objects.filter(
        type__in=Payment.OUTFLOW_TYPES, date__gte=month_start, date__lte=day_end
    ).aggregate(total=Sum('amount'))['total'] or ZERO
    month_purchases = sum((
        entry_amount(entry) for entry in InventoryEntry.objects.filter(
            type=InventoryEntry.TYPE_PURCHASE, entry_date__gte=month_start, entry_date__lte=day_end
        )
    ), ZERO)

    cash = cash_summary()

    removals = DebrisEntry.objects.filter(
        status=DebrisEntry.STATUS_REMOVED, removal_date__gte=month_start, removal_date__lte=day_end
    ).aggregate(count=Count('id'), volume=Sum('volume'), cost=Sum('removal_cost'))

    pending_payroll = PayrollEntry.objects.filter(payment__isnull=True).select_related(
        'employee'
    ).order_by('created_at', 'id')[:5]

    threshold, low_stock = low_stock_products()
    recent = Receipt.objects.select_related('customer').order_by('-date', '-id')[:5]

    return {
        'date': day,
        'receipts': {
            'today_count': todays['count'],
            'today_total': money(todays['total']),
            'today_paid': money(todays['paid']),
            'month_total': money(month_total),
            'outstanding_count': open_receipts,
            'outstanding_amount': computed_receivables,
        },
        'finance': {
            'receivables': receivables_override if receivables_override is not None else computed_receivables,
            'payables': payables_override if payables_override is not None else money(purchase_due + labor_due),
            'purchase_payables': purchase_due,
            'labor_payables': labor_due,
            'outstanding_labor_count': len(labor_entries),
        },
        'expenses': {
            'month_total': money(month_outflows + month_purchases),
        },
        'cash': {
            'on_hand': cash['cash_on_hand'],
            'paid_in': cash['paid_in'],
            'paid_out': cash['paid_out'],
        },
        'debris': {
            'on_hand_volume': debris_on_hand(),
            'removals_this_month': {
                'count': removals['count'],
                'volume': qty(removals['volume']),
                'cost': money(removals['cost']),
            },
        },
        'payroll': {
            'pending_entries': [
                {
                    'id': entry.id,
                    'employee_name': entry.employee.name,
                    'type': entry.type,
                    'amount': entry.amount,
                    'period_start': entry.period_start,
                    'period_end': entry.period_end,
                }
                for entry in pending_payroll
            ],
        },
        'low_stock': {
            'threshold': threshold,
            'products': low_stock,
        },
        'recent_receipts': [
            {
                'id': receipt.id,
                'receipt_no': receipt.receipt_no,
                'date': receipt.date,
                'type': receipt.type,
                'customer_name': receipt.customer.name if receipt.customer else receipt.walk_in_name,
                'total': receipt.total,
                'amount_paid': receipt.amount_paid,
                'is_paid': receipt.is_paid,
            }
            for receipt in recent
        ],
    }


# Summary report
def _average_costs(end, product_ids=None):
    """
    {product_id: average unit cost} from purchases up to `end`, with
    manufactured runs costed as materials used plus labor.
    """
    stats = {}
    for entry in InventoryEntry.objects.filter(type=InventoryEntry.TYPE_PURCHASE, entry_date__lte=end):
        bucket = stats.setdefault(entry.product_id, [ZERO, ZERO])
        if entry.quantity > 0:
            bucket[0] += entry.quantity
        bucket[1] += entry_amount(entry)

    def unit_cost(product_id):
        bucket = stats.get(product_id)
        if not bucket or bucket[0] <= 0:
            return None
        return bucket[1] / bucket[0]

    runs = InventoryEntry.objects.select_related('product').filter(
        type=InventoryEntry.TYPE_PRODUCTION, entry_date__lte=end, product__is_manufactured=True, quantity__gt=0
    )
    if product_ids:
        runs = runs.filter(product_id__in=product_ids)
    production = {}
    for run in runs:
        cost = labor_total(run)
        powder_cost = unit_cost(run.powder_product_id)
        if powder_cost is not None and run.powder_used:
            cost += powder_cost * run.powder_used
        cement_cost = unit_cost(run.cement_product_id)
        if cement_cost is not None and run.cement_used:
            cost += cement_cost * run.cement_used
        bucket = production.setdefault(run.product_id, [ZERO, ZERO])
        bucket[0] += run.quantity
        bucket[1] += cost
    for product_id, (quantity, cost) in production.items():
        bucket = stats.setdefault(product_id, [ZERO, ZERO])
        bucket[0] += quantity
        bucket[1] += cost

    return {
        product_id: money(total / quantity)
        for product_id, (quantity, total) in stats.items() if quantity > 0
    }


def _aged_receivables(receipts, reference):
    """Per customer outstanding with the part older than OVERDUE_DAYS, largest first"""
    customers = {}
    for receipt in receipts:
        if not receipt.customer_id:
            continue
        due = outstanding(receipt)
        if due <= 0:
            continue
        days = max((reference - receipt.date).days, 0)
        row = customers.setdefault(receipt.customer_id, {
            'customer_id': receipt.customer_id,
            'customer_name': receipt.customer.name,
            'outstanding': ZERO,
            'overdue_outstanding': ZERO,
            'max_days_outstanding': 0,
            'oldest_receipt_date': receipt.date,
        })
        row['outstanding'] += due
        if days >= OVERDUE_DAYS:
            row['overdue_outstanding'] += due
        row['max_days_outstanding'] = max(row['max_days_outstanding'], days)
        row['oldest_receipt_date'] = min(row['oldest_receipt_date'], receipt.date)
    rows = list(customers.values())
    for row in rows:
        row['is_overdue'] = row['overdue_outstanding'] > 0
    rows.sort(key=lambda row: row['outstanding'], reverse=True)
    return rows


def report_summary(start, end, group_by='week', product_ids=None, customer_ids=None):
    """
    Period report: revenue, material sales with cost and margin, a sales
    timeline, purchases, an inventory snapshot, debris, aged receivables
    and stone production.
    """
    receipts = Receipt.objects.filter(date__gte=start, date__lte=end).select_related('customer')
    open_receipts = Receipt.objects.filter(is_paid=False).select_related('customer')
    purchases = InventoryEntry.objects.filter(
        type=InventoryEntry.TYPE_PURCHASE, entry_date__gte=start, entry_date__lte=end
    ).select_related('supplier', 'product')
    stone_runs = InventoryEntry.objects.filter(
        type=InventoryEntry.TYPE_PRODUCTION, entry_date__gte=start, entry_date__lte=end
    ).select_related('product')
    collected = Payment.objects.filter(type__in=Payment.INFLOW_TYPES, date__gte=start, date__lte=end)

    if product_ids:
        receipts = receipts.filter(items__product_id__in=product_ids)
        open_receipts = open_receipts.filter(items__product_id__in=product_ids)
        purchases = purchases.filter(product_id__in=product_ids)
        stone_runs = stone_runs.filter(product_id__in=product_ids)
        collected = collected.filter(receipt__items__product_id__in=product_ids)
    else:
        stone_runs = stone_runs.filter(product__name__icontains='stone')
    if customer_ids:
        receipts = receipts.filter(customer_id__in=customer_ids)
        open_receipts = open_receipts.filter(customer_id__in=customer_ids)
        collected = collected.filter(Q(customer_id__in=customer_ids) | Q(receipt__customer_id__in=customer_ids))
    receipts = list(receipts.distinct())
    open_receipts = list(open_receipts.distinct())

    total_sales = sum((r.total for r in receipts), ZERO)
    items = ReceiptItem.objects.filter(receipt__in=[r.id for r in receipts]).select_related('product', 'receipt')
    if product_ids:
        items = items.filter(product_id__in=product_ids)

    materials = {}
    timeline = {}
    for item in items:
        slot = materials.setdefault(item.product_id, {
            'product_id': item.product_id, 'product_name': item.product.name,
            'quantity': ZERO, 'revenue': ZERO,
        })
        slot['quantity'] += item.quantity
        slot['revenue'] += item.subtotal or ZERO
        period = timeline.setdefault(period_key(item.receipt.date, group_by), {})
        product = period.setdefault(item.product_id, {
            'product_id': item.product_id, 'product_name': item.product.name,
            'quantity': ZERO, 'revenue': ZERO,
        })
        product['quantity'] += item.quantity
        product['revenue'] += item.subtotal or ZERO

    costs = _average_costs(end, product_ids)
    material_sales = []
    for slot in materials.values():
        average_price = money(slot['revenue'] / slot['quantity']) if slot['quantity'] > 0 else ZERO
        average_cost = costs.get(slot['product_id'])
        profit = average_price - average_cost if average_cost is not None else None
        slot.update({
            'revenue': money(slot['revenue']),
            'average_sale_price': average_price,
            'average_cost': average_cost,
            'profit_per_unit': profit,
            'profit_margin': (profit / average_price).quantize(Decimal('0.0001'))
            if profit is not None and average_price > 0 else None,
        })
        material_sales.append(slot)
    material_sales.sort(key=lambda row: row['revenue'], reverse=True)

    sales_timeline = [
        {
            'period': key,
            'products': sorted(
                ({**p, 'revenue': money(p['revenue'])} for p in products.values()),
                key=lambda row: row['revenue'], reverse=True,
            ),
        }
        for key, products in sorted(timeline.items())
    ]

    purchases = list(purchases)
    by_supplier = {}
    by_product = {}
    for entry in purchases:
        amount = entry_amount(entry)
        supplier = entry.supplier.name if entry.supplier else 'Unknown'
        row = by_supplier.setdefault(supplier, {'supplier': supplier, 'total_cost': ZERO, 'entries': 0})
        row['total_cost'] += amount
        row['entries'] += 1
        row = by_product.setdefault(entry.product_id, {
            'product_id': entry.product_id, 'product': entry.product.name, 'total_cost': ZERO, 'quantity': ZERO,
        })
        row['total_cost'] += amount
        row['quantity'] += entry.quantity
    for row in by_product.values():
        row['average_unit_cost'] = money(row['total_cost'] / row['quantity']) if row['quantity'] > 0 else None
    payables_total, payables = purchase_payables()
    if product_ids:
        payables = [entry for entry in payables if entry.product_id in product_ids]
        payables_total = money(sum((entry_amount(e) - e.amount_paid for e in payables), ZERO))

    snapshot = Product.objects.order_by('name')
    if product_ids:
        snapshot = snapshot.filter(id__in=product_ids)

    dropped = DebrisEntry.objects.filter(date__gte=start, date__lte=end).aggregate(
        volume=Sum('volume'), fees=Sum('dumping_fee'), count=Count('id')
    )
    removed = DebrisEntry.objects.filter(
        status=DebrisEntry.STATUS_REMOVED, removal_date__gte=start, removal_date__lte=end
    ).aggregate(volume=Sum('volume'), cost=Sum('removal_cost'))

    stone_runs = list(stone_runs.order_by('entry_date', 'id'))
    stone_by_date = {}
    for run in stone_runs:
        key = period_key(run.entry_date, 'day')
        stone_by_date[key] = stone_by_date.get(key, ZERO) + run.quantity

    return {
        'period': {'start': start, 'end': end, 'group_by': group_by},
        'revenue': {
            'total_sales': money(total_sales),
            'filtered_sales': money(sum((m['revenue'] for m in material_sales), ZERO)) if product_ids else None,
            'total_cash_collected': money(collected.distinct().aggregate(total=Sum('amount'))['total']),
            'outstanding_amount': money(sum((outstanding(r) for r in open_receipts), ZERO)),
            'average_receipt_value': money(total_sales / len(receipts)) if receipts else ZERO,
            'receipts_count': len(receipts),
        },
        'material_sales': material_sales,
        'sales_timeline': sales_timeline,
        'purchases': {
            'total_purchase_cost': money(sum((entry_amount(e) for e in purchases), ZERO)),
            'outstanding_payables_total': payables_total,
            'by_supplier': sorted(by_supplier.values(), key=lambda row: row['total_cost'], reverse=True),
            'by_product': sorted(by_product.values(), key=lambda row: row['total_cost'], reverse=True),
            'recent': [
                {
                    'id': e.id, 'inventory_no': e.inventory_no, 'entry_date': e.entry_date,
                    'supplier': e.supplier.name if e.supplier else None, 'product': e.product.name,
                    'quantity': e.quantity, 'total_cost': entry_amount(e), 'is_paid': e.is_paid,
                }
                for e in sorted(purchases, key=lambda e: e.entry_date, reverse=True)[:25]
            ],
        },
        'inventory': {
            'snapshot': [
                {
                    'id': p.id, 'name': p.name, 'unit': p.unit, 'stock_qty': p.stock_qty,
                    'unit_price': p.unit_price, 'value': money(p.stock_qty * (p.unit_price or ZERO)),
                }
                for p in snapshot
            ],
        },
        'debris': {
            'on_hand_volume': debris_on_hand(),
            'dropped_volume': qty(dropped['volume']),
            'dropped_count': dropped['count'],
            'dumping_fees': money(dropped['fees']),
            'removed_volume': qty(removed['volume']),
            'removal_cost': money(removed['cost']),
        },
        'receivables': {
            'customers': _aged_receivables(open_receipts, end),
        },
        'stone_production': {
            'total_units': qty(sum((run.quantity for run in stone_runs), ZERO)),
            'production_by_date': [
                {'date': key, 'quantity': qty(value)} for key, value in sorted(stone_by_date.items())
            ],
            'entries': [
                {
                    'id': run.id, 'inventory_no': run.inventory_no, 'entry_date': run.entry_date,
                    'product': run.product.name, 'quantity': run.quantity,
                    'production_site': run.production_site, 'labor_total': labor_total(run),
                }
                for run in stone_runs
            ],
        },
    }


# Daily report
def daily_report(day, product_ids=None, customer_ids=None):
    """Everything that happened on one local date"""
    day_start, day_end = start_of_day(day), end_of_day(day)

    receipts = Receipt.objects.filter(date__gte=day_start, date__lte=day_end).select_related(
        'customer', 'job_site', 'driver', 'truck'
    ).prefetch_related('items__product').order_by('date', 'id')
    if product_ids:
        receipts = receipts.filter(items__product_id__in=product_ids).distinct()
    if customer_ids:
        receipts = receipts.filter(customer_id__in=customer_ids)
    receipts = list(receipts)

    payments = Payment.objects.filter(date__gte=day_start, date__lte=day_end).select_related(
        'receipt', 'customer', 'supplier'
    ).order_by('date', 'id')
    if customer_ids:
        payments = payments.filter(Q(customer_id__in=customer_ids) | Q(receipt__customer_id__in=customer_ids))
    if product_ids:
        payments = payments.filter(receipt_id__in=[r.id for r in receipts])

    entries = InventoryEntry.objects.filter(entry_date__gte=day_start, entry_date__lte=day_end).select_related(
        'supplier', 'product'
    ).order_by('entry_date', 'id')
    if product_ids:
        entries = entries.filter(product_id__in=product_ids)

    debris = DebrisEntry.objects.filter(
        Q(date__gte=day_start, date__lte=day_end) | Q(removal_date__gte=day_start, removal_date__lte=day_end)
    ).select_related('customer', 'supplier').order_by('date', 'id')
    diesel = DieselLog.objects.filter(date__gte=day_start, date__lte=day_end).select_related(
        'truck', 'driver'
    ).order_by('date', 'id')
    payroll = PayrollEntry.objects.filter(
        created_at__gte=day_start, created_at__lte=day_end
    ).select_related('employee', 'helper_employee', 'stone_product').order_by('created_at', 'id')

    receipt_rows = []
    total_sales = ZERO
    filtered_sales = ZERO
    for receipt in receipts:
        lines = [item for item in receipt.items.all() if not product_ids or item.product_id in product_ids]
        line_total = sum((item.subtotal or ZERO for item in lines), ZERO)
        total_sales += receipt.total
        filtered_sales += line_total
        receipt_rows.append({
            'id': receipt.id,
            'receipt_no': receipt.receipt_no,
            'date': receipt.date,
            'type': receipt.type,
            'customer_name': receipt.customer.name if receipt.customer else receipt.walk_in_name,
            'job_site_name': receipt.job_site.name if receipt.job_site else None,
            'driver_name': receipt.driver.name if receipt.driver else None,
            'truck_plate': receipt.truck.plate_no if receipt.truck else None,
            'total': receipt.total,
            'amount_paid': receipt.amount_paid,
            'is_paid': receipt.is_paid,
            'filtered_total': money(line_total),
            'items': [
                {
                    'product_id': item.product_id, 'product_name': item.product.name,
                    'quantity': item.quantity, 'unit_price': item.unit_price, 'subtotal': item.subtotal,
                }
                for item in lines
            ],
        })

    payment_rows = [
        {
            'id': p.id,
            'date': p.date,
            'type': p.type,
            'amount': p.amount,
            'description': p.description or p.reference
            or (p.customer.name if p.customer else None) or (p.supplier.name if p.supplier else None),
            'receipt_no': p.receipt.receipt_no if p.receipt else None,
            'is_inflow': p.type in Payment.INFLOW_TYPES,
        }
        for p in payments
    ]
    cash_in = sum((p['amount'] for p in payment_rows if p['is_inflow']), ZERO)
    cash_out = sum((p['amount'] for p in payment_rows if not p['is_inflow']), ZERO)

    def entry_row(entry):
        return {
            'id': entry.id,
            'inventory_no': entry.inventory_no,
            'entry_date': entry.entry_date,
            'supplier_name': entry.supplier.name if entry.supplier else None,
            'product_name': entry.product.name,
            'quantity': entry.quantity,
            'total_cost': entry_amount(entry),
            'amount_paid': entry.amount_paid,
            'is_paid': entry.is_paid,
            'labor_paid': entry.labor_paid,
        }

    entries = list(entries)
    purchases = [entry_row(e) for e in entries if e.type == InventoryEntry.TYPE_PURCHASE]
    production = [entry_row(e) for e in entries if e.type == InventoryEntry.TYPE_PRODUCTION]

    return {
        'date': day_start.date().isoformat(),
        'filters': {'product_ids': product_ids or [], 'customer_ids': customer_ids or []},
        'totals': {
            'receipts_count': len(receipts),
            'total_sales': money(total_sales),
            'filtered_sales': money(filtered_sales),
            'cash_collected': money(cash_in),
            'payments_out': money(cash_out),
            'purchases_total': money(sum((p['total_cost'] for p in purchases), ZERO)),
            'average_receipt_value': money(total_sales / len(receipts)) if receipts else ZERO,
        },
        'receipts': receipt_rows,
        'payments': payment_rows,
        'inventory': {'purchases': purchases, 'production': production},
        'debris': [
            {
                'id': d.id, 'date': d.date, 'status': d.status, 'volume': d.volume,
                'dumping_fee': d.dumping_fee, 'removal_cost': d.removal_cost, 'removal_date': d.removal_date,
                'party': (d.customer.name if d.customer else None)
                or (d.supplier.name if d.supplier else None) or d.walk_in_name,
            }
            for d in debris
        ],
        'diesel_logs': [
            {
                'id': log.id, 'date': log.date, 'liters': log.liters, 'total_cost': log.total_cost,
                'truck_plate': log.truck.plate_no if log.truck else None,
                'driver_name': log.driver.name if log.driver else None,
            }
            for log in diesel
        ],
        'payroll': [
            {
                'id': e.id, 'employee_name': e.employee.name, 'type': e.type, 'amount': e.amount,
                'quantity': e.quantity, 'stone_product': e.stone_product.name if e.stone_product else None,
                'helper_name': e.helper_employee.name if e.helper_employee else None,
                'paid': e.payment_id is not None,
            }
            for e in payroll
        ],
    }


# Custom report
CUSTOM_DATASETS = {
    'receipts': (Receipt, 'date', 'total'),
    'payments': (Payment, 'date', 'amount'),
    'payroll': (PayrollEntry, 'period_end', 'amount'),
    'debris': (DebrisEntry, 'date', 'volume'),
    'inventory': (InventoryEntry, 'entry_date', 'quantity'),
}
CUSTOM_FILTERS = {
    'receipts': ('customer_id', 'job_site_id', 'type', 'is_paid'),
    'payments': ('customer_id', 'supplier_id', 'type'),
    'payroll': ('employee_id', 'type'),
    'debris': ('customer_id', 'supplier_id', 'status'),
    'inventory': ('supplier_id', 'product_id', 'type', 'is_paid'),
}


def custom_report(dataset, start=None, end=None, group_by='day', filters=None, limit=500):
    """
    Group one dataset by day, week or month over an optional range.
    Rows carry the period, a row count and the summed value column.
    """
    model, date_field, value_field = CUSTOM_DATASETS[dataset]
    queryset = model.objects.all()
    if start:
        queryset = queryset.filter(**{f'{date_field}__gte': start})
    if end:
        queryset = queryset.filter(**{f'{date_field}__lte': end})
    for name, value in (filters or {}).items():
        if name in CUSTOM_FILTERS[dataset] and value is not None:
            queryset = queryset.filter(**{name: value})

    rows = queryset.annotate(
        period=TRUNCATE[group_by](date_field)
    ).values('period').annotate(
        count=Count('id'), total=Sum(value_field)
    ).order_by('period')[:limit]

    groups = [
        {
            'period': period_key(row['period'], group_by),
            'count': row['count'],
            'total': row['total'] or ZERO,
        }
        for row in rows
    ]
    return {
        'dataset': dataset,
        'group_by': group_by,
        'value_field': value_field,
        'rows': groups,
        'totals': {
            'count': sum(row['count'] for row in groups),
            'total': sum((row['total'] for row in groups), ZERO),
        },
    }
