"""Cash ledger built from payments, direct cash sales and cash purchases"""
from buildledger.core.utils import ZERO, money
from buildledger.inventory.models import InventoryEntry
from buildledger.receipts.models import Receipt
from .models import Payment
from .services import entry_amount


def _in_range(queryset, field, start=None, end=None):
    if start:
        queryset = queryset.filter(**{f'{field}__gte': start})
    if end:
        queryset = queryset.filter(**{f'{field}__lte': end})
    return queryset


def _payment_row(payment, label, context=None):
    return {
        'id': f'payment-{payment.id}',
        'type': payment.type,
        'label': label,
        'amount': money(payment.amount),
        'date': payment.date,
        'context': context,
    }


def fetch_cash_flows(start=None, end=None, customer_id=None, supplier_id=None, product_id=None):
    """
    Every cash movement in the range.

    Inflows are receipt and customer payments plus receipts paid in cash
    when written (paid, no payment links). Outflows are expense-like
    payments plus purchases paid on delivery (paid, no payment links).
    A customer filter hides outflows, a supplier filter hides inflows and a
    product filter keeps only receipt inflows for receipts selling the product.
    """
    inflow_payments = _in_range(
        Payment.objects.filter(type__in=Payment.INFLOW_TYPES), 'date', start, end
    ).select_related('customer', 'receipt').order_by('-date', '-id')
    if customer_id:
        inflow_payments = inflow_payments.filter(customer_id=customer_id) | inflow_payments.filter(
            receipt__customer_id=customer_id
        )
    if product_id:
        inflow_payments = inflow_payments.filter(
            type=Payment.TYPE_RECEIPT, receipt__items__product_id=product_id
        )
    inflow_payments = inflow_payments.distinct()

    direct_receipts = _in_range(
        Receipt.objects.filter(is_paid=True, amount_paid__gt=0, payment_links__isnull=True,
                               direct_payments__isnull=True),
        'date', start, end,
    ).select_related('customer')
    if customer_id:
        direct_receipts = direct_receipts.filter(customer_id=customer_id)
    if product_id:
        direct_receipts = direct_receipts.filter(items__product_id=product_id)
    direct_receipts = direct_receipts.distinct()

    inflows = [
        _payment_row(
            payment,
            payment.description or (payment.customer.name if payment.customer else None)
            or payment.reference or f'Payment #{payment.id}',
            {'receipt_no': payment.receipt.receipt_no} if payment.receipt else None,
        )
        for payment in inflow_payments
    ]
    inflows.extend({
        'id': f'direct-receipt-{receipt.id}',
        'type': Payment.TYPE_RECEIPT,
        'label': receipt.receipt_no,
        'amount': money(receipt.amount_paid),
        'date': receipt.date,
        'context': {'receipt_no': receipt.receipt_no},
    } for receipt in direct_receipts)

    outflows = []
    if not product_id and not (customer_id and not supplier_id):
        outflow_payments = _in_range(
            Payment.objects.filter(type__in=Payment.OUTFLOW_TYPES), 'date', start, end
        ).select_related('supplier', 'payroll_entry__employee').order_by('-date', '-id')
        cash_purchases = _in_range(
            InventoryEntry.objects.filter(type=InventoryEntry.TYPE_PURCHASE, is_paid=True,
                                          payment_links__isnull=True),
            'entry_date', start, end,
        ).select_related('supplier', 'product')
        if supplier_id:
            outflow_payments = outflow_payments.filter(supplier_id=supplier_id)
            cash_purchases = cash_purchases.filter(supplier_id=supplier_id)

        for payment in outflow_payments:
            entry = getattr(payment, 'payroll_entry', None)
            outflows.append(_payment_row(
                payment,
                payment.description or (payment.supplier.name if payment.supplier else None)
                or payment.reference or f'Payment #{payment.id}',
                {'employee': entry.employee.name} if entry else None,
            ))
        for purchase in cash_purchases:
            amount = entry_amount(purchase)
            if amount <= 0:
                continue
            outflows.append({
                'id': f'direct-purchase-{purchase.id}',
                'type': Payment.TYPE_SUPPLIER,
                'label': f'{purchase.inventory_no} {purchase.product.name}',
                'amount': amount,
                'date': purchase.entry_date,
                'context': {'supplier': purchase.supplier.name if purchase.supplier else None},
            })

    if supplier_id and not customer_id and not product_id:
        inflows = []

    inflows.sort(key=lambda row: row['date'], reverse=True)
    outflows.sort(key=lambda row: row['date'], reverse=True)
    inflow_total = sum((row['amount'] for row in inflows), ZERO)
    outflow_total = sum((row['amount'] for row in outflows), ZERO)
    return {
        'inflows': inflows,
        'outflows': outflows,
        'inflow_total': inflow_total,
        'outflow_total': outflow_total,
        'cash_on_hand': inflow_total - outflow_total,
    }
