import logging
from datetime import timedelta

from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildledger.core.cache_utils import REPORTS_CACHE_TTL, cached_query
from buildledger.core.permissions import IsAdminRole, ManagerOrAdmin, require_permission
from buildledger.core.utils import create_audit_log, end_of_day, parse_bool, parse_date, parse_int, query_list, start_of_day
from buildledger.payments.services import repair_receipt_balance
from buildledger.receipts.models import Receipt
from . import pdf
from .finance import (
    cash_ledger, finance_overview, period_summary, receivables_health, recompute_receipt_balances,
    repair_mismatched_receipts, tax_report,
)
from .services import CUSTOM_DATASETS, CUSTOM_FILTERS, GROUP_BY_CHOICES, build_dashboard, custom_report, daily_report, report_summary

logger = logging.getLogger(__name__)

REPORT_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin, require_permission('reports:view')]
DEBUG_PERMISSIONS = [IsAuthenticated, IsAdminRole]

CUSTOM_LIMIT_DEFAULT = 500
CUSTOM_LIMIT_MAX = 2000


def _range(params, start_key='start', end_key='end'):
    """Optional (start, end) datetimes covering whole days; ValueError on garbage"""
    start = parse_date(params.get(start_key))
    end = parse_date(params.get(end_key))
    return (start_of_day(start) if start else None), (end_of_day(end) if end else None)


def _pdf_response(content, filename):
    response = HttpResponse(content, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix='reports_summary')
def _cached_summary(start, end, group_by, product_ids, customer_ids):
    return report_summary(start, end, group_by, list(product_ids), list(customer_ids))


# Dashboard views
@api_view(['GET'])
@permission_classes([IsAuthenticated, ManagerOrAdmin])
def dashboard(request):
    """Headline figures for today, cached for a minute"""
    day = timezone.localdate().isoformat()
    return Response(build_dashboard(day))


# Report views
@api_view(['GET'])
@permission_classes(REPORT_PERMISSIONS)
def summary_report(request):
    """
    Period report, last 30 days by default.

    Query params: start, end, group_by (day|week|month), product_ids, customer_ids (CSV).
    """
    params = request.query_params
    try:
        start, end = _range(params)
    except ValueError:
        return Response({'error': 'Invalid start or end date'}, status=status.HTTP_400_BAD_REQUEST)
    end = end or end_of_day(timezone.localtime())
    start = start or start_of_day(end - timedelta(days=29))
    group_by = params.get('group_by') if params.get('group_by') in GROUP_BY_CHOICES else 'week'

    data = _cached_summary(
        start, end, group_by,
        tuple(query_list(params.get('product_ids'))), tuple(query_list(params.get('customer_ids'))),
    )
    return Response(data)


def _daily_data(request):
    params = request.query_params
    day = parse_date(params.get('date')) or timezone.localtime()
    return daily_report(day, query_list(params.get('product_ids')), query_list(params.get('customer_ids')))


@api_view(['GET'])
@permission_classes(REPORT_PERMISSIONS)
def daily_report_view(request):
    try:
        data = _daily_data(request)
    except ValueError:
        return Response({'error': 'Invalid date'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(data)


@api_view(['GET'])
@permission_classes(REPORT_PERMISSIONS)
def custom_report_view(request):
    """
    One dataset grouped by period.

    Query params: dataset (receipts|payments|payroll|debris|inventory), from, to,
    group_by (day|week|month), limit, plus per-dataset filters such as
    customer_id, supplier_id, employee_id, product_id, job_site_id, type, status, is_paid.
    """
    params = request.query_params
    dataset = (params.get('dataset') or 'receipts').lower()
    if dataset not in CUSTOM_DATASETS:
        return Response({'error': 'Invalid dataset'}, status=status.HTTP_400_BAD_REQUEST)
    group_by = params.get('group_by') if params.get('group_by') in GROUP_BY_CHOICES else 'day'
    try:
        start, end = _range(params, 'from', 'to')
    except ValueError:
        return Response({'error': 'Invalid from/to dates'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        limit = min(parse_int(params.get('limit')) or CUSTOM_LIMIT_DEFAULT, CUSTOM_LIMIT_MAX)
    except ValueError:
        limit = CUSTOM_LIMIT_DEFAULT

    filters = {}
    for name in CUSTOM_FILTERS[dataset]:
        raw = params.get(name)
        if raw is None or raw == '':
            continue
        if name.endswith('_id'):
            try:
                filters[name] = parse_int(raw)
            except ValueError:
                return Response({'error': f'Invalid {name} filter'}, status=status.HTTP_400_BAD_REQUEST)
        elif name == 'is_paid':
            filters[name] = parse_bool(raw)
        else:
            filters[name] = raw.upper()

    return Response(custom_report(dataset, start, end, group_by, filters, limit))


# PDF export views
@api_view(['GET'])
@permission_classes(REPORT_PERMISSIONS)
def daily_pdf(request):
    try:
        data = _daily_data(request)
    except ValueError:
        return Response({'error': 'Invalid date'}, status=status.HTTP_400_BAD_REQUEST)
    return _pdf_response(pdf.daily_pdf(data), f"daily-{data['date']}.pdf")


@api_view(['GET'])
@permission_classes(REPORT_PERMISSIONS)
def financial_pdf(request):
    try:
        start, end = _range(request.query_params)
    except ValueError:
        return Response({'error': 'Invalid start or end date'}, status=status.HTTP_400_BAD_REQUEST)
    end = end or end_of_day(timezone.localtime())
    start = start or start_of_day(end - timedelta(days=29))
    return _pdf_response(pdf.financial_pdf(cash_ledger(start, end), start, end), 'financial-report.pdf')


@api_view(['GET'])
@permission_classes(REPORT_PERMISSIONS)
def balances_pdf(request):
    return _pdf_response(pdf.balances_pdf(), 'balances-report.pdf')


@api_view(['GET'])
@permission_classes(REPORT_PERMISSIONS)
def cash_ledger_pdf(request):
    try:
        start, end = _range(request.query_params)
    except ValueError:
        return Response({'error': 'Invalid start or end date'}, status=status.HTTP_400_BAD_REQUEST)
    return _pdf_response(pdf.cash_ledger_pdf(cash_ledger(start, end), start, end), 'cash-ledger.pdf')


# Finance views
@api_view(['GET'])
@permission_classes(REPORT_PERMISSIONS)
def finance_overview_view(request):
    """
    Cash, receivables, payables and inventory value.

    Query params: start, end, all_time, customer_id, supplier_id, product_id.
    """
    params = request.query_params
    start = end = None
    if not parse_bool(params.get('all_time'), False):
        try:
            start, end = _range(params)
        except ValueError:
            return Response({'error': 'Invalid start or end date'}, status=status.HTTP_400_BAD_REQUEST)

    ids = {}
    for name in ('customer_id', 'supplier_id', 'product_id'):
        try:
            ids[name] = parse_int(params.get(name))
        except ValueError:
            return Response({'error': f'Invalid {name}'}, status=status.HTTP_400_BAD_REQUEST)

    return Response(finance_overview(start, end, **ids))


@api_view(['GET'])
@permission_classes(REPORT_PERMISSIONS)
def period_summary_pdf(request):
    try:
        start, end = _range(request.query_params)
    except ValueError:
        return Response({'error': 'Invalid start or end date'}, status=status.HTTP_400_BAD_REQUEST)
    end = end or end_of_day(timezone.localtime())
    start = start or start_of_day(end.replace(day=1))
    summary = period_summary(start, end)
    create_audit_log(
        request, 'FINANCE_SUMMARY_EXPORTED', 'FINANCE', None,
        f"Period summary exported for {start:%Y-%m-%d} to {end:%Y-%m-%d}",
    )
    return _pdf_response(pdf.period_summary_pdf(summary), f"period-summary-{start:%Y%m%d}-{end:%Y%m%d}.pdf")


# Tax views
@api_view(['GET'])
@permission_classes(REPORT_PERMISSIONS)
def tax_reports(request):
    """
    TVA collected minus TVA paid per period.

    Query params: start_date, end_date, period (month|quarter), customer_id, supplier_id.
    """
    params = request.query_params
    try:
        start, end = _range(params, 'start_date', 'end_date')
    except ValueError:
        return Response({'error': 'Invalid date range'}, status=status.HTTP_400_BAD_REQUEST)
    period = 'quarter' if params.get('period') == 'quarter' else 'month'
    try:
        customer_id = parse_int(params.get('customer_id'))
        supplier_id = parse_int(params.get('supplier_id'))
    except ValueError:
        return Response({'error': 'Invalid customer or supplier filter'}, status=status.HTTP_400_BAD_REQUEST)

    data = tax_report(start, end, period, customer_id, supplier_id)
    create_audit_log(request, 'TAX_REPORT_VIEWED', 'TAX', None, 'Tax reports viewed', metadata=data['filters'])
    return Response(data)


# Debug views
@api_view(['GET'])
@permission_classes(DEBUG_PERMISSIONS)
def debug_receivables_health(request):
    return Response(receivables_health())


@api_view(['POST'])
@permission_classes(DEBUG_PERMISSIONS)
def debug_recompute_receipt_balances(request):
    try:
        receipt_id = parse_int(request.data.get('receipt_id'))
        customer_id = parse_int(request.data.get('customer_id'))
    except ValueError:
        return Response({'error': 'Invalid receipt_id or customer_id'}, status=status.HTTP_400_BAD_REQUEST)
    result = recompute_receipt_balances(receipt_id, customer_id)
    create_audit_log(
        request, 'RECEIPT_BALANCES_RECOMPUTED', 'RECEIPT', receipt_id,
        f"Recomputed receipt balances ({result['updated']} updated)",
        metadata={'receipt_id': receipt_id, 'customer_id': customer_id, **result},
    )
    return Response(result)


@api_view(['POST'])
@permission_classes(DEBUG_PERMISSIONS)
def debug_receivables_repair(request):
    result = repair_mismatched_receipts()
    create_audit_log(
        request, 'RECEIVABLES_REPAIRED', 'RECEIPT', None,
        f"Repaired {result['count']} receipt balances",
        metadata={'receipt_ids': [row['id'] for row in result['repaired']]},
    )
    return Response(result)


@api_view(['POST'])
@permission_classes(DEBUG_PERMISSIONS)
def debug_repair_receipt(request, pk):
    receipt = get_object_or_404(Receipt.objects.prefetch_related('payment_links'), pk=pk)
    old_paid, new_paid, changed = repair_receipt_balance(receipt)
    if changed:
        create_audit_log(
            request, 'RECEIPT_BALANCE_REPAIRED', 'RECEIPT', receipt.id,
            f"Receipt {receipt.receipt_no} paid amount {old_paid} -> {new_paid}",
        )
    return Response({'id': receipt.id, 'amount_paid': receipt.amount_paid, 'is_paid': receipt.is_paid, 'changed': changed})


@api_view(['GET'])
@permission_classes(DEBUG_PERMISSIONS)
def debug_cash_ledger(request):
    params = request.query_params
    start = end = None
    if not parse_bool(params.get('all_time'), False):
        try:
            start, end = _range(params)
        except ValueError:
            return Response({'error': 'Invalid start or end date'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(cash_ledger(start, end))
