import logging

from django.db.models import Count
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildledger.core.permissions import ManagerOrAdmin, require_permission
from buildledger.core.utils import create_audit_log, parse_int
from .models import Employee, ManufacturingPieceRate, PayrollRun, PayrollEntry
from .serializers import (
    EmployeeSerializer, ManufacturingPieceRateSerializer,
    PayrollEntrySerializer, PayrollRunSerializer, PayrollRunDetailSerializer,
)
from .services import (
    FREQUENCIES, RUN_STATUSES, clean_employee_input, employee_has_history,
    create_piece_rate, update_piece_rate, create_payroll_entry,
    create_payroll_run, finalize_run, debit_run,
)

logger = logging.getLogger(__name__)

EMPLOYEE_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin]
PAYROLL_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin, require_permission('payroll:manage')]

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def _entry_queryset():
    return PayrollEntry.objects.select_related('employee', 'helper_employee', 'stone_product', 'payment')


def _run_detail(run):
    run = PayrollRun.objects.prefetch_related(
        'entries__employee', 'entries__helper_employee', 'entries__stone_product', 'entries__payment'
    ).get(pk=run.pk)
    return PayrollRunDetailSerializer(run).data


# Employee views
@api_view(['GET', 'POST'])
@permission_classes(EMPLOYEE_PERMISSIONS)
def employee_list_create(request):
    if request.method == 'GET':
        employees = Employee.objects.order_by('-active', 'name')
        return Response(EmployeeSerializer(employees, many=True).data)

    employee = Employee.objects.create(**clean_employee_input(request.data))
    create_audit_log(request, 'EMPLOYEE_CREATED', 'EMPLOYEE', employee.id, f"Employee {employee.name} created")
    return Response(EmployeeSerializer(employee).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(EMPLOYEE_PERMISSIONS)
def employee_detail(request, pk):
    """Retrieve or update an employee. Delete archives employees that have payroll or production history."""
    employee = get_object_or_404(Employee, pk=pk)
    if request.method == 'GET':
        return Response(EmployeeSerializer(employee).data)

    if request.method == 'PUT':
        fields = clean_employee_input(request.data, partial=True)
        for field, value in fields.items():
            setattr(employee, field, value)
        employee.save()
        create_audit_log(request, 'EMPLOYEE_UPDATED', 'EMPLOYEE', employee.id, f"Employee {employee.name} updated",
                         metadata={'fields': list(fields.keys())})
        return Response(EmployeeSerializer(employee).data)

    if employee_has_history(employee):
        employee.active = False
        employee.save(update_fields=['active', 'updated_at'])
        create_audit_log(request, 'EMPLOYEE_ARCHIVED', 'EMPLOYEE', employee.id, f"Employee {employee.name} archived")
        return Response({'message': 'Employee archived'})

    name = employee.name
    employee.delete()
    create_audit_log(request, 'EMPLOYEE_DELETED', 'EMPLOYEE', pk, f"Employee {name} deleted")
    return Response({'message': 'Employee deleted'})


@api_view(['GET', 'POST'])
@permission_classes(EMPLOYEE_PERMISSIONS)
def employee_piece_rates(request, pk):
    employee = get_object_or_404(Employee, pk=pk)
    if request.method == 'GET':
        rates = employee.piece_rates.select_related('product').order_by('-is_active', 'created_at')
        return Response(ManufacturingPieceRateSerializer(rates, many=True).data)

    piece_rate = create_piece_rate(employee, request.data)
    create_audit_log(
        request, 'PIECE_RATE_CREATED', 'PIECE_RATE', piece_rate.id,
        f"Piece rate for {employee.name} on {piece_rate.product.name} set to {piece_rate.rate}",
    )
    return Response(ManufacturingPieceRateSerializer(piece_rate).data, status=status.HTTP_201_CREATED)


@api_view(['PUT', 'DELETE'])
@permission_classes(EMPLOYEE_PERMISSIONS)
def piece_rate_detail(request, pk):
    piece_rate = get_object_or_404(ManufacturingPieceRate.objects.select_related('product', 'employee'), pk=pk)
    if request.method == 'PUT':
        update_piece_rate(piece_rate, request.data)
        create_audit_log(request, 'PIECE_RATE_UPDATED', 'PIECE_RATE', piece_rate.id,
                         f"Piece rate {piece_rate.id} updated")
        return Response(ManufacturingPieceRateSerializer(piece_rate).data)

    piece_rate.delete()
    create_audit_log(request, 'PIECE_RATE_DELETED', 'PIECE_RATE', pk, f"Piece rate {pk} deleted")
    return Response({'message': 'Piece rate deleted'})


# Payroll entry views
@api_view(['GET', 'POST'])
@permission_classes(PAYROLL_PERMISSIONS)
def payroll_list_create(request):
    """List payroll entries (newest first) or log a salary/piecework entry"""
    if request.method == 'GET':
        entries = _entry_queryset().order_by('-created_at', '-id')
        employee_id = request.query_params.get('employee_id')
        if employee_id:
            entries = entries.filter(employee_id=employee_id)
        return Response(PayrollEntrySerializer(entries, many=True).data)

    entry = create_payroll_entry(request.data, user=request.user)
    create_audit_log(
        request, 'PAYROLL_ENTRY_CREATED', 'PAYROLL_ENTRY', entry.id,
        f"{entry.type.title()} payroll of {entry.amount} for {entry.employee.name}",
        metadata={'employee_id': entry.employee_id, 'amount': entry.amount, 'run_id': entry.payroll_run_id},
    )
    return Response(PayrollEntrySerializer(_entry_queryset().get(pk=entry.pk)).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes(PAYROLL_PERMISSIONS)
def payroll_paginated(request):
    """Cursor pagination by id: ?limit=&cursor=<last id seen>"""
    try:
        limit = parse_int(request.query_params.get('limit')) or DEFAULT_PAGE_SIZE
    except ValueError:
        limit = DEFAULT_PAGE_SIZE
    limit = min(limit, MAX_PAGE_SIZE)
    try:
        cursor = parse_int(request.query_params.get('cursor'))
    except ValueError:
        return Response({'error': 'Invalid cursor'}, status=status.HTTP_400_BAD_REQUEST)

    entries = _entry_queryset().order_by('-id')
    if cursor:
        entries = entries.filter(id__lt=cursor)
    items = list(entries[:limit + 1])
    has_next = len(items) > limit
    items = items[:limit]
    return Response({
        'items': PayrollEntrySerializer(items, many=True).data,
        'next_cursor': items[-1].id if has_next and items else None,
    })


# Payroll run views
@api_view(['GET', 'POST'])
@permission_classes(PAYROLL_PERMISSIONS)
def payroll_run_list_create(request):
    if request.method == 'GET':
        runs = PayrollRun.objects.annotate(entry_count=Count('entries')).order_by('-period_start', '-id')
        run_status = request.query_params.get('status')
        if run_status:
            if run_status.upper() not in RUN_STATUSES:
                return Response({'error': 'Invalid status filter'}, status=status.HTTP_400_BAD_REQUEST)
            runs = runs.filter(status=run_status.upper())
        frequency = request.query_params.get('frequency')
        if frequency:
            if frequency.upper() not in FREQUENCIES:
                return Response({'error': 'Invalid frequency filter'}, status=status.HTTP_400_BAD_REQUEST)
            runs = runs.filter(frequency=frequency.upper())
        return Response(PayrollRunSerializer(runs, many=True).data)

    run = create_payroll_run(request.data, user=request.user)
    create_audit_log(
        request, 'PAYROLL_RUN_CREATED', 'PAYROLL_RUN', run.id,
        f"Payroll run {run.id} created ({run.frequency.lower()})",
        metadata={'period_start': run.period_start, 'period_end': run.period_end, 'total': run.total_net},
    )
    return Response(_run_detail(run), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes(PAYROLL_PERMISSIONS)
def payroll_run_detail(request, pk):
    run = get_object_or_404(PayrollRun, pk=pk)
    return Response(_run_detail(run))


@api_view(['POST'])
@permission_classes(PAYROLL_PERMISSIONS)
def payroll_run_finalize(request, pk):
    run = get_object_or_404(PayrollRun, pk=pk)
    finalize_run(run, request.data)
    create_audit_log(request, 'PAYROLL_RUN_FINALIZED', 'PAYROLL_RUN', run.id, f"Payroll run {run.id} finalized")
    return Response(_run_detail(run))


@api_view(['POST'])
@permission_classes(PAYROLL_PERMISSIONS)
def payroll_run_debit(request, pk):
    run = get_object_or_404(PayrollRun, pk=pk)
    debit_run(run, user=request.user)
    create_audit_log(
        request, 'PAYROLL_RUN_DEBITED', 'PAYROLL_RUN', run.id,
        f"Payroll run {run.id} paid ({run.total_net})",
        metadata={'total': run.total_net},
    )
    return Response(_run_detail(run))
