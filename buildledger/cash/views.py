import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildledger.core.permissions import ManagerOrAdmin, require_permission
from buildledger.core.utils import create_audit_log
from .models import CashEntry
from .serializers import CashEntrySerializer, CashCustodyEntrySerializer
from .services import cash_summary, create_cash_entry, custody_overview, record_custody

logger = logging.getLogger(__name__)

CASH_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin, require_permission('cash:manage')]


# Cash views
@api_view(['GET'])
@permission_classes(CASH_PERMISSIONS)
def cash_summary_view(request):
    return Response(cash_summary())


@api_view(['GET', 'POST'])
@permission_classes(CASH_PERMISSIONS)
def cash_entries(request):
    """Latest 100 manual cash entries, or record a deposit / withdrawal / owner draw"""
    if request.method == 'GET':
        entries = CashEntry.objects.select_related('created_by').order_by('-created_at', '-id')[:100]
        return Response({'entries': CashEntrySerializer(entries, many=True).data})

    entry = create_cash_entry(request.data, user=request.user)
    create_audit_log(
        request, 'CASH_ENTRY_RECORDED', 'CASH_ENTRY', entry.id,
        f"Cash {entry.type.lower()} of {abs(entry.amount)} recorded",
        metadata={'type': entry.type, 'amount': entry.amount},
    )
    return Response({'entry': CashEntrySerializer(entry).data}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes(CASH_PERMISSIONS)
def cash_custody(request):
    if request.method == 'GET':
        overview = custody_overview()
        overview['entries'] = CashCustodyEntrySerializer(overview['entries'], many=True).data
        return Response(overview)

    entry = record_custody(request.data, user=request.user)
    create_audit_log(
        request, 'CASH_CUSTODY_RECORDED', 'CASH_CUSTODY', entry.id,
        f"Cash custody {entry.type.lower()} of {entry.amount} from {entry.from_employee.name} "
        f"to {entry.to_employee.name}",
        metadata={
            'type': entry.type,
            'amount': entry.amount,
            'from_employee_id': entry.from_employee_id,
            'to_employee_id': entry.to_employee_id,
        },
    )
    return Response(CashCustodyEntrySerializer(entry).data, status=status.HTTP_201_CREATED)
