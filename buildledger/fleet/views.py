import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildledger.catalog.models import Product
from buildledger.catalog.utils import DIESEL_NAME, adjust_stock
from buildledger.core.permissions import ManagerOrAdmin, require_permission
from buildledger.core.utils import (
    ZERO, clean_text, create_audit_log, money, parse_date, parse_decimal, parse_int, qty,
)
from buildledger.inventory.models import InventoryEntry, StockMovement
from buildledger.inventory.serializers import InventoryEntrySerializer
from buildledger.parties.models import Supplier
from buildledger.payments.models import Payment
from buildledger.payments.services import record_payment
from buildledger.receipts.models import Receipt
from .models import Driver, Truck, Tool, TruckRepair, DieselLog
from .serializers import DriverSerializer, TruckSerializer, ToolSerializer, TruckRepairSerializer, DieselLogSerializer

logger = logging.getLogger(__name__)

FLEET_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin, require_permission('customers:manage')]
TOOL_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin, require_permission('inventory:manage')]
DIESEL_PERMISSIONS = [IsAuthenticated, ManagerOrAdmin, require_permission('diesel:manage')]

REPAIR_LABELS = {
    TruckRepair.TYPE_REPAIR: 'Truck repair',
    TruckRepair.TYPE_OIL_CHANGE: 'Oil change',
    TruckRepair.TYPE_INSURANCE: 'Insurance',
}


def _lookup_id(data, field):
    """(present, id) for an optional foreign key field in a payload"""
    if field not in data:
        return False, None
    try:
        return True, parse_int(data.get(field))
    except ValueError:
        return True, -1


# Driver views
@api_view(['GET', 'POST'])
@permission_classes(FLEET_PERMISSIONS)
def driver_list_create(request):
    if request.method == 'GET':
        return Response(DriverSerializer(Driver.objects.all(), many=True).data)

    serializer = DriverSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    driver = serializer.save()
    create_audit_log(request, 'DRIVER_CREATED', 'DRIVER', driver.id, f"Driver {driver.name} created")
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(FLEET_PERMISSIONS)
def driver_detail(request, pk):
    driver = get_object_or_404(Driver, pk=pk)
    if request.method == 'GET':
        return Response(DriverSerializer(driver).data)

    if request.method == 'PUT':
        serializer = DriverSerializer(driver, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        create_audit_log(request, 'DRIVER_UPDATED', 'DRIVER', driver.id, f"Driver {driver.name} updated")
        return Response(serializer.data)

    driver.delete()
    create_audit_log(request, 'DRIVER_DELETED', 'DRIVER', pk, 'Driver deleted')
    return Response(status=status.HTTP_204_NO_CONTENT)


# Truck views
def _truck_fields(data, partial=False):
    fields = {}
    if not partial or 'plate_no' in data:
        plate_no = clean_text(data.get('plate_no'))
        if not plate_no:
            return None, 'plate_no is required'
        fields['plate_no'] = plate_no

    present, driver_id = _lookup_id(data, 'driver_id')
    if present:
        if driver_id == -1:
            return None, 'Invalid driver_id'
        if driver_id is not None and not Driver.objects.filter(pk=driver_id).exists():
            return None, 'Driver not found'
        fields['driver_id'] = driver_id

    if 'insurance_expiry' in data:
        try:
            fields['insurance_expiry'] = parse_date(data.get('insurance_expiry'))
        except ValueError:
            return None, 'Invalid insurance_expiry'
    return fields, None


@api_view(['GET', 'POST'])
@permission_classes(FLEET_PERMISSIONS)
def truck_list_create(request):
    """List trucks with their driver or register a truck"""
    if request.method == 'GET':
        trucks = Truck.objects.select_related('driver').order_by('plate_no')
        return Response(TruckSerializer(trucks, many=True).data)

    fields, error = _truck_fields(request.data)
    if error:
        return Response({'error': error}, status=status.HTTP_400_BAD_REQUEST)
    if Truck.objects.filter(plate_no__iexact=fields['plate_no']).exists():
        return Response({'error': 'A truck with this plate number already exists'}, status=status.HTTP_409_CONFLICT)
    truck = Truck.objects.create(**fields)
    create_audit_log(request, 'TRUCK_CREATED', 'TRUCK', truck.id, f"Truck {truck.plate_no} created")
    return Response(TruckSerializer(truck).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(FLEET_PERMISSIONS)
def truck_detail(request, pk):
    truck = get_object_or_404(Truck.objects.select_related('driver'), pk=pk)
    if request.method == 'GET':
        return Response(TruckSerializer(truck).data)

    if request.method == 'PUT':
        fields, error = _truck_fields(request.data, partial=True)
        if error:
            return Response({'error': error}, status=status.HTTP_400_BAD_REQUEST)
        if not fields:
            return Response({'error': 'No fields provided to update'}, status=status.HTTP_400_BAD_REQUEST)
        if 'plate_no' in fields and Truck.objects.filter(
            plate_no__iexact=fields['plate_no']
        ).exclude(pk=truck.pk).exists():
            return Response({'error': 'A truck with this plate number already exists'}, status=status.HTTP_409_CONFLICT)
        for field, value in fields.items():
            setattr(truck, field, value)
        truck.save()
        create_audit_log(request, 'TRUCK_UPDATED', 'TRUCK', truck.id, f"Truck {truck.plate_no} updated")
        return Response(TruckSerializer(Truck.objects.select_related('driver').get(pk=pk)).data)

    if Receipt.objects.filter(truck=truck).exists():
        return Response({'error': 'Cannot delete a truck that is referenced by receipts'},
                        status=status.HTTP_400_BAD_REQUEST)
    plate_no = truck.plate_no
    truck.delete()
    create_audit_log(request, 'TRUCK_DELETED', 'TRUCK', pk, f"Truck {plate_no} deleted")
    return Response({'message': 'Truck deleted'})


@api_view(['GET', 'POST'])
@permission_classes(FLEET_PERMISSIONS)
def truck_repairs(request, pk):
    """
    List or log maintenance for a truck.

    Oil changes draw liters from a tool stock item and cost nothing; other
    maintenance needs an amount and records a GENERAL_EXPENSE payment.
    Insurance renewals can move the truck's insurance_expiry.
    """
    truck = get_object_or_404(Truck, pk=pk)
    if request.method == 'GET':
        repairs = truck.repairs.select_related('truck', 'supplier', 'tool').order_by('-date', '-id')
        return Response(TruckRepairSerializer(repairs, many=True).data)

    data = request.data
    repair_type = str(data.get('type') or '').strip().upper()
    if repair_type not in REPAIR_LABELS:
        repair_type = TruckRepair.TYPE_REPAIR
    label = REPAIR_LABELS[repair_type]
    description = clean_text(data.get('description'))

    try:
        date = parse_date(data.get('date')) or timezone.now()
    except ValueError:
        return Response({'error': 'Invalid date'}, status=status.HTTP_400_BAD_REQUEST)

    present, supplier_id = _lookup_id(data, 'supplier_id')
    if supplier_id == -1:
        return Response({'error': 'Invalid supplier_id'}, status=status.HTTP_400_BAD_REQUEST)
    supplier = None
    if supplier_id is not None:
        supplier = Supplier.objects.filter(pk=supplier_id).first()
        if supplier is None:
            return Response({'error': 'Supplier not found'}, status=status.HTTP_400_BAD_REQUEST)

    if repair_type == TruckRepair.TYPE_OIL_CHANGE:
        try:
            quantity = parse_decimal(data.get('quantity'))
        except ValueError:
            quantity = None
        if quantity is None or quantity <= 0:
            return Response({'error': 'Quantity (liters) must be greater than zero'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            tool_id = parse_int(data.get('tool_id'))
        except ValueError:
            tool_id = None
        if not tool_id:
            return Response({'error': 'Select an oil stock item'}, status=status.HTTP_400_BAD_REQUEST)

        with transaction.atomic():
            tool = Tool.objects.select_for_update().filter(pk=tool_id).first()
            if tool is None:
                return Response({'error': 'Tool not found'}, status=status.HTTP_404_NOT_FOUND)
            if tool.quantity < quantity:
                return Response({'error': 'Not enough stock for selected tool'}, status=status.HTTP_400_BAD_REQUEST)
            tool.quantity = qty(tool.quantity - quantity)
            tool.save(update_fields=['quantity', 'updated_at'])
            repair = TruckRepair.objects.create(
                truck=truck, type=repair_type, date=date, amount=ZERO,
                quantity=qty(quantity), tool=tool, description=description,
            )
        create_audit_log(
            request, 'TRUCK_REPAIR_LOGGED', 'TRUCK_REPAIR', repair.id,
            f"{label} recorded for truck {truck.plate_no}",
            metadata={'truck_id': truck.id, 'quantity': repair.quantity, 'tool_id': tool.id, 'type': repair_type},
        )
        return Response(TruckRepairSerializer(repair).data, status=status.HTTP_201_CREATED)

    try:
        amount = parse_decimal(data.get('amount'))
    except ValueError:
        amount = None
    if amount is None or amount <= 0:
        return Response({'error': 'Amount must be greater than zero'}, status=status.HTTP_400_BAD_REQUEST)

    insurance_expiry = None
    if repair_type == TruckRepair.TYPE_INSURANCE and data.get('insurance_expiry'):
        try:
            insurance_expiry = parse_date(data.get('insurance_expiry'))
        except ValueError:
            return Response({'error': 'Invalid insurance_expiry'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        payment = record_payment(
            Payment.TYPE_GENERAL_EXPENSE, amount,
            created_by=request.user,
            supplier=supplier,
            date=date,
            description=description or f"{label} for {truck.plate_no}",
            category=label,
            reference=f"truck-{truck.id}-repair",
        )
        repair = TruckRepair.objects.create(
            truck=truck, type=repair_type, date=date, amount=money(amount),
            supplier=supplier, description=description, payment=payment,
        )
        if insurance_expiry is not None:
            truck.insurance_expiry = insurance_expiry
            truck.save(update_fields=['insurance_expiry', 'updated_at'])

    create_audit_log(
        request, 'TRUCK_REPAIR_LOGGED', 'TRUCK_REPAIR', repair.id,
        f"{label} recorded for truck {truck.plate_no}",
        metadata={'truck_id': truck.id, 'amount': repair.amount, 'supplier_id': supplier_id,
                  'type': repair_type, 'payment_id': payment.id},
    )
    return Response(TruckRepairSerializer(repair).data, status=status.HTTP_201_CREATED)


# Tool views
@api_view(['GET', 'POST'])
@permission_classes(TOOL_PERMISSIONS)
def tool_list_create(request):
    if request.method == 'GET':
        return Response(ToolSerializer(Tool.objects.all(), many=True).data)

    serializer = ToolSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    tool = serializer.save()
    create_audit_log(request, 'TOOL_CREATED', 'TOOL', tool.id, f"Tool {tool.name} created")
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(TOOL_PERMISSIONS)
def tool_detail(request, pk):
    tool = get_object_or_404(Tool, pk=pk)
    if request.method == 'GET':
        return Response(ToolSerializer(tool).data)

    if request.method == 'PUT':
        serializer = ToolSerializer(tool, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        create_audit_log(request, 'TOOL_UPDATED', 'TOOL', tool.id, f"Tool {tool.name} updated")
        return Response(serializer.data)

    tool.delete()
    create_audit_log(request, 'TOOL_DELETED', 'TOOL', pk, 'Tool deleted')
    return Response(status=status.HTTP_204_NO_CONTENT)


# Diesel views
def find_fuel_product(product_id=None):
    """The requested product, else the product flagged as fuel, else one named like diesel"""
    if product_id:
        product = Product.objects.filter(pk=product_id).first()
        if product is not None:
            return product
    return (
        Product.objects.filter(is_fuel=True).order_by('id').first()
        or Product.objects.filter(name__icontains=DIESEL_NAME).order_by('id').first()
    )


@api_view(['GET', 'POST'])
@permission_classes(DIESEL_PERMISSIONS)
def diesel_logs(request):
    """List diesel consumption with totals, or log consumption (Diesel stock goes down)"""
    if request.method == 'GET':
        logs = DieselLog.objects.select_related('truck', 'driver', 'product').order_by('-date', '-id')
        total_liters = sum((log.liters for log in logs), Decimal('0'))
        total_cost = sum((log.total_cost or ZERO for log in logs), ZERO)
        return Response({
            'logs': DieselLogSerializer(logs, many=True).data,
            'totals': {'liters': total_liters, 'cost': total_cost},
        })

    data = request.data
    try:
        liters = parse_decimal(data.get('liters'))
    except ValueError:
        liters = None
    if liters is None or liters <= 0:
        return Response({'error': 'liters must be a positive number'}, status=status.HTTP_400_BAD_REQUEST)

    _, truck_id = _lookup_id(data, 'truck_id')
    if truck_id == -1 or (truck_id and not Truck.objects.filter(pk=truck_id).exists()):
        return Response({'error': 'Invalid truck_id'}, status=status.HTTP_400_BAD_REQUEST)
    _, driver_id = _lookup_id(data, 'driver_id')
    if driver_id == -1 or (driver_id and not Driver.objects.filter(pk=driver_id).exists()):
        return Response({'error': 'Invalid driver_id'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        date = parse_date(data.get('date')) or timezone.now()
    except ValueError:
        return Response({'error': 'Invalid date'}, status=status.HTTP_400_BAD_REQUEST)

    _, product_id = _lookup_id(data, 'product_id')
    product = find_fuel_product(product_id if product_id != -1 else None)
    if product is None:
        return Response({'error': 'No diesel/fuel product found. Create a product and mark it as fuel.'},
                        status=status.HTTP_400_BAD_REQUEST)

    try:
        price_per_liter = parse_decimal(data.get('price_per_liter'))
    except ValueError:
        return Response({'error': 'price_per_liter must be a valid number'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        total_cost = parse_decimal(data.get('total_cost'))
    except ValueError:
        return Response({'error': 'total_cost must be a valid number'}, status=status.HTTP_400_BAD_REQUEST)
    if total_cost is None and price_per_liter is not None:
        total_cost = price_per_liter * liters

    with transaction.atomic():
        log = DieselLog.objects.create(
            date=date,
            truck_id=truck_id,
            driver_id=driver_id,
            product=product,
            liters=qty(liters),
            price_per_liter=price_per_liter,
            total_cost=money(total_cost) if total_cost is not None else None,
            notes=clean_text(data.get('notes')),
        )
        adjust_stock(product, -log.liters)
        StockMovement.objects.create(
            product=product, date=date, type=StockMovement.TYPE_PRODUCTION_CONSUMPTION, quantity=-log.liters
        )

    create_audit_log(
        request, 'DIESEL_LOG_CREATED', 'DIESEL_LOG', log.id,
        f"Logged {log.liters}L diesel" + (f" for truck {truck_id}" if truck_id else ''),
        metadata={'liters': log.liters, 'truck_id': truck_id, 'driver_id': driver_id, 'total_cost': log.total_cost},
    )
    log = DieselLog.objects.select_related('truck', 'driver', 'product').get(pk=log.pk)
    return Response(DieselLogSerializer(log).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes(DIESEL_PERMISSIONS)
def diesel_purchases(request):
    """Fuel bought through inventory purchases"""
    purchases = InventoryEntry.objects.filter(
        Q(product__is_fuel=True) | Q(product__name__icontains=DIESEL_NAME),
        type=InventoryEntry.TYPE_PURCHASE,
    ).select_related('supplier', 'product').order_by('-entry_date', '-id')
    total_liters = sum((entry.quantity for entry in purchases), Decimal('0'))
    total_cost = sum((entry.total_cost or ZERO for entry in purchases), ZERO)
    return Response({
        'purchases': InventoryEntrySerializer(purchases, many=True).data,
        'totals': {'liters': total_liters, 'cost': total_cost},
    })
