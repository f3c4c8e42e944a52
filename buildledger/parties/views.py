import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildledger.core.exceptions import ServiceError
from buildledger.core.permissions import IsAdminRole, view_or_manage
from buildledger.core.utils import clean_text, create_audit_log, parse_decimal, parse_int
from buildledger.invoices.models import Invoice
from buildledger.receipts.models import Receipt
from .models import Customer, Supplier, JobSite, CustomerSupplierLink
from .serializers import CustomerSerializer, SupplierSerializer, JobSiteSerializer, CustomerSupplierLinkSerializer
from .services import (
    customer_outstanding_map, supplier_payable_map, set_manual_balance,
    parse_merge_ids, merge_customers, merge_suppliers,
    pair_customer_supplier, settle_pair, get_link_or_error,
)

logger = logging.getLogger(__name__)

CUSTOMER_PERMISSIONS = [IsAuthenticated, *view_or_manage('customers:view', 'customers:manage')]
SUPPLIER_PERMISSIONS = [IsAuthenticated, *view_or_manage('suppliers:view', 'suppliers:manage')]


def _customer_queryset():
    return Customer.objects.select_related('manual_balance_updated_by', 'supplier_link')


def _supplier_queryset():
    return Supplier.objects.select_related('manual_balance_updated_by', 'customer_link')


def _customer_data(customer):
    customer = _customer_queryset().get(pk=customer.pk)
    return CustomerSerializer(customer, context={'balances': customer_outstanding_map()}).data


def _supplier_data(supplier):
    supplier = _supplier_queryset().get(pk=supplier.pk)
    return SupplierSerializer(supplier, context={'balances': supplier_payable_map()}).data


def _receipt_type(value, required=False):
    receipt_type = clean_text(value)
    if receipt_type is None and not required:
        return Customer.RECEIPT_TYPE_NORMAL
    receipt_type = (receipt_type or '').upper()
    if receipt_type not in (Customer.RECEIPT_TYPE_NORMAL, Customer.RECEIPT_TYPE_TVA):
        raise ServiceError('receipt_type must be NORMAL or TVA')
    return receipt_type


def _manual_amount(data):
    try:
        return parse_decimal(data.get('amount'))
    except ValueError:
        raise ServiceError('amount must be a valid number')


# Customer views
@api_view(['GET', 'POST'])
@permission_classes(CUSTOMER_PERMISSIONS)
def customer_list_create(request):
    """List customers with their computed balance or create a customer"""
    if request.method == 'GET':
        customers = _customer_queryset().order_by('name')
        serializer = CustomerSerializer(customers, many=True, context={'balances': customer_outstanding_map()})
        return Response(serializer.data)

    name = clean_text(request.data.get('name'))
    if not name:
        return Response({'error': 'name is required'}, status=status.HTTP_400_BAD_REQUEST)
    customer = Customer.objects.create(
        name=name,
        contact_name=clean_text(request.data.get('contact_name')),
        phone=clean_text(request.data.get('phone')),
        email=clean_text(request.data.get('email')),
        notes=clean_text(request.data.get('notes')),
        receipt_type=_receipt_type(request.data.get('receipt_type')),
    )
    create_audit_log(request, 'CUSTOMER_CREATED', 'CUSTOMER', customer.id, f"Customer {customer.name} created")
    return Response(_customer_data(customer), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(CUSTOMER_PERMISSIONS)
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    customer = get_object_or_404(Customer, pk=pk)

    if request.method == 'GET':
        return Response(_customer_data(customer))

    if request.method == 'PUT':
        data = request.data
        update_fields = []
        if 'name' in data:
            name = clean_text(data.get('name'))
            if not name:
                return Response({'error': 'name is required'}, status=status.HTTP_400_BAD_REQUEST)
            customer.name = name
            update_fields.append('name')
        for field in ('contact_name', 'phone', 'email', 'notes'):
            if field in data:
                setattr(customer, field, clean_text(data.get(field)))
                update_fields.append(field)
        if 'receipt_type' in data:
            customer.receipt_type = _receipt_type(data.get('receipt_type'), required=True)
            update_fields.append('receipt_type')
        if not update_fields:
            return Response({'error': 'No fields provided to update'}, status=status.HTTP_400_BAD_REQUEST)
        customer.save(update_fields=update_fields + ['updated_at'])
        create_audit_log(request, 'CUSTOMER_UPDATED', 'CUSTOMER', customer.id, f"Customer {customer.name} updated",
                         metadata={'fields': update_fields})
        return Response(_customer_data(customer))

    if Receipt.objects.filter(customer=customer).exists():
        return Response({'error': 'Cannot delete a customer that has associated receipts'},
                        status=status.HTTP_400_BAD_REQUEST)
    if Invoice.objects.filter(customer=customer).exists():
        return Response({'error': 'Cannot delete a customer that has associated invoices'},
                        status=status.HTTP_400_BAD_REQUEST)
    name = customer.name
    customer.delete()
    create_audit_log(request, 'CUSTOMER_DELETED', 'CUSTOMER', pk, f"Customer {name} deleted")
    return Response({'message': 'Customer deleted'})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def customer_manual_balance(request, pk):
    """Set or clear (amount null) the manual balance override of a customer"""
    customer = get_object_or_404(Customer, pk=pk)
    amount = _manual_amount(request.data)
    note = clean_text(request.data.get('note'))
    set_manual_balance(customer, amount, note, request.user)
    create_audit_log(
        request,
        action='CUSTOMER_BALANCE_OVERRIDE' if amount is not None else 'CUSTOMER_BALANCE_CLEAR',
        entity_type='CUSTOMER',
        entity_id=customer.id,
        description=f"Set manual balance to {amount}" if amount is not None else 'Cleared manual balance override',
        metadata={'amount': amount, 'note': note},
    )
    return Response(_customer_data(customer))


# Supplier views
@api_view(['GET', 'POST'])
@permission_classes(SUPPLIER_PERMISSIONS)
def supplier_list_create(request):
    """List suppliers with their computed payable or create a supplier"""
    if request.method == 'GET':
        suppliers = _supplier_queryset().order_by('name')
        serializer = SupplierSerializer(suppliers, many=True, context={'balances': supplier_payable_map()})
        return Response(serializer.data)

    name = clean_text(request.data.get('name'))
    if not name:
        return Response({'error': 'name is required'}, status=status.HTTP_400_BAD_REQUEST)
    supplier = Supplier.objects.create(
        name=name,
        contact=clean_text(request.data.get('contact')),
        notes=clean_text(request.data.get('notes')),
    )
    create_audit_log(request, 'SUPPLIER_CREATED', 'SUPPLIER', supplier.id, f"Supplier {supplier.name} created")
    return Response(_supplier_data(supplier), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(SUPPLIER_PERMISSIONS)
def supplier_detail(request, pk):
    """Retrieve, update or delete a supplier"""
    supplier = get_object_or_404(Supplier, pk=pk)

    if request.method == 'GET':
        return Response(_supplier_data(supplier))

    if request.method == 'PUT':
        data = request.data
        update_fields = []
        if 'name' in data:
            name = clean_text(data.get('name'))
            if not name:
                return Response({'error': 'name is required'}, status=status.HTTP_400_BAD_REQUEST)
            supplier.name = name
            update_fields.append('name')
        for field in ('contact', 'notes'):
            if field in data:
                setattr(supplier, field, clean_text(data.get(field)))
                update_fields.append(field)
        if not update_fields:
            return Response({'error': 'No fields provided to update'}, status=status.HTTP_400_BAD_REQUEST)
        supplier.save(update_fields=update_fields + ['updated_at'])
        create_audit_log(request, 'SUPPLIER_UPDATED', 'SUPPLIER', supplier.id, f"Supplier {supplier.name} updated",
                         metadata={'fields': update_fields})
        return Response(_supplier_data(supplier))

    if supplier.inventory_entries.exists():
        return Response({'error': 'Cannot delete a supplier that has inventory entries'},
                        status=status.HTTP_400_BAD_REQUEST)
    name = supplier.name
    supplier.delete()
    create_audit_log(request, 'SUPPLIER_DELETED', 'SUPPLIER', pk, f"Supplier {name} deleted")
    return Response({'message': 'Supplier deleted'})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def supplier_manual_balance(request, pk):
    supplier = get_object_or_404(Supplier, pk=pk)
    amount = _manual_amount(request.data)
    note = clean_text(request.data.get('note'))
    set_manual_balance(supplier, amount, note, request.user)
    create_audit_log(
        request,
        action='SUPPLIER_BALANCE_OVERRIDE' if amount is not None else 'SUPPLIER_BALANCE_CLEAR',
        entity_type='SUPPLIER',
        entity_id=supplier.id,
        description=f"Set manual balance to {amount}" if amount is not None else 'Cleared manual balance override',
        metadata={'amount': amount, 'note': note},
    )
    return Response(_supplier_data(supplier))


# Job site views
@api_view(['GET', 'POST'])
@permission_classes(CUSTOMER_PERMISSIONS)
def job_site_list_create(request):
    """List job sites (optionally of one customer) or create one"""
    if request.method == 'GET':
        sites = JobSite.objects.select_related('customer').order_by('customer_id', 'name')
        try:
            customer_id = parse_int(request.query_params.get('customer_id'))
        except ValueError:
            return Response({'error': 'Invalid customer_id'}, status=status.HTTP_400_BAD_REQUEST)
        if customer_id:
            sites = sites.filter(customer_id=customer_id)
        return Response(JobSiteSerializer(sites, many=True).data)

    try:
        customer_id = parse_int(request.data.get('customer_id'))
    except ValueError:
        customer_id = None
    if not customer_id:
        return Response({'error': 'customer_id is required'}, status=status.HTTP_400_BAD_REQUEST)
    customer = get_object_or_404(Customer, pk=customer_id)

    serializer = JobSiteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    site = serializer.save(customer=customer)
    create_audit_log(request, 'JOB_SITE_CREATED', 'JOB_SITE', site.id, f"Job site {site.name} created for {customer.name}")
    return Response(JobSiteSerializer(site).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(CUSTOMER_PERMISSIONS)
def job_site_detail(request, pk):
    site = get_object_or_404(JobSite.objects.select_related('customer'), pk=pk)

    if request.method == 'GET':
        return Response(JobSiteSerializer(site).data)

    if request.method == 'PUT':
        serializer = JobSiteSerializer(site, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        create_audit_log(request, 'JOB_SITE_UPDATED', 'JOB_SITE', site.id, f"Job site {site.name} updated")
        return Response(serializer.data)

    if Receipt.objects.filter(job_site=site).exists():
        return Response({'error': 'Cannot delete a job site that has associated receipts'},
                        status=status.HTTP_400_BAD_REQUEST)
    site.delete()
    create_audit_log(request, 'JOB_SITE_DELETED', 'JOB_SITE', pk, 'Job site deleted')
    return Response({'message': 'Job site deleted'})


# Merge views
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def merge_customer_accounts(request):
    """Fold the source customer into the target customer"""
    source_id, target_id = parse_merge_ids(request.data)
    source, target = merge_customers(source_id, target_id)
    create_audit_log(request, 'CUSTOMER_MERGE', 'CUSTOMER', target_id,
                     f"Merged customer {source_id} into {target_id}",
                     metadata={'source': source_id, 'target': target_id})
    return Response({'message': 'Customers merged', 'source_name': source.name, 'target_name': target.name})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def merge_supplier_accounts(request):
    source_id, target_id = parse_merge_ids(request.data)
    source, target = merge_suppliers(source_id, target_id)
    create_audit_log(request, 'SUPPLIER_MERGE', 'SUPPLIER', target_id,
                     f"Merged supplier {source_id} into {target_id}",
                     metadata={'source': source_id, 'target': target_id})
    return Response({'message': 'Suppliers merged', 'source_name': source.name, 'target_name': target.name})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def pair_customer_supplier_view(request):
    """
    GET lists the pairs. POST pairs customer_id with supplier_id, or with
    `unlink: true` removes the customer's pairing.
    """
    if request.method == 'GET':
        links = CustomerSupplierLink.objects.select_related('customer', 'supplier').order_by('id')
        return Response(CustomerSupplierLinkSerializer(links, many=True).data)

    try:
        customer_id = parse_int(request.data.get('customer_id'))
        supplier_id = parse_int(request.data.get('supplier_id'))
    except ValueError:
        customer_id = supplier_id = None

    if request.data.get('unlink') is True:
        if not customer_id and not supplier_id:
            return Response({'error': 'customer_id or supplier_id is required'}, status=status.HTTP_400_BAD_REQUEST)
        links = CustomerSupplierLink.objects.all()
        links = links.filter(customer_id=customer_id) if customer_id else links.filter(supplier_id=supplier_id)
        removed, _ = links.delete()
        if not removed:
            return Response({'error': 'Customer/supplier pair not found'}, status=status.HTTP_404_NOT_FOUND)
        create_audit_log(request, 'CUSTOMER_SUPPLIER_UNPAIR', 'CUSTOMER', customer_id,
                         'Removed customer/supplier pairing',
                         metadata={'customer_id': customer_id, 'supplier_id': supplier_id})
        return Response({'message': 'Customer and supplier unpaired'})

    if not customer_id or not supplier_id:
        return Response({'error': 'customer_id and supplier_id are required'}, status=status.HTTP_400_BAD_REQUEST)
    customer = Customer.objects.filter(pk=customer_id).first()
    supplier = Supplier.objects.filter(pk=supplier_id).first()
    if customer is None or supplier is None:
        return Response({'error': 'Customer or supplier not found'}, status=status.HTTP_404_NOT_FOUND)

    pair_customer_supplier(customer, supplier)
    create_audit_log(request, 'CUSTOMER_SUPPLIER_PAIR', 'CUSTOMER', customer.id,
                     f"Paired customer {customer.id} with supplier {supplier.id}",
                     metadata={'customer_id': customer.id, 'supplier_id': supplier.id})
    return Response({'message': 'Customer and supplier paired', 'customer': customer.name, 'supplier': supplier.name})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def settle_pairs(request):
    """Offset receivables against payables for every pair, or one pair (link_id or customer_id)"""
    try:
        link_id = parse_int(request.data.get('link_id'))
        customer_id = parse_int(request.data.get('customer_id'))
    except ValueError:
        return Response({'error': 'Invalid pair reference'}, status=status.HTTP_400_BAD_REQUEST)

    if link_id or customer_id:
        links = [get_link_or_error(link_id=link_id, customer_id=customer_id)]
    else:
        links = list(CustomerSupplierLink.objects.select_related('customer', 'supplier').order_by('id'))
    if not links:
        return Response({'message': 'No pairs to settle', 'applied': []})

    applied = []
    with transaction.atomic():
        for link in links:
            result = settle_pair(link, user=request.user)
            applied.append(result)
            if result['settled_amount'] > 0:
                create_audit_log(
                    request, 'PAIR_SETTLE', 'CUSTOMER', link.customer_id,
                    f"Settled paired balances between customer {link.customer_id} and supplier {link.supplier_id}",
                    metadata=result,
                )
    return Response({'message': 'Paired balances settled', 'applied': applied})
