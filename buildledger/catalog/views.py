import logging
from decimal import Decimal

from django.core.cache import cache
from django.db import transaction
from django.db.models import ProtectedError, RestrictedError
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildledger.core.cache_utils import make_cache_key, PRODUCTS_LIST_CACHE_TTL
from buildledger.core.exceptions import ServiceError
from buildledger.core.permissions import view_or_manage
from buildledger.core.utils import create_audit_log, parse_decimal, parse_int, parse_optional_decimal, clean_text
from .models import Product, ProductComponent
from .serializers import ProductSerializer
from .utils import (
    FIXED_PRODUCT_NAMES, is_fixed_product, normalize_composite_components,
    resolve_core_components, should_enable_aggregate_presets,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

PRODUCT_PERMISSIONS = [IsAuthenticated, *view_or_manage('products:view', 'products:manage')]


def product_queryset():
    return Product.objects.select_related('powder_product', 'cement_product').prefetch_related('components__component')


def _parse_tehmil_fee(data):
    """None when the field is absent, 0 when blank, else a non-negative number"""
    if 'tehmil_fee' not in data:
        return None
    fee = parse_optional_decimal(data, 'tehmil_fee', 'tehmil_fee must be a non-negative number', minimum=Decimal('0'))
    return fee if fee is not None else Decimal('0')


def _validated_product_fields(data, existing=None):
    """
    Validate a create/update payload and return (fields, components).
    `components` is None when the stored components should be left alone.
    """
    name = data.get('name')
    if not isinstance(name, str) or not name.strip():
        raise ServiceError('Product name is required')
    name = name.strip()

    if existing is None:
        if is_fixed_product(name):
            raise ServiceError('This product is managed automatically and cannot be recreated.')
        if Product.objects.filter(name__iexact=name).exists():
            raise ServiceError('A product with this name already exists.', status.HTTP_409_CONFLICT)
    elif name.lower() != existing.name.lower():
        if Product.objects.filter(name__iexact=name).exclude(pk=existing.pk).exists():
            raise ServiceError('A product with this name already exists.', status.HTTP_409_CONFLICT)

    unit = data.get('unit')
    if not isinstance(unit, str) or not unit.strip():
        raise ServiceError('Unit is required')
    unit = unit.strip()

    unit_price = parse_optional_decimal(data, 'unit_price', 'unit_price must be a number')

    manufactured = bool(data.get('is_manufactured'))
    if existing is None or 'is_composite' in data:
        composite = bool(data.get('is_composite'))
    else:
        composite = existing.is_composite

    if data.get('has_aggregate_presets') is not None:
        aggregate_presets = bool(data.get('has_aggregate_presets'))
    elif existing is not None:
        aggregate_presets = existing.has_aggregate_presets or should_enable_aggregate_presets(name, unit, composite)
    else:
        aggregate_presets = should_enable_aggregate_presets(name, unit, composite)

    if manufactured and composite:
        raise ServiceError('A product cannot be both manufactured and a composite mix.')

    minimum = None if existing is None else Decimal('0')
    suffix = 'a number' if existing is None else 'a positive number'
    piecework_rate = parse_optional_decimal(data, 'piecework_rate', f'piecework_rate must be {suffix}', minimum=minimum)
    helper_rate = parse_optional_decimal(
        data, 'helper_piecework_rate', f'helper_piecework_rate must be {suffix}', minimum=minimum
    )

    powder_qty = parse_optional_decimal(
        data, 'powder_per_unit', 'powder_per_unit must be greater than zero', minimum=Decimal('0'), allow_zero=False
    )
    cement_qty = parse_optional_decimal(
        data, 'cement_per_unit', 'cement_per_unit must be greater than zero', minimum=Decimal('0'), allow_zero=False
    )

    powder = cement = None
    if manufactured:
        if existing is not None:
            if 'powder_per_unit' not in data:
                powder_qty = existing.powder_per_unit
            if 'cement_per_unit' not in data:
                cement_qty = existing.cement_per_unit
        if powder_qty is None:
            raise ServiceError('Provide powder quantity per unit for manufactured products')
        if cement_qty is None:
            raise ServiceError('Provide cement quantity per unit for manufactured products')
        powder, cement = resolve_core_components()
    else:
        powder_qty = cement_qty = None

    components = None
    if composite:
        if isinstance(data.get('components'), list) or existing is None or not existing.is_composite:
            components = normalize_composite_components(
                data.get('components'), parent_id=existing.pk if existing else None
            )
    elif existing is not None and existing.is_composite:
        components = []

    fields = {
        'name': name,
        'unit': unit,
        'unit_price': unit_price,
        'description': clean_text(data.get('description')),
        'is_manufactured': manufactured,
        'is_composite': composite,
        'has_aggregate_presets': aggregate_presets,
        'is_fuel': bool(data.get('is_fuel')),
        'piecework_rate': piecework_rate if manufactured else None,
        'helper_piecework_rate': helper_rate if manufactured else None,
        'powder_product': powder,
        'powder_per_unit': powder_qty,
        'cement_product': cement,
        'cement_per_unit': cement_qty,
    }
    tehmil_fee = _parse_tehmil_fee(data)
    if tehmil_fee is not None:
        fields['tehmil_fee'] = tehmil_fee
        fields['tenzil_fee'] = tehmil_fee
    elif existing is None:
        fields['tehmil_fee'] = Decimal('0')
        fields['tenzil_fee'] = Decimal('0')
    return fields, components


def _replace_components(product, components):
    ProductComponent.objects.filter(parent=product).delete()
    ProductComponent.objects.bulk_create([
        ProductComponent(parent=product, component_id=component_id, quantity=quantity)
        for component_id, quantity in components
    ])


@api_view(['GET', 'POST'])
@permission_classes(PRODUCT_PERMISSIONS)
def product_list_create(request):
    """List all products (fixed catalog first) or create a new product"""
    if request.method == 'GET':
        cache_key = make_cache_key('products_list')
        cached_data = cache.get(cache_key)
        if cached_data is not None:
            return Response(cached_data)

        products = list(product_queryset().order_by('name'))
        products.sort(key=lambda p: (p.name.lower() not in FIXED_PRODUCT_NAMES, p.name.lower()))
        data = ProductSerializer(products, many=True).data
        cache.set(cache_key, data, PRODUCTS_LIST_CACHE_TTL)
        return Response(data)

    fields, components = _validated_product_fields(request.data)
    with transaction.atomic():
        product = Product.objects.create(**fields)
        if fields['is_composite'] and components:
            _replace_components(product, components)
    create_audit_log(request, 'PRODUCT_CREATED', 'product', product.id, f"Product {product.name} created")
    return Response(ProductSerializer(product_queryset().get(pk=product.pk)).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes(PRODUCT_PERMISSIONS)
def product_paginated(request):
    """Cursor-paginated product list ordered by id"""
    try:
        limit = parse_int(request.query_params.get('limit')) or DEFAULT_PAGE_SIZE
    except ValueError:
        limit = DEFAULT_PAGE_SIZE
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    try:
        cursor = parse_int(request.query_params.get('cursor'))
    except ValueError:
        return Response({'error': 'Invalid cursor'}, status=status.HTTP_400_BAD_REQUEST)

    queryset = product_queryset().order_by('id')
    if cursor:
        queryset = queryset.filter(id__gt=cursor)
    products = list(queryset[:limit + 1])
    has_next = len(products) > limit
    products = products[:limit]
    return Response({
        'items': ProductSerializer(products, many=True).data,
        'next_cursor': products[-1].id if has_next and products else None,
    })


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes(PRODUCT_PERMISSIONS)
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'GET':
        return Response(ProductSerializer(product_queryset().get(pk=pk)).data)

    if request.method == 'PUT':
        fields, components = _validated_product_fields(request.data, existing=product)
        with transaction.atomic():
            for field, value in fields.items():
                setattr(product, field, value)
            product.save()
            if not product.is_composite:
                ProductComponent.objects.filter(parent=product).delete()
            elif components is not None:
                if not components:
                    raise ServiceError('Add at least one component for composite mixes.')
                _replace_components(product, components)
        create_audit_log(request, 'PRODUCT_UPDATED', 'product', product.id, f"Product {product.name} updated")
        return Response(ProductSerializer(product_queryset().get(pk=pk)).data)

    name = product.name
    try:
        with transaction.atomic():
            product.delete()
    except (ProtectedError, RestrictedError):
        return Response({'error': 'Product is in use and cannot be deleted.'}, status=status.HTTP_409_CONFLICT)
    create_audit_log(request, 'PRODUCT_DELETED', 'product', pk, f"Product {name} deleted")
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH'])
@permission_classes(PRODUCT_PERMISSIONS)
def product_materials(request, pk):
    """Update the raw material usage and piece rates of a manufactured product"""
    product = get_object_or_404(Product, pk=pk)
    if not product.is_manufactured:
        return Response({'error': 'Only manufactured products have material usage'}, status=status.HTTP_400_BAD_REQUEST)

    data = request.data
    if 'powder_per_unit' not in data or 'cement_per_unit' not in data:
        return Response({'error': 'Provide both powder and cement quantities'}, status=status.HTTP_400_BAD_REQUEST)

    powder_qty = parse_optional_decimal(data, 'powder_per_unit', 'Powder quantity must be greater than zero',
                                        minimum=Decimal('0'), allow_zero=False)
    cement_qty = parse_optional_decimal(data, 'cement_per_unit', 'Cement quantity must be greater than zero',
                                        minimum=Decimal('0'), allow_zero=False)
    if powder_qty is None:
        return Response({'error': 'Powder quantity must be greater than zero'}, status=status.HTTP_400_BAD_REQUEST)
    if cement_qty is None:
        return Response({'error': 'Cement quantity must be greater than zero'}, status=status.HTTP_400_BAD_REQUEST)

    update_fields = ['powder_per_unit', 'cement_per_unit', 'powder_product', 'cement_product', 'updated_at']
    if 'piecework_rate' in data:
        product.piecework_rate = parse_optional_decimal(
            data, 'piecework_rate', 'Piecework rate must be greater than zero', minimum=Decimal('0'), allow_zero=False
        )
        update_fields.append('piecework_rate')
    if 'helper_piecework_rate' in data:
        product.helper_piecework_rate = parse_optional_decimal(
            data, 'helper_piecework_rate', 'Helper rate must be zero or greater', minimum=Decimal('0')
        )
        update_fields.append('helper_piecework_rate')

    powder, cement = resolve_core_components()
    product.powder_per_unit = powder_qty
    product.cement_per_unit = cement_qty
    product.powder_product = powder
    product.cement_product = cement
    product.save(update_fields=update_fields)
    return Response(ProductSerializer(product_queryset().get(pk=pk)).data)


@api_view(['POST'])
@permission_classes(PRODUCT_PERMISSIONS)
def product_adjust_stock(request, pk):
    """Overwrite a product's stock level after a physical count"""
    product = get_object_or_404(Product, pk=pk)
    raw = request.data.get('stock_qty')
    try:
        stock_qty = parse_decimal(raw)
    except ValueError:
        return Response({'error': 'stock_qty must be a non-negative number'}, status=status.HTTP_400_BAD_REQUEST)
    if stock_qty is None:
        return Response({'error': 'stock_qty is required'}, status=status.HTTP_400_BAD_REQUEST)
    if stock_qty < 0:
        return Response({'error': 'stock_qty must be a non-negative number'}, status=status.HTTP_400_BAD_REQUEST)

    previous = product.stock_qty
    product.stock_qty = stock_qty
    product.save(update_fields=['stock_qty', 'updated_at'])
    create_audit_log(
        request,
        action='INVENTORY_STOCK_OVERRIDE',
        entity_type='product',
        entity_id=product.id,
        description=f"Manual stock set to {stock_qty} {product.unit}",
        metadata={'previous_stock': previous, 'new_stock': stock_qty, 'product_name': product.name},
    )
    return Response(ProductSerializer(product_queryset().get(pk=pk)).data)
