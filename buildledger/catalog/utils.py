"""Product catalog helpers: the fixed catalog, composite validation and material lookups"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import F

from buildledger.core.exceptions import ServiceError
from buildledger.core.utils import parse_decimal, parse_int
from .models import Product

logger = logging.getLogger(__name__)

POWDER_NAME = 'powder'
CEMENT_NAME = 'cement'
DEBRIS_NAME = 'debris'
DIESEL_NAME = 'diesel'
AGGREGATE_KEYWORDS = ['powder', 'sand', 'gravel', 'mix', 'makhlouta']

FIXED_PRODUCT_CATALOG = [
    {'name': 'Powder', 'unit': 'm³', 'description': 'Bulk powder measured in cubic meters'},
    {'name': 'Sand', 'unit': 'm³', 'description': 'Bulk sand measured in cubic meters'},
    {'name': 'Gravel', 'unit': 'm³', 'description': 'Bulk gravel measured in cubic meters'},
    {'name': 'Debris', 'unit': 'm³', 'description': 'Debris intake measured in cubic meters'},
    {'name': 'Cement', 'unit': 'bag', 'description': 'Cement (bag), 20 bags equal one ton'},
    {'name': 'Diesel', 'unit': 'L', 'description': 'Diesel fuel tracked in liters', 'is_fuel': True},
    {'name': 'Hollow Block 6cm', 'unit': 'unit', 'description': 'Precast hollow block 6cm sold per unit', 'is_manufactured': True},
    {'name': 'Hollow Block 8cm', 'unit': 'unit', 'description': 'Precast hollow block 8cm sold per unit', 'is_manufactured': True},
    {'name': 'Hollow Block 10cm', 'unit': 'unit', 'description': 'Precast hollow block 10cm sold per unit', 'is_manufactured': True},
    {'name': 'Hollow Block 12cm', 'unit': 'unit', 'description': 'Precast hollow block 12cm sold per unit', 'is_manufactured': True},
    {'name': 'Hollow Block 15cm', 'unit': 'unit', 'description': 'Precast hollow block 15cm sold per unit', 'is_manufactured': True},
    {'name': 'Hollow Block 20cm', 'unit': 'unit', 'description': 'Precast hollow block 20cm sold per unit', 'is_manufactured': True},
    {'name': 'Solid Block 8cm', 'unit': 'unit', 'description': 'Solid block 8cm sold per unit', 'is_manufactured': True},
    {'name': 'Solid Block 10cm', 'unit': 'unit', 'description': 'Solid block 10cm sold per unit', 'is_manufactured': True},
    {'name': 'Solid Block 15cm', 'unit': 'unit', 'description': 'Solid block 15cm sold per unit', 'is_manufactured': True},
    {'name': 'Solid Block 20cm', 'unit': 'unit', 'description': 'Solid block 20cm sold per unit', 'is_manufactured': True},
    {'name': 'Semi Solid Block 10cm', 'unit': 'unit', 'description': 'Semi solid block 10cm sold per unit', 'is_manufactured': True},
    {'name': 'Semi Solid Block 12cm', 'unit': 'unit', 'description': 'Semi solid block 12cm sold per unit', 'is_manufactured': True},
    {'name': 'Semi Solid Block 15cm', 'unit': 'unit', 'description': 'Semi solid block 15cm sold per unit', 'is_manufactured': True},
    {'name': 'Bordure 10cm', 'unit': 'unit', 'description': 'Bordure 10cm sold per unit', 'is_manufactured': True},
    {'name': 'Bordure 13cm', 'unit': 'unit', 'description': 'Bordure 13cm sold per unit', 'is_manufactured': True},
    {'name': 'Bordure 15cm', 'unit': 'unit', 'description': 'Bordure 15cm sold per unit', 'is_manufactured': True},
    {'name': 'Hordy 14cm', 'unit': 'unit', 'description': 'Hordy block 14cm sold per unit', 'is_manufactured': True},
    {'name': 'Hordy 18cm', 'unit': 'unit', 'description': 'Hordy block 18cm sold per unit', 'is_manufactured': True},
    {'name': 'Interlock', 'unit': 'unit', 'description': 'Interlock paver sold per unit', 'is_manufactured': True},
]

FIXED_PRODUCT_NAMES = {entry['name'].lower() for entry in FIXED_PRODUCT_CATALOG}


def ensure_product_catalog():
    """
    Create or refresh the fixed catalog entries.
    Prices, rates and stock set by users on existing rows are left alone.
    Returns (created, updated) counts.
    """
    created = updated = 0
    with transaction.atomic():
        for entry in FIXED_PRODUCT_CATALOG:
            defaults = {
                'unit': entry['unit'],
                'description': entry.get('description'),
                'is_manufactured': entry.get('is_manufactured', False),
                'is_fuel': entry.get('is_fuel', False),
            }
            product = Product.objects.filter(name__iexact=entry['name']).first()
            if product is None:
                Product.objects.create(name=entry['name'], **defaults)
                created += 1
                continue
            changed = [field for field, value in defaults.items() if getattr(product, field) != value]
            if changed:
                for field in changed:
                    setattr(product, field, defaults[field])
                product.save(update_fields=changed + ['updated_at'])
                updated += 1
    if created or updated:
        logger.info(f"Product catalog synced: {created} created, {updated} updated")
    return created, updated


def is_fixed_product(name):
    return (name or '').strip().lower() in FIXED_PRODUCT_NAMES


def find_product_by_name(name):
    return Product.objects.filter(name__iexact=name).first()


def should_enable_aggregate_presets(name, unit, force_composite=False):
    if force_composite:
        return True
    normalized_name = (name or '').strip().lower()
    normalized_unit = (unit or '').strip().lower()
    if any(keyword in normalized_name for keyword in AGGREGATE_KEYWORDS):
        return True
    return 'm3' in normalized_unit or 'm³' in normalized_unit


def resolve_core_components():
    """Return (powder, cement) catalog products used by block production"""
    powder = find_product_by_name(POWDER_NAME)
    cement = find_product_by_name(CEMENT_NAME)
    if not powder or not cement:
        raise ServiceError('Core component products (Powder and Cement) are missing from the catalog.')
    return powder, cement


def normalize_composite_components(raw_value, parent_id=None):
    """
    Validate a list of {product_id, quantity} composite ingredients.
    Raises ServiceError with a user-facing message.
    """
    if not isinstance(raw_value, list) or not raw_value:
        raise ServiceError('Add at least one component for composite mixes.')

    normalized = []
    for entry in raw_value:
        if not isinstance(entry, dict):
            raise ServiceError('Component quantities must be positive numbers and reference valid products.')
        try:
            product_id = parse_int(entry.get('product_id'))
            quantity = parse_decimal(entry.get('quantity'))
        except ValueError:
            product_id = quantity = None
        if not product_id or quantity is None or quantity <= 0:
            raise ServiceError('Component quantities must be positive numbers and reference valid products.')
        normalized.append((product_id, quantity))

    seen = set()
    for product_id, _ in normalized:
        if parent_id and product_id == parent_id:
            raise ServiceError('A composite product cannot reference itself as a component.')
        if product_id in seen:
            raise ServiceError('Each component can only be listed once.')
        seen.add(product_id)

    products = list(Product.objects.filter(id__in=seen))
    if len(products) != len(seen):
        raise ServiceError('One or more selected components no longer exist.')
    if any(product.is_composite for product in products):
        raise ServiceError('Composite mixes cannot reference other composite products.')
    return normalized


def adjust_stock(product, delta):
    """Atomically add `delta` (may be negative) to a product's stock"""
    product_id = product.pk if hasattr(product, 'pk') else product
    Product.objects.filter(pk=product_id).update(
        stock_qty=F('stock_qty') + Decimal(delta)
    )
