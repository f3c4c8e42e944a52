"""Shared helpers: audit logging, request metadata, money and input parsing"""
import logging
from datetime import datetime, time, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date as django_parse_date, parse_datetime

from .exceptions import ServiceError
from .models import AuditLog

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
MILLI = Decimal('0.001')
ZERO = Decimal('0.00')

TRUE_VALUES = {'1', 'true', 'yes', 'y', 'on'}
FALSE_VALUES = {'0', 'false', 'no', 'n', 'off'}


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, entity_type=None, entity_id=None,
                     description=None, metadata=None, user=None):
    """
    Create an audit log entry

    Args:
        request: Django/DRF request (for user and IP) - optional if user is provided
        action: Action code, e.g. RECEIPT_CREATED
        entity_type: Kind of record acted upon, e.g. RECEIPT
        entity_id: Primary key of the record
        description: Human-readable summary
        metadata: JSON-serialisable details
        user: Optional user override (defaults to request.user)
    """
    try:
        audit_user = user
        if audit_user is None and request is not None:
            audit_user = getattr(request, 'user', None)
        if audit_user is not None and not getattr(audit_user, 'is_authenticated', False):
            audit_user = None

        if not action or not entity_type:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, entity_type={entity_type})")
            return None

        return AuditLog.objects.create(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            user=audit_user,
            metadata=to_json_safe(metadata or {}),
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def to_json_safe(value):
    """Convert Decimals and dates inside a structure so it can be stored as JSON"""
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    return value


# --- Money ---

def money(value):
    """Round to cents, half up"""
    if value is None:
        return ZERO
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def qty(value):
    if value is None:
        return Decimal('0.000')
    return Decimal(value).quantize(MILLI, rounding=ROUND_HALF_UP)


def tva_rate():
    return Decimal(str(settings.TVA_RATE))


def apply_tax(base, receipt_type):
    """Receipt total for a taxable base; TVA receipts add the VAT"""
    base = Decimal(base)
    if receipt_type == 'TVA':
        return money(base * (Decimal('1') + tva_rate()))
    return money(base)


# --- Input parsing ---

def is_blank(value):
    return value is None or (isinstance(value, str) and value.strip() == '')


def parse_decimal(value):
    """Parse a number from client input. None for blank, ValueError when invalid."""
    if is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValueError('invalid number')
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, TypeError):
        raise ValueError('invalid number')
    if not parsed.is_finite():
        raise ValueError('invalid number')
    return parsed


def parse_int(value):
    """Parse a positive integer id. None for blank, ValueError when invalid."""
    if is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValueError('invalid integer')
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError('invalid integer')
    if parsed <= 0:
        raise ValueError('invalid integer')
    return parsed


def parse_bool(value, default=None):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    return default


def parse_date(value):
    """
    Parse a date or datetime string into an aware datetime.
    None for blank input, ValueError for garbage.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value if timezone.is_aware(value) else timezone.make_aware(value)
    text = str(value).strip()
    parsed = parse_datetime(text)
    if parsed is None:
        day = django_parse_date(text[:10]) if len(text) >= 10 else None
        if day is None:
            raise ValueError('invalid date')
        parsed = datetime.combine(day, time.min)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def start_of_day(value):
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        value = value.date()
    return timezone.make_aware(datetime.combine(value, time.min))


def end_of_day(value):
    return start_of_day(value) + timedelta(days=1) - timedelta(microseconds=1)


def clean_text(value):
    """Trimmed string or None"""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def query_list(value):
    """Split a CSV query parameter into positive ints, ignoring junk"""
    if not value:
        return []
    ids = []
    for part in str(value).split(','):
        try:
            parsed = parse_int(part)
        except ValueError:
            continue
        if parsed:
            ids.append(parsed)
    return ids


def parse_optional_decimal(data, field, message, minimum=None, allow_zero=True):
    """
    Parse an optional numeric field from a payload.
    Blank -> None. Invalid or out of range -> ServiceError(message).
    """
    try:
        value = parse_decimal(data.get(field))
    except ValueError:
        raise ServiceError(message)
    if value is None:
        return None
    if minimum is not None:
        if value < minimum or (not allow_zero and value == minimum):
            raise ServiceError(message)
    return value
