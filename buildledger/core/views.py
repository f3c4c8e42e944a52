import logging

from django.conf import settings
from django.db import connection, transaction
from django.db.models import Count, Max
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from .filters import AuditLogFilter
from .models import User, AuditLog, AdminOverride, DisplaySettings
from .permissions import IsAdminRole, require_permission, sanitize_permission_input
from .serializers import (
    UserSerializer, UserAdminSerializer, AuditLogSerializer,
    DisplaySettingsSerializer, AdminOverrideSerializer,
)
from .sessions import create_session, revoke_session_by_id
from .utils import create_audit_log, get_client_ip, parse_decimal, parse_int

logger = logging.getLogger(__name__)

VALID_ROLES = [choice[0] for choice in User.ROLE_CHOICES]
MIN_PASSWORD_LENGTH = 8


def normalize_email(value):
    return value.strip().lower()


# Auth views
@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def login(request):
    """Exchange email and password for a session cookie"""
    email = request.data.get('email')
    password = request.data.get('password')
    if not email or not isinstance(email, str) or not password or not isinstance(password, str):
        return Response({'error': 'Email and password are required'}, status=status.HTTP_400_BAD_REQUEST)

    user = User.objects.filter(email=normalize_email(email)).first()
    if not user or not user.is_active or not user.check_password(password):
        return Response({'error': 'Invalid credentials'}, status=status.HTTP_401_UNAUTHORIZED)

    session, raw_token = create_session(
        user,
        user_agent=request.META.get('HTTP_USER_AGENT'),
        ip_address=get_client_ip(request),
    )
    response = Response({
        'user': UserSerializer(user).data,
        'session_id': str(session.id),
        'token': raw_token,
    })
    response.set_cookie(
        settings.SESSION_TOKEN_COOKIE_NAME,
        raw_token,
        max_age=settings.SESSION_TOKEN_TTL_DAYS * 24 * 60 * 60,
        httponly=True,
        samesite='Lax',
        secure=settings.SESSION_TOKEN_COOKIE_SECURE,
    )
    return response


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request):
    """Revoke the current session and clear the cookie"""
    if request.auth is not None:
        revoke_session_by_id(request.auth.id)
    response = Response({'success': True})
    response.delete_cookie(settings.SESSION_TOKEN_COOKIE_NAME, samesite='Lax')
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me(request):
    """Get the current user with merged permissions"""
    return Response({'user': UserSerializer(request.user).data})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        users = User.objects.all().order_by('id')
        return Response({'users': UserAdminSerializer(users, many=True).data})

    email = request.data.get('email')
    password = request.data.get('password')
    role = request.data.get('role')
    name = request.data.get('name')
    if not email or not isinstance(email, str) or not password or not isinstance(password, str):
        return Response({'error': 'Email and password are required'}, status=status.HTTP_400_BAD_REQUEST)
    if role not in VALID_ROLES:
        return Response({'error': 'Invalid role'}, status=status.HTTP_400_BAD_REQUEST)
    if len(password) < MIN_PASSWORD_LENGTH:
        return Response({'error': 'Password must be at least 8 characters'}, status=status.HTTP_400_BAD_REQUEST)

    email = normalize_email(email)
    if User.objects.filter(email=email).exists():
        return Response({'error': 'A user with this email already exists'}, status=status.HTTP_409_CONFLICT)

    user = User.objects.create_user(
        email=email,
        password=password,
        name=name.strip() if isinstance(name, str) else None,
        role=role,
        permission_overrides=sanitize_permission_input(request.data.get('permissions')),
    )
    create_audit_log(request, 'USER_CREATED', 'user', user.id, f"User {user.email} created with role {user.role}")
    return Response({'user': UserSerializer(user).data}, status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_detail(request, pk):
    """Update role, permissions, name or password of a user"""
    user = get_object_or_404(User, pk=pk)
    data = request.data
    changed = []

    role = data.get('role')
    if role:
        if role not in VALID_ROLES:
            return Response({'error': 'Invalid role'}, status=status.HTTP_400_BAD_REQUEST)
        user.role = role
        changed.append('role')

    if 'permissions' in data:
        user.permission_overrides = sanitize_permission_input(data.get('permissions'))
        changed.append('permission_overrides')

    name = data.get('name')
    if isinstance(name, str):
        user.name = name.strip()
        changed.append('name')

    password = data.get('password')
    if password:
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            return Response({'error': 'Password must be at least 8 characters'}, status=status.HTTP_400_BAD_REQUEST)
        user.set_password(password)
        changed.append('password')

    if not changed:
        return Response({'error': 'No updates provided'}, status=status.HTTP_400_BAD_REQUEST)

    user.save()
    create_audit_log(request, 'USER_UPDATED', 'user', user.id, f"User {user.email} updated",
                     metadata={'fields': changed})
    return Response({'user': UserSerializer(user).data})


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def bootstrap(request):
    """Create the first admin account; only works while there are no users"""
    if User.objects.exists():
        return Response({'error': 'Users already exist. Use the normal login flow.'}, status=status.HTTP_400_BAD_REQUEST)

    expected = settings.ADMIN_BOOTSTRAP_TOKEN
    if not expected:
        return Response({'error': 'ADMIN_BOOTSTRAP_TOKEN is not configured'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    provided = request.META.get('HTTP_X_BOOTSTRAP_TOKEN')
    if not provided or provided != expected:
        return Response({'error': 'Invalid bootstrap token'}, status=status.HTTP_403_FORBIDDEN)

    email = request.data.get('email')
    password = request.data.get('password')
    name = request.data.get('name')
    if not email or not isinstance(email, str) or not password or not isinstance(password, str):
        return Response({'error': 'Email and password are required'}, status=status.HTTP_400_BAD_REQUEST)

    user = User.objects.create_user(
        email=email,
        password=password,
        name=name.strip() if isinstance(name, str) else None,
        role=User.ROLE_ADMIN,
        is_staff=True,
    )
    logger.info(f"Bootstrap admin {user.email} created")
    return Response({'user': UserSerializer(user).data}, status=status.HTTP_201_CREATED)


# Health views
@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    return Response({'status': 'ok', 'timestamp': timezone.now().isoformat()})


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def ready(request):
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
    except Exception as e:
        logger.error(f"Readiness check failed: {str(e)}")
        return Response(
            {'status': 'not_ready', 'timestamp': timezone.now().isoformat(), 'error': str(e)},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return Response({'status': 'ready', 'timestamp': timezone.now().isoformat()})


# AuditLog views
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_log_list(request):
    """List recent audit logs with filtering"""
    try:
        limit = parse_int(request.query_params.get('limit')) or 100
    except ValueError:
        limit = 100
    limit = min(limit, 500)

    queryset = AuditLog.objects.select_related('user').order_by('-created_at')
    queryset = AuditLogFilter(request.query_params, queryset=queryset).qs
    serializer = AuditLogSerializer(queryset[:limit], many=True)
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_invoice_print(request):
    """Record that a customer statement/invoice was printed"""
    try:
        customer_id = parse_int(request.data.get('customer_id'))
    except ValueError:
        customer_id = None
    if not customer_id:
        return Response({'error': 'customer_id is required'}, status=status.HTTP_400_BAD_REQUEST)

    receipt_ids = request.data.get('receipt_ids')
    create_audit_log(
        request,
        action='INVOICE_PRINTED',
        entity_type='invoice',
        entity_id=customer_id,
        description=f"Invoice printed for customer {customer_id}",
        metadata={'receipt_ids': [rid for rid in receipt_ids if isinstance(rid, int)] if isinstance(receipt_ids, list) else []},
    )
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_activity(request):
    """Print/update/delete counters per receipt and print counters per customer invoice"""
    from buildledger.parties.models import Customer
    from buildledger.receipts.models import Receipt

    receipt_actions = {
        'RECEIPT_PRINTED': ('print_count', 'last_printed_at'),
        'RECEIPT_UPDATED': ('update_count', 'last_updated_at'),
        'RECEIPT_DELETED': ('delete_count', 'last_deleted_at'),
    }
    receipt_logs = (
        AuditLog.objects.filter(entity_type='receipt', entity_id__isnull=False, action__in=receipt_actions.keys())
        .values('entity_id', 'action')
        .annotate(count=Count('id'), last=Max('created_at'))
    )
    receipt_ids = {row['entity_id'] for row in receipt_logs}
    receipts = {
        r.id: r for r in Receipt.objects.filter(id__in=receipt_ids).select_related('customer')
    }

    records = {}
    for row in receipt_logs:
        receipt_id = row['entity_id']
        if receipt_id not in records:
            receipt = receipts.get(receipt_id)
            records[receipt_id] = {
                'receipt_id': receipt_id,
                'receipt_no': (receipt.receipt_no if receipt and receipt.receipt_no else f"#{receipt_id}"),
                'customer_name': (
                    (receipt.customer.name if receipt.customer else receipt.walk_in_name) or 'Walk-in'
                ) if receipt else 'Unknown',
                'issued_on': receipt.date if receipt else None,
                'print_count': 0,
                'update_count': 0,
                'delete_count': 0,
                'last_printed_at': None,
                'last_updated_at': None,
                'last_deleted_at': None,
            }
        count_key, last_key = receipt_actions[row['action']]
        records[receipt_id][count_key] = row['count']
        records[receipt_id][last_key] = row['last']

    invoice_logs = (
        AuditLog.objects.filter(entity_type='invoice', action='INVOICE_PRINTED', entity_id__isnull=False)
        .values('entity_id')
        .annotate(count=Count('id'), last=Max('created_at'))
    )
    customers = {
        c.id: c for c in Customer.objects.filter(id__in=[row['entity_id'] for row in invoice_logs])
    }
    invoices = [
        {
            'customer_id': row['entity_id'],
            'customer_name': customers[row['entity_id']].name if row['entity_id'] in customers else f"Customer {row['entity_id']}",
            'print_count': row['count'],
            'last_printed_at': row['last'],
        }
        for row in invoice_logs
    ]

    def by_last_printed(item):
        return item['last_printed_at'].timestamp() if item['last_printed_at'] else 0

    return Response({
        'receipts': sorted(records.values(), key=by_last_printed, reverse=True),
        'invoices': sorted(invoices, key=by_last_printed, reverse=True),
    })


# Display settings views
@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsAdminRole, require_permission('reports:view')])
def display_settings(request):
    """Read or update the finance display flags"""
    settings_row = DisplaySettings.load()
    if request.method == 'GET':
        return Response(DisplaySettingsSerializer(settings_row).data)

    changed = {}
    for field in DisplaySettings.FLAG_FIELDS:
        if field in request.data:
            value = bool(request.data.get(field))
            setattr(settings_row, field, value)
            changed[field] = value
    settings_row.save()
    if changed:
        create_audit_log(request, 'DISPLAY_SETTINGS_UPDATED', 'display_settings', settings_row.id,
                         'Display settings updated', metadata=changed)
    return Response(DisplaySettingsSerializer(settings_row).data)


# Manual controls
MANUAL_CONTROL_KEYS = {
    'inventory_value': AdminOverride.CATEGORY_INVENTORY_VALUE,
    'receivables_total': AdminOverride.CATEGORY_RECEIVABLES_TOTAL,
    'payables_total': AdminOverride.CATEGORY_PAYABLES_TOTAL,
}


def serialize_manual_controls():
    overrides = {o.category: o for o in AdminOverride.objects.select_related('updated_by')}
    response = {}
    for key, category in MANUAL_CONTROL_KEYS.items():
        override = overrides.get(category)
        if override is None:
            response[key] = {'value': None, 'updated_at': None, 'updated_by': None}
        else:
            data = AdminOverrideSerializer(override).data
            response[key] = {'value': data['value'], 'updated_at': data['updated_at'], 'updated_by': data['updated_by']}
    return response


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsAdminRole])
def manual_controls(request):
    """Read or replace the admin overrides of finance totals"""
    if request.method == 'GET':
        return Response(serialize_manual_controls())

    provided = [key for key in MANUAL_CONTROL_KEYS if key in request.data]
    if not provided:
        return Response({'error': 'Provide at least one override field'}, status=status.HTTP_400_BAD_REQUEST)

    parsed = {}
    for key in provided:
        try:
            parsed[key] = parse_decimal(request.data.get(key))
        except ValueError:
            return Response({'error': f"Invalid override value provided for {key}"}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        for key, value in parsed.items():
            category = MANUAL_CONTROL_KEYS[key]
            if value is None:
                AdminOverride.objects.filter(category=category).delete()
            else:
                AdminOverride.objects.update_or_create(
                    category=category,
                    defaults={'value': value, 'updated_by': request.user},
                )
    create_audit_log(request, 'MANUAL_CONTROLS_UPDATED', 'admin_override', None, 'Manual finance overrides updated',
                     metadata={key: value for key, value in parsed.items()})
    return Response(serialize_manual_controls())
