"""
Role defaults, per-user permission overrides and the DRF permission
classes built on top of them.
"""
from rest_framework.permissions import BasePermission

PERMISSIONS = [
    ('receipts:view', 'View receipts'),
    ('receipts:create', 'Create receipts'),
    ('receipts:update', 'Edit receipts'),
    ('receipts:delete', 'Delete receipts'),
    ('receipts:print', 'Print receipts'),
    ('invoices:view', 'View invoices'),
    ('invoices:manage', 'Manage invoices'),
    ('payments:manage', 'Manage payments'),
    ('cash:manage', 'Manage cash & owner draws'),
    ('products:view', 'View products'),
    ('products:manage', 'Manage products'),
    ('inventory:manage', 'Manage inventory'),
    ('reports:view', 'View reports'),
    ('diesel:manage', 'Manage diesel logs'),
    ('debris:manage', 'Manage debris'),
    ('debris:edit', 'Edit or delete debris removals'),
    ('customers:view', 'View customers & job sites'),
    ('customers:manage', 'Manage customers & job sites'),
    ('suppliers:view', 'View suppliers'),
    ('suppliers:manage', 'Manage suppliers'),
    ('payroll:manage', 'Manage payroll'),
]

PERMISSION_KEYS = [key for key, _ in PERMISSIONS]

MANAGER_PERMISSIONS = {
    'receipts:view', 'receipts:create', 'receipts:print',
    'invoices:view', 'invoices:manage',
    'payments:manage', 'cash:manage',
    'products:view', 'products:manage',
    'inventory:manage', 'reports:view', 'diesel:manage',
    'debris:manage', 'debris:edit',
    'customers:view', 'customers:manage',
    'suppliers:view', 'suppliers:manage',
}

WORKER_PERMISSIONS = {
    'receipts:view', 'receipts:create', 'receipts:print',
    'products:view', 'customers:view', 'suppliers:view',
}

NO_PERMISSION_MESSAGE = 'You do not have permission to perform this action'
NO_ROLE_MESSAGE = 'Insufficient permissions'


def default_permissions_for_role(role):
    """Return the full permission map a role starts with"""
    if role == 'ADMIN':
        granted = set(PERMISSION_KEYS)
    elif role == 'MANAGER':
        granted = MANAGER_PERMISSIONS
    else:
        granted = WORKER_PERMISSIONS
    return {key: key in granted for key in PERMISSION_KEYS}


def merge_permissions(role, overrides=None):
    """Apply stored overrides on top of the role defaults; unknown keys are ignored"""
    result = default_permissions_for_role(role)
    if not overrides or not isinstance(overrides, dict):
        return result
    for key, value in overrides.items():
        if key in result:
            result[key] = bool(value)
    return result


def sanitize_permission_input(data):
    """Keep only known keys from a client payload; None when nothing is left"""
    if not data or not isinstance(data, dict):
        return None
    sanitized = {key: bool(value) for key, value in data.items() if key in PERMISSION_KEYS}
    return sanitized or None


def require_permission(key, methods=None):
    """
    Build a permission class that demands `key`, optionally only for the
    given HTTP methods. Admins always pass.
    """
    allowed_methods = [m.upper() for m in methods] if methods else None

    class RequirePermission(BasePermission):
        message = NO_PERMISSION_MESSAGE

        def has_permission(self, request, view):
            if allowed_methods and request.method.upper() not in allowed_methods:
                return True
            user = request.user
            if not user or not user.is_authenticated:
                return False
            return user.has_app_permission(key)

    RequirePermission.__name__ = f"RequirePermission[{key}]"
    return RequirePermission


def require_role(*roles):
    """Build a permission class that only lets the listed roles through"""
    whitelist = set(roles)

    class RequireRole(BasePermission):
        message = NO_ROLE_MESSAGE

        def has_permission(self, request, view):
            user = request.user
            if not user or not user.is_authenticated:
                return False
            return user.role in whitelist

    RequireRole.__name__ = f"RequireRole[{','.join(sorted(whitelist))}]"
    return RequireRole


IsAdminRole = require_role('ADMIN')
ManagerOrAdmin = require_role('ADMIN', 'MANAGER')


def view_or_manage(view_key, manage_key):
    """GET needs the view permission, every other method the manage one"""
    return [
        ManagerOrAdmin,
        require_permission(view_key, ['GET', 'HEAD', 'OPTIONS']),
        require_permission(manage_key, ['POST', 'PUT', 'PATCH', 'DELETE']),
    ]
