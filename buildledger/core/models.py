import uuid
from decimal import Decimal

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models


class UserManager(BaseUserManager):
    """Users log in with their email address"""
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('The email address must be set')
        email = email.strip().lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', User.ROLE_ADMIN)
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    """Application user with a role and optional permission overrides"""
    ROLE_ADMIN = 'ADMIN'
    ROLE_MANAGER = 'MANAGER'
    ROLE_WORKER = 'WORKER'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_MANAGER, 'Manager'),
        (ROLE_WORKER, 'Worker'),
    ]

    username = None
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=200, blank=True, null=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_WORKER)
    permission_overrides = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    def __str__(self):
        return self.email

    @property
    def permissions(self):
        from .permissions import merge_permissions
        return merge_permissions(self.role, self.permission_overrides)

    def has_app_permission(self, key):
        if self.role == self.ROLE_ADMIN:
            return True
        return bool(self.permissions.get(key))

    class Meta:
        db_table = 'users'


class UserSession(models.Model):
    """Server-side login session; only the sha256 of the token is stored"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='login_sessions')
    token_hash = models.CharField(max_length=64, unique=True)
    expires_at = models.DateTimeField()
    revoked_at = models.DateTimeField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, null=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    last_used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user} session {self.id}"

    class Meta:
        db_table = 'user_sessions'
        indexes = [
            models.Index(fields=['user'], name='user_sessio_user_id_4f1c2a_idx'),
            models.Index(fields=['expires_at'], name='user_sessio_expires_8d3e1b_idx'),
        ]


class AuditLog(models.Model):
    """Audit log for critical operations"""
    action = models.CharField(max_length=100)
    entity_type = models.CharField(max_length=100)
    entity_id = models.BigIntegerField(null=True, blank=True)
    description = models.TextField(blank=True, null=True)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs')
    metadata = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} {self.entity_type}#{self.entity_id}"

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_6e0f0d_idx'),
            models.Index(fields=['action'], name='audit_logs_action_5c1a7e_idx'),
            models.Index(fields=['entity_type'], name='audit_logs_entity__9b2d4c_idx'),
        ]


class AdminOverride(models.Model):
    """Manually entered figure that replaces a computed finance total"""
    CATEGORY_INVENTORY_VALUE = 'INVENTORY_VALUE'
    CATEGORY_RECEIVABLES_TOTAL = 'RECEIVABLES_TOTAL'
    CATEGORY_PAYABLES_TOTAL = 'PAYABLES_TOTAL'
    CATEGORY_CHOICES = [
        (CATEGORY_INVENTORY_VALUE, 'Inventory value'),
        (CATEGORY_RECEIVABLES_TOTAL, 'Receivables total'),
        (CATEGORY_PAYABLES_TOTAL, 'Payables total'),
    ]

    category = models.CharField(max_length=30, choices=CATEGORY_CHOICES, unique=True)
    value = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True, null=True)
    updated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='admin_overrides')
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.category}: {self.value}"

    class Meta:
        db_table = 'admin_overrides'


class DisplaySettings(models.Model):
    """Singleton row of flags that gate the finance overview"""
    display_cash = models.BooleanField(default=True)
    display_receivables = models.BooleanField(default=True)
    display_payables = models.BooleanField(default=True)
    include_receipts = models.BooleanField(default=True)
    include_supplier_purchases = models.BooleanField(default=True)
    include_manufacturing = models.BooleanField(default=True)
    include_payroll = models.BooleanField(default=True)
    include_debris = models.BooleanField(default=True)
    include_general_expenses = models.BooleanField(default=True)
    include_inventory_value = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    FLAG_FIELDS = [
        'display_cash',
        'display_receivables',
        'display_payables',
        'include_receipts',
        'include_supplier_purchases',
        'include_manufacturing',
        'include_payroll',
        'include_debris',
        'include_general_expenses',
        'include_inventory_value',
    ]

    def __str__(self):
        return 'Display settings'

    @classmethod
    def load(cls):
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj

    def as_flags(self):
        return {field: getattr(self, field) for field in self.FLAG_FIELDS}

    class Meta:
        db_table = 'display_settings'
        verbose_name_plural = 'display settings'
