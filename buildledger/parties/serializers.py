from decimal import Decimal
from rest_framework import serializers
from .models import Customer, Supplier, JobSite, CustomerSupplierLink


def _user_summary(user):
    if not user:
        return None
    return {'id': user.id, 'name': user.name, 'email': user.email}


class JobSiteSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)

    class Meta:
        model = JobSite
        fields = ['id', 'customer', 'customer_name', 'name', 'address', 'notes', 'created_at']
        read_only_fields = ['id', 'customer', 'created_at']

    def validate_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('name is required')
        return value


class CustomerSerializer(serializers.ModelSerializer):
    """Customer with its computed balance; pass `balances` ({id: outstanding}) in context"""
    manual_balance_updated_by = serializers.SerializerMethodField()
    computed_balance = serializers.SerializerMethodField()
    paired_supplier_id = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = [
            'id', 'name', 'contact_name', 'phone', 'email', 'notes', 'receipt_type',
            'manual_balance_override', 'manual_balance_note', 'manual_balance_updated_at',
            'manual_balance_updated_by', 'computed_balance', 'paired_supplier_id',
            'created_at', 'updated_at'
        ]

    def get_manual_balance_updated_by(self, obj):
        return _user_summary(obj.manual_balance_updated_by)

    def get_computed_balance(self, obj):
        balances = self.context.get('balances') or {}
        return (obj.manual_balance_override or Decimal('0')) + balances.get(obj.id, Decimal('0'))

    def get_paired_supplier_id(self, obj):
        link = getattr(obj, 'supplier_link', None)
        return link.supplier_id if link else None


class SupplierSerializer(serializers.ModelSerializer):
    manual_balance_updated_by = serializers.SerializerMethodField()
    computed_balance = serializers.SerializerMethodField()
    paired_customer_id = serializers.SerializerMethodField()

    class Meta:
        model = Supplier
        fields = [
            'id', 'name', 'contact', 'notes',
            'manual_balance_override', 'manual_balance_note', 'manual_balance_updated_at',
            'manual_balance_updated_by', 'computed_balance', 'paired_customer_id',
            'created_at', 'updated_at'
        ]

    def get_manual_balance_updated_by(self, obj):
        return _user_summary(obj.manual_balance_updated_by)

    def get_computed_balance(self, obj):
        balances = self.context.get('balances') or {}
        return (obj.manual_balance_override or Decimal('0')) + balances.get(obj.id, Decimal('0'))

    def get_paired_customer_id(self, obj):
        link = getattr(obj, 'customer_link', None)
        return link.customer_id if link else None


class CustomerSupplierLinkSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)

    class Meta:
        model = CustomerSupplierLink
        fields = ['id', 'customer', 'customer_name', 'supplier', 'supplier_name', 'created_at']
