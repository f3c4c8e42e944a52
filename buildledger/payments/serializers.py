from rest_framework import serializers
from .models import Payment, ReceiptPayment, InventoryPayment


class ReceiptPaymentSerializer(serializers.ModelSerializer):
    receipt_no = serializers.CharField(source='receipt.receipt_no', read_only=True)

    class Meta:
        model = ReceiptPayment
        fields = ['id', 'receipt', 'receipt_no', 'amount', 'created_at']


class InventoryPaymentSerializer(serializers.ModelSerializer):
    inventory_no = serializers.CharField(source='entry.inventory_no', read_only=True)

    class Meta:
        model = InventoryPayment
        fields = ['id', 'entry', 'inventory_no', 'amount', 'created_at']


class PaymentSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True, default=None)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True, default=None)
    receipt_no = serializers.CharField(source='receipt.receipt_no', read_only=True, default=None)
    created_by_email = serializers.CharField(source='created_by.email', read_only=True, default=None)
    payroll_entry = serializers.SerializerMethodField()
    debris_entry_id = serializers.SerializerMethodField()
    receipt_links = ReceiptPaymentSerializer(many=True, read_only=True)
    inventory_links = InventoryPaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'date', 'amount', 'type', 'description', 'category', 'reference',
            'customer', 'customer_name', 'supplier', 'supplier_name', 'receipt', 'receipt_no',
            'payroll_run', 'payroll_entry', 'debris_entry_id', 'receipt_links', 'inventory_links',
            'created_by', 'created_by_email', 'created_at', 'updated_at'
        ]

    def get_payroll_entry(self, obj):
        entry = getattr(obj, 'payroll_entry', None)
        if entry is None:
            return None
        return {'id': entry.id, 'employee_id': entry.employee_id, 'employee_name': entry.employee.name}

    def get_debris_entry_id(self, obj):
        entry = getattr(obj, 'removed_debris', None)
        return entry.id if entry else None
