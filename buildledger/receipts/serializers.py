from rest_framework import serializers
from .models import Receipt, ReceiptItem, ReceiptItemComponent


class ReceiptItemComponentSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = ReceiptItemComponent
        fields = ['id', 'product', 'product_name', 'quantity']


class ReceiptItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_unit = serializers.CharField(source='product.unit', read_only=True)
    components = ReceiptItemComponentSerializer(many=True, read_only=True)

    class Meta:
        model = ReceiptItem
        fields = [
            'id', 'product', 'product_name', 'product_unit', 'quantity', 'unit_price', 'subtotal',
            'display_quantity', 'display_unit', 'components'
        ]


class ReceiptSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True, default=None)
    job_site_name = serializers.CharField(source='job_site.name', read_only=True, default=None)
    driver_name = serializers.CharField(source='driver.name', read_only=True, default=None)
    truck_plate_no = serializers.CharField(source='truck.plate_no', read_only=True, default=None)
    created_by_email = serializers.CharField(source='created_by.email', read_only=True, default=None)
    outstanding = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    items = ReceiptItemSerializer(many=True, read_only=True)

    class Meta:
        model = Receipt
        fields = [
            'id', 'receipt_no', 'date', 'type', 'customer', 'customer_name', 'job_site', 'job_site_name',
            'walk_in_name', 'driver', 'driver_name', 'truck', 'truck_plate_no',
            'total', 'amount_paid', 'outstanding', 'is_paid',
            'tehmil', 'tehmil_paid_at', 'tehmil_payment_amount', 'tehmil_payment_note',
            'tenzil', 'tenzil_paid_at', 'tenzil_payment_amount', 'tenzil_payment_note',
            'created_by', 'created_by_email', 'items', 'created_at', 'updated_at'
        ]


class FlaggedReceiptSerializer(serializers.ModelSerializer):
    """Unpaid loading/unloading line for the flags summary"""
    customer_name = serializers.SerializerMethodField()
    fee_total = serializers.SerializerMethodField()

    class Meta:
        model = Receipt
        fields = ['id', 'receipt_no', 'date', 'customer', 'customer_name', 'walk_in_name', 'fee_total']

    def get_customer_name(self, obj):
        if obj.customer_id:
            return obj.customer.name
        return obj.walk_in_name or 'Walk-in'

    def get_fee_total(self, obj):
        return self.context.get('fees', {}).get(obj.id)
