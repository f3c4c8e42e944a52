from rest_framework import serializers
from .models import DebrisEntry


class DebrisEntrySerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True, default=None)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True, default=None)
    is_removal_paid = serializers.BooleanField(read_only=True)
    removal_payment_date = serializers.DateTimeField(source='removal_payment.date', read_only=True, default=None)

    class Meta:
        model = DebrisEntry
        fields = [
            'id', 'date', 'customer', 'customer_name', 'supplier', 'supplier_name', 'walk_in_name',
            'volume', 'dumping_fee', 'removal_cost', 'removal_date', 'status', 'notes',
            'removal_payment', 'removal_payment_date', 'is_removal_paid', 'created_by', 'created_at', 'updated_at'
        ]
