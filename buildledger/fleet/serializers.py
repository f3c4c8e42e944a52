from rest_framework import serializers
from .models import Driver, Truck, Tool, TruckRepair, DieselLog


class DriverSerializer(serializers.ModelSerializer):
    class Meta:
        model = Driver
        fields = ['id', 'name', 'phone', 'created_at']

    def validate_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('name is required')
        return value


class TruckSerializer(serializers.ModelSerializer):
    driver = DriverSerializer(read_only=True)
    driver_id = serializers.IntegerField(source='driver.id', read_only=True, default=None)

    class Meta:
        model = Truck
        fields = ['id', 'plate_no', 'driver_id', 'driver', 'insurance_expiry', 'created_at', 'updated_at']


class ToolSerializer(serializers.ModelSerializer):
    class Meta:
        model = Tool
        fields = ['id', 'name', 'quantity', 'unit', 'notes', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('Name is required')
        return value

    def validate_quantity(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Quantity must be zero or greater')
        return value


class TruckRepairSerializer(serializers.ModelSerializer):
    truck_plate_no = serializers.CharField(source='truck.plate_no', read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True, default=None)
    tool_name = serializers.CharField(source='tool.name', read_only=True, default=None)

    class Meta:
        model = TruckRepair
        fields = [
            'id', 'truck', 'truck_plate_no', 'supplier', 'supplier_name', 'date', 'amount',
            'description', 'type', 'tool', 'tool_name', 'quantity', 'payment', 'created_at'
        ]


class DieselLogSerializer(serializers.ModelSerializer):
    truck_plate_no = serializers.CharField(source='truck.plate_no', read_only=True, default=None)
    driver_name = serializers.CharField(source='driver.name', read_only=True, default=None)
    product_name = serializers.CharField(source='product.name', read_only=True, default=None)

    class Meta:
        model = DieselLog
        fields = [
            'id', 'date', 'truck', 'truck_plate_no', 'driver', 'driver_name', 'product', 'product_name',
            'liters', 'price_per_liter', 'total_cost', 'notes', 'created_at'
        ]
