from rest_framework import serializers
from buildledger.payroll.serializers import EmployeeSummarySerializer
from .models import InventoryEntry, StockMovement


class StockMovementSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = StockMovement
        fields = ['id', 'product', 'product_name', 'date', 'type', 'quantity', 'receipt', 'inventory_entry']


class InventoryEntrySerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source='supplier.name', read_only=True, default=None)
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_unit = serializers.CharField(source='product.unit', read_only=True)
    powder_product_name = serializers.CharField(source='powder_product.name', read_only=True, default=None)
    cement_product_name = serializers.CharField(source='cement_product.name', read_only=True, default=None)
    worker_employee = EmployeeSummarySerializer(read_only=True)
    helper_employee = EmployeeSummarySerializer(read_only=True)
    outstanding = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    labor_total = serializers.SerializerMethodField()

    class Meta:
        model = InventoryEntry
        fields = [
            'id', 'inventory_no', 'entry_date', 'type', 'supplier', 'supplier_name',
            'product', 'product_name', 'product_unit', 'quantity', 'unit_cost', 'total_cost',
            'is_paid', 'amount_paid', 'outstanding', 'tva_eligible', 'notes',
            'powder_product', 'powder_product_name', 'powder_used',
            'cement_product', 'cement_product_name', 'cement_used',
            'labor_paid', 'labor_paid_at', 'labor_amount', 'helper_labor_amount', 'labor_total',
            'worker_employee', 'helper_employee', 'production_site', 'created_at', 'updated_at'
        ]

    def get_labor_total(self, obj):
        if obj.type != InventoryEntry.TYPE_PRODUCTION:
            return None
        return (obj.labor_amount or 0) + (obj.helper_labor_amount or 0)


class InventoryEntryDetailSerializer(InventoryEntrySerializer):
    stock_movements = StockMovementSerializer(many=True, read_only=True)

    class Meta(InventoryEntrySerializer.Meta):
        fields = InventoryEntrySerializer.Meta.fields + ['stock_movements']
