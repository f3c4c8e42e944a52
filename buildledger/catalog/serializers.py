from rest_framework import serializers
from .models import Product, ProductComponent


class ProductComponentSerializer(serializers.ModelSerializer):
    component_id = serializers.IntegerField(source='component.id', read_only=True)
    component_name = serializers.CharField(source='component.name', read_only=True)
    component_unit = serializers.CharField(source='component.unit', read_only=True)

    class Meta:
        model = ProductComponent
        fields = ['id', 'component_id', 'component_name', 'component_unit', 'quantity']


class ProductSerializer(serializers.ModelSerializer):
    components = ProductComponentSerializer(many=True, read_only=True)
    powder_product_name = serializers.CharField(source='powder_product.name', read_only=True, default=None)
    cement_product_name = serializers.CharField(source='cement_product.name', read_only=True, default=None)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'unit', 'unit_price', 'description', 'stock_qty',
            'is_manufactured', 'is_composite', 'is_fuel', 'has_aggregate_presets',
            'powder_product', 'powder_product_name', 'powder_per_unit',
            'cement_product', 'cement_product_name', 'cement_per_unit',
            'piecework_rate', 'helper_piecework_rate', 'tehmil_fee', 'tenzil_fee',
            'components', 'created_at', 'updated_at'
        ]


class ProductSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ['id', 'name', 'unit', 'unit_price', 'stock_qty', 'is_composite', 'is_manufactured']
