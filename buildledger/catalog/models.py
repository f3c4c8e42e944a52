from django.db import models
from decimal import Decimal


class Product(models.Model):
    """Materials, blocks and fuel the company buys, produces and sells"""
    name = models.CharField(max_length=200, unique=True)
    unit = models.CharField(max_length=50)
    unit_price = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    description = models.TextField(blank=True, null=True)
    stock_qty = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal('0.000'))
    is_manufactured = models.BooleanField(default=False)
    is_composite = models.BooleanField(default=False)
    is_fuel = models.BooleanField(default=False)
    has_aggregate_presets = models.BooleanField(default=False)
    # Raw material consumed per produced unit (manufactured products only)
    powder_product = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    powder_per_unit = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    cement_product = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    cement_per_unit = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    piecework_rate = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    helper_piecework_rate = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    tehmil_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tenzil_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'products'
        ordering = ['name']


class ProductComponent(models.Model):
    """One ingredient of a composite mix"""
    parent = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='components')
    component = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='used_in')
    quantity = models.DecimalField(max_digits=12, decimal_places=4)

    def __str__(self):
        return f"{self.parent} <- {self.quantity} {self.component}"

    class Meta:
        db_table = 'product_components'
        unique_together = [('parent', 'component')]
