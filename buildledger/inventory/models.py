from django.db import models
from decimal import Decimal
from buildledger.catalog.models import Product
from buildledger.parties.models import Supplier
from buildledger.payroll.models import Employee


class InventoryEntry(models.Model):
    """A supplier purchase or a production batch of manufactured blocks"""
    TYPE_PURCHASE = 'PURCHASE'
    TYPE_PRODUCTION = 'PRODUCTION'
    TYPE_CHOICES = [
        (TYPE_PURCHASE, 'Purchase'),
        (TYPE_PRODUCTION, 'Production'),
    ]

    inventory_no = models.CharField(max_length=50, unique=True)
    entry_date = models.DateTimeField(db_index=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, db_index=True)
    supplier = models.ForeignKey(
        Supplier, on_delete=models.PROTECT, null=True, blank=True, related_name='inventory_entries'
    )
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='inventory_entries')
    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    unit_cost = models.DecimalField(max_digits=14, decimal_places=4, null=True, blank=True)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    is_paid = models.BooleanField(default=True)
    amount_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    tva_eligible = models.BooleanField(default=False)
    notes = models.TextField(blank=True, null=True)
    # Production only
    powder_product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    powder_used = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    cement_product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    cement_used = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    labor_paid = models.BooleanField(default=True)
    labor_paid_at = models.DateTimeField(null=True, blank=True)
    labor_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    helper_labor_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    worker_employee = models.ForeignKey(
        Employee, on_delete=models.SET_NULL, null=True, blank=True, related_name='production_entries'
    )
    helper_employee = models.ForeignKey(
        Employee, on_delete=models.SET_NULL, null=True, blank=True, related_name='helper_production_entries'
    )
    production_site = models.CharField(max_length=200, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.inventory_no} {self.type} {self.product}"

    @property
    def outstanding(self):
        if self.is_paid:
            return Decimal('0.00')
        return max((self.total_cost or Decimal('0')) - self.amount_paid, Decimal('0.00'))

    class Meta:
        db_table = 'inventory_entries'
        ordering = ['-entry_date', '-id']
        verbose_name_plural = 'inventory entries'


class StockMovement(models.Model):
    """Signed change of a product's stock and the document that caused it"""
    TYPE_PURCHASE = 'PURCHASE'
    TYPE_SALE = 'SALE'
    TYPE_PRODUCTION_OUTPUT = 'PRODUCTION_OUTPUT'
    TYPE_PRODUCTION_CONSUMPTION = 'PRODUCTION_CONSUMPTION'
    TYPE_CHOICES = [
        (TYPE_PURCHASE, 'Purchase'),
        (TYPE_SALE, 'Sale'),
        (TYPE_PRODUCTION_OUTPUT, 'Production output'),
        (TYPE_PRODUCTION_CONSUMPTION, 'Production consumption'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='stock_movements')
    date = models.DateTimeField(db_index=True)
    type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    receipt = models.ForeignKey(
        'receipts.Receipt', on_delete=models.CASCADE, null=True, blank=True, related_name='stock_movements'
    )
    inventory_entry = models.ForeignKey(
        InventoryEntry, on_delete=models.CASCADE, null=True, blank=True, related_name='stock_movements'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.type} {self.quantity} {self.product}"

    class Meta:
        db_table = 'stock_movements'
        ordering = ['-date', '-id']
