from django.db import models
from decimal import Decimal
from buildledger.catalog.models import Product
from buildledger.core.models import User
from buildledger.fleet.models import Driver, Truck
from buildledger.parties.models import Customer, JobSite


class Receipt(models.Model):
    """Numbered sales receipt; NORMAL receipts count 1, 2, ... and TVA receipts T1, T2, ..."""
    TYPE_NORMAL = 'NORMAL'
    TYPE_TVA = 'TVA'
    TYPE_CHOICES = Customer.RECEIPT_TYPE_CHOICES

    receipt_no = models.CharField(max_length=50, unique=True)
    date = models.DateTimeField(db_index=True)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TYPE_NORMAL, db_index=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, null=True, blank=True, related_name='receipts')
    job_site = models.ForeignKey(JobSite, on_delete=models.PROTECT, null=True, blank=True, related_name='receipts')
    walk_in_name = models.CharField(max_length=200, blank=True, null=True)
    driver = models.ForeignKey(Driver, on_delete=models.SET_NULL, null=True, blank=True, related_name='receipts')
    truck = models.ForeignKey(Truck, on_delete=models.PROTECT, null=True, blank=True, related_name='receipts')
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    amount_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    is_paid = models.BooleanField(default=False, db_index=True)
    # Loading (tehmil) and unloading (tenzil) services billed per delivered unit
    tehmil = models.BooleanField(default=False)
    tehmil_paid_at = models.DateTimeField(null=True, blank=True)
    tehmil_payment_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    tehmil_payment_note = models.TextField(blank=True, null=True)
    tenzil = models.BooleanField(default=False)
    tenzil_paid_at = models.DateTimeField(null=True, blank=True)
    tenzil_payment_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    tenzil_payment_note = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='receipts')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Receipt {self.receipt_no}"

    @property
    def outstanding(self):
        return max(self.total - self.amount_paid, Decimal('0.00'))

    class Meta:
        db_table = 'receipts'
        ordering = ['-date', '-id']


class ReceiptItem(models.Model):
    receipt = models.ForeignKey(Receipt, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='receipt_items')
    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    unit_price = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    # What the customer sees when a preset (e.g. a truck load) was used
    display_quantity = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    display_unit = models.CharField(max_length=50, blank=True, null=True)

    def __str__(self):
        return f"{self.quantity} x {self.product}"

    class Meta:
        db_table = 'receipt_items'
        ordering = ['id']


class ReceiptItemComponent(models.Model):
    """Stock taken from one component when a composite mix is sold"""
    receipt_item = models.ForeignKey(ReceiptItem, on_delete=models.CASCADE, related_name='components')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='receipt_item_components')
    quantity = models.DecimalField(max_digits=14, decimal_places=3)

    def __str__(self):
        return f"{self.quantity} x {self.product}"

    class Meta:
        db_table = 'receipt_item_components'
