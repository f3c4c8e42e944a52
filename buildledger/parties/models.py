from django.db import models
from buildledger.core.models import User


class Customer(models.Model):
    """Customers buying on receipts"""
    RECEIPT_TYPE_NORMAL = 'NORMAL'
    RECEIPT_TYPE_TVA = 'TVA'
    RECEIPT_TYPE_CHOICES = [
        (RECEIPT_TYPE_NORMAL, 'Normal'),
        (RECEIPT_TYPE_TVA, 'TVA'),
    ]

    name = models.CharField(max_length=200, db_index=True)
    contact_name = models.CharField(max_length=200, blank=True, null=True)
    phone = models.CharField(max_length=50, blank=True, null=True)
    email = models.CharField(max_length=200, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    receipt_type = models.CharField(max_length=10, choices=RECEIPT_TYPE_CHOICES, default=RECEIPT_TYPE_NORMAL)
    manual_balance_override = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    manual_balance_note = models.TextField(blank=True, null=True)
    manual_balance_updated_at = models.DateTimeField(null=True, blank=True)
    manual_balance_updated_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='customer_balance_overrides'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'customers'
        ordering = ['name']


class Supplier(models.Model):
    """Suppliers of purchased stock and services"""
    name = models.CharField(max_length=200, db_index=True)
    contact = models.CharField(max_length=200, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    manual_balance_override = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    manual_balance_note = models.TextField(blank=True, null=True)
    manual_balance_updated_at = models.DateTimeField(null=True, blank=True)
    manual_balance_updated_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='supplier_balance_overrides'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'suppliers'
        ordering = ['name']


class JobSite(models.Model):
    """Delivery sites belonging to a customer"""
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='job_sites')
    name = models.CharField(max_length=200)
    address = models.TextField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.customer.name} - {self.name}"

    class Meta:
        db_table = 'job_sites'
        ordering = ['customer_id', 'name']


class CustomerSupplierLink(models.Model):
    """Pairs a customer with the supplier account of the same party"""
    customer = models.OneToOneField(Customer, on_delete=models.CASCADE, related_name='supplier_link')
    supplier = models.OneToOneField(Supplier, on_delete=models.CASCADE, related_name='customer_link')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.customer.name} <-> {self.supplier.name}"

    class Meta:
        db_table = 'customer_supplier_links'
