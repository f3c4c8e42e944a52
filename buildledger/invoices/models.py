from django.db import models
from decimal import Decimal
from buildledger.core.models import User
from buildledger.parties.models import Customer, JobSite
from buildledger.receipts.models import Receipt


class Invoice(models.Model):
    """Groups outstanding receipts of one customer and one receipt type into a bill"""
    STATUS_PENDING = 'PENDING'
    STATUS_PAID = 'PAID'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PAID, 'Paid'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    STATUSES = [value for value, _ in STATUS_CHOICES]

    invoice_no = models.CharField(max_length=20, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='invoices')
    job_site = models.ForeignKey(JobSite, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    receipt_type = models.CharField(max_length=10, choices=Customer.RECEIPT_TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    vat_rate = models.DecimalField(max_digits=6, decimal_places=4, null=True, blank=True)
    vat_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    amount_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    outstanding = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True, null=True)
    issued_at = models.DateTimeField(db_index=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.invoice_no

    class Meta:
        db_table = 'invoices'
        ordering = ['-issued_at', '-id']


class InvoiceReceipt(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='invoice_receipts')
    receipt = models.OneToOneField(Receipt, on_delete=models.CASCADE, related_name='invoice_link')

    def __str__(self):
        return f"{self.invoice} / {self.receipt}"

    class Meta:
        db_table = 'invoice_receipts'
