from django.db import models
from buildledger.core.models import User
from buildledger.inventory.models import InventoryEntry
from buildledger.parties.models import Customer, Supplier
from buildledger.payroll.models import PayrollRun
from buildledger.receipts.models import Receipt


class Payment(models.Model):
    """Money in or out; what it settles depends on the type"""
    TYPE_GENERAL_EXPENSE = 'GENERAL_EXPENSE'
    TYPE_SUPPLIER = 'SUPPLIER'
    TYPE_RECEIPT = 'RECEIPT'
    TYPE_PAYROLL_SALARY = 'PAYROLL_SALARY'
    TYPE_PAYROLL_PIECEWORK = 'PAYROLL_PIECEWORK'
    TYPE_PAYROLL_RUN = 'PAYROLL_RUN'
    TYPE_CUSTOMER_PAYMENT = 'CUSTOMER_PAYMENT'
    TYPE_DEBRIS_REMOVAL = 'DEBRIS_REMOVAL'
    TYPE_OWNER_DRAW = 'OWNER_DRAW'
    TYPE_CHOICES = [
        (TYPE_GENERAL_EXPENSE, 'General expense'),
        (TYPE_SUPPLIER, 'Supplier'),
        (TYPE_RECEIPT, 'Receipt'),
        (TYPE_PAYROLL_SALARY, 'Payroll salary'),
        (TYPE_PAYROLL_PIECEWORK, 'Payroll piecework'),
        (TYPE_PAYROLL_RUN, 'Payroll run'),
        (TYPE_CUSTOMER_PAYMENT, 'Customer payment'),
        (TYPE_DEBRIS_REMOVAL, 'Debris removal'),
        (TYPE_OWNER_DRAW, 'Owner draw'),
    ]
    TYPES = [value for value, _ in TYPE_CHOICES]

    INFLOW_TYPES = [TYPE_RECEIPT, TYPE_CUSTOMER_PAYMENT]
    OUTFLOW_TYPES = [
        TYPE_GENERAL_EXPENSE, TYPE_SUPPLIER, TYPE_PAYROLL_SALARY,
        TYPE_PAYROLL_PIECEWORK, TYPE_DEBRIS_REMOVAL, TYPE_OWNER_DRAW,
    ]
    PAYROLL_TYPES = [TYPE_PAYROLL_SALARY, TYPE_PAYROLL_PIECEWORK]

    date = models.DateTimeField(db_index=True)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    type = models.CharField(max_length=30, choices=TYPE_CHOICES, db_index=True)
    description = models.TextField(blank=True, null=True)
    category = models.CharField(max_length=100, blank=True, null=True)
    reference = models.CharField(max_length=200, blank=True, null=True)
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    supplier = models.ForeignKey(Supplier, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    receipt = models.ForeignKey(Receipt, on_delete=models.SET_NULL, null=True, blank=True, related_name='direct_payments')
    payroll_run = models.ForeignKey(PayrollRun, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.type} {self.amount} on {self.date:%Y-%m-%d}"

    class Meta:
        db_table = 'payments'
        ordering = ['-date', '-id']


class ReceiptPayment(models.Model):
    """Part of a payment allocated to one receipt"""
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name='receipt_links')
    receipt = models.ForeignKey(Receipt, on_delete=models.CASCADE, related_name='payment_links')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.amount} of payment {self.payment_id} -> receipt {self.receipt_id}"

    class Meta:
        db_table = 'receipt_payments'


class InventoryPayment(models.Model):
    """Part of a supplier payment allocated to one purchase"""
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name='inventory_links')
    entry = models.ForeignKey(InventoryEntry, on_delete=models.CASCADE, related_name='payment_links')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.amount} of payment {self.payment_id} -> entry {self.entry_id}"

    class Meta:
        db_table = 'inventory_payments'
