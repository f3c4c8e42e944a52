from django.db import models
from decimal import Decimal
from buildledger.catalog.models import Product
from buildledger.core.models import User


class Employee(models.Model):
    """Staff paid by salary or by produced pieces"""
    ROLE_DRIVER = 'DRIVER'
    ROLE_ACCOUNTANT = 'ACCOUNTANT'
    ROLE_MANAGER = 'MANAGER'
    ROLE_MANUFACTURING = 'MANUFACTURING'
    ROLE_OTHER = 'OTHER'
    ROLE_CHOICES = [
        (ROLE_DRIVER, 'Driver'),
        (ROLE_ACCOUNTANT, 'Accountant'),
        (ROLE_MANAGER, 'Manager'),
        (ROLE_MANUFACTURING, 'Manufacturing'),
        (ROLE_OTHER, 'Other'),
    ]

    PAY_SALARY = 'SALARY'
    PAY_PIECEWORK = 'PIECEWORK'
    PAY_TYPE_CHOICES = [
        (PAY_SALARY, 'Salary'),
        (PAY_PIECEWORK, 'Piecework'),
    ]

    FREQUENCY_WEEKLY = 'WEEKLY'
    FREQUENCY_MONTHLY = 'MONTHLY'
    FREQUENCY_CHOICES = [
        (FREQUENCY_WEEKLY, 'Weekly'),
        (FREQUENCY_MONTHLY, 'Monthly'),
    ]

    name = models.CharField(max_length=200, db_index=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_OTHER)
    pay_type = models.CharField(max_length=20, choices=PAY_TYPE_CHOICES, default=PAY_SALARY)
    salary_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    salary_frequency = models.CharField(max_length=20, choices=FREQUENCY_CHOICES, null=True, blank=True)
    active = models.BooleanField(default=True)
    phone = models.CharField(max_length=50, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'employees'
        ordering = ['name']


class ManufacturingPieceRate(models.Model):
    """Per-employee pay per produced unit of a block product"""
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='piece_rates')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='piece_rates')
    rate = models.DecimalField(max_digits=12, decimal_places=4)
    helper_rate = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.employee} {self.product}: {self.rate}"

    class Meta:
        db_table = 'manufacturing_piece_rates'
        unique_together = [('employee', 'product')]


class PayrollRun(models.Model):
    """A weekly or monthly batch of salary and piecework entries"""
    STATUS_DRAFT = 'DRAFT'
    STATUS_FINALIZED = 'FINALIZED'
    STATUS_PAID = 'PAID'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_FINALIZED, 'Finalized'),
        (STATUS_PAID, 'Paid'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    frequency = models.CharField(max_length=20, choices=Employee.FREQUENCY_CHOICES)
    period_start = models.DateTimeField()
    period_end = models.DateTimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    debit_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    total_gross = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total_net = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total_deductions = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='payroll_runs')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Run {self.id} ({self.frequency})"

    class Meta:
        db_table = 'payroll_runs'
        ordering = ['-period_start', '-id']


class PayrollEntry(models.Model):
    TYPE_SALARY = 'SALARY'
    TYPE_PIECEWORK = 'PIECEWORK'
    TYPE_CHOICES = Employee.PAY_TYPE_CHOICES

    employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name='payroll_entries')
    period_start = models.DateTimeField()
    period_end = models.DateTimeField()
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    quantity = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    notes = models.TextField(blank=True, null=True)
    stone_product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='payroll_entries')
    helper_employee = models.ForeignKey(
        Employee, on_delete=models.SET_NULL, null=True, blank=True, related_name='helper_payroll_entries'
    )
    payroll_run = models.ForeignKey(PayrollRun, on_delete=models.SET_NULL, null=True, blank=True, related_name='entries')
    payment = models.OneToOneField(
        'payments.Payment', on_delete=models.SET_NULL, null=True, blank=True, related_name='payroll_entry'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.employee} {self.type} {self.amount}"

    class Meta:
        db_table = 'payroll_entries'
        ordering = ['-created_at', '-id']
