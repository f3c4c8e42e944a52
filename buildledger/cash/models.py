from django.db import models
from buildledger.core.models import User
from buildledger.payroll.models import Employee


class CashEntry(models.Model):
    """Manual adjustment of the cash box; withdrawals are stored negative"""
    TYPE_DEPOSIT = 'DEPOSIT'
    TYPE_WITHDRAW = 'WITHDRAW'
    TYPE_OWNER_DRAW = 'OWNER_DRAW'
    TYPE_CHOICES = [
        (TYPE_DEPOSIT, 'Deposit'),
        (TYPE_WITHDRAW, 'Withdraw'),
        (TYPE_OWNER_DRAW, 'Owner draw'),
    ]

    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    description = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='cash_entries')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    def __str__(self):
        return f"{self.type} {self.amount}"

    class Meta:
        db_table = 'cash_entries'
        ordering = ['-created_at', '-id']
        verbose_name_plural = 'cash entries'


class CashCustodyEntry(models.Model):
    """Cash handed from one holder to another"""
    TYPE_HANDOFF = 'HANDOFF'
    TYPE_RETURN = 'RETURN'
    TYPE_CHOICES = [
        (TYPE_HANDOFF, 'Handoff'),
        (TYPE_RETURN, 'Return'),
    ]

    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    from_employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name='custody_given')
    to_employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name='custody_received')
    description = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='custody_entries')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    def __str__(self):
        return f"{self.type} {self.amount} {self.from_employee} -> {self.to_employee}"

    class Meta:
        db_table = 'cash_custody_entries'
        ordering = ['-created_at', '-id']
        verbose_name_plural = 'cash custody entries'
