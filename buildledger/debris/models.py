from django.db import models
from buildledger.core.models import User
from buildledger.parties.models import Customer, Supplier
from buildledger.payments.models import Payment


class DebrisEntry(models.Model):
    """Debris dropped at the yard and, later, its paid removal"""
    STATUS_PENDING = 'PENDING'
    STATUS_REMOVED = 'REMOVED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_REMOVED, 'Removed'),
    ]

    date = models.DateTimeField(db_index=True)
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='debris_entries')
    supplier = models.ForeignKey(Supplier, on_delete=models.SET_NULL, null=True, blank=True, related_name='debris_entries')
    walk_in_name = models.CharField(max_length=200, blank=True, null=True)
    volume = models.DecimalField(max_digits=14, decimal_places=3)
    dumping_fee = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    removal_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    removal_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    notes = models.TextField(blank=True, null=True)
    removal_payment = models.OneToOneField(
        Payment, on_delete=models.SET_NULL, null=True, blank=True, related_name='removed_debris'
    )
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='debris_entries')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Debris {self.volume} m3 on {self.date:%Y-%m-%d}"

    @property
    def is_removal_paid(self):
        return self.removal_payment_id is not None

    class Meta:
        db_table = 'debris_entries'
        ordering = ['-date', '-id']
        verbose_name_plural = 'debris entries'
