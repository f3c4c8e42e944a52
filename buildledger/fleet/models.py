from django.db import models
from decimal import Decimal
from buildledger.catalog.models import Product
from buildledger.parties.models import Supplier


class Driver(models.Model):
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=50, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'drivers'
        ordering = ['name']


class Truck(models.Model):
    plate_no = models.CharField(max_length=50, unique=True)
    driver = models.ForeignKey(Driver, on_delete=models.SET_NULL, null=True, blank=True, related_name='trucks')
    insurance_expiry = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.plate_no

    class Meta:
        db_table = 'trucks'
        ordering = ['plate_no']


class Tool(models.Model):
    """Workshop tools and spare parts kept for the fleet"""
    name = models.CharField(max_length=200)
    quantity = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal('0.000'))
    unit = models.CharField(max_length=50, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'tools'
        ordering = ['name']


class TruckRepair(models.Model):
    """Repairs, oil changes and insurance renewals of a truck"""
    TYPE_REPAIR = 'REPAIR'
    TYPE_OIL_CHANGE = 'OIL_CHANGE'
    TYPE_INSURANCE = 'INSURANCE'
    TYPE_CHOICES = [
        (TYPE_REPAIR, 'Repair'),
        (TYPE_OIL_CHANGE, 'Oil change'),
        (TYPE_INSURANCE, 'Insurance'),
    ]

    truck = models.ForeignKey(Truck, on_delete=models.CASCADE, related_name='repairs')
    supplier = models.ForeignKey(Supplier, on_delete=models.SET_NULL, null=True, blank=True, related_name='truck_repairs')
    date = models.DateTimeField(db_index=True)
    amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    description = models.TextField(blank=True, null=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_REPAIR)
    tool = models.ForeignKey(Tool, on_delete=models.SET_NULL, null=True, blank=True, related_name='repairs')
    quantity = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    payment = models.OneToOneField(
        'payments.Payment', on_delete=models.SET_NULL, null=True, blank=True, related_name='truck_repair'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.truck} {self.type} {self.date:%Y-%m-%d}"

    class Meta:
        db_table = 'truck_repairs'
        ordering = ['-date', '-id']


class DieselLog(models.Model):
    """Diesel consumed by a truck; the Diesel product stock goes down accordingly"""
    date = models.DateTimeField(db_index=True)
    truck = models.ForeignKey(Truck, on_delete=models.SET_NULL, null=True, blank=True, related_name='diesel_logs')
    driver = models.ForeignKey(Driver, on_delete=models.SET_NULL, null=True, blank=True, related_name='diesel_logs')
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='diesel_logs')
    liters = models.DecimalField(max_digits=12, decimal_places=3)
    price_per_liter = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.liters} L on {self.date:%Y-%m-%d}"

    class Meta:
        db_table = 'diesel_logs'
        ordering = ['-date', '-id']
