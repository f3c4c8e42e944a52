from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('parties', '0001_initial'),
        ('payroll', '0001_initial'),
        ('receipts', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='InventoryEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('inventory_no', models.CharField(max_length=50, unique=True)),
                ('entry_date', models.DateTimeField(db_index=True)),
                ('type', models.CharField(choices=[('PURCHASE', 'Purchase'), ('PRODUCTION', 'Production')], db_index=True, max_length=20)),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=14)),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=4, max_digits=14, null=True)),
                ('total_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('is_paid', models.BooleanField(default=True)),
                ('amount_paid', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('tva_eligible', models.BooleanField(default=False)),
                ('notes', models.TextField(blank=True, null=True)),
                ('powder_used', models.DecimalField(blank=True, decimal_places=3, max_digits=14, null=True)),
                ('cement_used', models.DecimalField(blank=True, decimal_places=3, max_digits=14, null=True)),
                ('labor_paid', models.BooleanField(default=True)),
                ('labor_paid_at', models.DateTimeField(blank=True, null=True)),
                ('labor_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('helper_labor_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('production_site', models.CharField(blank=True, max_length=200, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('cement_product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='catalog.product')),
                ('helper_employee', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='helper_production_entries', to='payroll.employee')),
                ('powder_product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='catalog.product')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='inventory_entries', to='catalog.product')),
                ('supplier', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='inventory_entries', to='parties.supplier')),
                ('worker_employee', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='production_entries', to='payroll.employee')),
            ],
            options={
                'db_table': 'inventory_entries',
                'ordering': ['-entry_date', '-id'],
                'verbose_name_plural': 'inventory entries',
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateTimeField(db_index=True)),
                ('type', models.CharField(choices=[('PURCHASE', 'Purchase'), ('SALE', 'Sale'), ('PRODUCTION_OUTPUT', 'Production output'), ('PRODUCTION_CONSUMPTION', 'Production consumption')], max_length=30)),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=14)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('inventory_entry', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='stock_movements', to='inventory.inventoryentry')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='stock_movements', to='catalog.product')),
                ('receipt', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='stock_movements', to='receipts.receipt')),
            ],
            options={
                'db_table': 'stock_movements',
                'ordering': ['-date', '-id'],
            },
        ),
    ]
