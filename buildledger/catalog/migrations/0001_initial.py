from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200, unique=True)),
                ('unit', models.CharField(max_length=50)),
                ('unit_price', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('description', models.TextField(blank=True, null=True)),
                ('stock_qty', models.DecimalField(decimal_places=3, default=Decimal('0.000'), max_digits=14)),
                ('is_manufactured', models.BooleanField(default=False)),
                ('is_composite', models.BooleanField(default=False)),
                ('is_fuel', models.BooleanField(default=False)),
                ('has_aggregate_presets', models.BooleanField(default=False)),
                ('powder_per_unit', models.DecimalField(blank=True, decimal_places=4, max_digits=12, null=True)),
                ('cement_per_unit', models.DecimalField(blank=True, decimal_places=4, max_digits=12, null=True)),
                ('piecework_rate', models.DecimalField(blank=True, decimal_places=4, max_digits=12, null=True)),
                ('helper_piecework_rate', models.DecimalField(blank=True, decimal_places=4, max_digits=12, null=True)),
                ('tehmil_fee', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('tenzil_fee', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('cement_product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='catalog.product')),
                ('powder_product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='catalog.product')),
            ],
            options={
                'db_table': 'products',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='ProductComponent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=4, max_digits=12)),
                ('component', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='used_in', to='catalog.product')),
                ('parent', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='components', to='catalog.product')),
            ],
            options={
                'db_table': 'product_components',
                'unique_together': {('parent', 'component')},
            },
        ),
    ]
