from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('core', '0001_initial'),
        ('fleet', '0001_initial'),
        ('parties', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Receipt',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('receipt_no', models.CharField(max_length=50, unique=True)),
                ('date', models.DateTimeField(db_index=True)),
                ('type', models.CharField(choices=[('NORMAL', 'Normal'), ('TVA', 'TVA')], db_index=True, default='NORMAL', max_length=10)),
                ('walk_in_name', models.CharField(blank=True, max_length=200, null=True)),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('amount_paid', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('is_paid', models.BooleanField(db_index=True, default=False)),
                ('tehmil', models.BooleanField(default=False)),
                ('tehmil_paid_at', models.DateTimeField(blank=True, null=True)),
                ('tehmil_payment_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('tehmil_payment_note', models.TextField(blank=True, null=True)),
                ('tenzil', models.BooleanField(default=False)),
                ('tenzil_paid_at', models.DateTimeField(blank=True, null=True)),
                ('tenzil_payment_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('tenzil_payment_note', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='receipts', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='receipts', to='parties.customer')),
                ('driver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='receipts', to='fleet.driver')),
                ('job_site', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='receipts', to='parties.jobsite')),
                ('truck', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='receipts', to='fleet.truck')),
            ],
            options={
                'db_table': 'receipts',
                'ordering': ['-date', '-id'],
            },
        ),
        migrations.CreateModel(
            name='ReceiptItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=14)),
                ('unit_price', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('subtotal', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('display_quantity', models.DecimalField(blank=True, decimal_places=3, max_digits=14, null=True)),
                ('display_unit', models.CharField(blank=True, max_length=50, null=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='receipt_items', to='catalog.product')),
                ('receipt', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='receipts.receipt')),
            ],
            options={
                'db_table': 'receipt_items',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='ReceiptItemComponent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=14)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='receipt_item_components', to='catalog.product')),
                ('receipt_item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='components', to='receipts.receiptitem')),
            ],
            options={
                'db_table': 'receipt_item_components',
            },
        ),
    ]
