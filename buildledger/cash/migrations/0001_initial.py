import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('payroll', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='CashEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('DEPOSIT', 'Deposit'), ('WITHDRAW', 'Withdraw'), ('OWNER_DRAW', 'Owner draw')], max_length=20)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('description', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='cash_entries', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'cash_entries',
                'ordering': ['-created_at', '-id'],
                'verbose_name_plural': 'cash entries',
            },
        ),
        migrations.CreateModel(
            name='CashCustodyEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('HANDOFF', 'Handoff'), ('RETURN', 'Return')], max_length=20)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('description', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='custody_entries', to=settings.AUTH_USER_MODEL)),
                ('from_employee', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='custody_given', to='payroll.employee')),
                ('to_employee', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='custody_received', to='payroll.employee')),
            ],
            options={
                'db_table': 'cash_custody_entries',
                'ordering': ['-created_at', '-id'],
                'verbose_name_plural': 'cash custody entries',
            },
        ),
    ]
