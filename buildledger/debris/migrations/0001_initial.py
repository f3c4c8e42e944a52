import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('parties', '0001_initial'),
        ('payments', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='DebrisEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateTimeField(db_index=True)),
                ('walk_in_name', models.CharField(blank=True, max_length=200, null=True)),
                ('volume', models.DecimalField(decimal_places=3, max_digits=14)),
                ('dumping_fee', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('removal_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('removal_date', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('REMOVED', 'Removed')], db_index=True, default='PENDING', max_length=20)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='debris_entries', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='debris_entries', to='parties.customer')),
                ('removal_payment', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='removed_debris', to='payments.payment')),
                ('supplier', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='debris_entries', to='parties.supplier')),
            ],
            options={
                'db_table': 'debris_entries',
                'ordering': ['-date', '-id'],
                'verbose_name_plural': 'debris entries',
            },
        ),
    ]
