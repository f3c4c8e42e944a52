"""
Test utilities and factories for creating test data
"""
import random
import string
from decimal import Decimal

from django.utils import timezone
from rest_framework.test import APIClient

from buildledger.catalog.models import Product
from buildledger.core.models import User
from buildledger.core.sessions import create_session
from buildledger.inventory.models import InventoryEntry
from buildledger.inventory.services import next_inventory_number
from buildledger.parties.models import Customer, Supplier, JobSite
from buildledger.payroll.models import Employee
from buildledger.receipts.services import create_receipt


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(email=None, password='testpass123', role=User.ROLE_ADMIN, name=None, permission_overrides=None):
        """Create a test user"""
        if not email:
            email = f'user_{TestDataFactory.random_string(6).lower()}@test.com'
        return User.objects.create_user(
            email=email,
            password=password,
            role=role,
            name=name or 'Test User',
            permission_overrides=permission_overrides,
        )

    @staticmethod
    def create_customer(name=None, receipt_type=Customer.RECEIPT_TYPE_NORMAL):
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        return Customer.objects.create(name=name, receipt_type=receipt_type)

    @staticmethod
    def create_job_site(customer, name=None):
        return JobSite.objects.create(customer=customer, name=name or f'Site_{TestDataFactory.random_string(4)}')

    @staticmethod
    def create_supplier(name=None):
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        return Supplier.objects.create(name=name)

    @staticmethod
    def create_product(name=None, unit='m3', unit_price=Decimal('10.00'), stock_qty=Decimal('100.000'), **extra):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        return Product.objects.create(name=name, unit=unit, unit_price=unit_price, stock_qty=stock_qty, **extra)

    @staticmethod
    def create_employee(name=None, role=Employee.ROLE_OTHER, pay_type=Employee.PAY_SALARY, **extra):
        if not name:
            name = f'Employee_{TestDataFactory.random_string(6)}'
        return Employee.objects.create(name=name, role=role, pay_type=pay_type, **extra)

    @staticmethod
    def create_receipt(customer=None, product=None, quantity='2', unit_price='50', user=None, **extra):
        """Create a receipt through the service so totals and stock stay consistent"""
        product = product or TestDataFactory.create_product()
        data = {
            'customer_id': customer.id if customer else None,
            'walk_in_name': None if customer else 'Walk-in buyer',
            'items': [{'product_id': product.id, 'quantity': quantity, 'unit_price': unit_price}],
        }
        data.update(extra)
        return create_receipt(data, user=user)

    @staticmethod
    def create_purchase(product=None, supplier=None, quantity=Decimal('10.000'), total_cost=Decimal('100.00'),
                        is_paid=False, **extra):
        """Create a purchase entry row directly, without stock movements"""
        product = product or TestDataFactory.create_product()
        return InventoryEntry.objects.create(
            inventory_no=next_inventory_number(InventoryEntry.TYPE_PURCHASE),
            entry_date=extra.pop('entry_date', timezone.now()),
            type=InventoryEntry.TYPE_PURCHASE,
            supplier=supplier,
            product=product,
            quantity=quantity,
            total_cost=total_cost,
            is_paid=is_paid,
            **extra,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a fresh login session for `user`"""
        _, token = create_session(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
