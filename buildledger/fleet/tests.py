"""
Test suite for the fleet module
Tests: Drivers, trucks, repairs and oil changes, tools, diesel consumption
"""
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from buildledger.catalog.utils import ensure_product_catalog, find_product_by_name
from buildledger.core.models import User
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildledger.inventory.models import StockMovement
from buildledger.payments.models import Payment
from .models import Driver, Truck, Tool, TruckRepair, DieselLog


class DriverAndTruckTests(TestCase):
    """Test driver and truck endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_driver(self):
        response = self.client.post('/api/v1/drivers/', {'name': '  Samir ', 'phone': '70111222'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Samir')

    def test_create_driver_requires_name(self):
        response = self.client.post('/api/v1/drivers/', {'name': ' '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_driver(self):
        driver = Driver.objects.create(name='Fadi')
        response = self.client.delete(f'/api/v1/drivers/{driver.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Driver.objects.filter(pk=driver.id).exists())

    def test_create_truck_with_driver(self):
        driver = Driver.objects.create(name='Fadi')
        response = self.client.post('/api/v1/trucks/', {'plate_no': 'AB-123', 'driver_id': driver.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['driver']['name'], 'Fadi')

    def test_create_truck_requires_plate(self):
        response = self.client.post('/api/v1/trucks/', {'plate_no': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'plate_no is required')

    def test_create_truck_unknown_driver(self):
        response = self.client.post('/api/v1/trucks/', {'plate_no': 'X1', 'driver_id': 9999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_plate_conflicts(self):
        Truck.objects.create(plate_no='AB-123')
        response = self.client.post('/api/v1/trucks/', {'plate_no': 'ab-123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_update_truck_clears_driver(self):
        driver = Driver.objects.create(name='Fadi')
        truck = Truck.objects.create(plate_no='T-1', driver=driver)
        response = self.client.put(f'/api/v1/trucks/{truck.id}/', {'driver_id': None}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        truck.refresh_from_db()
        self.assertIsNone(truck.driver_id)

    def test_update_truck_without_fields(self):
        truck = Truck.objects.create(plate_no='T-2')
        response = self.client.put(f'/api/v1/trucks/{truck.id}/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_truck_used_by_receipts(self):
        truck = Truck.objects.create(plate_no='T-3')
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_receipt(customer=customer, user=self.user, truck_id=truck.id)
        response = self.client.delete(f'/api/v1/trucks/{truck.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Truck.objects.filter(pk=truck.id).exists())

    def test_delete_truck(self):
        truck = Truck.objects.create(plate_no='T-4')
        response = self.client.delete(f'/api/v1/trucks/{truck.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Truck deleted')

    def test_worker_cannot_manage_fleet(self):
        worker = TestDataFactory.create_user(role=User.ROLE_WORKER)
        self.client.authenticate_user(worker)
        response = self.client.get('/api/v1/trucks/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class TruckRepairTests(TestCase):
    """Test repairs, oil changes and insurance renewals"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.truck = Truck.objects.create(plate_no='R-100')
        self.url = f'/api/v1/trucks/{self.truck.id}/repairs/'

    def test_repair_records_expense_payment(self):
        supplier = TestDataFactory.create_supplier(name='Garage')
        response = self.client.post(self.url, {
            'type': 'repair', 'amount': '250', 'supplier_id': supplier.id, 'description': 'Brakes',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        repair = TruckRepair.objects.get(pk=response.data['id'])
        self.assertEqual(repair.amount, Decimal('250.00'))
        payment = repair.payment
        self.assertEqual(payment.type, Payment.TYPE_GENERAL_EXPENSE)
        self.assertEqual(payment.amount, Decimal('250.00'))
        self.assertEqual(payment.category, 'Truck repair')
        self.assertEqual(payment.reference, f'truck-{self.truck.id}-repair')

    def test_repair_requires_amount(self):
        response = self.client.post(self.url, {'type': 'REPAIR', 'amount': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Payment.objects.exists())

    def test_unknown_supplier(self):
        response = self.client.post(self.url, {'amount': '10', 'supplier_id': 9999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_insurance_moves_expiry(self):
        response = self.client.post(self.url, {
            'type': 'INSURANCE', 'amount': '600', 'insurance_expiry': '2027-03-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.truck.refresh_from_db()
        self.assertEqual(timezone.localtime(self.truck.insurance_expiry).date().isoformat(), '2027-03-01')

    def test_oil_change_draws_tool_stock(self):
        oil = Tool.objects.create(name='Engine oil', quantity=Decimal('20'), unit='L')
        response = self.client.post(self.url, {
            'type': 'OIL_CHANGE', 'quantity': '8', 'tool_id': oil.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        oil.refresh_from_db()
        self.assertEqual(oil.quantity, Decimal('12.000'))
        repair = TruckRepair.objects.get(pk=response.data['id'])
        self.assertEqual(repair.amount, Decimal('0.00'))
        self.assertIsNone(repair.payment)

    def test_oil_change_not_enough_stock(self):
        oil = Tool.objects.create(name='Engine oil', quantity=Decimal('2'))
        response = self.client.post(self.url, {
            'type': 'OIL_CHANGE', 'quantity': '5', 'tool_id': oil.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        oil.refresh_from_db()
        self.assertEqual(oil.quantity, Decimal('2.000'))

    def test_oil_change_requires_tool(self):
        response = self.client.post(self.url, {'type': 'OIL_CHANGE', 'quantity': '5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_repairs(self):
        self.client.post(self.url, {'amount': '10'}, format='json')
        self.client.post(self.url, {'amount': '20'}, format='json')
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)


class ToolTests(TestCase):
    """Test workshop tool stock"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_and_update_tool(self):
        response = self.client.post('/api/v1/tools/', {'name': 'Grease', 'quantity': '4', 'unit': 'kg'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        tool_id = response.data['id']

        response = self.client.put(f'/api/v1/tools/{tool_id}/', {'quantity': '6'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Tool.objects.get(pk=tool_id).quantity, Decimal('6.000'))

    def test_negative_quantity_rejected(self):
        response = self.client.post('/api/v1/tools/', {'name': 'Grease', 'quantity': '-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_tool(self):
        tool = Tool.objects.create(name='Jack')
        response = self.client.delete(f'/api/v1/tools/{tool.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class DieselTests(TestCase):
    """Test diesel consumption logs"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        ensure_product_catalog()
        self.diesel = find_product_by_name('diesel')
        self.diesel.stock_qty = Decimal('500')
        self.diesel.save()

    def test_log_consumption_reduces_stock(self):
        truck = Truck.objects.create(plate_no='D-1')
        response = self.client.post('/api/v1/diesel/logs/', {
            'liters': '40', 'price_per_liter': '1.25', 'truck_id': truck.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['product_name'], 'Diesel')
        self.assertEqual(response.data['total_cost'], Decimal('50.00'))

        self.diesel.refresh_from_db()
        self.assertEqual(self.diesel.stock_qty, Decimal('460.000'))
        movement = StockMovement.objects.get(product=self.diesel)
        self.assertEqual(movement.type, StockMovement.TYPE_PRODUCTION_CONSUMPTION)
        self.assertEqual(movement.quantity, Decimal('-40.000'))

    def test_log_requires_positive_liters(self):
        response = self.client.post('/api/v1/diesel/logs/', {'liters': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_log_unknown_truck(self):
        response = self.client.post('/api/v1/diesel/logs/', {'liters': '5', 'truck_id': 9999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_log_without_fuel_product(self):
        self.diesel.delete()
        response = self.client.post('/api/v1/diesel/logs/', {'liters': '5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(DieselLog.objects.exists())

    def test_list_logs_with_totals(self):
        self.client.post('/api/v1/diesel/logs/', {'liters': '10', 'total_cost': '12'}, format='json')
        self.client.post('/api/v1/diesel/logs/', {'liters': '5', 'total_cost': '6'}, format='json')
        response = self.client.get('/api/v1/diesel/logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['logs']), 2)
        self.assertEqual(response.data['totals']['liters'], Decimal('15.000'))
        self.assertEqual(response.data['totals']['cost'], Decimal('18.00'))

    def test_diesel_purchases(self):
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_purchase(product=self.diesel, supplier=supplier,
                                        quantity=Decimal('1000'), total_cost=Decimal('1100'))
        TestDataFactory.create_purchase(supplier=supplier)
        response = self.client.get('/api/v1/diesel/purchases/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['purchases']), 1)
        self.assertEqual(response.data['totals']['cost'], Decimal('1100.00'))
