"""
Test suite for inventory module
Tests: Purchases, production runs, numbering, payables and labor payouts
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from buildledger.core.models import User
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildledger.payments.models import Payment
from buildledger.payroll.models import Employee, ManufacturingPieceRate
from .models import InventoryEntry, StockMovement
from .services import increment_inventory_number, next_inventory_number


class InventoryNumberTests(TestCase):
    """Test purchase and production numbering"""

    def test_increment(self):
        self.assertEqual(increment_inventory_number('P9', 'P1'), 'P10')
        self.assertEqual(increment_inventory_number('M009', 'M1'), 'M010')
        self.assertEqual(increment_inventory_number(None, 'P1'), 'P1')

    def test_sequences_per_type(self):
        self.assertEqual(next_inventory_number(InventoryEntry.TYPE_PURCHASE), 'P1')
        TestDataFactory.create_purchase()
        self.assertEqual(next_inventory_number(InventoryEntry.TYPE_PURCHASE), 'P2')
        self.assertEqual(next_inventory_number(InventoryEntry.TYPE_PRODUCTION), 'M1')


class PurchaseTests(TestCase):
    """Test purchase entries"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier()
        self.product = TestDataFactory.create_product(stock_qty=Decimal('10'))

    def _purchase(self, **extra):
        data = {
            'type': 'purchase', 'product_id': self.product.id, 'supplier_id': self.supplier.id,
            'quantity': '20', 'unit_cost': '7.5',
        }
        data.update(extra)
        return self.client.post('/api/v1/inventory/', data, format='json')

    def test_create_purchase(self):
        response = self._purchase(is_paid=False)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['inventory_no'], 'P1')
        self.assertEqual(response.data['total_cost'], Decimal('150.00'))
        self.assertFalse(response.data['is_paid'])

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, Decimal('30.000'))
        movement = StockMovement.objects.get(inventory_entry_id=response.data['id'])
        self.assertEqual(movement.type, StockMovement.TYPE_PURCHASE)

    def test_purchase_defaults_to_paid(self):
        response = self._purchase()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_paid'])

    def test_purchase_requires_supplier(self):
        response = self._purchase(supplier_id=None)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_purchase_requires_unit_cost(self):
        response = self._purchase(unit_cost='0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_type(self):
        response = self._purchase(type='GIFT')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_out_of_sequence_number(self):
        response = self._purchase(inventory_no='P7')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['expected_next'], 'P1')

    def test_wrong_prefix(self):
        response = self._purchase(inventory_no='M1')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_purchases_cannot_be_edited(self):
        entry_id = self._purchase().data['id']
        response = self.client.put(f'/api/v1/inventory/{entry_id}/', {'quantity': '5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_reverts_stock(self):
        entry_id = self._purchase().data['id']
        response = self.client.delete(f'/api/v1/inventory/{entry_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, Decimal('10.000'))
        self.assertFalse(StockMovement.objects.exists())

    def test_payables_and_mark_paid(self):
        unpaid = TestDataFactory.create_purchase(supplier=self.supplier, total_cost=Decimal('80'))
        TestDataFactory.create_purchase(supplier=self.supplier, total_cost=Decimal('40'), is_paid=True)

        response = self.client.get('/api/v1/inventory/payables/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_due'], Decimal('80.00'))
        self.assertEqual(len(response.data['entries']), 1)

        response = self.client.post(f'/api/v1/inventory/{unpaid.id}/mark-paid/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_paid'])
        payment = Payment.objects.get(reference=f'inventory-{unpaid.id}')
        self.assertEqual(payment.type, Payment.TYPE_SUPPLIER)
        self.assertEqual(payment.amount, Decimal('80.00'))

        response = self.client.post(f'/api/v1/inventory/{unpaid.id}/mark-paid/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters(self):
        self._purchase(is_paid=False)
        self._purchase()
        response = self.client.get('/api/v1/inventory/?type=purchase&is_paid=false')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 1)

        response = self.client.get('/api/v1/inventory/?type=other')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_next_number(self):
        self._purchase()
        response = self.client.get('/api/v1/inventory/next-number/')
        self.assertEqual(response.data, {'purchase': 'P2', 'production': 'M1'})

    def test_worker_denied(self):
        worker = TestDataFactory.create_user(role=User.ROLE_WORKER)
        self.client.authenticate_user(worker)
        response = self.client.get('/api/v1/inventory/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ProductionTests(TestCase):
    """Test production runs"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.powder = TestDataFactory.create_product(name='Powder X', stock_qty=Decimal('100'))
        self.cement = TestDataFactory.create_product(name='Cement X', stock_qty=Decimal('100'))
        self.block = TestDataFactory.create_product(
            name='Block X', unit='unit', stock_qty=Decimal('0'), is_manufactured=True,
            powder_product=self.powder, powder_per_unit=Decimal('0.01'),
            cement_product=self.cement, cement_per_unit=Decimal('0.05'),
            piecework_rate=Decimal('0.10'),
        )
        self.worker = TestDataFactory.create_employee(role=Employee.ROLE_MANUFACTURING,
                                                      pay_type=Employee.PAY_PIECEWORK)

    def _produce(self, **extra):
        data = {'type': 'PRODUCTION', 'product_id': self.block.id, 'quantity': '1000',
                'worker_employee_id': self.worker.id, 'date': '2026-09-03'}
        data.update(extra)
        return self.client.post('/api/v1/inventory/', data, format='json')

    def test_production_consumes_materials(self):
        response = self._produce()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['inventory_no'], 'M1')
        self.assertEqual(response.data['powder_used'], Decimal('10.000'))
        self.assertEqual(response.data['cement_used'], Decimal('50.000'))
        self.assertEqual(response.data['labor_amount'], Decimal('100.00'))
        self.assertFalse(response.data['labor_paid'])

        for product, expected in ((self.block, '1000.000'), (self.powder, '90.000'), (self.cement, '50.000')):
            product.refresh_from_db()
            self.assertEqual(product.stock_qty, Decimal(expected))

    def test_employee_rate_wins(self):
        ManufacturingPieceRate.objects.create(employee=self.worker, product=self.block, rate=Decimal('0.15'))
        response = self._produce()
        self.assertEqual(response.data['labor_amount'], Decimal('150.00'))

    def test_production_requires_manufactured_product(self):
        response = self._produce(product_id=self.powder.id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_needs_recipe(self):
        self.block.cement_product = None
        self.block.save()
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.client.authenticate_user(manager)
        response = self._produce()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_material_override(self):
        response = self._produce(powder_used='4')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.powder.refresh_from_db()
        self.assertEqual(self.powder.stock_qty, Decimal('96.000'))

    def test_update_production_reapplies_stock(self):
        entry_id = self._produce().data['id']
        response = self.client.put(f'/api/v1/inventory/{entry_id}/', {'quantity': '500'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['labor_amount'], Decimal('100.00'))
        self.block.refresh_from_db()
        self.cement.refresh_from_db()
        self.assertEqual(self.block.stock_qty, Decimal('500.000'))
        self.assertEqual(self.cement.stock_qty, Decimal('75.000'))

    def test_production_payables_and_mark_labor_paid(self):
        entry_id = self._produce().data['id']
        response = self.client.get('/api/v1/inventory/production-payables/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_due'], Decimal('100.00'))

        response = self.client.get('/api/v1/inventory/production-payables/weekly-summary/'
                                   '?start=2026-09-01&end=2026-09-07')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['workers'][0]['id'], self.worker.id)
        self.assertEqual(response.data['workers'][0]['amount'], Decimal('100.00'))

        response = self.client.post(f'/api/v1/inventory/{entry_id}/mark-labor-paid/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['labor_paid'])
        payment = Payment.objects.get(reference=f'manufacturing-{entry_id}')
        self.assertEqual(payment.type, Payment.TYPE_PAYROLL_PIECEWORK)
        self.assertEqual(payment.amount, Decimal('100.00'))

        response = self.client.post(f'/api/v1/inventory/{entry_id}/mark-labor-paid/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_labor_paid_missing_entry(self):
        response = self.client.post('/api/v1/inventory/9999/mark-labor-paid/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_production_history_and_workers(self):
        self._produce()
        response = self.client.get(f'/api/v1/inventory/production-history/?product_id={self.block.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 1)

        response = self.client.get('/api/v1/inventory/workers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['id'], self.worker.id)

    def test_detail_includes_movements(self):
        entry_id = self._produce().data['id']
        response = self.client.get(f'/api/v1/inventory/{entry_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['stock_movements']), 3)
