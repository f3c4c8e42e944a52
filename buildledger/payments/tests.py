"""
Test suite for payments module
Tests: Payment validation, allocation to receipts and purchases, edits and reversal
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from buildledger.core.models import User
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildledger.payroll.models import PayrollEntry
from .models import Payment, ReceiptPayment, InventoryPayment
from .services import entry_amount, record_payment, delete_payment


class AllocationTests(TestCase):
    """Test how payments settle receipts and purchases"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        self.supplier = TestDataFactory.create_supplier()

    def test_customer_payment_pays_oldest_first(self):
        first = TestDataFactory.create_receipt(customer=self.customer, date='2026-09-01T08:00:00')
        second = TestDataFactory.create_receipt(customer=self.customer, date='2026-09-05T08:00:00')

        record_payment(Payment.TYPE_CUSTOMER_PAYMENT, Decimal('150'), customer=self.customer)

        first.refresh_from_db()
        second.refresh_from_db()
        self.assertTrue(first.is_paid)
        self.assertEqual(first.amount_paid, Decimal('100.00'))
        self.assertFalse(second.is_paid)
        self.assertEqual(second.amount_paid, Decimal('50.00'))
        self.assertEqual(ReceiptPayment.objects.count(), 2)

    def test_customer_payment_without_allocation(self):
        receipt = TestDataFactory.create_receipt(customer=self.customer)
        record_payment(Payment.TYPE_CUSTOMER_PAYMENT, Decimal('40'), apply_to_receipts=False,
                       customer=self.customer)
        receipt.refresh_from_db()
        self.assertEqual(receipt.amount_paid, Decimal('0.00'))

    def test_supplier_payment_settles_purchases(self):
        older = TestDataFactory.create_purchase(supplier=self.supplier, total_cost=Decimal('30'),
                                                entry_date=timezone.now() - timedelta(days=10))
        newer = TestDataFactory.create_purchase(supplier=self.supplier, total_cost=Decimal('50'))

        record_payment(Payment.TYPE_SUPPLIER, Decimal('60'), supplier=self.supplier)

        older.refresh_from_db()
        newer.refresh_from_db()
        self.assertTrue(older.is_paid)
        self.assertEqual(newer.amount_paid, Decimal('30.00'))
        self.assertFalse(newer.is_paid)
        self.assertEqual(InventoryPayment.objects.count(), 2)

    def test_entry_amount_falls_back_to_unit_cost(self):
        entry = TestDataFactory.create_purchase(total_cost=None, unit_cost=Decimal('2.5'), quantity=Decimal('4'))
        self.assertEqual(entry_amount(entry), Decimal('10.00'))

    def test_delete_reverts_allocations(self):
        receipt = TestDataFactory.create_receipt(customer=self.customer)
        payment = record_payment(Payment.TYPE_CUSTOMER_PAYMENT, Decimal('100'), customer=self.customer)
        receipt.refresh_from_db()
        self.assertTrue(receipt.is_paid)

        delete_payment(payment)
        receipt.refresh_from_db()
        self.assertFalse(receipt.is_paid)
        self.assertEqual(receipt.amount_paid, Decimal('0.00'))
        self.assertFalse(ReceiptPayment.objects.exists())


class PaymentAPITests(TestCase):
    """Test payment endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer()
        self.supplier = TestDataFactory.create_supplier()

    def test_general_expense(self):
        response = self.client.post('/api/v1/payments/', {
            'type': 'general_expense', 'amount': '25.5', 'description': 'Office water', 'category': 'Office',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['type'], Payment.TYPE_GENERAL_EXPENSE)
        self.assertEqual(response.data['amount'], Decimal('25.50'))
        self.assertEqual(response.data['created_by_email'], self.user.email)

    def test_amount_must_be_positive(self):
        response = self.client.post('/api/v1/payments/', {'type': 'GENERAL_EXPENSE', 'amount': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'amount must be a positive number')

    def test_invalid_type(self):
        response = self.client.post('/api/v1/payments/', {'type': 'GIFT', 'amount': '5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_required_links(self):
        for payment_type in ('SUPPLIER', 'RECEIPT', 'PAYROLL_SALARY', 'DEBRIS_REMOVAL', 'CUSTOMER_PAYMENT'):
            response = self.client.post('/api/v1/payments/', {'type': payment_type, 'amount': '5'}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, payment_type)

    def test_unknown_supplier(self):
        response = self.client.post('/api/v1/payments/', {'type': 'SUPPLIER', 'amount': '5', 'supplier_id': 9999},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_receipt_payment(self):
        receipt = TestDataFactory.create_receipt(customer=self.customer)
        response = self.client.post('/api/v1/payments/', {
            'type': 'RECEIPT', 'amount': '30', 'receipt_id': receipt.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['customer'], self.customer.id)
        self.assertEqual(response.data['receipt_links'][0]['amount'], Decimal('30.00'))
        receipt.refresh_from_db()
        self.assertEqual(receipt.amount_paid, Decimal('30.00'))

    def test_payroll_payment_links_entry(self):
        employee = TestDataFactory.create_employee()
        entry = PayrollEntry.objects.create(
            employee=employee, period_start=timezone.now(), period_end=timezone.now(),
            type=PayrollEntry.TYPE_SALARY, amount=Decimal('300'),
        )
        response = self.client.post('/api/v1/payments/', {
            'type': 'PAYROLL_SALARY', 'amount': '300', 'payroll_entry_id': entry.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['payroll_entry']['id'], entry.id)

        response = self.client.post('/api/v1/payments/', {
            'type': 'PAYROLL_SALARY', 'amount': '300', 'payroll_entry_id': entry.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_reapplies_payment(self):
        receipt = TestDataFactory.create_receipt(customer=self.customer)
        payment = record_payment(Payment.TYPE_CUSTOMER_PAYMENT, Decimal('100'), customer=self.customer)
        response = self.client.put(f'/api/v1/payments/{payment.id}/', {
            'type': 'CUSTOMER_PAYMENT', 'amount': '40', 'customer_id': self.customer.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        receipt.refresh_from_db()
        self.assertEqual(receipt.amount_paid, Decimal('40.00'))
        self.assertFalse(receipt.is_paid)
        self.assertEqual(ReceiptPayment.objects.filter(payment=payment).count(), 1)

    def test_delete_payment(self):
        entry = TestDataFactory.create_purchase(supplier=self.supplier, total_cost=Decimal('20'))
        payment = record_payment(Payment.TYPE_SUPPLIER, Decimal('20'), supplier=self.supplier)
        response = self.client.delete(f'/api/v1/payments/{payment.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        entry.refresh_from_db()
        self.assertFalse(entry.is_paid)
        self.assertEqual(entry.amount_paid, Decimal('0.00'))

    def test_list_filters(self):
        record_payment(Payment.TYPE_GENERAL_EXPENSE, Decimal('5'), description='Fuel can')
        record_payment(Payment.TYPE_SUPPLIER, Decimal('7'), supplier=self.supplier)

        response = self.client.get('/api/v1/payments/?type=supplier')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/payments/?description=fuel')
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/payments/?type=bogus')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_without_payment_permission(self):
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER, permission_overrides={'payments:manage': False})
        self.client.authenticate_user(manager)
        response = self.client.get('/api/v1/payments/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
