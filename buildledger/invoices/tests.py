"""
Test suite for invoices module
Tests: Invoice creation from receipts, listing, settlement and deletion
"""
from decimal import Decimal

from django.test import TestCase, override_settings
from rest_framework import status

from buildledger.core.models import User
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildledger.parties.models import Customer
from buildledger.payments.models import Payment
from .models import Invoice, InvoiceReceipt
from .services import invoice_number


class InvoiceNumberTests(TestCase):

    def test_invoice_number_is_padded(self):
        self.assertEqual(invoice_number(7), 'INV-000007')
        self.assertEqual(invoice_number(1234567), 'INV-1234567')


class InvoiceAPITests(TestCase):
    """Test invoice endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer(name='Hadi')
        self.first = TestDataFactory.create_receipt(customer=self.customer, date='2026-09-01T08:00:00')
        self.second = TestDataFactory.create_receipt(customer=self.customer, date='2026-09-04T08:00:00')

    def _create(self, **extra):
        data = {'customer_id': self.customer.id}
        data.update(extra)
        return self.client.post('/api/v1/invoices/', data, format='json')

    def test_create_from_all_outstanding(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['invoice_no'], invoice_number(response.data['id']))
        self.assertEqual(response.data['total'], Decimal('200.00'))
        self.assertEqual(response.data['outstanding'], Decimal('200.00'))
        self.assertEqual(response.data['status'], Invoice.STATUS_PENDING)
        self.assertEqual(len(response.data['receipts']), 2)

    def test_create_by_amount_takes_oldest(self):
        response = self._create(amount='60')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual([r['id'] for r in response.data['receipts']], [self.first.id])

    def test_create_by_receipt_ids(self):
        response = self._create(receipt_ids=[self.second.id])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['receipt_count'], 1)

        response = self._create(receipt_ids=[self.second.id])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'One or more receipts have already been invoiced.')

    def test_receipt_ids_must_be_a_list(self):
        response = self._create(receipt_ids='5')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_requires_customer(self):
        response = self.client.post('/api/v1/invoices/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self._create(customer_id=9999)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_nothing_outstanding(self):
        other = TestDataFactory.create_customer()
        response = self._create(customer_id=other.id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_amount(self):
        response = self._create(amount='-5')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(TVA_RATE='0.11')
    def test_tva_invoice(self):
        customer = TestDataFactory.create_customer(receipt_type=Customer.RECEIPT_TYPE_TVA)
        TestDataFactory.create_receipt(customer=customer)
        response = self._create(customer_id=customer.id)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['receipt_type'], 'TVA')
        self.assertEqual(response.data['subtotal'], Decimal('100.00'))
        self.assertEqual(response.data['vat_amount'], Decimal('11.00'))
        self.assertEqual(response.data['total'], Decimal('111.00'))

    def test_mark_paid_settles_receipts(self):
        invoice_id = self._create().data['id']
        response = self.client.post(f'/api/v1/invoices/{invoice_id}/mark-paid/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Invoice.STATUS_PAID)
        self.assertEqual(response.data['outstanding'], Decimal('0.00'))

        payment = Payment.objects.get(type=Payment.TYPE_CUSTOMER_PAYMENT)
        self.assertEqual(payment.amount, Decimal('200.00'))
        self.assertEqual(payment.reference, response.data['invoice_no'])
        for receipt in (self.first, self.second):
            receipt.refresh_from_db()
            self.assertTrue(receipt.is_paid)

        response = self.client.post(f'/api/v1/invoices/{invoice_id}/mark-paid/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail_refreshes_balance(self):
        invoice_id = self._create().data['id']
        TestDataFactory.create_receipt(customer=self.customer)
        self.client.post('/api/v1/payments/', {
            'type': 'RECEIPT', 'amount': '40', 'receipt_id': self.first.id,
        }, format='json')

        response = self.client.get(f'/api/v1/invoices/{invoice_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['amount_paid'], Decimal('40.00'))
        self.assertEqual(response.data['outstanding'], Decimal('160.00'))
        self.assertEqual(response.data['old_balance'], Decimal('100.00'))

    def test_list_filters(self):
        self._create(receipt_ids=[self.first.id])
        other = TestDataFactory.create_customer()
        TestDataFactory.create_receipt(customer=other)
        self._create(customer_id=other.id)

        response = self.client.get(f'/api/v1/invoices/?customer_id={self.customer.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['receipt_count'], 1)

        response = self.client.get('/api/v1/invoices/?status=pending')
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/invoices/?status=lost')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_frees_receipts(self):
        invoice_id = self._create().data['id']
        response = self.client.delete(f'/api/v1/invoices/{invoice_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(InvoiceReceipt.objects.exists())

        response = self._create(receipt_ids=[self.first.id])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_deleting_receipts_removes_emptied_invoice(self):
        invoice_id = self._create().data['id']
        self.client.delete(f'/api/v1/receipts/{self.first.id}/')
        response = self.client.get(f'/api/v1/invoices/{invoice_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['receipt_count'], 1)

        response = self.client.delete(f'/api/v1/receipts/{self.second.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Invoice.objects.filter(pk=invoice_id).exists())

    def test_paid_invoice_cannot_be_deleted(self):
        invoice_id = self._create().data['id']
        self.client.post(f'/api/v1/invoices/{invoice_id}/mark-paid/', {}, format='json')
        response = self.client.delete(f'/api/v1/invoices/{invoice_id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_cannot_delete(self):
        invoice_id = self._create().data['id']
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.client.authenticate_user(manager)
        response = self.client.get(f'/api/v1/invoices/{invoice_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.delete(f'/api/v1/invoices/{invoice_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
