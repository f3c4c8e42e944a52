"""
Test suite for the parties module
Tests: Customers, suppliers, job sites, manual balances, account merges and paired settlements
"""
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from buildledger.core.models import User
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildledger.invoices.models import Invoice
from buildledger.parties.models import Customer, Supplier, JobSite, CustomerSupplierLink
from buildledger.parties.services import customer_outstanding_map, supplier_payable_map
from buildledger.payments.models import Payment
from buildledger.receipts.models import Receipt


class CustomerAPITests(TestCase):
    """Test customer endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_customer(self):
        response = self.client.post('/api/v1/customers/', {'name': '  Abou Ali  ', 'receipt_type': 'tva'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Abou Ali')
        self.assertEqual(response.data['receipt_type'], 'TVA')
        self.assertEqual(response.data['computed_balance'], Decimal('0'))

    def test_create_customer_invalid_receipt_type(self):
        response = self.client.post('/api/v1/customers/', {'name': 'X', 'receipt_type': 'OTHER'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_customer_requires_name(self):
        response = self.client.post('/api/v1/customers/', {'name': '  '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_includes_outstanding_balance(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_receipt(customer=customer, quantity='3', unit_price='20', user=self.user)
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = next(item for item in response.data if item['id'] == customer.id)
        self.assertEqual(row['computed_balance'], Decimal('60.00'))

    def test_update_customer(self):
        customer = TestDataFactory.create_customer()
        response = self.client.put(f'/api/v1/customers/{customer.id}/', {'phone': '03 123456'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        customer.refresh_from_db()
        self.assertEqual(customer.phone, '03 123456')

    def test_update_customer_without_fields(self):
        customer = TestDataFactory.create_customer()
        response = self.client.put(f'/api/v1/customers/{customer.id}/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_customer_with_receipts(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_receipt(customer=customer, user=self.user)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Customer.objects.filter(pk=customer.id).exists())

    def test_delete_customer(self):
        customer = TestDataFactory.create_customer()
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Customer.objects.filter(pk=customer.id).exists())

    def test_delete_customer_after_invoiced_receipt_removed(self):
        customer = TestDataFactory.create_customer()
        receipt = TestDataFactory.create_receipt(customer=customer, user=self.user)
        response = self.client.post('/api/v1/invoices/', {'customer_id': customer.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.delete(f'/api/v1/receipts/{receipt.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Invoice.objects.filter(customer=customer).exists())

        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Customer.objects.filter(pk=customer.id).exists())

    def test_delete_customer_with_invoices(self):
        customer = TestDataFactory.create_customer()
        Invoice.objects.create(invoice_no='INV-TEST', customer=customer, receipt_type=customer.receipt_type,
                               issued_at=timezone.now())
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot delete a customer that has associated invoices')
        self.assertTrue(Customer.objects.filter(pk=customer.id).exists())

    def test_manual_balance_override(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_receipt(customer=customer, user=self.user)
        response = self.client.post(f'/api/v1/customers/{customer.id}/manual-balance/',
                                    {'amount': '250', 'note': 'opening balance'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['manual_balance_override'], Decimal('250.00'))
        self.assertEqual(response.data['computed_balance'], Decimal('350.00'))
        self.assertEqual(response.data['manual_balance_updated_by']['id'], self.user.id)

        response = self.client.post(f'/api/v1/customers/{customer.id}/manual-balance/', {'amount': None},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['manual_balance_override'])
        self.assertIsNone(response.data['manual_balance_note'])

    def test_manual_balance_invalid_amount(self):
        customer = TestDataFactory.create_customer()
        response = self.client.post(f'/api/v1/customers/{customer.id}/manual-balance/', {'amount': 'lots'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manual_balance_admin_only(self):
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.client.authenticate_user(manager)
        customer = TestDataFactory.create_customer()
        response = self.client.post(f'/api/v1/customers/{customer.id}/manual-balance/', {'amount': '1'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SupplierAPITests(TestCase):
    """Test supplier endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_supplier(self):
        response = self.client.post('/api/v1/suppliers/', {'name': 'Cement Co', 'contact': '01 234'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['contact'], '01 234')

    def test_payable_balance(self):
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_purchase(supplier=supplier, total_cost=Decimal('120.00'))
        TestDataFactory.create_purchase(supplier=supplier, total_cost=Decimal('80.00'), is_paid=True)
        response = self.client.get(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['computed_balance'], Decimal('120.00'))
        self.assertEqual(supplier_payable_map()[supplier.id], Decimal('120.00'))

    def test_delete_supplier_with_entries(self):
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_purchase(supplier=supplier)
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_supplier_manual_balance(self):
        supplier = TestDataFactory.create_supplier()
        response = self.client.post(f'/api/v1/suppliers/{supplier.id}/manual-balance/', {'amount': '75.5'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        supplier.refresh_from_db()
        self.assertEqual(supplier.manual_balance_override, Decimal('75.50'))


class JobSiteAPITests(TestCase):
    """Test job site endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer()

    def test_create_and_filter_job_sites(self):
        response = self.client.post('/api/v1/job-sites/', {'customer_id': self.customer.id, 'name': 'Villa Hamra'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['customer_name'], self.customer.name)

        other = TestDataFactory.create_customer()
        TestDataFactory.create_job_site(other)
        response = self.client.get(f'/api/v1/job-sites/?customer_id={self.customer.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_create_job_site_requires_customer(self):
        response = self.client.post('/api/v1/job-sites/', {'name': 'Orphan'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_job_site_with_receipts(self):
        site = TestDataFactory.create_job_site(self.customer)
        TestDataFactory.create_receipt(customer=self.customer, user=self.user, job_site_id=site.id)
        response = self.client.delete(f'/api/v1/job-sites/{site.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(JobSite.objects.filter(pk=site.id).exists())


class MergeAndPairTests(TestCase):
    """Test account merges and customer/supplier settlements"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_merge_customers(self):
        source = TestDataFactory.create_customer(name='Duplicate')
        target = TestDataFactory.create_customer(name='Original')
        receipt = TestDataFactory.create_receipt(customer=source, user=self.user)
        TestDataFactory.create_job_site(source)
        source.manual_balance_override = Decimal('40')
        source.save()

        response = self.client.post('/api/v1/merge/customers/', {'source_id': source.id, 'target_id': target.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Customer.objects.filter(pk=source.id).exists())
        receipt.refresh_from_db()
        self.assertEqual(receipt.customer_id, target.id)
        self.assertEqual(target.job_sites.count(), 1)
        target.refresh_from_db()
        self.assertEqual(target.manual_balance_override, Decimal('40.00'))

    def test_merge_same_account(self):
        customer = TestDataFactory.create_customer()
        response = self.client.post('/api/v1/merge/customers/',
                                    {'source_id': customer.id, 'target_id': customer.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_merge_missing_account(self):
        customer = TestDataFactory.create_customer()
        response = self.client.post('/api/v1/merge/customers/', {'source_id': customer.id, 'target_id': 99999},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_merge_suppliers(self):
        source = TestDataFactory.create_supplier()
        target = TestDataFactory.create_supplier()
        entry = TestDataFactory.create_purchase(supplier=source)
        response = self.client.post('/api/v1/merge/suppliers/', {'source_id': source.id, 'target_id': target.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        entry.refresh_from_db()
        self.assertEqual(entry.supplier_id, target.id)
        self.assertFalse(Supplier.objects.filter(pk=source.id).exists())

    def test_pair_and_unpair(self):
        customer = TestDataFactory.create_customer()
        supplier = TestDataFactory.create_supplier()
        response = self.client.post('/api/v1/merge/pair-customer-supplier/',
                                    {'customer_id': customer.id, 'supplier_id': supplier.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(CustomerSupplierLink.objects.filter(customer=customer, supplier=supplier).exists())

        response = self.client.get('/api/v1/merge/pair-customer-supplier/')
        self.assertEqual(len(response.data), 1)

        response = self.client.post('/api/v1/merge/pair-customer-supplier/',
                                    {'customer_id': customer.id, 'unlink': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(CustomerSupplierLink.objects.exists())

    def test_settle_pair_offsets_smaller_balance(self):
        customer = TestDataFactory.create_customer()
        supplier = TestDataFactory.create_supplier()
        receipt = TestDataFactory.create_receipt(customer=customer, quantity='2', unit_price='50', user=self.user)
        entry = TestDataFactory.create_purchase(supplier=supplier, total_cost=Decimal('60.00'))
        link = CustomerSupplierLink.objects.create(customer=customer, supplier=supplier)

        response = self.client.post('/api/v1/merge/settle-pairs/', {'link_id': link.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        result = response.data['applied'][0]
        self.assertEqual(result['settled_amount'], Decimal('60.00'))

        receipt.refresh_from_db()
        entry.refresh_from_db()
        self.assertEqual(receipt.amount_paid, Decimal('60.00'))
        self.assertFalse(receipt.is_paid)
        self.assertTrue(entry.is_paid)
        self.assertEqual(Payment.objects.filter(reference=f'pair-settle-{link.id}').count(), 2)
        self.assertEqual(customer_outstanding_map()[customer.id], Decimal('40.00'))

    def test_settle_unknown_pair(self):
        response = self.client.post('/api/v1/merge/settle-pairs/', {'link_id': 12345}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_settle_with_nothing_owed(self):
        customer = TestDataFactory.create_customer()
        supplier = TestDataFactory.create_supplier()
        CustomerSupplierLink.objects.create(customer=customer, supplier=supplier)
        response = self.client.post('/api/v1/merge/settle-pairs/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['applied'][0]['settled_amount'], Decimal('0.00'))
        self.assertFalse(Payment.objects.exists())
        self.assertFalse(Receipt.objects.exists())
