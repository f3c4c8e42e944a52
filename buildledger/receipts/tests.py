"""
Test suite for receipts module
Tests: Numbering, totals and VAT, stock effects, edits, loading fees, invoice preview, worker access
"""
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework import status

from buildledger.catalog.models import ProductComponent
from buildledger.catalog.utils import DEBRIS_NAME, find_product_by_name
from buildledger.core.models import AuditLog, User
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildledger.inventory.models import StockMovement
from buildledger.parties.models import Customer
from buildledger.payments.models import Payment
from buildledger.payments.services import record_payment
from .models import Receipt, ReceiptItemComponent
from .services import increment_receipt_number, next_receipt_number


class ReceiptNumberTests(TestCase):
    """Test receipt number sequencing"""

    def test_increment_keeps_format(self):
        self.assertEqual(increment_receipt_number('41', '1'), '42')
        self.assertEqual(increment_receipt_number('007', '1'), '008')
        self.assertEqual(increment_receipt_number('T99', 'T1'), 'T100')
        self.assertEqual(increment_receipt_number('A-09-x', '1'), 'A-10-x')
        self.assertEqual(increment_receipt_number('', 'T1'), 'T1')
        self.assertEqual(increment_receipt_number('abc', '1'), '1')

    def test_sequences_are_separate(self):
        self.assertEqual(next_receipt_number(Receipt.TYPE_NORMAL), '1')
        self.assertEqual(next_receipt_number(Receipt.TYPE_TVA), 'T1')

        TestDataFactory.create_receipt(customer=TestDataFactory.create_customer())
        tva_customer = TestDataFactory.create_customer(receipt_type=Customer.RECEIPT_TYPE_TVA)
        TestDataFactory.create_receipt(customer=tva_customer)

        self.assertEqual(next_receipt_number(Receipt.TYPE_NORMAL), '2')
        self.assertEqual(next_receipt_number(Receipt.TYPE_TVA), 'T2')


@override_settings(TVA_RATE='0.11')
class ReceiptCreateTests(TestCase):
    """Test receipt creation through the API"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer(name='Builder Co')
        self.product = find_product_by_name('gravel')
        self.product.stock_qty = Decimal('100')
        self.product.save(update_fields=['stock_qty'])

    def _payload(self, **extra):
        data = {
            'customer_id': self.customer.id,
            'items': [{'product_id': self.product.id, 'quantity': '4', 'unit_price': '25'}],
        }
        data.update(extra)
        return data

    def test_create_receipt(self):
        response = self.client.post('/api/v1/receipts/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['receipt_no'], '1')
        self.assertEqual(response.data['total'], Decimal('100.00'))
        self.assertFalse(response.data['is_paid'])
        self.assertEqual(response.data['customer_name'], 'Builder Co')

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, Decimal('96.000'))
        movement = StockMovement.objects.get(receipt_id=response.data['id'])
        self.assertEqual(movement.type, StockMovement.TYPE_SALE)
        self.assertEqual(movement.quantity, Decimal('-4.000'))
        self.assertTrue(AuditLog.objects.filter(action='RECEIPT_CREATED').exists())

    def test_paid_receipt(self):
        response = self.client.post('/api/v1/receipts/', self._payload(is_paid=True), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_paid'])
        self.assertEqual(response.data['amount_paid'], Decimal('100.00'))

    def test_tva_customer_adds_vat(self):
        customer = TestDataFactory.create_customer(receipt_type=Customer.RECEIPT_TYPE_TVA)
        response = self.client.post('/api/v1/receipts/', self._payload(customer_id=customer.id), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['receipt_no'], 'T1')
        self.assertEqual(response.data['type'], Receipt.TYPE_TVA)
        self.assertEqual(response.data['total'], Decimal('111.00'))

    def test_customer_type_locks_number_prefix(self):
        response = self.client.post('/api/v1/receipts/', self._payload(receipt_no='T1'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_out_of_sequence_number(self):
        response = self.client.post('/api/v1/receipts/', self._payload(receipt_no='5'), format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['expected_next'], '1')

    def test_expected_number_accepted(self):
        response = self.client.post('/api/v1/receipts/', self._payload(receipt_no='1'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_walk_in_must_pay(self):
        data = self._payload(customer_id=None, walk_in_name='Passer-by')
        response = self.client.post('/api/v1/receipts/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        data['is_paid'] = True
        response = self.client.post('/api/v1/receipts/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['walk_in_name'], 'Passer-by')

    def test_customer_or_walk_in_required(self):
        response = self.client.post('/api/v1/receipts/', self._payload(customer_id=None), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_items_required(self):
        response = self.client.post('/api/v1/receipts/', self._payload(items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_product(self):
        data = self._payload(items=[{'product_id': 99999, 'quantity': '1'}])
        response = self.client.post('/api/v1/receipts/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_job_site_must_belong_to_customer(self):
        other_site = TestDataFactory.create_job_site(TestDataFactory.create_customer())
        response = self.client.post('/api/v1/receipts/', self._payload(job_site_id=other_site.id), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unpriced_receipt_has_zero_total(self):
        data = self._payload(items=[{'product_id': self.product.id, 'quantity': '3'}])
        response = self.client.post('/api/v1/receipts/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total'], Decimal('0.00'))

    def test_composite_moves_component_stock(self):
        sand = TestDataFactory.create_product(name='Sand A', stock_qty=Decimal('50'))
        stone = TestDataFactory.create_product(name='Stone A', stock_qty=Decimal('50'))
        mix = TestDataFactory.create_product(name='Mix A', is_composite=True, stock_qty=Decimal('0'))
        ProductComponent.objects.create(parent=mix, component=sand, quantity=Decimal('0.6'))
        ProductComponent.objects.create(parent=mix, component=stone, quantity=Decimal('0.4'))

        data = self._payload(items=[{'product_id': mix.id, 'quantity': '10', 'unit_price': '20'}])
        response = self.client.post('/api/v1/receipts/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        sand.refresh_from_db()
        stone.refresh_from_db()
        mix.refresh_from_db()
        self.assertEqual(sand.stock_qty, Decimal('44.000'))
        self.assertEqual(stone.stock_qty, Decimal('46.000'))
        self.assertEqual(mix.stock_qty, Decimal('0.000'))
        self.assertEqual(ReceiptItemComponent.objects.count(), 2)
        self.assertEqual(len(response.data['items'][0]['components']), 2)

    def test_debris_receipt_adds_stock(self):
        debris = find_product_by_name(DEBRIS_NAME)
        self.assertEqual(debris.stock_qty, Decimal('0.000'))
        data = self._payload(items=[{'product_id': debris.id, 'quantity': '6', 'unit_price': '5'}])
        response = self.client.post('/api/v1/receipts/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        debris.refresh_from_db()
        self.assertEqual(debris.stock_qty, Decimal('6.000'))

    def test_next_number_endpoint(self):
        TestDataFactory.create_receipt(customer=self.customer)
        response = self.client.get('/api/v1/receipts/next-number/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'normal': '2', 'tva': 'T1'})


class ReceiptEditTests(TestCase):
    """Test receipt edits, deletion and number overrides"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer()
        self.product = TestDataFactory.create_product(stock_qty=Decimal('100'))
        self.receipt = TestDataFactory.create_receipt(customer=self.customer, product=self.product, user=self.user)

    def test_replace_items_moves_stock(self):
        response = self.client.put(f'/api/v1/receipts/{self.receipt.id}/', {
            'items': [{'product_id': self.product.id, 'quantity': '5', 'unit_price': '10'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], Decimal('50.00'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, Decimal('95.000'))
        self.assertEqual(StockMovement.objects.filter(receipt=self.receipt).count(), 1)

    def test_amount_paid_cannot_drop_below_allocations(self):
        record_payment(Payment.TYPE_CUSTOMER_PAYMENT, Decimal('60'), customer=self.customer)
        response = self.client.put(f'/api/v1/receipts/{self.receipt.id}/', {'amount_paid': '20'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_paid_through_amount(self):
        response = self.client.put(f'/api/v1/receipts/{self.receipt.id}/', {'amount_paid': '100'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_paid'])

    def test_is_paid_false_resets_to_allocations(self):
        self.client.put(f'/api/v1/receipts/{self.receipt.id}/', {'amount_paid': '100'}, format='json')
        response = self.client.put(f'/api/v1/receipts/{self.receipt.id}/', {'is_paid': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_paid'])
        self.assertEqual(response.data['amount_paid'], Decimal('0.00'))

    def test_invalid_type(self):
        response = self.client.put(f'/api/v1/receipts/{self.receipt.id}/', {'type': 'OTHER'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_reverts_stock_and_payments(self):
        payment = record_payment(Payment.TYPE_CUSTOMER_PAYMENT, Decimal('40'), customer=self.customer)
        response = self.client.delete(f'/api/v1/receipts/{self.receipt.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Receipt.objects.filter(pk=self.receipt.id).exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, Decimal('100.000'))
        self.assertFalse(payment.receipt_links.exists())
        self.assertTrue(Payment.objects.filter(pk=payment.id).exists())

    def test_number_override_admin_only(self):
        response = self.client.patch(f'/api/v1/receipts/{self.receipt.id}/number/', {'receipt_no': '900'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['receipt_no'], '900')

        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.client.authenticate_user(manager)
        response = self.client.patch(f'/api/v1/receipts/{self.receipt.id}/number/', {'receipt_no': '901'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_number_override_conflict(self):
        other = TestDataFactory.create_receipt(customer=self.customer)
        response = self.client.patch(f'/api/v1/receipts/{self.receipt.id}/number/',
                                     {'receipt_no': other.receipt_no}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_paginated_filters(self):
        TestDataFactory.create_receipt(customer=self.customer, is_paid=True)
        response = self.client.get('/api/v1/receipts/paginated/?is_paid=false&limit=10')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_items'], 1)
        self.assertEqual(response.data['items'][0]['id'], self.receipt.id)

        response = self.client.get('/api/v1/receipts/paginated/?is_paid=maybe')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_paginated_search_and_sort(self):
        TestDataFactory.create_receipt(customer=self.customer, unit_price='80')
        response = self.client.get('/api/v1/receipts/paginated/?sort_field=total&sort_order=desc')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['total'], Decimal('160.00'))

        response = self.client.get(f'/api/v1/receipts/paginated/?search={self.customer.name}')
        self.assertEqual(response.data['total_items'], 2)

    def test_repair_balances_command(self):
        Receipt.objects.filter(pk=self.receipt.id).update(amount_paid=Decimal('150'), is_paid=False)
        out = StringIO()
        call_command('repair_receipt_balances', '--dry-run', stdout=out)
        self.assertIn('dry run', out.getvalue())
        self.receipt.refresh_from_db()
        self.assertFalse(self.receipt.is_paid)

        call_command('repair_receipt_balances', stdout=StringIO())
        self.receipt.refresh_from_db()
        self.assertEqual(self.receipt.amount_paid, Decimal('100.00'))
        self.assertTrue(self.receipt.is_paid)


class LoadingFeeTests(TestCase):
    """Test tehmil / tenzil fee tracking"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer()
        self.product = TestDataFactory.create_product(tehmil_fee=Decimal('2'), tenzil_fee=Decimal('3'))
        self.receipt = TestDataFactory.create_receipt(
            customer=self.customer, product=self.product, quantity='5', tehmil=True, tenzil=True,
            date='2026-09-02T10:00:00',
        )

    def test_single_fee_payment(self):
        response = self.client.post(f'/api/v1/receipts/{self.receipt.id}/tehmil-payment/',
                                    {'amount': '10', 'quantity': '5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['note'], 'Quantity: 5')
        self.receipt.refresh_from_db()
        self.assertIsNotNone(self.receipt.tehmil_paid_at)
        self.assertEqual(self.receipt.tehmil_payment_amount, Decimal('10.00'))

        response = self.client.post(f'/api/v1/receipts/{self.receipt.id}/tehmil-payment/',
                                    {'amount': '10'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_fee_payment_requires_flag(self):
        plain = TestDataFactory.create_receipt(customer=self.customer)
        response = self.client.post(f'/api/v1/receipts/{plain.id}/tenzil-payment/', {'amount': '1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_flags_summary(self):
        response = self.client.get('/api/v1/receipts/flags-summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['tehmil_due_total'], Decimal('10.00'))
        self.assertEqual(response.data['summary']['tenzil_due_total'], Decimal('15.00'))
        self.assertEqual(response.data['tehmil_due'][0]['fee_total'], Decimal('10.00'))

    def test_bulk_payment(self):
        data = {'type': 'tenzil', 'start_date': '2026-09-01', 'end_date': '2026-09-30', 'amount': '20'}
        response = self.client.post('/api/v1/receipts/flags/bulk-payment/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['receipt_count'], 1)
        self.assertEqual(response.data['total_outstanding'], Decimal('15.00'))
        self.assertEqual(response.data['overpayment'], Decimal('5.00'))
        self.receipt.refresh_from_db()
        self.assertEqual(self.receipt.tenzil_payment_amount, Decimal('15.00'))

    def test_bulk_payment_must_cover_fees(self):
        data = {'type': 'TEHMIL', 'start_date': '2026-09-01', 'end_date': '2026-09-30', 'amount': '5'}
        response = self.client.post('/api/v1/receipts/flags/bulk-payment/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_payment_empty_range(self):
        data = {'type': 'TEHMIL', 'start_date': '2025-01-01', 'end_date': '2025-01-31', 'amount': '5'}
        response = self.client.post('/api/v1/receipts/flags/bulk-payment/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_weekly_summary(self):
        response = self.client.get('/api/v1/receipts/tehmil-tenzil/weekly-summary/'
                                   '?start=2026-09-01&end=2026-09-07')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], Decimal('25.00'))
        self.assertEqual(len(response.data['receipts']), 1)


@override_settings(TVA_RATE='0.11')
class InvoicePreviewTests(TestCase):
    """Test the invoice builder preview"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer()
        self.first = TestDataFactory.create_receipt(customer=self.customer, date='2026-09-01T08:00:00')
        self.second = TestDataFactory.create_receipt(customer=self.customer, date='2026-09-02T08:00:00')
        self.url = f'/api/v1/receipts/customers/{self.customer.id}/invoice-preview/'

    def test_preview_by_ids(self):
        response = self.client.post(self.url, {'receipt_ids': [self.first.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        invoice = response.data['invoice']
        self.assertEqual(invoice['receipt_count'], 1)
        self.assertEqual(invoice['total'], Decimal('100.00'))
        self.assertEqual(invoice['old_balance'], Decimal('100.00'))

    def test_preview_by_amount_takes_oldest_first(self):
        response = self.client.post(self.url, {'amount': '50'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['invoice']['receipts'][0]['id'], self.first.id)
        self.assertEqual(response.data['invoice']['receipt_count'], 1)

    def test_preview_needs_ids_or_amount(self):
        response = self.client.post(self.url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_price_overrides_reprice_lines(self):
        item = self.first.items.first()
        response = self.client.post(self.url, {
            'receipt_ids': [self.first.id],
            'price_overrides': [{'receipt_id': self.first.id, 'items': [{'item_id': item.id, 'unit_price': '70'}]}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['invoice']['total'], Decimal('140.00'))
        self.assertTrue(AuditLog.objects.filter(action='RECEIPT_PRICING_UPDATED').exists())

    def test_cannot_mix_receipt_types(self):
        Receipt.objects.filter(pk=self.second.id).update(type=Receipt.TYPE_TVA)
        response = self.client.post(self.url, {'receipt_ids': [self.first.id, self.second.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_tva_preview_splits_vat(self):
        customer = TestDataFactory.create_customer(receipt_type=Customer.RECEIPT_TYPE_TVA)
        receipt = TestDataFactory.create_receipt(customer=customer)
        response = self.client.post(f'/api/v1/receipts/customers/{customer.id}/invoice-preview/',
                                    {'receipt_ids': [receipt.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        invoice = response.data['invoice']
        self.assertEqual(invoice['subtotal'], Decimal('100.00'))
        self.assertEqual(invoice['vat_amount'], Decimal('11.00'))
        self.assertEqual(invoice['total'], Decimal('111.00'))


class WorkerReceiptTests(TestCase):
    """Test the read-only worker receipt endpoints"""

    def setUp(self):
        self.worker = TestDataFactory.create_user(role=User.ROLE_WORKER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.worker)
        self.receipt = TestDataFactory.create_receipt(customer=TestDataFactory.create_customer())

    def test_worker_prints_receipt(self):
        response = self.client.get(f'/api/v1/worker/receipts/{self.receipt.id}/print/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['receipt_no'], self.receipt.receipt_no)

    def test_worker_finds_by_number(self):
        response = self.client.get(f'/api/v1/worker/receipts/by-number/{self.receipt.receipt_no}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.receipt.id)

    def test_worker_is_read_only(self):
        response = self.client.post(f'/api/v1/worker/receipts/{self.receipt.id}/print-log/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_manager_logs_print(self):
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.client.authenticate_user(manager)
        response = self.client.post(f'/api/v1/worker/receipts/{self.receipt.id}/print-log/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(AuditLog.objects.filter(action='RECEIPT_PRINTED', entity_id=self.receipt.id).exists())

    def test_worker_without_print_permission(self):
        worker = TestDataFactory.create_user(role=User.ROLE_WORKER, permission_overrides={'receipts:print': False})
        self.client.authenticate_user(worker)
        response = self.client.get(f'/api/v1/worker/receipts/{self.receipt.id}/print/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

