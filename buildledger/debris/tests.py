"""
Test suite for debris module
Tests: Drop-off intake, edits, paid removals and their reversal
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from buildledger.catalog.utils import ensure_product_catalog, find_product_by_name
from buildledger.core.models import User
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildledger.payments.models import Payment
from .models import DebrisEntry


class DebrisAPITests(TestCase):
    """Test debris endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        ensure_product_catalog()
        self.customer = TestDataFactory.create_customer()
        self.supplier = TestDataFactory.create_supplier(name='Hauler')

    def _debris_stock(self):
        return find_product_by_name('debris').stock_qty

    def _create(self, **extra):
        data = {'customer_id': self.customer.id, 'volume': '10', 'dumping_fee': '30'}
        data.update(extra)
        return self.client.post('/api/v1/debris/', data, format='json')

    def test_create_adds_debris_stock(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], DebrisEntry.STATUS_PENDING)
        self.assertFalse(response.data['is_removal_paid'])
        self.assertEqual(self._debris_stock(), Decimal('10.000'))

    def test_create_requires_volume(self):
        response = self._create(volume='0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_requires_a_party(self):
        response = self._create(customer_id=None)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self._create(customer_id=None, walk_in_name='Neighbour')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_update_volume_moves_stock(self):
        entry_id = self._create().data['id']
        response = self.client.put(f'/api/v1/debris/{entry_id}/', {'volume': '4'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self._debris_stock(), Decimal('4.000'))

    def test_mark_paid_and_unpaid(self):
        entry_id = self._create().data['id']
        response = self.client.post(f'/api/v1/debris/{entry_id}/mark-paid/',
                                    {'supplier_id': self.supplier.id, 'amount': '75'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], DebrisEntry.STATUS_REMOVED)
        self.assertEqual(response.data['removal_cost'], Decimal('75.00'))
        self.assertEqual(response.data['supplier'], self.supplier.id)
        self.assertEqual(self._debris_stock(), Decimal('0.000'))
        payment = Payment.objects.get(type=Payment.TYPE_DEBRIS_REMOVAL)
        self.assertEqual(payment.amount, Decimal('75.00'))

        response = self.client.post(f'/api/v1/debris/{entry_id}/mark-paid/',
                                    {'supplier_id': self.supplier.id, 'amount': '75'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/debris/{entry_id}/mark-unpaid/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], DebrisEntry.STATUS_PENDING)
        self.assertEqual(response.data['removal_cost'], Decimal('75.00'))
        self.assertEqual(self._debris_stock(), Decimal('10.000'))
        self.assertFalse(Payment.objects.exists())

    def test_mark_paid_uses_stored_cost(self):
        entry_id = self._create(supplier_id=self.supplier.id, removal_cost='60').data['id']
        response = self.client.post(f'/api/v1/debris/{entry_id}/mark-paid/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Payment.objects.get().amount, Decimal('60.00'))

    def test_mark_paid_requires_supplier(self):
        entry_id = self._create().data['id']
        response = self.client.post(f'/api/v1/debris/{entry_id}/mark-paid/', {'amount': '10'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_paid_removal_cannot_be_edited(self):
        entry_id = self._create().data['id']
        self.client.post(f'/api/v1/debris/{entry_id}/mark-paid/',
                         {'supplier_id': self.supplier.id, 'amount': '20'}, format='json')
        response = self.client.put(f'/api/v1/debris/{entry_id}/', {'volume': '2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_reverts_everything(self):
        entry_id = self._create().data['id']
        self.client.post(f'/api/v1/debris/{entry_id}/mark-paid/',
                         {'supplier_id': self.supplier.id, 'amount': '20'}, format='json')
        response = self.client.delete(f'/api/v1/debris/{entry_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self._debris_stock(), Decimal('0.000'))
        self.assertFalse(Payment.objects.exists())
        self.assertFalse(DebrisEntry.objects.exists())

    def test_list_filters(self):
        first = self._create().data['id']
        self._create()
        self.client.post(f'/api/v1/debris/{first}/mark-paid/',
                         {'supplier_id': self.supplier.id, 'amount': '20'}, format='json')

        response = self.client.get('/api/v1/debris/?paid=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['id'] for item in response.data], [first])

        response = self.client.get('/api/v1/debris/?status=pending')
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/debris/?status=lost')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_without_edit_permission(self):
        entry_id = self._create().data['id']
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER, permission_overrides={'debris:edit': False})
        self.client.authenticate_user(manager)
        response = self.client.delete(f'/api/v1/debris/{entry_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
