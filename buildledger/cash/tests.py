"""
Test suite for cash module
Tests: Cash summary, manual entries, owner draws and custody handoffs
"""
from decimal import Decimal

from django.test import TestCase, override_settings
from rest_framework import status

from buildledger.core.models import User
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildledger.payments.models import Payment
from buildledger.payments.services import record_payment
from .models import CashEntry, CashCustodyEntry
from .services import ensure_custody_holders, manual_cash_total


class CashEntryTests(TestCase):
    """Test manual cash entries and the cash summary"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _entry(self, entry_type, amount):
        return self.client.post('/api/v1/cash/entries/', {'type': entry_type, 'amount': amount}, format='json')

    def test_withdrawals_are_stored_negative(self):
        response = self._entry('deposit', '500')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['entry']['amount'], Decimal('500.00'))

        response = self._entry('WITHDRAW', '120')
        self.assertEqual(response.data['entry']['amount'], Decimal('-120.00'))
        self.assertEqual(manual_cash_total(), Decimal('380.00'))

    def test_owner_draw_books_a_payment(self):
        self._entry('DEPOSIT', '500')
        response = self._entry('OWNER_DRAW', '50')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        payment = Payment.objects.get(type=Payment.TYPE_OWNER_DRAW)
        self.assertEqual(payment.amount, Decimal('50.00'))
        self.assertEqual(payment.reference, f"cash-entry-{response.data['entry']['id']}")
        self.assertEqual(manual_cash_total(), Decimal('500.00'))

        response = self.client.get('/api/v1/cash/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['cash_on_hand'], Decimal('450.00'))
        self.assertEqual(response.data['paid_out'], Decimal('50.00'))

    def test_invalid_entries(self):
        self.assertEqual(self._entry('DEPOSIT', '0').status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._entry('BRIBE', '10').status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(CashEntry.objects.exists())

    def test_summary_includes_receivables_and_payables(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_receipt(customer=customer)
        TestDataFactory.create_purchase(total_cost=Decimal('80'))
        record_payment(Payment.TYPE_CUSTOMER_PAYMENT, Decimal('30'), customer=customer)

        response = self.client.get('/api/v1/cash/summary/')
        self.assertEqual(response.data['paid_in'], Decimal('30.00'))
        self.assertEqual(response.data['receivables'], Decimal('70.00'))
        self.assertEqual(response.data['payables'], Decimal('80.00'))
        self.assertEqual(response.data['cash_on_hand'], Decimal('30.00'))

    def test_list_entries(self):
        self._entry('DEPOSIT', '10')
        self._entry('DEPOSIT', '20')
        response = self.client.get('/api/v1/cash/entries/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['entries']), 2)
        self.assertEqual(response.data['entries'][0]['created_by_email'], self.user.email)

    def test_manager_without_cash_permission(self):
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER, permission_overrides={'cash:manage': False})
        self.client.authenticate_user(manager)
        response = self.client.get('/api/v1/cash/summary/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


@override_settings(CASH_CUSTODY_HOLDERS=['ahmad kadoura', 'ahmad yasin', 'bassam'], CASH_OWNER_NAME='bassam')
class CashCustodyTests(TestCase):
    """Test cash custody between the configured holders"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        holders = ensure_custody_holders()
        self.owner = holders['bassam']
        self.kadoura = holders['ahmad kadoura']
        self.yasin = holders['ahmad yasin']

    def _handoff(self, sender, receiver, amount):
        return self.client.post('/api/v1/cash/custody/', {
            'from_employee_id': sender.id, 'to_employee_id': receiver.id, 'amount': amount,
        }, format='json')

    def test_holders_are_created_once(self):
        self.assertEqual(self.kadoura.name, 'Ahmad Kadoura')
        again = ensure_custody_holders()
        self.assertEqual(again['ahmad kadoura'].id, self.kadoura.id)

    def test_custody_chain(self):
        response = self._handoff(self.owner, self.kadoura, '300')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['type'], CashCustodyEntry.TYPE_HANDOFF)
        self.assertEqual(CashEntry.objects.get().amount, Decimal('300.00'))

        self.assertEqual(self._handoff(self.kadoura, self.yasin, '100').status_code, status.HTTP_201_CREATED)

        response = self._handoff(self.yasin, self.owner, '100')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['type'], CashCustodyEntry.TYPE_RETURN)
        payment = Payment.objects.get(type=Payment.TYPE_OWNER_DRAW)
        self.assertEqual(payment.reference, f"custody-{response.data['id']}")

        response = self.client.get('/api/v1/cash/custody/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['entries']), 3)
        self.assertEqual(len(response.data['employees']), 3)
        outstanding = {row['employee']['id']: row['amount'] for row in response.data['outstanding']}
        self.assertEqual(outstanding[self.kadoura.id], Decimal('200.00'))
        self.assertNotIn(self.yasin.id, outstanding)

    def test_holder_cannot_pass_more_than_carried(self):
        response = self._handoff(self.kadoura, self.yasin, '10')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(CashCustodyEntry.objects.exists())

    def test_same_employee_rejected(self):
        response = self._handoff(self.kadoura, self.kadoura, '10')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_holders_allowed(self):
        stranger = TestDataFactory.create_employee(name='Stranger')
        response = self._handoff(self.owner, stranger, '10')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Ahmad Kadoura', response.data['error'])
