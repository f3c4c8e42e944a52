"""
Test suite for the payroll module
Tests: Employees, piece rates, payroll entries with helpers, payroll runs
"""
from decimal import Decimal

from django.test import TestCase, override_settings
from rest_framework import status

from buildledger.cash.services import ensure_custody_holders
from buildledger.core.models import User
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildledger.payments.models import Payment
from .models import Employee, ManufacturingPieceRate, PayrollEntry, PayrollRun


class EmployeeAPITests(TestCase):
    """Test employee endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_salary_employee(self):
        data = {'name': 'Nabil', 'role': 'driver', 'pay_type': 'salary',
                'salary_amount': '600', 'salary_frequency': 'monthly'}
        response = self.client.post('/api/v1/employees/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role'], Employee.ROLE_DRIVER)
        self.assertEqual(response.data['salary_frequency'], Employee.FREQUENCY_MONTHLY)

    def test_salary_employee_requires_amount(self):
        data = {'name': 'Nabil', 'role': 'DRIVER', 'pay_type': 'SALARY', 'salary_frequency': 'MONTHLY'}
        response = self.client.post('/api/v1/employees/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_piecework_employee_has_no_salary(self):
        data = {'name': 'Ali', 'role': 'MANUFACTURING', 'pay_type': 'PIECEWORK', 'salary_amount': '100'}
        response = self.client.post('/api/v1/employees/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['salary_amount'])

    def test_invalid_role(self):
        data = {'name': 'X', 'role': 'PILOT', 'pay_type': 'PIECEWORK'}
        response = self.client.post('/api/v1/employees/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid role')

    def test_update_employee(self):
        employee = TestDataFactory.create_employee(salary_amount=Decimal('500'))
        response = self.client.put(f'/api/v1/employees/{employee.id}/', {'phone': '03 111'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        employee.refresh_from_db()
        self.assertEqual(employee.phone, '03 111')

    def test_delete_without_history(self):
        employee = TestDataFactory.create_employee()
        response = self.client.delete(f'/api/v1/employees/{employee.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Employee deleted')
        self.assertFalse(Employee.objects.filter(pk=employee.id).exists())

    def test_delete_with_history_archives(self):
        employee = TestDataFactory.create_employee(salary_amount=Decimal('500'))
        self.client.post('/api/v1/payroll/', {'employee_id': employee.id}, format='json')
        response = self.client.delete(f'/api/v1/employees/{employee.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Employee archived')
        employee.refresh_from_db()
        self.assertFalse(employee.active)

    @override_settings(CASH_CUSTODY_HOLDERS=['ahmad kadoura', 'bassam'], CASH_OWNER_NAME='bassam')
    def test_delete_custody_holder_archives(self):
        holders = ensure_custody_holders()
        holder = holders['ahmad kadoura']
        response = self.client.post('/api/v1/cash/custody/', {
            'from_employee_id': holders['bassam'].id, 'to_employee_id': holder.id, 'amount': '10',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.delete(f'/api/v1/employees/{holder.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Employee archived')
        holder.refresh_from_db()
        self.assertFalse(holder.active)

    def test_worker_cannot_list_employees(self):
        worker = TestDataFactory.create_user(role=User.ROLE_WORKER)
        self.client.authenticate_user(worker)
        response = self.client.get('/api/v1/employees/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class PieceRateTests(TestCase):
    """Test manufacturing piece rates"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.block = TestDataFactory.create_product(name='Block 15', unit='unit', is_manufactured=True)
        self.maker = TestDataFactory.create_employee(role=Employee.ROLE_MANUFACTURING, pay_type=Employee.PAY_PIECEWORK)

    def test_create_piece_rate(self):
        response = self.client.post(f'/api/v1/employees/{self.maker.id}/piece-rates/',
                                    {'product_id': self.block.id, 'rate': '0.12', 'helper_rate': '0.05'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['product_name'], 'Block 15')

    def test_duplicate_piece_rate(self):
        ManufacturingPieceRate.objects.create(employee=self.maker, product=self.block, rate=Decimal('0.1'))
        response = self.client.post(f'/api/v1/employees/{self.maker.id}/piece-rates/',
                                    {'product_id': self.block.id, 'rate': '0.2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_piece_rate_only_for_manufacturing_staff(self):
        driver = TestDataFactory.create_employee(role=Employee.ROLE_DRIVER)
        response = self.client.post(f'/api/v1/employees/{driver.id}/piece-rates/',
                                    {'product_id': self.block.id, 'rate': '0.2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_piece_rate_needs_manufactured_product(self):
        sand = TestDataFactory.create_product(name='Loose sand')
        response = self.client.post(f'/api/v1/employees/{self.maker.id}/piece-rates/',
                                    {'product_id': sand.id, 'rate': '0.2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_and_delete_piece_rate(self):
        rate = ManufacturingPieceRate.objects.create(employee=self.maker, product=self.block, rate=Decimal('0.1'))
        response = self.client.put(f'/api/v1/employees/piece-rates/{rate.id}/',
                                   {'rate': '0.15', 'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rate.refresh_from_db()
        self.assertEqual(rate.rate, Decimal('0.1500'))
        self.assertFalse(rate.is_active)

        response = self.client.delete(f'/api/v1/employees/piece-rates/{rate.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(ManufacturingPieceRate.objects.filter(pk=rate.id).exists())


class PayrollEntryTests(TestCase):
    """Test payroll entry creation"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.block = TestDataFactory.create_product(
            name='Block 20', unit='unit', is_manufactured=True,
            piecework_rate=Decimal('0.10'), helper_piecework_rate=Decimal('0.04'),
        )
        self.maker = TestDataFactory.create_employee(role=Employee.ROLE_MANUFACTURING, pay_type=Employee.PAY_PIECEWORK)
        self.helper = TestDataFactory.create_employee(role=Employee.ROLE_MANUFACTURING, pay_type=Employee.PAY_PIECEWORK)

    def test_salary_entry_defaults_to_salary(self):
        employee = TestDataFactory.create_employee(salary_amount=Decimal('450'),
                                                   salary_frequency=Employee.FREQUENCY_MONTHLY)
        response = self.client.post('/api/v1/payroll/', {'employee_id': employee.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['amount'], Decimal('450.00'))
        self.assertIsNone(response.data['payment'])

    def test_salary_entry_with_payment(self):
        employee = TestDataFactory.create_employee(salary_amount=Decimal('450'))
        response = self.client.post('/api/v1/payroll/', {
            'employee_id': employee.id, 'amount': '300', 'create_payment': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        payment = Payment.objects.get(pk=response.data['payment'])
        self.assertEqual(payment.type, Payment.TYPE_PAYROLL_SALARY)
        self.assertEqual(payment.amount, Decimal('300.00'))

    def test_type_must_match_pay_type(self):
        employee = TestDataFactory.create_employee(salary_amount=Decimal('450'))
        response = self.client.post('/api/v1/payroll/', {'employee_id': employee.id, 'type': 'PIECEWORK'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_piecework_uses_employee_rate(self):
        ManufacturingPieceRate.objects.create(employee=self.maker, product=self.block, rate=Decimal('0.12'))
        response = self.client.post('/api/v1/payroll/', {
            'employee_id': self.maker.id, 'quantity': '1000', 'stone_product_id': self.block.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['amount'], Decimal('120.00'))

    def test_piecework_falls_back_to_product_rate(self):
        response = self.client.post('/api/v1/payroll/', {
            'employee_id': self.maker.id, 'quantity': '500', 'stone_product_id': self.block.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['amount'], Decimal('50.00'))

    def test_piecework_requires_quantity(self):
        response = self.client.post('/api/v1/payroll/', {
            'employee_id': self.maker.id, 'stone_product_id': self.block.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_helper_gets_separate_entry(self):
        response = self.client.post('/api/v1/payroll/', {
            'employee_id': self.maker.id, 'quantity': '1000', 'stone_product_id': self.block.id,
            'helper_employee_id': self.helper.id, 'create_payment': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        helper_entry = PayrollEntry.objects.get(employee=self.helper)
        self.assertEqual(helper_entry.amount, Decimal('40.00'))
        self.assertEqual(helper_entry.payment.type, Payment.TYPE_PAYROLL_PIECEWORK)
        self.assertEqual(Payment.objects.count(), 2)

    def test_helper_cannot_be_primary(self):
        response = self.client.post('/api/v1/payroll/', {
            'employee_id': self.maker.id, 'quantity': '10', 'stone_product_id': self.block.id,
            'helper_employee_id': self.maker.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_paginated_entries(self):
        employee = TestDataFactory.create_employee(salary_amount=Decimal('100'))
        for _ in range(3):
            self.client.post('/api/v1/payroll/', {'employee_id': employee.id}, format='json')
        response = self.client.get('/api/v1/payroll/paginated/?limit=2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 2)
        self.assertIsNotNone(response.data['next_cursor'])


class PayrollRunTests(TestCase):
    """Test payroll run lifecycle"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.monthly = TestDataFactory.create_employee(
            name='Monthly', salary_amount=Decimal('800'), salary_frequency=Employee.FREQUENCY_MONTHLY)
        self.weekly = TestDataFactory.create_employee(
            name='Weekly', salary_amount=Decimal('150'), salary_frequency=Employee.FREQUENCY_WEEKLY)
        self.period = {'period_start': '2026-09-01', 'period_end': '2026-09-30'}

    def _create_run(self, **extra):
        data = {'frequency': 'MONTHLY', 'auto_generate': True}
        data.update(self.period)
        data.update(extra)
        return self.client.post('/api/v1/payroll/runs/', data, format='json')

    def test_auto_generated_run(self):
        response = self._create_run()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], PayrollRun.STATUS_DRAFT)
        self.assertEqual(len(response.data['entries']), 1)
        self.assertEqual(response.data['total_net'], Decimal('800.00'))

    def test_overlapping_run_conflicts(self):
        self._create_run()
        response = self._create_run(period_start='2026-09-15', period_end='2026-10-15')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('conflicting_run_id', response.data)

    def test_run_without_entries_is_rolled_back(self):
        response = self._create_run(auto_generate=False)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(PayrollRun.objects.exists())

    def test_period_end_before_start(self):
        response = self._create_run(period_start='2026-09-30', period_end='2026-09-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_finalize_and_debit(self):
        run_id = self._create_run().data['id']
        response = self.client.post(f'/api/v1/payroll/runs/{run_id}/finalize/', {'notes': 'September'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], PayrollRun.STATUS_FINALIZED)

        response = self.client.post(f'/api/v1/payroll/runs/{run_id}/debit/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], PayrollRun.STATUS_PAID)
        payment = Payment.objects.get(payroll_run_id=run_id)
        self.assertEqual(payment.type, Payment.TYPE_PAYROLL_SALARY)
        self.assertEqual(payment.amount, Decimal('800.00'))
        self.assertEqual(payment.reference, f'payroll-run-{run_id}')
        self.assertEqual(PayrollEntry.objects.get(payroll_run_id=run_id).payment_id, payment.id)

    def test_debit_twice(self):
        run_id = self._create_run().data['id']
        self.client.post(f'/api/v1/payroll/runs/{run_id}/debit/')
        response = self.client.post(f'/api/v1/payroll/runs/{run_id}/debit/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Run already debited')

    def test_list_runs_filters(self):
        self._create_run()
        response = self.client.get('/api/v1/payroll/runs/?frequency=monthly')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['entry_count'], 1)

        response = self.client.get('/api/v1/payroll/runs/?status=bogus')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
