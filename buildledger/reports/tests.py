"""
Test suite for reports module
Tests: Dashboard, period and daily reports, PDF exports, finance overview, tax and debug tools
"""
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from buildledger.core.models import AdminOverride, User
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildledger.parties.models import Customer
from buildledger.payments.models import Payment
from buildledger.payments.services import record_payment
from buildledger.receipts.models import Receipt
from .finance import included_tva, tax_period_key


class ReportTestCase(TestCase):

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer(name='Karim')
        self.product = TestDataFactory.create_product(name='Sand X')


class DashboardAndReportTests(ReportTestCase):
    """Test dashboard and report endpoints"""

    def test_dashboard(self):
        TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        response = self.client.get('/api/v1/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['date'], timezone.localdate().isoformat())
        self.assertEqual(response.data['receipts']['today_count'], 1)
        self.assertEqual(response.data['receipts']['today_total'], Decimal('100.00'))
        self.assertEqual(response.data['finance']['receivables'], Decimal('100.00'))
        self.assertEqual(len(response.data['recent_receipts']), 1)

    def test_dashboard_receivables_override(self):
        TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        AdminOverride.objects.create(category=AdminOverride.CATEGORY_RECEIVABLES_TOTAL, value=Decimal('999'))
        response = self.client.get('/api/v1/dashboard/')
        self.assertEqual(response.data['finance']['receivables'], Decimal('999.00'))
        self.assertEqual(response.data['receipts']['outstanding_amount'], Decimal('100.00'))

    def test_dashboard_worker_denied(self):
        worker = TestDataFactory.create_user(role=User.ROLE_WORKER)
        self.client.authenticate_user(worker)
        response = self.client.get('/api/v1/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_summary_report(self):
        TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        TestDataFactory.create_receipt(customer=self.customer, product=self.product, quantity='1')
        response = self.client.get('/api/v1/reports/summary/?group_by=day')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['period']['group_by'], 'day')
        self.assertEqual(response.data['revenue']['total_sales'], Decimal('150.00'))
        self.assertEqual(response.data['revenue']['receipts_count'], 2)
        self.assertEqual(response.data['revenue']['outstanding_amount'], Decimal('150.00'))

    def test_summary_invalid_dates(self):
        response = self.client.get('/api/v1/reports/summary/?start=yesterday')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_summary_needs_report_permission(self):
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER, permission_overrides={'reports:view': False})
        self.client.authenticate_user(manager)
        response = self.client.get('/api/v1/reports/summary/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_daily_report(self):
        receipt = TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        record_payment(Payment.TYPE_RECEIPT, Decimal('30'), receipt=receipt, customer=self.customer)
        record_payment(Payment.TYPE_GENERAL_EXPENSE, Decimal('12'), description='Water')

        response = self.client.get(f'/api/v1/reports/daily/?date={timezone.localdate().isoformat()}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        totals = response.data['totals']
        self.assertEqual(totals['receipts_count'], 1)
        self.assertEqual(totals['total_sales'], Decimal('100.00'))
        self.assertEqual(totals['cash_collected'], Decimal('30.00'))
        self.assertEqual(totals['payments_out'], Decimal('12.00'))

    def test_custom_report(self):
        TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        response = self.client.get(f'/api/v1/reports/custom/?dataset=receipts&customer_id={self.customer.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['value_field'], 'total')
        self.assertEqual(response.data['totals']['count'], 2)
        self.assertEqual(response.data['totals']['total'], Decimal('200.00'))

        response = self.client.get('/api/v1/reports/custom/?dataset=receipts&type=tva')
        self.assertEqual(response.data['totals']['count'], 0)

    def test_custom_report_rejects_unknown_dataset(self):
        response = self.client.get('/api/v1/reports/custom/?dataset=weather')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/reports/custom/?dataset=payments&supplier_id=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PdfExportTests(ReportTestCase):
    """Test PDF exports"""

    def setUp(self):
        super().setUp()
        TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        record_payment(Payment.TYPE_CUSTOMER_PAYMENT, Decimal('25'), customer=self.customer)

    def assertPdf(self, response):
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_daily_pdf(self):
        response = self.client.get('/api/v1/reports/exports/daily-pdf/')
        self.assertPdf(response)
        self.assertIn('daily-', response['Content-Disposition'])

    def test_financial_pdf(self):
        self.assertPdf(self.client.get('/api/v1/reports/exports/financial-pdf/'))

    def test_balances_pdf(self):
        self.assertPdf(self.client.get('/api/v1/reports/exports/balances-pdf/'))

    def test_cash_ledger_pdf(self):
        self.assertPdf(self.client.get('/api/v1/reports/exports/cash-ledger-pdf/'))

    def test_period_summary_pdf(self):
        response = self.client.get('/api/v1/finance/period-summary-pdf/?start=2026-01-01&end=2026-12-31')
        self.assertPdf(response)
        self.assertIn('period-summary-20260101-20261231.pdf', response['Content-Disposition'])

    def test_invalid_range(self):
        response = self.client.get('/api/v1/reports/exports/financial-pdf/?start=soon')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class FinanceTests(ReportTestCase):
    """Test the finance overview and tax reports"""

    def test_overview_with_manual_balance(self):
        TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        Customer.objects.create(name='Legacy', manual_balance_override=Decimal('40'))
        TestDataFactory.create_purchase(total_cost=Decimal('80'))

        response = self.client.get('/api/v1/finance/overview/?all_time=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['receivables']['total'], Decimal('140.00'))
        self.assertEqual(len(response.data['receivables']['receipts']), 2)
        self.assertEqual(response.data['payables']['purchase_total'], Decimal('80.00'))

    def test_overview_admin_override(self):
        TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        AdminOverride.objects.create(category=AdminOverride.CATEGORY_RECEIVABLES_TOTAL, value=Decimal('500'))
        response = self.client.get('/api/v1/finance/overview/')
        self.assertEqual(response.data['receivables']['total'], Decimal('500.00'))
        self.assertEqual(response.data['receivables']['computed_total'], Decimal('100.00'))

    def test_overview_supplier_filter_hides_receivables(self):
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        response = self.client.get(f'/api/v1/finance/overview/?supplier_id={supplier.id}')
        self.assertEqual(response.data['receivables']['total'], Decimal('0.00'))

    def test_overview_invalid_filter(self):
        response = self.client.get('/api/v1/finance/overview/?customer_id=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(TVA_RATE='0.11')
    def test_included_tva(self):
        self.assertEqual(included_tva(Decimal('111')), Decimal('11.00'))

    @override_settings(TIME_ZONE='Asia/Beirut')
    def test_tax_period_uses_local_time(self):
        self.assertEqual(tax_period_key(datetime(2026, 1, 31, 23, 30, tzinfo=dt_timezone.utc), 'month'), '2026-02')
        self.assertEqual(tax_period_key(datetime(2026, 3, 31, 22, 30, tzinfo=dt_timezone.utc), 'quarter'), '2026-Q2')
        self.assertEqual(tax_period_key(datetime(2026, 3, 31, 12, 0, tzinfo=dt_timezone.utc), 'quarter'), '2026-Q1')

    @override_settings(TVA_RATE='0.11')
    def test_tax_report(self):
        tva_customer = TestDataFactory.create_customer(receipt_type=Customer.RECEIPT_TYPE_TVA)
        TestDataFactory.create_receipt(customer=tva_customer, product=self.product)
        TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        TestDataFactory.create_purchase(total_cost=Decimal('222'), tva_eligible=True)
        TestDataFactory.create_purchase(total_cost=Decimal('50'))

        response = self.client.get('/api/v1/tax/reports/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        totals = response.data['totals']
        self.assertEqual(totals['sales_total'], Decimal('111.00'))
        self.assertEqual(totals['tva_collected'], Decimal('11.00'))
        self.assertEqual(totals['tva_paid'], Decimal('22.00'))
        self.assertEqual(totals['net_tva'], Decimal('-11.00'))
        self.assertEqual(len(response.data['statement_of_account']), 1)

    def test_tax_report_quarters(self):
        response = self.client.get('/api/v1/tax/reports/?period=quarter&start_date=2026-01-01')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['filters']['period'], 'quarter')


class DebugToolTests(ReportTestCase):
    """Test the admin receivable repair tools"""

    def setUp(self):
        super().setUp()
        self.receipt = TestDataFactory.create_receipt(customer=self.customer, product=self.product)
        record_payment(Payment.TYPE_RECEIPT, Decimal('40'), receipt=self.receipt, customer=self.customer)
        Receipt.objects.filter(pk=self.receipt.pk).update(amount_paid=Decimal('0'))

    def test_receivables_health(self):
        response = self.client.get('/api/v1/debug/receivables-health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mismatched = response.data['mismatched_receipts']
        self.assertEqual(len(mismatched), 1)
        self.assertEqual(mismatched[0]['expected_paid'], Decimal('40.00'))

    def test_repair_single_receipt(self):
        response = self.client.post(f'/api/v1/debug/receipts/{self.receipt.id}/repair/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['changed'])
        self.assertEqual(response.data['amount_paid'], Decimal('40.00'))

    def test_repair_all(self):
        response = self.client.post('/api/v1/debug/receivables-repair/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

        response = self.client.post('/api/v1/debug/recompute-receipt-balances/', {}, format='json')
        self.assertEqual(response.data, {'updated': 0, 'skipped': 1})

    def test_cash_ledger(self):
        response = self.client.get('/api/v1/debug/cash-ledger/?all_time=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['inflow_total'], Decimal('40.00'))
        self.assertEqual(response.data['inflow_by_type'], {Payment.TYPE_RECEIPT: Decimal('40.00')})

    def test_manager_denied(self):
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.client.authenticate_user(manager)
        response = self.client.get('/api/v1/debug/receivables-health/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
