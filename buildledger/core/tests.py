"""
Test suite for the core module
Tests: Login sessions, user management, role permissions, audit logs, display settings, manual controls and parsing helpers
"""
from decimal import Decimal
from datetime import timedelta
from io import StringIO

from django.conf import settings
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from buildledger.core.cache_signals import clear_cache_prefix
from buildledger.core.cache_utils import cached_query, make_cache_key
from buildledger.core.models import User, UserSession, AuditLog, AdminOverride, DisplaySettings
from buildledger.core.permissions import merge_permissions, sanitize_permission_input
from buildledger.core.sessions import create_session, get_active_session
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildledger.core.utils import apply_tax, parse_bool, parse_decimal, parse_int, query_list, end_of_day, start_of_day


class AuthTests(TestCase):
    """Test login, logout and the current user endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user(email='owner@test.com', password='secret-pass')
        self.client = APIClient()

    def test_login_returns_token(self):
        response = self.client.post('/api/v1/auth/login/', {'email': ' Owner@Test.com ', 'password': 'secret-pass'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('token', response.data)
        self.assertEqual(response.data['user']['email'], 'owner@test.com')
        self.assertTrue(response.data['user']['permissions']['payroll:manage'])
        self.assertEqual(UserSession.objects.filter(user=self.user).count(), 1)

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {'email': 'owner@test.com', 'password': 'nope'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Invalid credentials')

    def test_login_missing_fields(self):
        response = self.client.post('/api/v1/auth/login/', {'email': 'owner@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_with_bearer_token(self):
        _, token = create_session(self.user)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], self.user.id)

    def test_stale_cookie_falls_back_to_bearer_token(self):
        _, token = create_session(self.user)
        self.client.cookies[settings.SESSION_TOKEN_COOKIE_NAME] = 'stale-token'
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], self.user.id)

    def test_stale_cookie_and_header_rejected(self):
        self.client.cookies[settings.SESSION_TOKEN_COOKIE_NAME] = 'stale-token'
        self.client.credentials(HTTP_AUTHORIZATION='Bearer other-stale-token')
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_revokes_session(self):
        session, token = create_session(self.user)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = self.client.post('/api/v1/auth/logout/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        session.refresh_from_db()
        self.assertIsNotNone(session.revoked_at)
        self.assertIsNone(get_active_session(token))

        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_expired_session_rejected(self):
        session, token = create_session(self.user)
        UserSession.objects.filter(pk=session.pk).update(expires_at=timezone.now() - timedelta(minutes=1))
        self.assertIsNone(get_active_session(token))

    def test_purge_sessions_command(self):
        session, _ = create_session(self.user)
        UserSession.objects.filter(pk=session.pk).update(expires_at=timezone.now() - timedelta(days=1))
        out = StringIO()
        call_command('purge_sessions', stdout=out)
        self.assertIn('Removed 1', out.getvalue())
        self.assertFalse(UserSession.objects.filter(pk=session.pk).exists())


class BootstrapTests(TestCase):
    """Test first admin creation"""

    def setUp(self):
        self.client = APIClient()

    @override_settings(ADMIN_BOOTSTRAP_TOKEN='boot-token')
    def test_bootstrap_creates_admin(self):
        response = self.client.post(
            '/api/v1/auth/bootstrap/', {'email': 'admin@test.com', 'password': 'long-password'},
            format='json', HTTP_X_BOOTSTRAP_TOKEN='boot-token',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.get(email='admin@test.com').role, User.ROLE_ADMIN)

    @override_settings(ADMIN_BOOTSTRAP_TOKEN='boot-token')
    def test_bootstrap_rejects_bad_token(self):
        response = self.client.post(
            '/api/v1/auth/bootstrap/', {'email': 'admin@test.com', 'password': 'long-password'},
            format='json', HTTP_X_BOOTSTRAP_TOKEN='wrong',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @override_settings(ADMIN_BOOTSTRAP_TOKEN='boot-token')
    def test_bootstrap_only_once(self):
        TestDataFactory.create_user()
        response = self.client.post(
            '/api/v1/auth/bootstrap/', {'email': 'admin@test.com', 'password': 'long-password'},
            format='json', HTTP_X_BOOTSTRAP_TOKEN='boot-token',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class UserManagementTests(TestCase):
    """Test admin user endpoints and role enforcement"""

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_user(self):
        data = {
            'email': 'Manager@Test.com',
            'password': 'manager-pass',
            'role': 'MANAGER',
            'permissions': {'payroll:manage': True, 'unknown:key': True},
        }
        response = self.client.post('/api/v1/auth/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='manager@test.com')
        self.assertEqual(user.permission_overrides, {'payroll:manage': True})
        self.assertTrue(user.has_app_permission('payroll:manage'))
        self.assertTrue(AuditLog.objects.filter(action='USER_CREATED', entity_id=user.id).exists())

    def test_create_user_duplicate_email(self):
        TestDataFactory.create_user(email='dup@test.com')
        response = self.client.post(
            '/api/v1/auth/users/', {'email': 'dup@test.com', 'password': 'long-password', 'role': 'WORKER'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_create_user_short_password(self):
        response = self.client.post(
            '/api/v1/auth/users/', {'email': 'short@test.com', 'password': 'short', 'role': 'WORKER'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_user_role(self):
        user = TestDataFactory.create_user(role=User.ROLE_WORKER)
        response = self.client.patch(f'/api/v1/auth/users/{user.id}/', {'role': 'MANAGER'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.role, User.ROLE_MANAGER)

    def test_update_user_without_changes(self):
        user = TestDataFactory.create_user(role=User.ROLE_WORKER)
        response = self.client.patch(f'/api/v1/auth/users/{user.id}/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_cannot_list_users(self):
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.client.authenticate_user(manager)
        response = self.client.get('/api/v1/auth/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_worker_cannot_write(self):
        worker = TestDataFactory.create_user(role=User.ROLE_WORKER)
        self.client.authenticate_user(worker)
        response = self.client.post('/api/v1/customers/', {'name': 'Blocked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_worker_can_look_up_receipts(self):
        worker = TestDataFactory.create_user(role=User.ROLE_WORKER)
        self.client.authenticate_user(worker)
        response = self.client.get('/api/v1/worker/receipts/by-number/999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_worker_cannot_open_customer_accounts(self):
        worker = TestDataFactory.create_user(role=User.ROLE_WORKER)
        self.client.authenticate_user(worker)
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuditLogTests(TestCase):
    """Test audit log listing and activity counters"""

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_filtered_by_action(self):
        AuditLog.objects.create(action='RECEIPT_CREATED', entity_type='receipt', entity_id=1)
        AuditLog.objects.create(action='PRODUCT_CREATED', entity_type='product', entity_id=2)
        response = self.client.get('/api/v1/audit-logs/?action=receipt_created')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'RECEIPT_CREATED')

    def test_invoice_print_is_counted(self):
        customer = TestDataFactory.create_customer()
        response = self.client.post('/api/v1/audit-logs/invoice-print/',
                                    {'customer_id': customer.id, 'receipt_ids': [1, 'x', 2]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(action='INVOICE_PRINTED')
        self.assertEqual(log.metadata['receipt_ids'], [1, 2])

        response = self.client.get('/api/v1/audit-logs/activity/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['invoices'][0]['customer_name'], customer.name)
        self.assertEqual(response.data['invoices'][0]['print_count'], 1)

    def test_invoice_print_requires_customer(self):
        response = self.client.post('/api/v1/audit-logs/invoice-print/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class SettingsTests(TestCase):
    """Test display settings and manual finance overrides"""

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_display_settings_defaults(self):
        response = self.client.get('/api/v1/display-settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['display_cash'])
        self.assertTrue(response.data['include_payroll'])

    def test_update_display_settings(self):
        response = self.client.put('/api/v1/display-settings/', {'display_cash': False, 'include_debris': False},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['display_cash'])
        self.assertFalse(DisplaySettings.load().include_debris)
        self.assertTrue(AuditLog.objects.filter(action='DISPLAY_SETTINGS_UPDATED').exists())

    def test_manual_controls_set_and_clear(self):
        response = self.client.put('/api/v1/manual-controls/', {'inventory_value': '1500.50'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            AdminOverride.objects.get(category=AdminOverride.CATEGORY_INVENTORY_VALUE).value, Decimal('1500.50')
        )
        self.assertIsNone(response.data['payables_total']['value'])

        response = self.client.put('/api/v1/manual-controls/', {'inventory_value': None}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(AdminOverride.objects.exists())

    def test_manual_controls_invalid_value(self):
        response = self.client.put('/api/v1/manual-controls/', {'payables_total': 'abc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manual_controls_requires_field(self):
        response = self.client.put('/api/v1/manual-controls/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class HealthTests(TestCase):

    def test_health_and_ready(self):
        client = APIClient()
        self.assertEqual(client.get('/api/v1/health/').status_code, status.HTTP_200_OK)
        response = client.get('/api/v1/ready/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ready')


class HelperTests(TestCase):
    """Test permission merging and input parsing helpers"""

    def test_merge_permissions(self):
        worker = merge_permissions('WORKER')
        self.assertTrue(worker['receipts:create'])
        self.assertFalse(worker['payments:manage'])
        overridden = merge_permissions('WORKER', {'payments:manage': True, 'bogus': True})
        self.assertTrue(overridden['payments:manage'])
        self.assertNotIn('bogus', overridden)

    def test_sanitize_permission_input(self):
        self.assertIsNone(sanitize_permission_input({'bogus': True}))
        self.assertEqual(sanitize_permission_input({'reports:view': 1}), {'reports:view': True})

    def test_parse_decimal(self):
        self.assertIsNone(parse_decimal(''))
        self.assertEqual(parse_decimal(' 12.5 '), Decimal('12.5'))
        with self.assertRaises(ValueError):
            parse_decimal('abc')
        with self.assertRaises(ValueError):
            parse_decimal('NaN')

    def test_parse_int(self):
        self.assertIsNone(parse_int(None))
        self.assertEqual(parse_int('7'), 7)
        with self.assertRaises(ValueError):
            parse_int('0')
        with self.assertRaises(ValueError):
            parse_int(True)

    def test_parse_bool_and_query_list(self):
        self.assertTrue(parse_bool('yes'))
        self.assertFalse(parse_bool('0'))
        self.assertEqual(parse_bool('maybe', 'default'), 'default')
        self.assertEqual(query_list('1, 2,x,-3'), [1, 2])

    @override_settings(TVA_RATE='0.11')
    def test_apply_tax(self):
        self.assertEqual(apply_tax(Decimal('100'), 'TVA'), Decimal('111.00'))
        self.assertEqual(apply_tax(Decimal('100.005'), 'NORMAL'), Decimal('100.01'))

    def test_day_bounds(self):
        now = timezone.now()
        start, end = start_of_day(now), end_of_day(now)
        self.assertLess(start, end)
        self.assertEqual((end - start), timedelta(days=1) - timedelta(microseconds=1))


class CacheTests(TestCase):
    """Test cache keys, the cached_query decorator and prefix clearing"""

    def setUp(self):
        cache.clear()
        self.calls = []

    def test_cache_key_keeps_prefix(self):
        key = make_cache_key('dashboard', '2026-10-01')
        self.assertTrue(key.startswith('dashboard:'))
        self.assertEqual(key, make_cache_key('dashboard', '2026-10-01'))
        self.assertNotEqual(key, make_cache_key('dashboard', '2026-10-02'))

    def test_cached_query_runs_once_per_argument(self):
        @cached_query(cache_ttl=60, key_prefix='square')
        def square(value):
            self.calls.append(value)
            return value * value

        self.assertEqual(square(3), 9)
        self.assertEqual(square(3), 9)
        self.assertEqual(square(4), 16)
        self.assertEqual(self.calls, [3, 4])

        clear_cache_prefix('square')
        square(3)
        self.assertEqual(self.calls, [3, 4, 3])
