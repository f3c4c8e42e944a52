"""
Test suite for the catalog module
Tests: Product CRUD, fixed catalog, manufactured recipes, composite mixes, pagination and stock overrides
"""
from decimal import Decimal
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status

from buildledger.catalog.models import Product, ProductComponent
from buildledger.catalog.utils import (
    ensure_product_catalog, find_product_by_name, should_enable_aggregate_presets,
)
from buildledger.core.models import AuditLog, User
from buildledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class ProductCatalogTests(TestCase):
    """Test the fixed catalog sync"""

    def test_ensure_catalog_is_idempotent(self):
        self.assertEqual(ensure_product_catalog(), (0, 0))

        Product.objects.filter(name__in=['Diesel', 'Hollow Block 10cm']).delete()
        Product.objects.filter(name='Gravel').update(unit='ton')
        self.assertEqual(ensure_product_catalog(), (2, 1))
        self.assertTrue(find_product_by_name('diesel').is_fuel)
        self.assertTrue(find_product_by_name('Hollow Block 10cm').is_manufactured)
        self.assertEqual(find_product_by_name('gravel').unit, 'm³')

        self.assertEqual(ensure_product_catalog(), (0, 0))

    def test_catalog_keeps_user_prices(self):
        Product.objects.filter(name='Sand').update(unit='ton', unit_price=Decimal('25.00'), stock_qty=Decimal('7'))
        ensure_product_catalog()
        sand = find_product_by_name('sand')
        self.assertEqual(sand.unit, 'm³')
        self.assertEqual(sand.unit_price, Decimal('25.00'))
        self.assertEqual(sand.stock_qty, Decimal('7.000'))

    def test_command(self):
        out = StringIO()
        call_command('ensure_product_catalog', stdout=out)
        self.assertIn('Product catalog synced', out.getvalue())

    def test_aggregate_presets(self):
        self.assertTrue(should_enable_aggregate_presets('Fine sand', 'ton'))
        self.assertTrue(should_enable_aggregate_presets('Stone', 'm3'))
        self.assertFalse(should_enable_aggregate_presets('Block', 'unit'))
        self.assertTrue(should_enable_aggregate_presets('Block', 'unit', force_composite=True))


class ProductAPITests(TestCase):
    """Test product endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        ensure_product_catalog()

    def test_list_puts_fixed_catalog_first(self):
        TestDataFactory.create_product(name='Aaa custom')
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [item['name'] for item in response.data]
        self.assertEqual(names[-1], 'Aaa custom')

    def test_create_product(self):
        data = {'name': 'Red Sand', 'unit': 'm3', 'unit_price': '15.50', 'tehmil_fee': '2'}
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product = Product.objects.get(name='Red Sand')
        self.assertTrue(product.has_aggregate_presets)
        self.assertEqual(product.tehmil_fee, Decimal('2.00'))
        self.assertEqual(product.tenzil_fee, Decimal('2.00'))
        self.assertTrue(AuditLog.objects.filter(action='PRODUCT_CREATED', entity_id=product.id).exists())

    def test_create_duplicate_name(self):
        TestDataFactory.create_product(name='Gravel Mix')
        response = self.client.post('/api/v1/products/', {'name': 'gravel mix', 'unit': 'm3'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_create_fixed_product_rejected(self):
        Product.objects.filter(name='Sand').delete()
        response = self.client.post('/api/v1/products/', {'name': 'Sand', 'unit': 'm3'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_requires_unit(self):
        response = self.client.post('/api/v1/products/', {'name': 'No unit'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Unit is required')

    def test_create_manufactured_product(self):
        data = {
            'name': 'Block 25cm', 'unit': 'unit', 'is_manufactured': True,
            'powder_per_unit': '0.01', 'cement_per_unit': '0.05', 'piecework_rate': '0.10',
        }
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['powder_product_name'], 'Powder')
        self.assertEqual(response.data['cement_product_name'], 'Cement')

    def test_manufactured_requires_recipe(self):
        data = {'name': 'Block 30cm', 'unit': 'unit', 'is_manufactured': True, 'powder_per_unit': '0.01'}
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manufactured_and_composite_conflict(self):
        data = {'name': 'Odd', 'unit': 'unit', 'is_manufactured': True, 'is_composite': True}
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_composite_mix(self):
        sand = find_product_by_name('sand')
        gravel = find_product_by_name('gravel')
        data = {
            'name': 'Makhlouta', 'unit': 'm3', 'is_composite': True,
            'components': [
                {'product_id': sand.id, 'quantity': '0.6'},
                {'product_id': gravel.id, 'quantity': '0.4'},
            ],
        }
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['components']), 2)

    def test_composite_rejects_duplicate_components(self):
        sand = find_product_by_name('sand')
        data = {
            'name': 'Bad Mix', 'unit': 'm3', 'is_composite': True,
            'components': [{'product_id': sand.id, 'quantity': '1'}, {'product_id': sand.id, 'quantity': '2'}],
        }
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_composite_rejects_nested_composites(self):
        sand = find_product_by_name('sand')
        mix = TestDataFactory.create_product(name='Base Mix', is_composite=True)
        ProductComponent.objects.create(parent=mix, component=sand, quantity=Decimal('1'))
        data = {
            'name': 'Nested', 'unit': 'm3', 'is_composite': True,
            'components': [{'product_id': mix.id, 'quantity': '1'}],
        }
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_product(self):
        product = TestDataFactory.create_product(name='Old Name')
        response = self.client.put(f'/api/v1/products/{product.id}/',
                                   {'name': 'New Name', 'unit': 'ton', 'unit_price': '30'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.name, 'New Name')
        self.assertEqual(product.unit_price, Decimal('30.00'))

    def test_update_turning_off_composite_clears_components(self):
        sand = find_product_by_name('sand')
        mix = TestDataFactory.create_product(name='Mix Two', is_composite=True)
        ProductComponent.objects.create(parent=mix, component=sand, quantity=Decimal('1'))
        response = self.client.put(f'/api/v1/products/{mix.id}/',
                                   {'name': 'Mix Two', 'unit': 'm3', 'is_composite': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(ProductComponent.objects.filter(parent=mix).exists())

    def test_delete_product(self):
        product = TestDataFactory.create_product()
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.id).exists())

    def test_delete_product_in_use(self):
        customer = TestDataFactory.create_customer()
        product = TestDataFactory.create_product()
        TestDataFactory.create_receipt(customer=customer, product=product, user=self.user)
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_paginated_products(self):
        response = self.client.get('/api/v1/products/paginated/?limit=5')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 5)
        cursor = response.data['next_cursor']
        self.assertIsNotNone(cursor)

        response = self.client.get(f'/api/v1/products/paginated/?limit=5&cursor={cursor}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(all(item['id'] > cursor for item in response.data['items']))

    def test_update_materials(self):
        block = find_product_by_name('Hollow Block 10cm')
        response = self.client.patch(
            f'/api/v1/products/{block.id}/materials/',
            {'powder_per_unit': '0.012', 'cement_per_unit': '0.06', 'piecework_rate': '0.15'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        block.refresh_from_db()
        self.assertEqual(block.cement_per_unit, Decimal('0.0600'))
        self.assertEqual(block.piecework_rate, Decimal('0.1500'))

    def test_update_materials_non_manufactured(self):
        sand = find_product_by_name('sand')
        response = self.client.patch(f'/api/v1/products/{sand.id}/materials/',
                                     {'powder_per_unit': '1', 'cement_per_unit': '1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_adjust_stock(self):
        product = TestDataFactory.create_product(stock_qty=Decimal('10'))
        response = self.client.post(f'/api/v1/products/{product.id}/adjust-stock/', {'stock_qty': '42.5'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.stock_qty, Decimal('42.500'))
        log = AuditLog.objects.get(action='INVENTORY_STOCK_OVERRIDE')
        self.assertEqual(log.metadata['previous_stock'], 10.0)

    def test_adjust_stock_negative(self):
        product = TestDataFactory.create_product()
        response = self.client.post(f'/api/v1/products/{product.id}/adjust-stock/', {'stock_qty': '-1'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_worker_cannot_open_catalog_admin(self):
        worker = TestDataFactory.create_user(role=User.ROLE_WORKER)
        self.client.authenticate_user(worker)
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
