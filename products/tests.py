from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase
from django.contrib.auth import get_user_model

from .models import Product, stock_units

User = get_user_model()


class ProductModelTest(TestCase):
    def setUp(self):
        self.product = Product.objects.create(
            name='Seer Fish', price=Decimal('850.00'), category='Fresh Fish', stock_quantity=5
        )

    def test_price_must_be_positive(self):
        with self.assertRaises(ValidationError):
            Product.objects.create(name='Free Fish', price=Decimal('0.00'), category='Fresh Fish')

    def test_category_is_closed(self):
        with self.assertRaises(ValidationError):
            Product.objects.create(name='Lobster', price=Decimal('10.00'), category='Shellfish')

    def test_database_rejects_bad_category(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Product.objects.filter(pk=self.product.pk).update(category='Shellfish')

    def test_stock_units_rounds_up(self):
        self.assertEqual(stock_units(Decimal('1')), 1)
        self.assertEqual(stock_units(Decimal('1.5')), 2)
        self.assertEqual(stock_units(Decimal('0.25')), 1)

    def test_decrease_stock(self):
        self.assertTrue(self.product.decrease_stock(Decimal('3')))
        self.assertEqual(self.product.stock_quantity, 2)

    def test_decrease_stock_insufficient(self):
        self.assertFalse(self.product.decrease_stock(Decimal('6')))
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 5)

    def test_restore_stock(self):
        self.product.decrease_stock(Decimal('2'))
        self.product.restore_stock(Decimal('2'))
        self.assertEqual(self.product.stock_quantity, 5)


class ProductAPITest(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.customer = User.objects.create_user(
            username='buyer@example.com', email='buyer@example.com', password='pass', full_name='Buyer'
        )
        cls.admin = User.objects.create_user(
            username='admin@example.com', email='admin@example.com', password='pass',
            full_name='Admin', role='admin'
        )
        cls.pomfret = Product.objects.create(
            name='White Pomfret', price=Decimal('1200.00'), category='Fresh Fish', stock_quantity=20
        )
        cls.prawns = Product.objects.create(
            name='Tiger Prawns', price=Decimal('900.00'), category='Prawns & Shrimp', stock_quantity=4
        )
        cls.hidden = Product.objects.create(
            name='Dried Anchovy', price=Decimal('300.00'), category='Dried Fish',
            stock_quantity=50, is_available=False
        )
        cls.url_list = reverse('product-list')

    def _names(self, response):
        return {p['name'] for p in response.data['results']}

    def test_anonymous_sees_available_products(self):
        response = self.client.get(self.url_list)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self._names(response), {'White Pomfret', 'Tiger Prawns'})

    def test_admin_sees_all_products(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(self.url_list)
        self.assertEqual(self._names(response), {'White Pomfret', 'Tiger Prawns', 'Dried Anchovy'})

    def test_filter_and_search(self):
        response = self.client.get(self.url_list, {'category': 'Prawns & Shrimp'})
        self.assertEqual(self._names(response), {'Tiger Prawns'})

        response = self.client.get(self.url_list, {'search': 'pomf'})
        self.assertEqual(self._names(response), {'White Pomfret'})

    def test_customer_cannot_create_product(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.post(self.url_list, {
            'name': 'Mud Crab', 'price': '700.00', 'category': 'Crabs', 'stock_quantity': 3,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Product.objects.filter(name='Mud Crab').exists())

    def test_admin_creates_product(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(self.url_list, {
            'name': 'Mud Crab', 'price': '700.00', 'category': 'Crabs', 'stock_quantity': 3,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['unit'], 'kg')

    def test_invalid_price_rejected(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(self.url_list, {
            'name': 'Mud Crab', 'price': '-1.00', 'category': 'Crabs',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_categories(self):
        response = self.client.get(reverse('product-categories'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 5)
        self.assertEqual(response.data[0]['value'], 'Fresh Fish')

    @override_settings(LOW_STOCK_THRESHOLD=10)
    def test_low_stock_admin_only(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.get(reverse('product-low-stock'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('product-low-stock'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['products'][0]['name'], 'Tiger Prawns')
