# cart/tests.py

from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient
from rest_framework import status
from users.models import CustomUser
from products.models import Product
from cart.models import CartItem


class CartAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = CustomUser.objects.create_user(
            username='shopper@example.com',
            email='shopper@example.com',
            password='testpassword',
            full_name='Shopper',
        )
        self.other = CustomUser.objects.create_user(
            username='other@example.com',
            email='other@example.com',
            password='testpassword',
            full_name='Other',
        )
        self.client.force_authenticate(user=self.user)

        self.prawns = Product.objects.create(
            name='Tiger Prawns', price=Decimal('600.00'), category='Prawns & Shrimp', stock_quantity=10
        )
        self.crab = Product.objects.create(
            name='Mud Crab', price=Decimal('450.00'), category='Crabs', stock_quantity=2
        )

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse('cart-retrieve-cart'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_add_to_cart(self):
        response = self.client.post(reverse('cart-add-to-cart'), {
            'product_id': self.prawns.id, 'quantity': '1.5'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        item = CartItem.objects.get(user=self.user, product=self.prawns)
        self.assertEqual(item.quantity, Decimal('1.50'))

    def test_add_same_product_merges_quantity(self):
        url = reverse('cart-add-to-cart')
        self.client.post(url, {'product_id': self.prawns.id, 'quantity': 2}, format='json')
        response = self.client.post(url, {'product_id': self.prawns.id, 'quantity': 3}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(CartItem.objects.filter(user=self.user).count(), 1)
        self.assertEqual(CartItem.objects.get(user=self.user).quantity, Decimal('5'))

    def test_add_merges_into_line_created_concurrently(self):
        existing = CartItem.objects.create(user=self.user, product=self.prawns, quantity=Decimal('1'))
        # The first lookup misses the line another request has just inserted.
        with patch('cart.api.find_cart_line', side_effect=[None, existing]):
            response = self.client.post(reverse('cart-add-to-cart'), {
                'product_id': self.prawns.id, 'quantity': 2
            }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(CartItem.objects.filter(user=self.user).count(), 1)
        self.assertEqual(CartItem.objects.get(user=self.user).quantity, Decimal('3'))

    def test_add_merges_after_unique_violation(self):
        existing = CartItem.objects.create(user=self.user, product=self.prawns, quantity=Decimal('1'))
        # Both requests passed validation; the database rejects the second insert.
        with patch('cart.api.find_cart_line', side_effect=[None, existing]), \
                patch.object(CartItem, 'validate_constraints'):
            response = self.client.post(reverse('cart-add-to-cart'), {
                'product_id': self.prawns.id, 'quantity': 2
            }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(CartItem.objects.filter(user=self.user).count(), 1)
        self.assertEqual(CartItem.objects.get(user=self.user).quantity, Decimal('3'))

    def test_add_invalid_quantity(self):
        for quantity in (0, -1, 'abc'):
            response = self.client.post(reverse('cart-add-to-cart'), {
                'product_id': self.prawns.id, 'quantity': quantity
            }, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_add_more_than_stock(self):
        response = self.client.post(reverse('cart-add-to-cart'), {
            'product_id': self.crab.id, 'quantity': 3
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity', response.data['error'])

    def test_add_unavailable_product(self):
        self.crab.is_available = False
        self.crab.save()
        response = self.client.post(reverse('cart-add-to-cart'), {
            'product_id': self.crab.id, 'quantity': 1
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_retrieve_cart_with_totals(self):
        CartItem.objects.create(user=self.user, product=self.prawns, quantity=Decimal('1.5'))
        CartItem.objects.create(user=self.user, product=self.crab, quantity=Decimal('2'))
        CartItem.objects.create(user=self.other, product=self.crab, quantity=Decimal('1'))

        response = self.client.get(reverse('cart-retrieve-cart'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 2)
        self.assertEqual(response.data['item_count'], 2)
        self.assertEqual(response.data['total_price'], Decimal('1800.00'))

    def test_update_cart_item(self):
        item = CartItem.objects.create(user=self.user, product=self.prawns, quantity=Decimal('1'))
        response = self.client.put(reverse('cart-update-cart-item', kwargs={'pk': item.pk}), {
            'quantity': '4'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        item.refresh_from_db()
        self.assertEqual(item.quantity, Decimal('4'))

    def test_cannot_touch_other_users_item(self):
        item = CartItem.objects.create(user=self.other, product=self.prawns, quantity=Decimal('1'))
        response = self.client.put(reverse('cart-update-cart-item', kwargs={'pk': item.pk}), {
            'quantity': '4'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.delete(reverse('cart-delete-cart-item', kwargs={'pk': item.pk}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(CartItem.objects.filter(pk=item.pk).exists())

    def test_delete_cart_item(self):
        item = CartItem.objects.create(user=self.user, product=self.prawns, quantity=Decimal('1'))
        response = self.client.delete(reverse('cart-delete-cart-item', kwargs={'pk': item.pk}))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(CartItem.objects.filter(pk=item.pk).exists())

    def test_clear_cart_and_summary(self):
        CartItem.objects.create(user=self.user, product=self.prawns, quantity=Decimal('1'))
        CartItem.objects.create(user=self.other, product=self.prawns, quantity=Decimal('1'))

        response = self.client.get(reverse('cart-cart-summary'))
        self.assertEqual(response.data, {'total_price': Decimal('600.00'), 'item_count': 1})

        response = self.client.post(reverse('cart-clear-cart'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(CartItem.objects.filter(user=self.user).exists())
        self.assertTrue(CartItem.objects.filter(user=self.other).exists())
