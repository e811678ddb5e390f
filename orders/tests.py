# orders/tests.py

from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal
import re
import threading
from unittest.mock import patch

from django.core.exceptions import ValidationError
from django.db import DatabaseError, connections
from django.db.models import ProtectedError
from django.test import TestCase, TransactionTestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from cart.models import CartItem
from products.models import Product
from users.models import CustomUser
from .models import Order, OrderCount, OrderItem
from .numbering import assign_order_number, format_order_number, next_daily_sequence
from .resources import OrderResource

ORDER_NUMBER_RE = re.compile(r'^ORD-\d{8}-\d{3,}$')


def at(year, month, day, hour=10):
    return datetime(year, month, day, hour, 0, tzinfo=dt_timezone.utc)


def make_customer(email='customer@example.com', **extra):
    return CustomUser.objects.create_user(
        username=email, email=email, password='password123',
        full_name=extra.pop('full_name', 'Customer'), phone=extra.pop('phone', '+919876543210'), **extra
    )


def make_order(customer, total='500.00', **extra):
    return Order.objects.create(
        customer=customer,
        total_amount=Decimal(total),
        delivery_phone='+919876543210',
        delivery_address={'city': 'Kochi'},
        **extra
    )


class OrderNumberFormatTest(TestCase):
    def test_format_pads_to_three_digits(self):
        self.assertEqual(format_order_number(date(2025, 1, 1), 1), 'ORD-20250101-001')
        self.assertEqual(format_order_number(date(2025, 1, 1), 42), 'ORD-20250101-042')
        self.assertEqual(format_order_number(date(2025, 12, 31), 999), 'ORD-20251231-999')

    def test_format_widens_past_999(self):
        self.assertEqual(format_order_number(date(2025, 1, 1), 1000), 'ORD-20250101-1000')

    def test_format_rejects_non_positive_sequence(self):
        with self.assertRaises(ValueError):
            format_order_number(date(2025, 1, 1), 0)


class DailySequenceTest(TestCase):
    def test_first_call_creates_counter(self):
        self.assertEqual(next_daily_sequence(date(2025, 3, 1)), 1)
        self.assertEqual(OrderCount.objects.get(date=date(2025, 3, 1)).count, 1)

    def test_sequence_increments_per_date(self):
        values = [next_daily_sequence(date(2025, 3, 1)) for _ in range(5)]
        self.assertEqual(values, [1, 2, 3, 4, 5])
        self.assertEqual(next_daily_sequence(date(2025, 3, 2)), 1)
        self.assertEqual(OrderCount.objects.get(date=date(2025, 3, 1)).count, 5)

    def test_row_locked_fallback(self):
        with patch('orders.numbering._supports_upsert_returning', return_value=False):
            values = [next_daily_sequence(date(2025, 3, 1)) for _ in range(3)]
            self.assertEqual(next_daily_sequence(date(2025, 3, 2)), 1)
        self.assertEqual(values, [1, 2, 3])
        self.assertEqual(OrderCount.objects.get(date=date(2025, 3, 1)).count, 3)

    def test_assign_order_number_uses_given_date(self):
        order = Order()
        assign_order_number(order, on_date=date(2024, 2, 29))
        self.assertEqual(order.order_number, 'ORD-20240229-001')


class OrderNumberingTest(TestCase):
    def setUp(self):
        self.customer = make_customer()

    def test_orders_on_same_date_are_numbered_consecutively(self):
        with patch('django.utils.timezone.now', return_value=at(2025, 1, 1)):
            numbers = [make_order(self.customer).order_number for _ in range(3)]
        self.assertEqual(numbers, ['ORD-20250101-001', 'ORD-20250101-002', 'ORD-20250101-003'])

    def test_orders_on_different_dates_differ_in_date_segment(self):
        with patch('django.utils.timezone.now', return_value=at(2025, 1, 1)):
            first = make_order(self.customer)
        with patch('django.utils.timezone.now', return_value=at(2025, 1, 2)):
            second = make_order(self.customer)
        self.assertEqual(first.order_number, 'ORD-20250101-001')
        self.assertEqual(second.order_number, 'ORD-20250102-001')

    def test_sequence_widens_after_999_orders(self):
        OrderCount.objects.create(date=date(2025, 1, 1), count=999)
        with patch('django.utils.timezone.now', return_value=at(2025, 1, 1)):
            order = make_order(self.customer)
        self.assertEqual(order.order_number, 'ORD-20250101-1000')

    def test_preset_order_number_is_replaced(self):
        with patch('django.utils.timezone.now', return_value=at(2025, 1, 1)):
            order = make_order(self.customer, order_number='ORD-19990101-777')
        self.assertEqual(order.order_number, 'ORD-20250101-001')

    def test_counter_failure_saves_nothing(self):
        with patch('orders.numbering.next_daily_sequence', side_effect=DatabaseError('counter unavailable')):
            with self.assertLogs('orders.models', level='ERROR'):
                with self.assertRaises(DatabaseError):
                    make_order(self.customer)
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderCount.objects.count(), 0)

    def test_failed_insert_does_not_consume_a_number(self):
        with patch('django.utils.timezone.now', return_value=at(2025, 1, 1)):
            with self.assertRaises(ValidationError):
                make_order(self.customer, total='0.00')
            order = make_order(self.customer)
        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(order.order_number, 'ORD-20250101-001')
        self.assertEqual(OrderCount.objects.get(date=date(2025, 1, 1)).count, 1)

    def test_order_number_cannot_be_changed(self):
        order = make_order(self.customer)
        original = order.order_number
        order.order_number = 'ORD-20000101-001'
        with self.assertRaises(ValidationError):
            order.save()
        self.assertEqual(Order.objects.get(pk=order.pk).order_number, original)

        reloaded = Order.objects.get(pk=order.pk)
        reloaded.order_number = 'ORD-20000101-002'
        with self.assertRaises(ValidationError):
            reloaded.save()

        reloaded.refresh_from_db()
        self.assertEqual(reloaded.order_number, original)

    def test_updates_keep_the_number(self):
        order = make_order(self.customer)
        number = order.order_number
        order.delivery_notes = 'Ring the bell'
        order.save()
        self.assertEqual(Order.objects.get(pk=order.pk).order_number, number)
        self.assertEqual(OrderCount.objects.get().count, 1)

    def test_customer_with_orders_cannot_be_deleted(self):
        make_order(self.customer)
        with self.assertRaises(ProtectedError):
            self.customer.delete()


class ConcurrentNumberingTest(TransactionTestCase):
    def run_threads(self, work, threads=6):
        results = []
        errors = []
        lock = threading.Lock()

        def worker():
            try:
                for _ in range(5):
                    value = work()
                    with lock:
                        results.append(value)
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                connections.close_all()

        pool = [threading.Thread(target=worker) for _ in range(threads)]
        for t in pool:
            t.start()
        for t in pool:
            t.join()
        return results, errors

    def test_concurrent_sequences_are_unique(self):
        results, errors = self.run_threads(lambda: next_daily_sequence(date(2025, 6, 1)))
        self.assertEqual(errors, [])
        self.assertEqual(sorted(results), list(range(1, 31)))

    def test_concurrent_orders_get_distinct_numbers(self):
        customer = make_customer()
        with patch('django.utils.timezone.now', return_value=at(2025, 6, 1)):
            results, errors = self.run_threads(lambda: make_order(customer).order_number)

        self.assertEqual(errors, [])
        self.assertEqual(sorted(results), [format_order_number(date(2025, 6, 1), n) for n in range(1, 31)])
        self.assertEqual(Order.objects.count(), 30)
        self.assertEqual(OrderCount.objects.get(date=date(2025, 6, 1)).count, 30)


class CheckoutAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.customer = make_customer(city='Kochi', postal_code='682001')
        self.client.force_authenticate(user=self.customer)
        self.prawns = Product.objects.create(
            name='Tiger Prawns', price=Decimal('600.00'), category='Prawns & Shrimp', stock_quantity=10
        )
        self.seer = Product.objects.create(
            name='Seer Fish', price=Decimal('900.00'), category='Fresh Fish', stock_quantity=5
        )

    def test_checkout_creates_numbered_order(self):
        CartItem.objects.create(user=self.customer, product=self.prawns, quantity=Decimal('1.5'))
        CartItem.objects.create(user=self.customer, product=self.seer, quantity=Decimal('2'))

        response = self.client.post(reverse('order-checkout'), {'delivery_notes': 'Gate 2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        order = Order.objects.get()
        self.assertRegex(order.order_number, ORDER_NUMBER_RE)
        self.assertIn(timezone.localdate().strftime('%Y%m%d'), order.order_number)
        self.assertEqual(response.data['order_number'], order.order_number)
        self.assertEqual(order.total_amount, Decimal('2700.00'))
        self.assertEqual(order.delivery_phone, '+919876543210')
        self.assertEqual(order.delivery_address['city'], 'Kochi')
        self.assertEqual(order.items.count(), 2)

        line = order.items.get(product=self.prawns)
        self.assertEqual(line.product_name, 'Tiger Prawns')
        self.assertEqual(line.price_per_kg, Decimal('600.00'))
        self.assertEqual(line.subtotal, Decimal('900.00'))

        self.prawns.refresh_from_db()
        self.seer.refresh_from_db()
        self.assertEqual(self.prawns.stock_quantity, 8)
        self.assertEqual(self.seer.stock_quantity, 3)
        self.assertFalse(CartItem.objects.filter(user=self.customer).exists())

    def test_item_snapshot_survives_price_change(self):
        CartItem.objects.create(user=self.customer, product=self.seer, quantity=Decimal('1'))
        self.client.post(reverse('order-checkout'), {}, format='json')
        self.seer.price = Decimal('1100.00')
        self.seer.save()
        self.assertEqual(OrderItem.objects.get().price_per_kg, Decimal('900.00'))

    def test_checkout_empty_cart(self):
        response = self.client.post(reverse('order-checkout'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cart is empty.')
        self.assertEqual(OrderCount.objects.count(), 0)

    def test_checkout_insufficient_stock_writes_nothing(self):
        CartItem.objects.create(user=self.customer, product=self.prawns, quantity=Decimal('2'))
        CartItem.objects.create(user=self.customer, product=self.seer, quantity=Decimal('4'))
        Product.objects.filter(pk=self.seer.pk).update(stock_quantity=3)

        response = self.client.post(reverse('order-checkout'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient stock', response.data['error'])

        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderCount.objects.count(), 0)
        self.prawns.refresh_from_db()
        self.assertEqual(self.prawns.stock_quantity, 10)
        self.assertEqual(CartItem.objects.filter(user=self.customer).count(), 2)

    def test_checkout_requires_phone(self):
        self.customer.phone = None
        self.customer.save()
        CartItem.objects.create(user=self.customer, product=self.prawns, quantity=Decimal('1'))
        response = self.client.post(reverse('order-checkout'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('delivery_phone', response.data['error'])


class OrderAccessTest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.owner = make_customer('owner@example.com')
        self.stranger = make_customer('stranger@example.com')
        self.admin = make_customer('admin@example.com', role='admin')
        self.order = make_order(self.owner)
        make_order(self.stranger)

    def test_list_is_scoped_to_caller(self):
        self.client.force_authenticate(user=self.owner)
        response = self.client.get(reverse('order-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['order_number'], self.order.order_number)

    def test_admin_sees_all_and_filters_by_status(self):
        Order.objects.filter(pk=self.order.pk).update(status='confirmed')
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('order-list'))
        self.assertEqual(response.data['count'], 2)
        response = self.client.get(reverse('order-list'), {'status': 'confirmed'})
        self.assertEqual(response.data['count'], 1)

    def test_detail_by_order_number(self):
        url = reverse('order-detail', kwargs={'order_number': self.order.order_number})

        self.client.force_authenticate(user=self.owner)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_200_OK)

        self.client.force_authenticate(user=self.stranger)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)

        self.client.force_authenticate(user=self.admin)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_200_OK)

    def test_anonymous_is_rejected(self):
        response = self.client.get(reverse('order-list'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class OrderStatusWorkflowTest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.customer = make_customer()
        self.admin = make_customer('admin@example.com', role='admin')
        self.product = Product.objects.create(
            name='Mud Crab', price=Decimal('700.00'), category='Crabs', stock_quantity=10
        )
        CartItem.objects.create(user=self.customer, product=self.product, quantity=Decimal('3'))
        self.client.force_authenticate(user=self.customer)
        response = self.client.post(reverse('order-checkout'), {}, format='json')
        self.order = Order.objects.get(order_number=response.data['order_number'])
        self.url = reverse('order-update-status', kwargs={'order_number': self.order.order_number})
        self.client.force_authenticate(user=self.admin)

    def _move(self, new_status, **extra):
        return self.client.post(self.url, dict(status=new_status, **extra), format='json')

    def test_customer_cannot_change_status(self):
        self.client.force_authenticate(user=self.customer)
        response = self._move('confirmed')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'pending')

    def test_invalid_transition(self):
        response = self._move('delivered')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'pending')

    def test_full_delivery_flow(self):
        for new_status in ('confirmed', 'preparing', 'out_for_delivery'):
            response = self._move(new_status)
            self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.order.refresh_from_db()
        self.assertRegex(self.order.verification_code, r'^\d{4}$')

        wrong_code = '0000' if self.order.verification_code != '0000' else '1111'
        response = self._move('delivered', verification_code=wrong_code)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'out_for_delivery')

        response = self._move('delivered', verification_code=f' {self.order.verification_code} ')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'delivered')
        self.assertEqual(self.order.payment_status, 'paid')
        self.assertIsNotNone(self.order.delivery_date)

        self.assertEqual(self._move('cancelled').status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancel_restores_stock(self):
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 7)

        response = self._move('cancelled')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)

    def test_status_change_keeps_order_number(self):
        number = self.order.order_number
        self._move('confirmed')
        self.order.refresh_from_db()
        self.assertEqual(self.order.order_number, number)

    def test_product_on_an_order_cannot_be_deleted(self):
        with self.assertRaises(ProtectedError):
            self.product.delete()


class OrderResourceTest(TestCase):
    def test_export_includes_order_and_items(self):
        customer = make_customer(full_name='Anita')
        product = Product.objects.create(
            name='Tiger Prawns', price=Decimal('600.00'), category='Prawns & Shrimp', stock_quantity=10
        )
        order = make_order(customer, total='600.00')
        OrderItem.objects.create(
            order=order, product=product, product_name=product.name,
            quantity_kg=Decimal('1'), price_per_kg=product.price,
        )

        dataset = OrderResource().export(Order.objects.all())
        self.assertIn('Customer Email', dataset.headers)
        exported = dataset.csv
        self.assertIn(order.order_number, exported)
        self.assertIn('customer@example.com', exported)
        self.assertIn('Tiger Prawns', exported)
        self.assertIn('Kochi', exported)
