from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from orders.models import Order, OrderItem
from products.models import Product
from users.models import CustomUser
from users.permissions import AdminAccessDenied
from .models import DailyStats
from . import services


def make_user(email, role='customer', full_name='Customer'):
    return CustomUser.objects.create_user(
        username=email, email=email, password='password123', full_name=full_name, role=role
    )


def make_order(customer, total, status='pending', days_ago=0, **extra):
    order = Order.objects.create(
        customer=customer,
        total_amount=Decimal(total),
        status=status,
        delivery_phone='+919876543210',
        delivery_address={'city': 'Kochi'},
        **extra
    )
    if days_ago:
        Order.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(days=days_ago))
        order.refresh_from_db()
    return order


class AnalyticsTestMixin:
    def setUp(self):
        self.admin = make_user('admin@example.com', role='admin', full_name='Admin')
        self.customer = make_user('customer@example.com', full_name='Asha')
        self.other = make_user('other@example.com', full_name='Biju')


class RevenueStatsTest(AnalyticsTestMixin, TestCase):
    def test_no_delivered_orders(self):
        make_order(self.customer, '250.00')
        stats = services.get_admin_revenue_stats(self.admin)
        self.assertEqual(stats['totalRevenue'], Decimal('0.00'))
        self.assertEqual(stats['revenueToday'], Decimal('0.00'))
        self.assertEqual(stats['deliveredOrdersCount'], 0)
        self.assertEqual(stats['todayDeliveredCount'], 0)
        self.assertEqual(stats['averageOrderValue'], Decimal('0.00'))
        self.assertIsNotNone(stats['calculatedAt'])

    def test_only_delivered_orders_today_count(self):
        make_order(self.customer, '200.00', status='delivered')
        make_order(self.other, '300.00', status='delivered')
        make_order(self.customer, '999.00', status='pending')
        make_order(self.customer, '50.00', status='cancelled')

        stats = services.get_admin_revenue_stats(self.admin)
        self.assertEqual(stats['revenueToday'], Decimal('500.00'))
        self.assertEqual(stats['totalRevenue'], Decimal('500.00'))
        self.assertEqual(stats['todayDeliveredCount'], 2)
        self.assertEqual(stats['averageOrderValue'], Decimal('250.00'))

    def test_earlier_deliveries_count_towards_total_only(self):
        make_order(self.customer, '200.00', status='delivered')
        make_order(self.customer, '300.00', status='delivered')
        make_order(self.other, '100.00', status='delivered', days_ago=2)

        stats = services.get_admin_revenue_stats(self.admin)
        self.assertEqual(stats['totalRevenue'], Decimal('600.00'))
        self.assertEqual(stats['revenueToday'], Decimal('500.00'))
        self.assertEqual(stats['deliveredOrdersCount'], 3)
        self.assertEqual(stats['todayDeliveredCount'], 2)
        self.assertEqual(stats['averageOrderValue'], Decimal('200.00'))

    def test_average_rounds_half_up(self):
        make_order(self.customer, '0.01', status='delivered')
        make_order(self.customer, '0.04', status='delivered')
        stats = services.get_admin_revenue_stats(self.admin)
        self.assertEqual(stats['averageOrderValue'], Decimal('0.03'))

    def test_non_admins_are_refused(self):
        make_order(self.customer, '200.00', status='delivered')
        for caller in (self.customer, AnonymousUser(), None):
            with self.assertRaises(AdminAccessDenied):
                services.get_admin_revenue_stats(caller)

    def test_demoted_admin_is_refused(self):
        CustomUser.objects.filter(pk=self.admin.pk).update(role='customer')
        with self.assertRaises(AdminAccessDenied):
            services.get_admin_revenue_stats(self.admin)


class BreakdownTest(AnalyticsTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        make_order(self.customer, '100.00')
        make_order(self.other, '150.00')
        make_order(self.customer, '300.00', status='delivered', payment_status='paid')

    def test_order_status_breakdown(self):
        rows = services.get_order_status_breakdown(self.admin)
        self.assertEqual(rows, [
            {'status': 'delivered', 'count': 1, 'totalAmount': Decimal('300.00'), 'averageAmount': Decimal('300.00')},
            {'status': 'pending', 'count': 2, 'totalAmount': Decimal('250.00'), 'averageAmount': Decimal('125.00')},
        ])

    def test_payment_status_breakdown(self):
        rows = services.get_payment_status_breakdown(self.admin)
        self.assertEqual(rows, [
            {'paymentStatus': 'paid', 'orderStatus': 'delivered', 'count': 1, 'totalAmount': Decimal('300.00')},
            {'paymentStatus': 'pending', 'orderStatus': 'pending', 'count': 2, 'totalAmount': Decimal('250.00')},
        ])

    def test_breakdowns_refuse_customers(self):
        with self.assertRaises(AdminAccessDenied):
            services.get_order_status_breakdown(self.customer)
        with self.assertRaises(AdminAccessDenied):
            services.get_payment_status_breakdown(self.customer)


class DashboardTest(AnalyticsTestMixin, TestCase):
    def test_dashboard_counts(self):
        Product.objects.create(name='Prawns', price=Decimal('400.00'), category='Prawns & Shrimp', stock_quantity=5)
        Product.objects.create(name='Seer Fish', price=Decimal('850.00'), category='Fresh Fish', stock_quantity=20)
        make_order(self.customer, '100.00')
        make_order(self.customer, '300.00', status='delivered')

        stats = services.get_dashboard_stats(self.admin)
        self.assertEqual(stats['totalOrders'], 2)
        self.assertEqual(stats['totalProducts'], 2)
        self.assertEqual(stats['totalCustomers'], 2)
        self.assertEqual(stats['pendingOrders'], 1)
        self.assertEqual(stats['lowStockItems'], 1)
        self.assertEqual(stats['totalRevenue'], Decimal('300.00'))
        self.assertEqual(stats['revenueToday'], Decimal('300.00'))

    def test_customers_with_stats(self):
        make_order(self.customer, '300.00', status='delivered')
        make_order(self.customer, '100.00')

        customers = {row['email']: row for row in services.get_customers_with_stats(self.admin)}
        self.assertNotIn('admin@example.com', customers)
        self.assertEqual(customers['customer@example.com']['total_orders'], 2)
        self.assertEqual(customers['customer@example.com']['total_spent'], Decimal('300.00'))
        self.assertIsNotNone(customers['customer@example.com']['last_order_date'])
        self.assertEqual(customers['other@example.com']['total_orders'], 0)
        self.assertEqual(customers['other@example.com']['total_spent'], Decimal('0.00'))
        self.assertIsNone(customers['other@example.com']['last_order_date'])

    def test_recent_activity(self):
        Product.objects.create(name='Crab', price=Decimal('600.00'), category='Crabs', stock_quantity=5)
        order = make_order(self.customer, '100.00')
        make_order(self.customer, '120.00', status='confirmed')

        activity = services.get_recent_activity(self.admin)
        types = [entry['type'] for entry in activity]
        self.assertIn('order_placed', types)
        self.assertIn('product_added', types)
        self.assertIn('customer_registered', types)
        # Confirmed orders are not part of the feed.
        self.assertEqual(types.count('order_placed'), 1)
        self.assertTrue(any(order.order_number in entry['description'] for entry in activity))

        timestamps = [entry['timestamp'] for entry in activity]
        self.assertEqual(timestamps, sorted(timestamps, reverse=True))
        self.assertEqual(len(services.get_recent_activity(self.admin, limit=2)), 2)


class PeriodReportTest(AnalyticsTestMixin, TestCase):
    def test_unknown_period(self):
        with self.assertRaises(ValueError):
            services.get_sales_report(self.admin, 'yearly')

    def test_daily_sales_report(self):
        make_order(self.customer, '100.00', status='confirmed')
        make_order(self.other, '200.00', status='delivered')
        make_order(self.customer, '999.00', status='pending')
        make_order(self.customer, '50.00', status='cancelled')
        make_order(self.customer, '400.00', status='delivered', days_ago=3)

        report = services.get_sales_report(self.admin, 'daily')
        self.assertEqual(report['totalSales'], Decimal('300.00'))
        self.assertEqual(report['totalOrders'], 2)
        self.assertEqual(report['averageOrderValue'], Decimal('150.00'))
        self.assertEqual(len(report['orders']), 2)

        weekly = services.get_sales_report(self.admin, 'weekly')
        self.assertEqual(weekly['totalSales'], Decimal('700.00'))
        self.assertEqual(weekly['totalOrders'], 3)

    def test_top_products(self):
        prawns = Product.objects.create(name='Prawns', price=Decimal('400.00'), category='Prawns & Shrimp', stock_quantity=50)
        crab = Product.objects.create(name='Crab', price=Decimal('600.00'), category='Crabs', stock_quantity=50)
        sold = make_order(self.customer, '1400.00', status='confirmed')
        OrderItem.objects.create(order=sold, product=prawns, product_name='Prawns',
                                 quantity_kg=Decimal('2'), price_per_kg=Decimal('400.00'))
        OrderItem.objects.create(order=sold, product=crab, product_name='Crab',
                                 quantity_kg=Decimal('1'), price_per_kg=Decimal('600.00'))
        cancelled = make_order(self.other, '6000.00', status='cancelled')
        OrderItem.objects.create(order=cancelled, product=crab, product_name='Crab',
                                 quantity_kg=Decimal('10'), price_per_kg=Decimal('600.00'))

        top = services.get_top_products(self.admin, 'weekly')
        self.assertEqual([row['name'] for row in top], ['Prawns', 'Crab'])
        self.assertEqual(top[0]['totalRevenue'], Decimal('800.00'))
        self.assertEqual(top[0]['totalQuantity'], Decimal('2'))
        self.assertEqual(top[1]['totalRevenue'], Decimal('600.00'))
        self.assertEqual(len(services.get_top_products(self.admin, 'weekly', limit=1)), 1)

    def test_revenue_by_period(self):
        make_order(self.customer, '100.00', status='confirmed')
        make_order(self.customer, '200.00', status='delivered', days_ago=3)
        make_order(self.other, '50.00', status='preparing', days_ago=3)
        make_order(self.other, '75.00', status='cancelled', days_ago=3)

        rows = services.get_revenue_by_period(self.admin, 'weekly')
        self.assertEqual([row['revenue'] for row in rows], [Decimal('250.00'), Decimal('100.00')])
        self.assertEqual(rows[-1]['date'], timezone.localdate().isoformat())

    def test_quick_stats(self):
        make_order(self.customer, '100.00', status='confirmed', days_ago=10)
        make_order(self.customer, '200.00', status='delivered')
        make_order(self.customer, '150.00', status='confirmed')
        make_order(self.other, '300.00', status='preparing')
        make_order(self.other, '80.00', status='cancelled')

        stats = services.get_quick_stats(self.admin, 'weekly')
        self.assertEqual(stats, {
            'deliverySuccessRate': 33,
            'newCustomerPercentage': 50,
            'repeatOrderPercentage': 50,
        })

    def test_quick_stats_without_orders(self):
        self.assertEqual(services.get_quick_stats(self.admin, 'monthly'), {
            'deliverySuccessRate': 0,
            'newCustomerPercentage': 0,
            'repeatOrderPercentage': 0,
        })

    def test_period_reports_refuse_customers(self):
        with self.assertRaises(AdminAccessDenied):
            services.get_quick_stats(self.customer, 'daily')


class DailyStatsTest(AnalyticsTestMixin, TestCase):
    def test_refresh_writes_snapshot(self):
        make_order(self.customer, '100.00')
        make_order(self.customer, '300.00', status='delivered')
        make_order(self.other, '200.00', status='delivered', days_ago=1)

        stats = services.refresh_daily_stats()
        self.assertEqual(stats.date, timezone.localdate())
        self.assertEqual(stats.total_orders, 2)
        self.assertEqual(stats.pending_orders, 1)
        self.assertEqual(stats.delivered_orders, 1)
        self.assertEqual(stats.total_revenue, Decimal('300.00'))

    def test_refresh_updates_existing_row(self):
        services.refresh_daily_stats()
        make_order(self.customer, '300.00', status='delivered')
        services.refresh_daily_stats()
        self.assertEqual(DailyStats.objects.count(), 1)
        self.assertEqual(DailyStats.objects.get().delivered_orders, 1)

    def test_command_with_date(self):
        make_order(self.customer, '200.00', status='delivered', days_ago=1)
        yesterday = timezone.localdate() - timedelta(days=1)
        out = StringIO()
        call_command('refresh_daily_stats', '--date', yesterday.isoformat(), '--verbose', stdout=out)

        self.assertIn(f'Successfully refreshed daily stats for {yesterday}', out.getvalue())
        stats = DailyStats.objects.get(date=yesterday)
        self.assertEqual(stats.total_revenue, Decimal('200.00'))

    def test_command_rejects_bad_date(self):
        with self.assertRaises(CommandError):
            call_command('refresh_daily_stats', '--date', '2025-13-40', stdout=StringIO())


class AnalyticsAPITest(AnalyticsTestMixin, APITestCase):
    def test_revenue_requires_admin(self):
        url = reverse('analytics-revenue')
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(str(response.data['detail']), 'Access denied. Admin privileges required.')

        self.client.force_authenticate(user=self.customer)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_gets_revenue(self):
        make_order(self.customer, '200.00', status='delivered')
        make_order(self.other, '300.00', status='delivered')
        self.client.force_authenticate(user=self.admin)

        response = self.client.get(reverse('analytics-revenue'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['revenueToday'], Decimal('500.00'))
        self.assertEqual(response.data['deliveredOrdersCount'], 2)

    def test_breakdown_endpoints(self):
        make_order(self.customer, '100.00')
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('analytics-order-status'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['status'], 'pending')
        response = self.client.get(reverse('analytics-payment-status'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['paymentStatus'], 'pending')

    def test_period_endpoints(self):
        self.client.force_authenticate(user=self.admin)
        for name in ('analytics-sales-report', 'analytics-top-products',
                     'analytics-revenue-by-period', 'analytics-quick-stats'):
            response = self.client.get(reverse(name), {'period': 'monthly'})
            self.assertEqual(response.status_code, status.HTTP_200_OK, name)

            response = self.client.get(reverse(name), {'period': 'yearly'})
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, name)
            self.assertIn('error', response.data)

    def test_bad_limit(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('analytics-recent-activity'), {'limit': 'many'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unexpected_report_errors_are_not_reported_as_bad_requests(self):
        self.client.force_authenticate(user=self.admin)
        with patch('analytics.services.get_sales_report', side_effect=ValueError('division trouble')):
            with self.assertRaises(ValueError):
                self.client.get(reverse('analytics-sales-report'), {'period': 'weekly'})

    def test_role_is_checked_before_query_parameters(self):
        response = self.client.get(reverse('analytics-quick-stats'), {'period': 'yearly'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.force_authenticate(user=self.customer)
        response = self.client.get(reverse('analytics-recent-activity'), {'limit': 'many'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_dashboard_and_customers(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('analytics-dashboard'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['totalCustomers'], 2)
        response = self.client.get(reverse('analytics-customers'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

        self.client.force_authenticate(user=self.customer)
        self.assertEqual(self.client.get(reverse('analytics-customers')).status_code, status.HTTP_403_FORBIDDEN)
