"""
analytics/services.py

Admin reporting over orders, products and profiles. Every figure is
recomputed from the live tables on each call; the ``daily_stats`` snapshot
is written here but never read back for reporting.

All report functions take the calling user first and refuse anyone who is
not an admin with ``AdminAccessDenied``.
"""

from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Count, Max, Q, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from orders.models import (
    Order, OrderItem, SALES_STATUSES, STATUS_DELIVERED, STATUS_PENDING,
)
from products.models import Product
from users.models import ROLE_CUSTOMER
from users.permissions import require_admin
from .models import DailyStats

logger = logging.getLogger(__name__)

User = get_user_model()

TWO_PLACES = Decimal('0.01')

# Days to look back for each report period; 'daily' means today only.
PERIOD_DAYS = {
    'daily': 0,
    'weekly': 7,
    'monthly': 30,
}


def money(value):
    """Quantise a monetary amount to 2 dp, treating None as zero."""
    return Decimal(value or 0).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def average(total, count):
    if not count:
        return money(0)
    return money(Decimal(total or 0) / count)


def percent(part, whole):
    """Whole-number percentage, half rounded up; 0 when there is nothing to divide."""
    if not whole:
        return 0
    return int((Decimal(part) * 100 / whole).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def period_start(period):
    """First local date covered by ``period``. Raises ValueError for unknown periods."""
    if period not in PERIOD_DAYS:
        raise ValueError(f"Unknown period '{period}'. Use one of: {', '.join(PERIOD_DAYS)}.")
    return timezone.localdate() - timedelta(days=PERIOD_DAYS[period])


def _sales_in_period(period):
    return Order.objects.filter(
        created_at__date__gte=period_start(period),
        status__in=SALES_STATUSES,
    )


def _delivered_totals(queryset):
    return queryset.filter(status=STATUS_DELIVERED).aggregate(
        total=Sum('total_amount'),
        count=Count('id'),
    )


# ---------------------------------------------------------------------------
# Revenue
# ---------------------------------------------------------------------------

def get_admin_revenue_stats(user, request=None):
    """
    Revenue from delivered orders, overall and for orders created today.

    Returns a dict with ``totalRevenue``, ``revenueToday``,
    ``deliveredOrdersCount``, ``todayDeliveredCount``, ``averageOrderValue``
    and ``calculatedAt``. Amounts are Decimals with two places.
    """
    require_admin(user, request)

    today = timezone.localdate()
    overall = _delivered_totals(Order.objects.all())
    today_totals = _delivered_totals(Order.objects.filter(created_at__date=today))

    stats = {
        'totalRevenue': money(overall['total']),
        'revenueToday': money(today_totals['total']),
        'deliveredOrdersCount': overall['count'],
        'todayDeliveredCount': today_totals['count'],
        'averageOrderValue': average(overall['total'], overall['count']),
        'calculatedAt': timezone.now(),
    }
    logger.info(
        f"Revenue stats computed for {user.email}: total {stats['totalRevenue']} "
        f"over {stats['deliveredOrdersCount']} delivered order(s)"
    )
    return stats


def get_order_status_breakdown(user, request=None):
    require_admin(user, request)
    rows = (
        Order.objects.values('status')
        .annotate(count=Count('id'), total=Sum('total_amount'))
        .order_by('status')
    )
    return [
        {
            'status': row['status'],
            'count': row['count'],
            'totalAmount': money(row['total']),
            'averageAmount': average(row['total'], row['count']),
        }
        for row in rows
    ]


def get_payment_status_breakdown(user, request=None):
    require_admin(user, request)
    rows = (
        Order.objects.values('payment_status', 'status')
        .annotate(count=Count('id'), total=Sum('total_amount'))
        .order_by('payment_status', 'status')
    )
    return [
        {
            'paymentStatus': row['payment_status'],
            'orderStatus': row['status'],
            'count': row['count'],
            'totalAmount': money(row['total']),
        }
        for row in rows
    ]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def get_dashboard_stats(user, request=None):
    require_admin(user, request)

    threshold = getattr(settings, 'LOW_STOCK_THRESHOLD', 10)
    overall = _delivered_totals(Order.objects.all())
    today_totals = _delivered_totals(Order.objects.filter(created_at__date=timezone.localdate()))

    return {
        'totalOrders': Order.objects.count(),
        'totalProducts': Product.objects.count(),
        'totalCustomers': User.objects.filter(role=ROLE_CUSTOMER).count(),
        'pendingOrders': Order.objects.filter(status=STATUS_PENDING).count(),
        'lowStockItems': Product.objects.filter(stock_quantity__lt=threshold).count(),
        'totalRevenue': money(overall['total']),
        'revenueToday': money(today_totals['total']),
    }


def get_customers_with_stats(user, request=None):
    """
    Customer profiles, newest first, with their order count, the amount
    spent on delivered orders and the time of their latest order.
    """
    require_admin(user, request)
    customers = (
        User.objects.filter(role=ROLE_CUSTOMER)
        .annotate(
            total_orders=Count('orders'),
            total_spent=Sum('orders__total_amount', filter=Q(orders__status=STATUS_DELIVERED)),
            last_order_date=Max('orders__created_at'),
        )
        .order_by('-created_at')
    )
    return [
        {
            'id': customer.pk,
            'email': customer.email,
            'full_name': customer.full_name,
            'phone': customer.phone,
            'city': customer.city,
            'created_at': customer.created_at,
            'total_orders': customer.total_orders,
            'total_spent': money(customer.total_spent),
            'last_order_date': customer.last_order_date,
        }
        for customer in customers
    ]


def get_recent_activity(user, limit=10, request=None):
    """
    Mixed feed of recent events, newest first: up to five recent orders
    (placed or delivered), three newly added products and three new
    customer registrations.
    """
    require_admin(user, request)
    activities = []

    for order in Order.objects.select_related('customer').order_by('-created_at')[:5]:
        customer_name = order.customer.full_name or 'Unknown'
        if order.status == STATUS_DELIVERED:
            activities.append({
                'id': f'order-{order.pk}',
                'type': 'order_delivered',
                'title': f'Order {order.order_number} delivered',
                'description': f'Order delivered to {customer_name}',
                'timestamp': order.created_at,
            })
        elif order.status == STATUS_PENDING:
            activities.append({
                'id': f'order-{order.pk}',
                'type': 'order_placed',
                'title': 'New order placed',
                'description': f'Order {order.order_number} by {customer_name}',
                'timestamp': order.created_at,
            })

    for product in Product.objects.order_by('-created_at')[:3]:
        activities.append({
            'id': f'product-{product.pk}',
            'type': 'product_added',
            'title': 'New product added',
            'description': f'"{product.name}" added to inventory',
            'timestamp': product.created_at,
        })

    for customer in User.objects.filter(role=ROLE_CUSTOMER).order_by('-created_at')[:3]:
        activities.append({
            'id': f'customer-{customer.pk}',
            'type': 'customer_registered',
            'title': 'New customer registration',
            'description': f'{customer.full_name} joined',
            'timestamp': customer.created_at,
        })

    activities.sort(key=lambda activity: activity['timestamp'], reverse=True)
    return activities[:limit]


# ---------------------------------------------------------------------------
# Period reports
# ---------------------------------------------------------------------------

def get_sales_report(user, period, request=None):
    """
    Sales for ``period`` ('daily', 'weekly' or 'monthly'). Only orders that
    reached confirmed or later, and were not cancelled, count as sales.
    """
    require_admin(user, request)
    orders = _sales_in_period(period).order_by('-created_at')
    totals = orders.aggregate(total=Sum('total_amount'), count=Count('id'))

    return {
        'period': period,
        'startDate': period_start(period),
        'totalSales': money(totals['total']),
        'totalOrders': totals['count'],
        'averageOrderValue': average(totals['total'], totals['count']),
        'orders': [
            {
                'orderNumber': order.order_number,
                'totalAmount': money(order.total_amount),
                'status': order.status,
                'createdAt': order.created_at,
            }
            for order in orders
        ],
    }


def get_top_products(user, period, limit=10, request=None):
    require_admin(user, request)
    rows = (
        OrderItem.objects.filter(
            order__created_at__date__gte=period_start(period),
            order__status__in=SALES_STATUSES,
        )
        .values('product_id', 'product__name', 'product__category', 'product__image_url')
        .annotate(total_quantity=Sum('quantity_kg'), total_revenue=Sum('subtotal'))
        .order_by('-total_revenue', 'product__name')[:limit]
    )
    return [
        {
            'productId': row['product_id'],
            'name': row['product__name'],
            'category': row['product__category'],
            'image_url': row['product__image_url'],
            'totalQuantity': row['total_quantity'],
            'totalRevenue': money(row['total_revenue']),
        }
        for row in rows
    ]


def get_revenue_by_period(user, period, request=None):
    """Sales revenue per local creation date, oldest first, for charting."""
    require_admin(user, request)
    rows = (
        _sales_in_period(period)
        .annotate(day=TruncDate('created_at'))
        .values('day')
        .annotate(revenue=Sum('total_amount'))
        .order_by('day')
    )
    return [
        {
            'date': row['day'].isoformat(),
            'revenue': money(row['revenue']),
            'label': f"{row['day']:%b} {row['day'].day}",
        }
        for row in rows
    ]


def get_quick_stats(user, period, request=None):
    """
    Whole-number percentages for ``period``:

    * deliverySuccessRate: delivered orders out of all sales orders.
    * newCustomerPercentage: buyers in the period with no sales order before it.
    * repeatOrderPercentage: buyers in the period with more than one order in it.
    """
    require_admin(user, request)
    start = period_start(period)
    orders = _sales_in_period(period)

    total_orders = orders.count()
    delivered = orders.filter(status=STATUS_DELIVERED).count()

    per_customer = dict(
        orders.values('customer_id').annotate(n=Count('id')).order_by().values_list('customer_id', 'n')
    )
    earlier = set(
        Order.objects.filter(created_at__date__lt=start, status__in=SALES_STATUSES)
        .values_list('customer_id', flat=True)
    )
    new_customers = [customer_id for customer_id in per_customer if customer_id not in earlier]
    repeat_customers = [customer_id for customer_id, n in per_customer.items() if n > 1]

    return {
        'deliverySuccessRate': percent(delivered, total_orders),
        'newCustomerPercentage': percent(len(new_customers), len(per_customer)),
        'repeatOrderPercentage': percent(len(repeat_customers), len(per_customer)),
    }


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def refresh_daily_stats(on_date=None):
    """
    Write the ``daily_stats`` row for ``on_date`` (default: today) from the
    orders created on that local date. Revenue counts delivered orders only.
    """
    if on_date is None:
        on_date = timezone.localdate()

    day_orders = Order.objects.filter(created_at__date=on_date)
    delivered = _delivered_totals(day_orders)

    stats, created = DailyStats.objects.update_or_create(
        date=on_date,
        defaults={
            'total_orders': day_orders.count(),
            'total_revenue': money(delivered['total']),
            'pending_orders': day_orders.filter(status=STATUS_PENDING).count(),
            'delivered_orders': delivered['count'],
        },
    )
    logger.info(
        f"{'Created' if created else 'Updated'} daily stats for {on_date}: "
        f"{stats.total_orders} orders, revenue {stats.total_revenue}"
    )
    return stats
