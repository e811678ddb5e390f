# orders/admin.py

import csv
from datetime import timedelta
import logging

from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.db.models import Count, Sum
from django.http import HttpResponse
from django.utils import timezone
from import_export.admin import ExportMixin

from .models import Order, OrderItem, OrderCount, STATUS_DELIVERED, STATUS_CANCELLED
from .resources import OrderResource

admin_logger = logging.getLogger('admin_actions')


class OrderItemInline(admin.TabularInline):
    """
    Inline admin display for OrderItem within the Order admin view.
    """
    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields = ('product', 'product_name', 'quantity_kg', 'price_per_kg', 'subtotal', 'created_at')

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(ExportMixin, admin.ModelAdmin):
    """
    Orders are created by checkout and never deleted. Status changes go
    through the order's transition rules, so the status field is read-only
    here and the actions below are the way to move an order along.
    """
    resource_classes = [OrderResource]
    list_display = ('order_number', 'customer', 'status', 'payment_method', 'payment_status',
                    'total_amount', 'delivery_phone', 'created_at')
    list_filter = ('status', 'payment_status', 'payment_method', 'created_at')
    search_fields = ('order_number', 'customer__email', 'customer__full_name', 'delivery_phone')
    readonly_fields = ('order_number', 'customer', 'total_amount', 'status', 'payment_status',
                       'verification_code', 'delivery_date', 'created_at', 'updated_at')
    inlines = [OrderItemInline]
    actions = ['confirm_orders', 'cancel_orders', 'export_daily_aggregation']
    list_per_page = 25
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def _transition(self, request, queryset, new_status):
        moved, skipped = 0, 0
        for order in queryset:
            try:
                order.transition_to(new_status)
                moved += 1
            except ValidationError:
                skipped += 1
        admin_logger.info(f"{request.user} moved {moved} order(s) to {new_status} from the admin")
        self.message_user(request, f"{moved} order(s) moved to {new_status}.", messages.SUCCESS)
        if skipped:
            self.message_user(request, f"{skipped} order(s) could not be moved to {new_status}.", messages.WARNING)

    def confirm_orders(self, request, queryset):
        self._transition(request, queryset, 'confirmed')
    confirm_orders.short_description = "Confirm selected pending orders"

    def cancel_orders(self, request, queryset):
        self._transition(request, queryset, STATUS_CANCELLED)
    cancel_orders.short_description = "Cancel selected orders (restores stock)"

    def export_daily_aggregation(self, request, queryset):
        """
        Export the last 30 days of selected orders aggregated per day as CSV.
        """
        timestamp = timezone.localtime().strftime('%Y%m%d_%H%M%S')
        response = HttpResponse(content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="orders_daily_aggregation_{timestamp}.csv"'

        fieldnames = ['date', 'total_orders', 'delivered_orders', 'cancelled_orders',
                      'delivered_revenue', 'unique_customers']
        writer = csv.DictWriter(response, fieldnames=fieldnames)
        writer.writeheader()

        today = timezone.localdate()
        for i in range(30):
            day = today - timedelta(days=i)
            day_orders = queryset.filter(created_at__date=day)
            totals = day_orders.aggregate(
                total_orders=Count('id'),
                unique_customers=Count('customer', distinct=True),
            )
            delivered = day_orders.filter(status=STATUS_DELIVERED)
            writer.writerow({
                'date': day.isoformat(),
                'total_orders': totals['total_orders'],
                'delivered_orders': delivered.count(),
                'cancelled_orders': day_orders.filter(status=STATUS_CANCELLED).count(),
                'delivered_revenue': f"{delivered.aggregate(s=Sum('total_amount'))['s'] or 0:.2f}",
                'unique_customers': totals['unique_customers'],
            })
        return response
    export_daily_aggregation.short_description = "Export Daily Aggregation (Last 30 days)"


@admin.register(OrderCount)
class OrderCountAdmin(admin.ModelAdmin):
    list_display = ('date', 'count', 'updated_at')
    readonly_fields = ('date', 'count', 'created_at', 'updated_at')
    date_hierarchy = 'date'

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
