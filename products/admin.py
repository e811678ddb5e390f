from django.conf import settings
from django.contrib import admin, messages
from django.utils.html import format_html

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'price', 'unit', 'stock_display', 'is_available', 'updated_at']
    search_fields = ['name', 'description']
    list_filter = ['category', 'unit', 'is_available']
    list_editable = ['is_available']
    readonly_fields = ['created_at', 'updated_at']
    actions = ['make_available', 'make_unavailable']

    def stock_display(self, obj):
        threshold = getattr(settings, 'LOW_STOCK_THRESHOLD', 10)
        if obj.stock_quantity == 0:
            color = 'red'
        elif obj.stock_quantity <= threshold:
            color = 'orange'
        else:
            color = 'green'
        return format_html('<span style="color: {};">{}</span>', color, obj.stock_quantity)
    stock_display.short_description = 'Stock'
    stock_display.admin_order_field = 'stock_quantity'

    def make_available(self, request, queryset):
        updated = queryset.update(is_available=True)
        self.message_user(
            request,
            f'{updated} product(s) were successfully marked as available.',
            messages.SUCCESS
        )
    make_available.short_description = 'Mark selected products as available'

    def make_unavailable(self, request, queryset):
        updated = queryset.update(is_available=False)
        self.message_user(
            request,
            f'{updated} product(s) were marked as unavailable.',
            messages.SUCCESS
        )
    make_unavailable.short_description = 'Mark selected products as unavailable'
