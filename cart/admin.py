# cart/admin.py

from django.contrib import admin
from django.utils.html import format_html
from .models import CartItem
import logging

admin_logger = logging.getLogger('admin_actions')


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    """
    Read-mostly view of shoppers' carts. Carts belong to their users, so
    admins may inspect and delete lines but not create them.
    """
    list_display = ['id', 'get_user_info', 'product', 'quantity', 'get_subtotal', 'updated_at']
    list_filter = ['product__category', 'updated_at']
    search_fields = ['user__email', 'user__full_name', 'product__name']
    readonly_fields = ['user', 'product', 'created_at', 'updated_at']
    list_select_related = ['user', 'product']
    ordering = ['-updated_at']

    def has_add_permission(self, request):
        return False

    def delete_model(self, request, obj):
        admin_logger.warning(
            f"CartItem {obj.pk} of user {obj.user_id} deleted by admin {request.user.email}"
        )
        super().delete_model(request, obj)

    def get_user_info(self, obj):
        return format_html('{}<br><small>{}</small>', obj.user.full_name or '-', obj.user.email)
    get_user_info.short_description = 'User'
    get_user_info.admin_order_field = 'user__email'

    def get_subtotal(self, obj):
        return f"₹{obj.subtotal:.2f}"
    get_subtotal.short_description = 'Subtotal'
