# users/admin.py

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from django.utils.html import format_html
import logging

from .models import CustomUser

logger = logging.getLogger('admin_actions')


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    list_display = (
        'email', 'full_name', 'phone', 'role_badge', 'city',
        'is_active', 'created_at', 'last_login'
    )
    list_filter = ('role', 'is_active', 'is_staff', 'city', 'state', 'created_at')
    search_fields = ('email', 'full_name', 'phone', 'city', 'postal_code')
    ordering = ('-created_at',)

    fieldsets = UserAdmin.fieldsets + (
        ('Shop Profile', {
            'fields': ('full_name', 'phone', 'role'),
        }),
        ('Delivery Address', {
            'fields': ('address_line1', 'address_line2', 'city', 'state',
                       'postal_code', 'landmark', 'country', 'address_type'),
        }),
    )
    add_fieldsets = UserAdmin.add_fieldsets + (
        ('Shop Profile', {
            'fields': ('email', 'full_name', 'phone', 'role'),
        }),
    )
    readonly_fields = ('date_joined', 'last_login', 'created_at', 'updated_at')
    actions = ['make_admin', 'make_customer']

    def role_badge(self, obj):
        color = 'green' if obj.role == 'admin' else 'gray'
        return format_html('<span style="color: {}; font-weight: bold;">{}</span>', color, obj.get_role_display())
    role_badge.short_description = 'Role'
    role_badge.admin_order_field = 'role'

    def make_admin(self, request, queryset):
        updated = queryset.update(role='admin')
        logger.info(f"{request.user} promoted {updated} profile(s) to admin")
        self.message_user(request, f"{updated} profile(s) promoted to admin.")
    make_admin.short_description = "Grant admin role"

    def make_customer(self, request, queryset):
        updated = queryset.update(role='customer')
        logger.info(f"{request.user} set {updated} profile(s) to customer")
        self.message_user(request, f"{updated} profile(s) set to customer.")
    make_customer.short_description = "Set customer role"
