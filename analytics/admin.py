from django.contrib import admin

from .models import DailyStats


@admin.register(DailyStats)
class DailyStatsAdmin(admin.ModelAdmin):
    list_display = ('date', 'total_orders', 'total_revenue', 'pending_orders', 'delivered_orders', 'updated_at')
    list_filter = ('date',)
    date_hierarchy = 'date'
    readonly_fields = ('date', 'total_orders', 'total_revenue', 'pending_orders', 'delivered_orders',
                       'created_at', 'updated_at')

    def has_add_permission(self, request):
        return False  # Snapshots are written by refresh_daily_stats
