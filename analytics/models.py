from django.db import models


class DailyStats(models.Model):
    """
    Per-day snapshot of order activity, written by ``refresh_daily_stats``.
    Reports never read revenue from here; it is kept for the admin's history.
    """
    date = models.DateField(unique=True)
    total_orders = models.PositiveIntegerField(default=0)
    total_revenue = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    pending_orders = models.PositiveIntegerField(default=0)
    delivered_orders = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'daily_stats'
        verbose_name = "Daily Stats"
        verbose_name_plural = "Daily Stats"
        ordering = ['-date']

    def __str__(self):
        return f"{self.date}: {self.total_orders} orders, {self.total_revenue}"
