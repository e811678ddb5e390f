"""
analytics/api.py

Read-only admin reports. The caller's role is checked before any query
parameter is looked at, and again by each report function, so anonymous
callers get the same 403 as signed-in customers.
"""

import logging

from rest_framework import viewsets, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response

from users.permissions import require_admin
from . import services

logger = logging.getLogger(__name__)


class InvalidQuery(Exception):
    """A report query parameter that cannot be used."""


class AnalyticsViewSet(viewsets.ViewSet):
    # Role checks go through require_admin so unauthenticated callers get 403, not 401.
    permission_classes = [permissions.AllowAny]

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        require_admin(request.user, request)

    def handle_exception(self, exc):
        if isinstance(exc, InvalidQuery):
            logger.info(f"Rejected analytics request from {self.request.user}: {exc}")
            return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return super().handle_exception(exc)

    def _period(self, request):
        period = request.query_params.get('period', 'daily')
        if period not in services.PERIOD_DAYS:
            raise InvalidQuery(f"Unknown period '{period}'. Use one of: {', '.join(services.PERIOD_DAYS)}.")
        return period

    def _limit(self, request, default=10):
        try:
            limit = int(request.query_params.get('limit', default))
        except (TypeError, ValueError):
            raise InvalidQuery('limit must be a whole number.')
        if limit < 1:
            raise InvalidQuery('limit must be at least 1.')
        return limit

    def _report(self, func, *args, **kwargs):
        return Response(func(self.request.user, *args, request=self.request, **kwargs))

    @action(detail=False, methods=['get'])
    def revenue(self, request):
        """Delivered-order revenue, overall and for today."""
        return self._report(services.get_admin_revenue_stats)

    @action(detail=False, methods=['get'], url_path='order-status')
    def order_status(self, request):
        return self._report(services.get_order_status_breakdown)

    @action(detail=False, methods=['get'], url_path='payment-status')
    def payment_status(self, request):
        return self._report(services.get_payment_status_breakdown)

    @action(detail=False, methods=['get'])
    def dashboard(self, request):
        return self._report(services.get_dashboard_stats)

    @action(detail=False, methods=['get'])
    def customers(self, request):
        return self._report(services.get_customers_with_stats)

    @action(detail=False, methods=['get'], url_path='recent-activity')
    def recent_activity(self, request):
        return self._report(services.get_recent_activity, limit=self._limit(request))

    @action(detail=False, methods=['get'], url_path='sales-report')
    def sales_report(self, request):
        """?period=daily|weekly|monthly (default daily)."""
        return self._report(services.get_sales_report, self._period(request))

    @action(detail=False, methods=['get'], url_path='top-products')
    def top_products(self, request):
        return self._report(services.get_top_products, self._period(request), limit=self._limit(request))

    @action(detail=False, methods=['get'], url_path='revenue-by-period')
    def revenue_by_period(self, request):
        return self._report(services.get_revenue_by_period, self._period(request))

    @action(detail=False, methods=['get'], url_path='quick-stats')
    def quick_stats(self, request):
        return self._report(services.get_quick_stats, self._period(request))
