from datetime import datetime
import logging

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from analytics.services import refresh_daily_stats

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Recalculate the daily_stats snapshot for one day from the orders table'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            type=str,
            help='Date to refresh (YYYY-MM-DD format); defaults to today',
        )
        parser.add_argument(
            '--verbose',
            action='store_true',
            help='Enable verbose output',
        )

    def handle(self, *args, **options):
        if options['date']:
            try:
                target_date = datetime.strptime(options['date'], '%Y-%m-%d').date()
            except ValueError:
                raise CommandError(f"Invalid date '{options['date']}'. Use YYYY-MM-DD.")
        else:
            target_date = timezone.localdate()

        if options['verbose']:
            self.stdout.write(f'Refreshing daily stats for {target_date}...')

        try:
            stats = refresh_daily_stats(target_date)
        except Exception as e:
            logger.error(f'Error refreshing daily stats for {target_date}: {str(e)}')
            self.stdout.write(self.style.ERROR(f'Failed to refresh daily stats: {str(e)}'))
            raise

        if options['verbose']:
            self.stdout.write(
                f'  orders: {stats.total_orders}, pending: {stats.pending_orders}, '
                f'delivered: {stats.delivered_orders}, revenue: {stats.total_revenue}'
            )
        self.stdout.write(self.style.SUCCESS(f'Successfully refreshed daily stats for {target_date}'))
