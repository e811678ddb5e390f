# orders/numbering.py
"""
Daily order numbering.

Every order gets a number of the form ``ORD-YYYYMMDD-NNN`` where ``NNN`` is
that day's running count. The count lives in the ``order_counts`` table,
one row per calendar date, and is bumped with a single atomic upsert so two
concurrent checkouts can never read the same value.

The calling code is expected to run inside the same transaction as the
order insert: if the insert fails the counter bump is rolled back with it.
"""

import logging

from django.db import connection, transaction
from django.db.models import F
from django.utils import timezone

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = 'ORD'
SEQUENCE_MIN_WIDTH = 3


def _supports_upsert_returning():
    return (
        connection.vendor in ('postgresql', 'sqlite')
        and connection.features.can_return_columns_from_insert
    )


def _upsert_sequence(on_date):
    from .models import OrderCount

    qn = connection.ops.quote_name
    table = qn(OrderCount._meta.db_table)
    now = timezone.now()
    sql = (
        f'INSERT INTO {table} ({qn("date")}, {qn("count")}, {qn("created_at")}, {qn("updated_at")}) '
        f'VALUES (%s, 1, %s, %s) '
        f'ON CONFLICT ({qn("date")}) DO UPDATE SET '
        f'{qn("count")} = {table}.{qn("count")} + 1, '
        f'{qn("updated_at")} = excluded.{qn("updated_at")} '
        f'RETURNING {qn("count")}'
    )
    params = [
        connection.ops.adapt_datefield_value(on_date),
        connection.ops.adapt_datetimefield_value(now),
        connection.ops.adapt_datetimefield_value(now),
    ]
    with connection.cursor() as cursor:
        cursor.execute(sql, params)
        return cursor.fetchone()[0]


def _locked_sequence(on_date):
    from .models import OrderCount

    counter, created = OrderCount.objects.select_for_update().get_or_create(
        date=on_date, defaults={'count': 1}
    )
    if not created:
        OrderCount.objects.filter(pk=counter.pk).update(count=F('count') + 1, updated_at=timezone.now())
        counter.refresh_from_db(fields=['count'])
    return counter.count


def next_daily_sequence(on_date):
    """
    Increment and return the order count for ``on_date``. The first call for
    a date returns 1. Values are never reused or handed out twice.
    """
    with transaction.atomic():
        if _supports_upsert_returning():
            return _upsert_sequence(on_date)
        return _locked_sequence(on_date)


def format_order_number(on_date, sequence):
    """
    ``ORD-20250101-007``. The suffix is padded to three digits and simply
    grows past 999 (``ORD-20250101-1000``).
    """
    if sequence < 1:
        raise ValueError(f"Order sequence must be positive, got {sequence}")
    return f"{ORDER_NUMBER_PREFIX}-{on_date:%Y%m%d}-{sequence:0{SEQUENCE_MIN_WIDTH}d}"


def assign_order_number(order, on_date=None):
    """
    Draw the next number for ``on_date`` (default: today in the server's
    time zone) and set it on ``order``. Does not save the order.
    """
    if on_date is None:
        on_date = timezone.localdate()
    sequence = next_daily_sequence(on_date)
    order.order_number = format_order_number(on_date, sequence)
    logger.debug(f"Assigned order number {order.order_number}")
    return order.order_number
