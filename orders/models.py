# orders/models.py

import secrets
from decimal import Decimal

from django.db import models, transaction
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.utils import timezone
import logging

from .numbering import assign_order_number

logger = logging.getLogger(__name__)

STATUS_PENDING = 'pending'
STATUS_CONFIRMED = 'confirmed'
STATUS_PREPARING = 'preparing'
STATUS_OUT_FOR_DELIVERY = 'out_for_delivery'
STATUS_DELIVERED = 'delivered'
STATUS_CANCELLED = 'cancelled'

# Choices for order status and payment status.
ORDER_STATUS_CHOICES = [
    (STATUS_PENDING, 'Pending'),
    (STATUS_CONFIRMED, 'Confirmed'),
    (STATUS_PREPARING, 'Preparing'),
    (STATUS_OUT_FOR_DELIVERY, 'Out for delivery'),
    (STATUS_DELIVERED, 'Delivered'),
    (STATUS_CANCELLED, 'Cancelled'),
]

PAYMENT_METHOD_CHOICES = [
    ('cod', 'Cash on delivery'),
    ('online', 'Online'),
]

PAYMENT_STATUS_CHOICES = [
    ('pending', 'Pending'),
    ('paid', 'Paid'),
    ('failed', 'Failed'),
]

# Statuses an order may move to from each status. Delivered and cancelled are final.
ALLOWED_TRANSITIONS = {
    STATUS_PENDING: (STATUS_CONFIRMED, STATUS_CANCELLED),
    STATUS_CONFIRMED: (STATUS_PREPARING, STATUS_CANCELLED),
    STATUS_PREPARING: (STATUS_OUT_FOR_DELIVERY, STATUS_CANCELLED),
    STATUS_OUT_FOR_DELIVERY: (STATUS_DELIVERED, STATUS_CANCELLED),
    STATUS_DELIVERED: (),
    STATUS_CANCELLED: (),
}

# Orders counted as real sales in reports.
SALES_STATUSES = [STATUS_CONFIRMED, STATUS_PREPARING, STATUS_OUT_FOR_DELIVERY, STATUS_DELIVERED]


def generate_verification_code():
    """Four-digit code the customer reads out to the delivery agent."""
    return str(1000 + secrets.randbelow(9000))


class OrderCount(models.Model):
    """
    Per-day order counter behind order numbers. Rows are created on the
    first order of a date and only ever incremented.
    """
    date = models.DateField(unique=True)
    count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'order_counts'
        ordering = ['-date']
        constraints = [
            models.CheckConstraint(condition=models.Q(count__gte=0), name='order_counts_count_check'),
        ]

    def __str__(self):
        return f"{self.date}: {self.count}"


class Order(models.Model):
    """
    A placed order.
    - 'customer': the profile that placed it. Customers with orders cannot be deleted.
    - 'order_number': ORD-YYYYMMDD-NNN, drawn from the daily counter when the
      row is first inserted and never changed afterwards.
    - 'delivery_address': snapshot of the address at checkout time.
    - 'verification_code': set when the order goes out for delivery and
      checked when it is marked delivered.
    """
    customer = models.ForeignKey(settings.AUTH_USER_MODEL, related_name='orders', on_delete=models.PROTECT)
    order_number = models.CharField(max_length=20, unique=True, blank=True, editable=False)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2,
                                       validators=[MinValueValidator(Decimal('0.01'))])
    status = models.CharField(max_length=20, choices=ORDER_STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHOD_CHOICES, default='cod')
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUS_CHOICES, default='pending')
    delivery_address = models.JSONField(default=dict)
    delivery_phone = models.CharField(max_length=20)
    delivery_notes = models.TextField(blank=True, null=True)
    verification_code = models.CharField(max_length=4, blank=True, null=True)
    delivery_date = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer', 'status'], name='orders_customer_status_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(total_amount__gt=0), name='orders_total_amount_check'),
            models.CheckConstraint(
                condition=models.Q(status__in=[value for value, _ in ORDER_STATUS_CHOICES]),
                name='orders_status_check',
            ),
            models.CheckConstraint(
                condition=models.Q(payment_method__in=[value for value, _ in PAYMENT_METHOD_CHOICES]),
                name='orders_payment_method_check',
            ),
            models.CheckConstraint(
                condition=models.Q(payment_status__in=[value for value, _ in PAYMENT_STATUS_CHOICES]),
                name='orders_payment_status_check',
            ),
        ]

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._original_order_number = instance.__dict__.get('order_number')
        return instance

    def clean(self):
        original = getattr(self, '_original_order_number', None)
        if self.pk and original and self.order_number != original:
            raise ValidationError({'order_number': 'Order number cannot be changed once assigned.'})
        super().clean()

    def save(self, *args, **kwargs):
        if not self._state.adding:
            self.full_clean()
            super().save(*args, **kwargs)
            return

        # The counter bump and the insert commit or roll back together.
        try:
            with transaction.atomic():
                assign_order_number(self)
                self.full_clean()
                super().save(*args, **kwargs)
        except Exception as e:
            self.order_number = ''
            if not isinstance(e, ValidationError):
                logger.error(f"Order creation for customer {self.customer_id} failed, nothing was saved: {e}")
            raise
        self._original_order_number = self.order_number

    @property
    def allowed_next_statuses(self):
        return ALLOWED_TRANSITIONS.get(self.status, ())

    def can_transition_to(self, new_status):
        return new_status in self.allowed_next_statuses

    def restore_stock(self):
        for item in self.items.select_related('product'):
            item.product.restore_stock(item.quantity_kg)

    @transaction.atomic
    def transition_to(self, new_status, verification_code=None):
        """
        Move the order to ``new_status``.

        Going out for delivery issues a fresh verification code; delivering
        requires that code back and settles cash-on-delivery payment;
        cancelling puts the ordered stock back on the shelf.
        """
        locked = Order.objects.select_for_update().get(pk=self.pk)
        if not locked.can_transition_to(new_status):
            raise ValidationError(
                f"Cannot change order status from '{locked.status}' to '{new_status}'."
            )

        previous = locked.status
        self.status = new_status
        update_fields = ['status', 'updated_at']

        if new_status == STATUS_OUT_FOR_DELIVERY:
            self.verification_code = generate_verification_code()
            update_fields.append('verification_code')
        elif new_status == STATUS_DELIVERED:
            supplied = str(verification_code or '').strip()
            if not supplied or supplied != (locked.verification_code or ''):
                self.status = previous
                raise ValidationError('Invalid delivery verification code.')
            self.delivery_date = timezone.now()
            update_fields.append('delivery_date')
            if self.payment_method == 'cod':
                self.payment_status = 'paid'
                update_fields.append('payment_status')
        elif new_status == STATUS_CANCELLED:
            self.restore_stock()

        self.save(update_fields=update_fields)
        logger.info(f"Order {self.order_number} moved from {previous} to {new_status}")
        return self

    def __str__(self):
        return f"Order {self.order_number}"


class OrderItem(models.Model):
    """
    A line of an order. Product name and price are copied at checkout so later
    catalogue edits never rewrite history.
    """
    order = models.ForeignKey(Order, related_name='items', on_delete=models.CASCADE)
    product = models.ForeignKey('products.Product', related_name='order_items', on_delete=models.PROTECT)
    product_name = models.CharField(max_length=255)
    quantity_kg = models.DecimalField(max_digits=8, decimal_places=2)
    price_per_kg = models.DecimalField(max_digits=10, decimal_places=2)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_items'
        ordering = ['id']
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity_kg__gt=0), name='order_items_quantity_kg_check'),
            models.CheckConstraint(condition=models.Q(price_per_kg__gt=0), name='order_items_price_per_kg_check'),
            models.CheckConstraint(condition=models.Q(subtotal__gt=0), name='order_items_subtotal_check'),
        ]

    def clean(self):
        if self.quantity_kg is not None and self.quantity_kg <= 0:
            raise ValidationError("Quantity must be greater than zero.")
        super().clean()

    def save(self, *args, **kwargs):
        if self.subtotal is None:
            self.subtotal = (self.quantity_kg * self.price_per_kg).quantize(Decimal('0.01'))
        self.full_clean()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.quantity_kg} x {self.product_name}"
