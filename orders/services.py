# orders/services.py

from decimal import Decimal
import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from cart.models import CartItem
from products.models import Product
from .models import Order, OrderItem

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


@transaction.atomic
def place_order(user, delivery_phone=None, delivery_address=None, delivery_notes=None, payment_method='cod'):
    """
    Turn the user's cart into an order.

    Stock is checked and taken, each line's name and price are copied onto
    an order item, the order gets its number and the cart is emptied, all in
    one transaction. Any ValidationError leaves the database untouched.
    """
    cart_items = list(CartItem.objects.filter(user=user).select_related('product').order_by('product_id'))
    if not cart_items:
        raise ValidationError('Cart is empty.')

    delivery_phone = (delivery_phone or user.phone or '').strip()
    if not delivery_phone:
        raise ValidationError({'delivery_phone': 'A delivery phone number is required.'})
    if delivery_address is None:
        delivery_address = user.delivery_address()

    # Lock the product rows in a stable order so concurrent checkouts cannot deadlock.
    products = {
        p.pk: p for p in Product.objects.select_for_update().filter(
            pk__in=[item.product_id for item in cart_items]
        ).order_by('pk')
    }

    lines = []
    total = Decimal('0.00')
    for item in cart_items:
        product = products[item.product_id]
        if not product.is_available:
            raise ValidationError(f'{product.name} is no longer available.')
        if not product.decrease_stock(item.quantity):
            raise ValidationError(
                f'Insufficient stock for {product.name} '
                f'(requested {item.quantity}, available {product.stock_quantity}).'
            )
        subtotal = (item.quantity * product.price).quantize(TWO_PLACES)
        total += subtotal
        lines.append((product, item.quantity, subtotal))

    order = Order(
        customer=user,
        total_amount=total,
        payment_method=payment_method,
        delivery_address=delivery_address,
        delivery_phone=delivery_phone,
        delivery_notes=delivery_notes,
    )
    order.save()

    for product, quantity, subtotal in lines:
        OrderItem.objects.create(
            order=order,
            product=product,
            product_name=product.name,
            quantity_kg=quantity,
            price_per_kg=product.price,
            subtotal=subtotal,
        )

    CartItem.objects.filter(pk__in=[item.pk for item in cart_items]).delete()
    logger.info(
        f"Order {order.order_number} placed by {user.email}: "
        f"{len(lines)} item(s), total {order.total_amount}"
    )
    return order
