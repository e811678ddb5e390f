# cart/models.py

from decimal import Decimal

from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from products.models import Product, stock_units
import logging

logger = logging.getLogger(__name__)

MAX_QUANTITY_PER_LINE = Decimal('99')


class CartItem(models.Model):
    """ One product line in a shopper's cart. Quantities may be fractional (kg). """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name='cart_items',
        on_delete=models.CASCADE
    )
    product = models.ForeignKey(Product, related_name='cart_items', on_delete=models.CASCADE)
    quantity = models.DecimalField(
        max_digits=8, decimal_places=2, default=Decimal('1'),
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'cart_items'
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'product'], name='cart_items_user_product_key'),
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name='cart_items_quantity_check'),
        ]

    def __str__(self):
        return f"{self.quantity} {self.product.unit} x {self.product.name}"

    @property
    def subtotal(self):
        return self.quantity * self.product.price

    def clean(self):
        """Validate cart item data integrity"""
        super().clean()

        if self.quantity is None or self.quantity <= 0:
            raise ValidationError({'quantity': 'Quantity must be greater than zero.'})

        if self.quantity > MAX_QUANTITY_PER_LINE:
            raise ValidationError({
                'quantity': f'Maximum {MAX_QUANTITY_PER_LINE} allowed per product.'
            })

        if self.product_id and not self.product.is_available:
            raise ValidationError({
                'product': f'Product {self.product.name} is not available.'
            })

        if self.product_id and stock_units(self.quantity) > self.product.stock_quantity:
            raise ValidationError({
                'quantity': f'Only {self.product.stock_quantity} {self.product.unit} available in stock.'
            })

    def save(self, *args, **kwargs):
        self.full_clean()

        if self.pk:
            logger.info(f"CartItem {self.pk} updated: {self.quantity} x {self.product.name} (user: {self.user_id})")
        else:
            logger.info(f"New CartItem: {self.quantity} x {self.product.name} (user: {self.user_id})")

        super().save(*args, **kwargs)
