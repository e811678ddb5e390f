import math
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models, transaction
from django.db.models import F

CATEGORY_FRESH_FISH = 'Fresh Fish'
CATEGORY_PRAWNS = 'Prawns & Shrimp'
CATEGORY_CRABS = 'Crabs'
CATEGORY_DRIED_FISH = 'Dried Fish'
CATEGORY_CURRY_CUT = 'Fish Curry Cut'

CATEGORY_CHOICES = [
    (CATEGORY_FRESH_FISH, 'Fresh Fish'),
    (CATEGORY_PRAWNS, 'Prawns & Shrimp'),
    (CATEGORY_CRABS, 'Crabs'),
    (CATEGORY_DRIED_FISH, 'Dried Fish'),
    (CATEGORY_CURRY_CUT, 'Fish Curry Cut'),
]

UNIT_CHOICES = [
    ('kg', 'Kilogram'),
    ('piece', 'Piece'),
    ('gram', 'Gram'),
]


def stock_units(quantity):
    """
    Whole stock units consumed by a (possibly fractional) ordered quantity.
    Stock is counted in whole units, so 1.5 kg takes two.
    """
    return int(math.ceil(Decimal(quantity)))


class Product(models.Model):
    """ A catalogue entry. Images are stored as opaque URLs. """
    name = models.CharField(max_length=255, db_index=True)
    description = models.TextField(blank=True, null=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    category = models.CharField(max_length=50, choices=CATEGORY_CHOICES, db_index=True)
    image_url = models.URLField(max_length=500, blank=True, null=True)
    stock_quantity = models.PositiveIntegerField(default=0, db_index=True)
    unit = models.CharField(max_length=10, choices=UNIT_CHOICES, default='kg')
    is_available = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'products'
        ordering = ['-created_at', 'name']
        indexes = [
            models.Index(fields=['category', 'is_available'], name='products_cat_avail_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(price__gt=0), name='products_price_check'),
            models.CheckConstraint(condition=models.Q(stock_quantity__gte=0), name='products_stock_quantity_check'),
            models.CheckConstraint(
                condition=models.Q(category__in=[value for value, _ in CATEGORY_CHOICES]),
                name='products_category_check',
            ),
            models.CheckConstraint(
                condition=models.Q(unit__in=[value for value, _ in UNIT_CHOICES]),
                name='products_unit_check',
            ),
        ]

    def clean(self):
        if self.price is not None and self.price <= 0:
            raise ValidationError({'price': 'Price must be greater than zero.'})
        if self.stock_quantity is not None and self.stock_quantity < 0:
            raise ValidationError({'stock_quantity': 'Stock quantity cannot be negative.'})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def in_stock(self):
        return self.is_available and self.stock_quantity > 0

    @transaction.atomic
    def decrease_stock(self, quantity):
        """
        Take ``quantity`` off the shelf. The update only matches while enough
        stock remains, so two buyers can never both take the last unit.
        """
        units = stock_units(quantity)
        updated = Product.objects.filter(pk=self.pk, stock_quantity__gte=units).update(
            stock_quantity=F('stock_quantity') - units
        )
        if updated:
            self.refresh_from_db(fields=['stock_quantity'])
            return True
        return False

    @transaction.atomic
    def restore_stock(self, quantity):
        units = stock_units(quantity)
        Product.objects.filter(pk=self.pk).update(stock_quantity=F('stock_quantity') + units)
        self.refresh_from_db(fields=['stock_quantity'])

    def __str__(self):
        return f"{self.name} (₹{self.price}/{self.unit})"
