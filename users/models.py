# users/models.py

from django.contrib.auth.models import AbstractUser
from django.db import models

ROLE_CUSTOMER = 'customer'
ROLE_ADMIN = 'admin'

ROLE_CHOICES = [
    (ROLE_CUSTOMER, 'Customer'),
    (ROLE_ADMIN, 'Admin'),
]

ADDRESS_TYPE_CHOICES = [
    ('home', 'Home'),
    ('work', 'Work'),
    ('other', 'Other'),
]


class CustomUser(AbstractUser):
    """
    The shop profile. Each authenticated principal has exactly one row here,
    carrying its role and default delivery address.
    """
    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=20, blank=True, null=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_CUSTOMER, db_index=True)

    # Delivery address
    address_line1 = models.CharField(max_length=255, blank=True, null=True)
    address_line2 = models.CharField(max_length=255, blank=True, null=True)
    city = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    state = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    postal_code = models.CharField(max_length=20, blank=True, null=True, db_index=True)
    landmark = models.CharField(max_length=255, blank=True, null=True)
    country = models.CharField(max_length=100, default='India')
    address_type = models.CharField(max_length=10, choices=ADDRESS_TYPE_CHOICES, default='home')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'profile'
        verbose_name_plural = 'profiles'
        db_table = 'profiles'
        constraints = [
            models.CheckConstraint(
                condition=models.Q(role__in=[ROLE_CUSTOMER, ROLE_ADMIN]),
                name='profiles_role_check',
            ),
        ]

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def delivery_address(self):
        """Snapshot of the stored address, as copied onto new orders."""
        return {
            'address_line1': self.address_line1 or '',
            'address_line2': self.address_line2 or '',
            'city': self.city or '',
            'state': self.state or '',
            'postal_code': self.postal_code or '',
            'landmark': self.landmark or '',
            'country': self.country or '',
            'address_type': self.address_type,
        }

    def __str__(self):
        return self.email
