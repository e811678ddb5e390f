from decimal import Decimal

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, max_length=255)),
                ('description', models.TextField(blank=True, null=True)),
                ('price', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('category', models.CharField(choices=[('Fresh Fish', 'Fresh Fish'), ('Prawns & Shrimp', 'Prawns & Shrimp'), ('Crabs', 'Crabs'), ('Dried Fish', 'Dried Fish'), ('Fish Curry Cut', 'Fish Curry Cut')], db_index=True, max_length=50)),
                ('image_url', models.URLField(blank=True, max_length=500, null=True)),
                ('stock_quantity', models.PositiveIntegerField(db_index=True, default=0)),
                ('unit', models.CharField(choices=[('kg', 'Kilogram'), ('piece', 'Piece'), ('gram', 'Gram')], default='kg', max_length=10)),
                ('is_available', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'products',
                'ordering': ['-created_at', 'name'],
                'indexes': [models.Index(fields=['category', 'is_available'], name='products_cat_avail_idx')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('price__gt', 0)), name='products_price_check'),
                    models.CheckConstraint(condition=models.Q(('stock_quantity__gte', 0)), name='products_stock_quantity_check'),
                    models.CheckConstraint(condition=models.Q(('category__in', ['Fresh Fish', 'Prawns & Shrimp', 'Crabs', 'Dried Fish', 'Fish Curry Cut'])), name='products_category_check'),
                    models.CheckConstraint(condition=models.Q(('unit__in', ['kg', 'piece', 'gram'])), name='products_unit_check'),
                ],
            },
        ),
    ]
