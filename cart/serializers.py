# cart/serializers.py

from rest_framework import serializers
from .models import CartItem


class CartItemSerializer(serializers.ModelSerializer):
    cart_item_id = serializers.IntegerField(source='id', read_only=True)
    product = serializers.SerializerMethodField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = CartItem
        fields = ['cart_item_id', 'product', 'quantity', 'subtotal', 'created_at', 'updated_at']

    def get_product(self, obj):
        product = obj.product
        return {
            'product_id': product.id,
            'name': product.name,
            'category': product.category,
            'price': str(product.price),
            'unit': product.unit,
            'image_url': product.image_url,
            'stock_quantity': product.stock_quantity,
            'is_available': product.is_available,
            'status': "In stock" if product.in_stock else "Out of stock",
        }
