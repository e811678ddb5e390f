from rest_framework import serializers
from .models import Order, OrderItem, ORDER_STATUS_CHOICES, PAYMENT_METHOD_CHOICES


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'quantity_kg', 'price_per_kg', 'subtotal', 'created_at']


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    customer_email = serializers.EmailField(source='customer.email', read_only=True)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer', 'customer_email', 'customer_name',
            'status', 'payment_method', 'payment_status', 'total_amount',
            'delivery_address', 'delivery_phone', 'delivery_notes', 'verification_code', 'delivery_date',
            'created_at', 'updated_at', 'items',
        ]
        read_only_fields = fields


class CheckoutSerializer(serializers.Serializer):
    delivery_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    delivery_address = serializers.JSONField(required=False)
    delivery_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHOD_CHOICES, default='cod')

    def validate_delivery_address(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Delivery address must be an object.")
        return value


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ORDER_STATUS_CHOICES)
    verification_code = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
