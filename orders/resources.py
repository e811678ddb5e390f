# orders/resources.py

from import_export import resources, fields
from orders.models import Order


class OrderResource(resources.ModelResource):
    customer_name = fields.Field(attribute='customer__full_name', column_name='Customer Name')
    customer_email = fields.Field(attribute='customer__email', column_name='Customer Email')
    delivery_address_text = fields.Field(column_name='Delivery Address')
    order_items_count = fields.Field(column_name='Total Items')
    order_items_details = fields.Field(column_name='Order Items Details')

    class Meta:
        model = Order
        fields = (
            'order_number', 'created_at', 'updated_at', 'status', 'total_amount',
            'payment_method', 'payment_status', 'delivery_phone', 'delivery_notes',
            'delivery_date', 'customer_name', 'customer_email', 'delivery_address_text',
            'order_items_count', 'order_items_details',
        )
        export_order = (
            'order_number', 'created_at', 'status', 'customer_name', 'customer_email',
            'total_amount', 'payment_method', 'payment_status', 'delivery_phone',
            'delivery_address_text', 'delivery_notes', 'delivery_date', 'updated_at',
            'order_items_count', 'order_items_details',
        )

    def dehydrate_delivery_address_text(self, order):
        address = order.delivery_address or {}
        parts = [
            address.get('address_line1'), address.get('address_line2'), address.get('landmark'),
            address.get('city'), address.get('state'), address.get('postal_code'), address.get('country'),
        ]
        return ', '.join(part for part in parts if part)

    def dehydrate_order_items_count(self, order):
        return order.items.count()

    def dehydrate_order_items_details(self, order):
        return "; ".join(
            f"{item.quantity_kg} x {item.product_name} @ ₹{item.price_per_kg} = ₹{item.subtotal}"
            for item in order.items.all()
        )
