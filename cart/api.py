# cart/api.py

import logging
from decimal import Decimal, InvalidOperation

from rest_framework import status, viewsets, permissions
from rest_framework.response import Response
from rest_framework.decorators import action
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from .models import CartItem
from .serializers import CartItemSerializer
from products.models import Product

logger = logging.getLogger(__name__)


def _parse_quantity(raw):
    """Return a positive Decimal quantity or None."""
    try:
        quantity = Decimal(str(raw))
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not quantity.is_finite() or quantity <= 0:
        return None
    return quantity


def cart_totals(items):
    items = list(items)
    return {
        'total_price': sum((item.subtotal for item in items), Decimal('0.00')).quantize(Decimal('0.01')),
        'item_count': len(items),
    }


def find_cart_line(user, product):
    return CartItem.objects.filter(user=user, product=product).first()


def add_quantity(user, product, quantity):
    """
    Add ``quantity`` of ``product`` to the user's cart and return
    ``(cart_item, created)``. A line inserted by a concurrent request
    between the lookup and the insert is merged into instead.
    """
    cart_item = find_cart_line(user, product)
    if cart_item is None:
        try:
            with transaction.atomic():
                cart_item = CartItem(user=user, product=product, quantity=quantity)
                cart_item.save()
            return cart_item, True
        except (IntegrityError, ValidationError):
            cart_item = find_cart_line(user, product)
            if cart_item is None:
                raise
            logger.info(f"Cart line for product {product.pk} created concurrently for user {user.pk}, merging")

    cart_item.quantity += quantity
    cart_item.save()
    return cart_item, False


class CartViewSet(viewsets.ViewSet):
    """
    The caller's own cart. Every query is filtered by ``request.user`` so a
    shopper can never see or touch another shopper's lines.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get_items(self, request):
        return CartItem.objects.filter(user=request.user).select_related('product')

    @action(detail=False, methods=['get'])
    def retrieve_cart(self, request):
        """
        Retrieves the current user's cart.
        """
        items = self.get_items(request)
        data = {'items': CartItemSerializer(items, many=True).data}
        data.update(cart_totals(items))
        return Response(data, status=status.HTTP_200_OK)

    @action(detail=False, methods=['post'])
    def add_to_cart(self, request):
        """
        Adds a product to the cart, merging with an existing line for it.
        """
        product_id = request.data.get('product_id')
        if not product_id:
            return Response({'error': 'Product ID must be provided.'},
                            status=status.HTTP_400_BAD_REQUEST)

        quantity = _parse_quantity(request.data.get('quantity', 1))
        if quantity is None:
            return Response({'error': 'Quantity must be a positive number.'},
                            status=status.HTTP_400_BAD_REQUEST)

        try:
            product = Product.objects.get(id=product_id, is_available=True)
        except (Product.DoesNotExist, ValueError):
            return Response({'error': 'Product does not exist or is unavailable.'},
                            status=status.HTTP_404_NOT_FOUND)

        try:
            cart_item, created = add_quantity(request.user, product, quantity)
        except ValidationError as e:
            return Response({'error': e.message_dict},
                            status=status.HTTP_400_BAD_REQUEST)

        return Response({
            'status': 'Added to cart',
            'item': CartItemSerializer(cart_item).data,
        }, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)

    @action(detail=True, methods=['put', 'patch'])
    def update_cart_item(self, request, pk=None):
        """
        Sets the quantity of a line in the user's cart.
        """
        try:
            cart_item = self.get_items(request).get(pk=pk)
        except (CartItem.DoesNotExist, ValueError):
            return Response({'error': 'Cart item not found.'},
                            status=status.HTTP_404_NOT_FOUND)

        quantity = _parse_quantity(request.data.get('quantity'))
        if quantity is None:
            return Response({'error': 'Quantity must be a positive number.'},
                            status=status.HTTP_400_BAD_REQUEST)

        cart_item.quantity = quantity
        try:
            cart_item.save()
        except ValidationError as e:
            return Response({'error': e.message_dict},
                            status=status.HTTP_400_BAD_REQUEST)

        return Response({
            'status': 'Cart item updated',
            'item': CartItemSerializer(cart_item).data,
        }, status=status.HTTP_200_OK)

    @action(detail=True, methods=['delete'])
    def delete_cart_item(self, request, pk=None):
        """
        Removes an item from the user's cart.
        """
        try:
            deleted, _ = self.get_items(request).filter(pk=pk).delete()
        except ValueError:
            deleted = 0
        if not deleted:
            return Response({'error': 'Cart item not found.'},
                            status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['post'])
    def clear_cart(self, request):
        """
        Clears all items from the authenticated user's cart.
        """
        self.get_items(request).delete()
        return Response({'status': 'Cart cleared'}, status=status.HTTP_200_OK)

    @action(detail=False, methods=['get'])
    def cart_summary(self, request):
        """
        Returns a summary of the cart.
        """
        return Response(cart_totals(self.get_items(request)), status=status.HTTP_200_OK)
