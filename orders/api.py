"""
orders/api.py

Checkout, order history and the admin-side status workflow.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status, viewsets, permissions
from rest_framework.response import Response
from rest_framework.decorators import action

from users.permissions import IsAdminRole, IsOwnerOrAdmin, is_admin_user, scope_to_caller
from .models import Order
from .serializers import CheckoutSerializer, OrderSerializer, OrderStatusUpdateSerializer
from .services import place_order

logger = logging.getLogger(__name__)
admin_logger = logging.getLogger('admin_actions')


def validation_error_response(exc):
    if hasattr(exc, 'message_dict'):
        detail = exc.message_dict
    else:
        detail = exc.messages[0] if len(exc.messages) == 1 else exc.messages
    return Response({'error': detail}, status=status.HTTP_400_BAD_REQUEST)


class OrderViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Orders are looked up by order number. Customers only ever see their own
    orders; anything else is reported as not found. Admins see every order
    and drive the status workflow.
    """
    serializer_class = OrderSerializer
    permission_classes = [permissions.IsAuthenticated, IsOwnerOrAdmin]
    lookup_field = 'order_number'
    owner_field = 'customer'

    def get_queryset(self):
        queryset = scope_to_caller(
            Order.objects.select_related('customer').prefetch_related('items'),
            self.request.user,
            owner_field=self.owner_field,
        )
        status_filter = self.request.query_params.get('status')
        if status_filter and is_admin_user(self.request.user):
            queryset = queryset.filter(status=status_filter)
        return queryset

    @action(detail=False, methods=['post'])
    def checkout(self, request):
        """
        Place an order for everything in the caller's cart.

        Body (all optional): delivery_phone, delivery_address, delivery_notes,
        payment_method. Phone and address default to the caller's profile.
        """
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = place_order(request.user, **serializer.validated_data)
        except DjangoValidationError as e:
            logger.info(f"Checkout rejected for {request.user.email}: {e.messages}")
            return validation_error_response(e)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='status', permission_classes=[IsAdminRole])
    def update_status(self, request, order_number=None):
        """
        Admin-only status change. Moving to 'delivered' needs the code that
        was issued when the order went out for delivery.
        """
        order = self.get_object()
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data['status']

        try:
            order.transition_to(new_status, verification_code=serializer.validated_data.get('verification_code'))
        except DjangoValidationError as e:
            admin_logger.warning(
                f"{request.user.email} failed to move order {order.order_number} to {new_status}: {e.messages}"
            )
            return validation_error_response(e)

        admin_logger.info(f"{request.user.email} moved order {order.order_number} to {new_status}")
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)
