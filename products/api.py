# products/api.py
import logging

from django.conf import settings
from django.db.models import ProtectedError
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from users.permissions import IsAdminOrReadOnly, IsAdminRole, is_admin_user
from .models import Product, CATEGORY_CHOICES
from .serializers import ProductSerializer, LowStockProductSerializer

logger = logging.getLogger(__name__)
admin_logger = logging.getLogger('admin_actions')


class ProductPagination(PageNumberPagination):
    page_size = 10


class ProductViewSet(viewsets.ModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [IsAdminOrReadOnly]
    pagination_class = ProductPagination

    def get_queryset(self):
        queryset = Product.objects.all()
        # Shoppers only ever see what is on sale
        if not is_admin_user(self.request.user):
            queryset = queryset.filter(is_available=True)

        category = self.request.query_params.get('category')
        if category:
            queryset = queryset.filter(category=category)
        search = self.request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(name__icontains=search)
        return queryset

    def perform_create(self, serializer):
        product = serializer.save()
        admin_logger.info(f"{self.request.user} created product {product.pk} ({product.name})")

    def perform_update(self, serializer):
        product = serializer.save()
        admin_logger.info(f"{self.request.user} updated product {product.pk} ({product.name})")

    def perform_destroy(self, instance):
        admin_logger.info(f"{self.request.user} deleted product {instance.pk} ({instance.name})")
        instance.delete()

    def destroy(self, request, *args, **kwargs):
        try:
            return super().destroy(request, *args, **kwargs)
        except ProtectedError:
            return Response(
                {"error": "Product appears in existing orders. Mark it unavailable instead."},
                status=status.HTTP_409_CONFLICT
            )

    @action(detail=False, methods=['get'])
    def categories(self, request):
        """The fixed list of catalogue categories."""
        return Response([{'value': value, 'label': label} for value, label in CATEGORY_CHOICES])

    @action(detail=False, methods=['get'], url_path='low-stock', permission_classes=[IsAdminRole])
    def low_stock(self, request):
        threshold = getattr(settings, 'LOW_STOCK_THRESHOLD', 10)
        products = Product.objects.filter(
            is_available=True, stock_quantity__lte=threshold
        ).order_by('stock_quantity', 'name')
        return Response({
            'threshold': threshold,
            'count': products.count(),
            'products': LowStockProductSerializer(products, many=True).data,
        }, status=status.HTTP_200_OK)
