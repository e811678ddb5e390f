import logging
from functools import wraps

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils.decorators import method_decorator
from django.utils.timezone import now
from django_ratelimit.decorators import ratelimit
from rest_framework import status, views
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from .jwt import tokens_for_user
from .permissions import get_current_user_role, is_admin_user
from .serializers import LoginSerializer, RegisterSerializer, UserSerializer

logger = logging.getLogger(__name__)

User = get_user_model()


# Rate limiting decorator that respects the test environment
def production_ratelimit(*args, **kwargs):
    """Rate limiting decorator that bypasses rate limiting during tests."""
    def decorator(func):
        if getattr(settings, 'TESTING', False) or not getattr(settings, 'ENABLE_RATE_LIMIT', True):
            @wraps(func)
            def wrapped(request, *args, **kwargs):
                return func(request, *args, **kwargs)
            return wrapped
        return ratelimit(*args, block=True, **kwargs)(func)
    return decorator


class UserRegisterAPIView(views.APIView):
    permission_classes = [AllowAny]

    @method_decorator(production_ratelimit(key='ip', rate='3/m', method='POST'))
    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        email = serializer.validated_data['email']
        if User.objects.filter(email__iexact=email).exists():
            logger.info(f"Registration attempted with existing email {email}")
            return Response({
                "error": "Registration failed. Email address already exists.",
                "field_error": "email"
            }, status=status.HTTP_409_CONFLICT)

        try:
            with transaction.atomic():
                user = serializer.save()
        except IntegrityError as e:
            logger.warning(f"Registration conflict for {request.data.get('email')}: {e}")
            return Response({
                "error": "Registration failed. Email address already exists.",
                "field_error": "email"
            }, status=status.HTTP_409_CONFLICT)

        logger.info(f"New profile registered: {user.email}")
        response_data = {
            'user': UserSerializer(user).data,
            'message': 'Registration successful.',
        }
        response_data.update(tokens_for_user(user))
        return Response(response_data, status=status.HTTP_201_CREATED)


class UserLoginAPIView(views.APIView):
    permission_classes = [AllowAny]

    @method_decorator(production_ratelimit(key='ip', rate='5/m', method='POST'))
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        email = serializer.validated_data['email']
        password = serializer.validated_data['password']
        expected_role = serializer.validated_data.get('role')

        user = User.objects.filter(email__iexact=email).first()
        if not user or not user.check_password(password):
            logger.warning(f"Failed login attempt for {email} from IP {request.META.get('REMOTE_ADDR', 'unknown')} at {now()}")
            return Response({"error": "Invalid credentials"}, status=status.HTTP_401_UNAUTHORIZED)

        if not user.is_active:
            return Response({"error": "User account is inactive. Please contact support."},
                            status=status.HTTP_403_FORBIDDEN)

        if expected_role and user.role != expected_role:
            logger.warning(f"Role mismatch on login for {email}: expected {expected_role}, actual {user.role}")
            return Response({
                "error": f"Role mismatch. This account is registered as {user.role}. "
                         f"Please use the correct login portal or contact support."
            }, status=status.HTTP_403_FORBIDDEN)

        user.last_login = now()
        user.save(update_fields=['last_login'])

        response_data = {'user': UserSerializer(user).data}
        response_data.update(tokens_for_user(user))
        return Response(response_data, status=status.HTTP_200_OK)


class LogoutAPIView(views.APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        refresh_token = request.data.get("refresh")
        if not refresh_token:
            return Response(
                {
                    "error": "Refresh token is required",
                    "detail": "Please provide a valid refresh token to logout."
                },
                status=status.HTTP_400_BAD_REQUEST
            )
        try:
            token = RefreshToken(refresh_token)
            token.blacklist()
        except TokenError:
            return Response(
                {
                    "error": "Token is invalid or already blacklisted",
                    "detail": "The provided refresh token is either malformed, expired, or already blacklisted."
                },
                status=status.HTTP_401_UNAUTHORIZED
            )
        return Response({"success": "Logged out successfully"}, status=status.HTTP_205_RESET_CONTENT)


class UserProfileAPIView(views.APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        serializer = UserSerializer(request.user)
        return Response(serializer.data, status=status.HTTP_200_OK)

    def patch(self, request):
        serializer = UserSerializer(request.user, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_200_OK)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    put = patch


class UserRoleAPIView(views.APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({
            'role': get_current_user_role(request.user),
            'is_admin': is_admin_user(request.user),
        }, status=status.HTTP_200_OK)
