from django.contrib.auth import get_user_model
from rest_framework import permissions
from rest_framework.exceptions import PermissionDenied
import logging

from .models import ROLE_ADMIN

logger = logging.getLogger(__name__)


class AdminAccessDenied(PermissionDenied):
    default_detail = 'Access denied. Admin privileges required.'
    default_code = 'admin_required'


def _client_ip(request):
    if request is None:
        return 'Unknown IP'
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'Unknown IP')


def get_current_user_role(user):
    """
    Return the stored role for ``user``, or None when there is no
    authenticated principal or no profile row for it.

    The lookup goes through the model's base manager by primary key, so it
    never depends on any caller-scoped queryset filtering.
    """
    if user is None or not getattr(user, 'is_authenticated', False) or user.pk is None:
        return None
    User = get_user_model()
    return User._base_manager.filter(pk=user.pk).values_list('role', flat=True).first()


def is_admin_user(user):
    """True only for an authenticated principal whose profile role is admin."""
    return get_current_user_role(user) == ROLE_ADMIN


def require_admin(user, request=None):
    if not is_admin_user(user):
        logger.warning(f"Admin access denied for {user} from IP {_client_ip(request)}.")
        raise AdminAccessDenied()


class IsAdminRole(permissions.BasePermission):
    """
    Only profiles with the admin role may use the view.
    """
    message = AdminAccessDenied.default_detail

    def has_permission(self, request, view):
        has_perm = is_admin_user(request.user)
        if not has_perm:
            logger.warning(f"Unauthorized admin access attempt by {request.user} from IP {_client_ip(request)}.")
        return has_perm


class IsAdminOrReadOnly(permissions.BasePermission):
    """
    Catalogue rule: anyone may read, only admins may write.
    """
    message = AdminAccessDenied.default_detail

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return is_admin_user(request.user)


class IsOwnerOrAdmin(permissions.BasePermission):
    """
    Object-level rule: the row's owner or an admin.
    ``owner_field`` on the view names the attribute holding the owner id.
    """

    def has_object_permission(self, request, view, obj):
        owner_field = getattr(view, 'owner_field', 'user')
        owner_id = getattr(obj, f'{owner_field}_id', None)
        if owner_id is not None and owner_id == request.user.pk:
            return True
        return is_admin_user(request.user)


def scope_to_caller(queryset, user, owner_field='user'):
    """
    Restrict ``queryset`` to rows owned by ``user`` unless the caller is an
    admin. Anonymous callers get an empty queryset.
    """
    if is_admin_user(user):
        return queryset
    if user is None or not user.is_authenticated:
        return queryset.none()
    return queryset.filter(**{owner_field: user})
