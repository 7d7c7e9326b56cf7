"""
Permission classes for employee role based access control.

Roles live on the :class:`~portal.models.Employee` linked to the request's
user, so every class resolves the employee first.
"""
from rest_framework.permissions import BasePermission

from .access import get_user_permissions


class HasEmployee(BasePermission):
    """Authenticated user with a linked employee record."""
    message = 'No employee record is linked to this account.'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and get_user_permissions(user).employee is not None)


class IsManagerRole(BasePermission):
    """manager, admin or super_admin."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and get_user_permissions(user).is_manager)


class IsAdminRole(BasePermission):
    """Allow access only to employees with an administrative role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and get_user_permissions(user).is_admin)


class IsSuperAdmin(BasePermission):
    """Only super admin."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and get_user_permissions(user).is_super_admin)
