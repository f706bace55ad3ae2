from rest_framework import permissions
from core.models import UserProfile


def _profile(user):
    if not user or not user.is_authenticated:
        return None
    return getattr(user, 'profile', None)


class IsAdminRole(permissions.BasePermission):
    """
    Allows access to verified administrators and superusers.
    A freshly registered admin stays locked out until another admin verifies them.
    """
    message = "Administrator access required"

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True

        profile = _profile(user)
        return bool(profile and profile.is_admin and profile.is_verified and profile.is_active)


class IsDonor(permissions.BasePermission):
    """
    Custom permission to only allow donors to perform certain actions.
    """
    message = "Only donors can perform this action"

    def has_permission(self, request, view):
        profile = _profile(request.user)
        return bool(profile and profile.role == UserProfile.DONOR)


class IsRecipient(permissions.BasePermission):
    """
    Custom permission to only allow recipients to perform certain actions.
    """
    message = "Only recipients can perform this action"

    def has_permission(self, request, view):
        profile = _profile(request.user)
        return bool(profile and profile.role == UserProfile.RECIPIENT)


class IsOwnerOrAdmin(permissions.BasePermission):
    """
    Object level permission for owners of an object, with admins let through.
    """

    owner_fields = ('user', 'reviewer', 'recipient', 'donor')

    def has_object_permission(self, request, view, obj):
        if IsAdminRole().has_permission(request, view):
            return True

        owner_ids = [
            getattr(obj, f"{field}_id") for field in self.owner_fields if hasattr(obj, f"{field}_id")
        ]
        if owner_ids:
            return request.user.id in owner_ids
        return obj == request.user
