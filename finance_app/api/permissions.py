from rest_framework import permissions

from .rules import Principal, is_admin


class IsPrincipalAuthenticated(permissions.BasePermission):
    """
    Allows access when the request was resolved to a Principal by the
    identity service (see IntrospectionAuthentication).
    """

    def has_permission(self, request, view):
        return isinstance(request.user, Principal)


class IsAdminPrincipal(permissions.BasePermission):
    """
    Permission class for lifecycle operations (status, delete, restore).
    """
    message = "Only administrators can perform this operation."

    def has_permission(self, request, view):
        return isinstance(request.user, Principal) and is_admin(request.user)
