"""
Role permissions for the API.
Scoping rows to an agency or residence is done by the querysets (residences.access).
"""
from rest_framework import permissions
from core.constants import UserRole


class IsStaffRole(permissions.BasePermission):
    """
    Permission to allow agency staff and syndics (ADMIN, OWNER, MANAGER, SYNDIC)
    """
    message = 'Only agency staff can perform this action.'

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        return request.user.is_staff_role


class IsStaffOrReadOnly(permissions.BasePermission):
    """
    Residents and CS members may read, staff may write
    """
    message = 'Only agency staff can modify this resource.'

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return request.user.is_staff_role


class IsAgencyOwner(permissions.BasePermission):
    """
    Permission for agency owners (and platform admins)
    """
    message = 'Only the agency owner can perform this action.'

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        return request.user.role == UserRole.OWNER or request.user.is_platform_admin


class IsPlatformAdmin(permissions.BasePermission):
    """
    Back-office only
    """
    message = 'Only platform administrators can perform this action.'

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        return request.user.is_platform_admin


class IsStaffOrCouncilReadOnly(permissions.BasePermission):
    """
    Financial data: staff may write, conseil syndical members may read
    """
    message = 'Only agency staff can access this resource.'

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if request.method in permissions.SAFE_METHODS:
            return user.is_staff_role or user.role == UserRole.CS
        return user.is_staff_role
