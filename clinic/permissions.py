"""
Custom permission classes for role based access control.

Django superusers are treated as the ``admin`` role.
"""
from rest_framework.permissions import BasePermission

STAFF_ROLES = {"doctor", "admin"}


def _role(request):
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    if getattr(user, "is_superuser", False):
        return "admin"
    return getattr(user, "role", None)


class IsDoctor(BasePermission):
    """Allow access only to users with the doctor role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == "doctor"


class IsPatient(BasePermission):
    """Allow access only to users with the patient role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == "patient"


class IsDoctorOrAdmin(BasePermission):
    """doctor or admin."""
    def has_permission(self, request, view) -> bool:
        return _role(request) in STAFF_ROLES
