# ===============================================================================
# API PERMISSIONS CLASSES 🔐
# ===============================================================================

from typing import Any

from rest_framework import permissions
from rest_framework.request import Request


class IsStaffAdmin(permissions.BasePermission):
    """
    Allows access only to administrators (staff_role='admin' or superusers).
    """

    message = 'Administrator privileges required.'

    def has_permission(self, request: Request, view: Any) -> bool:
        user = request.user
        return bool(
            user and user.is_authenticated
            and (user.is_superuser or getattr(user, 'staff_role', '') == 'admin')
        )
