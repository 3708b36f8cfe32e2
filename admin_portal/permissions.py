from rest_framework.permissions import BasePermission

from accounts.models import User, EVALUATOR_ROLES


def _role_of(user):
    role_val = getattr(user, "role", None)
    return role_val.strip().upper() if isinstance(role_val, str) else None


class IsAdminRole(BasePermission):
    """
    Accept any of:
      - role == ADMIN
      - Django staff (is_staff)
      - Django superuser (is_superuser)
    """
    message = "Admin access required."

    def has_permission(self, request, view):
        u = request.user
        if not (u and u.is_authenticated):
            return False
        return bool(_role_of(u) == User.Role.ADMIN or u.is_staff or u.is_superuser)


class IsEvaluatorRole(BasePermission):
    """Technical reviewers, jury members and Dragon's Den judges."""
    message = "Evaluator access required."

    def has_permission(self, request, view):
        u = request.user
        return bool(u and u.is_authenticated and _role_of(u) in EVALUATOR_ROLES)


class IsDragonsDenJudge(BasePermission):
    message = "Only Dragon's Den judges can access this."

    def has_permission(self, request, view):
        u = request.user
        return bool(u and u.is_authenticated and _role_of(u) == User.Role.DRAGONS_DEN_JUDGE)
