"""Staff roles and role checks."""

from enum import Enum

from restaurant_pos_service.exceptions import PermissionDeniedError


class UserRole(str, Enum):
    """Enumeration of staff roles."""

    OWNER = "owner"
    MANAGER = "manager"
    CASHIER = "cashier"
    WAITER = "waiter"


SUPERVISOR_ROLES = frozenset({UserRole.OWNER, UserRole.MANAGER})


def require_role(role: UserRole | None, allowed: frozenset[UserRole], action: str) -> None:
    """Raise ``PermissionDeniedError`` unless ``role`` is one of ``allowed``.

    Args:
        role: Caller's role, None when the request carried no role
        allowed: Roles permitted to perform the action
        action: Human readable action name for the error message
    """
    if role not in allowed:
        who = role.value if role is not None else "anonymous"
        raise PermissionDeniedError(f"Role '{who}' may not {action}")
