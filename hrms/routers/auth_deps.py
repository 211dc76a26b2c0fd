"""
Actor context dependencies.

Authentication happens upstream; the gateway forwards the caller as
X-User-ID / X-User-Role headers. These dependencies turn those headers into
an Actor and enforce role checks on endpoints.
"""
import logging
from typing import Callable, List, Optional

from fastapi import Depends, Header

from hrms.core.config import settings
from hrms.core.exceptions import AccessDeniedError, AuthenticationError
from hrms.schemas.auth import Actor, UserRole

logger = logging.getLogger(__name__)


def get_current_user(
    user_id: Optional[str] = Header(default=None, alias=settings.user_id_header),
    user_role: Optional[str] = Header(default=None, alias=settings.user_role_header),
) -> Actor:
    """
    Extracts the current actor from the forwarded headers.
    """
    if not user_id or not user_role:
        logger.warning("Authentication failed: missing actor headers")
        raise AuthenticationError()
    try:
        actor_id = int(user_id)
    except ValueError:
        logger.warning(f"Authentication failed: non-numeric user id {user_id!r}")
        raise AuthenticationError("Invalid actor id")
    try:
        role = UserRole(user_role)
    except ValueError:
        logger.warning(f"Authentication failed: unknown role {user_role!r}")
        raise AuthenticationError("Unknown actor role")
    return Actor(id=actor_id, role=role)


def require_role(allowed_roles: List[UserRole]) -> Callable:
    """
    Dependency factory that checks if the actor has one of the allowed roles.

    Usage:
        @router.post("/payroll/transfers/process")
        def process(actor: Actor = Depends(require_role([UserRole.HR, UserRole.FINANCE]))):
            ...
    """
    def role_checker(current_user: Actor = Depends(get_current_user)) -> Actor:
        if current_user.role not in allowed_roles:
            raise AccessDeniedError(
                f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return current_user
    return role_checker


def require_payroll():
    """Shorthand for payroll and statutory processing roles."""
    return require_role([UserRole.HR, UserRole.FINANCE])


def require_approver():
    """Shorthand for roles that may decide leave requests."""
    return require_role([UserRole.HR, UserRole.MANAGER])


def require_hr():
    return require_role([UserRole.HR])
