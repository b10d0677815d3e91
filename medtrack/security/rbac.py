"""Role-based access control for shared cases."""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel

from medtrack.logging_config import get_logger

logger = get_logger(__name__)


class Role(StrEnum):
    """Case member roles ordered by privilege level."""

    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


class Permission(StrEnum):
    """Granular permissions on a case."""

    READ = "read"
    WRITE = "write"
    MANAGE = "manage"


ROLE_PERMISSIONS: dict[Role, set[Permission]] = {
    Role.OWNER: set(Permission),
    Role.EDITOR: {Permission.READ, Permission.WRITE},
    Role.VIEWER: {Permission.READ},
}


class UserIdentity(BaseModel):
    """The caller of an operation, as asserted by the auth layer in front of the API."""

    user_id: str
    email: Optional[str] = None


def has_permission(role: Optional[Role], permission: Permission) -> bool:
    """Check if a role grants the given permission."""
    if role is None:
        return False
    return permission in ROLE_PERMISSIONS.get(role, set())


def require_permission(
    role: Optional[Role],
    permission: Permission,
    user_id: str,
    case_id: str,
) -> None:
    """Raise if the role lacks the required permission."""
    if not has_permission(role, permission):
        logger.warning(
            "permission_denied",
            user_id=user_id,
            case_id=case_id,
            role=role,
            permission=permission,
        )
        raise PermissionError(
            f"User '{user_id}' with role '{role}' lacks permission '{permission}' on case '{case_id}'"
        )
