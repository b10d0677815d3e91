"""Case service: shared patient groupings, membership and access checks."""

from __future__ import annotations

from typing import Optional

from medtrack.config import Settings, get_settings
from medtrack.errors import AuthenticationError, NotFoundError, ValidationError
from medtrack.logging_config import get_logger
from medtrack.modules.cases.models import Case, default_types
from medtrack.security.rbac import Permission, Role, UserIdentity, require_permission
from medtrack.storage.base import BaseStore

logger = get_logger(__name__)


class CaseService:
    """Creates cases, manages their members and entry types, and authorizes access."""

    def __init__(self, store: BaseStore, settings: Optional[Settings] = None) -> None:
        self._store = store
        self._settings = settings or get_settings()

    def is_personal(self, case_id: str) -> bool:
        """The per-device case needs no identity or membership."""
        return case_id == self._settings.default_case_id

    async def authorize(
        self,
        case_id: str,
        user: Optional[UserIdentity],
        permission: Permission,
    ) -> Optional[Case]:
        """Check that the user may act on the case.

        Returns the case, or None for the per-device case.

        Raises:
            AuthenticationError: no user for a shared case.
            NotFoundError: the case does not exist.
            PermissionError: the user's role lacks the permission.
        """
        if self.is_personal(case_id):
            return None
        if user is None:
            raise AuthenticationError(f"Login required to access case '{case_id}'")
        case = await self._store.get_case(case_id)
        if case is None:
            raise NotFoundError(f"Case not found: {case_id}")
        require_permission(case.role_of(user.user_id), permission, user.user_id, case_id)
        return case

    async def entry_types(self, case_id: str) -> list[str]:
        """Entry types available in a case."""
        if self.is_personal(case_id):
            return default_types()
        case = await self._store.get_case(case_id)
        if case is None:
            raise NotFoundError(f"Case not found: {case_id}")
        return list(case.types)

    async def accepts_type(self, case_id: str, entry_type: str) -> bool:
        if self.is_personal(case_id):
            return entry_type in default_types()
        case = await self._store.get_case(case_id)
        if case is None:
            raise NotFoundError(f"Case not found: {case_id}")
        return case.accepts_type(entry_type)

    async def create_case(self, name: str, user: Optional[UserIdentity]) -> Case:
        """Create a case owned by the user."""
        if user is None:
            raise AuthenticationError("Login required to create a case")
        if not name or not name.strip():
            raise ValidationError("case name is required", "name")
        case = Case(name=name, owner_uid=user.user_id)
        await self._store.put_case(case)
        logger.info("case_created", case_id=case.id, owner=user.user_id)
        return case

    async def list_cases(self, user: Optional[UserIdentity]) -> list[Case]:
        """Cases the user belongs to, newest first."""
        if user is None:
            return []
        cases = await self._store.list_cases()
        return [c for c in cases if c.role_of(user.user_id) is not None]

    async def get_case(self, case_id: str, user: Optional[UserIdentity]) -> Case:
        case = await self.authorize(case_id, user, Permission.READ)
        if case is None:
            raise NotFoundError(f"The per-device case '{case_id}' has no case document")
        return case

    async def add_member(
        self,
        case_id: str,
        member_id: str,
        role: Role,
        user: Optional[UserIdentity],
    ) -> Case:
        """Add or change a member's role. The owner's role cannot be changed."""
        case = await self.authorize(case_id, user, Permission.MANAGE)
        if case is None:
            raise ValidationError("the per-device case has no members", "case_id")
        member_id = member_id.strip()
        if not member_id:
            raise ValidationError("member id is required", "userId")
        if member_id == case.owner_uid or role == Role.OWNER:
            raise ValidationError("a case has exactly one owner", "role")
        case.members[member_id] = role
        await self._store.put_case(case)
        logger.info("case_member_set", case_id=case_id, member=member_id, role=role)
        return case

    async def add_type(self, case_id: str, entry_type: str, user: Optional[UserIdentity]) -> Case:
        """Register a custom entry type on a case."""
        case = await self.authorize(case_id, user, Permission.MANAGE)
        if case is None:
            raise ValidationError("the per-device case uses the built-in types", "case_id")
        entry_type = entry_type.strip().lower()
        if not entry_type:
            raise ValidationError("entry type is required", "type")
        if entry_type not in case.types:
            case.types.append(entry_type)
            await self._store.put_case(case)
            logger.info("case_type_added", case_id=case_id, type=entry_type)
        return case
