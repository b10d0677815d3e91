"""Care professionals, with deletion refused while entries still reference them."""

from __future__ import annotations

import datetime as dt
from collections import Counter
from collections.abc import Mapping
from typing import Any, Optional

from medtrack.errors import NotFoundError, ProfessionalInUseError
from medtrack.logging_config import get_logger
from medtrack.modules.cases.service import CaseService
from medtrack.modules.professionals.models import Professional
from medtrack.security.rbac import Permission, UserIdentity
from medtrack.storage.base import BaseStore

logger = get_logger(__name__)


class ProfessionalService:
    """CRUD over a case's professionals."""

    def __init__(self, store: BaseStore, cases: CaseService) -> None:
        self._store = store
        self._cases = cases

    async def list_professionals(self, case_id: str, user: Optional[UserIdentity] = None) -> list[Professional]:
        """Professionals ordered by name."""
        await self._cases.authorize(case_id, user, Permission.READ)
        return await self._store.list_professionals(case_id)

    async def get_professional(
        self,
        case_id: str,
        professional_id: str,
        user: Optional[UserIdentity] = None,
    ) -> Professional:
        await self._cases.authorize(case_id, user, Permission.READ)
        professional = await self._store.get_professional(case_id, professional_id)
        if professional is None:
            raise NotFoundError(f"Professional not found: {professional_id}")
        return professional

    async def save_professional(
        self,
        case_id: str,
        data: Mapping[str, Any],
        user: Optional[UserIdentity] = None,
    ) -> Professional:
        """Create a professional, or update one when the id already exists."""
        await self._cases.authorize(case_id, user, Permission.WRITE)
        professional = Professional.parse(data)
        now = dt.datetime.now(dt.UTC)

        existing = await self._store.get_professional(case_id, professional.id)
        professional.created_at = existing.created_at if existing else now
        professional.updated_at = now

        await self._store.put_professional(case_id, professional)
        logger.info(
            "professional_saved",
            case_id=case_id,
            professional_id=professional.id,
            created=existing is None,
        )
        return professional

    async def delete_professional(
        self,
        case_id: str,
        professional_id: str,
        user: Optional[UserIdentity] = None,
    ) -> None:
        """Delete a professional unless entries still reference it."""
        await self._cases.authorize(case_id, user, Permission.WRITE)
        referencing = await self._store.entries_referencing(case_id, professional_id)
        if referencing:
            logger.warning(
                "professional_delete_blocked",
                case_id=case_id,
                professional_id=professional_id,
                entries=len(referencing),
            )
            raise ProfessionalInUseError(professional_id, referencing)
        if not await self._store.delete_professional(case_id, professional_id):
            raise NotFoundError(f"Professional not found: {professional_id}")
        logger.info("professional_deleted", case_id=case_id, professional_id=professional_id)

    async def counts_by_specialty(
        self,
        case_id: str,
        user: Optional[UserIdentity] = None,
    ) -> list[tuple[str, int]]:
        """Number of professionals per specialty, sorted by specialty."""
        professionals = await self.list_professionals(case_id, user)
        counts = Counter(p.specialty for p in professionals)
        return sorted(counts.items())
