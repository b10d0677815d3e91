"""Storage interface shared by the local database and the remote document store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from medtrack.modules.cases.models import Case
from medtrack.modules.entries.models import Entry
from medtrack.modules.professionals.models import Professional


class BaseStore(ABC):
    """Abstract persistence for entries, professionals and cases.

    Entries and professionals are partitioned by case id; every call names
    the case it works on.
    """

    backend: str

    # ── Entries ──────────────────────────────────────────────────────

    @abstractmethod
    async def list_entries(self, case_id: str) -> list[Entry]:
        """List a case's entries, newest first."""

    @abstractmethod
    async def get_entry(self, case_id: str, entry_id: str) -> Optional[Entry]:
        """Fetch one entry, or None."""

    @abstractmethod
    async def put_entry(self, case_id: str, entry: Entry) -> Entry:
        """Insert or replace an entry."""

    @abstractmethod
    async def delete_entry(self, case_id: str, entry_id: str) -> bool:
        """Delete an entry. Returns False if it did not exist."""

    async def entries_referencing(self, case_id: str, professional_id: str) -> list[str]:
        """Ids of entries whose professionalId matches."""
        entries = await self.list_entries(case_id)
        return [e.id for e in entries if e.professional_id == professional_id]

    # ── Professionals ────────────────────────────────────────────────

    @abstractmethod
    async def list_professionals(self, case_id: str) -> list[Professional]:
        """List a case's professionals ordered by name."""

    @abstractmethod
    async def get_professional(self, case_id: str, professional_id: str) -> Optional[Professional]:
        """Fetch one professional, or None."""

    @abstractmethod
    async def put_professional(self, case_id: str, professional: Professional) -> Professional:
        """Insert or replace a professional."""

    @abstractmethod
    async def delete_professional(self, case_id: str, professional_id: str) -> bool:
        """Delete a professional. Returns False if it did not exist."""

    # ── Cases ────────────────────────────────────────────────────────

    @abstractmethod
    async def list_cases(self) -> list[Case]:
        """List all cases, newest first."""

    @abstractmethod
    async def get_case(self, case_id: str) -> Optional[Case]:
        """Fetch one case, or None."""

    @abstractmethod
    async def put_case(self, case: Case) -> Case:
        """Insert or replace a case."""

    async def close(self) -> None:
        """Release backend resources."""
