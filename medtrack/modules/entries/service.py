"""Entry records, status changes, attachments, summary counts and calendar export."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from medtrack.errors import NotFoundError, ValidationError
from medtrack.logging_config import get_logger
from medtrack.modules.calendar.ics import IcsExport
from medtrack.modules.calendar.service import CalendarExportService
from medtrack.modules.cases.service import CaseService
from medtrack.modules.entries.models import Entry, EntryStatus
from medtrack.security.rbac import Permission, UserIdentity
from medtrack.storage.base import BaseStore
from medtrack.storage.files import AttachmentStorage

logger = get_logger(__name__)

ALL_TYPES = "all"


def filter_entries(entries: Iterable[Entry], entry_type: Optional[str] = None) -> list[Entry]:
    """Keep entries of one type; None or ``"all"`` keeps everything."""
    if not entry_type or entry_type == ALL_TYPES:
        return list(entries)
    return [e for e in entries if e.type == entry_type]


def summarize(entries: Iterable[Entry], types: Iterable[str] = ()) -> dict[str, dict[str, int]]:
    """Done and planned counts per type. Cancelled entries are not counted.

    Every type in ``types`` is reported, even with zero entries.
    """
    summary = {t: {"done": 0, "planned": 0} for t in types}
    for entry in entries:
        counts = summary.setdefault(entry.type, {"done": 0, "planned": 0})
        if entry.status == EntryStatus.DONE:
            counts["done"] += 1
        elif entry.status == EntryStatus.PLANNED:
            counts["planned"] += 1
    return summary


class EntryService:
    """Operations on a case's entries."""

    def __init__(
        self,
        store: BaseStore,
        cases: CaseService,
        exporter: CalendarExportService,
        attachments: AttachmentStorage,
    ) -> None:
        self._store = store
        self._cases = cases
        self._exporter = exporter
        self._attachments = attachments

    async def list_entries(
        self,
        case_id: str,
        user: Optional[UserIdentity] = None,
        entry_type: Optional[str] = None,
    ) -> list[Entry]:
        """Entries newest first, optionally of a single type."""
        await self._cases.authorize(case_id, user, Permission.READ)
        entries = await self._store.list_entries(case_id)
        return filter_entries(entries, entry_type)

    async def get_entry(self, case_id: str, entry_id: str, user: Optional[UserIdentity] = None) -> Entry:
        await self._cases.authorize(case_id, user, Permission.READ)
        return await self._require(case_id, entry_id)

    async def _require(self, case_id: str, entry_id: str) -> Entry:
        entry = await self._store.get_entry(case_id, entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        return entry

    async def save_entry(
        self,
        case_id: str,
        data: Mapping[str, Any],
        user: Optional[UserIdentity] = None,
    ) -> Entry:
        """Create an entry, or update it when the id already exists.

        Updates keep the stored creation time, creator and attachments.
        """
        await self._cases.authorize(case_id, user, Permission.WRITE)
        entry = Entry.parse(data)

        if not await self._cases.accepts_type(case_id, entry.type):
            raise ValidationError(f"Unknown entry type '{entry.type}' for this case", "type")

        now = dt.datetime.now(dt.UTC)
        existing = await self._store.get_entry(case_id, entry.id)
        if existing is not None:
            entry.created_at = existing.created_at
            entry.created_by_uid = existing.created_by_uid
            entry.created_by_email = existing.created_by_email
            entry.attachments = existing.attachments
        else:
            entry.created_at = now
            entry.created_by_uid = user.user_id if user else None
            entry.created_by_email = user.email if user else None
        entry.updated_at = now
        entry.updated_by_uid = user.user_id if user else None
        entry.updated_by_email = user.email if user else None

        await self._store.put_entry(case_id, entry)
        logger.info(
            "entry_saved",
            case_id=case_id,
            entry_id=entry.id,
            type=entry.type,
            created=existing is None,
        )
        return entry

    async def toggle_done(self, case_id: str, entry_id: str, user: Optional[UserIdentity] = None) -> Entry:
        """Flip an entry between done and planned (cancelled becomes done)."""
        await self._cases.authorize(case_id, user, Permission.WRITE)
        entry = await self._require(case_id, entry_id)
        entry.status = EntryStatus.PLANNED if entry.status == EntryStatus.DONE else EntryStatus.DONE
        self._touch(entry, user)
        await self._store.put_entry(case_id, entry)
        logger.info("entry_status_changed", case_id=case_id, entry_id=entry_id, status=entry.status)
        return entry

    async def delete_entry(self, case_id: str, entry_id: str, user: Optional[UserIdentity] = None) -> None:
        await self._cases.authorize(case_id, user, Permission.WRITE)
        if not await self._store.delete_entry(case_id, entry_id):
            raise NotFoundError(f"Entry not found: {entry_id}")
        logger.info("entry_deleted", case_id=case_id, entry_id=entry_id)

    async def add_attachment(
        self,
        case_id: str,
        entry_id: str,
        filename: str,
        data: bytes,
        mime: str = "",
        user: Optional[UserIdentity] = None,
    ) -> Entry:
        """Store an uploaded file and append it to the entry's attachments."""
        await self._cases.authorize(case_id, user, Permission.WRITE)
        entry = await self._require(case_id, entry_id)
        attachment = self._attachments.save(case_id, entry_id, filename, data, mime)
        entry.attachments = [*entry.attachments, attachment]
        self._touch(entry, user)
        await self._store.put_entry(case_id, entry)
        return entry

    async def summary(self, case_id: str, user: Optional[UserIdentity] = None) -> dict[str, dict[str, int]]:
        """Done/planned counts for every type of the case."""
        await self._cases.authorize(case_id, user, Permission.READ)
        entries = await self._store.list_entries(case_id)
        return summarize(entries, await self._cases.entry_types(case_id))

    async def export_ics(self, case_id: str, entry_id: str, user: Optional[UserIdentity] = None) -> IcsExport:
        """Export a stored entry, with its professional when one is linked and still exists."""
        await self._cases.authorize(case_id, user, Permission.READ)
        entry = await self._require(case_id, entry_id)
        professional = None
        if entry.professional_id:
            professional = await self._store.get_professional(case_id, entry.professional_id)
        return self._exporter.export(entry, professional)

    @staticmethod
    def _touch(entry: Entry, user: Optional[UserIdentity]) -> None:
        entry.updated_at = dt.datetime.now(dt.UTC)
        entry.updated_by_uid = user.user_id if user else None
        entry.updated_by_email = user.email if user else None
