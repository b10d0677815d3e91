"""Local per-device store backed by SQLite through SQLAlchemy asyncio.

Each row keeps the full JSON document next to the columns used for
filtering and ordering.
"""

from __future__ import annotations

import datetime as dt
import json
from typing import Optional

from sqlalchemy import Column, DateTime, Index, String, Text, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from medtrack.database import Base, get_session
from medtrack.logging_config import get_logger
from medtrack.modules.cases.models import Case
from medtrack.modules.entries.models import Entry
from medtrack.modules.professionals.models import Professional
from medtrack.storage.base import BaseStore

logger = get_logger(__name__)


def _naive_utc(value: dt.datetime) -> dt.datetime:
    """Normalize to naive UTC for ordering (aware and naive values may be mixed)."""
    if value.tzinfo is not None:
        return value.astimezone(dt.UTC).replace(tzinfo=None)
    return value


class EntryRecord(Base):
    """SQLAlchemy model for entries."""

    __tablename__ = "entries"

    case_id = Column(String(64), primary_key=True)
    id = Column(String(64), primary_key=True)
    type = Column(String(64), nullable=False)
    status = Column(String(16), nullable=False)
    date_time = Column(DateTime, nullable=False)
    professional_id = Column(String(64), nullable=True)
    document = Column(Text, nullable=False)

    __table_args__ = (
        Index("ix_entries_case_date", "case_id", "date_time"),
        Index("ix_entries_case_professional", "case_id", "professional_id"),
        Index("ix_entries_case_type_status", "case_id", "type", "status"),
    )


class ProfessionalRecord(Base):
    """SQLAlchemy model for professionals."""

    __tablename__ = "professionals"

    case_id = Column(String(64), primary_key=True)
    id = Column(String(64), primary_key=True)
    name = Column(String(256), nullable=False)
    specialty = Column(String(256), nullable=False)
    document = Column(Text, nullable=False)

    __table_args__ = (
        Index("ix_professionals_case_name", "case_id", "name"),
    )


class CaseRecord(Base):
    """SQLAlchemy model for cases."""

    __tablename__ = "cases"

    id = Column(String(64), primary_key=True)
    name = Column(String(256), nullable=False)
    owner_uid = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)
    document = Column(Text, nullable=False)


class _SessionContext:
    """Yields an externally owned session without committing or closing it."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def __aenter__(self) -> AsyncSession:
        return self._session

    async def __aexit__(self, *args) -> None:
        pass


class LocalStore(BaseStore):
    """Embedded SQLite storage for a single device."""

    backend = "local"

    def __init__(self, session: Optional[AsyncSession] = None) -> None:
        """Initialize the store.

        Args:
            session: Optional database session. If not provided, a new
                transactional session is opened for each operation.
        """
        self._session = session

    def _get_session(self):
        if self._session is not None:
            return _SessionContext(self._session)
        return get_session()

    # ── Entries ──────────────────────────────────────────────────────

    async def list_entries(self, case_id: str) -> list[Entry]:
        async with self._get_session() as session:
            stmt = (
                select(EntryRecord.document)
                .where(EntryRecord.case_id == case_id)
                .order_by(EntryRecord.date_time.desc())
            )
            rows = (await session.execute(stmt)).scalars().all()
        return [Entry.model_validate(json.loads(doc)) for doc in rows]

    async def get_entry(self, case_id: str, entry_id: str) -> Optional[Entry]:
        async with self._get_session() as session:
            row = await session.get(EntryRecord, (case_id, entry_id))
            if row is None:
                return None
            return Entry.model_validate(json.loads(row.document))

    async def put_entry(self, case_id: str, entry: Entry) -> Entry:
        values = {
            "type": entry.type,
            "status": entry.status.value,
            "date_time": _naive_utc(entry.date_time),
            "professional_id": entry.professional_id,
            "document": json.dumps(entry.to_document()),
        }
        async with self._get_session() as session:
            row = await session.get(EntryRecord, (case_id, entry.id))
            if row is None:
                session.add(EntryRecord(case_id=case_id, id=entry.id, **values))
            else:
                for key, val in values.items():
                    setattr(row, key, val)
            await session.flush()
        logger.debug("local_entry_saved", case_id=case_id, entry_id=entry.id)
        return entry

    async def delete_entry(self, case_id: str, entry_id: str) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                delete(EntryRecord).where(EntryRecord.case_id == case_id, EntryRecord.id == entry_id)
            )
        return result.rowcount > 0

    async def entries_referencing(self, case_id: str, professional_id: str) -> list[str]:
        async with self._get_session() as session:
            stmt = select(EntryRecord.id).where(
                EntryRecord.case_id == case_id,
                EntryRecord.professional_id == professional_id,
            )
            return list((await session.execute(stmt)).scalars().all())

    # ── Professionals ────────────────────────────────────────────────

    async def list_professionals(self, case_id: str) -> list[Professional]:
        async with self._get_session() as session:
            stmt = (
                select(ProfessionalRecord.document)
                .where(ProfessionalRecord.case_id == case_id)
                .order_by(ProfessionalRecord.name)
            )
            rows = (await session.execute(stmt)).scalars().all()
        return [Professional.model_validate(json.loads(doc)) for doc in rows]

    async def get_professional(self, case_id: str, professional_id: str) -> Optional[Professional]:
        async with self._get_session() as session:
            row = await session.get(ProfessionalRecord, (case_id, professional_id))
            if row is None:
                return None
            return Professional.model_validate(json.loads(row.document))

    async def put_professional(self, case_id: str, professional: Professional) -> Professional:
        values = {
            "name": professional.name,
            "specialty": professional.specialty,
            "document": json.dumps(professional.to_document()),
        }
        async with self._get_session() as session:
            row = await session.get(ProfessionalRecord, (case_id, professional.id))
            if row is None:
                session.add(ProfessionalRecord(case_id=case_id, id=professional.id, **values))
            else:
                for key, val in values.items():
                    setattr(row, key, val)
            await session.flush()
        return professional

    async def delete_professional(self, case_id: str, professional_id: str) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                delete(ProfessionalRecord).where(
                    ProfessionalRecord.case_id == case_id,
                    ProfessionalRecord.id == professional_id,
                )
            )
        return result.rowcount > 0

    # ── Cases ────────────────────────────────────────────────────────

    async def list_cases(self) -> list[Case]:
        async with self._get_session() as session:
            stmt = select(CaseRecord.document).order_by(CaseRecord.created_at.desc())
            rows = (await session.execute(stmt)).scalars().all()
        return [Case.model_validate(json.loads(doc)) for doc in rows]

    async def get_case(self, case_id: str) -> Optional[Case]:
        async with self._get_session() as session:
            row = await session.get(CaseRecord, case_id)
            if row is None:
                return None
            return Case.model_validate(json.loads(row.document))

    async def put_case(self, case: Case) -> Case:
        values = {
            "name": case.name,
            "owner_uid": case.owner_uid,
            "created_at": _naive_utc(case.created_at),
            "document": json.dumps(case.to_document()),
        }
        async with self._get_session() as session:
            row = await session.get(CaseRecord, case.id)
            if row is None:
                session.add(CaseRecord(id=case.id, **values))
            else:
                for key, val in values.items():
                    setattr(row, key, val)
            await session.flush()
        return case
