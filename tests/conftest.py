"""Shared test fixtures and configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

os.environ.setdefault("MEDTRACK_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MEDTRACK_LOG_LEVEL", "WARNING")
os.environ.setdefault("STORAGE_BACKEND", "local")

from medtrack.config import Settings
from medtrack.database import Base
from medtrack.security.rbac import UserIdentity
from medtrack.services import Services
from medtrack.storage.local import LocalStore


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Return test settings."""
    return Settings(
        medtrack_env="test",
        medtrack_log_level="WARNING",
        database_url="sqlite+aiosqlite:///:memory:",
        storage_backend="local",
        default_case_id="local",
        attachments_dir=str(tmp_path / "attachments"),
        _env_file=None,
    )


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a clean in-memory database session for each test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def local_store(db_session: AsyncSession) -> LocalStore:
    """A LocalStore bound to the test session."""
    return LocalStore(db_session)


@pytest.fixture
def services(settings: Settings, local_store: LocalStore) -> Services:
    """All services over the in-memory local store."""
    return Services(settings, store=local_store)


@pytest.fixture
def alice() -> UserIdentity:
    return UserIdentity(user_id="alice", email="alice@example.com")


@pytest.fixture
def bob() -> UserIdentity:
    return UserIdentity(user_id="bob", email="bob@example.com")
