"""Storage backends for entries, professionals and cases."""

from __future__ import annotations

from medtrack.config import Settings
from medtrack.storage.base import BaseStore
from medtrack.storage.files import AttachmentStorage
from medtrack.storage.local import LocalStore
from medtrack.storage.remote import RemoteDocumentStore


def create_store(settings: Settings) -> BaseStore:
    """Select the storage backend once, from configuration."""
    if settings.is_remote:
        return RemoteDocumentStore(
            base_url=settings.remote_store_url,
            token=settings.remote_store_token,
            timeout=settings.remote_store_timeout,
        )
    return LocalStore()


__all__ = ["AttachmentStorage", "BaseStore", "LocalStore", "RemoteDocumentStore", "create_store"]
