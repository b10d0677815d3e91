"""Service container wiring the configured store into the feature services."""

from __future__ import annotations

from typing import Optional

from medtrack.config import Settings, get_settings
from medtrack.logging_config import get_logger
from medtrack.modules.calendar.service import CalendarExportService
from medtrack.modules.cases.service import CaseService
from medtrack.modules.entries.service import EntryService
from medtrack.modules.professionals.service import ProfessionalService
from medtrack.storage import AttachmentStorage, BaseStore, create_store

logger = get_logger(__name__)


class Services:
    """Holds one instance of each service, sharing a single store."""

    def __init__(self, settings: Optional[Settings] = None, store: Optional[BaseStore] = None) -> None:
        self.settings = settings or get_settings()
        self.store = store or create_store(self.settings)
        self.attachments = AttachmentStorage(self.settings.attachments_dir)
        self.calendar = CalendarExportService(self.settings)
        self.cases = CaseService(self.store, self.settings)
        self.professionals = ProfessionalService(self.store, self.cases)
        self.entries = EntryService(self.store, self.cases, self.calendar, self.attachments)
        logger.info("services_ready", storage_backend=self.store.backend)

    async def shutdown(self) -> None:
        await self.store.close()
