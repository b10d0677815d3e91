"""Applies the configured export policy to the iCalendar formatter."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from medtrack.config import Settings, get_settings
from medtrack.logging_config import get_logger
from medtrack.modules.calendar.ics import EntryInput, IcsExport, ProfessionalInput, build_ics

logger = get_logger(__name__)


class CalendarExportService:
    """Formats entries as .ics files using the duration, reminders and identity from settings."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    def export(
        self,
        entry: EntryInput,
        professional: ProfessionalInput = None,
        now: Optional[dt.datetime] = None,
    ) -> IcsExport:
        """Build the calendar file for one entry."""
        settings = self._settings
        result = build_ics(
            entry,
            professional,
            default_duration_minutes=settings.ics_default_duration_minutes,
            alarms_minutes_before=settings.alarm_minutes_before,
            uid_domain=settings.ics_uid_domain,
            prodid=settings.ics_prodid,
            now=now,
            tz=settings.tzinfo,
        )
        logger.info("ics_exported", filename=result.attachment_filename, size=len(result.content))
        return result
