"""Calendar export of entries as RFC 5545 (.ics) files."""

from medtrack.modules.calendar.ics import IcsExport, build_ics, escape_text, suggested_filename, to_floating
from medtrack.modules.calendar.service import CalendarExportService

__all__ = [
    "CalendarExportService",
    "IcsExport",
    "build_ics",
    "escape_text",
    "suggested_filename",
    "to_floating",
]
