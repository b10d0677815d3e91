"""iCalendar (RFC 5545) export of a single entry.

The payload holds one VCALENDAR with exactly one VEVENT and a VALARM per
reminder offset. Date-times are written as *floating* local time
(``YYYYMMDDTHHMMSS`` with no ``Z`` or offset) so calendar apps show the
wall-clock time the entry was recorded with, whatever the viewer's zone.
"""

from __future__ import annotations

import datetime as dt
import re
import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from medtrack.errors import ValidationError
from medtrack.modules.entries.models import Entry
from medtrack.modules.professionals.models import Professional

CRLF = "\r\n"
DEFAULT_DURATION_MINUTES = 30
DEFAULT_ALARMS_MINUTES_BEFORE = (1440, 60)
DEFAULT_UID_DOMAIN = "control-onco-papa"
DEFAULT_PRODID = "-//Control Onco Papa//ES"
FALLBACK_FILENAME = "evento"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-z0-9\- ]")
_WHITESPACE_RUN = re.compile(r"\s+")

EntryInput = Union[Entry, Mapping[str, Any]]
ProfessionalInput = Union[Professional, Mapping[str, Any], None]


@dataclass(frozen=True)
class IcsExport:
    """A formatted calendar file and the name it should be saved under."""

    payload: str
    filename: str

    @property
    def content(self) -> bytes:
        return self.payload.encode("utf-8")

    @property
    def attachment_filename(self) -> str:
        return f"{self.filename}.ics"


def escape_text(text: str) -> str:
    """Escape a TEXT value: backslash first, then newline, comma and semicolon."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return (
        text.replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace(",", "\\,")
        .replace(";", "\\;")
    )


def to_floating(value: dt.datetime, tz: Optional[dt.tzinfo] = None) -> str:
    """Render a date-time as floating local time.

    Aware values are first converted to ``tz`` (the host zone when None);
    naive values are taken as already local.
    """
    if value.tzinfo is not None:
        value = value.astimezone(tz)
    return (
        f"{value.year:04d}{value.month:02d}{value.day:02d}"
        f"T{value.hour:02d}{value.minute:02d}{value.second:02d}"
    )


def suggested_filename(title: str) -> str:
    """Filesystem-safe slug of a title, e.g. ``Control Urología`` -> ``control-urologia``."""
    ascii_title = unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode("ascii")
    slug = _UNSAFE_FILENAME_CHARS.sub("", ascii_title.lower()).strip()
    slug = _WHITESPACE_RUN.sub("-", slug)
    return slug or FALLBACK_FILENAME


def format_amount(amount: float) -> str:
    """Print whole amounts without a trailing ``.0``."""
    if float(amount).is_integer():
        return str(int(amount))
    return str(amount)


def coerce_entry(entry: EntryInput) -> Entry:
    """Return a validated Entry or raise ValidationError.

    Entry instances are re-checked because ``model_construct`` skips validation.
    """
    if isinstance(entry, Entry):
        if not isinstance(entry.id, str) or not entry.id.strip():
            raise ValidationError("entry id is required", "id")
        if not isinstance(entry.title, str) or not entry.title.strip():
            raise ValidationError("entry title is required", "title")
        if not isinstance(entry.date_time, dt.datetime):
            raise ValidationError("entry dateTime must be a valid date-time", "dateTime")
        return entry

    if not isinstance(entry, Mapping):
        raise ValidationError("entry is required", "entry")
    if not str(entry.get("id") or "").strip():
        raise ValidationError("entry id is required", "id")
    return Entry.parse(entry)


def coerce_professional(professional: ProfessionalInput) -> Optional[Professional]:
    """Return a validated Professional, None, or raise ValidationError."""
    if professional is None or isinstance(professional, Professional):
        return professional
    if not isinstance(professional, Mapping):
        raise ValidationError("professional must be an object", "professional")
    return Professional.parse(professional)


def _description(entry: Entry, professional: Optional[Professional]) -> str:
    parts = []
    if professional is not None:
        parts.append(f"Profesional: {professional.name} ({professional.specialty})")
    if entry.has_dose:
        parts.append(f"Cantidad: {format_amount(entry.dose_amount)} {entry.dose_unit}")
    if entry.notes:
        parts.append(f"Notas: {entry.notes}")
    return "\n".join(parts)


def _alarm(summary: str, minutes_before: int) -> list[str]:
    return [
        "BEGIN:VALARM",
        "ACTION:DISPLAY",
        f"DESCRIPTION:{escape_text(summary)}",
        f"TRIGGER:-PT{minutes_before}M",
        "END:VALARM",
    ]


def build_ics(
    entry: EntryInput,
    professional: ProfessionalInput = None,
    *,
    default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
    alarms_minutes_before: Sequence[int] = DEFAULT_ALARMS_MINUTES_BEFORE,
    uid_domain: str = DEFAULT_UID_DOMAIN,
    prodid: str = DEFAULT_PRODID,
    now: Optional[dt.datetime] = None,
    tz: Optional[dt.tzinfo] = None,
) -> IcsExport:
    """Format one entry (and its optional professional) as a calendar file.

    Raises:
        ValidationError: if the entry lacks an id, a non-blank title or a
            valid dateTime, or ends before it starts. Nothing is emitted.
    """
    if default_duration_minutes <= 0:
        raise ValueError("default_duration_minutes must be positive")
    if any(minutes < 0 for minutes in alarms_minutes_before):
        raise ValueError("alarm offsets must not be negative")

    entry = coerce_entry(entry)
    professional = coerce_professional(professional)

    start = entry.date_time
    end = entry.end_date_time or start + dt.timedelta(minutes=default_duration_minutes)
    if (start.tzinfo is None) == (end.tzinfo is None) and end < start:
        raise ValidationError("entry endDateTime is before dateTime", "endDateTime")

    summary = entry.title.strip()
    location = entry.location or (professional.center if professional else None) or ""
    description = _description(entry, professional)
    stamp = now if now is not None else dt.datetime.now()

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{prodid}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{entry.id}@{uid_domain}",
        f"DTSTAMP:{to_floating(stamp, tz)}",
        f"DTSTART:{to_floating(start, tz)}",
        f"DTEND:{to_floating(end, tz)}",
        f"SUMMARY:{escape_text(summary)}",
    ]
    if location:
        lines.append(f"LOCATION:{escape_text(location)}")
    if description:
        lines.append(f"DESCRIPTION:{escape_text(description)}")
    for minutes in alarms_minutes_before:
        lines.extend(_alarm(summary, minutes))
    lines.extend(["END:VEVENT", "END:VCALENDAR"])

    return IcsExport(payload=CRLF.join(lines), filename=suggested_filename(summary))
