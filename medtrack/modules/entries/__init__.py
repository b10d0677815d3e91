"""Medical entries: visits, doses, exams and treatments."""

from medtrack.modules.entries.models import Attachment, Entry, EntryStatus, EntryType

__all__ = ["Attachment", "Entry", "EntryStatus", "EntryType"]
