"""Data models for medical entries and their attachments."""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from enum import StrEnum
from typing import Any, Optional, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from medtrack.errors import ValidationError

DocumentT = TypeVar("DocumentT", bound="Document")


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class EntryType(StrEnum):
    """Built-in entry categories. Cases may register additional tags."""

    MED = "med"
    CHEMO = "chemo"
    EXAM = "exam"
    CONTROL = "control"


class EntryStatus(StrEnum):
    """Lifecycle of an entry."""

    PLANNED = "planned"
    DONE = "done"
    CANCELLED = "cancelled"


class Document(BaseModel):
    """Base for stored documents: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Serialize for a store, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def parse(cls: type[DocumentT], data: Mapping[str, Any]) -> DocumentT:
        """Validate a wire document, raising ValidationError naming the first bad field."""
        try:
            return cls.model_validate(dict(data))
        except PydanticValidationError as exc:
            errors = exc.errors()
            loc = errors[0].get("loc") if errors else None
            field = str(loc[0]) if loc else ""
            raise ValidationError(f"invalid {cls.__name__.lower()} field '{field}'", field) from exc


class Attachment(Document):
    """An uploaded file linked to an entry."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    url: str
    path: str = ""
    mime: str = "application/octet-stream"
    size: int = 0
    uploaded_at: dt.datetime = Field(default_factory=utcnow)


class Entry(Document):
    """One medical event: a visit, a dose, an exam or a treatment."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: str = EntryType.CONTROL.value
    title: str
    date_time: dt.datetime
    end_date_time: Optional[dt.datetime] = None
    status: EntryStatus = EntryStatus.PLANNED
    dose_amount: Optional[float] = None
    dose_unit: Optional[str] = None
    professional_id: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    attachments: list[Attachment] = Field(default_factory=list)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)
    created_by_uid: Optional[str] = None
    created_by_email: Optional[str] = None
    updated_by_uid: Optional[str] = None
    updated_by_email: Optional[str] = None

    @field_validator("title", "type")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("dose_unit", "professional_id", "location", "notes", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @property
    def has_dose(self) -> bool:
        """Amount and unit are both present."""
        return self.dose_amount is not None and bool(self.dose_unit)
