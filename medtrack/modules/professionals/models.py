"""Data model for care professionals."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional
from uuid import uuid4

from pydantic import Field, field_validator

from medtrack.modules.entries.models import Document, utcnow


class Professional(Document):
    """A care provider referenced by zero or more entries."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    specialty: str
    center: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)

    @field_validator("name", "specialty")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("center", "phone", "email", "address", "notes", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value
