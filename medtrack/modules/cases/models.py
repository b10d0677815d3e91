"""Data model for cases: a patient grouping shared among family members."""

from __future__ import annotations

import datetime as dt
from typing import Optional
from uuid import uuid4

from pydantic import Field, field_validator, model_validator

from medtrack.modules.entries.models import Document, EntryType, utcnow
from medtrack.security.rbac import Role


def default_types() -> list[str]:
    return [EntryType.CONTROL.value, EntryType.CHEMO.value, EntryType.EXAM.value, EntryType.MED.value]


class Case(Document):
    """A named grouping of entries and professionals with its members."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    owner_uid: str
    created_at: dt.datetime = Field(default_factory=utcnow)
    types: list[str] = Field(default_factory=default_types)
    members: dict[str, Role] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @model_validator(mode="after")
    def _owner_is_member(self) -> "Case":
        self.members[self.owner_uid] = Role.OWNER
        return self

    def role_of(self, user_id: str) -> Optional[Role]:
        return self.members.get(user_id)

    def accepts_type(self, entry_type: str) -> bool:
        """Built-in tags are always valid; anything else must be registered on the case."""
        return entry_type in self.types or entry_type in {t.value for t in EntryType}
