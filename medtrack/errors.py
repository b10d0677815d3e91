"""Exception types raised by medtrack services and mapped to HTTP status codes by the API."""

from __future__ import annotations


class MedtrackError(Exception):
    """Base class for application errors."""


class ValidationError(MedtrackError):
    """Required input is missing or invalid."""

    def __init__(self, message: str, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(MedtrackError):
    """A referenced entry, professional or case does not exist."""


class ProfessionalInUseError(MedtrackError):
    """A professional cannot be deleted while entries still reference it."""

    def __init__(self, professional_id: str, entry_ids: list[str]) -> None:
        super().__init__(
            f"Professional '{professional_id}' is referenced by {len(entry_ids)} entries"
        )
        self.professional_id = professional_id
        self.entry_ids = entry_ids


class StoreError(MedtrackError):
    """The storage backend failed to complete a request."""


class AuthenticationError(MedtrackError):
    """A shared case was accessed without a user identity."""
