"""Filesystem storage for entry attachments."""

from __future__ import annotations

import datetime as dt
import re
from pathlib import Path
from uuid import uuid4

from medtrack.errors import NotFoundError, ValidationError
from medtrack.logging_config import get_logger
from medtrack.modules.entries.models import Attachment

logger = get_logger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^\w.\- ()]")
FILES_URL_PREFIX = "/api/files/"


def safe_name(filename: str) -> str:
    """Replace characters outside ``[\\w.\\- ()]`` with underscores."""
    return _UNSAFE_NAME_CHARS.sub("_", filename)


class AttachmentStorage:
    """Stores uploaded files under ``cases/<case>/entries/<entry>/``."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def save(
        self,
        case_id: str,
        entry_id: str,
        filename: str,
        data: bytes,
        mime: str = "",
    ) -> Attachment:
        """Write an upload to disk and describe it as an Attachment."""
        if not filename:
            raise ValidationError("attachment file name is required", "name")
        attachment_id = str(uuid4())
        relative = Path("cases", safe_name(case_id), "entries", safe_name(entry_id),
                        f"{attachment_id}-{safe_name(filename)}")
        target = self._root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

        logger.info("attachment_stored", case_id=case_id, entry_id=entry_id, size=len(data))
        return Attachment(
            id=attachment_id,
            name=filename,
            url=FILES_URL_PREFIX + relative.as_posix(),
            path=relative.as_posix(),
            mime=mime or "application/octet-stream",
            size=len(data),
            uploaded_at=dt.datetime.now(dt.UTC),
        )

    def resolve(self, path: str) -> Path:
        """Map a stored relative path back to a file inside the root."""
        root = self._root.resolve()
        target = (root / path).resolve()
        if not target.is_relative_to(root) or not target.is_file():
            raise NotFoundError(f"Attachment not found: {path}")
        return target
