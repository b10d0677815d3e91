"""API route definitions for medtrack."""

from __future__ import annotations

import json
from typing import Any, Awaitable, Optional, TypeVar

from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.responses import FileResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from medtrack import __version__
from medtrack.errors import (
    AuthenticationError,
    MedtrackError,
    NotFoundError,
    ProfessionalInUseError,
    StoreError,
    ValidationError,
)
from medtrack.logging_config import get_logger
from medtrack.modules.calendar.ics import IcsExport
from medtrack.security.rbac import Permission, Role, UserIdentity

logger = get_logger(__name__)

router = APIRouter()

T = TypeVar("T")

ICS_MEDIA_TYPE = "text/calendar; charset=utf-8"


# ── Request Models ───────────────────────────────────────────────────

class CaseRequest(BaseModel):
    """Case creation request."""

    name: str


class MemberRequest(BaseModel):
    """Case membership request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    role: Role = Role.VIEWER


class TypeRequest(BaseModel):
    """Custom entry type request."""

    type: str = Field(min_length=1)


# ── Services accessor (set from main.py) ─────────────────────────────

_services = None


def set_services(services: Any) -> None:
    """Inject the services container."""
    global _services
    _services = services


def get_services():
    """Get the services container, raising if not initialized."""
    if _services is None:
        raise HTTPException(status_code=503, detail="System not initialized")
    return _services


def current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
) -> Optional[UserIdentity]:
    """Identity asserted by the authenticating proxy in front of the API."""
    if not x_user_id:
        return None
    return UserIdentity(user_id=x_user_id, email=x_user_email or None)


def _case_id(case_id: Optional[str]) -> str:
    return case_id or get_services().settings.default_case_id


async def _guard(call: Awaitable[T]) -> T:
    """Await a service call, mapping application errors to HTTP errors."""
    try:
        return await call
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ProfessionalInUseError as exc:
        raise HTTPException(
            status_code=409,
            detail={"message": str(exc), "entryIds": exc.entry_ids},
        ) from exc
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except MedtrackError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _ics_response(result: IcsExport) -> Response:
    return Response(
        content=result.content,
        media_type=ICS_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{result.attachment_filename}"'},
    )


# ── Health ───────────────────────────────────────────────────────────

@router.get("/health")
async def health_check() -> dict[str, Any]:
    """System health check."""
    services = get_services()
    return {
        "status": "healthy",
        "version": __version__,
        "storage_backend": services.store.backend,
        "default_case_id": services.settings.default_case_id,
    }


# ── Calendar export ──────────────────────────────────────────────────

@router.post("/ics")
async def export_ics(request: Request) -> Response:
    """Format ``{entry, professional}`` as a downloadable .ics file."""
    services = get_services()
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Body must be JSON")
    if not isinstance(body, dict) or not isinstance(body.get("entry"), dict):
        raise HTTPException(status_code=400, detail="Missing entry")

    try:
        result = services.calendar.export(body["entry"], body.get("professional"))
    except ValidationError as exc:
        logger.info("ics_rejected", field=exc.field, error=str(exc))
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _ics_response(result)


# ── Entries ──────────────────────────────────────────────────────────

@router.get("/entries")
async def list_entries(
    case_id: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> list[dict[str, Any]]:
    """List entries, newest first."""
    services = get_services()
    entries = await _guard(services.entries.list_entries(_case_id(case_id), user, type))
    return [e.to_document() for e in entries]


@router.post("/entries")
async def save_entry(
    request: dict[str, Any],
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, Any]:
    """Create or update an entry."""
    services = get_services()
    entry = await _guard(services.entries.save_entry(_case_id(case_id), request, user))
    return entry.to_document()


@router.get("/entries/{entry_id}")
async def get_entry(
    entry_id: str,
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, Any]:
    services = get_services()
    entry = await _guard(services.entries.get_entry(_case_id(case_id), entry_id, user))
    return entry.to_document()


@router.delete("/entries/{entry_id}")
async def delete_entry(
    entry_id: str,
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, str]:
    services = get_services()
    await _guard(services.entries.delete_entry(_case_id(case_id), entry_id, user))
    return {"status": "deleted"}


@router.post("/entries/{entry_id}/toggle")
async def toggle_entry(
    entry_id: str,
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, Any]:
    """Flip an entry between done and planned."""
    services = get_services()
    entry = await _guard(services.entries.toggle_done(_case_id(case_id), entry_id, user))
    return entry.to_document()


@router.get("/entries/{entry_id}/ics")
async def export_entry_ics(
    entry_id: str,
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> Response:
    """Export a stored entry with its linked professional."""
    services = get_services()
    result = await _guard(services.entries.export_ics(_case_id(case_id), entry_id, user))
    return _ics_response(result)


@router.post("/entries/{entry_id}/attachments")
async def upload_attachment(
    entry_id: str,
    file: UploadFile = File(...),
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, Any]:
    """Attach an uploaded file to an entry."""
    services = get_services()
    data = await file.read()
    entry = await _guard(services.entries.add_attachment(
        _case_id(case_id),
        entry_id,
        file.filename or "",
        data,
        file.content_type or "",
        user,
    ))
    return entry.to_document()


@router.get("/files/{path:path}")
async def download_attachment(
    path: str,
    user: Optional[UserIdentity] = Depends(current_user),
) -> FileResponse:
    """Serve a stored attachment. Paths start with ``cases/<case_id>/``."""
    services = get_services()
    parts = path.split("/")
    if len(parts) < 3 or parts[0] != "cases" or any(part in ("", ".", "..") for part in parts):
        raise HTTPException(status_code=404, detail="Attachment not found")
    await _guard(services.cases.authorize(parts[1], user, Permission.READ))
    try:
        target = services.attachments.resolve(path)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return FileResponse(target)


@router.get("/summary")
async def summary(
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, Any]:
    """Done / pending counts per entry type."""
    services = get_services()
    case = _case_id(case_id)
    counts = await _guard(services.entries.summary(case, user))
    return {"case_id": case, "summary": counts}


# ── Professionals ────────────────────────────────────────────────────

@router.get("/professionals")
async def list_professionals(
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> list[dict[str, Any]]:
    services = get_services()
    professionals = await _guard(services.professionals.list_professionals(_case_id(case_id), user))
    return [p.to_document() for p in professionals]


@router.get("/professionals/specialties")
async def professional_specialties(
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> list[dict[str, Any]]:
    """Number of professionals per specialty."""
    services = get_services()
    counts = await _guard(services.professionals.counts_by_specialty(_case_id(case_id), user))
    return [{"specialty": specialty, "count": count} for specialty, count in counts]


@router.post("/professionals")
async def save_professional(
    request: dict[str, Any],
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, Any]:
    services = get_services()
    professional = await _guard(services.professionals.save_professional(_case_id(case_id), request, user))
    return professional.to_document()


@router.get("/professionals/{professional_id}")
async def get_professional(
    professional_id: str,
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, Any]:
    services = get_services()
    professional = await _guard(
        services.professionals.get_professional(_case_id(case_id), professional_id, user)
    )
    return professional.to_document()


@router.delete("/professionals/{professional_id}")
async def delete_professional(
    professional_id: str,
    case_id: Optional[str] = Query(None),
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, str]:
    """Delete a professional; refused with 409 while entries reference it."""
    services = get_services()
    await _guard(services.professionals.delete_professional(_case_id(case_id), professional_id, user))
    return {"status": "deleted"}


# ── Cases ────────────────────────────────────────────────────────────

@router.get("/cases")
async def list_cases(user: Optional[UserIdentity] = Depends(current_user)) -> list[dict[str, Any]]:
    """Cases the caller belongs to."""
    services = get_services()
    cases = await _guard(services.cases.list_cases(user))
    return [c.to_document() for c in cases]


@router.post("/cases")
async def create_case(
    request: CaseRequest,
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, Any]:
    services = get_services()
    case = await _guard(services.cases.create_case(request.name, user))
    return case.to_document()


@router.get("/cases/{case_id}")
async def get_case(case_id: str, user: Optional[UserIdentity] = Depends(current_user)) -> dict[str, Any]:
    services = get_services()
    case = await _guard(services.cases.get_case(case_id, user))
    return case.to_document()


@router.post("/cases/{case_id}/members")
async def add_member(
    case_id: str,
    request: MemberRequest,
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, Any]:
    services = get_services()
    case = await _guard(services.cases.add_member(case_id, request.user_id, request.role, user))
    return case.to_document()


@router.post("/cases/{case_id}/types")
async def add_type(
    case_id: str,
    request: TypeRequest,
    user: Optional[UserIdentity] = Depends(current_user),
) -> dict[str, Any]:
    services = get_services()
    case = await _guard(services.cases.add_type(case_id, request.type, user))
    return case.to_document()
