"""Shared cloud store speaking a simple JSON document API over HTTP.

Layout mirrors the per-case collections of the hosted document database::

    GET    {base}/cases
    GET    {base}/cases/{case_id}
    PUT    {base}/cases/{case_id}
    GET    {base}/cases/{case_id}/{collection}
    GET    {base}/cases/{case_id}/{collection}/{doc_id}
    PUT    {base}/cases/{case_id}/{collection}/{doc_id}
    DELETE {base}/cases/{case_id}/{collection}/{doc_id}

Collection listings return a JSON array of documents. Documents are
written with absent optional fields omitted, never as null.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from medtrack.errors import StoreError
from medtrack.logging_config import get_logger
from medtrack.modules.cases.models import Case
from medtrack.modules.entries.models import Entry
from medtrack.modules.professionals.models import Professional
from medtrack.storage.base import BaseStore

logger = get_logger(__name__)

ENTRIES = "entries"
PROFESSIONALS = "professionals"


class _ServerError(Exception):
    """A 5xx response, retried like a transport failure."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"{response.status_code} from {response.request.url}")
        self.response = response


class RemoteDocumentStore(BaseStore):
    """Document store client keyed by case."""

    backend = "remote"

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not base_url:
            raise ValueError("remote_store_url is required for the remote storage backend")
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type((httpx.TransportError, _ServerError)),
        reraise=True,
    )
    async def _send(self, method: str, path: str, json: Any = None) -> httpx.Response:
        response = await self._client.request(method, path, json=json)
        if response.status_code >= 500:
            raise _ServerError(response)
        return response

    async def _request(self, method: str, path: str, json: Any = None) -> Optional[httpx.Response]:
        """Send a request; None on 404, StoreError on any other failure."""
        try:
            response = await self._send(method, path, json=json)
        except (httpx.TransportError, _ServerError) as exc:
            logger.error("remote_store_request_failed", method=method, path=path, error=str(exc))
            raise StoreError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.is_error:
            logger.error(
                "remote_store_rejected",
                method=method,
                path=path,
                status=response.status_code,
                body=response.text[:200],
            )
            raise StoreError(f"{method} {path} returned {response.status_code}")
        return response

    @staticmethod
    def _path(*segments: str) -> str:
        return "/" + "/".join(quote(s, safe="") for s in segments)

    async def _list(self, *segments: str) -> list[dict[str, Any]]:
        response = await self._request("GET", self._path(*segments))
        if response is None:
            return []
        return response.json()

    async def _get(self, *segments: str) -> Optional[dict[str, Any]]:
        response = await self._request("GET", self._path(*segments))
        return response.json() if response is not None else None

    async def _put(self, document: dict[str, Any], *segments: str) -> None:
        await self._request("PUT", self._path(*segments), json=document)

    async def _delete(self, *segments: str) -> bool:
        response = await self._request("DELETE", self._path(*segments))
        return response is not None

    # ── Entries ──────────────────────────────────────────────────────

    async def list_entries(self, case_id: str) -> list[Entry]:
        docs = await self._list("cases", case_id, ENTRIES)
        entries = [Entry.model_validate(doc) for doc in docs]
        entries.sort(key=lambda e: e.date_time.timestamp(), reverse=True)
        return entries

    async def get_entry(self, case_id: str, entry_id: str) -> Optional[Entry]:
        doc = await self._get("cases", case_id, ENTRIES, entry_id)
        return Entry.model_validate(doc) if doc is not None else None

    async def put_entry(self, case_id: str, entry: Entry) -> Entry:
        await self._put(entry.to_document(), "cases", case_id, ENTRIES, entry.id)
        logger.debug("remote_entry_saved", case_id=case_id, entry_id=entry.id)
        return entry

    async def delete_entry(self, case_id: str, entry_id: str) -> bool:
        return await self._delete("cases", case_id, ENTRIES, entry_id)

    # ── Professionals ────────────────────────────────────────────────

    async def list_professionals(self, case_id: str) -> list[Professional]:
        docs = await self._list("cases", case_id, PROFESSIONALS)
        professionals = [Professional.model_validate(doc) for doc in docs]
        professionals.sort(key=lambda p: p.name)
        return professionals

    async def get_professional(self, case_id: str, professional_id: str) -> Optional[Professional]:
        doc = await self._get("cases", case_id, PROFESSIONALS, professional_id)
        return Professional.model_validate(doc) if doc is not None else None

    async def put_professional(self, case_id: str, professional: Professional) -> Professional:
        await self._put(professional.to_document(), "cases", case_id, PROFESSIONALS, professional.id)
        return professional

    async def delete_professional(self, case_id: str, professional_id: str) -> bool:
        return await self._delete("cases", case_id, PROFESSIONALS, professional_id)

    # ── Cases ────────────────────────────────────────────────────────

    async def list_cases(self) -> list[Case]:
        docs = await self._list("cases")
        cases = [Case.model_validate(doc) for doc in docs]
        cases.sort(key=lambda c: c.created_at.timestamp(), reverse=True)
        return cases

    async def get_case(self, case_id: str) -> Optional[Case]:
        doc = await self._get("cases", case_id)
        return Case.model_validate(doc) if doc is not None else None

    async def put_case(self, case: Case) -> Case:
        await self._put(case.to_document(), "cases", case.id)
        return case

    async def close(self) -> None:
        await self._client.aclose()
