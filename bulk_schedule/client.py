import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from bulk_schedule.errors import BackendError
from bulk_schedule.models import ClassConfiguration, Directory, DirectoryEntry, ExistingClass

logger = logging.getLogger(__name__)

STUDIO_API_URL = os.getenv("STUDIO_API_URL", "https://api.pilatopia.studio")
STUDIO_API_TIMEOUT = float(os.getenv("STUDIO_API_TIMEOUT", "10.0"))


class StudioClient:
    """Thin async client for the studio admin backend.

    Every call opens its own AsyncClient and forwards the caller's bearer
    token. Non-2xx responses and transport failures raise BackendError.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = STUDIO_API_URL,
        timeout: float = STUDIO_API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                resp = await client.request(method, url, headers=self._headers(), **kwargs)
            except httpx.RequestError as e:
                logger.warning("Error calling %s: %s", url, e)
                raise BackendError(f"Studio API unavailable: {e}") from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = None
            detail = (body.get("message") if isinstance(body, dict) else None) or resp.text
            logger.warning("%s %s returned %s", method, url, resp.status_code)
            raise BackendError(detail or "request failed", status_code=resp.status_code)
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            # 2xx with a plain-text body ("Created") still means success
            logger.debug("%s %s returned non-JSON body", method, url)
            return {}

    # ---------- directories ----------
    async def list_instructors(self) -> List[DirectoryEntry]:
        data = await self._request("GET", "/admin/instructors")
        return [DirectoryEntry(id=i["id"], name=i["name"]) for i in data.get("instructors", [])]

    async def list_class_types(self) -> List[DirectoryEntry]:
        data = await self._request("GET", "/admin/class-types/all")
        return [DirectoryEntry(id=t["id"], name=t["name"]) for t in data.get("data", [])]

    async def list_class_rooms(self) -> List[DirectoryEntry]:
        data = await self._request("GET", "/admin/classes/rooms")
        return [DirectoryEntry(id=r["id"], name=r["name"]) for r in data.get("data", [])]

    async def load_directory(self) -> Directory:
        return Directory(
            instructors=await self.list_instructors(),
            class_types=await self.list_class_types(),
            rooms=await self.list_class_rooms(),
        )

    # ---------- classes ----------
    async def list_classes(self, start_date: str, end_date: str) -> List[ExistingClass]:
        data = await self._request(
            "GET",
            "/admin/schedules/classes/by-date-range",
            params={"startDate": start_date, "endDate": end_date},
        )
        return [ExistingClass.from_api(c) for c in data.get("classes", [])]

    async def create_classes(self, config: ClassConfiguration, dates: List[str], start_time: str) -> Dict[str, Any]:
        payload = {
            "classesConfig": config.classes_config(),
            "dates": list(dates),
            "startTime": start_time,
        }
        return await self._request("POST", "/admin/schedules/classes/bulk", json=payload)
