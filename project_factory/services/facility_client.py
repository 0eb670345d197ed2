from __future__ import annotations

import logging
from typing import Any

import requests

from project_factory.core.config import settings
from project_factory.core.errors import raise_error
from project_factory.services.http_client import ServiceClient

logger = logging.getLogger(__name__)


class FacilityClient:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        session: requests.Session | None = None,
        request_info: dict[str, Any] | None = None,
        page_size: int = 50,
    ) -> None:
        self._client = ServiceClient(base_url or settings.FACILITY_HOST, session=session)
        self._request_info = dict(request_info or {})
        self._page_size = max(1, page_size)

    def search_all(self, tenant_id: str) -> list[dict[str, Any]]:
        facilities: list[dict[str, Any]] = []
        offset = 0
        while True:
            try:
                payload = self._client.post(
                    settings.FACILITY_SEARCH_PATH,
                    {"RequestInfo": self._request_info, "Facility": {"isPermanent": None}},
                    params={"tenantId": tenant_id, "limit": self._page_size, "offset": offset},
                )
            except requests.RequestException as exc:
                logger.error("facility_search_failed tenant=%s offset=%s error=%s", tenant_id, offset, exc)
                raise_error("FACILITY", 500, "FACILITY_SEARCH_FAILED", str(exc))
            page = list(payload.get("Facilities") or [])
            facilities.extend(page)
            if len(page) < self._page_size:
                break
            offset += self._page_size
        logger.info("facility_search tenant=%s count=%s", tenant_id, len(facilities))
        return facilities
