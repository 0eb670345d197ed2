from __future__ import annotations

import logging
from typing import Any

import requests

from project_factory.core.config import settings
from project_factory.core.flow_logging import truncated

logger = logging.getLogger(__name__)


class ServiceClient:
    """Single-attempt JSON calls against one downstream host."""

    def __init__(
        self,
        base_url: str,
        *,
        session: requests.Session | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds or settings.HTTP_TIMEOUT_SECONDS

    def url(self, path: str) -> str:
        return self.base_url + path.lstrip("/")

    def post(
        self,
        path: str,
        body: dict[str, Any] | None = None,
        *,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return self._request_json("POST", path, body=body, params=params)

    def get(self, path: str, *, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._request_json("GET", path, params=params)

    def _request_json(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = self.url(path)
        clean_params = {key: value for key, value in (params or {}).items() if value is not None}
        logger.debug("http_request method=%s url=%s params=%s", method, url, clean_params)
        response = self._session.request(
            method,
            url,
            params=clean_params or None,
            json=body,
            timeout=self._timeout_seconds,
        )
        if response.status_code >= 400:
            logger.error(
                "http_request_failed method=%s url=%s status=%s body=%s",
                method,
                url,
                response.status_code,
                truncated(response.text),
            )
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise requests.RequestException(f"{url} returned invalid JSON.") from exc
        if not isinstance(payload, dict):
            raise requests.RequestException(f"{url} returned a non-object JSON payload.")
        logger.debug("http_response url=%s body=%s", url, truncated(payload))
        return payload

    def download(self, url: str) -> bytes:
        response = self._session.get(url, timeout=self._timeout_seconds)
        response.raise_for_status()
        return response.content
