from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

import requests

from project_factory.core.cache import TTLCache
from project_factory.core.config import settings
from project_factory.core.errors import raise_error
from project_factory.services.http_client import ServiceClient

logger = logging.getLogger(__name__)


def get_localized_name(key: Any, localization_map: Mapping[str, str] | None = None) -> str:
    text = "" if key is None else str(key)
    if not localization_map:
        return text
    return localization_map.get(text) or text


def get_localized_headers(
    headers: Iterable[Any],
    localization_map: Mapping[str, str] | None = None,
) -> list[str]:
    return [get_localized_name(header, localization_map) for header in headers]


def boundary_localization_module(hierarchy_type: str) -> str:
    return f"{settings.BOUNDARY_LOCALIZATION_PREFIX}-{hierarchy_type.strip().lower()}"


class LocalizationService:
    def __init__(
        self,
        cache: TTLCache,
        *,
        base_url: str | None = None,
        session: requests.Session | None = None,
        request_info: dict[str, Any] | None = None,
    ) -> None:
        self._cache = cache
        self._client = ServiceClient(base_url or settings.LOCALIZATION_HOST, session=session)
        self._request_info = dict(request_info or {})

    def fetch_messages(self, tenant_id: str, locale: str, module: str) -> dict[str, str]:
        cache_key = ("localization", tenant_id, locale, module)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return dict(cached)

        try:
            payload = self._client.post(
                settings.LOCALIZATION_SEARCH_PATH,
                {"RequestInfo": self._request_info},
                params={"tenantId": tenant_id, "locale": locale, "module": module},
            )
        except requests.RequestException as exc:
            logger.error(
                "localization_fetch_failed tenant=%s locale=%s module=%s error=%s",
                tenant_id,
                locale,
                module,
                exc,
            )
            raise_error("LOCALIZATION", 500, "LOCALIZATION_FETCH_FAILED", str(exc))

        messages = {
            str(item.get("code")): str(item.get("message"))
            for item in payload.get("messages") or []
            if item.get("code") is not None and item.get("message") is not None
        }
        self._cache.set(cache_key, messages)
        logger.info(
            "localization_fetched tenant=%s locale=%s module=%s count=%s",
            tenant_id,
            locale,
            module,
            len(messages),
        )
        return dict(messages)

    def localization_map(self, tenant_id: str, locale: str, hierarchy_type: str | None = None) -> dict[str, str]:
        """Module messages layered over the hierarchy's boundary-name messages."""
        merged: dict[str, str] = {}
        if hierarchy_type:
            merged.update(self.fetch_messages(tenant_id, locale, boundary_localization_module(hierarchy_type)))
        merged.update(self.fetch_messages(tenant_id, locale, settings.LOCALIZATION_MODULE))
        return merged

    def upsert_messages(self, tenant_id: str, messages: list[dict[str, str]]) -> None:
        if not messages:
            return
        try:
            self._client.post(
                settings.LOCALIZATION_UPSERT_PATH,
                {"RequestInfo": self._request_info, "tenantId": tenant_id, "messages": messages},
            )
        except requests.RequestException as exc:
            logger.error("localization_upsert_failed tenant=%s count=%s error=%s", tenant_id, len(messages), exc)
            raise_error("LOCALIZATION", 500, "LOCALIZATION_UPSERT_FAILED", str(exc))

        for module, locale in {(m["module"], m["locale"]) for m in messages}:
            self._cache.expire(("localization", tenant_id, locale, module))
        logger.info("localization_upserted tenant=%s count=%s", tenant_id, len(messages))

    def upsert_boundary_names(
        self,
        tenant_id: str,
        hierarchy_type: str,
        locale: str,
        names_by_code: Mapping[str, str],
    ) -> None:
        module = boundary_localization_module(hierarchy_type)
        self.upsert_messages(
            tenant_id,
            [
                {"code": code, "message": name, "module": module, "locale": locale}
                for code, name in names_by_code.items()
            ],
        )
