from __future__ import annotations

from typing import Any

import requests

from project_factory.core.config import settings
from project_factory.core.errors import raise_error
from project_factory.services.http_client import ServiceClient


class MdmsClient:
    """Schema and master-data lookups. Payloads are returned as opaque JSON."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        session: requests.Session | None = None,
        request_info: dict[str, Any] | None = None,
    ) -> None:
        self._client = ServiceClient(base_url or settings.MDMS_HOST, session=session)
        self._request_info = dict(request_info or {})

    def get_schema(self, tenant_id: str, code: str) -> dict[str, Any]:
        payload = self._client.post(
            settings.MDMS_SCHEMA_SEARCH_PATH,
            {
                "RequestInfo": self._request_info,
                "SchemaDefCriteria": {"tenantId": tenant_id, "codes": [code]},
            },
        )
        definitions = payload.get("SchemaDefinitions") or []
        if not definitions:
            raise_error("MDMS", 500, "SCHEMA_NOT_FOUND", f"Schema {code} not found for tenant {tenant_id}")
        return dict(definitions[0].get("definition") or {})

    def get_master_data(self, tenant_id: str, module: str, master: str) -> list[Any]:
        payload = self._client.post(
            settings.MDMS_SEARCH_PATH,
            {
                "RequestInfo": self._request_info,
                "MdmsCriteria": {
                    "tenantId": tenant_id,
                    "moduleDetails": [{"moduleName": module, "masterDetails": [{"name": master}]}],
                },
            },
        )
        return list(((payload.get("MdmsRes") or {}).get(module) or {}).get(master) or [])

    def get_readme_config(self, tenant_id: str, resource_type: str) -> dict[str, Any]:
        configs = self.get_master_data(tenant_id, settings.MDMS_MODULE_NAME, "ReadMeConfig")
        if not configs:
            raise_error("COMMON", 500, "INTERNAL_SERVER_ERROR", "Some error occured during readme config mdms search.")
        for config in configs:
            if config.get("type") == resource_type:
                return dict(config)
        raise_error("MDMS", 500, "INVALID_README_CONFIG", f"Readme config for type {resource_type} not found.")
        return {}

    def get_required_columns(self, tenant_id: str, schema_code: str) -> list[str]:
        schema = self.get_schema(tenant_id, f"{settings.MDMS_MODULE_NAME}.{schema_code}")
        return [str(column) for column in schema.get("required") or []]
