from __future__ import annotations

import logging
from typing import Any, Sequence

import requests

from project_factory.core.config import settings
from project_factory.services.http_client import ServiceClient

logger = logging.getLogger(__name__)


class BoundaryRegistryClient:
    """Boundary entity, relationship and hierarchy-definition endpoints."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        session: requests.Session | None = None,
        request_info: dict[str, Any] | None = None,
    ) -> None:
        self._client = ServiceClient(base_url or settings.BOUNDARY_HOST, session=session)
        self._request_info = dict(request_info or {})

    def _body(self, **extra: Any) -> dict[str, Any]:
        body: dict[str, Any] = {"RequestInfo": self._request_info}
        body.update(extra)
        return body

    @property
    def relationship_create_url(self) -> str:
        return self._client.url(settings.BOUNDARY_RELATIONSHIP_CREATE_PATH)

    def search_boundaries(self, tenant_id: str, codes: Sequence[str]) -> list[dict[str, Any]]:
        payload = self._client.post(
            settings.BOUNDARY_SEARCH_PATH,
            self._body(),
            params={"tenantId": tenant_id, "codes": ", ".join(codes)},
        )
        return list(payload.get("Boundary") or [])

    def create_boundaries(self, tenant_id: str, boundaries: Sequence[dict[str, Any]]) -> dict[str, Any]:
        logger.info("boundary_entities_create tenant=%s count=%s", tenant_id, len(boundaries))
        return self._client.post(settings.BOUNDARY_CREATE_PATH, self._body(Boundary=list(boundaries)))

    def search_boundary_relationships(
        self,
        tenant_id: str,
        hierarchy_type: str,
        codes: str | None = None,
        *,
        include_children: bool = True,
    ) -> dict[str, Any]:
        return self._client.post(
            settings.BOUNDARY_RELATIONSHIP_SEARCH_PATH,
            self._body(),
            params={
                "tenantId": tenant_id,
                "hierarchyType": hierarchy_type,
                "codes": codes,
                "includeChildren": "true" if include_children else None,
            },
        )

    def create_boundary_relationship(
        self,
        tenant_id: str,
        hierarchy_type: str,
        code: str,
        parent_code: str | None,
        boundary_type: str,
    ) -> dict[str, Any]:
        relationship = {
            "tenantId": tenant_id,
            "boundaryType": boundary_type,
            "code": code,
            "hierarchyType": hierarchy_type,
            "parent": parent_code,
        }
        return self._client.post(
            settings.BOUNDARY_RELATIONSHIP_CREATE_PATH,
            self._body(BoundaryRelationship=relationship),
        )

    def search_hierarchy_definition(self, tenant_id: str, hierarchy_type: str) -> list[dict[str, Any]]:
        payload = self._client.post(
            settings.BOUNDARY_HIERARCHY_SEARCH_PATH,
            self._body(
                BoundaryTypeHierarchySearchCriteria={
                    "tenantId": tenant_id,
                    "hierarchyType": hierarchy_type,
                }
            ),
        )
        hierarchies = payload.get("BoundaryHierarchy") or []
        if not hierarchies:
            return []
        return list(hierarchies[0].get("boundaryHierarchy") or [])
