from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, Sequence

from project_factory.core.config import settings
from project_factory.core.errors import raise_error
from project_factory.core.flow_logging import flow_info, truncated
from project_factory.models.mixins import epoch_millis
from project_factory.schemas.boundary import parse_boundary_tree
from project_factory.services.boundary_codes import (
    ChildParentMap,
    CountMap,
    ElementCodesMap,
    ElementKey,
    assign_element_codes,
    unique_column_elements,
)
from project_factory.services.boundary_hierarchy import (
    BoundaryRow,
    build_child_parent_map,
    extract_codes,
)

logger = logging.getLogger(__name__)


class BoundaryRegistry(Protocol):
    def search_boundaries(self, tenant_id: str, codes: Sequence[str]) -> list[dict[str, Any]]:
        ...

    def create_boundaries(self, tenant_id: str, boundaries: Sequence[dict[str, Any]]) -> dict[str, Any]:
        ...

    def search_boundary_relationships(
        self,
        tenant_id: str,
        hierarchy_type: str,
        codes: str | None = None,
        *,
        include_children: bool = True,
    ) -> dict[str, Any]:
        ...

    def create_boundary_relationship(
        self,
        tenant_id: str,
        hierarchy_type: str,
        code: str,
        parent_code: str | None,
        boundary_type: str,
    ) -> dict[str, Any]:
        ...


class ReconcileState(str, Enum):
    PENDING = "pending"
    DISCOVER = "discover"
    ASSIGN_CODES = "assign_codes"
    DIFF = "diff"
    CREATE_ENTITIES = "create_entities"
    CREATE_RELATIONSHIPS = "create_relationships"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ReconcileRequest:
    tenant_id: str
    hierarchy_type: str
    rows: list[BoundaryRow]
    resource_type: str = "boundary"
    # Sheet header -> registry boundary type. Unmapped headers are used as-is.
    boundary_type_by_header: dict[str, str] = field(default_factory=dict)
    request_info: dict[str, Any] = field(default_factory=dict)
    resource_details_id: str | None = None
    user_uuid: str = "system"


@dataclass
class BoundaryActivity:
    id: str
    tenant_id: str
    type: str
    url: str
    status_code: int
    request_payload: dict[str, Any]
    response_payload: dict[str, Any]
    resource_details_id: str | None = None
    retry_count: int = 0
    created_by: str = "system"
    created_time: int = field(default_factory=epoch_millis)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status_code,
            "retryCount": self.retry_count,
            "tenantId": self.tenant_id,
            "type": self.type,
            "url": self.url,
            "requestPayload": self.request_payload,
            "responsePayload": self.response_payload,
            "auditDetails": {
                "createdBy": self.created_by,
                "lastModifiedBy": self.created_by,
                "createdTime": self.created_time,
                "lastModifiedTime": self.created_time,
            },
            "additionalDetails": {},
            "resourceDetailsId": self.resource_details_id,
        }


@dataclass
class ReconcileResult:
    child_parent_map: ChildParentMap
    element_codes: ElementCodesMap
    count_map: CountMap
    # code -> parent code, in creation order
    child_parent_codes: dict[str, str | None]
    boundary_types: dict[str, str]
    created_entities: list[str] = field(default_factory=list)
    created_relationships: list[str] = field(default_factory=list)
    activities: list[BoundaryActivity] = field(default_factory=list)

    def names_by_code(self) -> dict[str, str]:
        names: dict[str, str] = {}
        for element, code in self.element_codes.items():
            names.setdefault(code, element.value)
        return names


def _chunks(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    step = max(1, int(size))
    return [items[index:index + step] for index in range(0, len(items), step)]


class BoundaryReconciler:
    """
    Pushes sheet-derived boundaries into the registry.

    Runs discover -> assign codes -> diff -> create entities -> create
    relationships. Relationship creation is strictly one boundary at a time,
    parents first, and waits for each parent to become visible before its
    child is linked. The first failure stops the run; relationships created
    before it stay in the registry.
    """

    def __init__(
        self,
        registry: BoundaryRegistry,
        *,
        search_chunk_size: int | None = None,
        create_chunk_size: int | None = None,
        parent_confirm_retries: int | None = None,
        retry_interval_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        relationship_create_url: str | None = None,
    ) -> None:
        self._registry = registry
        self._search_chunk_size = search_chunk_size or settings.BOUNDARY_SEARCH_CHUNK_SIZE
        self._create_chunk_size = create_chunk_size or settings.BOUNDARY_CREATE_CHUNK_SIZE
        self._parent_confirm_retries = (
            settings.BOUNDARY_PARENT_CONFIRM_RETRIES
            if parent_confirm_retries is None
            else max(0, parent_confirm_retries)
        )
        self._retry_interval_seconds = (
            settings.BOUNDARY_PARENT_CONFIRM_INTERVAL_SECONDS
            if retry_interval_seconds is None
            else retry_interval_seconds
        )
        self._sleep = sleep
        self._relationship_create_url = relationship_create_url or getattr(
            registry, "relationship_create_url", settings.BOUNDARY_RELATIONSHIP_CREATE_PATH
        )
        self.state = ReconcileState.PENDING

    def reconcile(self, request: ReconcileRequest) -> ReconcileResult:
        try:
            result = self._run(request)
        except Exception:
            self.state = ReconcileState.FAILED
            raise
        self.state = ReconcileState.COMPLETED
        return result

    def _run(self, request: ReconcileRequest) -> ReconcileResult:
        self.state = ReconcileState.DISCOVER
        element_rows = [row.elements for row in request.rows if row.elements]
        child_parent_map = build_child_parent_map(element_rows)
        element_codes: ElementCodesMap = {}
        for row in request.rows:
            if row.code and row.elements:
                element_codes.setdefault(row.elements[-1], row.code)
        count_map: CountMap = {}
        logger.info(
            "boundary_reconcile_discovered tenant=%s hierarchy=%s rows=%s elements=%s seeded_codes=%s",
            request.tenant_id,
            request.hierarchy_type,
            len(element_rows),
            len(child_parent_map),
            len(element_codes),
        )

        self.state = ReconcileState.ASSIGN_CODES
        assign_element_codes(element_rows, child_parent_map, element_codes, count_map, request.hierarchy_type)
        child_parent_codes, boundary_types, names = self._ordered_candidates(
            element_rows, child_parent_map, element_codes, request.boundary_type_by_header
        )
        result = ReconcileResult(
            child_parent_map=child_parent_map,
            element_codes=element_codes,
            count_map=count_map,
            child_parent_codes=child_parent_codes,
            boundary_types=boundary_types,
        )

        self._create_missing_entities(request, list(child_parent_codes), names, result)

        self.state = ReconcileState.CREATE_RELATIONSHIPS
        self._create_relationships(request, result)
        if not result.created_relationships:
            raise_error("COMMON", 400, "VALIDATION_ERROR", "Boundary already present in the system")

        logger.info(
            "boundary_reconcile_completed tenant=%s hierarchy=%s entities_created=%s relationships_created=%s",
            request.tenant_id,
            request.hierarchy_type,
            len(result.created_entities),
            len(result.created_relationships),
        )
        return result

    @staticmethod
    def _ordered_candidates(
        element_rows: Sequence[Sequence[ElementKey]],
        child_parent_map: ChildParentMap,
        element_codes: ElementCodesMap,
        boundary_type_by_header: dict[str, str],
    ) -> tuple[dict[str, str | None], dict[str, str], dict[str, str]]:
        # Column-major order puts every parent ahead of its children.
        child_parent_codes: dict[str, str | None] = {}
        boundary_types: dict[str, str] = {}
        names: dict[str, str] = {}
        owners: dict[str, ElementKey] = {}
        for column in unique_column_elements(element_rows):
            for element in column:
                code = element_codes[element]
                owner = owners.setdefault(code, element)
                if owner != element:
                    raise_error(
                        "COMMON",
                        400,
                        "VALIDATION_ERROR",
                        f"Boundary code {code} is shared by {owner.key} '{owner.value}' "
                        f"and {element.key} '{element.value}'",
                    )
                parent = child_parent_map.get(element)
                child_parent_codes[code] = element_codes.get(parent) if parent is not None else None
                boundary_types[code] = boundary_type_by_header.get(element.key, element.key)
                names[code] = element.value
        return child_parent_codes, boundary_types, names

    def _create_missing_entities(
        self,
        request: ReconcileRequest,
        codes: list[str],
        names: dict[str, str],
        result: ReconcileResult,
    ) -> None:
        try:
            self.state = ReconcileState.DIFF
            existing: set[str] = set()
            for chunk in _chunks(codes, self._search_chunk_size):
                for boundary in self._registry.search_boundaries(request.tenant_id, list(chunk)):
                    existing.add(str(boundary.get("code")))

            self.state = ReconcileState.CREATE_ENTITIES
            missing = [
                {
                    "tenantId": request.tenant_id,
                    "code": code,
                    "geometry": None,
                    "additionalDetails": {"name": names[code]},
                }
                for code in codes
                if code not in existing
            ]
            if not missing:
                logger.info("boundary_entities_already_present tenant=%s count=%s", request.tenant_id, len(codes))
                return
            for chunk in _chunks(missing, self._create_chunk_size):
                response = self._registry.create_boundaries(request.tenant_id, list(chunk))
                logger.debug("boundary_entities_create_response body=%s", truncated(response))
            result.created_entities.extend(item["code"] for item in missing)
            logger.info("boundary_entities_created tenant=%s count=%s", request.tenant_id, len(missing))
        except Exception as exc:
            logger.error("boundary_entity_creation_failed tenant=%s error=%s", request.tenant_id, exc)
            raise_error("COMMON", 500, "INTERNAL_SERVER_ERROR", "Error while Boundary Entity Creation")

    def _create_relationships(self, request: ReconcileRequest, result: ReconcileResult) -> None:
        tree_payload = self._registry.search_boundary_relationships(
            request.tenant_id,
            request.hierarchy_type,
            None,
            include_children=True,
        )
        related = extract_codes(parse_boundary_tree(tree_payload))

        for code, parent_code in result.child_parent_codes.items():
            if code in related:
                continue
            boundary_type = result.boundary_types[code]
            self.confirm_parent(request.tenant_id, request.hierarchy_type, parent_code)
            try:
                response = self._registry.create_boundary_relationship(
                    request.tenant_id,
                    request.hierarchy_type,
                    code,
                    parent_code,
                    boundary_type,
                )
                if not response.get("TenantBoundary"):
                    raise_error(
                        "BOUNDARY",
                        500,
                        "BOUNDARY_RELATIONSHIP_CREATE_ERROR",
                        f"Empty response creating relationship for {code}",
                    )
            except Exception as exc:
                logger.error(
                    "boundary_relationship_create_failed boundary_type=%s code=%s error=%s",
                    boundary_type,
                    code,
                    exc,
                )
                raise

            flow_info(
                logger,
                "boundary_relationship_created boundary_type=%s code=%s parent=%s",
                boundary_type,
                code,
                parent_code,
                category="relationships",
            )
            result.created_relationships.append(code)
            result.activities.append(
                BoundaryActivity(
                    id=str(uuid.uuid4()),
                    tenant_id=request.tenant_id,
                    type=request.resource_type,
                    url=self._relationship_create_url,
                    status_code=200,
                    request_payload={
                        "RequestInfo": request.request_info,
                        "BoundaryRelationship": {
                            "tenantId": request.tenant_id,
                            "boundaryType": boundary_type,
                            "code": code,
                            "hierarchyType": request.hierarchy_type,
                            "parent": parent_code,
                        },
                    },
                    response_payload=response,
                    resource_details_id=request.resource_details_id,
                    created_by=request.user_uuid,
                )
            )

    def confirm_parent(self, tenant_id: str, hierarchy_type: str, parent_code: str | None) -> None:
        """Wait until `parent_code` is visible in the relationship tree."""
        if not parent_code:
            return
        attempts = self._parent_confirm_retries + 1
        for attempt in range(1, attempts + 1):
            payload = self._registry.search_boundary_relationships(
                tenant_id,
                hierarchy_type,
                parent_code,
                include_children=False,
            )
            if parse_boundary_tree(payload):
                return
            logger.info(
                "boundary_parent_not_visible code=%s attempt=%s of=%s",
                parent_code,
                attempt,
                attempts,
            )
            if attempt < attempts:
                self._sleep(self._retry_interval_seconds)
        raise_error(
            "BOUNDARY",
            500,
            "INTERNAL_SERVER_ERROR",
            f"Boundary creation failed, for the boundary with code {parent_code}",
        )


