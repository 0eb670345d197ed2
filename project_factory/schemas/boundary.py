from __future__ import annotations

from typing import Any

from pydantic import Field

from project_factory.schemas.base import BaseSchema


class BoundaryNode(BaseSchema):
    code: str
    boundary_type: str = Field(default="", alias="boundaryType")
    children: list["BoundaryNode"] = Field(default_factory=list)


BoundaryNode.model_rebuild()


def parse_boundary_tree(payload: Any) -> list[BoundaryNode]:
    """Accept a relationship search response, a TenantBoundary entry or a node list."""
    if not payload:
        return []
    if isinstance(payload, dict):
        if "TenantBoundary" in payload:
            tenant_boundaries = payload.get("TenantBoundary") or []
            if not tenant_boundaries:
                return []
            return parse_boundary_tree(tenant_boundaries[0].get("boundary") or [])
        if "boundary" in payload:
            return parse_boundary_tree(payload.get("boundary") or [])
        return [BoundaryNode.model_validate(payload)]
    return [BoundaryNode.model_validate(node) for node in payload]
