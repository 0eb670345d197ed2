from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from project_factory.schemas.base import BaseSchema

ResourceType = Literal["facilityWithBoundary", "userWithBoundary", "boundary", "boundaryWithTarget"]


class RequestInfo(BaseSchema):
    api_id: str | None = Field(default=None, alias="apiId")
    msg_id: str | None = Field(default=None, alias="msgId")
    auth_token: str | None = Field(default=None, alias="authToken")
    user_info: dict[str, Any] | None = Field(default=None, alias="userInfo")

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BoundaryFilter(BaseSchema):
    code: str
    boundary_type: str | None = Field(default=None, alias="boundaryType")
    include_all_children: bool = Field(default=False, alias="includeAllChildren")
    is_root: bool = Field(default=False, alias="isRoot")


class Filters(BaseSchema):
    boundaries: list[BoundaryFilter] = Field(default_factory=list)


class GenerateRequestBody(BaseSchema):
    request_info: RequestInfo | None = Field(default=None, alias="RequestInfo")
    filters: Filters | None = Field(default=None, alias="Filters")


class GeneratedResourceOut(BaseSchema):
    id: str
    file_store_id: str | None = Field(default=None, alias="fileStoreid")
    type: str
    status: str
    hierarchy_type: str = Field(alias="hierarchyType")
    tenant_id: str = Field(alias="tenantId")
    count: int | None = None
    additional_details: dict[str, Any] = Field(default_factory=dict, alias="additionalDetails")
    audit_details: dict[str, Any] = Field(default_factory=dict, alias="auditDetails")


class GeneratedResourceResponse(BaseSchema):
    response_info: dict[str, Any] = Field(default_factory=dict, alias="ResponseInfo")
    generated_resource: list[GeneratedResourceOut] = Field(default_factory=list, alias="GeneratedResource")


class ResourceDetailsIn(BaseSchema):
    tenant_id: str = Field(alias="tenantId")
    type: ResourceType
    hierarchy_type: str = Field(alias="hierarchyType")
    file_store_id: str = Field(alias="fileStoreId")
    action: Literal["create", "validate"] = "create"
    campaign_id: str | None = Field(default=None, alias="campaignId")
    additional_details: dict[str, Any] = Field(default_factory=dict, alias="additionalDetails")


class ResourceDetailsRequest(BaseSchema):
    request_info: RequestInfo | None = Field(default=None, alias="RequestInfo")
    resource_details: ResourceDetailsIn = Field(alias="ResourceDetails")


class ResourceDetailsOut(BaseSchema):
    id: str
    tenant_id: str = Field(alias="tenantId")
    type: str
    hierarchy_type: str = Field(alias="hierarchyType")
    campaign_id: str | None = Field(default=None, alias="campaignId")
    file_store_id: str = Field(alias="fileStoreId")
    processed_file_store_id: str | None = Field(default=None, alias="processedFileStoreId")
    action: str
    status: str
    additional_details: dict[str, Any] = Field(default_factory=dict, alias="additionalDetails")
    audit_details: dict[str, Any] = Field(default_factory=dict, alias="auditDetails")


class ResourceDetailsResponse(BaseSchema):
    response_info: dict[str, Any] = Field(default_factory=dict, alias="ResponseInfo")
    resource_details: ResourceDetailsOut = Field(alias="ResourceDetails")


class SearchCriteria(BaseSchema):
    tenant_id: str = Field(alias="tenantId")
    ids: list[str] | None = None
    type: str | None = None
    status: str | None = None


class ResourceDetailsSearchRequest(BaseSchema):
    request_info: RequestInfo | None = Field(default=None, alias="RequestInfo")
    search_criteria: SearchCriteria = Field(alias="SearchCriteria")


class ResourceDetailsSearchResponse(BaseSchema):
    response_info: dict[str, Any] = Field(default_factory=dict, alias="ResponseInfo")
    resource_details: list[ResourceDetailsOut] = Field(default_factory=list, alias="ResourceDetails")
