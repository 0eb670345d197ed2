from __future__ import annotations

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from project_factory.api.deps import get_generation_orchestrator, get_ingestion_service
from project_factory.core.config import settings
from project_factory.core.request_context import (
    current_locale,
    current_user_uuid,
    set_current_request_info,
)
from project_factory.db.session import get_db
from project_factory.schemas.data_manage import (
    GeneratedResourceOut,
    GeneratedResourceResponse,
    GenerateRequestBody,
    ResourceDetailsOut,
    ResourceDetailsRequest,
    ResourceDetailsResponse,
    ResourceDetailsSearchRequest,
    ResourceDetailsSearchResponse,
    ResourceType,
)
from project_factory.services.generation_orchestrator import (
    FastAPIBackgroundTaskExecutor,
    GenerateRequest,
    GenerationOrchestrator,
)
from project_factory.services.resource_ingestion_service import ResourceIngestionService

router = APIRouter(prefix=f"{settings.API_BASE_PATH}/data", tags=["data"])


def _response_info(request_info: dict[str, Any]) -> dict[str, Any]:
    return {
        "apiId": request_info.get("apiId"),
        "msgId": request_info.get("msgId"),
        "status": "successful",
    }


def _generated(records) -> list[GeneratedResourceOut]:
    return [GeneratedResourceOut.model_validate(record.to_payload()) for record in records]


@router.post("/_generate", response_model=GeneratedResourceResponse)
def generate_data(
    background_tasks: BackgroundTasks,
    type: ResourceType = Query(...),
    tenant_id: str = Query(..., alias="tenantId"),
    hierarchy_type: str = Query(..., alias="hierarchyType"),
    force_update: bool = Query(False, alias="forceUpdate"),
    body: GenerateRequestBody | None = None,
    db: Session = Depends(get_db),
    orchestrator: GenerationOrchestrator = Depends(get_generation_orchestrator),
):
    body = body or GenerateRequestBody()
    request_info = body.request_info.as_payload() if body.request_info else {}
    set_current_request_info(request_info)
    filters = body.filters.model_dump(by_alias=True) if body.filters else None
    records = orchestrator.generate(
        db,
        FastAPIBackgroundTaskExecutor(background_tasks),
        GenerateRequest(
            type=type,
            tenant_id=tenant_id,
            hierarchy_type=hierarchy_type,
            force_update=force_update,
            filters=filters,
            request_info=request_info,
            user_uuid=current_user_uuid(request_info),
            locale=current_locale(request_info, settings.LOCALE),
        ),
    )
    return GeneratedResourceResponse(
        ResponseInfo=_response_info(request_info),
        GeneratedResource=_generated(records),
    )


@router.post("/_download", response_model=GeneratedResourceResponse)
def download_data(
    type: ResourceType = Query(...),
    tenant_id: str = Query(..., alias="tenantId"),
    hierarchy_type: str = Query(..., alias="hierarchyType"),
    resource_id: str | None = Query(None, alias="id"),
    body: GenerateRequestBody | None = None,
    db: Session = Depends(get_db),
    orchestrator: GenerationOrchestrator = Depends(get_generation_orchestrator),
):
    body = body or GenerateRequestBody()
    request_info = body.request_info.as_payload() if body.request_info else {}
    records = orchestrator.search_generated(
        db,
        type=type,
        tenant_id=tenant_id,
        hierarchy_type=hierarchy_type,
        resource_id=resource_id,
    )
    return GeneratedResourceResponse(
        ResponseInfo=_response_info(request_info),
        GeneratedResource=_generated(records),
    )


@router.post("/_create", response_model=ResourceDetailsResponse)
def create_resource_details(
    background_tasks: BackgroundTasks,
    payload: ResourceDetailsRequest,
    db: Session = Depends(get_db),
    service: ResourceIngestionService = Depends(get_ingestion_service),
):
    request_info = payload.request_info.as_payload() if payload.request_info else {}
    set_current_request_info(request_info)
    record = service.create(
        db,
        FastAPIBackgroundTaskExecutor(background_tasks),
        payload.resource_details.model_dump(),
        request_info=request_info,
        user_uuid=current_user_uuid(request_info),
        locale=current_locale(request_info, settings.LOCALE),
    )
    return ResourceDetailsResponse(
        ResponseInfo=_response_info(request_info),
        ResourceDetails=ResourceDetailsOut.model_validate(record.to_payload()),
    )


@router.post("/_search", response_model=ResourceDetailsSearchResponse)
def search_resource_details(
    payload: ResourceDetailsSearchRequest,
    db: Session = Depends(get_db),
    service: ResourceIngestionService = Depends(get_ingestion_service),
):
    request_info = payload.request_info.as_payload() if payload.request_info else {}
    criteria = payload.search_criteria
    records = service.search(
        db,
        tenant_id=criteria.tenant_id,
        ids=criteria.ids,
        type=criteria.type,
        status=criteria.status,
    )
    return ResourceDetailsSearchResponse(
        ResponseInfo=_response_info(request_info),
        ResourceDetails=[ResourceDetailsOut.model_validate(record.to_payload()) for record in records],
    )
