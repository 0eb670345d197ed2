"""
Template generation workflow.

A generate request either reuses a completed result or expires it and
starts a fresh `inprogress` record whose workbook is built in the
background. Lifecycle changes are persisted and published:

    inprogress -> completed | failed     (new record)
    completed  -> expired                (superseded records)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from project_factory.core.config import settings
from project_factory.core.errors import error_message, raise_error
from project_factory.crud import generated_resource as crud
from project_factory.models.generated_resource import GeneratedResource
from project_factory.schemas.boundary import BoundaryNode, parse_boundary_tree
from project_factory.services.boundary_hierarchy import filter_boundary_tree, generate_hierarchy
from project_factory.services.boundary_sheet_service import (
    boundary_sheet_data,
    facility_sheet_data,
    level_headers,
    reduce_levels,
    user_sheet_data,
)
from project_factory.services.clients import AppServices
from project_factory.services.localization_service import get_localized_name
from project_factory.services.sheet_service import (
    SheetData,
    build_workbook,
    should_split,
    split_boundary_sheet,
)

logger = logging.getLogger(__name__)

GENERATE_TYPES = ("boundary", "facilityWithBoundary", "userWithBoundary", "boundaryWithTarget")

README_HEADINGS = {
    "facilityWithBoundary": "HCM_ADMIN_CONSOLE_FACILITY_LIST",
    "userWithBoundary": "HCM_ADMIN_CONSOLE_USER_LIST",
    "boundaryWithTarget": "HCM_ADMIN_CONSOLE_TARGET_LIST",
}


class TaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


@dataclass
class GenerateRequest:
    type: str
    tenant_id: str
    hierarchy_type: str
    force_update: bool = False
    filters: dict[str, Any] | None = None
    request_info: dict[str, Any] = field(default_factory=dict)
    user_uuid: str = "system"
    locale: str = ""


@dataclass
class GeneratedFile:
    filestore_id: str
    count: int | None


class GenerationOrchestrator:
    def __init__(self, services: AppServices) -> None:
        self._services = services

    def generate(
        self,
        db: Session,
        executor: TaskExecutor,
        request: GenerateRequest,
    ) -> list[GeneratedResource]:
        if request.type not in GENERATE_TYPES:
            raise_error("COMMON", 400, "VALIDATION_ERROR", f"Unsupported generate type {request.type}")

        filters = request.filters if request.type == "boundary" else None
        found = crud.find_reusable(
            db,
            type=request.type,
            tenant_id=request.tenant_id,
            hierarchy_type=request.hierarchy_type,
            filters=filters,
        )
        if found and not request.force_update:
            logger.info(
                "generate_reused type=%s tenant=%s hierarchy=%s ids=%s",
                request.type,
                request.tenant_id,
                request.hierarchy_type,
                [record.id for record in found],
            )
            return found

        if found:
            crud.mark_expired(db, found, request.user_uuid)
        additional_details = {"Filters": filters} if request.type == "boundary" else {}
        record = crud.create_generated_resource(
            db,
            type=request.type,
            tenant_id=request.tenant_id,
            hierarchy_type=request.hierarchy_type,
            user_uuid=request.user_uuid,
            additional_details=additional_details,
        )
        db.commit()

        bus = self._services.event_bus
        if found:
            bus.publish(
                settings.TOPIC_UPDATE_GENERATED_RESOURCE,
                request.tenant_id,
                {"generatedResource": [item.to_payload() for item in found]},
            )
        bus.publish(
            settings.TOPIC_CREATE_GENERATED_RESOURCE,
            request.tenant_id,
            {"generatedResource": [record.to_payload()]},
        )

        try:
            executor.submit(self.run_generation, record.id, request)
        except Exception as exc:
            crud.mark_failed(db, record, error=error_message(exc), user_uuid=request.user_uuid)
            db.commit()
            raise

        logger.info(
            "generate_started id=%s type=%s tenant=%s hierarchy=%s force=%s expired=%s",
            record.id,
            request.type,
            request.tenant_id,
            request.hierarchy_type,
            request.force_update,
            len(found),
        )
        return [record]

    def search_generated(
        self,
        db: Session,
        *,
        type: str,
        tenant_id: str,
        hierarchy_type: str,
        resource_id: str | None = None,
    ) -> list[GeneratedResource]:
        return crud.list_generated_resources(
            db,
            type=type,
            tenant_id=tenant_id,
            hierarchy_type=hierarchy_type,
            resource_id=resource_id,
        )

    def run_generation(self, resource_id: str, request: GenerateRequest) -> None:
        with self._services.session_factory() as db:
            record = crud.get_generated_resource(db, resource_id)
            if record is None:
                logger.warning("generate_record_missing id=%s", resource_id)
                return
            try:
                generated = self.generate_file(request)
                crud.mark_completed(
                    db,
                    record,
                    filestore_id=generated.filestore_id,
                    count=generated.count,
                    user_uuid=request.user_uuid,
                )
                db.commit()
                logger.info(
                    "generate_completed id=%s type=%s filestore_id=%s count=%s",
                    record.id,
                    request.type,
                    generated.filestore_id,
                    generated.count,
                )
            except Exception as exc:
                db.rollback()
                logger.exception("generate_failed id=%s type=%s", resource_id, request.type)
                record = crud.get_generated_resource(db, resource_id)
                crud.mark_failed(db, record, error=error_message(exc), user_uuid=request.user_uuid)
                db.commit()

            self._services.event_bus.publish(
                settings.TOPIC_UPDATE_GENERATED_RESOURCE,
                request.tenant_id,
                {"generatedResource": [record.to_payload()]},
            )

    def generate_file(self, request: GenerateRequest) -> GeneratedFile:
        clients = self._services.clients
        localization_map = clients.localization(request.request_info).localization_map(
            request.tenant_id,
            request.locale or settings.LOCALE,
            request.hierarchy_type,
        )

        if request.type == "boundary":
            sheets, count = self._boundary_sheets(request, localization_map)
            content = build_workbook(sheets)
        elif request.type == "facilityWithBoundary":
            facilities = clients.facility(request.request_info).search_all(request.tenant_id)
            required = clients.mdms(request.request_info).get_required_columns(request.tenant_id, "facility")
            boundary_sheet = self._boundary_sheet(request, localization_map, include_target=False)
            content = self._workbook_with_readme(
                request,
                [facility_sheet_data(facilities, required, localization_map), boundary_sheet],
                localization_map,
            )
            count = len(facilities)
        elif request.type == "userWithBoundary":
            required = clients.mdms(request.request_info).get_required_columns(request.tenant_id, "user")
            boundary_sheet = self._boundary_sheet(request, localization_map, include_target=False)
            content = self._workbook_with_readme(
                request,
                [user_sheet_data(required, localization_map), boundary_sheet],
                localization_map,
            )
            count = len(boundary_sheet.rows)
        else:
            boundary_sheet = self._boundary_sheet(request, localization_map, include_target=True)
            content = self._workbook_with_readme(request, [boundary_sheet], localization_map)
            count = len(boundary_sheet.rows)

        filestore_id = clients.filestore().upload(
            content,
            request.tenant_id,
            f"{request.type}_{request.hierarchy_type}.xlsx",
        )
        return GeneratedFile(filestore_id=filestore_id, count=count)

    def _boundary_tree(self, request: GenerateRequest) -> tuple[list[BoundaryNode], list[str]]:
        registry = self._services.clients.registry(request.request_info)
        definitions = registry.search_hierarchy_definition(request.tenant_id, request.hierarchy_type)
        levels = generate_hierarchy(definitions)
        if not levels:
            raise_error(
                "BOUNDARY",
                500,
                "BOUNDARY_HIERARCHY_NOT_FOUND",
                f"No hierarchy definition for {request.hierarchy_type}",
            )
        payload = registry.search_boundary_relationships(
            request.tenant_id,
            request.hierarchy_type,
            None,
            include_children=True,
        )
        tree = filter_boundary_tree(parse_boundary_tree(payload), request.filters)
        return tree, levels

    def _boundary_sheet(
        self,
        request: GenerateRequest,
        localization_map: dict[str, str],
        *,
        include_target: bool,
    ) -> SheetData:
        tree, levels = self._boundary_tree(request)
        return boundary_sheet_data(
            tree,
            levels,
            request.hierarchy_type,
            localization_map,
            include_target=include_target,
        )

    def _boundary_sheets(
        self,
        request: GenerateRequest,
        localization_map: dict[str, str],
    ) -> tuple[list[SheetData], int]:
        tree, levels = self._boundary_tree(request)
        sheet = boundary_sheet_data(tree, levels, request.hierarchy_type, localization_map)
        split_column = resolve_split_column(
            reduce_levels(levels, tree),
            request.hierarchy_type,
            localization_map,
        )
        code_column = get_localized_name(settings.BOUNDARY_CODE_HEADER, localization_map)
        if split_column and should_split(sheet.records(), split_column, settings.BOUNDARY_SPLIT_THRESHOLD):
            return split_boundary_sheet(sheet, split_column, code_column), len(sheet.rows)
        return [sheet], len(sheet.rows)

    def _workbook_with_readme(
        self,
        request: GenerateRequest,
        sheets: list[SheetData],
        localization_map: dict[str, str],
    ) -> bytes:
        readme_config = self._services.clients.mdms(request.request_info).get_readme_config(
            request.tenant_id, request.type
        )
        heading = get_localized_name(README_HEADINGS.get(request.type, request.type), localization_map)
        return build_workbook(
            sheets,
            readme=(heading, readme_config),
            localization_map=localization_map,
            readme_sheet_name=settings.README_TAB,
        )


def resolve_split_column(
    levels: list[str],
    hierarchy_type: str,
    localization_map: dict[str, str] | None = None,
) -> str | None:
    """Header of the configured split level, matched by localized name or by level type."""
    headers = level_headers(levels, hierarchy_type, localization_map)
    wanted = get_localized_name(settings.BOUNDARY_SPLIT_LEVEL, localization_map)
    if wanted in headers:
        return wanted
    for level, header in zip(levels, headers):
        if level.strip().lower() == settings.BOUNDARY_SPLIT_LEVEL.strip().lower():
            return header
    return None
