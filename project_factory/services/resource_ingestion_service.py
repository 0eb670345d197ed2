from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from project_factory.core.config import settings
from project_factory.core.errors import error_message, raise_error
from project_factory.crud import resource_details as crud
from project_factory.models.resource_details import ResourceDetails
from project_factory.services.boundary_hierarchy import generate_hierarchy, records_to_boundary_rows
from project_factory.services.boundary_reconciler import (
    BoundaryReconciler,
    ReconcileRequest,
    ReconcileResult,
)
from project_factory.services.boundary_sheet_service import boundary_type_by_header, level_headers
from project_factory.services.clients import AppServices
from project_factory.services.generation_orchestrator import TaskExecutor
from project_factory.services.localization_service import get_localized_name
from project_factory.services.sheet_service import parse_sheet, parse_target_workbook

logger = logging.getLogger(__name__)

RECONCILED_TYPES = ("boundary", "boundaryWithTarget")


class ResourceIngestionService:
    """Accepts an uploaded sheet and reconciles its boundaries in the background."""

    def __init__(self, services: AppServices) -> None:
        self._services = services

    def create(
        self,
        db: Session,
        executor: TaskExecutor,
        data: dict[str, Any],
        *,
        request_info: dict[str, Any],
        user_uuid: str,
        locale: str,
    ) -> ResourceDetails:
        record = crud.create_resource_details(db, data, user_uuid=user_uuid)
        db.commit()
        self._services.event_bus.publish(
            settings.TOPIC_CREATE_RESOURCE_DETAILS,
            record.tenant_id,
            {"RequestInfo": request_info, "ResourceDetails": record.to_payload()},
        )

        try:
            executor.submit(self.run_ingestion, record.id, request_info, user_uuid, locale)
        except Exception as exc:
            crud.set_status(
                db,
                record,
                crud.FAILED,
                user_uuid=user_uuid,
                additional_details={"error": error_message(exc)},
            )
            db.commit()
            raise
        logger.info("resource_details_accepted id=%s type=%s tenant=%s", record.id, record.type, record.tenant_id)
        return record

    def search(
        self,
        db: Session,
        *,
        tenant_id: str,
        ids: list[str] | None = None,
        type: str | None = None,
        status: str | None = None,
    ) -> list[ResourceDetails]:
        return crud.search_resource_details(db, tenant_id=tenant_id, ids=ids, type=type, status=status)

    def run_ingestion(
        self,
        details_id: str,
        request_info: dict[str, Any],
        user_uuid: str,
        locale: str,
    ) -> None:
        with self._services.session_factory() as db:
            record = crud.get_resource_details(db, details_id)
            if record is None:
                logger.warning("resource_details_missing id=%s", details_id)
                return
            try:
                result = self.process(record, request_info, user_uuid, locale)
                if result is not None:
                    crud.add_activities(
                        db,
                        [
                            {
                                "id": activity.id,
                                "resource_details_id": record.id,
                                "tenant_id": activity.tenant_id,
                                "type": activity.type,
                                "url": activity.url,
                                "status_code": activity.status_code,
                                "retry_count": activity.retry_count,
                                "request_payload": activity.request_payload,
                                "response_payload": activity.response_payload,
                                "additional_details": {},
                                "created_by": activity.created_by,
                                "created_time": activity.created_time,
                                "last_modified_by": activity.created_by,
                                "last_modified_time": activity.created_time,
                            }
                            for activity in result.activities
                        ],
                    )
                    summary = {
                        "entitiesCreated": len(result.created_entities),
                        "relationshipsCreated": len(result.created_relationships),
                    }
                else:
                    summary = {}
                crud.set_status(db, record, crud.COMPLETED, user_uuid=user_uuid, additional_details=summary)
                db.commit()
                if result is not None:
                    for activity in result.activities:
                        self._services.event_bus.publish(
                            settings.TOPIC_CREATE_RESOURCE_ACTIVITY,
                            record.tenant_id,
                            {"Activities": [activity.to_payload()]},
                        )
                logger.info("resource_ingestion_completed id=%s type=%s", record.id, record.type)
            except Exception as exc:
                db.rollback()
                logger.exception("resource_ingestion_failed id=%s", details_id)
                record = crud.get_resource_details(db, details_id)
                crud.set_status(
                    db,
                    record,
                    crud.FAILED,
                    user_uuid=user_uuid,
                    additional_details={"error": error_message(exc)},
                )
                db.commit()

            self._services.event_bus.publish(
                settings.TOPIC_UPDATE_RESOURCE_DETAILS,
                record.tenant_id,
                {"RequestInfo": request_info, "ResourceDetails": record.to_payload()},
            )

    def process(
        self,
        record: ResourceDetails,
        request_info: dict[str, Any],
        user_uuid: str,
        locale: str,
    ) -> ReconcileResult | None:
        if record.type not in RECONCILED_TYPES:
            logger.info("resource_ingestion_skipped id=%s type=%s", record.id, record.type)
            return None

        clients = self._services.clients
        localization = clients.localization(request_info)
        localization_map = localization.localization_map(record.tenant_id, locale, record.hierarchy_type)
        registry = clients.registry(request_info)
        levels = generate_hierarchy(
            registry.search_hierarchy_definition(record.tenant_id, record.hierarchy_type)
        )
        if not levels:
            raise_error(
                "BOUNDARY",
                500,
                "BOUNDARY_HIERARCHY_NOT_FOUND",
                f"No hierarchy definition for {record.hierarchy_type}",
            )

        filestore = clients.filestore()
        content = filestore.download(filestore.resolve_url(record.tenant_id, record.filestore_id))
        if record.type == "boundaryWithTarget":
            records = [
                row
                for rows in parse_target_workbook(content, localization_map=localization_map).values()
                for row in rows
            ]
        else:
            records = parse_sheet(
                content,
                settings.BOUNDARY_TAB,
                with_row_number=True,
                localization_map=localization_map,
            )

        code_column = get_localized_name(settings.BOUNDARY_CODE_HEADER, localization_map)
        rows = records_to_boundary_rows(
            records,
            level_headers(levels, record.hierarchy_type, localization_map),
            code_column,
        )
        if not rows:
            raise_error("COMMON", 400, "VALIDATION_ERROR", "No boundary rows found in the uploaded sheet")

        reconciler = BoundaryReconciler(registry, sleep=self._services.sleep)
        result = reconciler.reconcile(
            ReconcileRequest(
                tenant_id=record.tenant_id,
                hierarchy_type=record.hierarchy_type,
                rows=rows,
                resource_type=record.type,
                boundary_type_by_header=boundary_type_by_header(
                    levels, record.hierarchy_type, localization_map
                ),
                request_info=request_info,
                resource_details_id=record.id,
                user_uuid=user_uuid,
            )
        )
        names = result.names_by_code()
        localization.upsert_boundary_names(
            record.tenant_id,
            record.hierarchy_type,
            locale,
            {code: names[code] for code in result.created_entities},
        )
        return result
