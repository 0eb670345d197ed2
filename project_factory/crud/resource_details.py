from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from project_factory.models.mixins import epoch_millis
from project_factory.models.resource_activity import ResourceActivity
from project_factory.models.resource_details import ResourceDetails

ACCEPTED = "accepted"
STARTED = "started"
COMPLETED = "completed"
FAILED = "failed"


def get_resource_details(db: Session, details_id: str) -> ResourceDetails | None:
    return db.get(ResourceDetails, details_id)


def create_resource_details(db: Session, data: dict[str, Any], *, user_uuid: str) -> ResourceDetails:
    now = epoch_millis()
    action = data.get("action") or "create"
    record = ResourceDetails(
        id=str(uuid.uuid4()),
        type=data["type"],
        tenant_id=data["tenant_id"],
        hierarchy_type=data["hierarchy_type"],
        campaign_id=data.get("campaign_id"),
        filestore_id=data["file_store_id"],
        processed_filestore_id=None,
        action=action,
        status=ACCEPTED if action == "create" else STARTED,
        additional_details=dict(data.get("additional_details") or {}),
        created_by=user_uuid,
        created_time=now,
        last_modified_by=user_uuid,
        last_modified_time=now,
    )
    db.add(record)
    db.flush()
    return record


def search_resource_details(
    db: Session,
    *,
    tenant_id: str,
    ids: list[str] | None = None,
    type: str | None = None,
    status: str | None = None,
    skip: int = 0,
    limit: int = 100,
) -> list[ResourceDetails]:
    stmt = select(ResourceDetails).where(ResourceDetails.tenant_id == tenant_id)
    if ids:
        stmt = stmt.where(ResourceDetails.id.in_(ids))
    if type:
        stmt = stmt.where(ResourceDetails.type == type)
    if status:
        stmt = stmt.where(ResourceDetails.status == status)
    stmt = stmt.order_by(ResourceDetails.created_time.desc()).offset(skip).limit(limit)
    return list(db.execute(stmt).scalars().all())


def set_status(
    db: Session,
    record: ResourceDetails,
    status: str,
    *,
    user_uuid: str,
    additional_details: dict[str, Any] | None = None,
) -> ResourceDetails:
    record.status = status
    if additional_details:
        record.additional_details = {**(record.additional_details or {}), **additional_details}
    record.last_modified_by = user_uuid
    record.last_modified_time = epoch_millis()
    db.flush()
    return record


def add_activities(db: Session, activities: list[dict[str, Any]]) -> list[ResourceActivity]:
    rows = [ResourceActivity(**activity) for activity in activities]
    db.add_all(rows)
    db.flush()
    return rows


def list_activities(db: Session, resource_details_id: str) -> list[ResourceActivity]:
    stmt = select(ResourceActivity).where(ResourceActivity.resource_details_id == resource_details_id)
    return list(db.execute(stmt).scalars().all())
