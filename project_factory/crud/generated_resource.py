from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from project_factory.models.generated_resource import GeneratedResource
from project_factory.models.mixins import epoch_millis

COMPLETED = "completed"
EXPIRED = "expired"
IN_PROGRESS = "inprogress"
FAILED = "failed"


def get_generated_resource(db: Session, resource_id: str) -> GeneratedResource | None:
    return db.get(GeneratedResource, resource_id)


def list_generated_resources(
    db: Session,
    *,
    type: str,
    tenant_id: str,
    hierarchy_type: str,
    status: str | None = COMPLETED,
    resource_id: str | None = None,
) -> list[GeneratedResource]:
    stmt = select(GeneratedResource).where(
        GeneratedResource.type == type,
        GeneratedResource.tenant_id == tenant_id,
        GeneratedResource.hierarchy_type == hierarchy_type,
    )
    if status:
        stmt = stmt.where(GeneratedResource.status == status)
    if resource_id:
        stmt = stmt.where(GeneratedResource.id == resource_id)
    stmt = stmt.order_by(GeneratedResource.created_time.desc())
    return list(db.execute(stmt).scalars().all())


def find_reusable(
    db: Session,
    *,
    type: str,
    tenant_id: str,
    hierarchy_type: str,
    filters: dict[str, Any] | None = None,
) -> list[GeneratedResource]:
    """Completed results for the same request; boundary results must also share filters."""
    records = list_generated_resources(db, type=type, tenant_id=tenant_id, hierarchy_type=hierarchy_type)
    if type != "boundary":
        return records
    return [
        record
        for record in records
        if (record.additional_details or {}).get("Filters") == (filters or None)
    ]


def create_generated_resource(
    db: Session,
    *,
    type: str,
    tenant_id: str,
    hierarchy_type: str,
    user_uuid: str,
    additional_details: dict[str, Any] | None = None,
) -> GeneratedResource:
    now = epoch_millis()
    record = GeneratedResource(
        id=str(uuid.uuid4()),
        type=type,
        tenant_id=tenant_id,
        hierarchy_type=hierarchy_type,
        status=IN_PROGRESS,
        filestore_id=None,
        count=None,
        additional_details=dict(additional_details or {}),
        created_by=user_uuid,
        created_time=now,
        last_modified_by=user_uuid,
        last_modified_time=now,
    )
    db.add(record)
    db.flush()
    return record


def mark_expired(db: Session, records: list[GeneratedResource], user_uuid: str) -> list[GeneratedResource]:
    for record in records:
        record.status = EXPIRED
        record.last_modified_by = user_uuid
        record.last_modified_time = epoch_millis()
    db.flush()
    return records


def mark_completed(
    db: Session,
    record: GeneratedResource,
    *,
    filestore_id: str,
    count: int | None,
    user_uuid: str,
) -> GeneratedResource:
    record.status = COMPLETED
    record.filestore_id = filestore_id
    record.count = count
    record.last_modified_by = user_uuid
    record.last_modified_time = epoch_millis()
    db.flush()
    return record


def mark_failed(db: Session, record: GeneratedResource, *, error: str, user_uuid: str) -> GeneratedResource:
    record.status = FAILED
    record.additional_details = {**(record.additional_details or {}), "error": error}
    record.last_modified_by = user_uuid
    record.last_modified_time = epoch_millis()
    db.flush()
    return record
