from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from project_factory.db.base import Base
from project_factory.models.mixins import AuditMixin


class GeneratedResource(AuditMixin, Base):
    __tablename__ = "generated_resource_details"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    hierarchy_type: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="inprogress", index=True)
    filestore_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    additional_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fileStoreid": self.filestore_id,
            "type": self.type,
            "status": self.status,
            "hierarchyType": self.hierarchy_type,
            "tenantId": self.tenant_id,
            "count": self.count,
            "additionalDetails": dict(self.additional_details or {}),
            "auditDetails": self.audit_details(),
        }
