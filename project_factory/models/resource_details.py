from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from project_factory.db.base import Base
from project_factory.models.mixins import AuditMixin


class ResourceDetails(AuditMixin, Base):
    __tablename__ = "resource_details"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    hierarchy_type: Mapped[str] = mapped_column(String(128), nullable=False)
    campaign_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    filestore_id: Mapped[str] = mapped_column(String(128), nullable=False)
    processed_filestore_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False, default="create")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="accepted", index=True)
    additional_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "type": self.type,
            "hierarchyType": self.hierarchy_type,
            "campaignId": self.campaign_id,
            "fileStoreId": self.filestore_id,
            "processedFileStoreId": self.processed_filestore_id,
            "action": self.action,
            "status": self.status,
            "additionalDetails": dict(self.additional_details or {}),
            "auditDetails": self.audit_details(),
        }
