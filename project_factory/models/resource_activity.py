from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from project_factory.db.base import Base
from project_factory.models.mixins import AuditMixin


class ResourceActivity(AuditMixin, Base):
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    resource_details_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("resource_details.id"),
        nullable=True,
        index=True,
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    url: Mapped[str] = mapped_column(String(512), nullable=False)
    status_code: Mapped[int] = mapped_column(Integer, nullable=False)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    request_payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    response_payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    additional_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
