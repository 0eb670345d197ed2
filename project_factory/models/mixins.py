import time

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column


def epoch_millis() -> int:
    return int(time.time() * 1000)


class AuditMixin:
    created_by: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="system",
    )
    created_time: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=epoch_millis,
    )
    last_modified_by: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="system",
    )
    last_modified_time: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=epoch_millis,
        onupdate=epoch_millis,
    )

    def audit_details(self) -> dict:
        return {
            "createdBy": self.created_by,
            "createdTime": self.created_time,
            "lastModifiedBy": self.last_modified_by,
            "lastModifiedTime": self.last_modified_time,
        }
