"""create resource generation tables

Revision ID: 7a41c9e2b3d0
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "7a41c9e2b3d0"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("created_time", sa.BigInteger(), nullable=False),
        sa.Column("last_modified_by", sa.String(length=64), nullable=False),
        sa.Column("last_modified_time", sa.BigInteger(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "generated_resource_details",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("hierarchy_type", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("filestore_id", sa.String(length=128), nullable=True),
        sa.Column("count", sa.Integer(), nullable=True),
        sa.Column("additional_details", sa.JSON(), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_generated_resource_details_type", "generated_resource_details", ["type"], unique=False)
    op.create_index(
        "ix_generated_resource_details_tenant_id",
        "generated_resource_details",
        ["tenant_id"],
        unique=False,
    )
    op.create_index("ix_generated_resource_details_status", "generated_resource_details", ["status"], unique=False)

    op.create_table(
        "resource_details",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("hierarchy_type", sa.String(length=128), nullable=False),
        sa.Column("campaign_id", sa.String(length=64), nullable=True),
        sa.Column("filestore_id", sa.String(length=128), nullable=False),
        sa.Column("processed_filestore_id", sa.String(length=128), nullable=True),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("additional_details", sa.JSON(), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_resource_details_type", "resource_details", ["type"], unique=False)
    op.create_index("ix_resource_details_tenant_id", "resource_details", ["tenant_id"], unique=False)
    op.create_index("ix_resource_details_status", "resource_details", ["status"], unique=False)

    op.create_table(
        "resource_activity",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("resource_details_id", sa.String(length=64), nullable=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("url", sa.String(length=512), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column("request_payload", sa.JSON(), nullable=True),
        sa.Column("response_payload", sa.JSON(), nullable=True),
        sa.Column("additional_details", sa.JSON(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["resource_details_id"], ["resource_details.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_resource_activity_resource_details_id",
        "resource_activity",
        ["resource_details_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_resource_activity_resource_details_id", table_name="resource_activity")
    op.drop_table("resource_activity")
    op.drop_index("ix_resource_details_status", table_name="resource_details")
    op.drop_index("ix_resource_details_tenant_id", table_name="resource_details")
    op.drop_index("ix_resource_details_type", table_name="resource_details")
    op.drop_table("resource_details")
    op.drop_index("ix_generated_resource_details_status", table_name="generated_resource_details")
    op.drop_index("ix_generated_resource_details_tenant_id", table_name="generated_resource_details")
    op.drop_index("ix_generated_resource_details_type", table_name="generated_resource_details")
    op.drop_table("generated_resource_details")
