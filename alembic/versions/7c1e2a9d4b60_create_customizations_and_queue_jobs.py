"""Create customizations and queue_jobs tables.

Revision ID: 7c1e2a9d4b60
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "7c1e2a9d4b60"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "customizations",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("owner_id", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=True),
    sa.Column("source_document_ref", sa.String(), nullable=False),
    sa.Column("source_format", sa.String(), nullable=False),
    sa.Column("cached_text", sa.Text(), nullable=True),
    sa.Column("target_description", sa.Text(), nullable=False),
    sa.Column("target_title", sa.String(), nullable=True),
    sa.Column("target_org", sa.String(), nullable=True),
    sa.Column("status", sa.String(), server_default="pending", nullable=False),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("result_document_ref", sa.String(), nullable=True),
    sa.Column("result_document_url", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_customizations_owner_id"), "customizations", ["owner_id"], unique=False)
  op.create_index(op.f("ix_customizations_status"), "customizations", ["status"], unique=False)

  op.create_table(
    "queue_jobs",
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("queue_name", sa.String(), nullable=False),
    sa.Column("job_type", sa.String(), nullable=False),
    sa.Column("payload_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("attempts", sa.Integer(), nullable=False),
    sa.Column("max_attempts", sa.Integer(), nullable=False),
    sa.Column("backoff_base_ms", sa.Integer(), nullable=False),
    sa.Column("remove_on_complete", sa.Boolean(), nullable=False),
    sa.Column("remove_on_fail", sa.Boolean(), nullable=False),
    sa.Column("run_at", sa.Float(), nullable=False),
    sa.Column("last_error", sa.Text(), nullable=True),
    sa.Column("result_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("created_at", sa.Float(), nullable=False),
    sa.Column("updated_at", sa.Float(), nullable=False),
    sa.Column("finished_at", sa.Float(), nullable=True),
    sa.PrimaryKeyConstraint("job_id"),
  )
  op.create_index(op.f("ix_queue_jobs_job_type"), "queue_jobs", ["job_type"], unique=False)
  op.create_index("ix_queue_jobs_due", "queue_jobs", ["queue_name", "status", "run_at"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_queue_jobs_due", table_name="queue_jobs")
  op.drop_index(op.f("ix_queue_jobs_job_type"), table_name="queue_jobs")
  op.drop_table("queue_jobs")
  op.drop_index(op.f("ix_customizations_status"), table_name="customizations")
  op.drop_index(op.f("ix_customizations_owner_id"), table_name="customizations")
  op.drop_table("customizations")
