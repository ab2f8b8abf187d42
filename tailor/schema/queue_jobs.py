from __future__ import annotations

from sqlalchemy import Boolean, Float, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from tailor.core.database import Base


class QueueJob(Base):
  __tablename__ = "queue_jobs"
  __table_args__ = (Index("ix_queue_jobs_due", "queue_name", "status", "run_at"),)

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  queue_name: Mapped[str] = mapped_column(String, nullable=False)
  job_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
  payload_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False)
  attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
  backoff_base_ms: Mapped[int] = mapped_column(Integer, nullable=False)
  remove_on_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  remove_on_fail: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  run_at: Mapped[float] = mapped_column(Float, nullable=False)
  last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
  result_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  created_at: Mapped[float] = mapped_column(Float, nullable=False)
  updated_at: Mapped[float] = mapped_column(Float, nullable=False)
  finished_at: Mapped[float | None] = mapped_column(Float, nullable=True)
