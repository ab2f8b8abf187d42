"""Postgres-backed job broker using SQLAlchemy."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tailor.core.database import get_session_factory
from tailor.jobs.models import JobRecord, JobStatus
from tailor.schema.queue_jobs import QueueJob


class PostgresJobBroker:
  """Persist queued jobs to Postgres so several worker processes can share one queue."""

  def __init__(self, queue_name: str, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._queue_name = queue_name
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def add(self, record: JobRecord) -> None:
    async with self._session_factory() as session:
      session.add(self._record_to_model(record))
      await session.commit()

  async def get(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(QueueJob, job_id)
      if row is None or row.queue_name != self._queue_name:
        return None
      return self._model_to_record(row)

  async def claim_due(self, *, job_types: Iterable[str], now: float, limit: int = 1, stalled_before: float | None = None) -> list[JobRecord]:
    wanted = list(job_types)
    if not wanted:
      return []
    due = and_(QueueJob.status == "waiting", QueueJob.run_at <= now)
    if stalled_before is not None:
      # Processing rows whose lease lapsed belong to a worker that died mid-run.
      due = or_(due, and_(QueueJob.status == "processing", QueueJob.updated_at < stalled_before))
    async with self._session_factory() as session:
      # SKIP LOCKED lets concurrent workers claim disjoint rows without blocking each other.
      stmt = (
        select(QueueJob)
        .where(QueueJob.queue_name == self._queue_name, QueueJob.job_type.in_(wanted), due)
        .order_by(QueueJob.run_at)
        .limit(limit)
        .with_for_update(skip_locked=True)
      )
      rows = list((await session.execute(stmt)).scalars().all())
      for row in rows:
        row.status = "processing"
        row.updated_at = now
      await session.commit()
      return [self._model_to_record(row) for row in rows]

  async def touch(self, job_id: str, *, now: float) -> None:
    async with self._session_factory() as session:
      stmt = update(QueueJob).where(QueueJob.job_id == job_id, QueueJob.queue_name == self._queue_name, QueueJob.status == "processing").values(updated_at=now)
      await session.execute(stmt)
      await session.commit()

  async def save(self, record: JobRecord) -> None:
    async with self._session_factory() as session:
      row = await session.get(QueueJob, record.job_id)
      if row is None:
        raise KeyError(f"Job {record.job_id} not found.")
      row.status = record.status
      row.attempts = record.attempts
      row.max_attempts = record.max_attempts
      row.backoff_base_ms = record.backoff_base_ms
      row.remove_on_complete = record.remove_on_complete
      row.remove_on_fail = record.remove_on_fail
      row.run_at = record.run_at
      row.last_error = record.last_error
      row.result_json = record.result
      row.updated_at = record.updated_at
      row.finished_at = record.finished_at
      await session.commit()

  async def remove(self, job_id: str) -> bool:
    async with self._session_factory() as session:
      result = await session.execute(delete(QueueJob).where(QueueJob.job_id == job_id, QueueJob.queue_name == self._queue_name))
      await session.commit()
      return bool(result.rowcount)

  async def list_jobs(self, *, status: JobStatus | None = None) -> list[JobRecord]:
    async with self._session_factory() as session:
      stmt = select(QueueJob).where(QueueJob.queue_name == self._queue_name).order_by(QueueJob.created_at)
      if status is not None:
        stmt = stmt.where(QueueJob.status == status)
      rows = (await session.execute(stmt)).scalars().all()
      return [self._model_to_record(row) for row in rows]

  async def clean(self, *, status: JobStatus, finished_before: float) -> int:
    async with self._session_factory() as session:
      stmt = delete(QueueJob).where(QueueJob.queue_name == self._queue_name, QueueJob.status == status, QueueJob.finished_at.is_not(None), QueueJob.finished_at < finished_before)
      result = await session.execute(stmt)
      await session.commit()
      return int(result.rowcount or 0)

  def _record_to_model(self, record: JobRecord) -> QueueJob:
    return QueueJob(
      job_id=record.job_id,
      queue_name=self._queue_name,
      job_type=record.job_type,
      payload_json=record.payload,
      status=record.status,
      attempts=record.attempts,
      max_attempts=record.max_attempts,
      backoff_base_ms=record.backoff_base_ms,
      remove_on_complete=record.remove_on_complete,
      remove_on_fail=record.remove_on_fail,
      run_at=record.run_at,
      last_error=record.last_error,
      result_json=record.result,
      created_at=record.created_at,
      updated_at=record.updated_at,
      finished_at=record.finished_at,
    )

  def _model_to_record(self, row: QueueJob) -> JobRecord:
    return JobRecord(
      job_id=row.job_id,
      job_type=row.job_type,
      payload=dict(row.payload_json or {}),
      status=row.status,  # type: ignore[arg-type]
      attempts=row.attempts,
      max_attempts=row.max_attempts,
      backoff_base_ms=row.backoff_base_ms,
      run_at=row.run_at,
      created_at=row.created_at,
      updated_at=row.updated_at,
      remove_on_complete=row.remove_on_complete,
      remove_on_fail=row.remove_on_fail,
      last_error=row.last_error,
      result=row.result_json,
      finished_at=row.finished_at,
    )
