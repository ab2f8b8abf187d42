"""Broker interfaces for queued jobs."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol

from tailor.jobs.models import JobRecord, JobStatus


class JobBroker(Protocol):
  """Durable transport contract for the job queue."""

  async def add(self, record: JobRecord) -> None:
    """Persist a newly enqueued job."""

  async def get(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def claim_due(self, *, job_types: Iterable[str], now: float, limit: int = 1, stalled_before: float | None = None) -> list[JobRecord]:
    """Atomically move up to ``limit`` due jobs to processing and return them.

    Due means waiting with ``run_at <= now``, or processing with a lease last
    renewed before ``stalled_before``.
    """

  async def touch(self, job_id: str, *, now: float) -> None:
    """Renew the lease of a processing job."""

  async def save(self, record: JobRecord) -> None:
    """Overwrite the stored state of an existing job."""

  async def remove(self, job_id: str) -> bool:
    """Delete a job, returning True when it existed."""

  async def list_jobs(self, *, status: JobStatus | None = None) -> list[JobRecord]:
    """Return stored jobs, optionally filtered by status."""

  async def clean(self, *, status: JobStatus, finished_before: float) -> int:
    """Delete terminal jobs of ``status`` finished before the cutoff and return the count."""


class InMemoryJobBroker:
  """Process-local broker used by tests and single-process development runs."""

  def __init__(self) -> None:
    self._jobs: dict[str, JobRecord] = {}

  async def add(self, record: JobRecord) -> None:
    if record.job_id in self._jobs:
      raise ValueError(f"Job {record.job_id} already exists.")
    self._jobs[record.job_id] = replace(record)

  async def get(self, job_id: str) -> JobRecord | None:
    record = self._jobs.get(job_id)
    return replace(record) if record is not None else None

  async def claim_due(self, *, job_types: Iterable[str], now: float, limit: int = 1, stalled_before: float | None = None) -> list[JobRecord]:
    wanted = set(job_types)
    due = [record for record in self._jobs.values() if record.job_type in wanted and _is_due(record, now, stalled_before)]
    due.sort(key=lambda record: record.run_at)
    claimed: list[JobRecord] = []
    # No await between selection and mutation, so concurrent loops cannot claim the same job.
    for record in due[:limit]:
      record.status = "processing"
      record.updated_at = now
      claimed.append(replace(record))
    return claimed

  async def touch(self, job_id: str, *, now: float) -> None:
    record = self._jobs.get(job_id)
    if record is not None and record.status == "processing":
      record.updated_at = now

  async def save(self, record: JobRecord) -> None:
    if record.job_id not in self._jobs:
      raise KeyError(f"Job {record.job_id} not found.")
    self._jobs[record.job_id] = replace(record)

  async def remove(self, job_id: str) -> bool:
    return self._jobs.pop(job_id, None) is not None

  async def list_jobs(self, *, status: JobStatus | None = None) -> list[JobRecord]:
    return [replace(record) for record in self._jobs.values() if status is None or record.status == status]

  async def clean(self, *, status: JobStatus, finished_before: float) -> int:
    stale = [job_id for job_id, record in self._jobs.items() if record.status == status and record.finished_at is not None and record.finished_at < finished_before]
    for job_id in stale:
      del self._jobs[job_id]
    return len(stale)


def _is_due(record: JobRecord, now: float, stalled_before: float | None) -> bool:
  if record.status == "waiting":
    return record.run_at <= now
  if record.status == "processing" and stalled_before is not None:
    return record.updated_at < stalled_before
  return False
