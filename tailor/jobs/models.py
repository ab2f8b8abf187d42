"""Domain models for queued background jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

JobStatus = Literal["waiting", "processing", "completed", "failed"]
QueueEvent = Literal["completed", "failed", "error"]

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE_MS = 2000


@dataclass(frozen=True)
class JobOptions:
  """Per-job delivery policy; unset fields fall back to the queue defaults."""

  max_attempts: int | None = None
  backoff_base_ms: int | None = None
  remove_on_complete: bool | None = None
  remove_on_fail: bool | None = None
  delay_ms: int = 0

  def merged_over(self, defaults: JobOptions) -> JobOptions:
    """Return these options with unset fields taken from ``defaults``."""
    return JobOptions(
      max_attempts=self.max_attempts if self.max_attempts is not None else defaults.max_attempts,
      backoff_base_ms=self.backoff_base_ms if self.backoff_base_ms is not None else defaults.backoff_base_ms,
      remove_on_complete=self.remove_on_complete if self.remove_on_complete is not None else defaults.remove_on_complete,
      remove_on_fail=self.remove_on_fail if self.remove_on_fail is not None else defaults.remove_on_fail,
      delay_ms=self.delay_ms,
    )


DEFAULT_JOB_OPTIONS = JobOptions(max_attempts=DEFAULT_MAX_ATTEMPTS, backoff_base_ms=DEFAULT_BACKOFF_BASE_MS, remove_on_complete=True, remove_on_fail=False)


@dataclass(frozen=True)
class JobHandle:
  """Reference returned to callers of enqueue."""

  id: str


@dataclass
class JobRecord:
  """Represents one dispatched unit of queued work."""

  job_id: str
  job_type: str
  payload: dict[str, Any]
  status: JobStatus
  attempts: int
  max_attempts: int
  backoff_base_ms: int
  run_at: float
  created_at: float
  updated_at: float
  remove_on_complete: bool = True
  remove_on_fail: bool = False
  last_error: str | None = None
  result: dict[str, Any] | None = None
  finished_at: float | None = None


def compute_backoff_ms(backoff_base_ms: int, attempts: int) -> int:
  """Return the redelivery delay after ``attempts`` delivered attempts."""
  return int(backoff_base_ms * (2**attempts))
