"""Handler registry used by the job queue to route jobs by type."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from tailor.jobs.models import JobRecord

JobHandler = Callable[[JobRecord], Awaitable[Any]]


class JobHandlerRegistry:
  """Registry binding exactly one handler to each job type."""

  def __init__(self, handlers: dict[str, JobHandler] | None = None) -> None:
    self._handlers: dict[str, JobHandler] = dict(handlers or {})

  def register(self, job_type: str, handler: JobHandler) -> None:
    """Bind ``handler`` to ``job_type``; rebinding an existing type is an error."""
    if not job_type:
      raise ValueError("Job type must be a non-empty string.")
    if job_type in self._handlers:
      raise ValueError(f"A handler is already registered for job type: {job_type}")
    self._handlers[job_type] = handler

  def unregister(self, job_type: str) -> bool:
    return self._handlers.pop(job_type, None) is not None

  def resolve(self, job_type: str) -> JobHandler:
    """Resolve the handler for a job type."""
    handler = self._handlers.get(job_type)
    if handler is None:
      raise ValueError(f"Unsupported job type: {job_type}")
    return handler

  def job_types(self) -> list[str]:
    return list(self._handlers)
