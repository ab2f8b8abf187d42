"""At-least-once job queue with per-job retry, backoff and outcome events."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from tailor.jobs.broker import JobBroker
from tailor.jobs.dispatch import JobHandler, JobHandlerRegistry
from tailor.jobs.models import DEFAULT_JOB_OPTIONS, JobHandle, JobOptions, JobRecord, JobStatus, QueueEvent, compute_backoff_ms
from tailor.utils.ids import generate_job_id

EventCallback = Callable[..., Any]

_EVENTS: tuple[QueueEvent, ...] = ("completed", "failed", "error")


class JobStalledError(RuntimeError):
  """Raised for a job whose final attempt lost its lease without reporting an outcome."""


class JobQueue:
  """Dispatch queued jobs to registered handlers.

  A job is delivered at least once. When the handler raises, the job is
  rescheduled ``backoff_base_ms * 2 ** attempts`` milliseconds later until
  ``max_attempts`` is reached. The ``completed`` and ``failed`` events fire once
  per terminal outcome; ``error`` fires for broker failures seen by the
  polling loop.

  A running job renews its lease every ``stall_timeout_seconds / 2``. A job
  whose lease is older than ``stall_timeout_seconds`` is treated as abandoned
  and claimed again, counting the lost run as an attempt.
  """

  def __init__(
    self,
    broker: JobBroker,
    *,
    defaults: JobOptions = DEFAULT_JOB_OPTIONS,
    queue_name: str = "default",
    poll_interval_seconds: float = 1.0,
    stall_timeout_seconds: float | None = 30.0,
    clock: Callable[[], float] = time.time,
  ) -> None:
    self._broker = broker
    self._defaults = defaults.merged_over(DEFAULT_JOB_OPTIONS)
    self._queue_name = queue_name
    self._poll_interval_seconds = poll_interval_seconds
    self._stall_timeout_seconds = stall_timeout_seconds
    self._clock = clock
    self._registry = JobHandlerRegistry()
    self._listeners: dict[str, list[EventCallback]] = {event: [] for event in _EVENTS}
    self._logger = logging.getLogger(__name__)

  @property
  def name(self) -> str:
    return self._queue_name

  async def enqueue(self, job_type: str, payload: dict[str, Any], options: JobOptions | None = None) -> JobHandle:
    """Persist a waiting job; it runs later on a dispatch loop."""
    effective = (options or JobOptions()).merged_over(self._defaults)
    now = self._clock()
    record = JobRecord(
      job_id=generate_job_id(),
      job_type=job_type,
      payload=dict(payload),
      status="waiting",
      attempts=0,
      max_attempts=int(effective.max_attempts or 1),
      backoff_base_ms=int(effective.backoff_base_ms or 0),
      run_at=now + effective.delay_ms / 1000,
      created_at=now,
      updated_at=now,
      remove_on_complete=bool(effective.remove_on_complete),
      remove_on_fail=bool(effective.remove_on_fail),
    )
    await self._broker.add(record)
    self._logger.info("Enqueued job %s (%s) on queue %s", record.job_id, job_type, self._queue_name)
    return JobHandle(id=record.job_id)

  def register_handler(self, job_type: str, handler: JobHandler) -> None:
    self._registry.register(job_type, handler)

  def unregister_handler(self, job_type: str) -> bool:
    return self._registry.unregister(job_type)

  def on(self, event: QueueEvent, callback: EventCallback) -> None:
    """Subscribe to a queue event; callbacks may be plain functions or coroutines."""
    if event not in self._listeners:
      raise ValueError(f"Unknown queue event: {event}")
    self._listeners[event].append(callback)

  async def get_job(self, job_id: str) -> JobRecord | None:
    return await self._broker.get(job_id)

  async def process_next(self) -> bool:
    """Claim and deliver one due job. Returns False when nothing was due."""
    job_types = self._registry.job_types()
    if not job_types:
      return False
    now = self._clock()
    stalled_before = now - self._stall_timeout_seconds if self._stall_timeout_seconds else None
    claimed = await self._broker.claim_due(job_types=job_types, now=now, limit=1, stalled_before=stalled_before)
    if not claimed:
      return False
    job = claimed[0]
    if job.attempts >= job.max_attempts:
      # The last permitted attempt was claimed but never reported back.
      await self._handle_failure(job, JobStalledError(f"Job {job.job_id} stalled on attempt {job.attempts}/{job.max_attempts}"))
      return True
    await self.deliver(job)
    return True

  async def drain(self, *, max_jobs: int | None = None) -> int:
    """Deliver due jobs until none remain and return how many were delivered."""
    delivered = 0
    while max_jobs is None or delivered < max_jobs:
      if not await self.process_next():
        break
      delivered += 1
    return delivered

  async def run(self, stop_event: asyncio.Event) -> None:
    """Poll the broker until ``stop_event`` is set."""
    while not stop_event.is_set():
      try:
        processed = await self.process_next()
      except Exception as exc:  # noqa: BLE001
        self._logger.error("Queue %s poll failed: %s", self._queue_name, exc, exc_info=True)
        await self._emit("error", exc)
        processed = False
      if processed:
        continue
      try:
        await asyncio.wait_for(stop_event.wait(), timeout=self._poll_interval_seconds)
      except TimeoutError:
        pass

  async def deliver(self, job: JobRecord) -> JobRecord:
    """Run the handler for an already claimed job and record its outcome."""
    job = replace(job, status="processing", attempts=job.attempts + 1, updated_at=self._clock())
    await self._broker.save(job)

    try:
      result = await self._run_handler(job)
    except Exception as exc:  # noqa: BLE001
      return await self._handle_failure(job, exc)

    now = self._clock()
    job = replace(job, status="completed", result=result if isinstance(result, dict) else None, last_error=None, updated_at=now, finished_at=now)
    if job.remove_on_complete:
      await self._broker.remove(job.job_id)
    else:
      await self._broker.save(job)
    self._logger.info("Job %s completed after %s attempt(s)", job.job_id, job.attempts)
    await self._emit("completed", job, result)
    return job

  async def clean(self, grace_seconds: float, status: JobStatus = "completed") -> int:
    """Remove terminal jobs of ``status`` that finished more than ``grace_seconds`` ago."""
    if status not in ("completed", "failed"):
      raise ValueError("Only terminal jobs can be cleaned.")
    removed = await self._broker.clean(status=status, finished_before=self._clock() - grace_seconds)
    if removed:
      self._logger.info("Cleaned %s %s job(s) from queue %s", removed, status, self._queue_name)
    return removed

  async def _run_handler(self, job: JobRecord) -> Any:
    handler = self._registry.resolve(job.job_type)
    lease = asyncio.create_task(self._renew_lease(job.job_id)) if self._stall_timeout_seconds else None
    try:
      return await handler(job)
    finally:
      if lease is not None:
        lease.cancel()
        await asyncio.gather(lease, return_exceptions=True)

  async def _renew_lease(self, job_id: str) -> None:
    interval = (self._stall_timeout_seconds or 0) / 2
    while True:
      await asyncio.sleep(interval)
      try:
        await self._broker.touch(job_id, now=self._clock())
      except Exception as exc:  # noqa: BLE001
        self._logger.warning("Failed to renew lease for job %s: %s", job_id, exc)

  async def _handle_failure(self, job: JobRecord, exc: Exception) -> JobRecord:
    now = self._clock()
    error_message = str(exc) or type(exc).__name__
    if job.attempts < job.max_attempts:
      delay_ms = compute_backoff_ms(job.backoff_base_ms, job.attempts)
      job = replace(job, status="waiting", last_error=error_message, run_at=now + delay_ms / 1000, updated_at=now)
      await self._broker.save(job)
      self._logger.warning("Job %s attempt %s/%s failed: %s. Retrying in %sms", job.job_id, job.attempts, job.max_attempts, error_message, delay_ms)
      return job

    job = replace(job, status="failed", last_error=error_message, updated_at=now, finished_at=now)
    if job.remove_on_fail:
      await self._broker.remove(job.job_id)
    else:
      await self._broker.save(job)
    self._logger.error("Job %s failed permanently after %s attempt(s): %s", job.job_id, job.attempts, error_message)
    await self._emit("failed", job, exc)
    return job

  async def _emit(self, event: QueueEvent, *args: Any) -> None:
    for callback in list(self._listeners[event]):
      try:
        outcome = callback(*args)
        if inspect.isawaitable(outcome):
          await outcome
      except Exception:  # noqa: BLE001
        self._logger.error("Listener for queue event '%s' raised.", event, exc_info=True)
