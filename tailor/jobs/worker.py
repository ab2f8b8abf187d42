"""Customization worker: wires the pipeline to the queue and owns its lifecycle."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Any

from tailor.ai.providers.base import GenerationClient
from tailor.ai.providers.factory import build_generation_client
from tailor.config import Settings
from tailor.core.database import dispose_engine
from tailor.customizations.postgres_repo import PostgresCustomizationRepository
from tailor.customizations.repo import CustomizationRepository, InMemoryCustomizationRepository
from tailor.customizations.service import CUSTOMIZATION_JOB_TYPE, CustomizationService
from tailor.documents.converter import PdfConverter
from tailor.documents.renderer import MarkdownPdfRenderer
from tailor.jobs.broker import InMemoryJobBroker, JobBroker
from tailor.jobs.models import JobOptions, JobRecord
from tailor.jobs.postgres_broker import PostgresJobBroker
from tailor.jobs.queue import JobQueue
from tailor.pipeline.orchestrator import CustomizationPipeline
from tailor.storage.base import ObjectStorage
from tailor.storage.factory import build_object_storage

logger = logging.getLogger(__name__)


class CustomizationWorker:
  """Run N dispatch loops that feed queued jobs into the customization pipeline."""

  def __init__(
    self,
    *,
    queue: JobQueue,
    pipeline: CustomizationPipeline,
    renderer: MarkdownPdfRenderer | None = None,
    storage: ObjectStorage | None = None,
    concurrency: int = 1,
    failed_job_retention_seconds: float = 86400,
  ) -> None:
    if concurrency < 1:
      raise ValueError("Worker concurrency must be at least 1.")
    self._queue = queue
    self._pipeline = pipeline
    self._renderer = renderer
    self._storage = storage
    self._concurrency = concurrency
    self._failed_job_retention_seconds = failed_job_retention_seconds
    self._stop_event = asyncio.Event()
    self._tasks: list[asyncio.Task[None]] = []
    self._listening = False

  @property
  def is_running(self) -> bool:
    return bool(self._tasks)

  async def start(self) -> None:
    """Acquire the renderer, prepare storage, register the handler and spawn the dispatch loops."""
    if self._tasks:
      return

    # Launch the pooled browser up front so the first job does not pay for it.
    if self._renderer is not None:
      await self._renderer.start()

    await self._ensure_bucket()

    # Drop failed jobs left over from earlier runs once they pass the retention window.
    removed = await self._queue.clean(self._failed_job_retention_seconds, "failed")
    if removed:
      logger.info("Removed %s stale failed job(s) on startup", removed)

    self._queue.register_handler(CUSTOMIZATION_JOB_TYPE, self._pipeline.handle_job)
    if not self._listening:
      self._queue.on("completed", self._log_completed)
      self._queue.on("failed", self._log_failed)
      self._queue.on("error", self._log_error)
      self._listening = True

    self._stop_event.clear()
    self._tasks = [asyncio.create_task(self._queue.run(self._stop_event), name=f"customization-worker-{index}") for index in range(self._concurrency)]
    logger.info("Customization worker started with %s loop(s) on queue %s", self._concurrency, self._queue.name)

  async def stop(self) -> None:
    """Stop the loops after their in-flight jobs and release the renderer."""
    self._stop_event.set()
    tasks, self._tasks = self._tasks, []
    if tasks:
      await asyncio.gather(*tasks, return_exceptions=True)
    self._queue.unregister_handler(CUSTOMIZATION_JOB_TYPE)
    if self._renderer is not None:
      await self._renderer.stop()
    logger.info("Customization worker stopped")

  async def __aenter__(self) -> CustomizationWorker:
    await self.start()
    return self

  async def __aexit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: TracebackType | None) -> None:
    await self.stop()

  async def _ensure_bucket(self) -> None:
    ensure_bucket = getattr(self._storage, "ensure_bucket", None)
    if ensure_bucket is None:
      return
    try:
      await ensure_bucket()
      logger.info("Storage bucket ensured: %s", getattr(self._storage, "bucket_name", "?"))
    except Exception as exc:  # noqa: BLE001
      logger.warning("Failed to ensure storage bucket at startup: %s", exc)

  def _log_completed(self, job: JobRecord, result: Any) -> None:
    logger.info("Job %s completed: %s", job.job_id, result)

  def _log_failed(self, job: JobRecord, error: BaseException) -> None:
    logger.error("Job %s failed after %s attempt(s): %s", job.job_id, job.attempts, error)

  def _log_error(self, error: BaseException) -> None:
    logger.error("Queue error: %s", error)


@dataclass
class WorkerRuntime:
  """Everything the entrypoint needs to run and shut down a worker."""

  worker: CustomizationWorker
  queue: JobQueue
  service: CustomizationService
  storage: ObjectStorage
  generator: GenerationClient
  uses_database: bool = False

  async def aclose(self) -> None:
    await self.worker.stop()
    await self.generator.aclose()
    if self.uses_database:
      await dispose_engine()


def build_worker(settings: Settings) -> WorkerRuntime:
  """Compose the queue, pipeline and worker from settings."""
  broker: JobBroker
  records: CustomizationRepository
  uses_database = settings.queue_broker == "postgres"
  if uses_database:
    broker = PostgresJobBroker(settings.queue_name)
    records = PostgresCustomizationRepository()
  else:
    broker = InMemoryJobBroker()
    records = InMemoryCustomizationRepository()

  defaults = JobOptions(
    max_attempts=settings.job_max_attempts,
    backoff_base_ms=settings.job_backoff_base_ms,
    remove_on_complete=settings.job_remove_on_complete,
    remove_on_fail=settings.job_remove_on_fail,
  )
  queue = JobQueue(
    broker,
    defaults=defaults,
    queue_name=settings.queue_name,
    poll_interval_seconds=settings.worker_poll_interval_seconds,
    stall_timeout_seconds=settings.job_stall_timeout_seconds,
  )

  storage = build_object_storage(settings)
  generator = build_generation_client(settings)
  renderer = MarkdownPdfRenderer(page_format=settings.renderer_page_format)
  pipeline = CustomizationPipeline(records=records, storage=storage, converter=PdfConverter(), generator=generator, renderer=renderer)

  worker = CustomizationWorker(
    queue=queue,
    pipeline=pipeline,
    renderer=renderer,
    storage=storage,
    concurrency=settings.worker_concurrency,
    failed_job_retention_seconds=settings.failed_job_retention_seconds,
  )
  service = CustomizationService(records=records, queue=queue)
  return WorkerRuntime(worker=worker, queue=queue, service=service, storage=storage, generator=generator, uses_database=uses_database)
