from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import FakeClock, FakeConverter, FakeGenerator, FakeRenderer, make_record

from tailor.core.exceptions import AIServiceError, ConversionError, NotFoundError, RenderError, StorageError, UnknownError
from tailor.customizations.repo import InMemoryCustomizationRepository
from tailor.customizations.service import CUSTOMIZATION_JOB_TYPE, CustomizationService
from tailor.jobs.models import JobOptions, JobRecord
from tailor.jobs.queue import JobQueue
from tailor.jobs.worker import CustomizationWorker
from tailor.pipeline.orchestrator import CustomizationPipeline
from tailor.storage.base import InMemoryObjectStorage


async def _seed(records: InMemoryCustomizationRepository, storage: InMemoryObjectStorage, **overrides: Any) -> None:
  await records.create(make_record(**overrides))
  await storage.upload(b"%PDF-1.4 source", "owner-1/source.pdf", "application/pdf")


def _pipeline(records, storage, *, converter=None, generator=None, renderer=None) -> CustomizationPipeline:
  return CustomizationPipeline(
    records=records,
    storage=storage,
    converter=converter or FakeConverter(),
    generator=generator or FakeGenerator(),
    renderer=renderer or FakeRenderer(),
  )


@pytest.mark.anyio
async def test_scenario_a_completes_and_publishes_the_document(records, storage) -> None:
  await _seed(records, storage)
  converter = FakeConverter("# Resume...")
  generator = FakeGenerator([{"content": "# Customized..."}])
  renderer = FakeRenderer()
  pipeline = _pipeline(records, storage, converter=converter, generator=generator, renderer=renderer)

  result = await pipeline.run("rec-1")

  record = await records.load("rec-1")
  assert record is not None
  assert record.status == "completed"
  assert record.error_message is None
  assert record.completed_at is not None
  assert record.cached_text == "# Resume..."
  assert record.result_document_url == result["result_document_url"]
  assert record.result_document_ref is not None
  assert record.result_document_ref.startswith("owner-1/")
  assert await storage.download(record.result_document_ref) == b"%PDF-1.4 # Customized..."
  assert renderer.rendered == ["# Customized..."]
  assert generator.calls == [{"text": "# Resume...", "description": "Node.js backend role", "title": "Backend Engineer", "org": "Acme"}]
  assert result == {"record_id": "rec-1", "status": "completed", "result_document_url": record.result_document_url}


@pytest.mark.anyio
async def test_scenario_b_non_pdf_source_fails_before_conversion(records, storage) -> None:
  await _seed(records, storage, source_format="docx")
  converter = FakeConverter()
  pipeline = _pipeline(records, storage, converter=converter)

  with pytest.raises(ConversionError):
    await pipeline.run("rec-1")

  record = await records.load("rec-1")
  assert record is not None
  assert record.status == "failed"
  assert "not supported for conversion" in (record.error_message or "")
  assert record.cached_text is None
  assert converter.calls == 0


@pytest.mark.anyio
async def test_cached_text_skips_conversion(records, storage) -> None:
  await _seed(records, storage, cached_text="# Cached resume")
  converter = FakeConverter()
  generator = FakeGenerator()
  pipeline = _pipeline(records, storage, converter=converter, generator=generator)

  await pipeline.run("rec-1")

  assert converter.calls == 0
  assert generator.calls[0]["text"] == "# Cached resume"


@pytest.mark.anyio
async def test_conversion_is_memoized_when_a_later_stage_fails(records, storage) -> None:
  await _seed(records, storage)
  converter = FakeConverter("# Resume")
  generator = FakeGenerator([AIServiceError("AI customization failed: HTTP 503"), {"content": "# Tailored"}])
  pipeline = _pipeline(records, storage, converter=converter, generator=generator)

  with pytest.raises(AIServiceError):
    await pipeline.run("rec-1")
  failed = await records.load("rec-1")
  assert failed is not None
  assert failed.status == "failed"
  assert failed.cached_text == "# Resume"

  await pipeline.run("rec-1")

  assert converter.calls == 1
  completed = await records.load("rec-1")
  assert completed is not None
  assert completed.status == "completed"
  assert completed.error_message is None


@pytest.mark.anyio
async def test_missing_record_raises_not_found(records, storage) -> None:
  with pytest.raises(NotFoundError):
    await _pipeline(records, storage).run("missing")


@pytest.mark.anyio
async def test_missing_source_document_is_a_storage_error(records, storage) -> None:
  await records.create(make_record(source_document_ref="owner-1/gone.pdf"))

  with pytest.raises(StorageError):
    await _pipeline(records, storage).run("rec-1")

  record = await records.load("rec-1")
  assert record is not None
  assert record.status == "failed"


@pytest.mark.anyio
async def test_empty_generation_reply_fails_the_run(records, storage) -> None:
  await _seed(records, storage, cached_text="# Resume")

  with pytest.raises(AIServiceError):
    await _pipeline(records, storage, generator=FakeGenerator([""])).run("rec-1")

  record = await records.load("rec-1")
  assert record is not None
  assert record.status == "failed"


@pytest.mark.anyio
async def test_uncategorized_generator_errors_become_ai_service_errors(records, storage) -> None:
  await _seed(records, storage, cached_text="# Resume")

  with pytest.raises(AIServiceError, match="socket closed"):
    await _pipeline(records, storage, generator=FakeGenerator([OSError("socket closed")])).run("rec-1")


@pytest.mark.anyio
async def test_unexpected_renderer_errors_become_render_errors(records, storage) -> None:
  await _seed(records, storage, cached_text="# Resume")
  renderer = FakeRenderer()
  renderer.render = AsyncMock(side_effect=KeyError("template"))  # type: ignore[method-assign]

  with pytest.raises(RenderError, match="PDF generation failed"):
    await _pipeline(records, storage, renderer=renderer).run("rec-1")

  record = await records.load("rec-1")
  assert record is not None
  assert record.status == "failed"
  assert record.error_message == "PDF generation failed: 'template'"


@pytest.mark.anyio
async def test_failure_to_persist_failed_state_does_not_mask_stage_error(records, storage) -> None:
  await _seed(records, storage, cached_text="# Resume")
  pipeline = _pipeline(records, storage, renderer=FakeRenderer(fail=True))
  original_save = records.save

  async def save(record):
    if record.status == "failed":
      raise ConnectionError("database unavailable")
    await original_save(record)

  records.save = save  # type: ignore[method-assign]

  with pytest.raises(Exception) as excinfo:
    await pipeline.run("rec-1")
  assert "PDF generation failed" in str(excinfo.value)


@pytest.mark.anyio
async def test_queue_retry_completes_on_third_attempt(records, storage, queue: JobQueue, clock: FakeClock) -> None:
  await _seed(records, storage)
  generator = FakeGenerator([AIServiceError("attempt 1 failed"), AIServiceError("attempt 2 failed"), {"content": "# Tailored"}])
  pipeline = _pipeline(records, storage, generator=generator)
  queue.register_handler(CUSTOMIZATION_JOB_TYPE, pipeline.handle_job)
  completed: list[JobRecord] = []
  failed: list[JobRecord] = []
  queue.on("completed", lambda job, result: completed.append(job))
  queue.on("failed", lambda job, error: failed.append(job))

  await queue.enqueue(CUSTOMIZATION_JOB_TYPE, {"record_id": "rec-1"})
  for _ in range(3):
    await queue.drain()
    clock.advance(60)

  record = await records.load("rec-1")
  assert record is not None
  assert record.status == "completed"
  assert record.error_message is None
  assert len(completed) == 1
  assert completed[0].attempts == 3
  assert failed == []


@pytest.mark.anyio
async def test_queue_retry_exhaustion_keeps_last_error_on_record(records, storage, queue: JobQueue, clock: FakeClock) -> None:
  await _seed(records, storage)
  generator = FakeGenerator([AIServiceError("attempt 1 failed"), AIServiceError("attempt 2 failed"), AIServiceError("attempt 3 failed")])
  pipeline = _pipeline(records, storage, generator=generator)
  queue.register_handler(CUSTOMIZATION_JOB_TYPE, pipeline.handle_job)
  failures: list[BaseException] = []
  queue.on("failed", lambda job, error: failures.append(error))

  handle = await queue.enqueue(CUSTOMIZATION_JOB_TYPE, {"record_id": "rec-1"})
  for _ in range(4):
    await queue.drain()
    clock.advance(60)

  record = await records.load("rec-1")
  job = await queue.get_job(handle.id)
  assert record is not None
  assert record.status == "failed"
  assert record.error_message == "attempt 3 failed"
  assert len(failures) == 1
  assert job is not None
  assert job.status == "failed"
  assert job.attempts == 3


@pytest.mark.anyio
async def test_invalid_job_payload_is_rejected(records, storage, queue: JobQueue) -> None:
  pipeline = _pipeline(records, storage)
  queue.register_handler(CUSTOMIZATION_JOB_TYPE, pipeline.handle_job)
  failures: list[BaseException] = []
  queue.on("failed", lambda job, error: failures.append(error))

  await queue.enqueue(CUSTOMIZATION_JOB_TYPE, {"unexpected": True}, JobOptions(max_attempts=1))
  await queue.drain()

  assert len(failures) == 1
  assert isinstance(failures[0], UnknownError)


@pytest.mark.anyio
async def test_worker_processes_submitted_customization(records, storage, queue: JobQueue) -> None:
  await storage.upload(b"%PDF-1.4 source", "owner-1/source.pdf", "application/pdf")
  pipeline = _pipeline(records, storage)
  service = CustomizationService(records=records, queue=queue)
  worker = CustomizationWorker(queue=queue, pipeline=pipeline, concurrency=2)
  done = asyncio.Event()
  queue.on("completed", lambda job, result: done.set())

  async with worker:
    record, _ = await service.submit(owner_id="owner-1", source_document_ref="owner-1/source.pdf", source_format="pdf", target_description="Node.js backend role")
    await asyncio.wait_for(done.wait(), timeout=5)

  assert worker.is_running is False
  status = await service.get_status(record.id)
  assert status["status"] == "completed"
  assert status["progress"] == 100
  assert status["canDownload"] is True


@pytest.mark.anyio
async def test_worker_restart_reregisters_handler(records, storage, queue: JobQueue) -> None:
  worker = CustomizationWorker(queue=queue, pipeline=_pipeline(records, storage))

  await worker.start()
  await worker.stop()
  await worker.start()
  await worker.stop()

  assert worker.is_running is False


@pytest.mark.anyio
async def test_worker_start_ensures_storage_bucket(records, storage, queue: JobQueue) -> None:
  bucket_storage = MagicMock()
  bucket_storage.ensure_bucket = AsyncMock()
  bucket_storage.bucket_name = "tailor-resumes"
  worker = CustomizationWorker(queue=queue, pipeline=_pipeline(records, storage), storage=bucket_storage)

  async with worker:
    assert worker.is_running is True

  bucket_storage.ensure_bucket.assert_awaited_once()


@pytest.mark.anyio
async def test_worker_starts_when_bucket_check_fails(records, storage, queue: JobQueue) -> None:
  bucket_storage = MagicMock()
  bucket_storage.ensure_bucket = AsyncMock(side_effect=RuntimeError("emulator unreachable"))
  worker = CustomizationWorker(queue=queue, pipeline=_pipeline(records, storage), storage=bucket_storage)

  with patch("tailor.jobs.worker.logger") as mock_logger:
    async with worker:
      assert worker.is_running is True

  mock_logger.warning.assert_called_once()
  assert "emulator unreachable" in str(mock_logger.warning.call_args)


@pytest.mark.anyio
async def test_failed_startup_cleanup_leaves_worker_restartable(records, storage, queue: JobQueue) -> None:
  worker = CustomizationWorker(queue=queue, pipeline=_pipeline(records, storage))

  with patch.object(queue, "clean", AsyncMock(side_effect=ConnectionError("database unavailable"))):
    with pytest.raises(ConnectionError):
      await worker.start()
  assert worker.is_running is False

  await worker.start()
  assert worker.is_running is True
  await worker.stop()
