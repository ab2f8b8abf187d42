"""Pipeline orchestrator driving a customization record through its four stages."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from tailor.ai.normalizer import normalize_ai_reply
from tailor.ai.providers.base import GenerationClient
from tailor.core.exceptions import AIServiceError, NotFoundError, PipelineError, RenderError, StorageError, UnknownError, coerce_pipeline_error
from tailor.customizations.models import CustomizationRecord
from tailor.customizations.repo import CustomizationRepository
from tailor.documents.converter import ensure_supported
from tailor.jobs.models import JobRecord
from tailor.pipeline.contracts import CustomizationJobPayload, GenerationRequest, PipelineResult
from tailor.storage.base import ObjectStorage
from tailor.utils.ids import generate_object_key

logger = logging.getLogger(__name__)


class DocumentConverter(Protocol):
  async def convert(self, data: bytes, declared_format: str) -> str: ...


class DocumentRenderer(Protocol):
  content_type: str

  async def render(self, markdown_text: str) -> bytes: ...


class CustomizationPipeline:
  """Execute one customization run per delivered job.

  A run loads the record, marks it processing, then converts (memoized in
  ``cached_text``), generates, normalizes and renders. The first stage failure
  marks the record failed and is re-raised so the queue can decide on a retry.
  """

  def __init__(
    self,
    *,
    records: CustomizationRepository,
    storage: ObjectStorage,
    converter: DocumentConverter,
    generator: GenerationClient,
    renderer: DocumentRenderer,
    clock: Callable[[], datetime] = lambda: datetime.now(UTC),
  ) -> None:
    self._records = records
    self._storage = storage
    self._converter = converter
    self._generator = generator
    self._renderer = renderer
    self._clock = clock

  async def handle_job(self, job: JobRecord) -> dict[str, Any]:
    """Queue handler entry point."""
    try:
      payload = CustomizationJobPayload.model_validate(job.payload)
    except PydanticValidationError as exc:
      raise UnknownError(f"Invalid customization job payload: {exc.errors()[0]['msg']}", job_id=job.job_id) from exc
    logger.info("Job %s attempt %s/%s: customizing record %s", job.job_id, job.attempts, job.max_attempts, payload.record_id)
    return await self.run(payload.record_id)

  async def run(self, record_id: str) -> dict[str, Any]:
    started = time.monotonic()
    record = await self._records.load(record_id)
    if record is None:
      raise NotFoundError(f"Customization {record_id} not found.", record_id=record_id)

    record = replace(record, status="processing")
    await self._records.save(record)

    try:
      record = await self._convert_stage(record)
      raw_reply = await self._generate_stage(record)
      canonical_text = self._normalize_stage(raw_reply)
      result_ref, result_url = await self._render_stage(record, canonical_text)
    except Exception as exc:  # noqa: BLE001
      error = coerce_pipeline_error(exc)
      await self._mark_failed(record, error)
      if error is exc:
        raise
      raise error from exc

    record = replace(
      record,
      status="completed",
      error_message=None,
      completed_at=self._clock(),
      result_document_ref=result_ref,
      result_document_url=result_url,
    )
    await self._records.save(record)
    logger.info("Customization %s completed in %.2fs", record.id, time.monotonic() - started)
    return PipelineResult(record_id=record.id, result_document_url=result_url).model_dump()

  async def _convert_stage(self, record: CustomizationRecord) -> CustomizationRecord:
    if record.cached_text is not None:
      logger.debug("Customization %s: using cached source text", record.id)
      return record

    declared_format = ensure_supported(record.source_format)
    source = await self._download(record.source_document_ref)
    text = await self._converter.convert(source, declared_format)
    record = replace(record, cached_text=text)
    await self._records.save(record)
    logger.info("Customization %s: cached %d characters of source text", record.id, len(text))
    return record

  async def _generate_stage(self, record: CustomizationRecord) -> Any:
    request = GenerationRequest(text=record.cached_text or "", description=record.target_description, title=record.target_title, org=record.target_org)
    try:
      return await self._generator.generate(request.text, request.description, request.title, request.org)
    except AIServiceError:
      raise
    except Exception as exc:  # noqa: BLE001
      raise AIServiceError(f"AI customization failed: {exc}", provider=getattr(self._generator, "name", None)) from exc

  def _normalize_stage(self, raw_reply: Any) -> str:
    reply = normalize_ai_reply(raw_reply)
    if not reply.text.strip():
      raise AIServiceError("AI response contained no document text")
    logger.info("Normalized AI reply via %s rule (%d characters)", reply.kind, len(reply.text))
    return reply.text

  async def _render_stage(self, record: CustomizationRecord, canonical_text: str) -> tuple[str, str]:
    try:
      document = await self._renderer.render(canonical_text)
    except PipelineError:
      raise
    except Exception as exc:  # noqa: BLE001
      raise RenderError(f"PDF generation failed: {exc}") from exc
    key = generate_object_key(record.owner_id, "customized.pdf")
    try:
      url = await self._storage.upload(document, key, self._renderer.content_type)
    except PipelineError:
      raise
    except Exception as exc:  # noqa: BLE001
      raise StorageError(f"Failed to upload customized document: {exc}", key=key) from exc
    return key, url

  async def _download(self, key: str) -> bytes:
    try:
      return await self._storage.download(key)
    except StorageError:
      raise
    except Exception as exc:  # noqa: BLE001
      raise StorageError(f"Failed to download source document: {exc}", key=key) from exc

  async def _mark_failed(self, record: CustomizationRecord, error: PipelineError) -> None:
    failed = replace(record, status="failed", error_message=str(error))
    try:
      await self._records.save(failed)
    except Exception:  # noqa: BLE001
      logger.error("Failed to persist failure state for customization %s", record.id, exc_info=True)
    logger.warning("Customization %s failed (%s): %s", record.id, error.code, error)
