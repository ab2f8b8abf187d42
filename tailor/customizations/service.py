"""Submission-side operations: create, re-submit and poll customizations."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from tailor.core.exceptions import NotFoundError, ValidationError
from tailor.customizations.models import CustomizationRecord, build_status_view
from tailor.customizations.repo import CustomizationRepository
from tailor.jobs.models import JobHandle
from tailor.jobs.queue import JobQueue
from tailor.utils.ids import generate_record_id

CUSTOMIZATION_JOB_TYPE = "resume-customization"

# Uploads accept Word formats even though only PDF can be converted.
ACCEPTED_UPLOAD_FORMATS = frozenset({"pdf", "doc", "docx"})

logger = logging.getLogger(__name__)


def validate_upload_format(source_format: str) -> str:
  """Normalize and validate a declared upload format."""
  normalized = (source_format or "").strip().lower().lstrip(".")
  if normalized not in ACCEPTED_UPLOAD_FORMATS:
    raise ValidationError(f"File type '{normalized or source_format}' is not accepted. Upload a PDF, DOC or DOCX file.", source_format=source_format)
  return normalized


class CustomizationService:
  """Create customization records and queue pipeline runs for them."""

  def __init__(self, *, records: CustomizationRepository, queue: JobQueue) -> None:
    self._records = records
    self._queue = queue

  async def submit(
    self,
    *,
    owner_id: str,
    source_document_ref: str,
    source_format: str,
    target_description: str,
    target_title: str | None = None,
    target_org: str | None = None,
    name: str | None = None,
  ) -> tuple[CustomizationRecord, JobHandle]:
    """Create a pending record and enqueue its first pipeline run."""
    if not owner_id:
      raise ValidationError("An owner is required.")
    if not source_document_ref:
      raise ValidationError("A source document is required.")
    if not (target_description or "").strip():
      raise ValidationError("A target job description is required.")

    record = CustomizationRecord(
      id=generate_record_id(),
      owner_id=owner_id,
      name=name,
      source_document_ref=source_document_ref,
      source_format=validate_upload_format(source_format),
      target_description=target_description.strip(),
      target_title=target_title,
      target_org=target_org,
      status="pending",
    )
    await self._records.create(record)
    handle = await self._queue.enqueue(CUSTOMIZATION_JOB_TYPE, {"record_id": record.id})
    logger.info("Queued customization %s as job %s", record.id, handle.id)
    return record, handle

  async def resubmit(
    self,
    record_id: str,
    *,
    target_description: str | None = None,
    target_title: str | None = None,
    target_org: str | None = None,
  ) -> tuple[CustomizationRecord, JobHandle]:
    """Reset a record to pending and enqueue a fresh run.

    The cached source text survives so the conversion stage is skipped. Result
    fields from an earlier success are left in place until the new run ends.
    """
    record = await self._records.load(record_id)
    if record is None:
      raise NotFoundError(f"Customization {record_id} not found.", record_id=record_id)

    updated = replace(
      record,
      status="pending",
      error_message=None,
      completed_at=None,
      target_description=(target_description.strip() if target_description else record.target_description),
      target_title=target_title if target_title is not None else record.target_title,
      target_org=target_org if target_org is not None else record.target_org,
    )
    await self._records.save(updated)
    handle = await self._queue.enqueue(CUSTOMIZATION_JOB_TYPE, {"record_id": record_id})
    logger.info("Re-queued customization %s as job %s", record_id, handle.id)
    return updated, handle

  async def get_status(self, record_id: str) -> dict[str, Any]:
    record = await self._records.load(record_id)
    if record is None:
      raise NotFoundError(f"Customization {record_id} not found.", record_id=record_id)
    return build_status_view(record)
