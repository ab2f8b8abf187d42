"""Customization record model and the polling status view derived from it."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

CustomizationStatus = Literal["pending", "processing", "completed", "failed"]

_STATUS_PROGRESS: dict[str, int] = {"pending": 10, "processing": 50, "completed": 100, "failed": 0}


@dataclass
class CustomizationRecord:
  """A request to tailor one source document to one target position."""

  id: str
  owner_id: str
  source_document_ref: str
  source_format: str
  target_description: str
  status: CustomizationStatus = "pending"
  name: str | None = None
  cached_text: str | None = None
  target_title: str | None = None
  target_org: str | None = None
  error_message: str | None = None
  completed_at: datetime | None = None
  result_document_ref: str | None = None
  result_document_url: str | None = None
  created_at: datetime | None = None
  updated_at: datetime | None = None


def progress_for_status(status: str) -> int:
  """Map a record status to the coarse progress percentage shown to pollers."""
  return _STATUS_PROGRESS.get(status, 0)


def build_status_view(record: CustomizationRecord) -> dict[str, Any]:
  """Return the read-only view a status endpoint exposes for a record."""
  return {
    "id": record.id,
    "name": record.name,
    "status": record.status,
    "progress": progress_for_status(record.status),
    "error": record.error_message,
    "completedAt": record.completed_at.isoformat() if record.completed_at else None,
    "jobTitle": record.target_title,
    "companyName": record.target_org,
    "canDownload": record.status == "completed" and bool(record.result_document_url),
    "resultDocumentUrl": record.result_document_url,
  }
