"""Repository contract for customization records."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from typing import Protocol

from tailor.customizations.models import CustomizationRecord


class CustomizationRepository(Protocol):
  """Persistence contract used by the submission service and the pipeline."""

  async def create(self, record: CustomizationRecord) -> None:
    """Persist a new record."""

  async def load(self, record_id: str) -> CustomizationRecord | None:
    """Fetch a record by identifier."""

  async def save(self, record: CustomizationRecord) -> None:
    """Overwrite the stored state of a record."""


class InMemoryCustomizationRepository:
  """Dictionary-backed repository; callers always receive copies."""

  def __init__(self, records: list[CustomizationRecord] | None = None) -> None:
    self._records: dict[str, CustomizationRecord] = {}
    for record in records or []:
      self._records[record.id] = replace(record)

  async def create(self, record: CustomizationRecord) -> None:
    if record.id in self._records:
      raise ValueError(f"Customization {record.id} already exists.")
    now = datetime.now(UTC)
    self._records[record.id] = replace(record, created_at=record.created_at or now, updated_at=now)

  async def load(self, record_id: str) -> CustomizationRecord | None:
    record = self._records.get(record_id)
    return replace(record) if record is not None else None

  async def save(self, record: CustomizationRecord) -> None:
    self._records[record.id] = replace(record, updated_at=datetime.now(UTC))
