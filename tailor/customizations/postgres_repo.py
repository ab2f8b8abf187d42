"""Postgres-backed repository for customization records using SQLAlchemy."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tailor.core.database import get_session_factory
from tailor.customizations.models import CustomizationRecord
from tailor.schema.customizations import Customization


class PostgresCustomizationRepository:
  """Persist customization records to Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create(self, record: CustomizationRecord) -> None:
    async with self._session_factory() as session:
      session.add(
        Customization(
          id=record.id,
          owner_id=record.owner_id,
          name=record.name,
          source_document_ref=record.source_document_ref,
          source_format=record.source_format,
          cached_text=record.cached_text,
          target_description=record.target_description,
          target_title=record.target_title,
          target_org=record.target_org,
          status=record.status,
          error_message=record.error_message,
          completed_at=record.completed_at,
          result_document_ref=record.result_document_ref,
          result_document_url=record.result_document_url,
        )
      )
      try:
        await session.commit()
      except IntegrityError as exc:
        await session.rollback()
        raise ValueError(f"Customization {record.id} already exists.") from exc

  async def load(self, record_id: str) -> CustomizationRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Customization, record_id)
      if row is None:
        return None
      return self._model_to_record(row)

  async def save(self, record: CustomizationRecord) -> None:
    async with self._session_factory() as session:
      row = await session.get(Customization, record.id)
      if row is None:
        raise KeyError(f"Customization {record.id} not found.")
      row.name = record.name
      row.source_document_ref = record.source_document_ref
      row.source_format = record.source_format
      row.cached_text = record.cached_text
      row.target_description = record.target_description
      row.target_title = record.target_title
      row.target_org = record.target_org
      row.status = record.status
      row.error_message = record.error_message
      row.completed_at = record.completed_at
      row.result_document_ref = record.result_document_ref
      row.result_document_url = record.result_document_url
      row.updated_at = datetime.now(UTC)
      await session.commit()

  def _model_to_record(self, row: Customization) -> CustomizationRecord:
    return CustomizationRecord(
      id=row.id,
      owner_id=row.owner_id,
      name=row.name,
      source_document_ref=row.source_document_ref,
      source_format=row.source_format,
      cached_text=row.cached_text,
      target_description=row.target_description,
      target_title=row.target_title,
      target_org=row.target_org,
      status=row.status,  # type: ignore[arg-type]
      error_message=row.error_message,
      completed_at=row.completed_at,
      result_document_ref=row.result_document_ref,
      result_document_url=row.result_document_url,
      created_at=row.created_at,
      updated_at=row.updated_at,
    )
