from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from tailor.core.database import Base


class Customization(Base):
  __tablename__ = "customizations"

  id: Mapped[str] = mapped_column(String, primary_key=True)
  owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  name: Mapped[str | None] = mapped_column(String, nullable=True)
  source_document_ref: Mapped[str] = mapped_column(String, nullable=False)
  source_format: Mapped[str] = mapped_column(String, nullable=False)
  cached_text: Mapped[str | None] = mapped_column(Text, nullable=True)
  target_description: Mapped[str] = mapped_column(Text, nullable=False)
  target_title: Mapped[str | None] = mapped_column(String, nullable=True)
  target_org: Mapped[str | None] = mapped_column(String, nullable=True)
  status: Mapped[str] = mapped_column(String, nullable=False, server_default="pending", index=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  result_document_ref: Mapped[str | None] = mapped_column(String, nullable=True)
  result_document_url: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
