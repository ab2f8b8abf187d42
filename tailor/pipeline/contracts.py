"""Shared data contracts for the customization pipeline."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class CustomizationJobPayload(BaseModel):
  """Payload carried by a queued customization job."""

  record_id: str = Field(min_length=1)


class GenerationRequest(BaseModel):
  """Inputs sent to the generation client for one run."""

  text: str = Field(min_length=1)
  description: str = Field(min_length=1)
  title: str | None = None
  org: str | None = None


class PipelineResult(BaseModel):
  """Result stored on the queue job after a successful run."""

  record_id: str
  status: Literal["completed"] = "completed"
  result_document_url: str
