"""Shared fixtures and in-process fakes for pipeline tests."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from tailor.core.exceptions import RenderError
from tailor.customizations.models import CustomizationRecord
from tailor.customizations.repo import InMemoryCustomizationRepository
from tailor.jobs.broker import InMemoryJobBroker
from tailor.jobs.models import JobOptions
from tailor.jobs.queue import JobQueue
from tailor.storage.base import InMemoryObjectStorage


@pytest.fixture
def anyio_backend():
  return "asyncio"


class FakeClock:
  """Manually advanced epoch clock for queue scheduling."""

  def __init__(self, start: float = 1_700_000_000.0) -> None:
    self.now = start

  def __call__(self) -> float:
    return self.now

  def advance(self, seconds: float) -> None:
    self.now += seconds


class FakeConverter:
  """Converter returning canned text and counting calls."""

  def __init__(self, text: str = "# Resume\n\nBackend engineer.") -> None:
    self.text = text
    self.calls = 0

  async def convert(self, data: bytes, declared_format: str) -> str:
    self.calls += 1
    return self.text


class FakeGenerator:
  """Generation client replaying scripted replies or raising scripted errors."""

  name = "fake"

  def __init__(self, replies: list[Any] | None = None) -> None:
    self.replies = list(replies or [{"content": "# Customized\n\nTailored resume."}])
    self.calls: list[dict[str, Any]] = []

  async def generate(self, text: str, description: str, title: str | None = None, org: str | None = None) -> Any:
    self.calls.append({"text": text, "description": description, "title": title, "org": org})
    reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
    if isinstance(reply, BaseException):
      raise reply
    return reply

  async def aclose(self) -> None:
    return None


class FakeRenderer:
  """Renderer producing deterministic bytes without a browser."""

  content_type = "application/pdf"

  def __init__(self, *, fail: bool = False) -> None:
    self.fail = fail
    self.rendered: list[str] = []

  async def render(self, markdown_text: str) -> bytes:
    if self.fail:
      raise RenderError("PDF generation failed: browser crashed")
    self.rendered.append(markdown_text)
    return b"%PDF-1.4 " + markdown_text.encode("utf-8")


def make_record(**overrides: Any) -> CustomizationRecord:
  values: dict[str, Any] = {
    "id": "rec-1",
    "owner_id": "owner-1",
    "name": "Backend resume",
    "source_document_ref": "owner-1/source.pdf",
    "source_format": "pdf",
    "target_description": "Node.js backend role",
    "target_title": "Backend Engineer",
    "target_org": "Acme",
    "status": "pending",
    "created_at": datetime(2026, 1, 1, tzinfo=UTC),
  }
  values.update(overrides)
  return CustomizationRecord(**values)


@pytest.fixture
def clock() -> FakeClock:
  return FakeClock()


@pytest.fixture
def broker() -> InMemoryJobBroker:
  return InMemoryJobBroker()


@pytest.fixture
def queue(broker: InMemoryJobBroker, clock: FakeClock) -> JobQueue:
  return JobQueue(broker, defaults=JobOptions(max_attempts=3, backoff_base_ms=2000), queue_name="test", poll_interval_seconds=0.01, clock=clock)


@pytest.fixture
def records() -> InMemoryCustomizationRepository:
  return InMemoryCustomizationRepository()


@pytest.fixture
def storage() -> InMemoryObjectStorage:
  return InMemoryObjectStorage(bucket="test-bucket")
