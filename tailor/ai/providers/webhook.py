"""Generation client that delegates customization to an external workflow webhook."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from tailor.ai.backoff import RetryPolicy, retry_with_backoff
from tailor.core.exceptions import AIServiceError

logger = logging.getLogger(__name__)


class WebhookCustomizationPayload(BaseModel):
  """Request body accepted by the customization workflow."""

  model_config = ConfigDict(populate_by_name=True)

  resume_content: str = Field(alias="resumeContent")
  job_description: str = Field(alias="jobDescription")
  job_title: str = Field(default="", alias="jobTitle")
  company_name: str = Field(default="", alias="companyName")


class WebhookGenerationClient:
  """POST the source text to a workflow webhook and return its reply untouched."""

  name = "webhook"

  def __init__(
    self,
    *,
    base_url: str,
    path: str,
    timeout_seconds: float,
    retry_policy: RetryPolicy,
    transport: httpx.AsyncBaseTransport | None = None,
  ) -> None:
    self._path = "/" + path.strip("/")
    self._retry_policy = retry_policy
    self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout_seconds, transport=transport)

  @property
  def url(self) -> str:
    return f"{self._client.base_url}{self._path.lstrip('/')}"

  async def generate(self, text: str, description: str, title: str | None = None, org: str | None = None) -> Any:
    if not text or not description:
      raise AIServiceError("Resume content and job description are required")

    payload = WebhookCustomizationPayload(resume_content=text, job_description=description, job_title=title or "", company_name=org or "")
    body = payload.model_dump(by_alias=True)
    logger.info("Sending customization request to webhook %s", self.url)

    async def _post() -> httpx.Response:
      response = await self._client.post(self._path, json=body)
      response.raise_for_status()
      return response

    try:
      response = await retry_with_backoff(_post, policy=self._retry_policy, operation_name="webhook_customization")
    except httpx.HTTPStatusError as exc:
      raise AIServiceError(f"AI customization failed: HTTP {exc.response.status_code}", url=self.url, status_code=exc.response.status_code) from exc
    except httpx.HTTPError as exc:
      raise AIServiceError(f"AI customization failed: {exc}", url=self.url) from exc

    logger.info("Webhook customization request succeeded")
    return _decode_body(response)

  async def aclose(self) -> None:
    await self._client.aclose()


def _decode_body(response: httpx.Response) -> Any:
  """Return parsed JSON when the body is JSON, otherwise the raw text."""
  if not response.content:
    return None
  content_type = response.headers.get("content-type", "")
  if "json" in content_type:
    try:
      return response.json()
    except ValueError:
      return response.text
  return response.text
