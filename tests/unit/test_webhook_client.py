from __future__ import annotations

import json

import httpx
import pytest

from tailor.ai.backoff import RetryPolicy
from tailor.ai.providers.webhook import WebhookGenerationClient
from tailor.core.exceptions import AIServiceError

NO_WAIT = RetryPolicy(max_retries=2, initial_backoff_ms=0, max_backoff_ms=0, jitter=False)


def _client(handler, policy: RetryPolicy = NO_WAIT) -> WebhookGenerationClient:
  return WebhookGenerationClient(base_url="http://n8n.test/webhook", path="customize-resume-ai", timeout_seconds=5, retry_policy=policy, transport=httpx.MockTransport(handler))


@pytest.mark.anyio
async def test_generate_posts_camel_case_payload_and_returns_json() -> None:
  captured: list[httpx.Request] = []

  def handler(request: httpx.Request) -> httpx.Response:
    captured.append(request)
    return httpx.Response(200, json={"content": "# Customized"})

  client = _client(handler)
  try:
    reply = await client.generate("# Resume", "Node.js backend role", "Backend Engineer", None)
  finally:
    await client.aclose()

  assert reply == {"content": "# Customized"}
  assert captured[0].url.path == "/webhook/customize-resume-ai"
  assert json.loads(captured[0].content) == {"resumeContent": "# Resume", "jobDescription": "Node.js backend role", "jobTitle": "Backend Engineer", "companyName": ""}


@pytest.mark.anyio
async def test_plain_text_reply_is_returned_as_text() -> None:
  client = _client(lambda request: httpx.Response(200, text="# Markdown reply", headers={"content-type": "text/markdown"}))
  try:
    assert await client.generate("# Resume", "role") == "# Markdown reply"
  finally:
    await client.aclose()


@pytest.mark.anyio
async def test_server_errors_are_retried_within_one_call() -> None:
  statuses = iter([503, 502, 200])

  def handler(request: httpx.Request) -> httpx.Response:
    status = next(statuses)
    if status == 200:
      return httpx.Response(200, json={"content": "ok"})
    return httpx.Response(status)

  client = _client(handler)
  try:
    assert await client.generate("# Resume", "role") == {"content": "ok"}
  finally:
    await client.aclose()


@pytest.mark.anyio
async def test_client_errors_fail_fast_as_ai_service_error() -> None:
  calls = 0

  def handler(request: httpx.Request) -> httpx.Response:
    nonlocal calls
    calls += 1
    return httpx.Response(404)

  client = _client(handler)
  try:
    with pytest.raises(AIServiceError, match="HTTP 404"):
      await client.generate("# Resume", "role")
  finally:
    await client.aclose()
  assert calls == 1


@pytest.mark.anyio
async def test_connection_failures_exhaust_budget_then_raise() -> None:
  calls = 0

  def handler(request: httpx.Request) -> httpx.Response:
    nonlocal calls
    calls += 1
    raise httpx.ConnectError("connection refused", request=request)

  client = _client(handler)
  try:
    with pytest.raises(AIServiceError, match="connection refused"):
      await client.generate("# Resume", "role")
  finally:
    await client.aclose()
  assert calls == 3


@pytest.mark.anyio
async def test_missing_inputs_are_rejected_without_a_request() -> None:
  client = _client(lambda request: httpx.Response(500))
  try:
    with pytest.raises(AIServiceError):
      await client.generate("", "role")
  finally:
    await client.aclose()
