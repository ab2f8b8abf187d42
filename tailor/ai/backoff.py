"""Transport-level retry for generation calls with retryable vs permanent classification."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx
import openai

T = TypeVar("T")
logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
  """Retry budget applied inside a single job attempt."""

  max_retries: int = 3
  initial_backoff_ms: int = 1000
  max_backoff_ms: int = 30000
  jitter: bool = True

  def delay_ms(self, retry_number: int) -> float:
    """Return the delay before retry ``retry_number`` (1-based)."""
    backoff_ms = float(min(self.initial_backoff_ms * (2 ** (retry_number - 1)), self.max_backoff_ms))
    if self.jitter:
      # +/-25% jitter.
      jitter_range = backoff_ms * 0.25
      backoff_ms = max(backoff_ms + random.uniform(-jitter_range, jitter_range), 0.0)
    return backoff_ms


class TransportFailureClassification:
  """Classification result for a failed generation call."""

  def __init__(self, *, retryable: bool, reason: str, status_code: int | None, category: str) -> None:
    self.retryable = retryable
    self.reason = reason
    self.status_code = status_code
    self.category = category


def classify_transport_failure(exc: BaseException) -> TransportFailureClassification:
  """
  Classify a generation transport failure as retryable or permanent.

  Retryable: timeouts, connection failures, 408/425/429 and 5xx responses.
  Everything else (4xx, malformed replies, programming errors) fails fast.
  """
  if isinstance(exc, httpx.TimeoutException | openai.APITimeoutError | asyncio.TimeoutError):
    return TransportFailureClassification(retryable=True, reason="Request timed out", status_code=None, category="timeout")

  if isinstance(exc, httpx.TransportError | openai.APIConnectionError):
    return TransportFailureClassification(retryable=True, reason="Connection failure", status_code=None, category="connectivity_error")

  status_code: int | None = None
  if isinstance(exc, httpx.HTTPStatusError):
    status_code = exc.response.status_code
  elif isinstance(exc, openai.APIStatusError):
    status_code = exc.status_code

  if status_code is not None:
    if status_code in _RETRYABLE_STATUS_CODES or status_code >= 500:
      category = "rate_limited" if status_code == 429 else "server_error"
      return TransportFailureClassification(retryable=True, reason=f"HTTP {status_code}", status_code=status_code, category=category)
    return TransportFailureClassification(retryable=False, reason=f"HTTP {status_code}", status_code=status_code, category="client_error")

  return TransportFailureClassification(retryable=False, reason=f"Unknown error type: {type(exc).__name__}", status_code=None, category="unknown_error")


async def retry_with_backoff(
  func: Callable[[], Awaitable[T]],
  *,
  policy: RetryPolicy,
  operation_name: str,
  classify: Callable[[BaseException], TransportFailureClassification] = classify_transport_failure,
  sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
  """
  Execute a generation call, retrying transient failures.

  Args:
    func: Async callable performing one request.
    policy: Retry budget; ``max_retries`` counts retries after the first call.
    operation_name: Human-readable name for logging.
    classify: Maps an exception to its retry classification.
    sleep: Awaitable sleep, injectable for tests.

  Raises:
    The last exception when it is permanent or the budget is exhausted.
  """
  retry_number = 0
  while True:
    try:
      result = await func()
      if retry_number:
        logger.info("Generation call succeeded after retry: operation=%s, retries=%d", operation_name, retry_number)
      return result
    except Exception as exc:
      classification = classify(exc)
      logger.warning(
        "Generation call failed: operation=%s, retry=%d/%d, category=%s, retryable=%s, reason=%s",
        operation_name,
        retry_number,
        policy.max_retries,
        classification.category,
        classification.retryable,
        classification.reason,
      )
      if not classification.retryable or retry_number >= policy.max_retries:
        raise

      retry_number += 1
      delay_ms = policy.delay_ms(retry_number)
      logger.info("Retrying generation call: operation=%s, retry=%d/%d, backoff_ms=%.1f", operation_name, retry_number, policy.max_retries, delay_ms)
      await sleep(delay_ms / 1000.0)
