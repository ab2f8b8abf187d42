"""Generation client selection from settings."""

from __future__ import annotations

from tailor.ai.backoff import RetryPolicy
from tailor.ai.providers.base import GenerationClient
from tailor.ai.providers.openrouter import OpenRouterGenerationClient
from tailor.ai.providers.webhook import WebhookGenerationClient
from tailor.config import Settings


def build_retry_policy(settings: Settings) -> RetryPolicy:
  return RetryPolicy(max_retries=settings.ai_max_retries, initial_backoff_ms=settings.ai_retry_initial_backoff_ms, max_backoff_ms=settings.ai_retry_max_backoff_ms)


def build_generation_client(settings: Settings) -> GenerationClient:
  """Return the generation client configured by ``TAILOR_AI_PROVIDER``."""
  retry_policy = build_retry_policy(settings)
  if settings.ai_provider == "openrouter":
    return OpenRouterGenerationClient(
      api_key=settings.openrouter_api_key or "",
      model=settings.openrouter_model,
      base_url=settings.openrouter_base_url,
      timeout_seconds=settings.ai_timeout_seconds,
      retry_policy=retry_policy,
    )

  return WebhookGenerationClient(
    base_url=settings.webhook_url or "http://localhost:5678/webhook",
    path=settings.webhook_path,
    timeout_seconds=settings.ai_timeout_seconds,
    retry_policy=retry_policy,
  )
