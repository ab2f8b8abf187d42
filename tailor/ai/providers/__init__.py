"""Generation client implementations."""

from tailor.ai.providers.base import GenerationClient
from tailor.ai.providers.factory import build_generation_client, build_retry_policy
from tailor.ai.providers.openrouter import OpenRouterGenerationClient
from tailor.ai.providers.webhook import WebhookGenerationClient

__all__ = ["GenerationClient", "OpenRouterGenerationClient", "WebhookGenerationClient", "build_generation_client", "build_retry_policy"]
