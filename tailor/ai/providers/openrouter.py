"""Direct LLM generation client using the openai SDK against OpenRouter."""

from __future__ import annotations

import logging
from typing import Any

import openai
from openai import AsyncOpenAI

from tailor.ai.backoff import RetryPolicy, retry_with_backoff
from tailor.ai.providers.prompts import JOB_ANALYSIS_SYSTEM_PROMPT, PROFILE_SYSTEM_PROMPT, RESUME_SYSTEM_PROMPT, build_resume_user_prompt
from tailor.core.exceptions import AIServiceError

logger = logging.getLogger(__name__)


class OpenRouterGenerationClient:
  """Run the profile, job-analysis and rewrite prompts as a three-call chain."""

  name = "openrouter"

  def __init__(
    self,
    *,
    api_key: str,
    model: str,
    base_url: str = "https://openrouter.ai/api/v1",
    timeout_seconds: float = 120.0,
    retry_policy: RetryPolicy | None = None,
    client: AsyncOpenAI | None = None,
  ) -> None:
    if not api_key and client is None:
      raise ValueError("OPENROUTER_API_KEY environment variable is required")
    self.model = model
    self._retry_policy = retry_policy or RetryPolicy()
    # SDK retries are disabled; the retry policy owns the budget.
    self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout_seconds, max_retries=0)

  async def generate(self, text: str, description: str, title: str | None = None, org: str | None = None) -> Any:
    if not text or not description:
      raise AIServiceError("Resume content and job description are required")

    try:
      logger.info("Customization step 1/3: building candidate profile")
      profile = await self._complete("profile", PROFILE_SYSTEM_PROMPT, text)
      logger.info("Customization step 2/3: analyzing job description")
      job_analysis = await self._complete("job_analysis", JOB_ANALYSIS_SYSTEM_PROMPT, description)
      logger.info("Customization step 3/3: rewriting resume")
      user_prompt = build_resume_user_prompt(profile=profile, job_analysis=job_analysis, original_resume=text, title=title, org=org)
      resume = await self._complete("resume_rewrite", RESUME_SYSTEM_PROMPT, user_prompt)
    except openai.OpenAIError as exc:
      raise AIServiceError(f"AI customization failed: {exc}", model=self.model) from exc

    return {"content": resume}

  async def _complete(self, step: str, system_prompt: str, user_prompt: str) -> str:
    async def _call() -> Any:
      return await self._client.chat.completions.create(
        model=self.model,
        messages=[{"role": "system", "content": system_prompt}, {"role": "user", "content": user_prompt}],
      )

    response = await retry_with_backoff(_call, policy=self._retry_policy, operation_name=f"openrouter_{step}")
    content = response.choices[0].message.content or ""
    if response.usage:
      logger.debug("OpenRouter %s usage: prompt=%s completion=%s", step, response.usage.prompt_tokens, response.usage.completion_tokens)
    if not content.strip():
      raise AIServiceError(f"AI customization failed: empty reply for step '{step}'", model=self.model)
    return content

  async def aclose(self) -> None:
    await self._client.close()
