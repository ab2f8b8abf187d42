"""Generation client contract shared by the webhook and direct LLM clients."""

from __future__ import annotations

from typing import Any, Protocol


class GenerationClient(Protocol):
  """Produces a tailored document for a source text and a target description."""

  name: str

  async def generate(self, text: str, description: str, title: str | None = None, org: str | None = None) -> Any:
    """Return the raw, unnormalized reply of the generation backend."""

  async def aclose(self) -> None:
    """Release pooled connections."""
