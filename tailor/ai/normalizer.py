"""Turn opaque text-generation replies into canonical document text.

Generation backends answer in several shapes: a JSON object carrying the
document under ``content``, some other object where the document hides in a
long string field, a bare JSON value, or plain markdown. ``normalize_ai_reply``
classifies the reply and reports which rule produced the text so callers can
log how the reply was interpreted.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from tailor.core.exceptions import AIServiceError

CONTENT_FIELD = "content"
HEURISTIC_MIN_LENGTH = 100


@dataclass(frozen=True)
class TaggedReply:
  """The reply exposed the document under the ``content`` field."""

  text: str
  kind: str = "tagged"


@dataclass(frozen=True)
class HeuristicReply:
  """The document was taken from the first sufficiently long string field."""

  text: str
  original: Any = None
  kind: str = "heuristic"


@dataclass(frozen=True)
class FallbackReply:
  """No field matched; the structure was serialized back to JSON text."""

  text: str
  original: Any = None
  kind: str = "fallback"


@dataclass(frozen=True)
class PassthroughReply:
  """The reply was plain, non-JSON text and is used unchanged."""

  text: str
  kind: str = "passthrough"


NormalizedReply = TaggedReply | HeuristicReply | FallbackReply | PassthroughReply


def normalize_ai_reply(raw: Any) -> NormalizedReply:
  """Classify a generation reply and extract its document text.

  Raises AIServiceError for empty replies and for a ``content`` field that is
  null or blank.
  """
  if raw is None:
    raise AIServiceError("Empty response from AI service")

  if isinstance(raw, bytes | bytearray):
    raw = raw.decode("utf-8", errors="replace")

  if isinstance(raw, str):
    if not raw.strip():
      raise AIServiceError("Empty response from AI service")
    try:
      parsed = json.loads(raw)
    except ValueError:
      return PassthroughReply(text=raw)
    if isinstance(parsed, Mapping) and CONTENT_FIELD in parsed:
      return TaggedReply(text=_content_text(parsed[CONTENT_FIELD]))
    # Parsed string replies are not scanned for long fields.
    return _fallback(parsed)

  if isinstance(raw, Mapping):
    if not raw:
      raise AIServiceError("Empty response from AI service")
    if CONTENT_FIELD in raw:
      return TaggedReply(text=_content_text(raw[CONTENT_FIELD]))
    for value in raw.values():
      if isinstance(value, str) and len(value) > HEURISTIC_MIN_LENGTH:
        return HeuristicReply(text=value, original=raw)
    return _fallback(raw)

  if isinstance(raw, list | tuple) and not raw:
    raise AIServiceError("Empty response from AI service")

  return _fallback(raw)


def extract_canonical_text(raw: Any) -> str:
  """Return only the canonical text of a reply."""
  return normalize_ai_reply(raw).text


def _content_text(value: Any) -> str:
  if value is None:
    raise AIServiceError("AI response 'content' field is empty")
  if isinstance(value, str):
    if not value.strip():
      raise AIServiceError("AI response 'content' field is empty")
    return value
  return json.dumps(value, ensure_ascii=False)


def _fallback(value: Any) -> FallbackReply:
  return FallbackReply(text=json.dumps(value, ensure_ascii=False, default=str), original=value)
