from __future__ import annotations

import json

import pytest

from tailor.ai.normalizer import FallbackReply, HeuristicReply, PassthroughReply, TaggedReply, extract_canonical_text, normalize_ai_reply
from tailor.core.exceptions import AIServiceError

LONG_TEXT = "# Jane Doe\n\n" + "Backend engineer with a decade of distributed systems experience. " * 3


def test_content_field_in_mapping_is_returned_exactly() -> None:
  reply = normalize_ai_reply({"content": "X"})

  assert reply == TaggedReply(text="X")


def test_content_field_in_json_string_is_returned_exactly() -> None:
  assert extract_canonical_text('{"content": "X"}') == "X"


def test_non_json_string_passes_through_unchanged() -> None:
  reply = normalize_ai_reply("Y")

  assert isinstance(reply, PassthroughReply)
  assert reply.text == "Y"


def test_markdown_reply_passes_through_unchanged() -> None:
  markdown = "# Customized\n\n- item one\n- item two"

  assert extract_canonical_text(markdown) == markdown


def test_first_long_string_field_is_used_when_content_is_missing() -> None:
  raw = {"status": "ok", "resume": LONG_TEXT}

  reply = normalize_ai_reply(raw)

  assert isinstance(reply, HeuristicReply)
  assert reply.text == LONG_TEXT
  assert reply.original == raw


def test_heuristic_scan_follows_insertion_order() -> None:
  first = "A" * 150
  second = "B" * 300

  assert extract_canonical_text({"short": "tiny", "first": first, "second": second}) == first


def test_strings_of_exactly_one_hundred_characters_do_not_qualify() -> None:
  reply = normalize_ai_reply({"note": "x" * 100})

  assert isinstance(reply, FallbackReply)


def test_mapping_without_long_fields_is_serialized() -> None:
  raw = {"status": "ok", "count": 2}

  reply = normalize_ai_reply(raw)

  assert isinstance(reply, FallbackReply)
  assert json.loads(reply.text) == raw
  assert reply.original == raw


def test_json_string_without_content_is_serialized_without_scanning() -> None:
  raw = json.dumps({"resume": LONG_TEXT})

  reply = normalize_ai_reply(raw)

  assert isinstance(reply, FallbackReply)
  assert reply.original == {"resume": LONG_TEXT}
  assert json.loads(reply.text) == {"resume": LONG_TEXT}


def test_structured_content_value_is_serialized() -> None:
  assert json.loads(extract_canonical_text({"content": {"sections": ["a", "b"]}})) == {"sections": ["a", "b"]}


def test_non_empty_list_falls_back_to_json() -> None:
  reply = normalize_ai_reply([{"text": "a"}])

  assert isinstance(reply, FallbackReply)
  assert json.loads(reply.text) == [{"text": "a"}]


@pytest.mark.parametrize("raw", [None, "", "   ", {}, [], {"content": None}, {"content": "  "}, '{"content": ""}'])
def test_empty_replies_raise(raw: object) -> None:
  with pytest.raises(AIServiceError):
    normalize_ai_reply(raw)
