"""PDF to text conversion for source documents."""

from __future__ import annotations

import io
import logging
import re

from pypdf import PdfReader
from pypdf.errors import PdfReadError
from starlette.concurrency import run_in_threadpool

from tailor.core.exceptions import ConversionError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = frozenset({"pdf"})

_BLANK_LINE_RUNS = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")


def _normalize_format(declared_format: str | None) -> str:
  return (declared_format or "").strip().lower().lstrip(".")


def ensure_supported(declared_format: str | None) -> str:
  """Reject formats the converter cannot read before any bytes are fetched."""
  normalized = _normalize_format(declared_format)
  if normalized not in SUPPORTED_FORMATS:
    raise ConversionError(f"File type '{normalized or declared_format}' not supported for conversion. Only PDF files can be customized.", source_format=declared_format)
  return normalized


def _extract_text(data: bytes) -> str:
  reader = PdfReader(io.BytesIO(data))
  pages: list[str] = []
  for page in reader.pages:
    page_text = (page.extract_text() or "").rstrip()
    if page_text.strip():
      pages.append(page_text)
  text = "\n\n".join(pages)
  return _BLANK_LINE_RUNS.sub("\n\n", text).strip()


class PdfConverter:
  """Extract canonical text from PDF bytes using pypdf."""

  async def convert(self, data: bytes, declared_format: str) -> str:
    ensure_supported(declared_format)
    if not data:
      raise ConversionError("Source document is empty.")

    try:
      # pypdf is synchronous and CPU bound.
      text = await run_in_threadpool(_extract_text, data)
    except (PdfReadError, ValueError, KeyError, TypeError, AttributeError, IndexError) as exc:
      raise ConversionError(f"Failed to read PDF: {exc}") from exc

    if not text:
      raise ConversionError("No extractable text found in PDF.")

    logger.info("Converted PDF to %d characters of text", len(text))
    return text
