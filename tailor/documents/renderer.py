"""Markdown to PDF rendering through a pooled headless Chromium browser."""

from __future__ import annotations

import asyncio
import html
import logging

import markdown
from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from tailor.core.exceptions import RenderError

logger = logging.getLogger(__name__)

DOCUMENT_CSS = """
body { font-family: Arial, Helvetica, sans-serif; line-height: 1.5; color: #333; margin: 0 auto; max-width: 800px; font-size: 12px; }
h1, h2, h3, h4 { color: #2c3e50; margin: 16px 0 8px; }
h1 { font-size: 20px; border-bottom: 1px solid #eee; padding-bottom: 8px; }
h2 { font-size: 16px; border-bottom: 1px solid #eee; padding-bottom: 4px; }
h3 { font-size: 14px; }
p { margin: 8px 0; }
ul, ol { margin: 8px 0; padding-left: 20px; }
li { margin: 3px 0; }
code, pre { background-color: #f6f8fa; border-radius: 3px; font-family: monospace; }
pre { padding: 8px; }
a { color: #0366d6; text-decoration: none; }
table { border-collapse: collapse; width: 100%; margin: 12px 0; }
th, td { border: 1px solid #ddd; padding: 6px 10px; text-align: left; }
blockquote { color: #666; margin: 0; padding-left: 12px; border-left: 4px solid #ddd; }
"""

PAGE_MARGIN = {"top": "20px", "right": "20px", "bottom": "20px", "left": "20px"}


def build_html_document(markdown_text: str, *, title: str = "Resume") -> str:
  """Convert markdown to a standalone, styled HTML document."""
  body = markdown.markdown(markdown_text, extensions=["extra", "sane_lists"])
  return f"""<!DOCTYPE html><html><head><meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{html.escape(title)}</title>
<style>{DOCUMENT_CSS}</style></head><body>
{body}
</body></html>"""


class MarkdownPdfRenderer:
  """Render canonical markdown text to PDF bytes.

  The browser is launched once and shared by every render; each render opens
  and closes its own page. ``start()`` is optional because the first render
  starts the browser lazily.
  """

  content_type = "application/pdf"

  def __init__(self, *, page_format: str = "A4", launch_args: list[str] | None = None) -> None:
    self._page_format = page_format
    self._launch_args = launch_args if launch_args is not None else ["--no-sandbox", "--disable-setuid-sandbox"]
    self._playwright: Playwright | None = None
    self._browser: Browser | None = None
    self._lock = asyncio.Lock()

  @property
  def is_running(self) -> bool:
    return self._browser is not None

  async def start(self) -> None:
    async with self._lock:
      if self._browser is None:
        await self._launch()

  async def stop(self) -> None:
    async with self._lock:
      await self._shutdown()

  async def render(self, markdown_text: str) -> bytes:
    if not markdown_text or not markdown_text.strip():
      raise RenderError("Nothing to render: document text is empty.")

    browser = await self._ensure_browser()
    document = build_html_document(markdown_text)
    try:
      page = await browser.new_page()
      try:
        await page.set_content(document, wait_until="networkidle")
        pdf_bytes = await page.pdf(format=self._page_format, margin=PAGE_MARGIN, print_background=True)
      finally:
        await page.close()
    except PlaywrightError as exc:
      raise RenderError(f"PDF generation failed: {exc}") from exc

    logger.info("Rendered PDF (%d bytes)", len(pdf_bytes))
    return pdf_bytes

  async def _ensure_browser(self) -> Browser:
    """Return the pooled browser, relaunching it when it has crashed or disconnected."""
    async with self._lock:
      if self._browser is not None and not self._browser.is_connected():
        logger.warning("Renderer browser disconnected; relaunching")
        await self._shutdown()
      if self._browser is None:
        await self._launch()
      browser = self._browser
    if browser is None:
      raise RenderError("Renderer browser is not running.")
    return browser

  async def _launch(self) -> None:
    try:
      self._playwright = await async_playwright().start()
      self._browser = await self._playwright.chromium.launch(headless=True, args=self._launch_args)
    except PlaywrightError as exc:
      await self._shutdown()
      raise RenderError(f"Failed to launch renderer browser: {exc}") from exc
    logger.info("Renderer browser started")

  async def _shutdown(self) -> None:
    browser, playwright = self._browser, self._playwright
    self._browser = None
    self._playwright = None
    if browser is not None:
      try:
        await browser.close()
      except PlaywrightError:
        logger.warning("Renderer browser did not close cleanly", exc_info=True)
    if playwright is not None:
      await playwright.stop()
      logger.info("Renderer browser stopped")
