from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

from tailor.core.exceptions import RenderError
from tailor.documents.renderer import MarkdownPdfRenderer, build_html_document


def test_build_html_document_renders_markdown_and_styles() -> None:
  document = build_html_document("# Jane Doe\n\n- Python\n- Go\n\n| Skill | Years |\n| --- | --- |\n| SQL | 5 |")

  assert document.startswith("<!DOCTYPE html>")
  assert "<h1>Jane Doe</h1>" in document
  assert "<li>Python</li>" in document
  assert "<table>" in document
  assert "<style>" in document


def test_build_html_document_escapes_title() -> None:
  assert "<title>A &amp; B</title>" in build_html_document("text", title="A & B")


def _renderer_with_browser(page: MagicMock) -> MarkdownPdfRenderer:
  renderer = MarkdownPdfRenderer(page_format="Letter")
  browser = MagicMock()
  browser.is_connected = MagicMock(return_value=True)
  browser.new_page = AsyncMock(return_value=page)
  browser.close = AsyncMock()
  renderer._browser = browser
  return renderer


def _page(pdf_bytes: bytes = b"%PDF-1.7") -> MagicMock:
  page = MagicMock()
  page.set_content = AsyncMock()
  page.pdf = AsyncMock(return_value=pdf_bytes)
  page.close = AsyncMock()
  return page


@pytest.mark.anyio
async def test_render_uses_pooled_browser_and_closes_page() -> None:
  page = _page()
  renderer = _renderer_with_browser(page)

  result = await renderer.render("# Customized")

  assert result == b"%PDF-1.7"
  html_arg = page.set_content.await_args.args[0]
  assert "<h1>Customized</h1>" in html_arg
  assert page.pdf.await_args.kwargs["format"] == "Letter"
  assert page.pdf.await_args.kwargs["print_background"] is True
  page.close.assert_awaited_once()


@pytest.mark.anyio
async def test_playwright_failures_become_render_errors() -> None:
  page = _page()
  page.pdf.side_effect = PlaywrightError("Target closed")
  renderer = _renderer_with_browser(page)

  with pytest.raises(RenderError, match="PDF generation failed"):
    await renderer.render("# Customized")
  page.close.assert_awaited_once()


@pytest.mark.anyio
async def test_blank_text_is_not_rendered() -> None:
  renderer = _renderer_with_browser(_page())

  with pytest.raises(RenderError):
    await renderer.render("  \n")


@pytest.mark.anyio
async def test_stop_closes_browser_and_is_idempotent() -> None:
  renderer = _renderer_with_browser(_page())
  browser = renderer._browser
  playwright = MagicMock()
  playwright.stop = AsyncMock()
  renderer._playwright = playwright

  await renderer.stop()
  await renderer.stop()

  browser.close.assert_awaited_once()
  playwright.stop.assert_awaited_once()
  assert renderer.is_running is False


def _launcher(playwright: MagicMock) -> MagicMock:
  launcher = MagicMock()
  launcher.start = AsyncMock(return_value=playwright)
  return launcher


@pytest.mark.anyio
async def test_disconnected_browser_is_relaunched_before_rendering() -> None:
  renderer = _renderer_with_browser(_page())
  stale_browser = renderer._browser
  stale_browser.is_connected.return_value = False

  fresh_page = _page(b"%PDF-fresh")
  fresh_browser = MagicMock()
  fresh_browser.is_connected = MagicMock(return_value=True)
  fresh_browser.new_page = AsyncMock(return_value=fresh_page)
  playwright = MagicMock()
  playwright.chromium.launch = AsyncMock(return_value=fresh_browser)
  playwright.stop = AsyncMock()

  with patch("tailor.documents.renderer.async_playwright", return_value=_launcher(playwright)):
    result = await renderer.render("# Customized")

  assert result == b"%PDF-fresh"
  stale_browser.close.assert_awaited_once()
  stale_browser.new_page.assert_not_awaited()
  playwright.chromium.launch.assert_awaited_once()
  fresh_page.close.assert_awaited_once()
  assert renderer.is_running is True


@pytest.mark.anyio
async def test_browser_launch_failure_becomes_render_error() -> None:
  renderer = MarkdownPdfRenderer()
  playwright = MagicMock()
  playwright.chromium.launch = AsyncMock(side_effect=PlaywrightError("Executable doesn't exist"))
  playwright.stop = AsyncMock()

  with patch("tailor.documents.renderer.async_playwright", return_value=_launcher(playwright)):
    with pytest.raises(RenderError, match="Failed to launch renderer browser"):
      await renderer.render("# Customized")

  playwright.stop.assert_awaited_once()
  assert renderer.is_running is False
