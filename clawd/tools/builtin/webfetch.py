"""WebFetch tool: fetch a URL and return it as text, markdown or html."""
from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlparse

import aiohttp
import html2text
from bs4 import BeautifulSoup

from ..base import ToolResult
from ..validation import upgrade_url

logger = logging.getLogger(__name__)

USER_AGENT = "clawd/0.3 (CLI agent)"
MAX_CONTENT_CHARS = 100_000
MIN_TIMEOUT = 5
MAX_TIMEOUT = 120
DEFAULT_TIMEOUT = 30

_ACCEPT = {
    "html": "text/html",
    "text": "text/plain, text/html;q=0.9, */*;q=0.8",
    "markdown": "text/markdown, text/html;q=0.9, */*;q=0.8",
}


def _clean_soup(html: str) -> BeautifulSoup:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup


def html_to_text(html: str) -> str:
    text = _clean_soup(html).get_text("\n")
    lines = (line.strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def html_to_markdown(html: str) -> str:
    h2t = html2text.HTML2Text()
    h2t.ignore_links = False
    h2t.ignore_images = False
    h2t.body_width = 0
    return h2t.handle(str(_clean_soup(html))).strip()


class WebFetchTool:
    name = "WebFetch"
    description = (
        "Fetch content from a URL. Returns the page as markdown (default), "
        "plain text, or raw HTML. HTTP URLs are upgraded to HTTPS."
    )
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "description": "The URL to fetch content from (must be fully-formed)",
            },
            "format": {
                "type": "string",
                "enum": ["text", "markdown", "html"],
                "description": "Format to return content in (default: markdown)",
                "default": "markdown",
            },
            "timeout": {
                "type": "number",
                "description": "Timeout in seconds, clamped to 5-120 (default: 30)",
            },
        },
        "required": ["url"],
    }

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        original = str(input.get("url") or "").strip()
        url = upgrade_url(original)
        if url != original:
            logger.info("Upgraded URL to HTTPS: %s", url)
        parsed = urlparse(url)
        if parsed.scheme != "https" or not parsed.netloc:
            return ToolResult.fail(f"Invalid URL: {original}")

        fmt = input.get("format") or "markdown"
        timeout = float(input.get("timeout") or DEFAULT_TIMEOUT)
        timeout = min(max(timeout, MIN_TIMEOUT), MAX_TIMEOUT)

        headers = {"User-Agent": USER_AGENT, "Accept": _ACCEPT.get(fmt, "*/*")}
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=timeout)
            ) as session:
                async with session.get(url, headers=headers, allow_redirects=True) as response:
                    final_url = str(response.url)
                    if response.url.host != parsed.hostname:
                        return ToolResult.ok(
                            f"Redirected to different host: {final_url}. "
                            "Please make a new request with this URL.",
                            redirect_url=final_url,
                            original_url=url,
                        )
                    if response.status >= 400:
                        return ToolResult.fail(
                            f"HTTP {response.status}: {response.reason}",
                            status=response.status,
                        )
                    content_type = response.headers.get("Content-Type", "")
                    body = await response.text(errors="replace")
        except asyncio.TimeoutError:
            return ToolResult.fail(f"Request timed out after {timeout:g} seconds")
        except aiohttp.ClientError as exc:
            logger.error("WebFetch error for %s: %s", url, exc)
            return ToolResult.fail(f"Fetch failed: {exc}")

        is_html = "text/html" in content_type
        if fmt == "text" and is_html:
            content = html_to_text(body)
        elif fmt == "markdown" and is_html:
            content = html_to_markdown(body)
        else:
            content = body

        truncated = len(content) > MAX_CONTENT_CHARS
        if truncated:
            content = content[:MAX_CONTENT_CHARS] + "\n\n[Content truncated]"
        return ToolResult.ok(
            content,
            url=final_url,
            content_type=content_type,
            content_length=len(content),
            truncated=truncated,
        )
