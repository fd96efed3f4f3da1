"""Web scrape tool - fetch a page and return its readable text."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from libra.config import settings
from libra.enums import ToolName
from libra.exceptions import FileTooLargeError
from libra.services.file.streaming import read_limited
from libra.services.tools.base import ToolResult

if TYPE_CHECKING:
    from libra.services.tools.base import ToolContext

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; LibraAgent/1.0)"
TRUNCATION_MARKER = "\n[... truncated]"
# Elements that never carry article text
BOILERPLATE_SELECTOR = "script, style, nav, footer, [role='navigation']"

WEB_SCRAPE_TOOL = {
    "name": ToolName.WEB_SCRAPE.value,
    "description": (
        "Fetch a URL and extract readable text from the page (strips HTML). Use after "
        "web_search to get full page content. Provide a single URL."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "Full URL to fetch (http or https only)"},
        },
        "required": ["url"],
        "additionalProperties": False,
    },
}


def is_allowed_url(url: str) -> bool:
    """Only plain web URLs may be fetched."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def extract_readable_text(html: str) -> str:
    """Strip markup and boilerplate elements, collapsing all whitespace runs."""
    soup = BeautifulSoup(html, "lxml")
    root = soup.body or soup
    for element in root.select(BOILERPLATE_SELECTOR):
        element.decompose()
    return collapse_whitespace(root.get_text(" "))


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


async def execute(ctx: ToolContext, tool_input: dict) -> ToolResult:
    url = tool_input.get("url")
    url = url.strip() if isinstance(url, str) else ""
    if not url:
        return ToolResult.fail("Missing or invalid 'url' string")
    if not is_allowed_url(url):
        return ToolResult.fail("URL must be http or https")
    if ctx.http_client is None:
        return ToolResult.fail("HTTP client is not available")

    logger.info(f"[AGENT] Scraping {url}")
    max_bytes = settings.scrape_max_response_bytes
    async with ctx.http_client.stream(
        "GET",
        url,
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
    ) as response:
        if not response.is_success:
            return ToolResult.fail(f"HTTP {response.status_code} for {url}")

        content_type = response.headers.get("content-type", "")
        is_html = "text/html" in content_type
        if not is_html and "text/plain" not in content_type:
            return ToolResult.fail("URL did not return HTML or plain text")

        try:
            body = await read_limited(response.aiter_bytes(), max_bytes)
        except FileTooLargeError:
            limit_mb = round(max_bytes / 1024 / 1024)
            return ToolResult.fail(f"Response from {url} exceeds {limit_mb}MB limit")
        page = body.decode(response.encoding or "utf-8", errors="replace")

    text = extract_readable_text(page) if is_html else collapse_whitespace(page)

    max_length = settings.scrape_max_text_length
    truncated = len(text) > max_length
    if truncated:
        text = text[:max_length] + TRUNCATION_MARKER

    return ToolResult.ok({"url": url, "text": text, "truncated": truncated})
