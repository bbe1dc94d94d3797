"""
Web page fetching for LLM tools.
"""

import logging
from typing import Optional

import httpx
from bs4 import BeautifulSoup
from markdownify import ATX, markdownify

from workspace_tools.filesystem.config import FileSystemAccessConfig
from workspace_tools.filesystem.exceptions import (
    FileAccessDeniedError,
    InvalidArgumentError,
    OperationTimeoutError,
    WebFetchError,
)

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 100_000
FORMATS = ("text", "markdown", "html")


def to_raw_github_url(url: str) -> str:
    """Point GitHub ``blob`` URLs at the raw file instead of the HTML page."""
    if "github.com" in url and "/blob/" in url:
        return url.replace("github.com", "raw.githubusercontent.com", 1).replace(
            "/blob/", "/", 1
        )
    return url


def html_to_text(html: str) -> str:
    """Extract visible text from HTML, dropping scripts, styles, images and link targets."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "meta", "link", "img", "noscript"]):
        element.decompose()

    lines = (line.strip() for line in soup.get_text("\n").splitlines())
    return "\n".join(line for line in lines if line)


def html_to_markdown(html: str) -> str:
    """Convert HTML to Markdown with ATX headings and ``-`` bullets."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "meta", "link"]):
        element.decompose()

    return markdownify(str(soup), heading_style=ATX, bullets="-").strip()


class WebFetcher:
    """
    Fetches web pages as text, Markdown or raw HTML.

    Usage:
        fetcher = WebFetcher(FileSystemAccessConfig(allow_web=True))
        text = await fetcher.fetch("https://example.com")
    """

    def __init__(
        self,
        config: FileSystemAccessConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport

    async def fetch(
        self, url: str, format: str = "text", timeout: Optional[float] = None
    ) -> str:
        """
        Fetch ``url``.

        Args:
            url: http(s) URL
            format: ``text`` (visible text), ``markdown`` or ``html`` (raw body)
            timeout: Seconds before giving up (default: ``web_timeout_seconds``)

        Returns:
            Page content, cut to 100 000 characters unless ``html``

        Raises:
            InvalidArgumentError: For a missing or non-http(s) URL or unknown format
            FileAccessDeniedError: If web access is disabled
            OperationTimeoutError: If the request times out
            WebFetchError: For non-2xx responses and transport errors
        """
        if not url:
            raise InvalidArgumentError("url", "The parameter is required")
        if not url.startswith(("http://", "https://")):
            raise InvalidArgumentError(url, "URL must start with http:// or https://")
        if format not in FORMATS:
            raise InvalidArgumentError(format, f"Format must be one of {', '.join(FORMATS)}")
        if not self.config.allow_web:
            raise FileAccessDeniedError(url, "Web access is disabled")

        url = to_raw_github_url(url)
        timeout = timeout or self.config.web_timeout_seconds
        logger.debug(f"Fetching {url}")

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=httpx.Timeout(timeout),
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException:
            raise OperationTimeoutError(f"Fetch of {url}", timeout) from None
        except httpx.HTTPError as e:
            raise WebFetchError(url, str(e)) from e

        if not response.is_success:
            raise WebFetchError(
                url,
                f"Request failed with status code {response.status_code} {response.reason_phrase}",
            )

        body = response.text
        logger.info(f"Fetched {url} ({len(body)} chars)")
        if format == "html":
            return body
        if format == "markdown":
            return html_to_markdown(body)[:MAX_CONTENT_LENGTH]
        return html_to_text(body)[:MAX_CONTENT_LENGTH]
