"""
Tests for web fetching.
"""

import httpx
import pytest

from workspace_tools.filesystem import (
    FileAccessDeniedError,
    FileSystemAccessConfig,
    InvalidArgumentError,
    OperationTimeoutError,
    WebFetchError,
    WebFetcher,
)
from workspace_tools.filesystem.web import (
    MAX_CONTENT_LENGTH,
    html_to_markdown,
    html_to_text,
    to_raw_github_url,
)

PAGE = """
<html>
  <head>
    <title>Demo</title>
    <style>body { color: red; }</style>
    <script>var tracking = "do not show";</script>
  </head>
  <body>
    <h1>Welcome</h1>
    <p>Read the <a href="https://example.com/docs">documentation</a>.</p>
    <img src="logo.png" alt="logo">
  </body>
</html>
"""


def fetcher_for(handler, **config) -> WebFetcher:
    """Create a WebFetcher backed by a mock transport."""
    return WebFetcher(
        FileSystemAccessConfig(allow_web=True, **config),
        transport=httpx.MockTransport(handler),
    )


class TestHelpers:
    """Test URL rewriting and HTML extraction."""

    def test_github_blob_rewrite(self):
        """blob URLs point at the raw file host."""
        assert (
            to_raw_github_url("https://github.com/org/repo/blob/main/README.md")
            == "https://raw.githubusercontent.com/org/repo/main/README.md"
        )

    def test_other_urls_unchanged(self):
        """Non-blob URLs are left alone."""
        assert to_raw_github_url("https://github.com/org/repo") == "https://github.com/org/repo"
        assert to_raw_github_url("https://example.com/blob/x") == "https://example.com/blob/x"

    def test_html_to_text(self):
        """Scripts, styles and link targets are dropped."""
        text = html_to_text(PAGE)

        assert "Welcome" in text
        assert "documentation" in text
        assert "do not show" not in text
        assert "color: red" not in text
        assert "https://example.com/docs" not in text
        assert "logo.png" not in text


    def test_html_to_markdown(self):
        """Headings use ATX style, links keep their targets, scripts are dropped."""
        markdown = html_to_markdown(PAGE + "<ul><li>one</li><li>two</li></ul>")

        assert "# Welcome" in markdown
        assert "[documentation](https://example.com/docs)" in markdown
        assert "- one" in markdown
        assert "- two" in markdown
        assert "do not show" not in markdown
        assert "color: red" not in markdown


class TestWebFetcher:
    """Test WebFetcher."""

    @pytest.mark.asyncio
    async def test_fetch_text(self):
        """Text mode returns the visible text."""
        fetcher = fetcher_for(lambda request: httpx.Response(200, text=PAGE))

        text = await fetcher.fetch("https://example.com")

        assert "Welcome" in text
        assert "<h1>" not in text

    @pytest.mark.asyncio
    async def test_fetch_html(self):
        """HTML mode returns the raw body."""
        fetcher = fetcher_for(lambda request: httpx.Response(200, text=PAGE))
        assert await fetcher.fetch("https://example.com", format="html") == PAGE

    @pytest.mark.asyncio
    async def test_fetch_markdown(self):
        """Markdown mode converts the page."""
        fetcher = fetcher_for(lambda request: httpx.Response(200, text=PAGE))

        markdown = await fetcher.fetch("https://example.com", format="markdown")

        assert "# Welcome" in markdown
        assert "<h1>" not in markdown
        assert "tracking" not in markdown

    @pytest.mark.asyncio
    async def test_markdown_is_capped(self):
        """Markdown output is cut to the maximum length."""
        body = "<p>" + "a" * (MAX_CONTENT_LENGTH + 5000) + "</p>"
        fetcher = fetcher_for(lambda request: httpx.Response(200, text=body))

        markdown = await fetcher.fetch("https://example.com", format="markdown")

        assert len(markdown) == MAX_CONTENT_LENGTH

    @pytest.mark.asyncio
    async def test_github_blob_fetched_raw(self):
        """GitHub blob pages are fetched from the raw host."""
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, text="raw file")

        fetcher = fetcher_for(handler)
        await fetcher.fetch("https://github.com/org/repo/blob/main/README.md", format="html")

        assert seen == ["https://raw.githubusercontent.com/org/repo/main/README.md"]

    @pytest.mark.asyncio
    async def test_text_is_capped(self):
        """Text output is cut to the maximum length."""
        body = "<p>" + "a" * (MAX_CONTENT_LENGTH + 5000) + "</p>"
        fetcher = fetcher_for(lambda request: httpx.Response(200, text=body))

        assert len(await fetcher.fetch("https://example.com")) == MAX_CONTENT_LENGTH

    @pytest.mark.asyncio
    async def test_http_error(self):
        """Non-2xx responses raise WebFetchError."""
        fetcher = fetcher_for(lambda request: httpx.Response(404, text="missing"))

        with pytest.raises(WebFetchError) as exc_info:
            await fetcher.fetch("https://example.com/missing")
        assert "404" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Timeouts raise OperationTimeoutError."""
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(OperationTimeoutError):
            await fetcher_for(handler).fetch("https://example.com", timeout=1)

    @pytest.mark.asyncio
    async def test_invalid_arguments(self):
        """Only http(s) URLs and known formats are accepted."""
        fetcher = fetcher_for(lambda request: httpx.Response(200))

        with pytest.raises(InvalidArgumentError):
            await fetcher.fetch("")
        with pytest.raises(InvalidArgumentError):
            await fetcher.fetch("ftp://example.com/file")
        with pytest.raises(InvalidArgumentError):
            await fetcher.fetch("https://example.com", format="pdf")

    @pytest.mark.asyncio
    async def test_disabled(self):
        """Web access must be enabled explicitly."""
        fetcher = WebFetcher(FileSystemAccessConfig())
        with pytest.raises(FileAccessDeniedError):
            await fetcher.fetch("https://example.com")
