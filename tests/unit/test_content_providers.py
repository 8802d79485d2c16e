"""Unit tests for the URL fetcher, RSS reader, document parser and file loader.

HTTP is served by ``httpx.MockTransport`` so no request leaves the process.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import fitz  # PyMuPDF
import httpx
import pytest

from complyx.models.feeds import FeedItem
from complyx.providers.content.document_parser import DocumentParser, normalize_content_type
from complyx.providers.content.file_loader import FileLoader
from complyx.providers.content.rss_provider import RssFeedProvider, select_new_items
from complyx.providers.content.url_fetcher import UrlFetcher, is_pdf_url, is_private_host
from complyx.utils.errors import FetchError, ValidationError

_ARTICLE_HTML = """
<html>
  <head><title>ISSB issues climate guidance</title></head>
  <body>
    <nav>Home | Standards | News</nav>
    <article>
      <h1>ISSB issues climate guidance</h1>
      <p>The International Sustainability Standards Board today published educational
      material to support the application of IFRS S2 Climate-related Disclosures.</p>
      <p>The material explains how entities measure Scope 3 greenhouse gas emissions
      across their value chain and how to apply the measurement framework.</p>
      <p>Companies should consider the reliefs available in the first annual reporting
      period in which they apply the standard.</p>
    </article>
    <footer>Copyright IFRS Foundation</footer>
  </body>
</html>
"""

_RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>IFRS news</title>
    <link>https://www.ifrs.org/news</link>
    <description>Latest updates</description>
    <item>
      <title>ISSB update</title>
      <link>https://www.ifrs.org/news/issb-update</link>
      <guid>issb-update</guid>
      <pubDate>Tue, 05 Mar 2024 10:00:00 GMT</pubDate>
      <description>&lt;p&gt;Summary of the update&lt;/p&gt;</description>
      <category>Sustainability</category>
    </item>
    <item>
      <title>Undated note</title>
      <link>https://www.ifrs.org/news/note</link>
      <description>Note body</description>
    </item>
  </channel>
</rss>
"""


def _pdf_bytes(text: str) -> bytes:
    document = fitz.open()
    page = document.new_page()
    page.insert_text((72, 72), text)
    data = document.tobytes()
    document.close()
    return data


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ======================================================================
# URL helpers
# ======================================================================


class TestUrlHelpers:
    def test_is_pdf_url(self) -> None:
        assert is_pdf_url("https://www.ifrs.org/content/dam/ifrs-s2.PDF")
        assert not is_pdf_url("https://www.ifrs.org/news")

    @pytest.mark.parametrize(
        ("host", "expected"),
        [
            ("localhost", True),
            ("127.0.0.1", True),
            ("10.0.0.5", True),
            ("192.168.1.10", True),
            ("169.254.169.254", True),
            ("[::1]", True),
            ("printer.local", True),
            ("www.ifrs.org", False),
            ("8.8.8.8", False),
        ],
    )
    def test_is_private_host(self, host: str, expected: bool) -> None:
        assert is_private_host(host) is expected

    def test_normalize_content_type(self) -> None:
        assert normalize_content_type("Text/HTML; charset=utf-8") == "text/html"
        assert normalize_content_type(None) == ""


# ======================================================================
# UrlFetcher
# ======================================================================


class TestUrlFetcher:
    @pytest.mark.asyncio
    async def test_fetch_html(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, text=_ARTICLE_HTML, headers={"content-type": "text/html; charset=utf-8"}
            )

        fetcher = UrlFetcher(http_client=_client(handler))
        content = await fetcher.fetch("https://www.ifrs.org/news/issb")

        assert content.title == "ISSB issues climate guidance"
        assert "Scope 3" in content.text
        assert content.content_type == "text/html"
        assert content.url == "https://www.ifrs.org/news/issb"

    @pytest.mark.asyncio
    async def test_fetch_pdf(self) -> None:
        pdf = _pdf_bytes("IFRS S2 requires Scope 3 disclosure.")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=pdf, headers={"content-type": "application/pdf"})

        content = await UrlFetcher(http_client=_client(handler)).fetch("https://x.org/s2.pdf")

        assert "Scope 3" in content.text
        assert content.content_type == "application/pdf"

    @pytest.mark.asyncio
    async def test_rejects_non_http_scheme(self) -> None:
        fetcher = UrlFetcher(http_client=_client(lambda request: httpx.Response(200)))
        with pytest.raises(ValidationError):
            await fetcher.fetch("ftp://www.ifrs.org/file.txt")
        with pytest.raises(ValidationError):
            await fetcher.fetch("not a url")

    @pytest.mark.asyncio
    async def test_blocks_private_hosts_when_enabled(self) -> None:
        fetcher = UrlFetcher(
            http_client=_client(lambda request: httpx.Response(200, text="ok")),
            block_private_hosts=True,
        )
        with pytest.raises(ValidationError):
            await fetcher.fetch("http://127.0.0.1:8080/admin")

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        fetcher = UrlFetcher(http_client=_client(lambda request: httpx.Response(404)))
        with pytest.raises(FetchError, match="404"):
            await fetcher.fetch("https://www.ifrs.org/missing")

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(FetchError):
            await UrlFetcher(http_client=_client(handler)).fetch("https://down.example.com")

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(FetchError, match="timeout"):
            await UrlFetcher(http_client=_client(handler)).fetch("https://slow.example.com")

    @pytest.mark.asyncio
    async def test_unsupported_content_type(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})

        with pytest.raises(ValidationError):
            await UrlFetcher(http_client=_client(handler)).fetch("https://x.org/logo.png")

    @pytest.mark.asyncio
    async def test_payload_over_limit(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="x" * 5000, headers={"content-type": "text/plain"})

        fetcher = UrlFetcher(http_client=_client(handler), max_bytes=1000)
        with pytest.raises(FetchError):
            await fetcher.fetch("https://x.org/big.txt")


# ======================================================================
# DocumentParser and FileLoader
# ======================================================================


class TestDocumentParser:
    def test_plain_text(self) -> None:
        content = DocumentParser().parse(b"  IAS 36 impairment  ", "text/plain")
        assert content.text == "IAS 36 impairment"
        assert content.title == ""
        assert content.size_bytes == 21

    def test_html_fallback_strips_chrome(self) -> None:
        html = b"<html><head><title>T</title><script>var x;</script></head><body><p>Hi</p></body></html>"
        content = DocumentParser().parse(html, "text/html")
        assert content.title == "T"
        assert "var x" not in content.text
        assert "Hi" in content.text

    def test_empty_payload(self) -> None:
        with pytest.raises(FetchError):
            DocumentParser().parse(b"   ", "text/plain")

    def test_corrupt_pdf(self) -> None:
        with pytest.raises(FetchError):
            DocumentParser().parse(b"not a pdf", "application/pdf")


class TestFileLoader:
    @pytest.mark.asyncio
    async def test_markdown(self, tmp_path) -> None:
        path = tmp_path / "ifrs-s1-notes.md"
        path.write_text("# IFRS S1\nGeneral requirements.", encoding="utf-8")

        content = await FileLoader().fetch(str(path))

        assert "General requirements." in content.text
        assert content.title == "ifrs-s1-notes"

    @pytest.mark.asyncio
    async def test_pdf(self, tmp_path) -> None:
        path = tmp_path / "s2.pdf"
        path.write_bytes(_pdf_bytes("Climate resilience"))
        content = await FileLoader().fetch(str(path))
        assert "Climate resilience" in content.text

    @pytest.mark.asyncio
    async def test_unsupported_suffix(self, tmp_path) -> None:
        path = tmp_path / "sheet.xlsx"
        path.write_bytes(b"data")
        with pytest.raises(ValidationError):
            await FileLoader().fetch(str(path))

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FetchError):
            await FileLoader().fetch(str(tmp_path / "missing.txt"))


# ======================================================================
# RSS
# ======================================================================


class TestRssFeedProvider:
    @pytest.mark.asyncio
    async def test_parse_rss(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=_RSS, headers={"content-type": "application/rss+xml"})

        feed = await RssFeedProvider(http_client=_client(handler)).fetch_feed(
            "https://www.ifrs.org/feed.xml"
        )

        assert feed.title == "IFRS news"
        assert len(feed.items) == 2
        first, second = feed.items
        assert first.title == "ISSB update"
        assert first.link == "https://www.ifrs.org/news/issb-update"
        assert first.pub_date == datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)
        assert first.guid == "issb-update"
        assert first.categories == ["Sustainability"]
        assert second.pub_date is None

    @pytest.mark.asyncio
    async def test_invalid_url(self) -> None:
        provider = RssFeedProvider(http_client=_client(lambda request: httpx.Response(200)))
        with pytest.raises(ValidationError):
            await provider.fetch_feed("file:///etc/passwd")

    @pytest.mark.asyncio
    async def test_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(FetchError):
            await RssFeedProvider(http_client=_client(handler)).fetch_feed("https://down.example")

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        provider = RssFeedProvider(http_client=_client(lambda request: httpx.Response(503)))
        with pytest.raises(FetchError, match="503"):
            await provider.fetch_feed("https://www.ifrs.org/feed.xml")

    @pytest.mark.asyncio
    async def test_garbage_is_fetch_error(self) -> None:
        provider = RssFeedProvider(
            http_client=_client(lambda request: httpx.Response(200, content=b"<<<not xml"))
        )
        with pytest.raises(FetchError):
            await provider.fetch_feed("https://www.ifrs.org/feed.xml")


class TestSelectNewItems:
    _base = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _item(self, name: str, days: int | None) -> FeedItem:
        pub_date = self._base + timedelta(days=days) if days is not None else None
        return FeedItem(title=name, pub_date=pub_date)

    def test_no_watermark_takes_all_newest_first(self) -> None:
        items = [self._item("old", 0), self._item("undated", None), self._item("new", 2)]
        assert [i.title for i in select_new_items(items, None)] == ["new", "old", "undated"]

    def test_strictly_newer_than_watermark(self) -> None:
        items = [self._item("at", 1), self._item("after", 2), self._item("before", 0)]
        selected = select_new_items(items, self._base + timedelta(days=1))
        assert [i.title for i in selected] == ["after"]

    def test_undated_always_included(self) -> None:
        items = [self._item("undated", None), self._item("old", 0)]
        selected = select_new_items(items, self._base + timedelta(days=10))
        assert [i.title for i in selected] == ["undated"]

    def test_naive_watermark_treated_as_utc(self) -> None:
        items = [self._item("new", 2)]
        assert select_new_items(items, datetime(2024, 1, 2)) == items
