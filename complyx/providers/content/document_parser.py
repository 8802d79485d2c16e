"""Raw bytes → readable text, routed by content type.

HTML goes through trafilatura's main-content extraction, with BeautifulSoup
supplying the page title and a plain-text fallback for pages trafilatura
cannot handle.  PDFs are read page by page with PyMuPDF.  Plain text and
XML are decoded as-is.
"""

from __future__ import annotations

import fitz  # PyMuPDF
import structlog
import trafilatura
from bs4 import BeautifulSoup

from complyx.models.documents import FetchedContent
from complyx.utils.errors import FetchError

logger = structlog.get_logger(logger_name=__name__)

PDF_CONTENT_TYPES = frozenset({"application/pdf", "application/x-pdf"})
HTML_CONTENT_TYPES = frozenset({"text/html", "application/xhtml+xml"})


def normalize_content_type(raw: str | None) -> str:
    """``"text/html; charset=utf-8"`` → ``"text/html"``."""
    if not raw:
        return ""
    return raw.split(";", 1)[0].strip().lower()


class DocumentParser:
    """Extracts text and a title from HTML, PDF or plain-text payloads."""

    def parse(self, data: bytes, content_type: str, url: str | None = None) -> FetchedContent:
        """Parse *data* according to *content_type*.

        Raises
        ------
        FetchError
            If the payload is unreadable or yields no text.
        """
        kind = normalize_content_type(content_type)
        if kind in PDF_CONTENT_TYPES:
            text, title = self._parse_pdf(data, url)
        elif kind in HTML_CONTENT_TYPES:
            text, title = self._parse_html(data.decode("utf-8", errors="replace"))
        else:
            text, title = data.decode("utf-8", errors="replace").strip(), ""

        if not text:
            raise FetchError(
                message=f"No readable text extracted from {url or 'payload'}",
                provider_name="document_parser",
            )

        logger.info(
            "document_parsed",
            url=url,
            content_type=kind or "text/plain",
            text_length=len(text),
        )
        return FetchedContent(
            text=text,
            title=title,
            content_type=kind or "text/plain",
            url=url,
            size_bytes=len(data),
        )

    # ------------------------------------------------------------------
    # Format handlers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_html(html: str) -> tuple[str, str]:
        soup = BeautifulSoup(html, "html.parser")
        title_tag = soup.find("title")
        title = title_tag.get_text(strip=True) if title_tag else ""

        text = trafilatura.extract(html, include_comments=False, include_tables=True)
        if not text:
            logger.debug("trafilatura_extraction_empty", title=title)
            for tag in soup(["script", "style", "noscript", "nav", "footer"]):
                tag.decompose()
            body = soup.body or soup
            text = "\n".join(
                line.strip() for line in body.get_text("\n").splitlines() if line.strip()
            )
        return text.strip(), title

    @staticmethod
    def _parse_pdf(data: bytes, url: str | None) -> tuple[str, str]:
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                pages = [page.get_text("text").strip() for page in doc]
                title = (doc.metadata or {}).get("title") or ""
        except Exception as exc:
            raise FetchError(
                message=f"Failed to parse PDF {url or ''}: {exc}".strip(),
                provider_name="document_parser",
            ) from exc
        return "\n\n".join(page for page in pages if page), title.strip()
