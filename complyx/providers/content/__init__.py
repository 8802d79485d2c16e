"""Content fetchers: local files, URLs (HTML/PDF) and RSS feeds."""

from complyx.providers.content.document_parser import DocumentParser
from complyx.providers.content.file_loader import FileLoader
from complyx.providers.content.rss_provider import RssFeedProvider, select_new_items
from complyx.providers.content.url_fetcher import UrlFetcher, is_html_url, is_pdf_url

__all__ = [
    "DocumentParser",
    "FileLoader",
    "RssFeedProvider",
    "UrlFetcher",
    "is_html_url",
    "is_pdf_url",
    "select_new_items",
]
