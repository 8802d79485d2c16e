"""URL content fetcher built on httpx.

Downloads a page or PDF, enforces a timeout, a byte cap and an allow-list of
content types, then hands the payload to :class:`DocumentParser`.
"""

from __future__ import annotations

import ipaddress
from urllib.parse import urlparse

import httpx
import structlog

from complyx.interfaces.content_provider import IContentProvider
from complyx.models.documents import FetchedContent
from complyx.providers.content.document_parser import DocumentParser, normalize_content_type
from complyx.utils.errors import FetchError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

ALLOWED_CONTENT_TYPES = frozenset(
    {
        "text/html",
        "application/xhtml+xml",
        "text/plain",
        "application/pdf",
        "application/x-pdf",
        "text/xml",
        "application/xml",
    }
)

_PRIVATE_HOSTNAMES = frozenset({"localhost", "localhost.localdomain"})


def is_pdf_url(url: str) -> bool:
    return urlparse(url).path.lower().endswith(".pdf")


def is_html_url(url: str) -> bool:
    path = urlparse(url).path.lower()
    return not is_pdf_url(url) and (path.endswith((".html", ".htm")) or "." not in path.rsplit("/", 1)[-1])


def is_private_host(hostname: str) -> bool:
    """Return ``True`` for loopback, private, link-local or reserved hosts."""
    host = hostname.strip("[]").lower()
    if host in _PRIVATE_HOSTNAMES or host.endswith(".local"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
    )


class UrlFetcher(IContentProvider):
    """Fetches remote documents over HTTP(S).

    Parameters
    ----------
    http_client:
        Shared :class:`httpx.AsyncClient`; one is created when omitted.
    timeout:
        Request timeout in seconds.
    max_bytes:
        Largest accepted payload; larger bodies abort mid-download.
    block_private_hosts:
        Reject loopback / private-network targets (enabled in production).
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        max_bytes: int = 50 * 1024 * 1024,
        block_private_hosts: bool = False,
        user_agent: str = "Complyx-Knowledge-Bot/1.0",
        parser: DocumentParser | None = None,
    ) -> None:
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._block_private_hosts = block_private_hosts
        self._parser = parser or DocumentParser()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml,application/pdf,text/plain;q=0.9,*/*;q=0.8",
            },
            follow_redirects=True,
        )

    # ------------------------------------------------------------------
    # IContentProvider implementation
    # ------------------------------------------------------------------

    async def fetch(self, location: str) -> FetchedContent:
        """Download *location* and extract its text."""
        self.validate_url(location)
        data, content_type = await self._download(location)
        return self._parser.parse(data, content_type, url=location)

    def get_provider_name(self) -> str:
        return "url_fetcher"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def validate_url(self, url: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValidationError(
                message=f"Invalid URL (only http and https are supported): {url}",
                provider_name=self.get_provider_name(),
            )
        if self._block_private_hosts and is_private_host(parsed.hostname):
            raise ValidationError(
                message=f"Fetching private or local addresses is not allowed: {parsed.hostname}",
                provider_name=self.get_provider_name(),
            )

    async def _download(self, url: str) -> tuple[bytes, str]:
        try:
            async with self._client.stream("GET", url, timeout=self._timeout) as response:
                response.raise_for_status()

                content_type = normalize_content_type(response.headers.get("content-type"))
                if not content_type:
                    content_type = "application/pdf" if is_pdf_url(url) else "text/html"
                if content_type not in ALLOWED_CONTENT_TYPES:
                    raise ValidationError(
                        message=f"Unsupported content type '{content_type}' for {url}",
                        provider_name=self.get_provider_name(),
                    )

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self._max_bytes:
                    raise FetchError(
                        message=f"Content too large ({declared} bytes, limit {self._max_bytes}): {url}",
                        provider_name=self.get_provider_name(),
                    )

                buffer = bytearray()
                async for block in response.aiter_bytes():
                    buffer.extend(block)
                    if len(buffer) > self._max_bytes:
                        raise FetchError(
                            message=f"Content exceeds {self._max_bytes} bytes: {url}",
                            provider_name=self.get_provider_name(),
                        )
        except httpx.TimeoutException as exc:
            raise FetchError(
                message=f"Request timeout after {self._timeout:.0f}s: {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.ConnectError as exc:
            raise FetchError(
                message=f"Failed to connect to {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                message=f"HTTP {exc.response.status_code} {exc.response.reason_phrase} for {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(
                message=f"HTTP error fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("url_fetched", url=url, content_type=content_type, size_bytes=len(buffer))
        return bytes(buffer), content_type
