"""PDF download tool for announcement attachments.

This module fetches raw document bytes from the exchange's file server.

Features:
    - Browser-like User-Agent (the site rejects default client strings)
    - SSL fallback for problematic certificates
    - Size cap to avoid loading runaway responses into memory
    - A single DownloadError type for every failure mode

The pipeline treats DownloadError as a per-attachment problem: the
candidate is dropped and the remaining attachments are still processed.
"""

import asyncio
import logging
import ssl

import aiohttp
import certifi

logger = logging.getLogger(__name__)

# Browser-like User-Agent to avoid being blocked by the exchange CDN
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

MAX_PDF_BYTES = 50 * 1024 * 1024


class DownloadError(Exception):
    """Raised when a document cannot be downloaded.

    Attributes:
        url: Requested URL
        reason: Short description of the failure
        status: HTTP status for non-success responses, else None
    """

    def __init__(self, url: str, reason: str, status: int | None = None):
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason
        self.status = status


def create_ssl_context(verify: bool = True) -> ssl.SSLContext:
    """Create SSL context with optional certificate verification.

    Args:
        verify: If True, verify SSL certificates using certifi bundle.
                If False, disable verification (for problematic servers).
    """
    if verify:
        return ssl.create_default_context(cafile=certifi.where())
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


async def fetch_pdf(
    url: str,
    timeout: float = 60,
    max_bytes: int = MAX_PDF_BYTES,
) -> bytes:
    """Download a document and return its bytes.

    Args:
        url: Document URL
        timeout: Request timeout in seconds
        max_bytes: Reject bodies larger than this

    Returns:
        Response body

    Raises:
        DownloadError: On non-200 status, oversize body, timeout, or transport error
    """
    if not url.lower().startswith(("http://", "https://")):
        raise DownloadError(url, "not an http(s) URL")
    logger.debug("Fetching document: %s", url)

    async def fetch_with_ssl(session: aiohttp.ClientSession, verify: bool) -> bytes:
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=timeout),
            headers={"User-Agent": USER_AGENT, "Accept": "application/pdf,*/*"},
            ssl=create_ssl_context(verify),
        ) as resp:
            if resp.status != 200:
                raise DownloadError(url, f"HTTP {resp.status}", status=resp.status)
            if resp.content_length and resp.content_length > max_bytes:
                raise DownloadError(url, f"document too large ({resp.content_length} bytes)")
            body = await resp.read()
            if len(body) > max_bytes:
                raise DownloadError(url, f"document too large ({len(body)} bytes)")
            return body

    try:
        async with aiohttp.ClientSession() as session:
            try:
                body = await fetch_with_ssl(session, verify=True)
            except aiohttp.ClientSSLError:
                logger.debug("SSL error, retrying without verification: %s", url)
                body = await fetch_with_ssl(session, verify=False)
    except DownloadError:
        raise
    except asyncio.TimeoutError:
        raise DownloadError(url, f"timeout after {timeout}s")
    except aiohttp.ClientError as e:
        raise DownloadError(url, f"{type(e).__name__}: {e}") from e

    logger.debug("Document fetched | url=%s bytes=%d", url, len(body))
    return body
