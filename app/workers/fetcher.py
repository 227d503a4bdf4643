"""Async page fetcher.

Downloads the HTML of a product page for metadata scraping and classifies
every failure into the service error taxonomy.

Uses httpx.AsyncClient which is meant to be long-lived and reused.
A single shared client is managed by the module; see ``get_http_client``
and ``close_http_client`` for lifecycle hooks.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Optional

import httpx
from tenacity import (
    RetryError,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    wait_exponential,
)

from app.core.config import settings
from app.core.errors import (
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    PayloadTooLargeError,
    UnknownError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)

# Module-level shared client
_http_client: Optional[httpx.AsyncClient] = None

_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


def get_http_client() -> httpx.AsyncClient:
    """Return the shared AsyncClient.  Creates one if missing."""
    global _http_client  # noqa: PLW0603
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout),
            follow_redirects=True,
            verify=settings.http_verify_ssl,
            headers={"User-Agent": settings.http_user_agent},
        )
    return _http_client


async def close_http_client() -> None:
    """Close the shared AsyncClient gracefully."""
    global _http_client  # noqa: PLW0603
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
        _http_client = None
        logger.info("HTTP client closed.")


@dataclass
class FetchedPage:
    html: str
    url: str  # final URL after redirects


def _is_dns_failure(exc: BaseException) -> bool:
    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, socket.gaierror):
            return True
        if any(marker in str(current).lower() for marker in _DNS_FAILURE_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False


@retry(
    retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
    stop=lambda rs: rs.attempt_number >= settings.http_max_retries + 1,
    wait=wait_exponential(multiplier=0.5, min=0.5, max=10),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=False,
)
async def _fetch_with_retry(url: str) -> FetchedPage:
    """Single fetch attempt; tenacity retries on transient errors."""
    return await _do_fetch(url)


async def fetch_page(url: str) -> FetchedPage:
    """Download *url* and return its HTML and final address.

    Timeouts and connection failures are retried (``http_max_retries``
    extra attempts).  The ``stop`` condition reads the setting per attempt
    so patches in tests take effect.

    Raises:
        UpstreamTimeoutError: every attempt timed out.
        NotFoundError: DNS lookup failed or the server answered 404.
        ForbiddenError: the server answered 403.
        PayloadTooLargeError: the body exceeds ``metadata_max_bytes``.
        InvalidInputError: httpx rejected the URL.
        UnknownError: anything else.
    """
    try:
        return await _fetch_with_retry(url)
    except RetryError as exc:
        last = exc.last_attempt.exception()
        logger.warning(
            "Fetch of %s failed after %d attempts: %s",
            url,
            exc.last_attempt.attempt_number,
            last,
        )
        if isinstance(last, httpx.TimeoutException):
            raise UpstreamTimeoutError() from last
        if last is not None and _is_dns_failure(last):
            raise NotFoundError("Website not found") from last
        raise UnknownError("Failed to fetch metadata") from last


async def _do_fetch(url: str) -> FetchedPage:
    """Perform a single HTTP GET and enforce the status, time and size rules.

    ``http_timeout`` bounds the whole attempt, body included; httpx's own
    timeouts only bound each network phase.
    """
    client = get_http_client()
    try:
        async with asyncio.timeout(settings.http_timeout):
            return await _download(client, url)
    except TimeoutError as exc:
        raise httpx.TimeoutException(
            f"No complete response within {settings.http_timeout}s"
        ) from exc


async def _download(client: httpx.AsyncClient, url: str) -> FetchedPage:
    limit = settings.metadata_max_bytes
    try:
        async with client.stream("GET", url) as response:
            if response.status_code == 404:
                raise NotFoundError("Page not found")
            if response.status_code == 403:
                raise ForbiddenError()
            if response.is_error:
                logger.warning(
                    "Upstream %s responded with HTTP %d", url, response.status_code
                )
                raise UnknownError("Failed to fetch metadata")

            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > limit:
                raise PayloadTooLargeError()

            body = bytearray()
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) > limit:
                    raise PayloadTooLargeError()
            final_url = str(response.url)
            encoding = response.encoding or "utf-8"
    except httpx.InvalidURL as exc:
        raise InvalidInputError("Invalid URL format") from exc
    except httpx.TimeoutException:
        raise  # propagate for retry logic
    except httpx.ConnectError:
        raise  # propagate for retry logic
    except httpx.RequestError as exc:
        raise UnknownError("Failed to fetch metadata") from exc

    try:
        html = body.decode(encoding, errors="replace")
    except LookupError:
        html = body.decode("utf-8", errors="replace")
    return FetchedPage(html=html, url=final_url)
