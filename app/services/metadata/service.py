from __future__ import annotations

import logging
from typing import Annotated, Awaitable, Callable
from urllib.parse import urlsplit

from pydantic import AnyUrl, TypeAdapter, UrlConstraints, ValidationError

from app.core.errors import InvalidInputError
from app.models.metadata.schemas import PageMetadata
from app.services.metadata.cache import MetadataCacheBackend
from app.services.metadata.extractor import extract_metadata
from app.services.metadata.price import extract_price, parse_price
from app.workers.fetcher import FetchedPage, fetch_page

logger = logging.getLogger(__name__)

# Absolute http(s) URLs of any length.
_PageUrl = TypeAdapter(
    Annotated[AnyUrl, UrlConstraints(allowed_schemes=["http", "https"], host_required=True)]
)


def _site_name(url: str) -> str:
    hostname = urlsplit(url).hostname or ""
    return hostname.removeprefix("www.")


class MetadataService:
    """Product-page previews with an in-process cache in front."""

    def __init__(
        self,
        cache: MetadataCacheBackend,
        fetch: Callable[[str], Awaitable[FetchedPage]] = fetch_page,
    ) -> None:
        self._cache = cache
        self._fetch = fetch

    async def fetch_metadata(self, url: str) -> PageMetadata:
        """Return the preview for *url*, from cache when fresh.

        Raises:
            InvalidInputError: *url* is not an absolute http(s) URL; no
                request is made.
            ServiceError: any classified fetch failure, see
                :func:`app.workers.fetcher.fetch_page`.  Failures are
                never cached.
        """
        try:
            _PageUrl.validate_python(url)
        except ValidationError as exc:
            raise InvalidInputError("Invalid URL format") from exc

        cache_key = url.lower()
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info("Serving metadata from cache: %s", url)
            return cached

        logger.info("Fetching metadata for: %s", url)
        page = await self._fetch(url)
        scraped = extract_metadata(page.html, page.url)

        price = scraped.price
        if not price:
            price = extract_price(scraped.title or "") or extract_price(
                scraped.description or ""
            )
        if price:
            price = parse_price(price)

        fields = {
            "title": scraped.title.strip() if scraped.title else None,
            "description": scraped.description.strip() if scraped.description else None,
            "image": scraped.image,
            "logo": scraped.logo,
            "price": price,
            "url": page.url,
            "site": _site_name(page.url),
        }
        result = PageMetadata(**{key: value for key, value in fields.items() if value})

        self._cache.put(cache_key, result)
        return result
