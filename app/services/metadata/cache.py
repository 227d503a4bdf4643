"""In-process cache of scraped page metadata.

Entries expire after a fixed TTL but are only dropped when the cache is
full, oldest insertion first.  The cache lives in one process; several
server instances each keep their own copy.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from app.core.config import settings
from app.models.metadata.document import CachedMetadata
from app.models.metadata.schemas import PageMetadata

logger = logging.getLogger(__name__)


class MetadataCacheBackend(Protocol):
    def get(self, key: str) -> PageMetadata | None: ...

    def put(self, key: str, value: PageMetadata) -> None: ...


class MetadataCache:
    """Bounded, insertion-ordered TTL cache.

    Overwriting a key keeps its original insertion position, so a
    re-fetched URL is still evicted according to when it first arrived.
    No locking: concurrent misses on the same key both write, last
    write wins.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CachedMetadata] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> PageMetadata | None:
        """Return the fresh value for *key*; expired entries count as misses."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.fetched_at > self._ttl:
            return None
        return entry.value

    def put(self, key: str, value: PageMetadata) -> None:
        self._entries[key] = CachedMetadata(
            key=key, value=value, fetched_at=self._clock()
        )
        if len(self._entries) > self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("Metadata cache full; evicted %s", oldest)

    def clear(self) -> None:
        self._entries.clear()


#: Process-wide cache used by the API.
metadata_cache = MetadataCache(
    ttl_seconds=settings.metadata_cache_ttl_seconds,
    max_entries=settings.metadata_cache_max_entries,
)
