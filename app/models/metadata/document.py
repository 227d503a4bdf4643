from __future__ import annotations

from pydantic import BaseModel

from app.models.metadata.schemas import PageMetadata


class CachedMetadata(BaseModel):
    """An entry in the in-process metadata cache.

    ``fetched_at`` is a reading of the cache's clock (seconds), not a
    wall-clock datetime.
    """

    key: str
    value: PageMetadata
    fetched_at: float
