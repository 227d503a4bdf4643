from __future__ import annotations

from pydantic import BaseModel


class PageMetadata(BaseModel):
    """Structured preview of a product page.

    Every field is optional; the API omits fields that are ``None``.
    """

    title: str | None = None
    description: str | None = None
    image: str | None = None
    logo: str | None = None
    price: float | None = None
    url: str | None = None
    site: str | None = None
