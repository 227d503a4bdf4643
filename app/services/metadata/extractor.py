"""HTML metadata extraction.

Pulls the preview fields of a page out of its markup using BeautifulSoup.
Each field is resolved from an ordered list of sources (Open Graph,
Twitter cards, plain ``<meta>``, microdata, ``<link>`` and JSON-LD); the
first non-empty value wins.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterator
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag


@dataclass
class ScrapedMetadata:
    title: str | None = None
    description: str | None = None
    image: str | None = None
    logo: str | None = None
    price: str | float | None = None


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str | None:
    tag = soup.find("meta", attrs=attrs)
    if isinstance(tag, Tag):
        content = tag.get("content")
        if isinstance(content, str) and content.strip():
            return content.strip()
    return None


def _itemprop(soup: BeautifulSoup, name: str) -> str | None:
    tag = soup.find(attrs={"itemprop": name})
    if not isinstance(tag, Tag):
        return None
    for attr in ("content", "src", "href"):
        value = tag.get(attr)
        if isinstance(value, str) and value.strip():
            return value.strip()
    text = tag.get_text(strip=True)
    return text or None


def _link_href(soup: BeautifulSoup, *rels: str) -> str | None:
    for tag in soup.find_all("link", href=True):
        tag_rels = [r.lower() for r in (tag.get("rel") or [])]
        if any(rel in tag_rels for rel in rels):
            href = tag["href"].strip()
            if href:
                return href
    return None


def _json_ld_objects(soup: BeautifulSoup) -> Iterator[dict[str, Any]]:
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except (json.JSONDecodeError, TypeError):
            continue
        stack = [data]
        while stack:
            node = stack.pop()
            if isinstance(node, list):
                stack.extend(reversed(node))
            elif isinstance(node, dict):
                yield node
                if isinstance(node.get("@graph"), list):
                    stack.extend(reversed(node["@graph"]))


def _json_ld_price(soup: BeautifulSoup) -> str | float | None:
    for node in _json_ld_objects(soup):
        offers = node.get("offers")
        for offer in offers if isinstance(offers, list) else [offers]:
            if not isinstance(offer, dict):
                continue
            for key in ("price", "lowPrice"):
                price = offer.get(key)
                if isinstance(price, (str, int, float)) and not isinstance(price, bool):
                    return price
    return None


def _absolute(url: str | None, base_url: str) -> str | None:
    if not url:
        return None
    return urljoin(base_url, url)


def _first(*candidates: str | None) -> str | None:
    for candidate in candidates:
        if candidate:
            return candidate
    return None


def extract_metadata(html: str, url: str) -> ScrapedMetadata:
    """Extract preview fields from *html* fetched from *url*.

    *url* must be the final (post-redirect) address; relative image and
    logo references are resolved against it.
    """
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    title = _first(
        _meta_content(soup, property="og:title"),
        _meta_content(soup, name="twitter:title"),
        _meta_content(soup, name="title"),
        title_tag.get_text(strip=True) if isinstance(title_tag, Tag) else None,
    )
    description = _first(
        _meta_content(soup, property="og:description"),
        _meta_content(soup, name="twitter:description"),
        _meta_content(soup, name="description"),
        _itemprop(soup, "description"),
    )
    image = _first(
        _meta_content(soup, property="og:image:secure_url"),
        _meta_content(soup, property="og:image"),
        _meta_content(soup, name="twitter:image"),
        _meta_content(soup, name="twitter:image:src"),
        _itemprop(soup, "image"),
        _link_href(soup, "image_src"),
    )
    logo = _first(
        _meta_content(soup, property="og:logo"),
        _itemprop(soup, "logo"),
        _link_href(soup, "apple-touch-icon", "apple-touch-icon-precomposed"),
        _link_href(soup, "icon", "shortcut"),
    )
    price: str | float | None = _first(
        _meta_content(soup, property="product:price:amount"),
        _meta_content(soup, property="og:price:amount"),
        _itemprop(soup, "price"),
    )
    if price is None:
        price = _json_ld_price(soup)

    return ScrapedMetadata(
        title=title,
        description=description,
        image=_absolute(image, url),
        logo=_absolute(logo, url),
        price=price,
    )
