from __future__ import annotations

from typing import Any, Iterable

from app.core.config import settings


def validate_tokens(
    tokens: Iterable[Any], min_length: int | None = None
) -> list[str]:
    """Drop duplicate and implausible push tokens.

    The first occurrence of each token is kept.  Empty values, non-strings
    and strings shorter than *min_length* (``settings.min_token_length``
    by default) are discarded.
    """
    if min_length is None:
        min_length = settings.min_token_length
    seen: set[str] = set()
    valid: list[str] = []
    for token in tokens:
        if not isinstance(token, str) or not token or len(token) < min_length:
            continue
        if token in seen:
            continue
        seen.add(token)
        valid.append(token)
    return valid
