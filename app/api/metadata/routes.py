from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from app.core.errors import ServiceError
from app.models.common import ErrorResponse
from app.models.metadata.schemas import PageMetadata
from app.services.metadata.cache import metadata_cache
from app.services.metadata.service import MetadataService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/metadata", tags=["metadata"])


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------


def _get_service() -> MetadataService:
    """FastAPI dependency that builds a ``MetadataService`` for each request.

    Every request shares the process-wide ``metadata_cache``.
    """
    return MetadataService(metadata_cache)


# ---------------------------------------------------------------------------
# GET /metadata
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=PageMetadata,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        408: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Scrape preview metadata for a product URL",
)
async def get_metadata(
    url: str | None = None,
    service: MetadataService = Depends(_get_service),
) -> PageMetadata:
    """Return title, description, image, logo, price and site for *url*.

    Results are cached in-process for 30 minutes.

    - **200**: metadata scraped (or served from cache)
    - **400**: ``url`` missing or not a valid absolute URL
    - **403**: the site refused access
    - **404**: DNS lookup failed or the page does not exist
    - **408**: the site did not answer within the timeout
    - **413**: the page is larger than the size limit
    - **500**: any other failure
    """
    if not url:
        raise HTTPException(status_code=400, detail="URL parameter is required")

    try:
        return await service.fetch_metadata(url)
    except ServiceError as exc:
        logger.warning("GET /metadata failed for %s: %s", url, exc.message)
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    except Exception as exc:
        logger.exception("GET /metadata unexpected error for %s: %s", url, exc)
        raise HTTPException(status_code=500, detail="Failed to fetch metadata")


@router.options("", include_in_schema=False)
async def metadata_preflight() -> Response:
    return Response(status_code=200)
