from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response

from app.core.database import db
from app.core.errors import ServiceError
from app.models.common import ErrorResponse, MessageResponse
from app.models.notifications.schemas import NotificationResult, SendNotificationRequest
from app.repositories.family.repository import FamilyRepository
from app.repositories.member.repository import MemberRepository
from app.services.notifications.messenger import PushMessenger
from app.services.notifications.service import (
    NO_VALID_TOKENS_MESSAGE,
    NotificationService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_service() -> NotificationService:
    """FastAPI dependency that builds a ``NotificationService`` for each request."""
    return NotificationService(
        FamilyRepository.from_db(db),
        MemberRepository.from_db(db),
        PushMessenger(),
    )


def _require_json(request: Request) -> None:
    """Reject bodies that are not declared as JSON.

    Runs before body validation, so a wrong content type is reported as
    such rather than as a malformed body.
    """
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        raise HTTPException(
            status_code=400, detail="Content-Type must be application/json"
        )


# ---------------------------------------------------------------------------
# POST /notifications
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=NotificationResult | MessageResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    dependencies=[Depends(_require_json)],
    summary="Send a push notification to a family",
)
async def send_notification(
    request: SendNotificationRequest,
    background_tasks: BackgroundTasks,
    service: NotificationService = Depends(_get_service),
) -> NotificationResult | MessageResponse:
    """Push the notification to every device of the family's members.

    Tokens the provider reports as failed are removed from the members'
    records by a background task after the response is sent.

    - **200**: sent; or nothing to send when no member has a valid token
    - **400**: invalid body, content type, payload or device tokens
    - **404**: family not found
    - **500**: push backend not configured, or any other failure
    """
    try:
        outcome = await service.notify_family(request.family_code, request.payload)
    except ServiceError as exc:
        logger.warning(
            "POST /notifications failed for family %s: %s",
            request.family_code,
            exc.message,
        )
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    except Exception as exc:
        logger.exception(
            "POST /notifications unexpected error for family %s: %s",
            request.family_code,
            exc,
        )
        raise HTTPException(status_code=500, detail="Failed to send notifications")

    if outcome.failed_tokens:
        background_tasks.add_task(
            service.cleanup_failed_tokens, outcome.member_ids, outcome.failed_tokens
        )

    if outcome.result is None:
        return MessageResponse(ok=True, message=NO_VALID_TOKENS_MESSAGE)
    return outcome.result


@router.options("", include_in_schema=False)
async def notifications_preflight() -> Response:
    return Response(status_code=200)
