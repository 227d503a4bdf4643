from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.core.database import db
from app.core.errors import ServiceError
from app.models.common import ErrorResponse
from app.models.notifications.schemas import (
    TokenRegistrationRequest,
    TokenRegistrationResponse,
)
from app.repositories.member.repository import MemberRepository
from app.services.members.service import MemberService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/members", tags=["members"])


def _get_service() -> MemberService:
    return MemberService(MemberRepository.from_db(db))


@router.put(
    "/{uid}/tokens",
    response_model=TokenRegistrationResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Register a device push token for a member",
)
async def register_token(
    uid: str,
    request: TokenRegistrationRequest,
    service: MemberService = Depends(_get_service),
) -> TokenRegistrationResponse:
    """Append the token to the member's devices if it is not known yet.

    - **200**: ``registered`` tells whether the token was new
    - **400**: missing or invalid token
    - **500**: database failure
    """
    try:
        added = await service.register_token(uid, request.token)
    except ServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    except Exception as exc:
        logger.error("PUT /members/%s/tokens DB error: %s", uid, exc)
        raise HTTPException(status_code=500, detail="Failed to register token")
    return TokenRegistrationResponse(registered=added)
