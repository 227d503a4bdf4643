from __future__ import annotations

import logging

from app.core.errors import InvalidInputError
from app.repositories.member.repository import MemberRepository

logger = logging.getLogger(__name__)


class MemberService:
    """Device registration for family members."""

    def __init__(self, repo: MemberRepository) -> None:
        self._repo = repo

    async def register_token(self, uid: str, token: str) -> bool:
        """Record *token* as a device of member *uid*.

        Returns ``True`` if the token was new for that member.

        Raises:
            InvalidInputError: *uid* or *token* is empty.
            RuntimeError: raised by the repository on database failure.
        """
        if not uid or not token:
            raise InvalidInputError("Missing uid or token")
        added = await self._repo.add_token(uid, token)
        if added:
            logger.info("Registered a new push token for user %s", uid)
        return added
