from __future__ import annotations

import logging
from dataclasses import dataclass, field

from app.core.config import settings
from app.core.errors import InvalidInputError, NotFoundError
from app.models.notifications.schemas import NotificationPayload, NotificationResult
from app.repositories.family.repository import FamilyRepository
from app.repositories.member.repository import MemberRepository
from app.services.notifications.messenger import PushMessenger
from app.services.notifications.tokens import validate_tokens

logger = logging.getLogger(__name__)

NO_VALID_TOKENS_MESSAGE = "No valid tokens to send notifications to"


@dataclass
class FanoutOutcome:
    """What a fan-out produced.

    ``result`` is ``None`` when there was no valid token to send to.
    ``failed_tokens`` and ``member_ids`` feed the post-response cleanup.
    """

    result: NotificationResult | None
    member_ids: list[str] = field(default_factory=list)
    failed_tokens: list[str] = field(default_factory=list)


class NotificationService:
    """Push a notification to every device of a family."""

    def __init__(
        self,
        families: FamilyRepository,
        members: MemberRepository,
        messenger: PushMessenger,
    ) -> None:
        self._families = families
        self._members = members
        self._messenger = messenger

    async def notify_family(
        self, family_code: str, payload: NotificationPayload
    ) -> FanoutOutcome:
        """Fan *payload* out to the family's members.

        Members with more than ``max_tokens_per_member`` stored tokens are
        trimmed to their most recent ones in a single batched write; a
        failure there, or while reading one member, is logged and the send
        goes on.

        Raises:
            InvalidInputError: bad family code or title, or no members.
            ConfigError: push messaging is not configured.
            NotFoundError: the family does not exist.
            ServiceError: classified push provider failures.
        """
        if not isinstance(family_code, str) or not family_code:
            raise InvalidInputError("Missing or invalid familyCode")
        if not isinstance(payload.title, str) or not payload.title:
            raise InvalidInputError("Missing or invalid notification title")

        self._messenger.ensure_ready()

        family = await self._families.find_by_code(family_code)
        if family is None:
            raise NotFoundError("Family not found")
        if not family.members:
            raise InvalidInputError("No users in this family")

        keep = settings.max_tokens_per_member
        tokens: list = []
        trims: dict[str, list[str]] = {}
        for uid in family.members:
            if payload.exclude_uid and uid == payload.exclude_uid:
                continue
            try:
                member = await self._members.find_by_uid(uid)
            except Exception as exc:
                logger.warning("Error processing user %s: %s", uid, exc)
                continue
            if member is None:
                continue
            tokens.extend(member.tokens)
            if len(member.tokens) > keep:
                trims[uid] = member.tokens[-keep:]

        if trims:
            try:
                await self._members.replace_tokens_many(trims)
            except Exception as exc:
                logger.error("Token trim batch failed for family %s: %s", family_code, exc)

        valid_tokens = validate_tokens(tokens)
        if not valid_tokens:
            logger.info("No valid tokens for family %s", family_code)
            return FanoutOutcome(result=None)

        body = (payload.body or "").strip() or settings.push_default_body
        logger.info(
            "Sending notification to %d tokens for family %s",
            len(valid_tokens),
            family_code,
        )
        outcome = await self._messenger.send_multicast(
            valid_tokens,
            title=payload.title.strip(),
            body=body,
            image=payload.image or None,
        )
        if outcome.failure_count:
            logger.info("Notification had %d failures", outcome.failure_count)

        return FanoutOutcome(
            result=NotificationResult(
                success_count=outcome.success_count,
                failure_count=outcome.failure_count,
                total_tokens=len(valid_tokens),
            ),
            member_ids=list(family.members),
            failed_tokens=outcome.failed_tokens,
        )

    async def cleanup_failed_tokens(
        self, member_ids: list[str], failed_tokens: list[str]
    ) -> None:
        """Remove tokens the provider reported as failed.

        Runs as a background task after the response is sent.  Only members
        whose sequence changed are written.  Errors are logged, never raised.
        """
        failed = set(failed_tokens)
        try:
            for uid in member_ids:
                member = await self._members.find_by_uid(uid)
                if member is None:
                    continue
                remaining = [
                    token
                    for token in member.tokens
                    if not (isinstance(token, str) and token in failed)
                ]
                if len(remaining) != len(member.tokens):
                    await self._members.replace_tokens(uid, remaining)
                    logger.info(
                        "Removed %d stale tokens for user %s",
                        len(member.tokens) - len(remaining),
                        uid,
                    )
        except Exception as exc:
            logger.exception("Token cleanup failed: %s", exc)
