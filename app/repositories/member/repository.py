from __future__ import annotations

import logging
from datetime import datetime, timezone

from pymongo import UpdateOne
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.collections import CollectionNames
from app.models.family.document import MemberDocument
from app.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class MemberRepository(BaseRepository[MemberDocument]):
    """MongoDB repository for the ``users`` collection.

    Only the push-token attributes of a user are managed here; the rest
    of the user document belongs to the front-end.
    """

    COLLECTION_NAME = CollectionNames.USERS
    DOCUMENT_MODEL = MemberDocument

    async def find_by_uid(self, uid: str) -> MemberDocument | None:
        """Return the stored member *uid*, or ``None`` if there is none."""
        return await self._get(uid)

    async def replace_tokens_many(self, tokens_by_uid: dict[str, list[str]]) -> None:
        """Overwrite the token sequences of several members in one batch.

        Raises:
            RuntimeError: the batched write failed.
        """
        if not tokens_by_uid:
            return
        now = datetime.now(timezone.utc)
        operations = [
            UpdateOne(
                {"_id": uid},
                {"$set": {"tokens": tokens, "tokens_updated_at": now}},
            )
            for uid, tokens in tokens_by_uid.items()
        ]
        try:
            await self._col.bulk_write(operations, ordered=False)
        except PyMongoError as exc:
            logger.exception("MongoDB token batch update failed for %d members", len(operations))
            raise RuntimeError("Database write error") from exc

    async def replace_tokens(self, uid: str, tokens: list[str]) -> None:
        """Overwrite the token sequence of member *uid*.

        Raises:
            RuntimeError: the write failed.
        """
        try:
            await self._col.update_one(
                {"_id": uid},
                {
                    "$set": {
                        "tokens": tokens,
                        "tokens_updated_at": datetime.now(timezone.utc),
                    }
                },
            )
        except PyMongoError as exc:
            logger.exception("MongoDB token update failed for uid=%s", uid)
            raise RuntimeError("Database write error") from exc

    async def add_token(self, uid: str, token: str) -> bool:
        """Append *token* to the member's sequence unless already present.

        Creates the member document when it does not exist yet.  New
        tokens land at the end, so the tail of the sequence is always the
        most recently registered devices.

        Returns ``True`` if the token was added.

        Raises:
            RuntimeError: the write failed.
        """
        now = datetime.now(timezone.utc)
        try:
            await self._col.update_one(
                {"_id": uid, "tokens": {"$ne": token}},
                {
                    "$push": {"tokens": token},
                    "$set": {"updated_at": now},
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
            )
        except DuplicateKeyError:
            # The filter missed because the member already holds the token.
            return False
        except PyMongoError as exc:
            logger.exception("MongoDB token registration failed for uid=%s", uid)
            raise RuntimeError("Database write error") from exc
        return True
