"""Shared plumbing for the MongoDB repositories.

Every stored document is keyed by a natural identifier kept in ``_id``
(the family code, the user uid) and read back through a pydantic model.
A repository therefore declares two things::

    class FamilyRepository(BaseRepository[FamilyDocument]):
        COLLECTION_NAME = CollectionNames.FAMILIES
        DOCUMENT_MODEL = FamilyDocument

and is built from the live connection with ``FamilyRepository.from_db(db)``.
"""

from __future__ import annotations

from abc import ABC
from typing import ClassVar, Generic, TypeVar

from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import BaseModel

from app.core.database import DatabaseManager

DocT = TypeVar("DocT", bound=BaseModel)
RepoT = TypeVar("RepoT", bound="BaseRepository")


class BaseRepository(ABC, Generic[DocT]):
    COLLECTION_NAME: ClassVar[str]
    DOCUMENT_MODEL: ClassVar[type[BaseModel]]

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._col = collection

    @classmethod
    def from_db(cls: type[RepoT], db: DatabaseManager) -> RepoT:
        return cls(db.get_collection(cls.COLLECTION_NAME))

    async def ensure_indexes(self) -> None:
        """Create collection indexes at startup.

        Lookups are by ``_id`` only, so the default does nothing.
        """

    async def _get(self, doc_id: str) -> DocT | None:
        raw = await self._col.find_one({"_id": doc_id})
        if raw is None:
            return None
        return self.DOCUMENT_MODEL.model_validate(raw)
