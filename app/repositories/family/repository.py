from __future__ import annotations

from app.core.collections import CollectionNames
from app.models.family.document import FamilyDocument
from app.repositories.base import BaseRepository


class FamilyRepository(BaseRepository[FamilyDocument]):
    """Read-only access to the ``families`` collection."""

    COLLECTION_NAME = CollectionNames.FAMILIES
    DOCUMENT_MODEL = FamilyDocument

    async def find_by_code(self, code: str) -> FamilyDocument | None:
        return await self._get(code)
