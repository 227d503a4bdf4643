from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FamilyDocument(BaseModel):
    """A stored family group, keyed by its family code."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    code: str = Field(alias="_id")
    family_name: str | None = Field(default=None, alias="familyName")
    members: list[str] = []

    @field_validator("members", mode="before")
    @classmethod
    def _members_as_list(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [uid for uid in value if isinstance(uid, str) and uid]


class MemberDocument(BaseModel):
    """A stored user, keyed by uid.

    ``tokens`` is kept exactly as stored (oldest first).  Entries are not
    checked here; the token validator discards malformed ones at send time.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    uid: str = Field(alias="_id")
    tokens: list[Any] = []

    @field_validator("tokens", mode="before")
    @classmethod
    def _tokens_as_list(cls, value: Any) -> list:
        return value if isinstance(value, list) else []
