from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class NotificationPayload(BaseModel):
    """What to show on the members' devices."""

    model_config = ConfigDict(populate_by_name=True)

    title: StrictStr = Field(min_length=1)
    body: str | None = None
    exclude_uid: str | None = Field(default=None, alias="excludeUid")
    image: str | None = None


class SendNotificationRequest(BaseModel):
    """Request body for POST /notifications."""

    model_config = ConfigDict(populate_by_name=True)

    family_code: StrictStr = Field(min_length=1, alias="familyCode")
    payload: NotificationPayload


class NotificationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success_count: int = Field(alias="successCount")
    failure_count: int = Field(alias="failureCount")
    total_tokens: int = Field(alias="totalTokens")


class TokenRegistrationRequest(BaseModel):
    """Request body for PUT /members/{uid}/tokens."""

    token: StrictStr = Field(min_length=1)


class TokenRegistrationResponse(BaseModel):
    registered: bool
