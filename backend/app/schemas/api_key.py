from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ApiKeyCreate(BaseModel):
    user_id: UUID
    name: str | None = Field(default=None, max_length=255)
    expires_at: datetime | None = None


class ApiKeyResponse(BaseModel):
    id: UUID
    user_id: UUID
    key_prefix: str
    name: str | None
    last_used_at: datetime | None
    expires_at: datetime | None
    status: str

    model_config = {"from_attributes": True}
