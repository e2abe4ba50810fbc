from __future__ import annotations

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: str = Field(validation_alias="connection_id")
    username: str
    avatar: str | None = None

    model_config = {"from_attributes": True}
