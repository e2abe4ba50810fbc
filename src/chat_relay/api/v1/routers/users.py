from __future__ import annotations

from fastapi import APIRouter

from chat_relay.api.deps import HubDep
from chat_relay.api.v1.schemas.user import UserResponse

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=list[UserResponse])
async def list_users(hub: HubDep) -> list[UserResponse]:
    return [UserResponse.model_validate(e, from_attributes=True) for e in hub.registry.roster()]
