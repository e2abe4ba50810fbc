from __future__ import annotations

from fastapi import APIRouter, Query

from chat_relay.api.deps import UoWDep
from chat_relay.api.v1.schemas.message import MessageResponse
from chat_relay.config import settings
from chat_relay.services import history

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("", response_model=list[MessageResponse])
async def list_messages(
    uow: UoWDep,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.HISTORY_DEFAULT_LIMIT, ge=1, le=settings.HISTORY_MAX_LIMIT),
) -> list[MessageResponse]:
    messages = await history.list_messages(page, limit, uow)
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.get("/recent", response_model=list[MessageResponse])
async def list_recent_messages(
    uow: UoWDep,
    before: int | None = Query(None, ge=1),
    limit: int = Query(settings.HISTORY_DEFAULT_LIMIT, ge=1, le=settings.HISTORY_MAX_LIMIT),
) -> list[MessageResponse]:
    messages = await history.list_recent(before, limit, uow)
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.get("/{message_id}", response_model=MessageResponse)
async def get_message(message_id: int, uow: UoWDep) -> MessageResponse:
    message = await history.get_message(message_id, uow)
    return MessageResponse.model_validate(message, from_attributes=True)
