"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, Request

from chat_relay.application.uow import UnitOfWork
from chat_relay.infrastructure.db.uow import open_uow
from chat_relay.services.hub import ChatHub


async def get_uow() -> AsyncIterator[UnitOfWork]:
    async with open_uow() as uow:
        yield uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


def get_hub(request: Request) -> ChatHub:
    return request.app.state.hub


HubDep = Annotated[ChatHub, Depends(get_hub)]
