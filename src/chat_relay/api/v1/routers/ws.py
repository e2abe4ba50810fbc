from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PayloadError

from chat_relay.api.middleware.correlation_id import correlation_scope
from chat_relay.application.dto.message import SendMessageDTO
from chat_relay.application.exceptions import AppError
from chat_relay.config import settings
from chat_relay.domain.value_objects.enums import AckStatus, ClientEvent, ServerEvent
from chat_relay.infrastructure.ws.manager import ConnectionManager
from chat_relay.infrastructure.ws.protocol import (
    JoinPayload,
    MessageReadPayload,
    PrivateMessagePayload,
    ProfilePayload,
    SendMessagePayload,
    TypingPayload,
    WsInbound,
    WsOutbound,
)
from chat_relay.services.hub import ChatHub
from chat_relay.services.message_router import AckCallback

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


class _LoggedOut(Exception):
    """Raised inside the read loop once a logout has been acknowledged."""


@router.websocket("/ws")
async def ws_chat(websocket: WebSocket) -> None:
    hub: ChatHub = websocket.app.state.hub
    manager: ConnectionManager = websocket.app.state.connections

    connection_id = await manager.connect(websocket)
    with correlation_scope(connection_id):
        heartbeat_task = asyncio.create_task(
            _heartbeat(websocket), name=f"ws-heartbeat-{connection_id}",
        )
        try:
            await _read_loop(websocket, connection_id, hub, manager)
        except (WebSocketDisconnect, _LoggedOut):
            pass
        except Exception:
            logger.exception("WS error for %s", connection_id)
        finally:
            heartbeat_task.cancel()
            manager.disconnect(connection_id)
            try:
                await hub.lifecycle.leave(connection_id)
            except Exception:
                logger.exception("Cleanup failed for %s", connection_id)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(WsOutbound(type=ServerEvent.PONG, data={}).model_dump_json())
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        # socket already gone; the read loop handles the disconnect
        logger.debug("Heartbeat stopped: %s", exc)


async def _send_error(ws: WebSocket, code: str, **extra: Any) -> None:
    await ws.send_text(
        WsOutbound(type=ServerEvent.ERROR, data={"code": code, **extra}).model_dump_json()
    )


async def _read_loop(
    ws: WebSocket,
    connection_id: str,
    hub: ChatHub,
    manager: ConnectionManager,
) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except PayloadError:
            await _send_error(ws, "invalid_payload")
            continue

        ack = functools.partial(_reply, manager, connection_id, msg.ack_id)
        try:
            await _dispatch(ws, connection_id, hub, msg, ack)
        except PayloadError as exc:
            await _reject(ws, msg, ack, AppError.code, str(exc))
        except AppError as exc:
            await _reject(ws, msg, ack, exc.code, exc.detail)


async def _reply(
    manager: ConnectionManager,
    connection_id: str,
    ack_id: str | None,
    data: dict[str, Any],
) -> None:
    if ack_id is not None:
        await manager.reply(connection_id, ack_id, data)


async def _reject(
    ws: WebSocket,
    msg: WsInbound,
    ack: AckCallback,
    code: str,
    detail: str,
) -> None:
    if msg.ack_id is not None:
        await ack({"status": AckStatus.ERROR, "code": code, "detail": detail})
    else:
        await _send_error(ws, code, type=msg.type, detail=detail)


async def _dispatch(
    ws: WebSocket,
    connection_id: str,
    hub: ChatHub,
    msg: WsInbound,
    ack: AckCallback,
) -> None:
    if msg.type == ClientEvent.PING:
        await ws.send_text(WsOutbound(type=ServerEvent.PONG, data={}).model_dump_json())

    elif msg.type == ClientEvent.USER_JOIN:
        payload = JoinPayload.model_validate(msg.data)
        await hub.lifecycle.join(connection_id, payload.username)

    elif msg.type == ClientEvent.UPDATE_PROFILE:
        profile = ProfilePayload.model_validate(msg.data)
        await hub.lifecycle.update_profile(
            connection_id, username=profile.username, avatar=profile.avatar,
        )

    elif msg.type == ClientEvent.SEND_MESSAGE:
        send = SendMessagePayload.model_validate(msg.data)
        await hub.router.submit(
            connection_id,
            SendMessageDTO(
                client_temp_id=send.client_temp_id,
                body=send.message,
                attachment=send.attachment,
                recipient_id=send.to,
            ),
            ack,
        )

    elif msg.type == ClientEvent.PRIVATE_MESSAGE:
        private = PrivateMessagePayload.model_validate(msg.data)
        await hub.router.submit(
            connection_id,
            SendMessageDTO(
                client_temp_id=private.client_temp_id,
                body=private.message,
                attachment=private.attachment,
                recipient_id=private.to,
            ),
            ack,
        )

    elif msg.type == ClientEvent.TYPING:
        typing = TypingPayload.model_validate(msg.data)
        await hub.typing.set_typing(connection_id, typing.is_typing)

    elif msg.type == ClientEvent.MESSAGE_READ:
        read = MessageReadPayload.model_validate(msg.data)
        await hub.receipts.mark_read(connection_id, read.message_id)

    elif msg.type == ClientEvent.LOGOUT:
        result = await hub.lifecycle.logout(connection_id)
        await ack(result)
        await ws.close()
        raise _LoggedOut

    else:
        await _send_error(ws, "unknown_type", type=msg.type)
