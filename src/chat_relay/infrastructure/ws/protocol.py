"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # user_join | send_message | message_read | logout | ...
    data: dict[str, Any] = {}
    ack_id: str | None = None


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # receive_message | user_list | ack | error | pong | ...
    data: dict[str, Any] | list[Any] = {}
    ack_id: str | None = None


class JoinPayload(BaseModel):
    username: str


class ProfilePayload(BaseModel):
    avatar: str | None = None
    username: str | None = None


class SendMessagePayload(BaseModel):
    message: str | None = None
    attachment: str | None = None
    to: str | None = None
    client_temp_id: str | None = None


class PrivateMessagePayload(BaseModel):
    to: str
    message: str | None = None
    attachment: str | None = None
    client_temp_id: str | None = None


class TypingPayload(BaseModel):
    is_typing: bool


class MessageReadPayload(BaseModel):
    message_id: int
