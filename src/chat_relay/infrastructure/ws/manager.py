"""In-process WebSocket connection manager."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Collection
from typing import Any

from fastapi import WebSocket

from chat_relay.domain.value_objects.enums import ServerEvent
from chat_relay.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks live sockets by connection identity. Implements ``EventFanout`` for this process."""

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    async def connect(self, ws: WebSocket) -> str:
        """Accept the socket, assign it a fresh identity and tell the client what it is."""
        await ws.accept()
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = ws
        await ws.send_text(
            WsOutbound(type=ServerEvent.CONNECTED, data={"id": connection_id}).model_dump_json()
        )
        logger.debug("WS connected: %s (total=%d)", connection_id, len(self._connections))
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self._connections.pop(connection_id, None) is not None:
            logger.debug("WS disconnected: %s", connection_id)

    async def publish(
        self,
        event_type: str,
        data: dict[str, Any] | list[Any],
        *,
        targets: Collection[str] | None = None,
    ) -> None:
        """Send an event to every connection, or only to ``targets`` held by this process."""
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        if targets is None:
            recipients = list(self._connections.items())
        else:
            recipients = [
                (cid, self._connections[cid]) for cid in targets if cid in self._connections
            ]
        dead: list[str] = []
        for cid, ws in recipients:
            try:
                await ws.send_text(raw)
            except Exception:
                dead.append(cid)
        for cid in dead:
            self.disconnect(cid)

    async def reply(
        self,
        connection_id: str,
        ack_id: str,
        data: dict[str, Any],
    ) -> None:
        """Answer an acknowledged request on the socket that made it."""
        ws = self._connections.get(connection_id)
        if ws is None:
            return
        raw = WsOutbound(type=ServerEvent.ACK, data=data, ack_id=ack_id).model_dump_json()
        try:
            await ws.send_text(raw)
        except Exception:
            self.disconnect(connection_id)
