"""WebSocket transport with acknowledgements and bounded reconnection."""
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from enum import StrEnum
from typing import Any, Awaitable, Callable

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from chat_relay.domain.value_objects.enums import ServerEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Awaitable[None]]
ConnectedHandler = Callable[[str], Awaitable[None]]
Connector = Callable[[str], Awaitable[ClientConnection]]


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


async def _default_connector(url: str) -> ClientConnection:
    return await connect(url)


class ChatConnection:
    """One logical link to the server.

    Each successful (re)connect yields a new connection identity; there is no
    session resumption, so ``on_connected`` handlers must re-announce
    presence. Acknowledgement futures belonging to a dropped socket are
    abandoned, never resolved; callers that need an answer must bound their
    wait.
    """

    def __init__(
        self,
        url: str,
        *,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        connector: Connector | None = None,
    ) -> None:
        self._url = url
        self._reconnect_attempts = reconnect_attempts
        self._reconnect_delay = reconnect_delay
        self._connector = connector or _default_connector
        self._ws: ClientConnection | None = None
        self._reader: asyncio.Task[None] | None = None
        self._handlers: dict[str, list[EventHandler]] = {}
        self._connected_handlers: list[ConnectedHandler] = []
        self._acks: dict[str, asyncio.Future[dict[str, Any]]] = {}
        self._closing = False
        self.status = ConnectionStatus.DISCONNECTED
        self.connection_id: str | None = None

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def on_connected(self, handler: ConnectedHandler) -> None:
        self._connected_handlers.append(handler)

    async def open(self) -> None:
        if self._reader is not None and not self._reader.done():
            return
        self._closing = False
        self.status = ConnectionStatus.CONNECTING
        try:
            self._ws = await self._connector(self._url)
        except (OSError, WebSocketException) as exc:
            logger.warning("Initial connect to %s failed: %s", self._url, exc)
            self._ws = None
        self._reader = asyncio.create_task(self._run(), name="chat-connection-reader")

    async def close(self) -> None:
        self._closing = True
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except WebSocketException:
                logger.debug("Close on an already broken socket", exc_info=True)
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        self._acks.clear()
        self.connection_id = None
        self.status = ConnectionStatus.DISCONNECTED

    async def emit(self, event: str, data: dict[str, Any] | None = None) -> bool:
        """Fire and forget. Returns False if nothing could be sent."""
        return await self._send({"type": event, "data": data or {}})

    async def request(self, event: str, data: dict[str, Any] | None = None) -> asyncio.Future[dict[str, Any]]:
        """Send with an acknowledgement. The future may never complete."""
        ack_id = uuid.uuid4().hex
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._acks[ack_id] = future
        await self._send({"type": event, "data": data or {}, "ack_id": ack_id})
        return future

    async def _send(self, envelope: dict[str, Any]) -> bool:
        ws = self._ws
        if ws is None or self.status != ConnectionStatus.CONNECTED:
            logger.debug("Dropping %s while %s", envelope["type"], self.status)
            return False
        try:
            await ws.send(json.dumps(envelope))
        except (ConnectionClosed, WebSocketException) as exc:
            logger.debug("Send of %s failed: %s", envelope["type"], exc)
            return False
        return True

    async def _run(self) -> None:
        while not self._closing:
            if self._ws is not None:
                try:
                    async for raw in self._ws:
                        await self._dispatch(raw)
                except ConnectionClosed as exc:
                    logger.info("Connection lost: %s", exc)
            if self._closing:
                break
            self._abandon_session()
            if not await self._reconnect():
                self.status = ConnectionStatus.DISCONNECTED
                logger.error("Giving up after %d reconnection attempts", self._reconnect_attempts)
                break

    def _abandon_session(self) -> None:
        self._ws = None
        self._acks.clear()
        self.connection_id = None

    async def _reconnect(self) -> bool:
        self.status = ConnectionStatus.RECONNECTING
        for attempt in range(1, self._reconnect_attempts + 1):
            await asyncio.sleep(self._reconnect_delay)
            logger.info("Reconnecting (attempt %d/%d)", attempt, self._reconnect_attempts)
            try:
                self._ws = await self._connector(self._url)
            except (OSError, WebSocketException) as exc:
                logger.info("Reconnect attempt %d failed: %s", attempt, exc)
                continue
            return True
        return False

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            envelope = json.loads(raw)
            event = envelope["type"]
        except (ValueError, KeyError, TypeError):
            logger.warning("Ignoring malformed frame")
            return
        data = envelope.get("data")

        if event == ServerEvent.ACK:
            future = self._acks.pop(envelope.get("ack_id") or "", None)
            if future is not None and not future.done():
                future.set_result(data or {})
            return

        if event == ServerEvent.CONNECTED:
            self.connection_id = (data or {}).get("id")
            self.status = ConnectionStatus.CONNECTED
            for handler in self._connected_handlers:
                await self._call(handler, self.connection_id)
            return

        for handler in self._handlers.get(event, []):
            await self._call(handler, data)

    async def _call(self, handler: Callable[[Any], Awaitable[None]], arg: Any) -> None:
        try:
            await handler(arg)
        except Exception:
            logger.exception("Handler %r failed", handler)
