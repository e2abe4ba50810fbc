"""Client Reconciliation Engine: the single owner of the local chat view."""
from __future__ import annotations

import asyncio
import functools
import logging
import secrets
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from chat_relay.client.config import ClientSettings
from chat_relay.client.history import HistoryPager
from chat_relay.client.models import (
    ChatMessage,
    DeliveredEvent,
    PresenceUser,
    ReadEvent,
    ReadReceiptView,
    SendAck,
)
from chat_relay.client.timeline import Entry, Pending, Timeline
from chat_relay.client.transport import (
    ChatConnection,
    ConnectedHandler,
    ConnectionStatus,
    EventHandler,
)
from chat_relay.client.unread import UnreadCounter
from chat_relay.client.viewport import ReadReceiptEmitter, ScrollAnchor, preserve_scroll, should_load_older
from chat_relay.domain.value_objects.enums import AckStatus, ClientEvent, ServerEvent

logger = logging.getLogger(__name__)


class EmptyDraftError(ValueError):
    """Neither text nor attachment; never sent."""


class LogoutOutcome(StrEnum):
    ACKNOWLEDGED = "acknowledged"
    TIMED_OUT = "timed_out"


class Connection(Protocol):
    status: ConnectionStatus
    connection_id: str | None

    def on(self, event: str, handler: EventHandler) -> None: ...
    def on_connected(self, handler: ConnectedHandler) -> None: ...
    async def open(self) -> None: ...
    async def close(self) -> None: ...
    async def emit(self, event: str, data: dict[str, Any] | None = None) -> bool: ...
    async def request(self, event: str, data: dict[str, Any] | None = None) -> asyncio.Future[dict[str, Any]]: ...


def generate_guest_name() -> str:
    return f"guest_{secrets.token_hex(3)}"


def make_temp_id() -> str:
    return f"t-{uuid.uuid4().hex}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChatClient:
    """Merges optimistic sends, echoes, acks, delivery notices and read receipts.

    Nothing else mutates ``timeline``. Handlers may run in any order relative
    to each other; each one applies a single merge step and returns.
    """

    def __init__(
        self,
        connection: Connection,
        pager: HistoryPager | None = None,
        *,
        logout_timeout: float = 5.0,
        read_threshold: float = 0.6,
        load_older_threshold: float = 80.0,
    ) -> None:
        self.connection = connection
        self.pager = pager
        self.timeline = Timeline()
        self.unread = UnreadCounter()
        self.reads = ReadReceiptEmitter(read_threshold)
        self.users: list[PresenceUser] = []
        self.typing_users: list[str] = []
        self.username: str | None = None
        self.avatar: str | None = None
        self.logged_in = False
        self._logout_timeout = logout_timeout
        self._load_older_threshold = load_older_threshold
        self._own_ids: set[str] = set()

        connection.on_connected(self._on_connected)
        connection.on(ServerEvent.RECEIVE_MESSAGE, self._on_message)
        connection.on(ServerEvent.PRIVATE_MESSAGE, self._on_message)
        connection.on(ServerEvent.MESSAGE_DELIVERED, self._on_delivered)
        connection.on(ServerEvent.MESSAGE_READ, self._on_read)
        connection.on(ServerEvent.USER_LIST, self._on_user_list)
        connection.on(ServerEvent.USER_JOINED, self._on_user_joined)
        connection.on(ServerEvent.USER_LEFT, self._on_user_left)
        connection.on(ServerEvent.TYPING_USERS, self._on_typing_users)
        connection.on(ServerEvent.ERROR, self._on_error)

    @property
    def status(self) -> ConnectionStatus:
        return self.connection.status

    @property
    def own_ids(self) -> frozenset[str]:
        """Every connection identity this session has held."""
        return frozenset(self._own_ids)

    # -- session ---------------------------------------------------------

    async def login(self, username: str | None, avatar: str | None = None) -> str:
        """Connect and announce. A blank name becomes a generated guest name."""
        self.username = (username or "").strip() or generate_guest_name()
        self.avatar = avatar
        self.logged_in = True
        await self.connection.open()
        return self.username

    async def logout(self) -> LogoutOutcome:
        """Ask the server to drop us, but never wait longer than the logout timeout.

        Both outcomes end in the same logged-out state.
        """
        future = await self.connection.request(ClientEvent.LOGOUT, {})
        try:
            await asyncio.wait_for(future, timeout=self._logout_timeout)
            outcome = LogoutOutcome.ACKNOWLEDGED
        except TimeoutError:
            logger.info("Logout not acknowledged within %.1fs", self._logout_timeout)
            outcome = LogoutOutcome.TIMED_OUT
        await self._reset()
        return outcome

    async def _reset(self) -> None:
        self.logged_in = False
        await self.connection.close()
        self.timeline.clear()
        self.unread.reset()
        self.reads.reset()
        self.users = []
        self.typing_users = []
        self._own_ids.clear()
        if self.pager is not None:
            self.pager.reset()

    async def _on_connected(self, connection_id: str) -> None:
        if connection_id:
            self._own_ids.add(connection_id)
        if not self.logged_in or not self.username:
            return
        await self.connection.emit(ClientEvent.USER_JOIN, {"username": self.username})
        if self.avatar:
            await self.connection.emit(
                ClientEvent.UPDATE_PROFILE, {"avatar": self.avatar, "username": self.username},
            )

    # -- outgoing --------------------------------------------------------

    async def send_message(
        self,
        text: str | None,
        *,
        attachment: str | None = None,
        to: str | None = None,
    ) -> Pending:
        """Show the message immediately, then hand it to the server."""
        if not (text or "").strip() and not attachment:
            raise EmptyDraftError("Message must have text or an attachment")

        pending = Pending(
            temp_id=make_temp_id(),
            sender_id=self.connection.connection_id,
            sender_name=self.username or "You",
            body=text,
            attachment=attachment,
            created_at=_now(),
            recipient_id=to,
        )
        self.timeline.add_pending(pending)
        self.unread.observe(pending, self._own_ids)

        event = ClientEvent.PRIVATE_MESSAGE if to else ClientEvent.SEND_MESSAGE
        payload: dict[str, Any] = {
            "message": text,
            "attachment": attachment,
            "client_temp_id": pending.temp_id,
        }
        if to:
            payload["to"] = to
        future = await self.connection.request(event, payload)
        future.add_done_callback(functools.partial(self._on_send_ack, pending.temp_id))
        return pending

    async def send_private_message(self, to: str, text: str | None, *, attachment: str | None = None) -> Pending:
        return await self.send_message(text, attachment=attachment, to=to)

    async def set_typing(self, is_typing: bool) -> None:
        await self.connection.emit(ClientEvent.TYPING, {"is_typing": is_typing})

    async def update_profile(self, *, avatar: str | None = None, username: str | None = None) -> None:
        if avatar:
            self.avatar = avatar
        if username and username.strip():
            self.username = username.strip()
        await self.connection.emit(
            ClientEvent.UPDATE_PROFILE, {"avatar": avatar, "username": username},
        )

    async def message_visible(self, entry: Entry, visible_ratio: float) -> bool:
        """Report how much of an entry is on screen; emits a read receipt at most once."""
        message_id = self.reads.on_visible(entry, visible_ratio, self._own_ids)
        if message_id is None:
            return False
        await self.connection.emit(ClientEvent.MESSAGE_READ, {"message_id": message_id})
        return True

    def focus(self, peer_id: str | None) -> None:
        self.unread.focus_on(peer_id)

    async def load_history(self) -> int:
        """Load the next older batch in front of the timeline. Returns entries added."""
        if self.pager is None:
            return 0
        added = await self.pager.load_next(self.timeline)
        for entry in self.timeline.entries[:added]:
            self.unread.observe(entry, self._own_ids)
        return added

    async def load_older(
        self,
        anchor: ScrollAnchor,
        measure_scroll_height: Callable[[], float],
    ) -> float | None:
        """Scroll handler for the top of the list.

        Loads an older batch once the view is within the load-older threshold
        of the top and returns the ``scroll_top`` that keeps the same content
        under the viewport. ``measure_scroll_height`` is called after the
        prepend. Returns None when nothing was loaded.
        """
        if self.pager is None:
            return None
        if not should_load_older(anchor.scroll_top, self._load_older_threshold, loading=self.pager.loading):
            return None
        if not await self.load_history():
            return None
        return preserve_scroll(anchor, measure_scroll_height())

    # -- incoming --------------------------------------------------------

    def _on_send_ack(self, temp_id: str, future: asyncio.Future[dict[str, Any]]) -> None:
        if future.cancelled():
            return
        try:
            ack = SendAck.model_validate(future.result())
        except ValidationError:
            logger.warning("Malformed send acknowledgement for %s", temp_id)
            return
        if ack.status != AckStatus.OK or ack.id is None:
            logger.warning("Server rejected message %s: %s", temp_id, ack.detail)
            return
        self.timeline.acknowledge(temp_id, ack.id, ack.created_at)

    async def _on_message(self, data: Any) -> None:
        message = ChatMessage.model_validate(data)
        entry = self.timeline.receive(message)
        self.unread.observe(entry, self._own_ids)

    async def _on_delivered(self, data: Any) -> None:
        event = DeliveredEvent.model_validate(data)
        self.timeline.delivered(event.id, event.delivered_at)

    async def _on_read(self, data: Any) -> None:
        event = ReadEvent.model_validate(data)
        self.timeline.read(
            event.message_id,
            ReadReceiptView(reader_id=event.reader_id, reader_name=event.reader, read_at=_now()),
        )

    async def _on_user_list(self, data: Any) -> None:
        self.users = [PresenceUser.model_validate(u) for u in data or []]

    async def _on_user_joined(self, data: Any) -> None:
        self.timeline.notice(f"{data.get('username')} joined the chat", _now())

    async def _on_user_left(self, data: Any) -> None:
        self.timeline.notice(f"{data.get('username')} left the chat", _now())

    async def _on_typing_users(self, data: Any) -> None:
        self.typing_users = list(data or [])

    async def _on_error(self, data: Any) -> None:
        logger.warning("Server error: %s", data)


def create_client(
    settings: ClientSettings | None = None,
    *,
    http: httpx.AsyncClient | None = None,
) -> ChatClient:
    """Wire a ``ChatClient`` from settings. The caller owns (and closes) ``http``."""
    settings = settings or ClientSettings()
    connection = ChatConnection(
        settings.ws_url,
        reconnect_attempts=settings.RECONNECT_ATTEMPTS,
        reconnect_delay=settings.RECONNECT_DELAY,
    )
    http = http or httpx.AsyncClient(base_url=settings.SERVER_URL)
    return ChatClient(
        connection,
        HistoryPager(http, page_size=settings.PAGE_SIZE),
        logout_timeout=settings.LOGOUT_TIMEOUT,
        read_threshold=settings.READ_VISIBILITY_THRESHOLD,
        load_older_threshold=settings.LOAD_OLDER_SCROLL_THRESHOLD,
    )
