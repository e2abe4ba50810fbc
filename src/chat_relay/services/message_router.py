"""Stamp, persist and fan out chat messages."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from chat_relay.application.dto.message import SendMessageDTO, SubmitResult, message_to_wire
from chat_relay.application.exceptions import EmptyMessageError
from chat_relay.application.ports.bus import EventFanout
from chat_relay.application.ports.clock import (
    Clock,
    MessageIdSource,
    SystemClock,
    WallClockIdSource,
)
from chat_relay.application.uow import UoWFactory
from chat_relay.domain.entities.message import Message
from chat_relay.domain.value_objects.enums import AckStatus, ServerEvent
from chat_relay.services.presence_registry import PresenceRegistry

logger = logging.getLogger(__name__)

AckCallback = Callable[[dict[str, Any]], Awaitable[None]]


class MessageRouter:
    def __init__(
        self,
        registry: PresenceRegistry,
        fanout: EventFanout,
        uow_factory: UoWFactory,
        *,
        clock: Clock | None = None,
        ids: MessageIdSource | None = None,
        anonymous_name: str = "Anonymous",
    ) -> None:
        self._registry = registry
        self._fanout = fanout
        self._uow_factory = uow_factory
        self._clock = clock or SystemClock()
        self._ids = ids or WallClockIdSource()
        self._anonymous_name = anonymous_name

    async def submit(
        self,
        sender_id: str,
        request: SendMessageDTO,
        ack: AckCallback | None = None,
    ) -> SubmitResult:
        """Create a message from ``sender_id`` and deliver it.

        Order of effects: persist (public messages only), fan out, acknowledge
        the sender, then tell the sender it was delivered. A persistence
        failure is logged and delivery goes ahead; the message is then
        missing from history but not from live views.
        """
        if request.is_empty:
            raise EmptyMessageError("Message must have a body or an attachment")

        now = self._clock.now()
        message = Message(
            id=self._ids.next_id(now),
            sender_id=sender_id,
            sender_name=self._registry.display_name(sender_id) or self._anonymous_name,
            body=request.body,
            attachment=request.attachment,
            created_at=now,
            is_private=request.is_private,
            recipient_id=request.recipient_id,
            client_temp_id=request.client_temp_id,
        )

        persisted = False
        if not message.is_private:
            persisted = await self._persist(message)

        payload = message_to_wire(message)
        if message.is_private:
            targets = {sender_id, message.recipient_id}
            if message.recipient_id not in self._registry:
                logger.debug("Private message %s to unknown connection %s", message.id, message.recipient_id)
            await self._fanout.publish(ServerEvent.PRIVATE_MESSAGE, payload, targets=targets)
        else:
            await self._fanout.publish(ServerEvent.RECEIVE_MESSAGE, payload)

        result = SubmitResult(id=message.id, created_at=message.created_at, persisted=persisted)
        if ack is not None:
            await ack(
                {
                    "status": AckStatus.OK,
                    "id": result.id,
                    "created_at": result.created_at.isoformat(),
                    "client_temp_id": message.client_temp_id,
                }
            )

        await self._fanout.publish(
            ServerEvent.MESSAGE_DELIVERED,
            {"id": message.id, "delivered_at": self._clock.now().isoformat()},
            targets=[sender_id],
        )
        logger.debug("Message %s from %s delivered (persisted=%s)", message.id, sender_id, persisted)
        return result

    async def _persist(self, message: Message) -> bool:
        try:
            async with self._uow_factory() as uow:
                await uow.messages_w.add(message)
                await uow.commit()
        except Exception:
            logger.exception("Failed to persist message %s", message.id)
            return False
        return True
