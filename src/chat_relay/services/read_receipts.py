from __future__ import annotations

import logging

from chat_relay.application.ports.bus import EventFanout
from chat_relay.application.ports.clock import Clock, SystemClock
from chat_relay.application.uow import UoWFactory
from chat_relay.domain.entities.message import ReadReceipt
from chat_relay.domain.value_objects.enums import ServerEvent
from chat_relay.services.presence_registry import PresenceRegistry

logger = logging.getLogger(__name__)


class ReadReceiptCoordinator:
    """Records who read what and tells everyone, once per (message, reader)."""

    def __init__(
        self,
        registry: PresenceRegistry,
        fanout: EventFanout,
        uow_factory: UoWFactory,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._registry = registry
        self._fanout = fanout
        self._uow_factory = uow_factory
        self._clock = clock or SystemClock()

    async def mark_read(self, reader_id: str, message_id: int) -> bool:
        """Returns True if a new receipt was broadcast.

        Unknown ids (including private and never-persisted messages) are
        ignored. A receipt that fails to persist is still broadcast.
        """
        reader_name = self._registry.display_name(reader_id)
        receipt = ReadReceipt(reader_id=reader_id, reader_name=reader_name, read_at=self._clock.now())

        try:
            async with self._uow_factory() as uow:
                message = await uow.messages.get_by_id(message_id)
                if message is None:
                    logger.debug("Read receipt for unknown message %s ignored", message_id)
                    return False
                if message.has_reader(reader_id):
                    return False
                try:
                    added = await uow.receipts_w.add_if_absent(message_id, receipt)
                    await uow.commit()
                except Exception:
                    logger.warning("Failed to persist read receipt for %s", message_id, exc_info=True)
                    added = True
        except Exception:
            logger.exception("Error handling message_read for %s", message_id)
            return False

        if not added:
            return False

        await self._fanout.publish(
            ServerEvent.MESSAGE_READ,
            {"message_id": message_id, "reader_id": reader_id, "reader": reader_name},
        )
        return True
