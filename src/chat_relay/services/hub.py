from __future__ import annotations

from dataclasses import dataclass

from chat_relay.application.ports.bus import EventFanout
from chat_relay.application.ports.clock import Clock, MessageIdSource
from chat_relay.application.uow import UoWFactory
from chat_relay.services.lifecycle import ConnectionLifecycle
from chat_relay.services.message_router import MessageRouter
from chat_relay.services.presence_registry import PresenceRegistry
from chat_relay.services.read_receipts import ReadReceiptCoordinator
from chat_relay.services.typing_tracker import TypingTracker


@dataclass(slots=True)
class ChatHub:
    """Server-side components sharing one registry."""

    registry: PresenceRegistry
    typing: TypingTracker
    router: MessageRouter
    receipts: ReadReceiptCoordinator
    lifecycle: ConnectionLifecycle


def build_hub(
    fanout: EventFanout,
    uow_factory: UoWFactory,
    *,
    clock: Clock | None = None,
    ids: MessageIdSource | None = None,
    anonymous_name: str = "Anonymous",
) -> ChatHub:
    registry = PresenceRegistry()
    typing = TypingTracker(registry, fanout)
    return ChatHub(
        registry=registry,
        typing=typing,
        router=MessageRouter(
            registry, fanout, uow_factory,
            clock=clock, ids=ids, anonymous_name=anonymous_name,
        ),
        receipts=ReadReceiptCoordinator(registry, fanout, uow_factory, clock=clock),
        lifecycle=ConnectionLifecycle(registry, typing, fanout),
    )
