from __future__ import annotations

from collections.abc import Collection
from typing import Any, Protocol


class EventFanout(Protocol):
    """Deliver a server event to live connections.

    ``targets=None`` addresses every active connection; otherwise only the
    listed connection identities receive it.
    """

    async def publish(
        self,
        event_type: str,
        data: dict[str, Any] | list[Any],
        *,
        targets: Collection[str] | None = None,
    ) -> None: ...
