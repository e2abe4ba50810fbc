"""Scroll anchoring for older pages and view-triggered read receipts."""
from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from chat_relay.client.timeline import Confirmed, Entry


@dataclass(frozen=True, slots=True)
class ScrollAnchor:
    """Scroll position captured just before content is prepended."""

    scroll_top: float
    scroll_height: float


def preserve_scroll(anchor: ScrollAnchor, new_scroll_height: float) -> float:
    """New ``scroll_top`` that keeps the same content under the viewport after a prepend."""
    return anchor.scroll_top + (new_scroll_height - anchor.scroll_height)


def should_load_older(scroll_top: float, threshold: float, *, loading: bool) -> bool:
    return not loading and scroll_top < threshold


class ReadReceiptEmitter:
    """Decides when a visible message earns a ``message_read``.

    At most once per message id for the life of the session, never for the
    viewer's own messages, and only once enough of it is on screen.
    """

    def __init__(self, threshold: float = 0.6) -> None:
        self._threshold = threshold
        self._sent: set[int] = set()

    def on_visible(
        self,
        entry: Entry,
        visible_ratio: float,
        own_ids: Collection[str],
    ) -> int | None:
        if not isinstance(entry, Confirmed):
            return None
        if visible_ratio < self._threshold:
            return None
        if entry.own or entry.message.sender_id in own_ids:
            return None
        if entry.id in self._sent:
            return None
        self._sent.add(entry.id)
        return entry.id

    def reset(self) -> None:
        self._sent.clear()
