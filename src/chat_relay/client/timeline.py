"""Client-side message timeline and the merge rules that keep it consistent.

Every logical message is represented by exactly one entry: ``Pending`` while
only this client knows about it, ``Confirmed`` once the server has given it
an id. The server's direct acknowledgement, its broadcast echo and the
``message_delivered`` notice may arrive in any order, any of them may be
lost, and any may be repeated; the functions below collapse all of those
into a single entry without re-sorting the sequence.

The module-level functions are pure (tuple in, tuple out). ``Timeline`` owns
the current tuple and is the only thing that replaces it.
"""
from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, replace
from datetime import datetime

from chat_relay.client.models import ChatMessage, ReadReceiptView

EARLY_DELIVERY_CACHE_SIZE = 256


@dataclass(frozen=True, slots=True)
class Pending:
    temp_id: str
    sender_id: str | None
    sender_name: str
    body: str | None
    attachment: str | None
    created_at: datetime
    recipient_id: str | None = None

    @property
    def delivered(self) -> bool:
        return False

    def confirm(self, message_id: int, created_at: datetime | None = None) -> Confirmed:
        """Promote using only what the acknowledgement tells us; the echo fills in the rest."""
        message = ChatMessage(
            id=message_id,
            client_temp_id=self.temp_id,
            sender_id=self.sender_id or "",
            sender_name=self.sender_name,
            body=self.body,
            attachment=self.attachment,
            created_at=created_at or self.created_at,
            is_private=self.recipient_id is not None,
            recipient_id=self.recipient_id,
        )
        return Confirmed(message=message, delivered=True, temp_id=self.temp_id, own=True)


@dataclass(frozen=True, slots=True)
class Confirmed:
    message: ChatMessage
    delivered: bool = False
    delivered_at: datetime | None = None
    temp_id: str | None = None
    # sent from this client, whatever sender_id the server recorded
    own: bool = False

    @property
    def id(self) -> int:
        return self.message.id


@dataclass(frozen=True, slots=True)
class Notice:
    """Join/leave line. Has no id and takes no part in reconciliation."""

    text: str
    at: datetime


Entry = Pending | Confirmed | Notice
Entries = tuple[Entry, ...]


def find_pending(entries: Entries, temp_id: str | None) -> int | None:
    if not temp_id:
        return None
    for i, entry in enumerate(entries):
        if isinstance(entry, Pending) and entry.temp_id == temp_id:
            return i
    return None


def find_confirmed(entries: Entries, message_id: int) -> int | None:
    for i, entry in enumerate(entries):
        if isinstance(entry, Confirmed) and entry.id == message_id:
            return i
    return None


def _replace_at(entries: Entries, index: int, entry: Entry) -> Entries:
    return (*entries[:index], entry, *entries[index + 1:])


def _remove_at(entries: Entries, index: int) -> Entries:
    return (*entries[:index], *entries[index + 1:])


def _union_readers(
    existing: Sequence[ReadReceiptView],
    incoming: Sequence[ReadReceiptView],
) -> tuple[ReadReceiptView, ...]:
    merged = list(existing)
    seen = {r.reader_id for r in merged}
    for receipt in incoming:
        if receipt.reader_id not in seen:
            seen.add(receipt.reader_id)
            merged.append(receipt)
    return tuple(merged)


def _merge_into(current: Confirmed, incoming: ChatMessage, *, confirms_own: bool) -> Confirmed:
    """Take the canonical content, keep what only this client knows."""
    read_by = _union_readers(current.message.read_by, incoming.read_by)
    message = incoming.model_copy(
        update={
            "read_by": read_by,
            "client_temp_id": incoming.client_temp_id or current.temp_id,
        }
    )
    return replace(
        current,
        message=message,
        delivered=current.delivered or confirms_own,
        own=current.own or confirms_own,
        temp_id=current.temp_id or incoming.client_temp_id,
    )


def append_pending(entries: Entries, pending: Pending) -> Entries:
    if find_pending(entries, pending.temp_id) is not None:
        return entries
    return (*entries, pending)


def reconcile(entries: Entries, incoming: ChatMessage) -> Entries:
    """Fold a server message (broadcast, private delivery or history) into the timeline.

    - matching pending entry: replaced in place, now delivered
    - id already present: content refreshed in place, flags kept
    - otherwise: appended
    """
    pending_at = find_pending(entries, incoming.client_temp_id)
    confirmed_at = find_confirmed(entries, incoming.id)

    if pending_at is not None and confirmed_at is not None:
        # The same message already arrived another way (e.g. a history page).
        merged = _merge_into(entries[confirmed_at], incoming, confirms_own=True)  # type: ignore[arg-type]
        return _remove_at(_replace_at(entries, confirmed_at, merged), pending_at)

    if pending_at is not None:
        confirmed = Confirmed(message=incoming, delivered=True, temp_id=incoming.client_temp_id, own=True)
        return _replace_at(entries, pending_at, confirmed)

    if confirmed_at is not None:
        current = entries[confirmed_at]
        assert isinstance(current, Confirmed)
        return _replace_at(entries, confirmed_at, _merge_into(current, incoming, confirms_own=False))

    return (*entries, Confirmed(message=incoming))


def apply_ack(
    entries: Entries,
    temp_id: str,
    message_id: int,
    created_at: datetime | None = None,
) -> Entries:
    """The sender's direct acknowledgement: ``{id, created_at}`` for ``temp_id``."""
    pending_at = find_pending(entries, temp_id)
    confirmed_at = find_confirmed(entries, message_id)

    if confirmed_at is not None:
        current = entries[confirmed_at]
        assert isinstance(current, Confirmed)
        updated = replace(current, delivered=True, temp_id=current.temp_id or temp_id, own=True)
        entries = _replace_at(entries, confirmed_at, updated)
        if pending_at is not None:
            entries = _remove_at(entries, pending_at)
        return entries

    if pending_at is not None:
        pending = entries[pending_at]
        assert isinstance(pending, Pending)
        return _replace_at(entries, pending_at, pending.confirm(message_id, created_at))

    return entries


def mark_delivered(
    entries: Entries,
    message_id: int,
    delivered_at: datetime,
) -> tuple[Entries, bool]:
    """Flip only the delivery flag and timestamp. Returns (entries, found)."""
    index = find_confirmed(entries, message_id)
    if index is None:
        return entries, False
    current = entries[index]
    assert isinstance(current, Confirmed)
    return _replace_at(entries, index, replace(current, delivered=True, delivered_at=delivered_at)), True


def apply_read(entries: Entries, message_id: int, receipt: ReadReceiptView) -> Entries:
    index = find_confirmed(entries, message_id)
    if index is None:
        return entries
    current = entries[index]
    assert isinstance(current, Confirmed)
    if any(r.reader_id == receipt.reader_id for r in current.message.read_by):
        return entries
    message = current.message.model_copy(update={"read_by": (*current.message.read_by, receipt)})
    return _replace_at(entries, index, replace(current, message=message))


def prepend_page(entries: Entries, page: Sequence[ChatMessage]) -> tuple[Entries, int]:
    """Put an older page in front. Ids already shown are skipped, so retries are harmless."""
    known = {e.id for e in entries if isinstance(e, Confirmed)}
    fresh: list[Entry] = []
    for message in page:
        if message.id in known:
            continue
        known.add(message.id)
        fresh.append(Confirmed(message=message))
    if not fresh:
        return entries, 0
    return (*fresh, *entries), len(fresh)


class Timeline:
    """Owns the client's ordered sequence of entries."""

    def __init__(self) -> None:
        self._entries: Entries = ()
        self._early_deliveries: OrderedDict[int, datetime] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)

    @property
    def entries(self) -> Entries:
        return self._entries

    def messages(self) -> list[Pending | Confirmed]:
        return [e for e in self._entries if not isinstance(e, Notice)]

    def get(self, message_id: int) -> Confirmed | None:
        index = find_confirmed(self._entries, message_id)
        return self._entries[index] if index is not None else None  # type: ignore[return-value]

    def get_pending(self, temp_id: str) -> Pending | None:
        index = find_pending(self._entries, temp_id)
        return self._entries[index] if index is not None else None  # type: ignore[return-value]

    def add_pending(self, pending: Pending) -> None:
        self._entries = append_pending(self._entries, pending)

    def receive(self, message: ChatMessage) -> Confirmed:
        self._entries = reconcile(self._entries, message)
        self._flush_early_delivery(message.id)
        entry = self.get(message.id)
        assert entry is not None
        return entry

    def acknowledge(self, temp_id: str, message_id: int, created_at: datetime | None = None) -> None:
        self._entries = apply_ack(self._entries, temp_id, message_id, created_at)
        self._flush_early_delivery(message_id)

    def delivered(self, message_id: int, delivered_at: datetime) -> None:
        self._entries, found = mark_delivered(self._entries, message_id, delivered_at)
        if not found:
            # Notice beat both the ack and the echo; hold it until the id shows up.
            self._early_deliveries[message_id] = delivered_at
            while len(self._early_deliveries) > EARLY_DELIVERY_CACHE_SIZE:
                self._early_deliveries.popitem(last=False)

    def read(self, message_id: int, receipt: ReadReceiptView) -> None:
        self._entries = apply_read(self._entries, message_id, receipt)

    def prepend(self, page: Sequence[ChatMessage]) -> int:
        self._entries, added = prepend_page(self._entries, page)
        for message in page:
            self._flush_early_delivery(message.id)
        return added

    def notice(self, text: str, at: datetime) -> None:
        self._entries = (*self._entries, Notice(text=text, at=at))

    def clear(self) -> None:
        self._entries = ()
        self._early_deliveries.clear()

    def _flush_early_delivery(self, message_id: int) -> None:
        delivered_at = self._early_deliveries.pop(message_id, None)
        if delivered_at is not None:
            self._entries, _ = mark_delivered(self._entries, message_id, delivered_at)
