from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from chat_relay.client.models import ChatMessage
from chat_relay.client.timeline import Timeline

logger = logging.getLogger(__name__)

_page_adapter = TypeAdapter(list[ChatMessage])


class HistoryPager:
    """Loads persisted history over HTTP, newest batch first, and prepends it to a timeline.

    The cursor is the smallest id loaded so far; every ``load_next`` asks
    for the batch just below it, so each prepended batch is strictly older
    than what is already on screen.
    """

    def __init__(self, http: httpx.AsyncClient, *, page_size: int = 50) -> None:
        self._http = http
        self._page_size = page_size
        self._before: int | None = None
        self._loading = False
        self.exhausted = False

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def cursor(self) -> int | None:
        return self._before

    async def fetch(self, page: int, limit: int | None = None) -> list[ChatMessage]:
        """One skip/limit page (oldest first), or an empty list if the request fails."""
        try:
            return await self._get("/api/messages", {"page": page, "limit": limit or self._page_size})
        except (httpx.HTTPError, ValidationError) as exc:
            logger.warning("Failed to load messages page %d: %s", page, exc)
            return []

    async def _get(self, path: str, params: dict[str, Any]) -> list[ChatMessage]:
        resp = await self._http.get(path, params=params)
        resp.raise_for_status()
        return _page_adapter.validate_json(resp.content)

    async def load_next(self, timeline: Timeline) -> int:
        """Fetch the next older batch into ``timeline``. Returns how many entries were added."""
        if self._loading or self.exhausted:
            return 0
        self._loading = True
        params: dict[str, Any] = {"limit": self._page_size}
        if self._before is not None:
            params["before"] = self._before
        try:
            try:
                batch = await self._get("/api/messages/recent", params)
            except (httpx.HTTPError, ValidationError) as exc:
                # cursor unchanged: the next call retries this batch
                logger.warning("Failed to load messages before %s: %s", self._before, exc)
                return 0
            if not batch:
                self.exhausted = True
                return 0
            self._before = min(m.id for m in batch)
            if len(batch) < self._page_size:
                self.exhausted = True
            return timeline.prepend(batch)
        finally:
            self._loading = False

    def reset(self) -> None:
        self._before = None
        self.exhausted = False
