from __future__ import annotations

import json
from collections.abc import Collection
from datetime import datetime
from typing import Any


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, (set, frozenset, tuple)):
            return list(o)
        return super().default(o)


def serialize_event(
    event_type: str,
    payload: dict[str, Any] | list[Any],
    targets: Collection[str] | None = None,
) -> str:
    envelope = {
        "event": event_type,
        "data": payload,
        "targets": list(targets) if targets is not None else None,
    }
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any] | list[Any], list[str] | None]:
    data = json.loads(raw)
    return data["event"], data["data"], data.get("targets")
