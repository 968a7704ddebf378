#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""CloudEvents records for health transitions and merged snapshots."""
from __future__ import annotations

import threading
import time
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional


def build_cloudevent(
    event_type: str,
    source: str,
    data: Dict[str, Any],
    *,
    subject: Optional[str] = None,
    time_s: Optional[float] = None,
    event_id: Optional[str] = None,
) -> Dict[str, Any]:
    ts = time_s if time_s is not None else time.time()
    evt: Dict[str, Any] = {
        "specversion": "1.0",
        "id": event_id or str(uuid.uuid4()),
        "type": event_type,
        "source": source,
        "time": datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
        "data": data,
    }
    if subject:
        evt["subject"] = subject
    return evt


class EventBus:
    """Bounded in-memory event log, newest last."""

    def __init__(self, maxlen: int = 256):
        self._events: Deque[Dict[str, Any]] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def emit(self, event: Dict[str, Any]) -> None:
        with self._lock:
            self._events.append(event)

    def recent(
        self,
        *,
        limit: int = 50,
        since_id: Optional[str] = None,
        type_prefix: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self._events)
        if since_id is not None:
            ids = [evt.get("id") for evt in items]
            # an unknown id means the cursor fell off the buffer: return everything
            if since_id in ids:
                items = items[ids.index(since_id) + 1:]
        if type_prefix:
            items = [evt for evt in items if str(evt.get("type", "")).startswith(type_prefix)]
        return items[-limit:] if limit > 0 else []

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
