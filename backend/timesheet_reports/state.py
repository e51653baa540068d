from __future__ import annotations

import secrets
from collections import OrderedDict
from threading import RLock
from typing import Optional

from .schemas import ParsedData


class UploadStore:
    """Parsed uploads kept in memory between the upload and the report requests."""

    def __init__(self, capacity: int):
        self._lock = RLock()
        self._capacity = max(1, int(capacity))
        self._items: "OrderedDict[str, ParsedData]" = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def put(self, data: ParsedData) -> str:
        upload_id = secrets.token_urlsafe(12)
        with self._lock:
            self._items[upload_id] = data
            while len(self._items) > self._capacity:
                self._items.popitem(last=False)
        return upload_id

    def get(self, upload_id: str) -> Optional[ParsedData]:
        with self._lock:
            data = self._items.get(upload_id)
            if data is not None:
                self._items.move_to_end(upload_id)
            return data

    def discard(self, upload_id: str) -> bool:
        with self._lock:
            return self._items.pop(upload_id, None) is not None
