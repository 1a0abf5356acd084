from __future__ import annotations

from datetime import datetime, timedelta

from tracker.core.types import Clock

from .types import CookieAttributes, StoredRecord


class MemoryCookieJar:
    """
    In-process cookie jar. Expiry is evaluated lazily against the clock on read.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._records: dict[str, StoredRecord] = {}

    def get(self, key: str) -> str | None:
        rec = self._records.get(key)
        if rec is None:
            return None
        if rec.expires_at <= self._clock.now():
            del self._records[key]
            return None
        return rec.value

    def set(self, key: str, value: str, attrs: CookieAttributes) -> None:
        expires_at = self._clock.now() + timedelta(days=float(attrs.expires_days))
        self._records[key] = StoredRecord(key=key, value=value, expires_at=expires_at, attrs=attrs)

    def remove(self, key: str) -> None:
        self._records.pop(key, None)

    def record(self, key: str) -> StoredRecord | None:
        """
        Raw record including attributes and expiry (no expiry check).
        """
        return self._records.get(key)

    def expires_at(self, key: str) -> datetime | None:
        rec = self._records.get(key)
        return rec.expires_at if rec is not None else None


class MemoryLocalStorage:
    def __init__(self, items: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._items
