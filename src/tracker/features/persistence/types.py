from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True, slots=True)
class CookieAttributes:
    """
    Attributes written alongside every record.

    expires_days is a sliding window: each write moves expiry to now + expires_days.
    domain scopes the record to the host and its subdomains.
    """

    expires_days: float
    secure: bool = True
    same_site: str = "Lax"
    domain: str = ""


@dataclass(frozen=True, slots=True)
class StoredRecord:
    key: str
    value: str
    expires_at: datetime
    attrs: CookieAttributes


class RecordStore(Protocol):
    """
    Long/short-lived key/value records with independent expiry (cookie jar).
    get() returns None for missing or expired records.
    """

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str, attrs: CookieAttributes) -> None: ...
    def remove(self, key: str) -> None: ...


class LegacyStore(Protocol):
    """
    Flat key/value store without expiry (local storage).
    """

    def get_item(self, key: str) -> str | None: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...
