from __future__ import annotations

import logging

import duckdb

from tracker.core.config import CookieConfig
from tracker.core.logging import get_logger

from .types import CookieAttributes, LegacyStore, RecordStore

# Errors a backing store may raise. Everything else is a programming error.
STORAGE_ERRORS: tuple[type[BaseException], ...] = (duckdb.Error, OSError)


class PersistentStore:
    """
    Uniform get/set over the record store (cookies) and the legacy store.

    Fail-open:
      - a read that raises is reported as "absent" (None)
      - a write that raises is skipped
    Both are logged as warnings, never surfaced to callers.
    """

    def __init__(
        self,
        *,
        records: RecordStore,
        legacy: LegacyStore,
        cookies: CookieConfig,
        logger: logging.Logger | None = None,
    ) -> None:
        self.records = records
        self.legacy = legacy
        self.long_lived = CookieAttributes(
            expires_days=cookies.long_lived_days,
            secure=cookies.secure,
            same_site=cookies.same_site,
            domain=cookies.domain,
        )
        self.short_lived = CookieAttributes(
            expires_days=cookies.session_days,
            secure=cookies.secure,
            same_site=cookies.same_site,
            domain=cookies.domain,
        )
        self._logger = logger or get_logger(__name__)

    # ----------------------------
    # Records
    # ----------------------------
    def get(self, key: str) -> str | None:
        try:
            return self.records.get(key)
        except STORAGE_ERRORS as e:
            self._warn("record_read_failed", key, e)
            return None

    def set(self, key: str, value: str, *, session: bool = False) -> None:
        attrs = self.short_lived if session else self.long_lived
        try:
            self.records.set(key, value, attrs)
        except STORAGE_ERRORS as e:
            self._warn("record_write_failed", key, e)

    # ----------------------------
    # Legacy store
    # ----------------------------
    def get_legacy(self, key: str) -> str | None:
        try:
            return self.legacy.get_item(key)
        except STORAGE_ERRORS as e:
            self._warn("legacy_read_failed", key, e)
            return None

    def set_legacy(self, key: str, value: str) -> None:
        try:
            self.legacy.set_item(key, value)
        except STORAGE_ERRORS as e:
            self._warn("legacy_write_failed", key, e)

    def remove_legacy(self, key: str) -> None:
        try:
            self.legacy.remove_item(key)
        except STORAGE_ERRORS as e:
            self._warn("legacy_remove_failed", key, e)

    def _warn(self, msg: str, key: str, e: BaseException) -> None:
        self._logger.warning(
            msg,
            extra={"feature": "persistence", "key": key, "error": repr(e)},
        )
