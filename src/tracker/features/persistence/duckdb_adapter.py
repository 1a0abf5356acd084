from __future__ import annotations

import os
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import duckdb

from tracker.core.types import Clock

from .schema import (
    COOKIES_TABLE_NAME,
    EVENTS_TABLE_NAME,
    LOCAL_STORAGE_TABLE_NAME,
    create_schema,
)
from .types import CookieAttributes

EVENT_COLUMNS: tuple[str, ...] = (
    "insert_id",
    "event_seq",
    "ts_utc",
    "kind",
    "label",
    "as_active_user",
    "anonymous_id",
    "cohort_id",
    "device_id",
    "device_session_id",
    "client",
    "page_url",
    "referrer",
    "first_source_url",
    "last_source_url",
    "original_referrer",
    "session_referrer",
    "session_first_url",
    "properties_json",
    "public_argument_json",
)


@dataclass(frozen=True)
class DuckDBWriteResult:
    num_events: int
    duration_ms: float


class DuckDBAdapter:
    """
    DuckDB persistence adapter. Owns the connection and schema.
    Backs the cookie jar, the legacy local store and the forwarded-events table.
    """

    def __init__(self, path: str, *, clean_slate: bool) -> None:
        self.path = path
        self.clean_slate = clean_slate
        self._conn: duckdb.DuckDBPyConnection | None = None

    def open(self) -> None:
        if self.clean_slate and os.path.exists(self.path):
            os.remove(self.path)

        # Ensure parent dir exists
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        self._conn = duckdb.connect(self.path)
        create_schema(self._conn)

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("DuckDBAdapter not opened. Call open() first.")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ----------------------------
    # Cookie records
    # ----------------------------
    def read_record(self, key: str) -> tuple[str, float] | None:
        row = self.conn.execute(
            f"SELECT value, expires_at_s FROM {COOKIES_TABLE_NAME} WHERE key = ?",
            [key],
        ).fetchone()
        if row is None:
            return None
        return str(row[0]), float(row[1])

    def write_record(self, key: str, value: str, expires_at_s: float, attrs: CookieAttributes) -> None:
        self.conn.execute(
            f"""
            INSERT OR REPLACE INTO {COOKIES_TABLE_NAME}
                (key, value, expires_at_s, secure, same_site, domain)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [key, value, expires_at_s, attrs.secure, attrs.same_site, attrs.domain],
        )

    def delete_record(self, key: str) -> None:
        self.conn.execute(f"DELETE FROM {COOKIES_TABLE_NAME} WHERE key = ?", [key])

    # ----------------------------
    # Legacy local storage
    # ----------------------------
    def read_item(self, key: str) -> str | None:
        row = self.conn.execute(
            f"SELECT value FROM {LOCAL_STORAGE_TABLE_NAME} WHERE key = ?",
            [key],
        ).fetchone()
        return str(row[0]) if row is not None else None

    def write_item(self, key: str, value: str) -> None:
        self.conn.execute(
            f"INSERT OR REPLACE INTO {LOCAL_STORAGE_TABLE_NAME} (key, value) VALUES (?, ?)",
            [key, value],
        )

    def delete_item(self, key: str) -> None:
        self.conn.execute(f"DELETE FROM {LOCAL_STORAGE_TABLE_NAME} WHERE key = ?", [key])

    # ----------------------------
    # Forwarded events
    # ----------------------------
    def write_events(self, rows: Sequence[tuple]) -> DuckDBWriteResult:
        """
        Writes a batch of rows matching EVENT_COLUMNS.
        Returns count and duration.
        """
        if not rows:
            return DuckDBWriteResult(num_events=0, duration_ms=0.0)

        t0 = time.perf_counter()

        placeholders = ", ".join("?" for _ in EVENT_COLUMNS)
        self.conn.executemany(
            f"""
            INSERT INTO {EVENTS_TABLE_NAME} ({", ".join(EVENT_COLUMNS)})
            VALUES ({placeholders})
            """,
            rows,
        )

        dt_ms = (time.perf_counter() - t0) * 1000.0
        return DuckDBWriteResult(num_events=len(rows), duration_ms=dt_ms)

    def count_events(self, anonymous_id: str | None = None) -> int:
        """
        Convenience method for sanity checks/tests.
        """
        if anonymous_id is None:
            res = self.conn.execute(f"SELECT COUNT(*) FROM {EVENTS_TABLE_NAME}").fetchone()
        else:
            res = self.conn.execute(
                f"SELECT COUNT(*) FROM {EVENTS_TABLE_NAME} WHERE anonymous_id = ?",
                [anonymous_id],
            ).fetchone()
        return int(res[0]) if res else 0


class DuckDBCookieJar:
    """
    RecordStore over DuckDBAdapter. Records survive across page loads (processes).
    """

    def __init__(self, adapter: DuckDBAdapter, clock: Clock) -> None:
        self._adapter = adapter
        self._clock = clock

    def get(self, key: str) -> str | None:
        row = self._adapter.read_record(key)
        if row is None:
            return None
        value, expires_at_s = row
        if expires_at_s <= self._clock.now().timestamp():
            self._adapter.delete_record(key)
            return None
        return value

    def set(self, key: str, value: str, attrs: CookieAttributes) -> None:
        expires_at = self._clock.now() + timedelta(days=float(attrs.expires_days))
        self._adapter.write_record(key, value, expires_at.timestamp(), attrs)

    def remove(self, key: str) -> None:
        self._adapter.delete_record(key)

    def expires_at(self, key: str) -> datetime | None:
        row = self._adapter.read_record(key)
        if row is None:
            return None
        return datetime.fromtimestamp(row[1], tz=UTC)


class DuckDBLocalStorage:
    def __init__(self, adapter: DuckDBAdapter) -> None:
        self._adapter = adapter

    def get_item(self, key: str) -> str | None:
        return self._adapter.read_item(key)

    def set_item(self, key: str, value: str) -> None:
        self._adapter.write_item(key, str(value))

    def remove_item(self, key: str) -> None:
        self._adapter.delete_item(key)
