from __future__ import annotations

COOKIES_TABLE_NAME = "cookies"
LOCAL_STORAGE_TABLE_NAME = "local_storage"
EVENTS_TABLE_NAME = "events"

COOKIES_DDL = f"""
CREATE TABLE IF NOT EXISTS {COOKIES_TABLE_NAME} (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,

    -- unix epoch seconds, UTC
    expires_at_s DOUBLE NOT NULL,

    secure BOOLEAN NOT NULL,
    same_site TEXT NOT NULL,
    domain TEXT NOT NULL
);
"""

LOCAL_STORAGE_DDL = f"""
CREATE TABLE IF NOT EXISTS {LOCAL_STORAGE_TABLE_NAME} (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

EVENTS_DDL = f"""
CREATE TABLE IF NOT EXISTS {EVENTS_TABLE_NAME} (
    insert_id TEXT NOT NULL,
    event_seq BIGINT NOT NULL,
    ts_utc TIMESTAMP NOT NULL,

    kind TEXT NOT NULL,
    label TEXT NOT NULL,
    as_active_user BOOLEAN,

    anonymous_id TEXT NOT NULL,
    cohort_id TEXT,
    device_id TEXT NOT NULL,
    device_session_id TEXT,

    client TEXT NOT NULL,
    page_url TEXT,
    referrer TEXT,
    first_source_url TEXT,
    last_source_url TEXT,
    original_referrer TEXT,
    session_referrer TEXT,
    session_first_url TEXT,

    properties_json TEXT,
    public_argument_json TEXT
);
"""

EVENTS_INDEXES = [
    f"CREATE INDEX IF NOT EXISTS idx_events_label ON {EVENTS_TABLE_NAME}(label);",
    f"CREATE INDEX IF NOT EXISTS idx_events_anonymous_id ON {EVENTS_TABLE_NAME}(anonymous_id);",
]


def create_schema(conn) -> None:
    """
    Create tables/indexes. No migrations. Safe to call per page load.
    """
    conn.execute(COOKIES_DDL)
    conn.execute(LOCAL_STORAGE_DDL)
    conn.execute(EVENTS_DDL)
    for ddl in EVENTS_INDEXES:
        conn.execute(ddl)
