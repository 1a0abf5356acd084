from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from tracker.core.ids import EventIdCounter, TokenGenerator, UuidTokens
from tracker.core.logging import get_logger
from tracker.core.types import Clock, EventProperties
from tracker.features.identity.types import ResolvedIdentity
from tracker.features.persistence.duckdb_adapter import DuckDBAdapter
from tracker.features.sessions.service import SessionManager

from .types import KIND_ACTION, KIND_PAGE_VIEW, ForwardedEvent


class EventBuffer:
    """
    Buffered event sink + flush policy.
    - Hot: buffer in memory
    - Cold: DuckDB
    """

    def __init__(
        self,
        *,
        adapter: DuckDBAdapter,
        every_n_events: int,
        or_every_seconds: float,
    ) -> None:
        self.adapter = adapter
        self.every_n_events = int(every_n_events)
        self.or_every_seconds = float(or_every_seconds)

        self._buf: list[ForwardedEvent] = []
        self._logger = get_logger(__name__)

        self._periodic_proc_started = False

    def __len__(self) -> int:
        return len(self._buf)

    def emit(self, e: ForwardedEvent) -> None:
        self._buf.append(e)

        if self.every_n_events > 0 and len(self._buf) >= self.every_n_events:
            self.flush(reason="count")

    def flush(self, *, reason: str) -> None:
        if not self._buf:
            return

        rows = [self._event_to_row(e) for e in self._buf]
        self._buf.clear()

        result = self.adapter.write_events(rows)

        self._logger.info(
            "flush",
            extra={
                "feature": "transport",
                "reason": reason,
                "num_events": result.num_events,
                "duration_ms": result.duration_ms,
            },
        )

    def start_periodic_flush(self, env) -> None:
        """
        Start a SimPy process that flushes every `or_every_seconds`.
        Call once during bootstrap after env is created.
        """
        if self._periodic_proc_started or self.or_every_seconds <= 0:
            return
        self._periodic_proc_started = True
        env.process(self._periodic_flush_proc(env))

    def _periodic_flush_proc(self, env):
        while True:
            yield env.timeout(self.or_every_seconds)
            self.flush(reason="timer")

    @staticmethod
    def _event_to_row(e: ForwardedEvent) -> tuple:
        return (
            e.insert_id,
            int(e.event_seq),
            _naive_utc(e.ts_utc),
            e.kind,
            e.label,
            e.as_active_user,
            e.anonymous_id,
            e.cohort_id,
            e.device_id,
            e.device_session_id,
            e.client,
            e.page_url,
            e.referrer,
            e.first_source_url,
            e.last_source_url,
            e.original_referrer,
            e.session_referrer,
            e.session_first_url,
            _json_or_none(e.properties),
            _json_or_none(e.public_argument),
        )


class IdentityTransport:
    """
    EventTransport that stamps each event with the resolved identity and the
    current session/attribution values, then hands it to a sink
    (anything with emit(ForwardedEvent)).
    """

    def __init__(
        self,
        *,
        identity: ResolvedIdentity,
        sessions: SessionManager,
        sink: Any,
        clock: Clock,
        tokens: TokenGenerator | None = None,
    ) -> None:
        self.identity = identity
        self.sessions = sessions
        self.sink = sink
        self.clock = clock
        self.tokens = tokens or UuidTokens()
        self._seq = EventIdCounter()

    def track_action(
        self,
        label: str,
        properties: EventProperties | None = None,
        public_argument: EventProperties | None = None,
    ) -> None:
        self.sink.emit(
            self._build(
                kind=KIND_ACTION,
                label=label,
                properties=properties,
                public_argument=public_argument,
            )
        )

    def track_page_view(
        self,
        page_title: str,
        as_active_user: bool = True,
        properties: EventProperties | None = None,
    ) -> None:
        self.sink.emit(
            self._build(
                kind=KIND_PAGE_VIEW,
                label=page_title,
                properties=properties,
                as_active_user=bool(as_active_user),
            )
        )

    def _build(
        self,
        *,
        kind: str,
        label: str,
        properties: EventProperties | None,
        public_argument: EventProperties | None = None,
        as_active_user: bool | None = None,
    ) -> ForwardedEvent:
        s = self.sessions
        return ForwardedEvent(
            insert_id=self.tokens.new_token(),
            event_seq=self._seq.next_event_id(),
            ts_utc=self.clock.now(),
            kind=kind,
            label=label,
            anonymous_id=self.identity.anonymous_id,
            device_id=self.identity.device_id,
            client=s.client(),
            as_active_user=as_active_user,
            cohort_id=self.identity.cohort_id,
            device_session_id=s.device_session_id(),
            page_url=s.page.href,
            referrer=s.referrer(),
            first_source_url=s.first_source_url(),
            last_source_url=s.last_source_url(),
            original_referrer=s.original_referrer(),
            session_referrer=s.session_referrer(),
            session_first_url=s.session_first_url(),
            properties=dict(properties) if properties is not None else None,
            public_argument=dict(public_argument) if public_argument is not None else None,
        )


def _json_or_none(payload: EventProperties | None) -> str | None:
    if payload is None:
        return None
    # Stable JSON for deterministic outputs/diffs
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


def _naive_utc(dt: datetime) -> datetime:
    # DuckDB TIMESTAMP columns are naive; store UTC
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)
