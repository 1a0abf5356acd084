from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

import simpy

from tracker.core.config import TrackerConfig, load_config
from tracker.core.types import SimClock
from tracker.features.bootstrap.service import bootstrap_page
from tracker.features.page.service import Page
from tracker.features.persistence.duckdb_adapter import (
    DuckDBAdapter,
    DuckDBCookieJar,
    DuckDBLocalStorage,
)
from tracker.features.transport.service import EventBuffer


@dataclass(frozen=True)
class VisitResult:
    anonymous_id: str
    cohort_id: str | None
    device_id: str
    device_session_id: str
    final_url: str
    duckdb_path: str


def visit_page(
    cfg: TrackerConfig,
    *,
    url: str,
    referrer: str = "",
    page_name: str = "Page",
    user_agent: str = "",
    user_agent_is_bot: bool = False,
    start_dt: datetime | None = None,
) -> VisitResult:
    """
    One page load: bootstrap tracking, log a page view, let presence
    detection run its window, flush events.
    """
    env = simpy.Environment()
    clock = SimClock(env=env, start_dt=start_dt or datetime.now(UTC))

    adapter = DuckDBAdapter(path=cfg.storage.duckdb_path, clean_slate=cfg.storage.clean_slate)
    adapter.open()
    buffer = EventBuffer(
        adapter=adapter,
        every_n_events=cfg.storage.flush.every_n_events,
        or_every_seconds=cfg.storage.flush.or_every_seconds,
    )
    buffer.start_periodic_flush(env)

    page = Page(
        href=url,
        referrer=referrer,
        user_agent=user_agent,
        user_agent_is_bot=user_agent_is_bot,
    )

    try:
        ctx = bootstrap_page(
            cfg,
            env=env,
            page=page,
            records=DuckDBCookieJar(adapter, clock),
            legacy=DuckDBLocalStorage(adapter),
            clock=clock,
            sink=buffer,
        )
        ctx.events.log_page_view(page_name)

        env.run(until=float(cfg.presence.timeout_s) + float(cfg.presence.poll_interval_s))
        buffer.flush(reason="page_unload")

        return VisitResult(
            anonymous_id=ctx.anonymous_id,
            cohort_id=ctx.cohort_id,
            device_id=ctx.device_id,
            device_session_id=ctx.sessions.device_session_id(),
            final_url=page.href,
            duckdb_path=cfg.storage.duckdb_path,
        )
    finally:
        adapter.close()


def run(config_path: str, **kwargs) -> VisitResult:
    cfg = load_config(config_path)
    return visit_page(cfg, **kwargs)
