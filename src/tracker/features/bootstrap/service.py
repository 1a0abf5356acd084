from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import simpy

from tracker.core.config import TrackerConfig
from tracker.core.ids import TokenGenerator, UuidTokens
from tracker.core.logging import get_logger
from tracker.core.types import Clock
from tracker.features.events.service import EventHub
from tracker.features.events.types import EXTENSION_CONNECTED
from tracker.features.identity.service import IdentityResolver
from tracker.features.identity.types import ResolvedIdentity
from tracker.features.page.types import PageLike
from tracker.features.persistence.service import PersistentStore
from tracker.features.persistence.types import LegacyStore, RecordStore
from tracker.features.presence.service import PresenceDetector
from tracker.features.presence.types import PresencePayload, SandboxQuirk
from tracker.features.sessions.service import SessionManager
from tracker.features.transport.service import IdentityTransport
from tracker.features.transport.types import EventTransport


@dataclass
class TrackerContext:
    """
    Everything the page needs for tracking, built once per page load.

    There is no teardown: the presence subscription and the listeners live
    as long as the page does.
    """

    env: simpy.Environment
    page: PageLike
    store: PersistentStore
    identity: ResolvedIdentity
    sessions: SessionManager
    transport: EventTransport
    events: EventHub
    presence: PresenceDetector

    @property
    def anonymous_id(self) -> str:
        return self.identity.anonymous_id

    @property
    def cohort_id(self) -> str | None:
        return self.identity.cohort_id

    @property
    def device_id(self) -> str:
        return self.identity.device_id


def bootstrap_page(
    cfg: TrackerConfig,
    *,
    env: simpy.Environment,
    page: PageLike,
    records: RecordStore,
    legacy: LegacyStore,
    clock: Clock,
    sink: Any = None,
    transport: EventTransport | None = None,
    tokens: TokenGenerator | None = None,
    quirk: SandboxQuirk | None = None,
    logger: logging.Logger | None = None,
) -> TrackerContext:
    """
    Initialization order:
      1. fail-open store over the record and legacy stores
      2. identity resolution (with legacy migration)
      3. session/attribution seeding
      4. transport (given, or IdentityTransport over `sink`)
      5. event hub
      6. presence detection, started and subscribed
    """
    if transport is None and sink is None:
        raise ValueError("bootstrap_page needs either a transport or a sink")

    logger = logger or get_logger("tracker", cfg.logging.level)
    tokens = tokens or UuidTokens()

    store = PersistentStore(records=records, legacy=legacy, cookies=cfg.cookies)

    identity = IdentityResolver(store=store, tokens=tokens, clock=clock).resolve()

    sessions = SessionManager(
        store=store,
        identity=identity,
        page=page,
        deployment=cfg.deployment,
    )
    sessions.initialize()

    if transport is None:
        transport = IdentityTransport(
            identity=identity,
            sessions=sessions,
            sink=sink,
            clock=clock,
            tokens=tokens,
        )

    events = EventHub(sessions=sessions, transport=transport, page=page, store=store)

    presence = PresenceDetector(env=env, page=page, cfg=cfg.presence, quirk=quirk)

    def on_extension(payload: PresencePayload) -> None:
        args = payload.as_properties()
        events.log(EXTENSION_CONNECTED, args, args)
        if events.debug_event_logging_enabled():
            logger.info(
                "browser extension detected, sync completed",
                extra={"feature": "presence", "anonymous_id": identity.anonymous_id},
            )

    presence.subscribe(on_extension)
    presence.start()

    logger.info(
        "tracker ready",
        extra={
            "feature": "bootstrap",
            "anonymous_id": identity.anonymous_id,
            "reason": "created" if identity.created else "existing",
        },
    )

    return TrackerContext(
        env=env,
        page=page,
        store=store,
        identity=identity,
        sessions=sessions,
        transport=transport,
        events=events,
        presence=presence,
    )
