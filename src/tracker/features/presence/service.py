from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import simpy

from tracker.core.config import PresenceConfig
from tracker.core.logging import get_logger
from tracker.features.page.types import PageLike

from .broadcast import ErrorCallback, OneShotBroadcast, ValueCallback
from .types import PresencePayload, SandboxQuirk, detect_sandbox_quirk

STATE_UNRESOLVED = "unresolved"
STATE_DETECTED = "detected"
STATE_FAILED = "failed"


def read_detail(detail: Any) -> PresencePayload:
    """
    Reads {platform, version} off a registration event detail.
    Errors raised by the detail's accessors are not caught here.
    """
    if detail is None:
        return PresencePayload()
    if isinstance(detail, Mapping):
        return PresencePayload(platform=detail.get("platform"), version=detail.get("version"))
    return PresencePayload(
        platform=getattr(detail, "platform", None),
        version=getattr(detail, "version", None),
    )


class PresenceDetector:
    """
    Detects the browser extension by racing two one-shot channels:

      - marker: poll the page for the marker element until timeout_s
      - event:  wait for the registration custom event

    The first channel to produce a payload wins and the other is torn down.
    The outcome is replayed to every subscriber, early or late.
    """

    def __init__(
        self,
        *,
        env: simpy.Environment,
        page: PageLike,
        cfg: PresenceConfig,
        quirk: SandboxQuirk | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.env = env
        self.page = page
        self.cfg = cfg
        self.quirk = quirk or detect_sandbox_quirk(page.user_agent)
        self._logger = logger or get_logger(__name__)

        self._broadcast: OneShotBroadcast[PresencePayload] = OneShotBroadcast()
        self._done = env.event()
        self._registered: simpy.Event | None = None
        self._started = False
        self.winner: str | None = None

    @property
    def state(self) -> str:
        if not self._broadcast.settled:
            return STATE_UNRESOLVED
        if self._broadcast.error is not None:
            return STATE_FAILED
        return STATE_DETECTED

    @property
    def payload(self) -> PresencePayload | None:
        return self._broadcast.value

    def start(self) -> None:
        if self._started:
            return
        self._started = True

        # Listen synchronously so an event dispatched before the loop runs is not lost.
        self._registered = self.env.event()
        self.page.add_event_listener(self.cfg.event_name, self._on_registration)

        self.env.process(self._watch_marker())
        self.env.process(self._wait_for_registration(self._registered))

    def subscribe(self, on_value: ValueCallback, on_error: ErrorCallback | None = None) -> None:
        self._broadcast.subscribe(on_value, on_error)

    # ----------------------------
    # Channels
    # ----------------------------
    def _watch_marker(self):
        deadline = float(self.env.now) + float(self.cfg.timeout_s)
        while not self._broadcast.settled:
            el = self.page.query_selector(self.cfg.marker_selector)
            if el is not None:
                payload = PresencePayload(
                    platform=el.dataset.get("platform"),
                    version=el.dataset.get("version"),
                )
                self._settle(payload, channel="marker")
                return

            remaining = deadline - float(self.env.now)
            if remaining <= 0:
                self._logger.debug(
                    "marker_timeout", extra={"feature": "presence", "reason": "timeout"}
                )
                return
            yield self.env.timeout(min(float(self.cfg.poll_interval_s), remaining)) | self._done

    def _wait_for_registration(self, registered: simpy.Event):
        yield registered | self._done
        if self._broadcast.settled or not registered.triggered:
            return

        try:
            payload = read_detail(registered.value)
        except Exception as e:
            substitute = self.quirk.substitute(e)
            if substitute is None:
                self._fail(e)
                return
            payload = substitute

        self._settle(payload, channel="event")

    def _on_registration(self, detail: Any) -> None:
        # one-shot
        self.page.remove_event_listener(self.cfg.event_name, self._on_registration)
        if self._registered is not None and not self._registered.triggered:
            self._registered.succeed(detail)

    # ----------------------------
    # Internal helpers
    # ----------------------------
    def _teardown(self) -> None:
        self.page.remove_event_listener(self.cfg.event_name, self._on_registration)
        if not self._done.triggered:
            self._done.succeed()

    def _settle(self, payload: PresencePayload, *, channel: str) -> bool:
        if self._broadcast.settled:
            return False
        self._teardown()
        self.winner = channel
        self._logger.debug(
            "extension_detected", extra={"feature": "presence", "reason": channel}
        )
        return self._broadcast.resolve(payload)

    def _fail(self, error: BaseException) -> None:
        if self._broadcast.settled:
            return
        self._teardown()
        self._broadcast.fail(error)
