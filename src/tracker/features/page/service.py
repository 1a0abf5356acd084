from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from .types import MarkerElement

EventCallback = Callable[[Any], None]


class Page:
    """
    In-process stand-in for a loaded page: location, referrer, history,
    marker elements and custom events.

    replace_state() rewrites the address without navigation, so the page
    instance (and every latch hanging off it) survives.
    """

    def __init__(
        self,
        *,
        href: str,
        referrer: str = "",
        user_agent: str = "",
        user_agent_is_bot: bool = False,
    ) -> None:
        self.href = href
        self.referrer = referrer
        self.user_agent = user_agent
        self.user_agent_is_bot = user_agent_is_bot
        self.history: list[str] = [href]
        self._markers: dict[str, MarkerElement] = {}
        self._listeners: dict[str, list[EventCallback]] = {}

    # ----------------------------
    # Location / history
    # ----------------------------
    def replace_state(self, url: str) -> None:
        if url == self.href:
            return
        self.href = url
        self.history[-1] = url

    # ----------------------------
    # DOM markers
    # ----------------------------
    def add_marker(self, selector: str, dataset: Mapping[str, str] | None = None) -> MarkerElement:
        el = MarkerElement(selector=selector, dataset=dict(dataset or {}))
        self._markers[selector] = el
        return el

    def query_selector(self, selector: str) -> MarkerElement | None:
        return self._markers.get(selector)

    # ----------------------------
    # Custom events
    # ----------------------------
    def add_event_listener(self, name: str, callback: EventCallback) -> None:
        self._listeners.setdefault(name, []).append(callback)

    def remove_event_listener(self, name: str, callback: EventCallback) -> None:
        cbs = self._listeners.get(name)
        if cbs and callback in cbs:
            cbs.remove(callback)

    def dispatch_event(self, name: str, detail: Any = None) -> int:
        """
        Delivers `detail` to every listener registered for `name`.
        Returns the number of listeners notified.
        """
        cbs = list(self._listeners.get(name, ()))
        for cb in cbs:
            cb(detail)
        return len(cbs)

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(name, ()))
