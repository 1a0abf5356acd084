from __future__ import annotations

import logging
from itertools import count

from tracker.core.logging import get_logger
from tracker.core.types import EventProperties
from tracker.features.page.types import PageLike
from tracker.features.persistence.service import PersistentStore
from tracker.features.query_params.service import QueryParamTrigger
from tracker.features.sessions.service import SessionManager
from tracker.features.transport.types import EventTransport

from .types import (
    DEBUG_EVENT_LOGGING_KEY,
    PAGE_VIEW_SUFFIX,
    VIEW_EVENT_PREFIX,
    EventRecord,
    Listener,
    Unsubscribe,
)


class EventHub:
    """
    Emission API used by the rest of the application.

    Every emission renews the session first. Then:
      - log(): listeners always run (in registration order, exceptions
        propagate), and only then bot traffic / empty labels are dropped
      - log_page_view() / log_view_event(): bot traffic / empty names are
        dropped before anything else happens, listeners are not notified

    The first forwarded page view also runs the signup/signin query trigger;
    a latch keeps it to once per page instance.
    """

    def __init__(
        self,
        *,
        sessions: SessionManager,
        transport: EventTransport,
        page: PageLike,
        store: PersistentStore,
        logger: logging.Logger | None = None,
    ) -> None:
        self.sessions = sessions
        self.transport = transport
        self.page = page
        self.store = store
        self.query = QueryParamTrigger(page=page, log=self.log)
        self._logger = logger or get_logger(__name__)

        self._listeners: dict[int, Listener] = {}
        self._handles = count(1)
        self._query_events_handled = False

    @property
    def query_events_handled(self) -> bool:
        return self._query_events_handled

    # ----------------------------
    # Public API
    # ----------------------------
    def log(
        self,
        label: str,
        properties: EventProperties | None = None,
        public_argument: EventProperties | None = None,
    ) -> None:
        """
        Log a user action. Labels follow ${noun}${verb} in pascal case,
        e.g. "ButtonClicked".
        """
        self.sessions.renew()

        for listener in list(self._listeners.values()):
            listener(label)

        if self.page.user_agent_is_bot or not label:
            return

        event = EventRecord(label=label, properties=properties, public_argument=public_argument)
        self.transport.track_action(event.label, event.properties, event.public_argument)
        self._log_debug(event)

    def log_page_view(
        self,
        name: str,
        properties: EventProperties | None = None,
        as_active_user: bool = True,
    ) -> None:
        """
        Log a page view. `name` is pascal case, e.g. "SearchResults";
        it is forwarded as "SearchResultsViewed".
        """
        self.sessions.renew()

        if self.page.user_agent_is_bot or not name:
            return
        self._log_view(f"{name}{PAGE_VIEW_SUFFIX}", properties, as_active_user)

    def log_view_event(
        self,
        title: str,
        properties: EventProperties | None = None,
        as_active_user: bool = True,
    ) -> None:
        """
        Deprecated: use log_page_view. Forwards "View" + title.
        """
        self.sessions.renew()

        if self.page.user_agent_is_bot or not title:
            return
        self._log_view(f"{VIEW_EVENT_PREFIX}{title}", properties, as_active_user)

    def add_listener(self, callback: Listener) -> Unsubscribe:
        handle = next(self._handles)
        self._listeners[handle] = callback

        def unsubscribe() -> None:
            self._listeners.pop(handle, None)

        return unsubscribe

    def debug_event_logging_enabled(self) -> bool:
        return self.store.get_legacy(DEBUG_EVENT_LOGGING_KEY) == "true"

    def set_debug_event_logging(self, enabled: bool) -> None:
        self.store.set_legacy(DEBUG_EVENT_LOGGING_KEY, "true" if enabled else "false")

    # ----------------------------
    # Internal helpers
    # ----------------------------
    def _log_view(
        self,
        name: str,
        properties: EventProperties | None,
        as_active_user: bool,
    ) -> None:
        utm = self.query.page_view_query_parameters(self.page.href)
        self.transport.track_page_view(name, as_active_user, properties)
        self._log_debug(EventRecord(label=name, properties=utm.as_properties()))

        if not self._query_events_handled:
            self.query.handle(self.page.href)
            self._query_events_handled = True

    def _log_debug(self, event: EventRecord) -> None:
        if not self.debug_event_logging_enabled():
            return
        self._logger.info(
            "EVENT %s",
            event.label,
            extra={
                "feature": "events",
                "event_label": event.label,
                "anonymous_id": self.sessions.identity.anonymous_id,
            },
        )
