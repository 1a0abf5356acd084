from __future__ import annotations

import logging
from datetime import UTC, datetime

import pytest
import simpy

from tracker.core.config import CookieConfig, DeploymentConfig
from tracker.core.types import SimClock
from tracker.features.events.service import EventHub
from tracker.features.events.types import DEBUG_EVENT_LOGGING_KEY
from tracker.features.identity.types import (
    DEVICE_SESSION_ID_KEY,
    AnonymousIdentity,
    DeviceIdentity,
    ResolvedIdentity,
)
from tracker.features.page.service import Page
from tracker.features.persistence.memory_store import MemoryCookieJar, MemoryLocalStorage
from tracker.features.persistence.service import PersistentStore
from tracker.features.sessions.service import SessionManager

T0 = datetime(2026, 1, 7, 9, 0, tzinfo=UTC)

IDENTITY = ResolvedIdentity(
    anonymous=AnonymousIdentity(id="anon-1", cohort_id="2026-01-05"),
    device=DeviceIdentity(device_id="anon-1"),
)


class RecordingTransport:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def track_action(self, label, properties=None, public_argument=None) -> None:
        self.calls.append(("action", label, properties, public_argument))

    def track_page_view(self, page_title, as_active_user=True, properties=None) -> None:
        self.calls.append(("page_view", page_title, as_active_user, properties))


class ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def make_hub(*, url: str = "https://example.com/search", bot: bool = False, logger=None):
    env = simpy.Environment()
    jar = MemoryCookieJar(SimClock(env=env, start_dt=T0))
    legacy = MemoryLocalStorage()
    store = PersistentStore(records=jar, legacy=legacy, cookies=CookieConfig())
    page = Page(href=url, user_agent_is_bot=bot)
    sessions = SessionManager(
        store=store,
        identity=IDENTITY,
        page=page,
        deployment=DeploymentConfig(public_mode=True),
    )
    transport = RecordingTransport()
    hub = EventHub(sessions=sessions, transport=transport, page=page, store=store, logger=logger)
    return hub, transport, jar, legacy


def test_log_forwards_action_with_both_argument_sets():
    hub, transport, _, _ = make_hub()

    hub.log("ButtonClicked", {"repo": "private/repo"}, {"button": "save"})

    assert transport.calls == [
        ("action", "ButtonClicked", {"repo": "private/repo"}, {"button": "save"})
    ]


def test_listeners_run_in_registration_order():
    hub, _, _, _ = make_hub()
    seen: list[str] = []
    hub.add_listener(lambda label: seen.append(f"a:{label}"))
    hub.add_listener(lambda label: seen.append(f"b:{label}"))

    hub.log("SearchSubmitted")

    assert seen == ["a:SearchSubmitted", "b:SearchSubmitted"]


def test_unsubscribe_is_idempotent():
    hub, _, _, _ = make_hub()
    seen: list[str] = []
    other: list[str] = []
    unsubscribe = hub.add_listener(seen.append)
    hub.add_listener(other.append)

    unsubscribe()
    unsubscribe()
    hub.log("SearchSubmitted")

    assert seen == []
    assert other == ["SearchSubmitted"]


def test_same_callback_registered_twice_is_called_twice():
    hub, _, _, _ = make_hub()
    seen: list[str] = []
    first = hub.add_listener(seen.append)
    hub.add_listener(seen.append)

    hub.log("A")
    first()
    hub.log("B")

    assert seen == ["A", "A", "B"]


def test_bot_log_notifies_listeners_but_forwards_nothing():
    hub, transport, _, _ = make_hub(bot=True)
    seen: list[str] = []
    hub.add_listener(seen.append)

    hub.log("ButtonClicked")

    assert seen == ["ButtonClicked"]
    assert transport.calls == []


def test_empty_label_notifies_listeners_but_forwards_nothing():
    hub, transport, _, _ = make_hub()
    seen: list[str] = []
    hub.add_listener(seen.append)

    hub.log("")

    assert seen == [""]
    assert transport.calls == []


def test_listener_exception_propagates_before_forwarding():
    hub, transport, _, _ = make_hub()

    def broken(label: str) -> None:
        raise RuntimeError("listener failed")

    hub.add_listener(broken)

    with pytest.raises(RuntimeError):
        hub.log("ButtonClicked")
    assert transport.calls == []


def test_page_view_naming():
    hub, transport, _, _ = make_hub()

    hub.log_page_view("SearchResults", {"q": "x"}, as_active_user=False)
    hub.log_view_event("Blob")

    assert transport.calls == [
        ("page_view", "SearchResultsViewed", False, {"q": "x"}),
        ("page_view", "ViewBlob", True, None),
    ]


def test_page_views_do_not_notify_listeners():
    hub, _, _, _ = make_hub()
    seen: list[str] = []
    hub.add_listener(seen.append)

    hub.log_page_view("Home")

    assert seen == []


def test_bot_and_empty_page_views_are_dropped():
    hub, transport, _, _ = make_hub(bot=True)
    hub.log_page_view("Home")
    hub.log_view_event("Home")
    assert transport.calls == []
    assert hub.query_events_handled is False

    hub, transport, _, _ = make_hub()
    hub.log_page_view("")
    hub.log_view_event("")
    assert transport.calls == []


@pytest.mark.parametrize("bot", [False, True])
def test_every_emission_renews_the_session(bot):
    hub, _, jar, _ = make_hub(bot=bot)

    for emit in (
        lambda: hub.log("A"),
        lambda: hub.log_page_view("Home"),
        lambda: hub.log_view_event("Home"),
    ):
        jar.remove(DEVICE_SESSION_ID_KEY)
        emit()
        assert jar.get(DEVICE_SESSION_ID_KEY) == "anon-1"


def test_debug_flag_lives_in_legacy_store():
    hub, _, _, legacy = make_hub()
    assert hub.debug_event_logging_enabled() is False

    hub.set_debug_event_logging(True)
    assert legacy.get_item(DEBUG_EVENT_LOGGING_KEY) == "true"
    assert hub.debug_event_logging_enabled() is True

    hub.set_debug_event_logging(False)
    assert legacy.get_item(DEBUG_EVENT_LOGGING_KEY) == "false"
    assert hub.debug_event_logging_enabled() is False


def test_debug_logging_only_when_enabled():
    logger = logging.getLogger("tracker.tests.events.debug")
    logger.propagate = False
    handler = ListHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    hub, _, _, _ = make_hub(logger=logger)
    hub.log("Quiet")
    assert handler.records == []

    hub.set_debug_event_logging(True)
    hub.log("Loud")
    hub.log_page_view("Home")

    labels = [r.event_label for r in handler.records]
    assert labels == ["Loud", "HomeViewed"]
    assert all(r.anonymous_id == "anon-1" for r in handler.records)
