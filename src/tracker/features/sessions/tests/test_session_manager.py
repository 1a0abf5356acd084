from __future__ import annotations

from datetime import UTC, datetime

import simpy

from tracker.core.config import CookieConfig, DeploymentConfig
from tracker.core.types import SimClock
from tracker.features.identity.types import (
    DEVICE_SESSION_ID_KEY,
    FIRST_SOURCE_URL_KEY,
    LAST_SOURCE_URL_KEY,
    MKTO_ORIGINAL_REFERRER_KEY,
    ORIGINAL_REFERRER_KEY,
    SESSION_FIRST_URL_KEY,
    SESSION_REFERRER_KEY,
    AnonymousIdentity,
    DeviceIdentity,
    ResolvedIdentity,
)
from tracker.features.page.service import Page
from tracker.features.persistence.memory_store import MemoryCookieJar, MemoryLocalStorage
from tracker.features.persistence.service import PersistentStore
from tracker.features.sessions.service import (
    CLIENT_APP_WEB,
    CLIENT_DOTCOM_WEB,
    CLIENT_SERVER_WEB,
    SessionManager,
)

T0 = datetime(2026, 1, 7, 9, 0, tzinfo=UTC)
URL = "https://example.com/search?q=x"
REFERRER = "https://news.example.org/"

IDENTITY = ResolvedIdentity(
    anonymous=AnonymousIdentity(id="anon-1", cohort_id="2026-01-05"),
    device=DeviceIdentity(device_id="anon-1"),
)


def make_manager(*, public_mode: bool = True, app_mode: bool = False):
    env = simpy.Environment()
    jar = MemoryCookieJar(SimClock(env=env, start_dt=T0))
    store = PersistentStore(records=jar, legacy=MemoryLocalStorage(), cookies=CookieConfig())
    page = Page(href=URL, referrer=REFERRER)
    mgr = SessionManager(
        store=store,
        identity=IDENTITY,
        page=page,
        deployment=DeploymentConfig(public_mode=public_mode, app_mode=app_mode),
    )
    return mgr, env, jar, page


def test_session_id_defaults_to_anonymous_id():
    mgr, _, jar, _ = make_manager()

    assert mgr.renew() is True
    assert mgr.device_session_id() == "anon-1"
    assert jar.get(DEVICE_SESSION_ID_KEY) == "anon-1"


def test_renew_never_shortens_expiry():
    mgr, env, jar, _ = make_manager()

    mgr.renew()
    once = jar.expires_at(DEVICE_SESSION_ID_KEY)
    mgr.renew()
    twice = jar.expires_at(DEVICE_SESSION_ID_KEY)
    assert twice >= once

    env.run(until=120)
    mgr.renew()
    later = jar.expires_at(DEVICE_SESSION_ID_KEY)
    assert later > twice


def test_activity_keeps_session_alive_past_the_ttl():
    mgr, env, jar, _ = make_manager()
    jar.set(DEVICE_SESSION_ID_KEY, "session-a", mgr.store.short_lived)

    # renew every 20 minutes for an hour; the ~30 minute window never lapses
    for t in (1200, 2400, 3600):
        env.run(until=t)
        assert mgr.renew() is True
        assert mgr.device_session_id() == "session-a"


def test_expired_record_falls_back_to_in_page_value():
    mgr, env, jar, _ = make_manager()
    jar.set(DEVICE_SESSION_ID_KEY, "session-a", mgr.store.short_lived)
    assert mgr.device_session_id() == "session-a"

    env.run(until=1800)
    assert jar.get(DEVICE_SESSION_ID_KEY) is None

    # same page: memory still holds the id, and it is written back
    assert mgr.device_session_id() == "session-a"
    assert jar.get(DEVICE_SESSION_ID_KEY) == "session-a"


def test_new_page_after_expiry_starts_from_anonymous_id():
    env = simpy.Environment()
    jar = MemoryCookieJar(SimClock(env=env, start_dt=T0))
    store = PersistentStore(records=jar, legacy=MemoryLocalStorage(), cookies=CookieConfig())
    jar.set(DEVICE_SESSION_ID_KEY, "session-a", store.short_lived)

    env.run(until=1800)

    next_page = SessionManager(
        store=store,
        identity=IDENTITY,
        page=Page(href=URL),
        deployment=DeploymentConfig(public_mode=True),
    )
    next_page.initialize()

    assert next_page.device_session_id() == "anon-1"
    assert jar.get(DEVICE_SESSION_ID_KEY) == "anon-1"


def test_external_session_id_overrides_memory():
    mgr, _, jar, _ = make_manager()
    mgr.renew()
    jar.set(DEVICE_SESSION_ID_KEY, "set-by-sibling", mgr.store.short_lived)

    assert mgr.device_session_id() == "set-by-sibling"


def test_attribution_defaults_to_page_values_and_persists():
    mgr, _, jar, _ = make_manager()

    assert mgr.first_source_url() == URL
    assert mgr.last_source_url() == URL
    assert mgr.original_referrer() == REFERRER
    assert mgr.session_referrer() == REFERRER
    assert mgr.session_first_url() == URL

    assert jar.get(FIRST_SOURCE_URL_KEY) == URL
    assert jar.get(LAST_SOURCE_URL_KEY) == URL
    assert jar.get(ORIGINAL_REFERRER_KEY) == REFERRER
    assert jar.get(SESSION_REFERRER_KEY) == REFERRER
    assert jar.get(SESSION_FIRST_URL_KEY) == URL


def test_last_source_url_prefers_record_written_by_others():
    mgr, _, jar, _ = make_manager()
    jar.set(LAST_SOURCE_URL_KEY, "https://blog.example.com/post", mgr.store.long_lived)

    assert mgr.last_source_url() == "https://blog.example.com/post"


def test_values_are_cached_after_first_resolution():
    mgr, _, _, page = make_manager()
    assert mgr.first_source_url() == URL

    page.replace_state("https://example.com/other")
    assert mgr.first_source_url() == URL


def test_original_referrer_falls_back_to_marketing_record():
    mgr, _, jar, _ = make_manager()
    jar.set(MKTO_ORIGINAL_REFERRER_KEY, "https://ads.example.net/", mgr.store.long_lived)

    assert mgr.original_referrer() == "https://ads.example.net/"
    assert jar.get(ORIGINAL_REFERRER_KEY) == "https://ads.example.net/"


def test_session_fields_use_short_lived_records():
    mgr, _, jar, _ = make_manager()
    mgr.session_referrer()
    mgr.first_source_url()

    assert jar.record(SESSION_REFERRER_KEY).attrs.expires_days == CookieConfig().session_days
    assert jar.record(FIRST_SOURCE_URL_KEY).attrs.expires_days == CookieConfig().long_lived_days


def test_attribution_disabled_outside_public_mode():
    mgr, _, jar, _ = make_manager(public_mode=False)
    mgr.initialize()

    assert mgr.first_source_url() == ""
    assert mgr.last_source_url() == ""
    assert mgr.original_referrer() == ""
    assert mgr.session_referrer() == ""
    assert mgr.session_first_url() == ""
    assert mgr.referrer() == ""

    for key in (
        FIRST_SOURCE_URL_KEY,
        LAST_SOURCE_URL_KEY,
        ORIGINAL_REFERRER_KEY,
        SESSION_REFERRER_KEY,
        SESSION_FIRST_URL_KEY,
    ):
        assert jar.get(key) is None
    # the session id itself is always tracked
    assert jar.get(DEVICE_SESSION_ID_KEY) == "anon-1"


def test_initialize_seeds_session_and_referrers():
    mgr, _, jar, _ = make_manager()
    mgr.initialize()

    assert jar.get(DEVICE_SESSION_ID_KEY) == "anon-1"
    assert jar.get(ORIGINAL_REFERRER_KEY) == REFERRER
    assert jar.get(SESSION_REFERRER_KEY) == REFERRER
    assert jar.get(SESSION_FIRST_URL_KEY) == URL


def test_client_reflects_deployment():
    assert make_manager(app_mode=True)[0].client() == CLIENT_APP_WEB
    assert make_manager(public_mode=True)[0].client() == CLIENT_DOTCOM_WEB
    assert make_manager(public_mode=False)[0].client() == CLIENT_SERVER_WEB
