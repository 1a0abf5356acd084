from __future__ import annotations

from collections.abc import Callable
from typing import Any

from tracker.core.config import DeploymentConfig
from tracker.features.identity.types import (
    DEVICE_SESSION_ID_KEY,
    FIRST_SOURCE_URL_KEY,
    LAST_SOURCE_URL_KEY,
    MKTO_ORIGINAL_REFERRER_KEY,
    ORIGINAL_REFERRER_KEY,
    SESSION_FIRST_URL_KEY,
    SESSION_REFERRER_KEY,
    ResolvedIdentity,
)
from tracker.features.page.types import PageLike
from tracker.features.persistence.service import PersistentStore

CLIENT_APP_WEB = "APP_WEB"
CLIENT_DOTCOM_WEB = "DOTCOM_WEB"
CLIENT_SERVER_WEB = "SERVER_WEB"


class SessionManager:
    """
    Sliding-window session state and page-scoped attribution.

    Every accessor is read-through:
      memory -> backing record -> default (page url / referrer)
    and writes the resolved value back, which slides the record's expiry.

    Other scripts on the page may overwrite any of these records (notably the
    last source url), so nothing here assumes it owns a record.

    Attribution fields and the session referrer/first url are only tracked in
    public mode; otherwise they resolve to "" and nothing is written.
    """

    def __init__(
        self,
        *,
        store: PersistentStore,
        identity: ResolvedIdentity,
        page: PageLike,
        deployment: DeploymentConfig,
    ) -> None:
        self.store = store
        self.identity = identity
        self.page = page
        # evaluated once; flipping config later does not change a live page
        self.public_mode = bool(deployment.public_mode)
        self.app_mode = bool(deployment.app_mode)

        self._device_session_id: str | None = None
        self._first_source_url: str | None = None
        self._last_source_url: str | None = None
        self._original_referrer: str | None = None
        self._session_referrer: str | None = None
        self._session_first_url: str | None = None

    # ----------------------------
    # Startup
    # ----------------------------
    def initialize(self) -> None:
        """
        Seeds session and referrer state right after identity resolution.
        """
        self._device_session_id = ""
        self.device_session_id()

        if not self.store.get(ORIGINAL_REFERRER_KEY):
            self.original_referrer()
        if not self.store.get(SESSION_REFERRER_KEY):
            self.session_referrer()
        if not self.store.get(SESSION_FIRST_URL_KEY):
            self.session_first_url()

    # ----------------------------
    # Session
    # ----------------------------
    def device_session_id(self) -> str:
        # Record first, so an id written by a sibling property wins. Memory only
        # covers a store that lost the record; a new page starts from "".
        device_session_id = self.store.get(DEVICE_SESSION_ID_KEY) or self._device_session_id
        if not device_session_id:
            device_session_id = self.identity.anonymous_id

        # always set, to renew expiry
        self.store.set(DEVICE_SESSION_ID_KEY, device_session_id, session=True)
        self._device_session_id = device_session_id
        return device_session_id

    def renew(self) -> bool:
        """
        Re-resolves the device session id, sliding its expiry.
        Returns False if no id could be obtained.
        """
        device_session_id = self.device_session_id()
        if not device_session_id:
            self._device_session_id = device_session_id
            return False
        return True

    def session_referrer(self) -> str:
        return self._read_through(
            "_session_referrer",
            SESSION_REFERRER_KEY,
            default=lambda: self.page.referrer,
            session=True,
        )

    def session_first_url(self) -> str:
        return self._read_through(
            "_session_first_url",
            SESSION_FIRST_URL_KEY,
            default=lambda: self.page.href,
            session=True,
        )

    # ----------------------------
    # Attribution
    # ----------------------------
    def first_source_url(self) -> str:
        return self._read_through(
            "_first_source_url", FIRST_SOURCE_URL_KEY, default=lambda: self.page.href
        )

    def last_source_url(self) -> str:
        # Overwritten by tag manager on every visit to a sibling property.
        return self._read_through(
            "_last_source_url", LAST_SOURCE_URL_KEY, default=lambda: self.page.href
        )

    def original_referrer(self) -> str:
        return self._read_through(
            "_original_referrer",
            ORIGINAL_REFERRER_KEY,
            default=lambda: self.store.get(MKTO_ORIGINAL_REFERRER_KEY) or self.page.referrer,
        )

    def referrer(self) -> str:
        if self.public_mode:
            return self.page.referrer
        return ""

    def client(self) -> str:
        if self.app_mode:
            return CLIENT_APP_WEB
        if self.public_mode:
            return CLIENT_DOTCOM_WEB
        return CLIENT_SERVER_WEB

    # ----------------------------
    # Internal helpers
    # ----------------------------
    def _read_through(
        self,
        attr: str,
        key: str,
        *,
        default: Callable[[], Any],
        session: bool = False,
    ) -> str:
        if not self.public_mode:
            return ""

        value = getattr(self, attr) or self.store.get(key) or default() or ""
        setattr(self, attr, value)

        self.store.set(key, value, session=session)
        return value
