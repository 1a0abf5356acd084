from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from tracker.core.ids import TokenGenerator, UuidTokens
from tracker.core.logging import get_logger
from tracker.core.types import Clock, SystemClock
from tracker.features.persistence.service import PersistentStore

from .types import (
    ANONYMOUS_USER_ID_KEY,
    COHORT_ID_KEY,
    DEVICE_ID_KEY,
    AnonymousIdentity,
    DeviceIdentity,
    ResolvedIdentity,
)


def previous_monday(now: datetime) -> str:
    """
    ISO date (YYYY-MM-DD) of the most recent Monday on or before `now`, in UTC.
    """
    if now.tzinfo is not None:
        now = now.astimezone(UTC)
    d = now.date()
    return (d - timedelta(days=d.weekday())).isoformat()


class IdentityResolver:
    """
    Computes the canonical {anonymous_id, cohort_id, device_id} triple at startup.

    Sources, in order:
      - the long-lived anonymous id record
      - the legacy local store (migrated into the record, then removed)
      - a freshly generated token, which also gets a cohort id

    Every resolved value is written back so its expiry slides forward.
    """

    def __init__(
        self,
        *,
        store: PersistentStore,
        tokens: TokenGenerator | None = None,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.tokens = tokens or UuidTokens()
        self.clock = clock or SystemClock()
        self._logger = logger or get_logger(__name__)

    def resolve(self) -> ResolvedIdentity:
        anonymous_id = self.store.get(ANONYMOUS_USER_ID_KEY) or self.store.get_legacy(
            ANONYMOUS_USER_ID_KEY
        )
        cohort_id = self.store.get(COHORT_ID_KEY)
        created = False

        if not anonymous_id:
            anonymous_id = self.tokens.new_token()
            cohort_id = previous_monday(self.clock.now())
            created = True

        # Migration is one-shot: the legacy key goes whether or not it was the source.
        self.store.set(ANONYMOUS_USER_ID_KEY, anonymous_id)
        self.store.remove_legacy(ANONYMOUS_USER_ID_KEY)

        if cohort_id:
            self.store.set(COHORT_ID_KEY, cohort_id)
        else:
            cohort_id = None

        device_id = self.store.get(DEVICE_ID_KEY)
        if not device_id:
            # consolidate device and anonymous ids
            device_id = anonymous_id
        self.store.set(DEVICE_ID_KEY, device_id)

        self._logger.debug(
            "identity_resolved",
            extra={
                "feature": "identity",
                "anonymous_id": anonymous_id,
                "reason": "created" if created else "existing",
            },
        )

        return ResolvedIdentity(
            anonymous=AnonymousIdentity(id=anonymous_id, cohort_id=cohort_id),
            device=DeviceIdentity(device_id=device_id),
            created=created,
        )
