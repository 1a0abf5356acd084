from __future__ import annotations

from dataclasses import dataclass

# Long-lived records
ANONYMOUS_USER_ID_KEY = "anonymousUid"
COHORT_ID_KEY = "cohortId"
DEVICE_ID_KEY = "deviceId"
FIRST_SOURCE_URL_KEY = "sourceUrl"
LAST_SOURCE_URL_KEY = "recentSourceUrl"
ORIGINAL_REFERRER_KEY = "originalReferrer"
# Written by the marketing automation tool, read-only for us
MKTO_ORIGINAL_REFERRER_KEY = "_mkto_referrer"

# Short-lived (session) records
DEVICE_SESSION_ID_KEY = "sessionId"
SESSION_REFERRER_KEY = "sessionReferrer"
SESSION_FIRST_URL_KEY = "sessionFirstUrl"


@dataclass(frozen=True, slots=True)
class AnonymousIdentity:
    id: str
    # Label of the Monday of the creation week. Identities created before
    # cohorts existed have none, and never get one.
    cohort_id: str | None = None


@dataclass(frozen=True, slots=True)
class DeviceIdentity:
    device_id: str


@dataclass(frozen=True, slots=True)
class ResolvedIdentity:
    anonymous: AnonymousIdentity
    device: DeviceIdentity
    # True when the anonymous id was generated during this resolution
    created: bool = False

    @property
    def anonymous_id(self) -> str:
        return self.anonymous.id

    @property
    def cohort_id(self) -> str | None:
        return self.anonymous.cohort_id

    @property
    def device_id(self) -> str:
        return self.device.device_id
