from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from tracker.core.types import EventProperties

KIND_ACTION = "action"
KIND_PAGE_VIEW = "page_view"


class EventTransport(Protocol):
    """
    Ships events to the backend. Fire and forget: callers never await or retry.
    """

    def track_action(
        self,
        label: str,
        properties: EventProperties | None = None,
        public_argument: EventProperties | None = None,
    ) -> None: ...

    def track_page_view(
        self,
        page_title: str,
        as_active_user: bool = True,
        properties: EventProperties | None = None,
    ) -> None: ...


@dataclass(frozen=True, slots=True)
class ForwardedEvent:
    """
    An event with the identity fields attached at forwarding time.
    """

    insert_id: str
    event_seq: int
    ts_utc: datetime

    kind: str
    label: str

    anonymous_id: str
    device_id: str
    client: str

    as_active_user: bool | None = None
    cohort_id: str | None = None
    device_session_id: str | None = None

    page_url: str | None = None
    referrer: str | None = None
    first_source_url: str | None = None
    last_source_url: str | None = None
    original_referrer: str | None = None
    session_referrer: str | None = None
    session_first_url: str | None = None

    properties: EventProperties | None = None
    public_argument: EventProperties | None = None
