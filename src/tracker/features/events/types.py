from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from tracker.core.types import EventProperties

EXTENSION_CONNECTED = "BrowserExtensionConnectedToServer"

PAGE_VIEW_SUFFIX = "Viewed"
# deprecated naming for log_view_event
VIEW_EVENT_PREFIX = "View"

DEBUG_EVENT_LOGGING_KEY = "eventLogDebug"

Listener = Callable[[str], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True, slots=True)
class EventRecord:
    """
    Carries no identity; the transport attaches it.

    properties may hold private data (repository names, queries).
    public_argument holds only what is safe for external analytics.
    """

    label: str
    properties: EventProperties | None = None
    public_argument: EventProperties | None = None
