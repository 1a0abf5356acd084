from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class MarkerElement:
    """
    DOM element found by selector. `dataset` mirrors its data-* attributes.
    """

    selector: str
    dataset: dict[str, str] = field(default_factory=dict)


class PageLike(Protocol):
    """
    The parts of the host page the tracker touches.
    """

    href: str
    referrer: str
    user_agent: str
    user_agent_is_bot: bool

    def replace_state(self, url: str) -> None: ...
    def query_selector(self, selector: str) -> MarkerElement | None: ...
    def add_event_listener(self, name: str, callback: Any) -> None: ...
    def remove_event_listener(self, name: str, callback: Any) -> None: ...
