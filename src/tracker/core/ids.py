from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Protocol


class TokenGenerator(Protocol):
    def new_token(self) -> str: ...


class UuidTokens:
    """
    Opaque random tokens (uuid4). Used for anonymous ids and insert ids.
    """

    def new_token(self) -> str:
        return str(uuid.uuid4())


@dataclass(slots=True)
class CounterTokens:
    """
    Deterministic, monotonic tokens. Handy for tests and replays.
    """

    prefix: str = "tok"
    _counter: int = field(default=0, init=False, repr=False)

    def new_token(self) -> str:
        self._counter += 1
        return f"{self.prefix}_{self._counter:08d}"


@dataclass(slots=True)
class EventIdCounter:
    """
    Per-page event sequence. Lets the backend dedupe events that share
    user id and timestamp.
    """

    _counter: int = field(default=0, init=False, repr=False)

    def next_event_id(self) -> int:
        self._counter += 1
        return self._counter
