from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import simpy

# Opaque event properties. Consumers and the transport never assume a structure.
EventProperties = dict[str, Any]


class Clock(Protocol):
    def now(self) -> datetime: ...


@dataclass(frozen=True)
class SimClock:
    """
    Wall clock derived from the simpy environment: start_dt + env.now seconds.
    Monotonic as long as the environment only moves forward.
    """

    env: simpy.Environment
    start_dt: datetime

    def now(self) -> datetime:
        return _ensure_utc(self.start_dt) + timedelta(seconds=float(self.env.now))


@dataclass(frozen=True)
class SystemClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


def _ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)
