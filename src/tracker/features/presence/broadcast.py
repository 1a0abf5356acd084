from __future__ import annotations

from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")

ValueCallback = Callable[[T], None]
ErrorCallback = Callable[[BaseException], None]


class OneShotBroadcast(Generic[T]):
    """
    Settles at most once (value or error) and replays the outcome.

    - The first settle wins; later settle attempts return False.
    - Subscribers registered before settling are called when it happens,
      in subscription order; later subscribers are called immediately.
    - Each subscriber sees the outcome exactly once.
    - An error reaches on_error; a subscriber without on_error re-raises it.
    """

    def __init__(self) -> None:
        self._settled = False
        self._value: T | None = None
        self._error: BaseException | None = None
        self._pending: list[tuple[ValueCallback, ErrorCallback | None]] = []

    @property
    def settled(self) -> bool:
        return self._settled

    @property
    def value(self) -> T | None:
        return self._value

    @property
    def error(self) -> BaseException | None:
        return self._error

    def resolve(self, value: T) -> bool:
        if self._settled:
            return False
        self._settled = True
        self._value = value
        self._drain()
        return True

    def fail(self, error: BaseException) -> bool:
        if self._settled:
            return False
        self._settled = True
        self._error = error
        self._drain()
        return True

    def subscribe(self, on_value: ValueCallback, on_error: ErrorCallback | None = None) -> None:
        if not self._settled:
            self._pending.append((on_value, on_error))
            return
        self._deliver(on_value, on_error)

    def _drain(self) -> None:
        pending, self._pending = self._pending, []
        unhandled: BaseException | None = None
        for on_value, on_error in pending:
            if self._error is not None and on_error is None:
                unhandled = self._error
                continue
            self._deliver(on_value, on_error)
        if unhandled is not None:
            raise unhandled

    def _deliver(self, on_value: ValueCallback, on_error: ErrorCallback | None) -> None:
        if self._error is None:
            on_value(self._value)  # type: ignore[arg-type]
            return
        if on_error is None:
            raise self._error
        on_error(self._error)
