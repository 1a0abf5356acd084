from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

FIREFOX_PERMISSION_MESSAGE = 'Permission denied to access property "platform"'


@dataclass(frozen=True, slots=True)
class PresencePayload:
    platform: str | None = None
    version: str | None = None

    def as_properties(self) -> dict[str, str | None]:
        return {"platform": self.platform, "version": self.version}


FIREFOX_SENTINEL = PresencePayload(
    platform="firefox-extension",
    version=f"unknown due to <<{FIREFOX_PERMISSION_MESSAGE}>>",
)


class SandboxQuirk(Protocol):
    """
    Platform-specific escape hatch for errors raised while reading a
    sandboxed event detail. Returns a substitute payload, or None to let
    the error propagate.
    """

    def substitute(self, error: BaseException) -> PresencePayload | None: ...


class NoQuirk:
    def substitute(self, error: BaseException) -> PresencePayload | None:
        return None


class FirefoxSandboxQuirk:
    """
    Firefox extension content scripts can hand the page an event detail whose
    properties raise on access.
    """

    def substitute(self, error: BaseException) -> PresencePayload | None:
        if isinstance(error, PermissionError) and FIREFOX_PERMISSION_MESSAGE in str(error):
            return FIREFOX_SENTINEL
        return None


def detect_sandbox_quirk(user_agent: str) -> SandboxQuirk:
    if "firefox" in (user_agent or "").lower():
        return FirefoxSandboxQuirk()
    return NoQuirk()
