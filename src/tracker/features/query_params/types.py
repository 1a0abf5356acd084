from __future__ import annotations

from dataclasses import asdict, dataclass

SIGNUP_COMPLETED = "web:auth:signUpCompleted"
SIGNIN_COMPLETED = "web:auth:signInCompleted"

# Parameters removed from the address bar once handled.
# utm_term / utm_content are read but left alone.
STRIPPED_PARAMETERS: tuple[str, ...] = ("utm_campaign", "utm_source", "utm_medium", "signup", "signin")

CODE_HOST_INTEGRATION_SOURCES: frozenset[str] = frozenset(
    {
        "safari-extension",
        "firefox-extension",
        "chrome-extension",
        "phabricator-integration",
        "bitbucket-integration",
        "gitlab-integration",
    }
)


@dataclass(frozen=True, slots=True)
class UTMMarker:
    utm_campaign: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_term: str | None = None
    utm_content: str | None = None

    def as_properties(self) -> dict[str, str]:
        """
        Present markers only; absent ones are dropped.
        """
        return {k: v for k, v in asdict(self).items() if v is not None}
