from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import Any
from urllib.parse import parse_qsl, unquote_plus, urlsplit, urlunsplit

from tracker.features.page.types import PageLike

from .types import (
    CODE_HOST_INTEGRATION_SOURCES,
    SIGNIN_COMPLETED,
    SIGNUP_COMPLETED,
    STRIPPED_PARAMETERS,
    UTMMarker,
)

# log(label, properties=None, public_argument=None)
LogFn = Callable[..., Any]

_CLOUD_ONBOARDING_RE = re.compile(r"^cloud-onboarding-email(.*)$")


def query_params(url: str) -> dict[str, str]:
    """
    First value per key, blank values kept (so `?signup` counts as present).
    """
    out: dict[str, str] = {}
    for k, v in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        out.setdefault(k, v)
    return out


def strip_url_parameters(url: str, names: Iterable[str]) -> str:
    """
    Removes every occurrence of `names` from the query string.
    Other parameters keep their order and original encoding; the fragment is kept.
    """
    drop = set(names)
    parts = urlsplit(url)
    if not parts.query:
        return url
    kept = [
        seg
        for seg in parts.query.split("&")
        if seg and unquote_plus(seg.split("=", 1)[0]) not in drop
    ]
    return urlunsplit(parts._replace(query="&".join(kept)))


class QueryParamTrigger:
    """
    Maps URL query markers to semantic events.

    handle(url) runs the one-shot signup/signin events and strips the handled
    markers; the page-view caller guards it with a latch.
    page_view_query_parameters(url) evaluates the UTM table on every page view.
    """

    def __init__(self, *, page: PageLike, log: LogFn) -> None:
        self.page = page
        self.log = log

    def handle(self, url: str) -> None:
        params = query_params(url)

        if "signup" in params:
            args = {"serviceType": params.get("signup") or ""}
            self.log(SIGNUP_COMPLETED, args, args)

        if "signin" in params:
            args = {"serviceType": params.get("signin") or ""}
            self.log(SIGNIN_COMPLETED, args, args)

        # destructive: rewrites the address bar without navigation
        self.page.replace_state(strip_url_parameters(url, STRIPPED_PARAMETERS))

    def page_view_query_parameters(self, url: str) -> UTMMarker:
        params = query_params(url)

        utm_source = params.get("utm_source") or None
        utm_campaign = params.get("utm_campaign") or None
        utm_medium = params.get("utm_medium") or None

        marker = UTMMarker(
            utm_campaign=utm_campaign,
            utm_source=utm_source,
            utm_medium=utm_medium,
            utm_term=params.get("utm_term") or None,
            utm_content=params.get("utm_content") or None,
        )
        props = marker.as_properties()

        # first match wins
        if utm_source == "saved-search-email":
            self.log("SavedSearchEmailClicked")
        elif utm_source == "saved-search-slack":
            self.log("SavedSearchSlackClicked")
        elif utm_source == "code-monitoring-email":
            self.log("CodeMonitorEmailLinkClicked")
        elif utm_source == "hubspot" and utm_campaign and _CLOUD_ONBOARDING_RE.match(utm_campaign):
            self.log("UTMCampaignLinkClicked", props, props)
        elif (utm_source or "") in CODE_HOST_INTEGRATION_SOURCES:
            self.log("UTMCodeHostIntegration", props, props)
        elif utm_medium == "VSCODE" and utm_campaign == "vsce-sign-up":
            self.log("VSCODESignUpLinkClicked", props, props)

        return marker
