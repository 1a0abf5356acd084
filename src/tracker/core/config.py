from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class DeploymentConfig:
    # public_mode turns on attribution tracking (source urls, referrers)
    public_mode: bool = False
    app_mode: bool = False


@dataclass(frozen=True)
class CookieConfig:
    domain: str = ""
    long_lived_days: float = 365.0
    # ~30 minutes
    session_days: float = 0.0208
    secure: bool = True
    same_site: str = "Lax"


@dataclass(frozen=True)
class PresenceConfig:
    marker_selector: str = "#browser-extension-marker"
    event_name: str = "browser-extension-registration"
    timeout_s: float = 10.0
    poll_interval_s: float = 0.5


@dataclass(frozen=True)
class FlushConfig:
    every_n_events: int = 500
    or_every_seconds: float = 5.0


@dataclass(frozen=True)
class StorageConfig:
    duckdb_path: str
    clean_slate: bool = False
    flush: FlushConfig = FlushConfig()


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class TrackerConfig:
    deployment: DeploymentConfig
    cookies: CookieConfig
    presence: PresenceConfig
    storage: StorageConfig
    logging: LoggingConfig
    raw: dict[str, Any]  # original parsed YAML (for debugging)


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    data = yaml.safe_load(p.read_text())
    if not isinstance(data, dict):
        raise ValueError("Config YAML must parse to a dict at the top level.")
    return data


def parse_config(data: dict[str, Any]) -> TrackerConfig:
    for key in ["storage", "logging"]:
        if key not in data:
            raise ValueError(f"Missing required top-level config section: '{key}'")

    deployment = data.get("deployment") or {}
    cookies = data.get("cookies") or {}
    presence = data.get("presence") or {}
    storage = data.get("storage") or {}
    flush = storage.get("flush") or {}
    logging_cfg = data.get("logging") or {}

    if "duckdb_path" not in storage:
        raise ValueError("storage.duckdb_path is required")

    deployment_cfg = DeploymentConfig(
        public_mode=bool(deployment.get("public_mode", False)),
        app_mode=bool(deployment.get("app_mode", False)),
    )

    cookie_cfg = CookieConfig(
        domain=str(cookies.get("domain", "")),
        long_lived_days=float(cookies.get("long_lived_days", 365.0)),
        session_days=float(cookies.get("session_days", 0.0208)),
        secure=bool(cookies.get("secure", True)),
        same_site=str(cookies.get("same_site", "Lax")),
    )
    if cookie_cfg.long_lived_days <= 0 or cookie_cfg.session_days <= 0:
        raise ValueError("cookie lifetimes must be positive")

    presence_cfg = PresenceConfig(
        marker_selector=str(presence.get("marker_selector", PresenceConfig.marker_selector)),
        event_name=str(presence.get("event_name", PresenceConfig.event_name)),
        timeout_s=float(presence.get("timeout_s", 10.0)),
        poll_interval_s=float(presence.get("poll_interval_s", 0.5)),
    )
    if presence_cfg.poll_interval_s <= 0:
        raise ValueError("presence.poll_interval_s must be > 0")

    storage_cfg = StorageConfig(
        duckdb_path=str(storage["duckdb_path"]),
        clean_slate=bool(storage.get("clean_slate", False)),
        flush=FlushConfig(
            every_n_events=int(flush.get("every_n_events", 500)),
            or_every_seconds=float(flush.get("or_every_seconds", 5.0)),
        ),
    )

    log_cfg = LoggingConfig(level=str(logging_cfg.get("level", "INFO")).upper())

    return TrackerConfig(
        deployment=deployment_cfg,
        cookies=cookie_cfg,
        presence=presence_cfg,
        storage=storage_cfg,
        logging=log_cfg,
        raw=data,
    )


def load_config(path: str | Path) -> TrackerConfig:
    data = load_yaml(path)
    return parse_config(data)
