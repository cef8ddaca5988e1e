from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ProxySettings:
    """Static settings of one managed HAProxy instance."""

    binary: str = os.getenv("LBC_HAPROXY_BINARY", "haproxy")
    config_dir: str = os.getenv("LBC_HAPROXY_CONFIG_DIR", "/etc/haproxy")
    config_name: str = os.getenv("LBC_HAPROXY_CONFIG_NAME", "haproxy.cfg")
    # Split on whitespace and executed directly, no shell.
    reload_command: str = os.getenv("LBC_HAPROXY_RELOAD_COMMAND", "")
    socket_glob: str = os.getenv("LBC_HAPROXY_SOCKET", "/var/run/haproxy/*.sock")

    # Upper bounds for haproxy -c, the reload command and socket round trips.
    check_timeout_s: float = _env_float("LBC_CHECK_TIMEOUT_S", 30.0)
    reload_timeout_s: float = _env_float("LBC_RELOAD_TIMEOUT_S", 60.0)
    socket_timeout_s: float = _env_float("LBC_SOCKET_TIMEOUT_S", 5.0)

    # Backend servers whose nickname carries this marker are never auto-disabled.
    exempt_marker: str = os.getenv("LBC_EXEMPT_MARKER", "nocheck-")
    maint_status: str = "MAINT"

    @property
    def config_path(self) -> str:
        return os.path.join(self.config_dir, self.config_name)

    @property
    def certs_dir(self) -> str:
        return os.path.join(self.config_dir, "certs.d")

    @property
    def marker_path(self) -> str:
        return os.path.join(self.config_dir, "haproxy-lastupdated.txt")


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("LBC_DB_PATH", "lbc.db")
    poll_interval_s: int = _env_int("LBC_POLL_INTERVAL_S", 10)

    # Desired state: a JSON file path or an http(s) URL. Empty disables the loop.
    source: str = os.getenv("LBC_SOURCE", "")
    source_timeout_s: float = _env_float("LBC_SOURCE_TIMEOUT_S", 10.0)
    availability_zone: str = os.getenv("LBC_AVAILABILITY_ZONE", "")

    # Liveness marker older than this is reported as stale.
    marker_max_age_s: int = _env_int("LBC_MARKER_MAX_AGE_S", 3600)

    # API basic auth for mutating routes
    api_user: str = os.getenv("LBC_API_USER", "admin")
    api_password: str = os.getenv("LBC_API_PASSWORD", "")

    # Email alerting (optional)
    enable_email: bool = _env_bool("LBC_ENABLE_EMAIL", False)
    smtp_host: str = os.getenv("LBC_SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = _env_int("LBC_SMTP_PORT", 587)
    smtp_user: str | None = os.getenv("LBC_SMTP_USER")
    smtp_password: str | None = os.getenv("LBC_SMTP_PASSWORD")
    email_from: str | None = os.getenv("LBC_EMAIL_FROM")
    email_to: str | None = os.getenv("LBC_EMAIL_TO")

    proxy: ProxySettings = field(default_factory=ProxySettings)


settings = Settings()
