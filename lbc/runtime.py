from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from .db import utc_now


@dataclass(frozen=True)
class EndpointInfo:
    revision: str = ""
    availability_zone: str = ""
    service_configuration: dict[str, Any] = field(default_factory=dict)


# service name -> "host:port" -> endpoint
DesiredState = dict[str, dict[str, EndpointInfo]]


@dataclass(frozen=True)
class ProxyConfiguration:
    """HAProxy payload delivered by the configuration source."""

    template: str
    certs: dict[str, str] = field(default_factory=dict)  # file name -> contents
    files: dict[str, str] = field(default_factory=dict)  # file name -> contents


@dataclass(frozen=True)
class BackendParameters:
    """One endpoint as seen from inside the configuration template."""

    nickname: str
    host: str
    host_port: str
    revision: str
    service_configuration: dict[str, Any]


@dataclass
class RunRecord:
    outcome: str  # no-config|live-updated|unchanged|reloaded|failed
    message: str
    commands: str = ""
    finished_at: str = field(default_factory=utc_now)


class RuntimeState:
    """In-memory view of the last convergence runs, shared with the API."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.last_run: RunRecord | None = None
        self.runs = 0
        self.failures = 0

    def record(self, run: RunRecord) -> None:
        with self.lock:
            self.last_run = run
            self.runs += 1
            if run.outcome == "failed":
                self.failures += 1

    def snapshot(self) -> tuple[RunRecord | None, int, int]:
        with self.lock:
            return self.last_run, self.runs, self.failures
