"""Drift detection between the desired local backends and the live HAProxy.

Decides whether the running proxy can be brought in line with
``enable server`` / ``disable server`` commands, or whether a reload is needed
(new section, new server). Any doubt resolves to "restart required".
"""
from __future__ import annotations

from dataclasses import dataclass, field

from .commit import touch_marker
from .control import LiveBackends, read_status, send_commands
from .db import log_event
from .errors import BackendUpdateError, SocketUnavailable
from .render import nickname_for
from .runtime import EndpointInfo
from .settings import ProxySettings


@dataclass(frozen=True)
class DriftPlan:
    restart_required: bool
    commands: str = ""
    reason: str = ""
    enabled: frozenset[str] = field(default_factory=frozenset)


def is_exempt(nickname: str, marker: str) -> bool:
    return bool(marker) and marker in nickname


def plan_commands(
    live: LiveBackends | None,
    required: dict[str, dict[str, EndpointInfo]],
    exempt_marker: str = "nocheck-",
    maint_status: str = "MAINT",
) -> DriftPlan:
    if live is None:
        return DriftPlan(True, reason="live backend state unavailable")

    enabled: set[str] = set()
    for service in sorted(required):
        servers = required[service]
        if not servers:
            continue
        section = live.get(service)
        if section is None:
            return DriftPlan(True, reason=f"missing section {service}")
        for host_port in sorted(servers):
            nickname = nickname_for(service, host_port)
            if nickname not in section:
                return DriftPlan(True, reason=f"missing server {nickname} in section {service}")
            enabled.add(nickname)

    if not enabled:
        # An empty desired state must never drain the whole live fleet.
        return DriftPlan(True, reason="no desired backends, refusing to disable everything")

    lines: list[str] = []
    for section in sorted(live):
        for nickname in sorted(live[section]):
            status = live[section][nickname]
            if nickname in enabled:
                if status == maint_status:
                    lines.append(f"enable server {section}/{nickname}\n")
            elif not is_exempt(nickname, exempt_marker) and status != maint_status:
                lines.append(f"disable server {section}/{nickname}\n")

    return DriftPlan(False, commands="".join(lines), enabled=frozenset(enabled))


def dispatch(proxy: ProxySettings, commands: str, sockets: tuple[str, ...] | list[str]) -> None:
    """Send a command batch to every control socket, then record it in the marker file."""
    if not sockets:
        log_event("ERROR", f"No HAProxy socket to send commands to from {proxy.socket_glob}")
        raise BackendUpdateError(f"no control socket matched {proxy.socket_glob}", failures={})

    log_event("INFO", f"Running HAProxy commands on {len(sockets)} socket(s):\n{commands}")

    failures: dict[str, str] = {}
    for socket_path in sockets:
        try:
            send_commands(socket_path, commands, proxy.socket_timeout_s)
        except SocketUnavailable as e:
            failures[socket_path] = str(e)

    if len(failures) < len(sockets):
        try:
            touch_marker(proxy, commands)
        except OSError as e:
            log_event("ERROR", f"Could not update {proxy.marker_path}: {e}")

    if failures:
        for socket_path, err in failures.items():
            log_event("ERROR", f"HAProxy command batch failed on {socket_path}: {err}")
        raise BackendUpdateError(
            f"command batch failed on {len(failures)} of {len(sockets)} socket(s)", failures=failures
        )


def update_backends(proxy: ProxySettings, required: dict[str, dict[str, EndpointInfo]]) -> DriftPlan:
    """Apply live enable/disable updates where possible.

    Returns the plan; ``restart_required`` tells the caller a reload is needed.
    """
    status = read_status(proxy)
    plan = plan_commands(status.backends, required, proxy.exempt_marker, proxy.maint_status)
    if plan.restart_required:
        log_event("INFO", f"Restart required: {plan.reason}")
        return plan

    if plan.commands:
        dispatch(proxy, plan.commands, status.sockets)
    return plan
