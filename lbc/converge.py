from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock

from .commit import ConfigChangeLog, commit_config
from .db import log_event
from .drift import DriftPlan, update_backends
from .errors import ConvergeBusy
from .reload import reload_proxy
from .render import render_config
from .runtime import DesiredState, ProxyConfiguration
from .settings import ProxySettings
from .verify import build_and_verify


@dataclass
class ConvergeState:
    """State carried by the caller from one convergence to the next.

    Only one convergence may run per state at a time; a second caller gets
    ConvergeBusy instead of racing on the backup/overwrite sequence.
    """

    first_converge_done: bool = False
    lock: Lock = field(default_factory=Lock, repr=False, compare=False)


@dataclass(frozen=True)
class ConvergeResult:
    outcome: str  # no-config|live-updated|unchanged|reloaded
    drift: DriftPlan | None = None
    change: ConfigChangeLog | None = None

    @property
    def reloaded(self) -> bool:
        return self.outcome == "reloaded"


def converge(
    proxy: ProxySettings,
    state: ConvergeState,
    configuration: ProxyConfiguration | None,
    desired: DesiredState,
    availability_zone: str,
) -> ConvergeResult:
    """One pass of reconciling the desired state against the running HAProxy."""
    if not state.lock.acquire(blocking=False):
        raise ConvergeBusy("a convergence is already running for this proxy")
    try:
        return _converge(proxy, state, configuration, desired, availability_zone)
    finally:
        state.lock.release()


def _converge(
    proxy: ProxySettings,
    state: ConvergeState,
    configuration: ProxyConfiguration | None,
    desired: DesiredState,
    availability_zone: str,
) -> ConvergeResult:
    if configuration is None:
        log_event("WARN", "HAProxy configuration is not available yet, nothing to converge")
        return ConvergeResult("no-config")

    rendered = render_config(configuration.template, desired, availability_zone)
    config = build_and_verify(proxy, configuration, rendered.text)

    drift = update_backends(proxy, rendered.required_services)
    if not drift.restart_required and state.first_converge_done:
        log_event("INFO", "HAProxy updated without changing the configuration")
        return ConvergeResult("live-updated", drift=drift)

    change = commit_config(proxy, config, backup=True)
    if change is None and state.first_converge_done:
        log_event("INFO", "Configuration unchanged, reload not required")
        return ConvergeResult("unchanged", drift=drift)

    try:
        reload_proxy(proxy)
    finally:
        state.first_converge_done = True
    return ConvergeResult("reloaded", drift=drift, change=change)
