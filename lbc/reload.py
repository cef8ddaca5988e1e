from __future__ import annotations

import subprocess

from .db import log_event
from .errors import ReloadExitError, ReloadLaunchError
from .settings import ProxySettings


def reload_proxy(proxy: ProxySettings) -> None:
    """Run the configured reload command and wait for it.

    The command string is split on whitespace and executed directly; quoting
    and escaping are not interpreted.
    """
    command = proxy.reload_command.strip()
    if not command:
        log_event("WARN", "Tried to reload HAProxy but no reload command is set")
        return

    log_event("INFO", f"Reloading HAProxy with: {command}")
    args = command.split()
    try:
        proc = subprocess.Popen(args)
    except OSError as e:
        log_event("CRITICAL", f"Could not start reload command {command!r}: {e}")
        raise ReloadLaunchError(f"could not start reload command {command!r}: {e}") from e

    try:
        returncode = proc.wait(timeout=proxy.reload_timeout_s)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()
        log_event("ERROR", f"Reload command {command!r} timed out after {proxy.reload_timeout_s}s")
        raise ReloadExitError(f"reload command timed out after {proxy.reload_timeout_s}s", command=command, returncode=None)

    if returncode != 0:
        log_event("ERROR", f"Reload command {command!r} exited with status {returncode}")
        raise ReloadExitError(f"reload command exited with status {returncode}", command=command, returncode=returncode)
