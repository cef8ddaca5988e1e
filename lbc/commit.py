from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone

from .db import log_event, record_config_change
from .errors import CommitIOError
from .settings import ProxySettings


@dataclass(frozen=True)
class ConfigChangeLog:
    old_config: str
    new_config: str
    backup_path: str  # '' when there was no active file to back up


def backup_timestamp() -> str:
    """RFC3339 UTC timestamp; fixed width so backups sort by name."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def read_active_config(proxy: ProxySettings) -> str:
    try:
        with open(proxy.config_path, encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        return ""


def touch_marker(proxy: ProxySettings, contents: str | None = None) -> None:
    """Refresh the liveness marker checked by external health checks."""
    path = proxy.marker_path
    if contents is not None:
        with open(path, "w", encoding="utf-8") as f:
            f.write(contents)
        return
    with open(path, "a", encoding="utf-8"):
        pass
    os.utime(path, None)


def commit_config(proxy: ProxySettings, config: str, backup: bool = True) -> ConfigChangeLog | None:
    """Replace the active configuration with an already verified candidate.

    Returns None when the active file already has this exact content, in which
    case nothing is touched. Otherwise the old file is hard-linked to a
    timestamped backup (if asked and if it exists), overwritten, and the
    liveness marker is refreshed.
    """
    path = proxy.config_path
    try:
        old = read_active_config(proxy)
    except OSError as e:
        raise CommitIOError(f"Could not read active config {path}: {e}", path=path) from e

    if old == config:
        return None

    log_event("INFO", f"HAProxy configuration has changed, writing a new file to {path}")

    backup_path = ""
    if backup:
        backup_path = f"{path}-{backup_timestamp()}"
        try:
            os.link(path, backup_path)
        except FileNotFoundError:
            backup_path = ""
        except OSError as e:
            log_event("ERROR", f"Error linking config backup {backup_path}: {e}")
            raise CommitIOError(f"Could not back up {path}: {e}", path=backup_path) from e

    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(config)
    except OSError as e:
        log_event("ERROR", f"Could not write new HAProxy config {path}: {e}")
        raise CommitIOError(f"Could not write {path}: {e}", path=path) from e

    # The new file is on disk; a stale marker must not block the reload.
    try:
        touch_marker(proxy)
    except OSError as e:
        log_event("ERROR", f"Could not update {proxy.marker_path}: {e}")

    change = ConfigChangeLog(old_config=old, new_config=config, backup_path=backup_path)
    record_config_change(path, backup_path, old, config)
    return change
