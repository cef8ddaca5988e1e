"""HAProxy control socket: ``show stat`` reader and admin command dispatcher."""
from __future__ import annotations

import glob
import socket
from dataclasses import dataclass

from .db import log_event
from .errors import SocketUnavailable
from .settings import ProxySettings


# Fixed column layout of the "show stat" CSV.
COL_SECTION = 0
COL_NICKNAME = 1
COL_STATUS = 17
AGGREGATE_ROWS = {"FRONTEND", "BACKEND"}

# section -> nickname -> status
LiveBackends = dict[str, dict[str, str]]


@dataclass(frozen=True)
class StatusResult:
    """Outcome of a status read.

    ``backends`` is None when no live state could be obtained; ``reason``
    then says why. Callers must treat that as "resync required".
    """

    backends: LiveBackends | None
    sockets: tuple[str, ...] = ()
    reason: str = ""

    @property
    def available(self) -> bool:
        return self.backends is not None


def resolve_sockets(pattern: str) -> list[str]:
    return sorted(glob.glob(pattern))


def parse_stat(text: str) -> LiveBackends:
    backends: LiveBackends = {}
    for line in text.split("\n"):
        if not line or line.startswith("#"):
            continue
        parts = line.split(",")
        if len(parts) <= COL_STATUS:
            continue
        if parts[COL_NICKNAME] in AGGREGATE_ROWS:
            continue
        backends.setdefault(parts[COL_SECTION], {})[parts[COL_NICKNAME]] = parts[COL_STATUS]
    return backends


def _connect(socket_path: str, timeout_s: float) -> socket.socket:
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(timeout_s)
    try:
        sock.connect(socket_path)
    except OSError:
        sock.close()
        raise
    return sock


def query_stats(socket_path: str, timeout_s: float) -> str:
    """Send ``show stat`` and read the reply until the peer closes."""
    try:
        with _connect(socket_path, timeout_s) as sock:
            sock.sendall(b"show stat\n")
            chunks: list[bytes] = []
            while True:
                data = sock.recv(65536)
                if not data:
                    break
                chunks.append(data)
    except OSError as e:
        raise SocketUnavailable(f"show stat on {socket_path} failed: {e}") from e
    return b"".join(chunks).decode("utf-8", errors="replace")


def read_status(proxy: ProxySettings, log: bool = True) -> StatusResult:
    """Read live backend state from the first control socket.

    Read-only callers such as the status endpoint pass ``log=False`` so that
    polling does not fill the journal.
    """
    sockets = tuple(resolve_sockets(proxy.socket_glob))
    if not sockets:
        reason = f"Could not find HAProxy socket(s) from {proxy.socket_glob}"
        if log:
            log_event("WARN", reason)
        return StatusResult(None, sockets, reason)

    try:
        text = query_stats(sockets[0], proxy.socket_timeout_s)
    except SocketUnavailable as e:
        if log:
            log_event("WARN", str(e))
        return StatusResult(None, sockets, str(e))

    return StatusResult(parse_stat(text), sockets)


def send_commands(socket_path: str, commands: str, timeout_s: float) -> None:
    """Write a batch of admin commands. HAProxy's reply is not read."""
    try:
        with _connect(socket_path, timeout_s) as sock:
            sock.sendall(commands.encode("utf-8"))
    except OSError as e:
        raise SocketUnavailable(f"sending commands to {socket_path} failed: {e}") from e
