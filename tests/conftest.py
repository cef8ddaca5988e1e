import os
import shutil
import socketserver
import stat
import sys
import tempfile
import threading
import time

import pytest

# Ensure project root is importable (so `import main` works without installing)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from lbc import db  # noqa: E402
from lbc.settings import ProxySettings, Settings  # noqa: E402


FAKE_HAPROXY = """#!/bin/sh
# Minimal stand-in for `haproxy -c -f FILE`.
echo "$3" >> "$(dirname "$0")/checked.log"
if grep -q INVALID "$3"; then
  echo "[ALERT] parsing [$3:1] : unknown keyword 'INVALID' out of section." >&2
  exit 1
fi
exit 0
"""


@pytest.fixture(autouse=True)
def journal(tmp_path, monkeypatch):
    """Point the event journal at a throwaway sqlite file."""
    monkeypatch.setattr(db, "settings", Settings(db_path=str(tmp_path / "journal.db")))
    db.init_db()
    return db


@pytest.fixture()
def fake_haproxy(tmp_path):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    path = bin_dir / "haproxy"
    path.write_text(FAKE_HAPROXY)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture()
def socket_dir():
    # AF_UNIX paths are limited to ~107 bytes; pytest's tmp_path can get close.
    d = tempfile.mkdtemp(prefix="lbc-")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture()
def proxy(tmp_path, fake_haproxy, socket_dir):
    config_dir = tmp_path / "etc"
    config_dir.mkdir()
    return ProxySettings(
        binary=str(fake_haproxy),
        config_dir=str(config_dir),
        config_name="haproxy.cfg",
        reload_command="",
        socket_glob=os.path.join(socket_dir, "*.sock"),
        check_timeout_s=10,
        reload_timeout_s=10,
        socket_timeout_s=2,
    )


def stat_row(section: str, nickname: str, status: str) -> str:
    fields = [section, nickname] + [""] * 15 + [status] + [""] * 5
    return ",".join(fields)


def stat_csv(backends: dict) -> str:
    lines = ["# pxname,svname,qcur,qmax,scur,smax,slim,stot,bin,bout,dreq,dresp,ereq,econ,eresp,wretr,wredis,status,weight,act,bck,chkfail"]
    for section, servers in backends.items():
        lines.append(stat_row(section, "FRONTEND", "OPEN"))
        for nickname, status in servers.items():
            lines.append(stat_row(section, nickname, status))
        lines.append(stat_row(section, "BACKEND", "UP"))
    return "\n".join(lines) + "\n\n"


class FakeStatsSocket:
    """A unix socket answering `show stat` like HAProxy and recording admin batches."""

    def __init__(self, path: str, backends: dict):
        self.path = path
        self.backends = backends
        self.received: list[str] = []
        owner = self

        class Handler(socketserver.BaseRequestHandler):
            def handle(self):
                data = self.request.recv(65536)
                if data == b"show stat\n":
                    self.request.sendall(stat_csv(owner.backends).encode())
                    return
                chunks = [data]
                while True:
                    more = self.request.recv(65536)
                    if not more:
                        break
                    chunks.append(more)
                owner.received.append(b"".join(chunks).decode())

        self.server = socketserver.ThreadingUnixStreamServer(path, Handler)
        self.server.daemon_threads = True
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    def start(self):
        self.thread.start()
        return self

    def wait_received(self, count: int = 1, timeout: float = 2.0) -> list[str]:
        deadline = time.monotonic() + timeout
        while len(self.received) < count and time.monotonic() < deadline:
            time.sleep(0.01)
        return self.received

    def close(self):
        self.server.shutdown()
        self.server.server_close()


@pytest.fixture()
def stats_socket(socket_dir):
    """Factory: stats_socket(backends, name="haproxy.sock") -> running FakeStatsSocket."""
    servers: list[FakeStatsSocket] = []

    def _start(backends: dict, name: str = "haproxy.sock") -> FakeStatsSocket:
        srv = FakeStatsSocket(os.path.join(socket_dir, name), backends).start()
        servers.append(srv)
        return srv

    yield _start
    for srv in servers:
        srv.close()
