import os

import pytest

from lbc.control import parse_stat, read_status, resolve_sockets, send_commands
from lbc.errors import SocketUnavailable


def _row(section, nickname, status):
    return ",".join([section, nickname] + [""] * 15 + [status, "1"])


def test_parse_stat_skips_comments_aggregates_and_blank_lines():
    text = "\n".join(
        [
            "# pxname,svname,qcur,qmax,scur,smax,slim,stot,bin,bout,dreq,dresp,ereq,econ,eresp,wretr,wredis,status",
            _row("stats", "FRONTEND", "OPEN"),
            _row("web", "web-10.0.0.1:80", "UP"),
            _row("web", "web-10.0.0.2:80", "MAINT"),
            _row("web", "BACKEND", "UP"),
            "",
            _row("api", "api-10.0.1.1:8080", "DOWN"),
            "",
        ]
    )
    assert parse_stat(text) == {
        "web": {"web-10.0.0.1:80": "UP", "web-10.0.0.2:80": "MAINT"},
        "api": {"api-10.0.1.1:8080": "DOWN"},
    }


def test_parse_stat_ignores_truncated_rows():
    assert parse_stat("web,web-1:80,UP\n") == {}


def test_resolve_sockets_sorted(socket_dir):
    for name in ("b.sock", "a.sock"):
        open(os.path.join(socket_dir, name), "w").close()
    assert resolve_sockets(os.path.join(socket_dir, "*.sock")) == [
        os.path.join(socket_dir, "a.sock"),
        os.path.join(socket_dir, "b.sock"),
    ]


def test_read_status_without_sockets_is_unavailable(proxy):
    result = read_status(proxy)
    assert not result.available
    assert result.backends is None
    assert "Could not find" in result.reason


def test_read_status_on_dead_socket_is_unavailable(proxy, socket_dir):
    # A plain file matching the glob: connect() fails.
    open(os.path.join(socket_dir, "haproxy.sock"), "w").close()
    result = read_status(proxy)
    assert not result.available
    assert result.sockets == (os.path.join(socket_dir, "haproxy.sock"),)


def test_read_status_from_live_socket(proxy, stats_socket):
    stats_socket({"web": {"web-10.0.0.1:80": "MAINT", "web-nocheck-9.9.9.9:80": "UP"}})
    result = read_status(proxy)
    assert result.available
    assert result.backends == {"web": {"web-10.0.0.1:80": "MAINT", "web-nocheck-9.9.9.9:80": "UP"}}


def test_send_commands_writes_batch(stats_socket):
    srv = stats_socket({})
    send_commands(srv.path, "disable server web/web-1:80\n", 2)
    assert srv.wait_received() == ["disable server web/web-1:80\n"]


def test_send_commands_reports_connection_failure(socket_dir):
    with pytest.raises(SocketUnavailable):
        send_commands(os.path.join(socket_dir, "missing.sock"), "enable server a/b\n", 1)
