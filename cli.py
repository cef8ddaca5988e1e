from __future__ import annotations

import argparse
import json
import os
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Load-Balancer Convergence Controller CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    p.add_argument("--user", default=os.getenv("LBC_API_USER", "admin"))
    p.add_argument("--password", default=os.getenv("LBC_API_PASSWORD", ""))
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("status", help="Show convergence state and live backends")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--level", default=None, help="Only events of this level (INFO, WARN, ERROR, ...)")

    s_ch = sub.add_parser("changes", help="Show committed configuration changes")
    s_ch.add_argument("--limit", type=int, default=5)
    s_ch.add_argument("--full", action="store_true", help="Include old/new configuration text")

    s_err = sub.add_parser("config-errors", help="Show configurations rejected by haproxy -c")
    s_err.add_argument("--limit", type=int, default=5)

    s_conv = sub.add_parser("converge", help="Converge now with a desired state JSON document")
    s_conv.add_argument("--file", required=True, help="Path to the desired state JSON ('-' for stdin)")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "status":
        _print(requests.get(f"{base}/status", timeout=10).json())
        return 0

    if args.cmd == "events":
        params = {"limit": args.limit}
        if args.level:
            params["level"] = args.level
        _print(requests.get(f"{base}/events", params=params, timeout=10).json())
        return 0

    if args.cmd == "changes":
        changes = requests.get(f"{base}/changes", params={"limit": args.limit}, timeout=10).json()
        if not args.full:
            for c in changes:
                c.pop("old_config", None)
                c.pop("new_config", None)
        _print(changes)
        return 0

    if args.cmd == "config-errors":
        _print(requests.get(f"{base}/config-errors", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd == "converge":
        if args.file == "-":
            payload = json.load(sys.stdin)
        else:
            with open(args.file, encoding="utf-8") as f:
                payload = json.load(f)
        r = requests.post(f"{base}/converge", json=payload, auth=(args.user, args.password), timeout=120)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
