from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Catalog Service Reconciler CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    p.add_argument("--user", help="API basic auth user")
    p.add_argument("--password", help="API basic auth password")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("registrations", help="List services this reconciler has registered")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--level", help="Only show one level (DEBUG, INFO, WARN, ERROR, FATAL)")

    s_rec = sub.add_parser("reconcile", help="Run one pass against a desired service list")
    s_rec.add_argument("--file", required=True, help="JSON file holding a list of service documents")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")
    auth = (args.user, args.password or "") if args.user else None

    if args.cmd == "registrations":
        r = requests.get(f"{base}/registrations", auth=auth, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "events":
        params: dict[str, object] = {"limit": args.limit}
        if args.level:
            params["level"] = args.level
        r = requests.get(f"{base}/events", params=params, auth=auth, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "reconcile":
        with open(args.file, encoding="utf-8") as fh:
            payload = json.load(fh)
        r = requests.post(f"{base}/reconcile", json=payload, auth=auth, timeout=60)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
