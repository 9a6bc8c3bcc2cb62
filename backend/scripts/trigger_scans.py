#!/usr/bin/env python3
"""
StockLedger scan trigger

Calls the notification scan endpoints of a running server with the
scheduler secret, so every tenant is scanned. Meant for cron:

    */30 * * * * CRON_SECRET=... python backend/scripts/trigger_scans.py

Usage:
    python backend/scripts/trigger_scans.py                 # both scans
    python backend/scripts/trigger_scans.py stock --force   # stock only, bypass dedup
    python backend/scripts/trigger_scans.py payments --window-days 3

Exit status is 1 when a request fails or a scan reports failed items.
"""

import argparse
import os
import sys

import httpx


def run_scan(client: httpx.Client, path: str, params: dict) -> bool:
    try:
        response = client.get(path, params=params)
    except httpx.HTTPError as exc:
        print(f"FAIL {path}: {exc}")
        return False

    if response.status_code != 200:
        print(f"FAIL {path}: HTTP {response.status_code} {response.text[:200]}")
        return False

    data = response.json()["data"]
    print(f"PASS {path}: created={data['created']} skipped={data['skipped']} failed={data['failed']}")
    return data["failed"] == 0


def main():
    parser = argparse.ArgumentParser(
        description="Trigger StockLedger notification scans",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Scans:
  stock     Low-stock alerts (GET /api/notifications/stock-alerts)
  payments  Payment-due reminders (GET /api/notifications/payment-due-check)
  all       Both (default)
        """
    )

    parser.add_argument(
        "scan",
        nargs="?",
        choices=["stock", "payments", "all"],
        default="all",
        help="Which scan to run"
    )

    parser.add_argument(
        "--base-url",
        default=os.environ.get("STOCKLEDGER_URL", "http://127.0.0.1:5001"),
        help="Backend base URL"
    )

    parser.add_argument(
        "--secret",
        default=os.environ.get("CRON_SECRET"),
        help="Scheduler secret (default: $CRON_SECRET)"
    )

    parser.add_argument(
        "--force",
        action="store_true",
        help="Stock scan: create alerts even if one was sent today"
    )

    parser.add_argument(
        "--window-days",
        type=int,
        help="Payment scan: days ahead to look (server default otherwise)"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="Request timeout in seconds"
    )

    args = parser.parse_args()

    if not args.secret:
        parser.error("a scheduler secret is required (--secret or $CRON_SECRET)")

    ok = True
    with httpx.Client(
        base_url=args.base_url,
        headers={"X-Cron-Secret": args.secret},
        timeout=args.timeout,
    ) as client:
        if args.scan in ("stock", "all"):
            params = {"force": "true"} if args.force else {}
            ok = run_scan(client, "/api/notifications/stock-alerts", params) and ok
        if args.scan in ("payments", "all"):
            params = {"window_days": args.window_days} if args.window_days is not None else {}
            ok = run_scan(client, "/api/notifications/payment-due-check", params) and ok

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
