#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import random
import time
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Iterable


def build_payload(accounts: Iterable[str], models: Iterable[str]) -> dict[str, object]:
    now = datetime.now(timezone.utc)
    rows: list[dict[str, object]] = []
    for index, account in enumerate(accounts):
        quotas: dict[str, object] = {}
        limited = 0
        for model in models:
            percentage = random.choice([0, 5, 12, 25, 48, 76, 100])
            entry: dict[str, object] = {"percentage": percentage}
            if percentage < 10:
                limited += 1
                reset = now + timedelta(seconds=random.randint(30, 6 * 3600))
                entry["reset_at"] = reset.isoformat()
            quotas[model] = entry
        status = "limited" if limited else "ok"
        if index == 3:
            status = "disabled"
        rows.append(
            {
                "id": account,
                "status": status,
                "limited_count": limited or None,
                "last_used": (now - timedelta(minutes=index * 7)).isoformat(),
                "models": quotas,
            }
        )
    return {"timestamp": now.isoformat(timespec="seconds"), "accounts": rows}


def make_handler(
    accounts: list[str], models: list[str], html: bool, delay: float
) -> type[BaseHTTPRequestHandler]:
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802 - http.server API
            if delay:
                time.sleep(delay)
            if html:
                body = b"<html><body><h1>502 Bad Gateway</h1></body></html>"
                content_type = "text/html"
            else:
                body = json.dumps(build_payload(accounts, models)).encode("utf-8")
                content_type = "application/json"
            self.send_response(200)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

    return Handler


def main() -> int:
    parser = argparse.ArgumentParser(description="Serve a fake account-limits feed.")
    parser.add_argument("--port", type=int, default=8040)
    parser.add_argument(
        "--accounts",
        nargs="+",
        default=["alice@example.com", "bob@example.com", "carol@example.com"],
    )
    parser.add_argument(
        "--models",
        nargs="+",
        default=["claude-sonnet", "claude-opus", "gemini-flash", "gemini-pro"],
    )
    parser.add_argument(
        "--html", action="store_true", help="Answer with an HTML error page"
    )
    parser.add_argument(
        "--delay", type=float, default=0.0, help="Seconds to stall each response"
    )
    args = parser.parse_args()
    server = ThreadingHTTPServer(
        ("127.0.0.1", args.port),
        make_handler(args.accounts, args.models, args.html, args.delay),
    )
    print(f"Serving http://127.0.0.1:{args.port}/account-limits (Ctrl+C to stop)")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
